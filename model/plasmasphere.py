"""Gridded plasmasphere model on a colatitude × local-time grid.

Owns the flux-tube arrays and the baseline physics: Kp-driven plasmapause
(open/closed tubes), periodic sub-corotation drift in local time, and a
pluggable filling stage applied after each drift substep.

Public API
----------
PlasmasphereModel(kp=0.0)
    .colat, .lon, .r        : coordinate vectors (deg, deg, L)
    .n, .den, .vol, .oc, .bi : (n_lon, n_colat) grids
    .set_kp(kp)             : forcing-index update
    .set_filling(stage)     : attach a filling stage
    .advance(dt)            : integrate dt seconds
"""

import logging
import math

import numpy as np
from scipy.ndimage import shift

from config import (
    COLAT_MIN, COLAT_MAX, DCOLAT, N_LON,
    RE_M, B0,
    LPP_INTERCEPT, LPP_SLOPE, DRIFT_LAG_DEG_PER_HOUR_PER_KP,
    MAX_SUBSTEP_S,
)
from model.filling import Filling
from model.saturation import l_shell

logger = logging.getLogger(__name__)


# ── Grid construction ──────────────────────────────────────────────────

def colat_grid():
    return np.arange(COLAT_MIN, COLAT_MAX + DCOLAT / 2, DCOLAT)


def lon_grid(n_lon=N_LON):
    return np.arange(n_lon) * (360.0 / n_lon)


def tube_volume(l):
    """Dipole flux-tube volume per unit magnetic flux (cm³/Wb)."""
    return (32.0 / 35.0) * l ** 4 * RE_M / B0 * 1e6


def ionospheric_field(colat_deg):
    """Dipole field magnitude at the surface (T)."""
    c = np.cos(np.radians(colat_deg))
    return B0 * np.sqrt(1.0 + 3.0 * c * c)


def plasmapause(kp):
    """Plasmapause L from Kp (Carpenter & Anderson 1992)."""
    return LPP_INTERCEPT + LPP_SLOPE * kp


# ── Model ──────────────────────────────────────────────────────────────

class PlasmasphereModel:
    def __init__(self, kp: float = 0.0, colat=None, lon=None, filling=None):
        self.colat = colat_grid() if colat is None else np.asarray(colat, dtype=np.float64)
        self.lon = lon_grid() if lon is None else np.asarray(lon, dtype=np.float64)
        self.r = l_shell(self.colat)

        shape = (len(self.lon), len(self.colat))
        self.vol = np.broadcast_to(tube_volume(self.r), shape).copy()
        self.bi = np.broadcast_to(ionospheric_field(self.colat), shape).copy()
        self.oc = np.ones(shape)

        self.filling = filling if filling is not None else Filling()
        self.den = np.broadcast_to(self.filling.saturation(self.r), shape).copy()
        self.n = self.den * self.vol

        self.kp = None
        self.set_kp(kp)

    @property
    def shape(self):
        return self.n.shape

    def set_filling(self, stage):
        self.filling = stage

    def set_kp(self, kp):
        """Reconfigure the plasmapause and drift for a new Kp value."""
        self.kp = float(kp)
        self.lpp = plasmapause(self.kp)
        self.oc[:] = (self.r < self.lpp)[None, :]
        # deg of local time per second, westward, growing with L
        self.drift_rate = (DRIFT_LAG_DEG_PER_HOUR_PER_KP * self.kp / 3600.0) * self.r

    def _drift(self, dt):
        dlon = 360.0 / len(self.lon)
        for j, rate in enumerate(self.drift_rate):
            if rate == 0:
                continue
            self.n[:, j] = shift(self.n[:, j], -rate * dt / dlon,
                                 order=1, mode="grid-wrap")
        np.divide(self.n, self.vol, out=self.den)

    def advance(self, dt):
        """Integrate ``dt`` seconds in substeps of at most MAX_SUBSTEP_S."""
        if dt <= 0:
            return
        n_sub = max(1, math.ceil(dt / MAX_SUBSTEP_S))
        h = dt / n_sub
        for _ in range(n_sub):
            self._drift(h)
            self.filling.fill(self.r, self.colat, self.lon,
                              self.n, self.den, self.vol, self.oc, self.bi, h)

    # ── Serialisation ──────────────────────────────────────────────────

    def header_bytes(self) -> bytes:
        """Grid shape then colatitude and longitude vectors (little-endian)."""
        n_lon, n_colat = self.shape
        return (np.array([n_lon, n_colat], dtype="<i4").tobytes()
                + self.colat.astype("<f4").tobytes()
                + self.lon.astype("<f4").tobytes())

    def state_bytes(self) -> bytes:
        """Kp then the density grid as float32."""
        return (np.array([self.kp], dtype="<f4").tobytes()
                + self.den.astype("<f4").tobytes())
