"""Flux-tube filling stages: the baseline law and the substorm spot.

Both stages expose the same ``fill`` call and mutate the ``n`` and ``den``
grids in place.  ``SpotFilling`` wraps a baseline stage: it always runs the
baseline first, then, while its activation window is open, overlays a much
faster relaxation inside a bounded circle on the Earth's surface to emulate
the enhanced ionisation of a substorm.

Grids are ``(n_lon, n_colat)`` arrays indexed ``[lon_index, colat_index]``.
"""

import logging
from dataclasses import dataclass

import numpy as np

from config import (
    RE_KM,
    F_MAX_DEFAULT, TAU_CLOSED_DEFAULT, TAU_OPEN_DEFAULT,
)
from model.errors import ConfigurationError, NumericDegeneracy
from model.saturation import Saturation, l_shell

logger = logging.getLogger(__name__)


# ── Baseline ───────────────────────────────────────────────────────────

class Filling:
    """Default refilling/draining of flux tubes.

    Closed tubes relax toward the saturation density with peak source
    rate ``f_max``, limited so a tube never fills faster than
    ``tau_closed``.  Open tubes drain exponentially with ``tau_open``.
    """

    def __init__(self, f_max: float = F_MAX_DEFAULT,
                 tau_closed: float = TAU_CLOSED_DEFAULT,
                 tau_open: float = TAU_OPEN_DEFAULT,
                 saturation=None):
        if tau_closed <= 0 or tau_open <= 0:
            raise ConfigurationError(
                f"filling time constants must be positive "
                f"(tau_closed={tau_closed}, tau_open={tau_open})")
        self.f_max = f_max
        self.tau_closed = tau_closed
        self.tau_open = tau_open
        self.saturation = saturation if saturation is not None else Saturation()

    def set_saturation(self, saturation):
        self.saturation = saturation

    def fill(self, r, colat, lon, n, den, vol, oc, bi, dt):
        """Advance the filling law by ``dt`` seconds.

        Parameters
        ----------
        r : ndarray (n_colat,)
            L value of each colatitude row.
        colat, lon : ndarray
            Grid coordinate vectors (deg).  Unused by the baseline law.
        n, den : ndarray (n_lon, n_colat)
            Flux-tube content and density, updated in place.
        vol, oc, bi : ndarray (n_lon, n_colat)
            Tube volume, open/closed flag and ionospheric field.
        dt : float
            Time step (s).
        """
        neq = np.broadcast_to(self.saturation(r), n.shape)
        closed = oc != 0

        f_peak = np.minimum(self.f_max, neq * vol * bi / self.tau_closed)
        flux = (neq - den) / neq * f_peak

        n[closed] += (flux * dt / bi)[closed]
        n[~closed] *= np.exp(-dt / self.tau_open)
        np.divide(n, vol, out=den)


# ── Spot ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class SpotWindow:
    """Activation interval and geometry of the substorm spot.

    ``start``/``end`` are simulated times (s, epoch UTC); the spot is on
    for ``start <= t <= end``.  An ``end`` before ``start`` describes a
    spot that never switches on.
    """
    start: float
    end: float
    colat: float        # deg
    lon: float          # deg east of local midnight
    radius_km: float
    factor: float

    def __post_init__(self):
        if not self.radius_km > 0:
            raise NumericDegeneracy(
                f"spot radius must be positive, got {self.radius_km} km")
        if not np.isfinite(self.factor):
            raise ConfigurationError(
                f"spot factor must be finite, got {self.factor}")

    @classmethod
    def from_offsets(cls, run_start, start_offset, stop_offset,
                     colat, lon, radius_km, factor):
        """Build a window whose bounds are seconds after ``run_start``."""
        return cls(start=run_start + start_offset,
                   end=run_start + stop_offset,
                   colat=colat, lon=lon,
                   radius_km=radius_km, factor=factor)

    def is_active(self, t) -> bool:
        return self.start <= t <= self.end


def wrap_longitude(dlon):
    """Normalise a longitude difference (deg) into (-180, 180]."""
    dlon = np.asarray(dlon, dtype=np.float64)
    dlon = np.where(dlon > 180.0, dlon - 360.0, dlon)
    return np.where(dlon < -180.0, dlon + 360.0, dlon)


def spot_distance_km(colat, lon, colat_c, lon_c):
    """Surface distance (km) from the spot centre to every grid cell.

    Flat-Earth approximation: the north-south leg is the colatitude
    difference along a meridian, the east-west leg is the wrapped
    longitude difference along the local circle of colatitude.

    Returns
    -------
    r : ndarray (n_lon, n_colat)
    """
    colat = np.asarray(colat, dtype=np.float64)
    lon = np.asarray(lon, dtype=np.float64)

    d_colat = np.radians(colat - colat_c) * RE_KM
    d_lon = np.radians(wrap_longitude(lon - lon_c))
    d_lon_km = d_lon[:, None] * RE_KM * np.sin(np.radians(colat))[None, :]
    return np.sqrt(d_colat[None, :] ** 2 + d_lon_km ** 2)


def spot_outline(colat_c, lon_c, radius_km, n_points=73):
    """Closed ring of (colat, lon) points at ``radius_km`` from the centre.

    Uses the same flat-Earth metric as :func:`spot_distance_km`, so the
    ring is the boundary of the injection region.  Longitudes are in
    [0, 360).
    """
    phi = np.linspace(0.0, 2 * np.pi, n_points)
    colat = colat_c + np.degrees(radius_km * np.cos(phi) / RE_KM)
    with np.errstate(divide="ignore", invalid="ignore"):
        d_lon = np.degrees(radius_km * np.sin(phi)
                           / (RE_KM * np.sin(np.radians(colat))))
    return colat, np.mod(lon_c + d_lon, 360.0)


class SpotFilling:
    """Baseline filling plus a time-windowed high-intensity spot.

    Drop-in replacement for :class:`Filling`.  The current simulated time
    is pushed in by the scheduler through :meth:`set_time` once per tick.
    """

    def __init__(self, window: SpotWindow, baseline: Filling = None,
                 f_max: float = F_MAX_DEFAULT,
                 tau_closed: float = TAU_CLOSED_DEFAULT,
                 tau_open: float = TAU_OPEN_DEFAULT,
                 saturation=None):
        if baseline is None:
            baseline = Filling(f_max, tau_closed, tau_open, saturation)
        elif saturation is not None:
            baseline.set_saturation(saturation)
        self.baseline = baseline
        self.window = window
        self.time = None
        self._was_active = False

    @property
    def f_max(self):
        return self.baseline.f_max

    @property
    def saturation(self):
        return self.baseline.saturation

    def set_saturation(self, saturation):
        self.baseline.set_saturation(saturation)

    def set_time(self, t):
        self.time = t
        active = self.is_active()
        if active != self._was_active:
            if active:
                self.spot_saturation()
            logger.info("Spot %s at t=%.0f",
                        "activated" if active else "deactivated", t)
            self._was_active = active

    def is_active(self) -> bool:
        return self.time is not None and self.window.is_active(self.time)

    def validate(self):
        """Fail fast on a spot that could ever switch on with a bad curve."""
        if self.window.end >= self.window.start:
            self.spot_saturation()

    def spot_saturation(self) -> float:
        """Saturation density at the spot centre, scaled by the factor.

        Raises NumericDegeneracy unless the result is finite and positive.
        """
        w = self.window
        d_sat = float(self.saturation(l_shell(w.colat)))
        s_sat = w.factor * d_sat
        if not np.isfinite(s_sat) or s_sat <= 0:
            raise NumericDegeneracy(
                f"spot saturation must be finite and positive, got {s_sat} "
                f"(saturation {d_sat} at colatitude {w.colat}°, "
                f"factor {w.factor})")
        return s_sat

    def fill(self, r, colat, lon, n, den, vol, oc, bi, dt):
        self.baseline.fill(r, colat, lon, n, den, vol, oc, bi, dt)

        if not self.is_active():
            return

        w = self.window
        s_sat = self.spot_saturation()
        s_f_max = w.factor * self.f_max

        inside = spot_distance_km(colat, lon, w.colat, w.lon) < w.radius_km
        if not inside.any():
            return

        flux = (s_sat - den[inside]) / s_sat * s_f_max
        n[inside] += flux * dt / bi[inside]
        den[inside] = n[inside] / vol[inside]
