"""Density samples at fixed (L, magnetic longitude) locations.

Instead of whole-grid snapshots, a run can write the density at a list of
query points every ``dt`` seconds from ``t_out``.  Locations are read from
a text file of ``L  longitude_deg`` pairs, one per line.
"""

import logging

import numpy as np
from scipy.interpolate import RegularGridInterpolator

from data.timestamps import utc
from model.errors import ConfigurationError

logger = logging.getLogger(__name__)


def load_locations(path):
    try:
        pts = np.loadtxt(path, dtype=np.float64, comments="#", ndmin=2)
    except ValueError as exc:
        raise ConfigurationError(f"malformed sample locations file {path}: {exc}") from exc
    if pts.size == 0 or pts.shape[1] != 2:
        raise ConfigurationError(
            f"sample locations file {path} must hold 'L longitude' pairs")
    return pts[:, 0], pts[:, 1]


def build_interpolator(model):
    """Linear interpolator over (longitude, L) with a periodic longitude seam."""
    order = np.argsort(model.r)
    l_axis = model.r[order]
    lon_axis = np.append(model.lon, model.lon[0] + 360.0)
    den = model.den[:, order]
    den = np.vstack([den, den[:1]])
    return RegularGridInterpolator(
        (lon_axis, l_axis), den,
        method="linear", bounds_error=False, fill_value=np.nan,
    )


class SampleSet:
    def __init__(self, path, t_out, dt, out_path):
        if not dt > 0:
            raise ConfigurationError(f"sample period must be positive, got {dt}")
        self.l, self.lon = load_locations(path)
        self.dt = dt
        self.time = t_out
        self.out_path = out_path
        self._fp = open(out_path, "w", encoding="utf-8")
        self._fp.write("# time " + " ".join(
            f"L{l:g}/{p:g}" for l, p in zip(self.l, self.lon)) + "\n")
        logger.info("Sampling %d locations every %.0f s into %s",
                    len(self.l), dt, out_path)

    def sample(self, model):
        interp = build_interpolator(model)
        pts = np.column_stack([np.mod(self.lon, 360.0), self.l])
        return interp(pts)

    def write(self, t, model):
        """Write samples at ``t``, advance the cursor, return the next due time."""
        values = self.sample(model)
        self._fp.write(utc(t).strftime("%Y-%m-%dT%H:%M:%S") + " "
                       + " ".join(f"{v:.6g}" for v in values) + "\n")
        logger.info("Writing samples at t=%.0f", t)
        self.time += self.dt
        return self.time

    def close(self):
        self._fp.close()
