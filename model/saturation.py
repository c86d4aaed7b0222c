"""Plasmaspheric saturation density curve."""

import numpy as np

from config import SATURATION_A, SATURATION_B


def l_shell(colat_deg):
    """Map colatitude (deg) to the dipole L value 1 / sin²(colat)."""
    s = np.sin(np.radians(colat_deg))
    return 1.0 / (s * s)


class Saturation:
    """Saturation density neq = 10^(a + b·L), in cm⁻³.

    Works on scalars and arrays alike.
    """

    def __init__(self, a: float = SATURATION_A, b: float = SATURATION_B):
        self.a = a
        self.b = b

    def __call__(self, l):
        return 10.0 ** (self.a + self.b * np.asarray(l, dtype=np.float64))

    def __repr__(self):
        return f"Saturation(a={self.a}, b={self.b})"
