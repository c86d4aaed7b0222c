"""
Shared fixtures: small plasmasphere grids and Kp files.
"""
import numpy as np
import pytest

from model.plasmasphere import PlasmasphereModel


class Grid:
    """Bundle of the arrays a filling stage is handed."""

    def __init__(self, model):
        self.r = model.r
        self.colat = model.colat
        self.lon = model.lon
        self.n = model.n
        self.den = model.den
        self.vol = model.vol
        self.oc = model.oc
        self.bi = model.bi

    def args(self, dt):
        return (self.r, self.colat, self.lon, self.n, self.den,
                self.vol, self.oc, self.bi, dt)

    def copy(self):
        other = object.__new__(Grid)
        for k, v in vars(self).items():
            setattr(other, k, v.copy())
        return other


def make_grid(kp=2.0, n_lon=24, colat=None, seed=None):
    if colat is None:
        colat = np.arange(20.0, 71.0, 2.0)
    lon = np.arange(n_lon) * (360.0 / n_lon)
    model = PlasmasphereModel(kp=kp, colat=colat, lon=lon)
    if seed is not None:
        rng = np.random.default_rng(seed)
        model.n *= rng.uniform(0.05, 2.0, model.n.shape)
        np.divide(model.n, model.vol, out=model.den)
    return Grid(model)


@pytest.fixture
def grid():
    return make_grid()


@pytest.fixture
def kp_file(tmp_path):
    path = tmp_path / "kp.txt"
    path.write_text(
        "# yr mo dy hr kp\n"
        "2001 03 01 00 1.0\n"
        "2001 03 01 03 2.3\n"
        "2001 03 01 06 4.7\n"
        "2001 03 01 09 3.0\n"
        "2001 03 01 12 2.0\n"
    )
    return path
