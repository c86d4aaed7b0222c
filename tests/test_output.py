"""
State file and sample output.
"""
import gzip

import numpy as np
import pytest

from data.samples import SampleSet, build_interpolator
from data.state_file import StateWriter, read_states
from data.timestamps import epoch
from model.errors import ConfigurationError
from model.plasmasphere import PlasmasphereModel


# ── State file ─────────────────────────────────────────────────────────

def test_state_round_trip(tmp_path):
    model = PlasmasphereModel(kp=2.0)
    path = tmp_path / "out.dat"
    t0 = epoch(2001, 3, 1, 6)

    with StateWriter(path) as w:
        w.write_header(model)
        w.write(t0, model)
        model.set_kp(4.0)
        model.den *= 2.0
        w.write(t0 + 900, model)
    assert w.n_records == 2

    colat, lon, times, kp, den = read_states(path)
    np.testing.assert_allclose(colat, model.colat, rtol=1e-6)
    np.testing.assert_allclose(lon, model.lon, rtol=1e-6)
    np.testing.assert_array_equal(times, [t0, t0 + 900])
    np.testing.assert_allclose(kp, [2.0, 4.0])
    assert den.shape == (2,) + model.shape
    np.testing.assert_allclose(den[1], model.den, rtol=1e-6)
    np.testing.assert_allclose(den[0], model.den / 2.0, rtol=1e-6)


def test_records_start_with_six_int32_time_fields(tmp_path):
    model = PlasmasphereModel()
    path = tmp_path / "out.dat"
    with StateWriter(path) as w:
        w.write_header(model)
        w.write(epoch(2001, 3, 1, 12, 34, 56), model)

    with gzip.open(path, "rb") as f:
        buf = f.read()
    n_lon, n_colat = model.shape
    header = 8 + 4 * (n_lon + n_colat)
    fields = np.frombuffer(buf, dtype="<i4", count=6, offset=header)
    assert fields.tolist() == [2001, 3, 1, 12, 34, 56]
    assert len(buf) == header + 24 + 4 + 4 * n_lon * n_colat


# ── Samples ────────────────────────────────────────────────────────────

def _locations(tmp_path, rows):
    path = tmp_path / "locs.txt"
    path.write_text("\n".join(f"{l:.17g} {p:.17g}" for l, p in rows) + "\n")
    return path


def test_samples_hit_grid_nodes(tmp_path):
    model = PlasmasphereModel(kp=2.0)
    rng = np.random.default_rng(0)
    model.den[:] = rng.uniform(10, 1000, model.shape)

    i, j = 5, 10
    locs = _locations(tmp_path, [(float(model.r[j]), float(model.lon[i]))])
    s = SampleSet(locs, 0.0, 900.0, tmp_path / "s.out")
    assert s.sample(model)[0] == pytest.approx(model.den[i, j], rel=1e-9)
    s.close()


def test_samples_wrap_longitude_seam(tmp_path):
    model = PlasmasphereModel(kp=2.0)
    j = 10
    model.den[:, j] = 0.0
    model.den[0, j] = 100.0
    model.den[-1, j] = 200.0
    seam = (model.lon[-1] + 360.0) / 2
    locs = _locations(tmp_path, [(float(model.r[j]), seam),
                                 (float(model.r[j]), seam - 360.0)])
    s = SampleSet(locs, 0.0, 900.0, tmp_path / "s.out")
    np.testing.assert_allclose(s.sample(model), [150.0, 150.0])
    s.close()


def test_samples_outside_grid_are_nan(tmp_path):
    model = PlasmasphereModel()
    interp = build_interpolator(model)
    assert np.isnan(interp([[0.0, 50.0]])[0])


def test_sample_write_advances_cursor(tmp_path):
    model = PlasmasphereModel()
    locs = _locations(tmp_path, [(3.0, 0.0), (4.0, 180.0)])
    out = tmp_path / "s.out"
    t0 = epoch(2001, 3, 1)
    s = SampleSet(locs, t0, 600.0, out)
    assert s.time == t0
    assert s.write(t0, model) == t0 + 600.0
    assert s.write(t0 + 600.0, model) == t0 + 1200.0
    s.close()

    lines = out.read_text().splitlines()
    assert lines[0].startswith("#")
    assert lines[1].startswith("2001-03-01T00:00:00")
    assert len(lines[2].split()) == 3


@pytest.mark.parametrize("text", ["", "3.0\n", "3.0 4.0 5.0\n", "a b\n"])
def test_bad_location_files_rejected(tmp_path, text):
    path = tmp_path / "locs.txt"
    path.write_text(text)
    with pytest.raises(ConfigurationError):
        SampleSet(path, 0.0, 900.0, tmp_path / "s.out")
