"""
End-to-end runs through the driver.
"""
import numpy as np
import pytest

from data.kp import load_kp_files
from data.state_file import read_states
from data.timestamps import epoch
from model.errors import ConfigurationError, OrderingViolation, SimulationError
from model.filling import spot_distance_km
from model.saturation import Saturation, l_shell
import run
from run import RunConfig, build_parser, config_from_args, main, resolve_times, simulate

T0 = epoch(2001, 3, 1)


def _cfg(tmp_path, kp_file, **kw):
    base = dict(kp_files=[str(kp_file)], start=T0, duration=3 * 3600.0,
                output=str(tmp_path / "out.dat"))
    base.update(kw)
    return RunConfig(**base)


def test_state_written_every_period(tmp_path, kp_file):
    cfg = _cfg(tmp_path, kp_file)
    sched = simulate(cfg, load_kp_files(cfg.kp_files))

    assert sched.time == T0 + 3 * 3600.0
    _, _, times, kp, den = read_states(cfg.output)
    np.testing.assert_array_equal(times, T0 + 900.0 * np.arange(13))
    # Kp 1.0 from 00 UT, 2.3 from 03 UT
    assert kp[0] == pytest.approx(1.0)
    assert kp[-1] == pytest.approx(2.3, rel=1e-6)
    assert np.all(np.isfinite(den))


def test_spot_raises_density_inside_only(tmp_path, kp_file):
    quiet = _cfg(tmp_path, kp_file, output=str(tmp_path / "quiet.dat"),
                 custom_filling=True)
    spot = _cfg(tmp_path, kp_file, output=str(tmp_path / "spot.dat"),
                custom_filling=True, spot_start_dt=0.0, spot_stop_dt=3600.0,
                spot_colat=30.0, spot_lon=0.0, spot_radius_km=1500.0)
    records = load_kp_files([kp_file])
    simulate(quiet, records)
    simulate(spot, records)

    colat, lon, _, _, den_q = read_states(quiet.output)
    _, _, _, _, den_s = read_states(spot.output)
    inside = spot_distance_km(colat, lon, 30.0, 0.0) < 1500.0

    assert np.all(den_s[0] == den_q[0])
    assert np.all(den_s[4][inside] > den_q[4][inside])


def test_samples_replace_state_output(tmp_path, kp_file):
    locs = tmp_path / "locs.txt"
    locs.write_text("3.0 0.0\n4.0 90.0\n")
    out = tmp_path / "samples.out"
    cfg = _cfg(tmp_path, kp_file, output=str(out), samples=str(locs),
               out_start=T0 + 3600.0, dt_out=1800.0)
    simulate(cfg, load_kp_files(cfg.kp_files))

    lines = out.read_text().splitlines()
    assert [ln.split()[0] for ln in lines[1:]] == [
        "2001-03-01T01:00:00", "2001-03-01T01:30:00",
        "2001-03-01T02:00:00", "2001-03-01T02:30:00",
        "2001-03-01T03:00:00",
    ]


def test_custom_saturation_needs_custom_filling(tmp_path, kp_file):
    cfg = _cfg(tmp_path, kp_file, custom_saturation=True)
    with pytest.raises(ConfigurationError):
        simulate(cfg, load_kp_files(cfg.kp_files))


def test_output_before_start_rejected(tmp_path, kp_file):
    cfg = _cfg(tmp_path, kp_file, out_start=T0 - 3600.0)
    with pytest.raises(OrderingViolation):
        simulate(cfg, load_kp_files(cfg.kp_files))


def test_degenerate_spot_fails_before_running(tmp_path, kp_file):
    cfg = _cfg(tmp_path, kp_file, custom_filling=True, custom_saturation=True,
               saturation_a=float("-inf"), spot_start_dt=0.0, spot_stop_dt=60.0)
    with pytest.raises(ConfigurationError):
        simulate(cfg, load_kp_files(cfg.kp_files))


def test_custom_saturation_sets_initial_state(tmp_path, kp_file):
    cfg = _cfg(tmp_path, kp_file, custom_filling=True, custom_saturation=True,
               saturation_a=3.5, saturation_b=-0.3, duration=900.0)
    simulate(cfg, load_kp_files(cfg.kp_files))

    colat, _, _, _, den = read_states(cfg.output)
    expected = Saturation(3.5, -0.3)(l_shell(colat))
    np.testing.assert_allclose(den[0], np.broadcast_to(expected, den[0].shape),
                               rtol=1e-6)


def test_end_before_start_opens_no_output(tmp_path, kp_file):
    cfg = _cfg(tmp_path, kp_file, start=epoch(2001, 3, 2), duration=None)
    with pytest.raises(ConfigurationError):
        simulate(cfg, load_kp_files(cfg.kp_files))
    assert not (tmp_path / "out.dat").exists()


def _failing_scheduler(*args, **kwargs):
    raise SimulationError("scheduler setup failed")


def test_state_file_closed_when_setup_fails(tmp_path, kp_file, monkeypatch):
    opened = []

    class Recording(run.StateWriter):
        def __init__(self, path):
            super().__init__(path)
            opened.append(self)

    monkeypatch.setattr(run, "StateWriter", Recording)
    monkeypatch.setattr(run, "EventScheduler", _failing_scheduler)
    cfg = _cfg(tmp_path, kp_file)
    with pytest.raises(SimulationError):
        simulate(cfg, load_kp_files(cfg.kp_files))
    assert len(opened) == 1 and opened[0]._fp.closed


def test_sample_file_closed_when_setup_fails(tmp_path, kp_file, monkeypatch):
    opened = []

    class Recording(run.SampleSet):
        def __init__(self, *args):
            super().__init__(*args)
            opened.append(self)

    locs = tmp_path / "locs.txt"
    locs.write_text("3.0 0.0\n")
    monkeypatch.setattr(run, "SampleSet", Recording)
    monkeypatch.setattr(run, "EventScheduler", _failing_scheduler)
    cfg = _cfg(tmp_path, kp_file, samples=str(locs),
               output=str(tmp_path / "samples.out"))
    with pytest.raises(SimulationError):
        simulate(cfg, load_kp_files(cfg.kp_files))
    assert len(opened) == 1 and opened[0]._fp.closed


def test_times_default_from_records(tmp_path, kp_file):
    records = load_kp_files([kp_file])
    cfg = RunConfig(kp_files=[str(kp_file)])
    assert resolve_times(cfg, records) == (records[0].time, records[-1].time,
                                           records[0].time)
    cfg = RunConfig(kp_files=[str(kp_file)], start=T0, stop=T0 - 1, duration=600.0)
    assert resolve_times(cfg, records)[1] == T0 + 600.0


def test_parser_maps_options():
    args = build_parser().parse_args([
        "-s", "2001", "3", "1", "0", "-T", "7200",
        "-f", "2e12", "10", "1", "-saturation", "3.9", "-0.31",
        "-sStart", "600", "-sStop", "1200", "-sT", "35", "-sP", "300",
        "-sR", "800", "-sF", "5", "kp1.txt", "kp2.txt",
    ])
    cfg = config_from_args(args)
    assert cfg.start == T0 and cfg.duration == 7200.0
    assert cfg.custom_filling and cfg.tau_closed == 10 * 86400.0
    assert cfg.custom_saturation and cfg.saturation_b == pytest.approx(-0.31)
    assert (cfg.spot_start_dt, cfg.spot_stop_dt) == (600.0, 1200.0)
    assert (cfg.spot_colat, cfg.spot_lon, cfg.spot_radius_km, cfg.spot_factor) == (35.0, 300.0, 800.0, 5.0)
    assert cfg.kp_files == ["kp1.txt", "kp2.txt"]


def test_main_exit_codes(tmp_path, kp_file):
    out = str(tmp_path / "out.dat")
    assert main(["-T", "1800", "-o", out, "-f", "2e12", "10", "1",
                 "-sStart", "0", "-sStop", "900", str(kp_file)]) == 0
    assert main(["-saturation", "3.9", "-0.31", "-o", out, str(kp_file)]) == 1
