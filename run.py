"""Run the plasmasphere model from Kp input files.

    python run.py [-s yr mo dy hr] [-e yr mo dy hr] [-so yr mo dy hr]
                  [-dt float] [-T float] [-o file] [-samples file]
                  [-f fMax tauClosed tauOpen] [-saturation A B]
                  [-sStart s] [-sStop s] [-sT deg] [-sP deg] [-sR km] [-sF f]
                  kpfile [kpfile ...]

Writes compressed state snapshots every ``dt`` seconds from the output
start time, or, with ``-samples``, density samples at fixed locations.
The ``-s*`` options place a substorm spot; it needs ``-f``.
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional

from config import (
    DT_OUT_DEFAULT, SPOT_REFRESH_S, OUTPUT_FILE_DEFAULT,
    TAU_CLOSED_DEFAULT, TAU_OPEN_DEFAULT, F_MAX_DEFAULT,
    SATURATION_A, SATURATION_B,
    SPOT_COLAT_DEFAULT, SPOT_LON_DEFAULT,
    SPOT_RADIUS_KM_DEFAULT, SPOT_FACTOR_DEFAULT,
    SPOT_START_DT_DEFAULT, SPOT_STOP_DT_DEFAULT,
)
from data.kp import load_kp_files, find
from data.samples import SampleSet
from data.state_file import StateWriter
from data.timestamps import epoch, utc
from model.errors import ConfigurationError, OrderingViolation, SimulationError
from model.filling import SpotFilling, SpotWindow
from model.plasmasphere import PlasmasphereModel
from model.saturation import Saturation
from model.scheduler import (
    EventScheduler, forcing_timer, periodic_timer, disabled_timer, Timer,
)

logger = logging.getLogger("run")


@dataclass
class RunConfig:
    kp_files: List[str] = field(default_factory=list)
    start: Optional[float] = None       # s since epoch; None = first Kp record
    stop: Optional[float] = None        # None = start + duration or last record
    out_start: Optional[float] = None   # None = start
    duration: Optional[float] = None
    dt_out: float = DT_OUT_DEFAULT
    output: Optional[str] = None
    samples: Optional[str] = None

    custom_filling: bool = False
    f_max: float = F_MAX_DEFAULT
    tau_closed: float = TAU_CLOSED_DEFAULT
    tau_open: float = TAU_OPEN_DEFAULT

    custom_saturation: bool = False
    saturation_a: float = SATURATION_A
    saturation_b: float = SATURATION_B

    spot_start_dt: float = SPOT_START_DT_DEFAULT
    spot_stop_dt: float = SPOT_STOP_DT_DEFAULT
    spot_colat: float = SPOT_COLAT_DEFAULT
    spot_lon: float = SPOT_LON_DEFAULT
    spot_radius_km: float = SPOT_RADIUS_KM_DEFAULT
    spot_factor: float = SPOT_FACTOR_DEFAULT

    def validate(self):
        if self.custom_saturation and not self.custom_filling:
            raise ConfigurationError(
                "Must use custom filling model in order to use custom "
                "saturation model.")
        if not self.dt_out > 0:
            raise ConfigurationError(f"output period must be positive, got {self.dt_out}")


# ── Argument parsing ───────────────────────────────────────────────────

def _ymdh(values):
    yr, mo, dy, hr = values
    return epoch(yr, mo, dy, hr)


def build_parser():
    p = argparse.ArgumentParser(
        prog="run-dgcpm-spot",
        description="Runs the plasmasphere model and writes the output to a file.",
    )
    p.add_argument("kp_files", nargs="+", metavar="kpfile",
                   help="Kp input files, in increasing time order")
    p.add_argument("-s", nargs=4, type=int, metavar=("YR", "MO", "DY", "HR"),
                   help="run start (UT); default first Kp record")
    p.add_argument("-e", nargs=4, type=int, metavar=("YR", "MO", "DY", "HR"),
                   help="run end (UT); default start + -T, else last Kp record")
    p.add_argument("-so", nargs=4, type=int, metavar=("YR", "MO", "DY", "HR"),
                   help="start writing output at this time; default run start")
    p.add_argument("-dt", type=float, default=DT_OUT_DEFAULT,
                   help="seconds between outputs (default %(default)s)")
    p.add_argument("-T", type=float, help="run duration in seconds, ignored with -e")
    p.add_argument("-o", help=f"output file (default {OUTPUT_FILE_DEFAULT})")
    p.add_argument("-samples", help="write samples at the (L, longitude) pairs in this file")
    p.add_argument("-f", "-filling", nargs=3, type=float, dest="filling",
                   metavar=("FMAX", "TAUCLOSED", "TAUOPEN"),
                   help="filling parameters: particles/m^2/s, days, days")
    p.add_argument("-saturation", nargs=2, type=float, metavar=("A", "B"),
                   help="saturation curve neq = 10^(A + B*L)")
    p.add_argument("-sStart", type=float, default=SPOT_START_DT_DEFAULT,
                   help="spot on, seconds after run start")
    p.add_argument("-sStop", type=float, default=SPOT_STOP_DT_DEFAULT,
                   help="spot off, seconds after run start")
    p.add_argument("-sT", type=float, default=SPOT_COLAT_DEFAULT,
                   help="spot centre colatitude (deg)")
    p.add_argument("-sP", type=float, default=SPOT_LON_DEFAULT,
                   help="spot centre local time (deg east of midnight)")
    p.add_argument("-sR", type=float, default=SPOT_RADIUS_KM_DEFAULT,
                   help="spot radius at the surface (km)")
    p.add_argument("-sF", type=float, default=SPOT_FACTOR_DEFAULT,
                   help="spot amplification of fMax and saturation")
    p.add_argument("-v", "--verbose", action="store_true", help="log every tick")
    return p


def config_from_args(args) -> RunConfig:
    cfg = RunConfig(
        kp_files=list(args.kp_files),
        start=_ymdh(args.s) if args.s else None,
        stop=_ymdh(args.e) if args.e else None,
        out_start=_ymdh(args.so) if args.so else None,
        duration=args.T,
        dt_out=args.dt,
        output=args.o,
        samples=args.samples,
        spot_start_dt=args.sStart,
        spot_stop_dt=args.sStop,
        spot_colat=args.sT,
        spot_lon=args.sP,
        spot_radius_km=args.sR,
        spot_factor=args.sF,
    )
    if args.filling:
        cfg.custom_filling = True
        cfg.f_max = args.filling[0]
        cfg.tau_closed = args.filling[1] * 86400.0
        cfg.tau_open = args.filling[2] * 86400.0
    if args.saturation:
        cfg.custom_saturation = True
        cfg.saturation_a, cfg.saturation_b = args.saturation
    return cfg


# ── Run ────────────────────────────────────────────────────────────────

def resolve_times(cfg: RunConfig, records):
    """Fill in start, stop and output start from the Kp records."""
    start = cfg.start if cfg.start is not None else records[0].time
    stop = cfg.stop
    if stop is None or stop < start:
        stop = records[-1].time if cfg.duration is None else start + cfg.duration
    if stop < start:
        raise ConfigurationError(f"run end {utc(stop)} is before run start {utc(start)}")
    out_start = cfg.out_start if cfg.out_start is not None else start
    if out_start < start:
        raise OrderingViolation(
            f"output start {utc(out_start)} is before run start {utc(start)}")
    return start, stop, out_start


def simulate(cfg: RunConfig, records):
    """Build the model and event streams, run to completion, return the scheduler."""
    cfg.validate()
    start, stop, out_start = resolve_times(cfg, records)

    spot = None
    if cfg.custom_filling:
        window = SpotWindow.from_offsets(
            start, cfg.spot_start_dt, cfg.spot_stop_dt,
            cfg.spot_colat, cfg.spot_lon, cfg.spot_radius_km, cfg.spot_factor)
        saturation = None
        if cfg.custom_saturation:
            saturation = Saturation(cfg.saturation_a, cfg.saturation_b)
        spot = SpotFilling(window, f_max=cfg.f_max, tau_closed=cfg.tau_closed,
                           tau_open=cfg.tau_open, saturation=saturation)
        spot.validate()

    model = PlasmasphereModel(kp=records[find(records, start)].kp, filling=spot)

    samples = writer = None
    try:
        if cfg.samples:
            samples = SampleSet(cfg.samples, out_start, cfg.dt_out,
                                cfg.output or cfg.samples + ".out")
            sample_timer = Timer("sample", samples.time,
                                 lambda t: samples.write(t, model))
            state_timer = disabled_timer("state")
        else:
            writer = StateWriter(cfg.output or OUTPUT_FILE_DEFAULT)
            writer.write_header(model)
            sample_timer = disabled_timer("sample")
            state_timer = periodic_timer("state", out_start, cfg.dt_out,
                                         lambda t: writer.write(t, model))

        timers = [
            forcing_timer(records, model, start),
            state_timer,
            sample_timer,
            periodic_timer("spot", start, SPOT_REFRESH_S),
        ]
        scheduler = EventScheduler(model, start, stop, timers, spot_stage=spot)

        logger.info("Run %s to %s", utc(start), utc(stop))
        scheduler.run()
    finally:
        if writer is not None:
            writer.close()
        if samples is not None:
            samples.close()
    logger.info("Finished after %d ticks at %s", scheduler.ticks, utc(scheduler.time))
    return scheduler


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    try:
        cfg = config_from_args(args)
        records = load_kp_files(cfg.kp_files)
        simulate(cfg, records)
    except SimulationError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
