"""Geomagnetic Kp index input.

Kp files hold one 3-hour record per line:

    YYYY MM DD HH kp

Blank lines and ``#`` comments are ignored.  Several files are concatenated
in the order given and must together be in non-decreasing time order.

Public API
----------
KpRecord(time, kp)
load_kp_files(paths) -> list[KpRecord]
validate_order(records)
find(records, t) -> int
"""

import logging
from typing import NamedTuple

import numpy as np

from data.timestamps import epoch
from model.errors import ConfigurationError, OrderingViolation

logger = logging.getLogger(__name__)


class KpRecord(NamedTuple):
    time: float     # s since epoch, UTC
    kp: float


def _parse_line(line, path, lineno):
    parts = line.split()
    if len(parts) != 5:
        raise ConfigurationError(
            f"{path}:{lineno}: expected 'YYYY MM DD HH kp', got {line!r}")
    try:
        yr, mo, dy, hr = (int(p) for p in parts[:4])
        kp = float(parts[4])
        t = epoch(yr, mo, dy, hr)
    except ValueError as exc:
        raise ConfigurationError(f"{path}:{lineno}: {exc}") from exc
    if not 0.0 <= kp <= 9.0:
        raise ConfigurationError(f"{path}:{lineno}: Kp {kp} outside [0, 9]")
    return KpRecord(t, kp)


def load_kp_file(path):
    records = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, raw in enumerate(f, start=1):
            line = raw.split("#", 1)[0].strip()
            if line:
                records.append(_parse_line(line, path, lineno))
    return records


def load_kp_files(paths):
    """Load and concatenate Kp files, rejecting empty or unordered input."""
    if not paths:
        raise ConfigurationError("No input Kp files specified.")
    records = []
    for path in paths:
        recs = load_kp_file(path)
        logger.info("Loaded %d Kp records from %s", len(recs), path)
        records.extend(recs)
    if not records:
        raise ConfigurationError("Kp input files contain no records.")
    validate_order(records)
    return records


def validate_order(records):
    times = np.array([rec.time for rec in records], dtype=np.float64)
    bad = np.where(np.diff(times) < 0)[0]
    if len(bad) > 0:
        i = int(bad[0])
        raise OrderingViolation(
            f"Kp record {i + 1} (t={times[i + 1]:.0f}) precedes "
            f"record {i} (t={times[i]:.0f}); specify files in increasing time order")


def find(records, t) -> int:
    """Index of the record in force at ``t`` (the first one if ``t`` precedes all)."""
    times = np.array([rec.time for rec in records], dtype=np.float64)
    return max(int(np.searchsorted(times, t, side="right")) - 1, 0)
