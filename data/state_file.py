"""Compressed state output.

Layout (gzip stream, little-endian):

    header : int32 n_lon, int32 n_colat, float32 colat[n_colat], float32 lon[n_lon]
    record : int32 year, month, day, hour, minute, second,
             float32 kp, float32 den[n_lon, n_colat]

Every record has the same size, so a reader can seek by record index.
"""

import gzip
import logging

import numpy as np

from data.timestamps import epoch, fields

logger = logging.getLogger(__name__)


class StateWriter:
    def __init__(self, path):
        self.path = path
        self._fp = gzip.open(path, "wb", compresslevel=9)
        self.n_records = 0

    def write_header(self, model):
        self._fp.write(model.header_bytes())

    def write(self, t, model):
        logger.info("Writing state at t=%.0f to %s", t, self.path)
        self._fp.write(np.array(fields(t), dtype="<i4").tobytes())
        self._fp.write(model.state_bytes())
        self.n_records += 1

    def close(self):
        self._fp.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def read_states(path):
    """Read a whole state file.

    Returns
    -------
    colat : ndarray (n_colat,)
    lon : ndarray (n_lon,)
    times : ndarray (n_records,) — s since epoch
    kp : ndarray (n_records,)
    den : ndarray (n_records, n_lon, n_colat)
    """
    with gzip.open(path, "rb") as f:
        buf = f.read()

    n_lon, n_colat = np.frombuffer(buf, dtype="<i4", count=2)
    n_lon, n_colat = int(n_lon), int(n_colat)
    off = 8
    colat = np.frombuffer(buf, dtype="<f4", count=n_colat, offset=off).astype(np.float64)
    off += 4 * n_colat
    lon = np.frombuffer(buf, dtype="<f4", count=n_lon, offset=off).astype(np.float64)
    off += 4 * n_lon

    rec_size = 6 * 4 + 4 + 4 * n_lon * n_colat
    n_rec = (len(buf) - off) // rec_size
    times = np.empty(n_rec)
    kp = np.empty(n_rec)
    den = np.empty((n_rec, n_lon, n_colat))
    for i in range(n_rec):
        base = off + i * rec_size
        ymdhms = np.frombuffer(buf, dtype="<i4", count=6, offset=base)
        times[i] = epoch(*(int(v) for v in ymdhms))
        kp[i] = np.frombuffer(buf, dtype="<f4", count=1, offset=base + 24)[0]
        den[i] = np.frombuffer(buf, dtype="<f4", count=n_lon * n_colat,
                               offset=base + 28).reshape(n_lon, n_colat)
    return colat, lon, times, kp, den
