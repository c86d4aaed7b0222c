"""Dash callbacks: pick a snapshot from the state file, draw it.

The state file is read lazily on first use and cached; its path comes from
the ``DGCPM_STATE`` environment variable (default ``output.dat``).  The
state file does not record the spot, so its outline is drawn from
``DGCPM_SPOT`` ("colat lon radius_km") when that is set.
"""

import os
from functools import lru_cache

import numpy as np
import plotly.graph_objects as go
from dash import Input, Output, callback

from config import OUTPUT_FILE_DEFAULT
from data.state_file import read_states
from data.timestamps import utc
from model.errors import ConfigurationError
from model.filling import spot_outline

# ── State loading ──────────────────────────────────────────────────────


def state_path():
    return os.environ.get("DGCPM_STATE", OUTPUT_FILE_DEFAULT)


def spot_geometry():
    """(colat, lon, radius_km) from ``DGCPM_SPOT``, or None."""
    raw = os.environ.get("DGCPM_SPOT")
    if not raw:
        return None
    try:
        colat, lon, radius_km = (float(v) for v in raw.split())
    except ValueError as exc:
        raise ConfigurationError(
            f"DGCPM_SPOT must be 'colat lon radius_km', got {raw!r}") from exc
    return colat, lon, radius_km


@lru_cache(maxsize=4)
def _load(path, mtime):
    return read_states(path)


def load_states():
    """Cached (colat, lon, times, kp, den) for the current state file, or None."""
    path = state_path()
    if not os.path.exists(path):
        return None
    return _load(path, os.path.getmtime(path))


# ── Figure builders ────────────────────────────────────────────────────

_DEN_MIN, _DEN_MAX = 0.0, 4.0   # log10 cm⁻³ colour range


def _cell_widths(v, period=None):
    """Widths of cells centred on the (uniform or not) vector ``v``."""
    d = np.diff(v)
    if period is not None:
        d = np.append(d, v[0] + period - v[-1])
    else:
        d = np.append(d, d[-1])
    return d


def build_polar(colat, lon, den, spot=None):
    """Polar map of log density: pole at the centre, midnight at the bottom.

    ``spot`` is an optional (colat, lon, radius_km) drawn as a ring.
    """
    dcolat = _cell_widths(colat)
    dlon = _cell_widths(lon, period=360.0)

    th, cl = np.meshgrid(lon, colat, indexing="ij")
    width = np.broadcast_to(dlon[:, None], th.shape)
    depth = np.broadcast_to(dcolat[None, :], th.shape)
    logden = np.log10(np.clip(den, 1e-3, None))

    hover = [f"LT {t / 15:.1f} h<br>colat {c:.1f}°<br>n = {10 ** v:.3g} cm⁻³"
             for t, c, v in zip(th.ravel(), cl.ravel(), logden.ravel())]

    fig = go.Figure(go.Barpolar(
        r=depth.ravel(),
        base=(cl - depth / 2).ravel(),
        theta=th.ravel(),
        width=width.ravel(),
        marker=dict(
            color=logden.ravel(), colorscale="Magma",
            cmin=_DEN_MIN, cmax=_DEN_MAX, line_width=0,
            colorbar=dict(title="log₁₀ n (cm⁻³)", thickness=12),
        ),
        text=hover, hoverinfo="text",
    ))
    if spot is not None:
        ring_colat, ring_lon = spot_outline(*spot)
        fig.add_trace(go.Scatterpolar(
            r=ring_colat, theta=ring_lon, mode="lines",
            line=dict(color="#e8a21a", width=2),
            hoverinfo="skip", name="spot",
        ))
    fig.update_layout(
        polar=dict(
            radialaxis=dict(range=[0, float(colat[-1] + dcolat[-1] / 2)],
                            ticksuffix="°", tickfont=dict(size=9)),
            angularaxis=dict(rotation=270, direction="counterclockwise",
                             tickvals=[0, 90, 180, 270],
                             ticktext=["00 LT", "06 LT", "12 LT", "18 LT"]),
        ),
        margin=dict(l=30, r=30, t=20, b=20),
        showlegend=False,
    )
    return fig


def build_kp(times, kp, index):
    hours = (times - times[0]) / 3600.0
    fig = go.Figure(go.Scatter(
        x=hours, y=kp, mode="lines", line=dict(shape="hv", color="#7c3aed"),
        hoverinfo="x+y",
    ))
    fig.add_vline(x=float(hours[index]), line=dict(color="#e84040", width=1))
    fig.update_layout(
        xaxis=dict(title="hours since first snapshot"),
        yaxis=dict(title="Kp", range=[0, 9]),
        margin=dict(l=40, r=20, t=20, b=40),
        showlegend=False,
    )
    return fig


# ── Callback: snapshot slider ──────────────────────────────────────────

@callback(
    Output("polar-figure", "figure"),
    Output("kp-figure", "figure"),
    Output("stats-text", "children"),
    Input("snapshot-slider", "value"),
)
def show_snapshot(index):
    states = load_states()
    if states is None or len(states[2]) == 0:
        return go.Figure(), go.Figure(), f"No snapshots in {state_path()}"
    colat, lon, times, kp, den = states
    index = int(np.clip(index or 0, 0, len(times) - 1))

    stats = (f"{utc(times[index]):%Y-%m-%d %H:%M} UT · Kp {kp[index]:.1f} "
             f"· snapshot {index + 1} of {len(times)}")
    polar = build_polar(colat, lon, den[index], spot=spot_geometry())
    return polar, build_kp(times, kp, index), stats
