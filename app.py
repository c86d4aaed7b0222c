"""Dash application: state-file viewer layout and server entry point.

    python app.py [output.dat] [--spot COLAT LON KM]
"""

import argparse
import os

import dash
from dash import dcc, html

app = dash.Dash(
    __name__,
    title="Plasmasphere Spot Filling",
    update_title="Loading...",
)
server = app.server  # for gunicorn

# ── Info card helper ──────────────────────────────────────────────────

_CARD = {
    "background": "#fff", "borderRadius": "8px",
    "border": "1px solid #e0e0e0", "padding": "14px 16px",
}


def _card(title, body, color="#1a73e8"):
    style = {**_CARD, "borderLeft": f"4px solid {color}"}
    return html.Div(style=style, children=[
        html.Div(title, style={"fontWeight": "700", "fontSize": "13px",
                                "marginBottom": "6px", "color": "#333"}),
        html.Div(body, style={"fontSize": "12px", "color": "#555",
                               "lineHeight": "1.55"}),
    ])


# ── Layout ────────────────────────────────────────────────────────────

def serve_layout():
    states = callbacks.load_states()
    n_snap = len(states[2]) if states is not None else 0

    return html.Div(
        style={"fontFamily": "system-ui, -apple-system, sans-serif",
               "margin": "0 auto", "maxWidth": "1500px", "padding": "16px"},
        children=[
            html.H2("Plasmaspheric Density",
                    style={"marginBottom": "2px", "letterSpacing": "-0.5px"}),
            html.P("Equatorial density mapped to the northern ionosphere, "
                   "colatitude × local time",
                   style={"color": "#888", "marginTop": 0, "fontSize": "13px",
                          "marginBottom": "14px"}),

            html.Div(
                style={"display": "grid",
                       "gridTemplateColumns": "1fr 1fr 1fr",
                       "gap": "10px", "marginBottom": "14px"},
                children=[
                    _card("Filling",
                          "Closed flux tubes refill toward the saturation "
                          "density 10^(A + B·L); tubes outside the "
                          "Kp-dependent plasmapause drain on a one-day "
                          "time scale.",
                          "#1a73e8"),
                    _card("Substorm Spot",
                          "While the spot window is open, cells within the "
                          "spot radius fill with the peak source rate and "
                          "saturation density both multiplied by the spot "
                          "factor.",
                          "#e8a21a"),
                    _card("Forcing",
                          "Kp sets the plasmapause (Carpenter & Anderson) "
                          "and the sub-corotation drift in local time. The "
                          "red line marks the snapshot shown.",
                          "#7c3aed"),
                ],
            ),

            dcc.Slider(id="snapshot-slider", min=0, max=max(n_snap - 1, 0),
                       step=1, value=0, marks=None,
                       tooltip={"placement": "bottom"}),
            html.Div(id="stats-text",
                     style={"fontSize": "12px", "color": "#666",
                            "minHeight": "20px", "margin": "8px 0"}),

            html.Div(
                style={"display": "flex", "flexWrap": "wrap", "gap": "12px"},
                children=[
                    html.Div(dcc.Graph(id="polar-figure", style={"height": "520px"}),
                             style={"flex": "1.3", "minWidth": "360px"}),
                    html.Div(dcc.Graph(id="kp-figure", style={"height": "520px"}),
                             style={"flex": "1", "minWidth": "300px"}),
                ],
            ),
        ],
    )


# Register callbacks
import callbacks  # noqa: E402

app.layout = serve_layout

if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Browse a state file.")
    parser.add_argument("state", nargs="?", help="state file (default output.dat)")
    parser.add_argument("--spot", nargs=3, type=float,
                        metavar=("COLAT", "LON", "KM"),
                        help="outline the spot; same values as run -sT -sP -sR")
    args = parser.parse_args()
    if args.state:
        os.environ["DGCPM_STATE"] = args.state
    if args.spot:
        os.environ["DGCPM_SPOT"] = " ".join(str(v) for v in args.spot)
    app.run(debug=True, port=8050)
