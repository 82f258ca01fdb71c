"""
src/layout/components/level_gauge.py
─────────────────────────────────────
Fuel level / state-of-charge gauge using a Plotly indicator chart.
"""
from __future__ import annotations

import plotly.graph_objects as go
from dash import dcc

CARD_BG = "#161b22"


def _level_color(percent: float) -> str:
    if percent >= 50:
        return "#2ea44f"
    if percent >= 25:
        return "#e8a020"
    if percent >= 10:
        return "#f0883e"
    return "#da3633"


def level_gauge(
    percent: float | None,
    title: str,
    alarm_at: float = 10.0,
    height: int = 180,
) -> dcc.Graph:
    """
    Plotly gauge for a 0–100 % level.

    Args:
        percent: Fuel level or SOC; None renders an empty gauge
        title: Label shown above the gauge
        alarm_at: Red threshold marker (e.g. the fuel minimum)
        height: Figure height in px
    """
    value = percent if percent is not None else 0.0
    color = _level_color(value) if percent is not None else "#8b949e"

    fig = go.Figure(go.Indicator(
        mode="gauge+number",
        value=value,
        number={"suffix": "%", "font": {"color": color, "size": 26}, "valueformat": ".1f"},
        title={"text": title, "font": {"color": "#8b949e", "size": 12}},
        gauge={
            "axis": {
                "range": [0, 100],
                "tickwidth": 1,
                "tickcolor": "#30363d",
                "tickfont": {"color": "#8b949e", "size": 9},
            },
            "bar": {"color": color, "thickness": 0.25},
            "bgcolor": "rgba(0,0,0,0)",
            "borderwidth": 0,
            "steps": [
                {"range": [0, 10], "color": "rgba(218,54,51,0.15)"},
                {"range": [10, 25], "color": "rgba(240,136,62,0.12)"},
                {"range": [25, 50], "color": "rgba(232,160,32,0.10)"},
                {"range": [50, 100], "color": "rgba(46,164,79,0.10)"},
            ],
            "threshold": {
                "line": {"color": "#da3633", "width": 2},
                "thickness": 0.75,
                "value": alarm_at,
            },
        },
    ))

    fig.update_layout(
        paper_bgcolor=CARD_BG,
        plot_bgcolor=CARD_BG,
        margin=dict(l=20, r=20, t=40, b=10),
        height=height,
        font=dict(color="#c9d1d9"),
    )

    return dcc.Graph(
        figure=fig,
        config={"displayModeBar": False},
        style={"height": f"{height}px"},
    )
