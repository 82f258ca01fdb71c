"""
src/pages/overview.py
──────────────────────
Fleet overview page: runtime predictions, learned correction and live alarms.

Static structure; dynamic data injected via callbacks.
"""

import dash_bootstrap_components as dbc
from dash import html


def layout() -> html.Div:
    return html.Div(
        [
            html.Div(
                [
                    html.H2("Fleet Overview", className="page-title"),
                    html.P(
                        "Predicted generator and battery runtime · self-correcting from observed depletions",
                        className="page-subtitle",
                    ),
                ],
                className="page-header",
            ),
            # ── Fleet KPI banner (dynamic) ────────────────────────────────────
            html.Div(id="overview-kpi-banner", className="mb-4"),
            # ── One card per device (dynamic) ─────────────────────────────────
            html.Div(id="overview-device-cards", className="mb-3"),
            # ── Live alarms ───────────────────────────────────────────────────
            dbc.Row(
                [
                    dbc.Col(
                        html.Div(
                            [
                                html.Div("Live Alarms", className="chart-title"),
                                html.Div(id="overview-alarms-table"),
                            ],
                            className="chart-card",
                        ),
                        md=12,
                    ),
                ],
                className="g-3",
            ),
        ],
        style={"padding": "1.5rem"},
    )
