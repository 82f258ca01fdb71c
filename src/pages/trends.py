"""
src/pages/trends.py
────────────────────
Telemetry history with threshold overlays, plus predicted vs actual runtime.
"""
import dash_bootstrap_components as dbc
from dash import dcc, html

MUTED = "#8b949e"

VARIABLE_OPTIONS = [
    {"label": "Fuel Level (%)", "value": "fuel_level"},
    {"label": "Battery Voltage (V)", "value": "battery_volts"},
    {"label": "Load P (kW)", "value": "load_p"},
    {"label": "RPM", "value": "rpm"},
    {"label": "Generator Frequency (Hz)", "value": "generator_frequency"},
    {"label": "Oil Pressure (bar)", "value": "oil_pressure"},
    {"label": "Oil Temperature (°C)", "value": "oil_temperature"},
]

_WINDOW_OPTIONS = [
    {"label": "6 h", "value": 6},
    {"label": "12 h", "value": 12},
    {"label": "24 h", "value": 24},
    {"label": "7 days", "value": 7 * 24},
]

_LABEL_STYLE = {"fontSize": ".72rem", "color": MUTED, "textTransform": "uppercase"}


def layout() -> html.Div:
    return html.Div(
        [
            html.Div(
                [
                    html.H2("Telemetry Trends", className="page-title"),
                    html.P("Readings against configured thresholds", className="page-subtitle"),
                ],
                className="page-header",
            ),

            # ── Controls ───────────────────────────────────────────────────────
            dbc.Row(
                [
                    dbc.Col(
                        [
                            html.Label("Device", style=_LABEL_STYLE),
                            dcc.Dropdown(id="trends-device", clearable=False, className="dark-dropdown"),
                        ],
                        md=3,
                    ),
                    dbc.Col(
                        [
                            html.Label("Variable", style=_LABEL_STYLE),
                            dcc.Dropdown(
                                id="trends-variable",
                                options=VARIABLE_OPTIONS,
                                value="fuel_level",
                                clearable=False,
                                className="dark-dropdown",
                            ),
                        ],
                        md=3,
                    ),
                    dbc.Col(
                        [
                            html.Label("Window", style=_LABEL_STYLE),
                            dcc.Dropdown(
                                id="trends-window",
                                options=_WINDOW_OPTIONS,
                                value=24,
                                clearable=False,
                                className="dark-dropdown",
                            ),
                        ],
                        md=2,
                    ),
                    dbc.Col(
                        [
                            html.Label("Options", style=_LABEL_STYLE),
                            dbc.Checklist(
                                id="trends-options",
                                options=[
                                    {"label": " Thresholds", "value": "thresholds"},
                                    {"label": " Rolling mean", "value": "rolling"},
                                ],
                                value=["thresholds"],
                                inline=True,
                                style={"fontSize": ".82rem", "color": "#c9d1d9", "paddingTop": "8px"},
                                inputStyle={"marginRight": "4px"},
                            ),
                        ],
                        md=4,
                    ),
                ],
                className="g-3 mb-3",
            ),

            dbc.Row(
                [
                    dbc.Col(
                        html.Div(
                            [
                                html.Div(id="trends-chart-title", className="chart-title"),
                                dcc.Graph(id="trends-main-chart", config={"displayModeBar": True}),
                            ],
                            className="chart-card",
                        ),
                        md=12,
                    ),
                ],
                className="g-3 mb-3",
            ),

            # ── Prediction audit trail ─────────────────────────────────────────
            dbc.Row(
                [
                    dbc.Col(
                        html.Div(
                            [
                                html.Div("Predicted vs actual runtime", className="chart-title"),
                                dcc.Graph(id="trends-prediction-chart", config={"displayModeBar": False}),
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
