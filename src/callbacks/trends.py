"""
src/callbacks/trends.py
────────────────────────
Telemetry trends page callbacks.
"""
from __future__ import annotations

from datetime import timedelta

import plotly.graph_objects as go
from dash import Input, Output

from config.parameters import PARAMETER_READINGS, ThresholdParameter
from src.data.models import Subsystem
from src.data.simulator import to_dataframe
from src.pages.trends import VARIABLE_OPTIONS
from src.services.monitor import MonitoringService

CARD_BG = "#161b22"
GRID_CLR = "#30363d"
PLOTLY_TMPL = "plotly_dark"

_VARIABLE_LABELS = {o["value"]: o["label"] for o in VARIABLE_OPTIONS}

# Snapshot field → logical parameter whose rule bounds it
_FIELD_PARAMETER: dict[str, ThresholdParameter] = {
    f: parameter
    for parameter, sources in PARAMETER_READINGS.items()
    for source in sources
    for f in source.fields
}


def _layout(height: int = 300) -> dict:
    return {
        "template": PLOTLY_TMPL,
        "paper_bgcolor": CARD_BG,
        "plot_bgcolor": CARD_BG,
        "margin": {"l": 10, "r": 10, "t": 10, "b": 10},
        "font": {"color": "#c9d1d9", "size": 11},
        "xaxis": {"gridcolor": GRID_CLR},
        "yaxis": {"gridcolor": GRID_CLR},
        "legend": {"bgcolor": "rgba(0,0,0,0)", "font": {"size": 10}},
        "height": height,
        "showlegend": True,
    }


def register(app, monitor: MonitoringService) -> None:

    @app.callback(
        [Output("trends-device", "options"), Output("trends-device", "value")],
        Input("url", "pathname"),
    )
    def load_devices(pathname: str):
        devices = monitor.list_devices()
        return [{"label": d, "value": d} for d in devices], (devices[0] if devices else None)

    @app.callback(
        [
            Output("trends-main-chart", "figure"),
            Output("trends-prediction-chart", "figure"),
            Output("trends-chart-title", "children"),
        ],
        [
            Input("trends-device", "value"),
            Input("trends-variable", "value"),
            Input("trends-window", "value"),
            Input("trends-options", "value"),
            Input("interval-live", "n_intervals"),
        ],
    )
    def update_trends(device_id: str, variable: str, window_hours: int, options: list, n_intervals: int):
        options = options or []
        var_label = _VARIABLE_LABELS.get(variable, variable)
        empty = go.Figure()
        empty.update_layout(**_layout())
        if not device_id:
            return empty, empty, var_label

        latest = monitor.latest_snapshot(device_id, lookback=timedelta(hours=int(window_hours)))
        end = latest.timestamp if latest else None
        if end is None:
            return empty, empty, f"{device_id} — {var_label}"
        start = end - timedelta(hours=int(window_hours))
        df = to_dataframe(monitor.store.get_snapshots(device_id, start, end))
        chart_title = f"{device_id} — {var_label}"

        if df.empty or variable not in df.columns or df[variable].isna().all():
            return empty, empty, chart_title

        # ── Main trend chart ──────────────────────────────────────────────────
        fig = go.Figure()
        fig.add_scatter(
            x=df["timestamp"],
            y=df[variable],
            mode="lines",
            line={"color": "#58a6ff", "width": 1.3},
            name=var_label,
            hovertemplate="%{x|%d/%m %H:%M}<br>%{y:.3f}<extra></extra>",
        )

        if "rolling" in options:
            fig.add_scatter(
                x=df["timestamp"],
                y=df[variable].rolling(12, min_periods=2).mean(),
                mode="lines",
                line={"color": "#c9d1d9", "width": 1, "dash": "dash"},
                name="1 h mean",
                opacity=0.7,
            )

        parameter = _FIELD_PARAMETER.get(variable)
        if "thresholds" in options and parameter is not None:
            for rule in monitor.get_threshold_rules(device_id):
                if rule.parameter != parameter or rule.is_misconfigured:
                    continue
                fig.add_hline(y=rule.min_value, line_dash="dot", line_color="#e8a020", line_width=1,
                              annotation_text="Min", annotation_font_color="#e8a020", annotation_font_size=9)
                fig.add_hline(y=rule.max_value, line_dash="solid", line_color="#da3633", line_width=1,
                              annotation_text="Max", annotation_font_color="#da3633", annotation_font_size=9)

        fig.update_layout(**_layout(300))

        # ── Prediction audit trail ────────────────────────────────────────────
        subsystem = Subsystem.BATTERY if variable == "battery_volts" else Subsystem.GENERATOR
        predictions = monitor.store.find_predictions(device_id, subsystem, start, end)
        p_fig = go.Figure()
        if predictions:
            predictions = list(reversed(predictions))
            x = [p.predicted_at for p in predictions]
            p_fig.add_scatter(x=x, y=[p.raw_runtime_hours for p in predictions], mode="lines+markers",
                              line={"color": "#8b949e", "width": 1, "dash": "dot"}, name="Raw runtime (h)")
            p_fig.add_scatter(x=x, y=[p.predicted_runtime_hours for p in predictions], mode="lines+markers",
                              line={"color": "#58a6ff", "width": 1.3}, name="Corrected runtime (h)")
            reconciled = [p for p in predictions if p.actual_runtime_hours is not None]
            if reconciled:
                p_fig.add_scatter(x=[p.predicted_at for p in reconciled],
                                  y=[p.actual_runtime_hours for p in reconciled],
                                  mode="markers", marker={"color": "#2ea44f", "size": 8, "symbol": "diamond"},
                                  name="Actual runtime (h)")
        p_fig.update_layout(**_layout(220))

        return fig, p_fig, chart_title
