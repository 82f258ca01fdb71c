"""
src/callbacks/navigation.py: Routing and overview page callbacks.
"""
from __future__ import annotations

import logging

import dash_bootstrap_components as dbc
from dash import Input, Output, State, html

from config.alarms import MAX_ALARMS_DISPLAY, SEVERITY_COLORS, SEVERITY_LABELS, SEVERITY_ORDER
from config.settings import settings
from src.data.models import Alarm, Subsystem, TelemetrySnapshot
from src.data.simulator import DEMO_FLEET, generate_realtime_snapshot
from src.layout.components.kpi_card import (
    confidence_color,
    format_hours,
    kpi_card,
    mini_kpi,
    runtime_color,
)
from src.layout.components.level_gauge import level_gauge
from src.services.monitor import MonitoringService

logger = logging.getLogger(__name__)

CARD_BG = "#161b22"
BORDER = "#30363d"
MUTED = "#8b949e"


def live_snapshot(
    device_id: str, latest: TelemetrySnapshot | None, n_intervals: int | None
) -> TelemetrySnapshot | None:
    """Next simulated frame for a demo device, only with SIMULATE_TELEMETRY on."""
    if not settings.SIMULATE_TELEMETRY or not n_intervals or latest is None:
        return None
    if device_id not in DEMO_FLEET:
        return None
    return generate_realtime_snapshot(latest)


def _device_card(monitor: MonitoringService, device_id: str, alarm_count: int) -> dbc.Col:
    spec = monitor.store.get_device_spec(device_id)
    generator = monitor.get_latest_prediction(device_id, Subsystem.GENERATOR)
    battery = monitor.get_latest_prediction(device_id, Subsystem.BATTERY)
    metrics = monitor.get_accuracy_metrics(device_id)
    fuel = monitor.fuel.current_level(device_id)
    soc = monitor.battery.current_soc(device_id)

    gen_hours = generator.predicted_runtime_hours if generator else None
    bat_hours = battery.predicted_runtime_hours if battery else None
    title = spec.name if spec and spec.name else device_id

    return dbc.Col(
        html.Div(
            [
                html.Div(
                    [
                        html.Span(title, style={"fontWeight": "700", "color": "#58a6ff", "fontSize": ".95rem"}),
                        html.Span(device_id, style={"fontSize": ".68rem", "color": MUTED, "marginLeft": "8px"}),
                    ],
                    style={"marginBottom": "6px"},
                ),
                dbc.Row(
                    [
                        dbc.Col(level_gauge(fuel, "Fuel", alarm_at=10.0, height=160), md=6),
                        dbc.Col(level_gauge(soc, "Battery SOC", alarm_at=0.0, height=160), md=6),
                    ],
                    className="g-1",
                ),
                html.Div(
                    [
                        mini_kpi("Generator runtime", format_hours(gen_hours), runtime_color(gen_hours)),
                        mini_kpi(
                            "Confidence",
                            f"{generator.confidence_score:.0%}" if generator else "—",
                            confidence_color(generator.confidence_score if generator else None),
                        ),
                        mini_kpi("Battery runtime", format_hours(bat_hours), runtime_color(bat_hours)),
                        mini_kpi(
                            "Confidence",
                            f"{battery.confidence_score:.0%}" if battery else "—",
                            confidence_color(battery.confidence_score if battery else None),
                        ),
                        mini_kpi("Gen. correction", f"×{metrics.generator.correction_factor:.3f}"),
                        mini_kpi("Batt. correction", f"×{metrics.battery.correction_factor:.3f}"),
                        mini_kpi("Depletions learned", str(metrics.generator.actual_event_count + metrics.battery.actual_event_count)),
                        mini_kpi(
                            "Active alarms",
                            str(alarm_count),
                            "#da3633" if alarm_count > 5 else "#e8a020" if alarm_count else "#2ea44f",
                        ),
                    ],
                    style={"display": "grid", "gridTemplateColumns": "1fr 1fr", "gap": "8px"},
                ),
            ],
            style={
                "backgroundColor": CARD_BG,
                "border": f"1px solid {'#e8a020' if alarm_count else BORDER}",
                "borderRadius": "8px",
                "padding": "14px",
            },
        ),
        md=6,
    )


def _alarms_table(alarms: list[Alarm]) -> html.Div | html.Table:
    if not alarms:
        return html.Div("No active alarms.", style={"color": MUTED, "padding": "12px"})
    rows = [
        html.Tr([
            html.Td(a.timestamp.strftime("%Y-%m-%d %H:%M"), style={"fontSize": ".72rem", "color": MUTED}),
            html.Td(html.Span(a.device_id, style={"color": "#58a6ff", "fontSize": ".78rem"})),
            html.Td(html.Span(SEVERITY_LABELS[a.severity],
                              style={"color": SEVERITY_COLORS[a.severity], "fontSize": ".72rem", "fontWeight": "700"})),
            html.Td(f"{a.value:.2f}", style={"fontSize": ".72rem"}),
            html.Td(a.message, style={"fontSize": ".70rem", "color": MUTED}),
        ])
        for a in alarms
    ]
    return html.Table(
        [html.Thead(html.Tr([html.Th(h) for h in ["Time", "Device", "Severity", "Value", "Message"]],
                            style={"color": MUTED, "fontSize": ".65rem", "textTransform": "uppercase"})),
         html.Tbody(rows)],
        style={"width": "100%", "borderCollapse": "collapse", "fontSize": ".8rem"},
    )


def register(app, monitor: MonitoringService) -> None:
    """Register navigation + overview page callbacks."""

    from src.pages import overview, trends

    @app.callback(
        Output("page-content", "children"),
        Input("url", "pathname"),
    )
    def display_page(pathname: str):
        routes = {
            "/": overview.layout,
            "/trends": trends.layout,
        }
        return routes.get(pathname, overview.layout)()

    @app.callback(
        Output("navbar-collapse", "is_open"),
        Input("navbar-toggler", "n_clicks"),
        State("navbar-collapse", "is_open"),
        prevent_initial_call=True,
    )
    def toggle_navbar(n_clicks: int, is_open: bool) -> bool:
        return not is_open

    @app.callback(
        [
            Output("overview-kpi-banner", "children"),
            Output("overview-device-cards", "children"),
            Output("overview-alarms-table", "children"),
        ],
        Input("interval-live", "n_intervals"),
    )
    def update_overview(n_intervals: int):
        devices = monitor.list_devices()
        alarms: list[Alarm] = []
        alarm_counts: dict[str, int] = {}

        for device_id in devices:
            latest = monitor.latest_snapshot(device_id)
            simulated = live_snapshot(device_id, latest, n_intervals)
            if simulated is not None:
                latest = simulated
                device_alarms = monitor.ingest(latest).alarms
            elif latest is not None:
                device_alarms = monitor.evaluate(device_id, latest)
            else:
                device_alarms = []
            alarm_counts[device_id] = len(device_alarms)
            alarms.extend(device_alarms)

        alarms.sort(key=lambda a: (SEVERITY_ORDER[a.severity], a.timestamp), reverse=True)
        alarms = alarms[:MAX_ALARMS_DISPLAY]

        shortest = [
            p.predicted_runtime_hours
            for d in devices
            for p in (monitor.get_latest_prediction(d, s) for s in Subsystem)
            if p is not None
        ]
        min_runtime = min(shortest) if shortest else None
        critical = sum(1 for a in alarms if SEVERITY_ORDER[a.severity] == max(SEVERITY_ORDER.values()))

        kpi_banner = dbc.Row(
            [
                dbc.Col(kpi_card("Devices Monitored", str(len(devices)), "#58a6ff"), xs=6, md=3),
                dbc.Col(kpi_card("Shortest Runtime", format_hours(min_runtime), runtime_color(min_runtime)), xs=6, md=3),
                dbc.Col(kpi_card("Active Alarms", str(len(alarms)), "#e8a020" if alarms else "#2ea44f"), xs=6, md=3),
                dbc.Col(kpi_card("Critical Alarms", str(critical), "#da3633" if critical else "#2ea44f"), xs=6, md=3),
            ],
            className="g-3",
        )

        cards = dbc.Row([_device_card(monitor, d, alarm_counts[d]) for d in devices], className="g-3")
        return kpi_banner, cards, _alarms_table(alarms)
