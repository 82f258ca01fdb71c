"""
src/layout/components/kpi_card.py
──────────────────────────────────
KPI indicator cards and value formatting for runtime figures.
"""
from __future__ import annotations

from dash import html

CARD_BG = "#161b22"
MUTED = "#8b949e"


def format_hours(hours: float | None) -> str:
    if hours is None:
        return "—"
    if hours < 1.0:
        return f"{hours * 60:.0f} min"
    return f"{int(hours)} h {int((hours % 1) * 60):02d} min"


def runtime_color(hours: float | None) -> str:
    if hours is None:
        return MUTED
    if hours < 1.0:
        return "#da3633"
    if hours < 4.0:
        return "#e8a020"
    return "#2ea44f"


def confidence_color(score: float | None) -> str:
    if score is None:
        return MUTED
    if score >= 0.8:
        return "#2ea44f"
    if score >= 0.6:
        return "#58a6ff"
    return "#e8a020"


def kpi_card(
    label: str,
    value: str,
    color: str = "#c9d1d9",
    sub_label: str = "",
    border_color: str = "#30363d",
) -> html.Div:
    """
    Compact KPI metric card.

    Args:
        label: Metric name (shown above value)
        value: Formatted value string
        color: Value text color (reflects status)
        sub_label: Small secondary label below value
        border_color: Card border color (can reflect severity)
    """
    children = [
        html.Div(label, style={"fontSize": ".68rem", "color": MUTED, "textTransform": "uppercase", "letterSpacing": ".06em"}),
        html.Div(value, style={"fontSize": "1.4rem", "fontWeight": "700", "color": color, "lineHeight": "1.2", "marginTop": "2px"}),
    ]
    if sub_label:
        children.append(html.Div(sub_label, style={"fontSize": ".68rem", "color": MUTED, "marginTop": "2px"}))

    return html.Div(
        children,
        style={
            "backgroundColor": CARD_BG,
            "border": f"1px solid {border_color}",
            "borderRadius": "8px",
            "padding": "14px 16px",
            "minWidth": "120px",
        },
    )


def mini_kpi(label: str, value: str, color: str = "#c9d1d9") -> html.Div:
    """Inline KPI for device cards."""
    return html.Div([
        html.Div(label, style={"fontSize": ".62rem", "color": MUTED, "textTransform": "uppercase"}),
        html.Div(value, style={"fontSize": ".85rem", "fontWeight": "700", "color": color}),
    ])
