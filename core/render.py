# core/render.py
import datetime
import os
from pathlib import Path
from typing import Any, Dict

import pytz
from jinja2 import Environment, FileSystemLoader, select_autoescape

from .logger import get_logger
from .pricing import (
    format_countdown,
    format_percent,
    format_price,
    is_lowest,
    price_spread,
    savings_percent,
)

logger = get_logger(__name__)

# Resolve template directory relative to this file
TEMPLATE_DIR = Path(__file__).resolve().parent / "templates"
env = Environment(
    loader=FileSystemLoader(str(TEMPLATE_DIR)),
    autoescape=select_autoescape(["html"]),
    trim_blocks=True,
    lstrip_blocks=True,
)

DISPLAY_TZ = os.getenv("DISPLAY_TZ", "America/Santiago")
try:
    _display_tz = pytz.timezone(DISPLAY_TZ)
except pytz.UnknownTimeZoneError:
    logger.warning("Unknown DISPLAY_TZ %r; falling back to UTC", DISPLAY_TZ)
    _display_tz = pytz.UTC

DASHBOARD_THEME = os.getenv("DASHBOARD_THEME", "dark").strip().lower()
if DASHBOARD_THEME not in ("light", "dark"):
    DASHBOARD_THEME = "dark"

THEMES = {
    "light": {
        "page_bg": "#f5f5f5",
        "card_bg": "#ffffff",
        "card_border": "#e0e0e0",
        "selected_border": "#7e57c2",
        "text_primary": "#202124",
        "text_secondary": "#555",
        "text_muted": "#999",
        "best_price": "#2e7d32",
        "cooldown": "#ef6c00",
        "error": "#c62828",
        "link_color": "#1a73e8",
    },
    "dark": {
        "page_bg": "#121212",
        "card_bg": "#1E1E1E",
        "card_border": "#333333",
        "selected_border": "#B39DDB",
        "text_primary": "#F1F1F1",
        "text_secondary": "#BBBBBB",
        "text_muted": "#777777",
        "best_price": "#4CAF50",
        "cooldown": "#FFA726",
        "error": "#FF6B6B",
        "link_color": "#8AB4F8",
    },
}


def format_local_time(value: datetime.datetime | None) -> str:
    if value is None:
        return ""
    return value.astimezone(_display_tz).strftime("%H:%M:%S")


def build_dashboard_context(catalog, registry, coordinator, now: datetime.datetime) -> Dict[str, Any]:
    """Everything the templates need, as plain values."""
    selected = catalog.selected

    cards = []
    for it in catalog.items:
        cards.append(
            {
                "id": it.id,
                "name": it.name,
                "platform": it.platform,
                "image": it.image,
                "selected": selected is not None and it.id == selected.id,
                "countdown": format_countdown(registry.remaining_time(it.id, now)),
            }
        )

    detail = None
    if selected is not None:
        countdown = format_countdown(registry.remaining_time(selected.id, now))
        if coordinator.busy:
            button = "Updating..."
        elif countdown:
            button = f"Wait {countdown}"
        else:
            button = "Update prices"

        prices = selected.prices
        analysis = None
        savings = savings_percent(prices)
        if len(prices) >= 2 and savings is not None:
            analysis = {
                "spread_str": format_price(price_spread(prices)),
                "savings_str": format_percent(savings),
            }

        detail = {
            "id": selected.id,
            "name": selected.name,
            "platform": selected.platform,
            "image": selected.image,
            "last_update_str": format_local_time(selected.last_update),
            "button_label": button,
            "can_refresh": not coordinator.busy and countdown is None,
            "prices": [
                {
                    "store": q.store,
                    "price_str": format_price(q.price),
                    "url": q.url,
                    "lowest": is_lowest(q, prices),
                }
                for q in prices
            ],
            "analysis": analysis,
        }

    return {
        "title": "CotizacionesPlay",
        "subtitle": "PS4 and PS5 game prices in Chile",
        "loading": catalog.loading,
        "error": coordinator.last_error_message,
        "cards": cards,
        "detail": detail,
    }


def build_plaintext_dashboard(catalog, registry, coordinator, now: datetime.datetime) -> str:
    template = env.get_template("dashboard.txt")
    ctx = build_dashboard_context(catalog, registry, coordinator, now)
    return template.render(**ctx)


def build_html_dashboard(
    catalog, registry, coordinator, now: datetime.datetime, theme: str = DASHBOARD_THEME
) -> str:
    template = env.get_template("dashboard.html")
    ctx = build_dashboard_context(catalog, registry, coordinator, now)
    ctx["colors"] = THEMES.get(theme, THEMES["dark"])
    return template.render(**ctx)
