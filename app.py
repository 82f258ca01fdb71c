"""
app.py
──────
Genset Runtime Monitor: Application Entry Point.

Startup sequence:
  1. Configure logging and open the SQLite store
  2. Seed the demo fleet on an empty database when SIMULATE_TELEMETRY is set
  3. Start the prediction scheduler
  4. Create the Dash app and register callbacks
  5. Run dev server (or expose `server` for gunicorn in production)
"""
import logging

import dash
import dash_bootstrap_components as dbc

from config.settings import settings
from src.data.simulator import seed_demo
from src.data.store import SqliteStore
from src.layout.main import create_layout
from src.services.monitor import MonitoringService
from src.services.scheduler import PredictionScheduler

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# ── 1–2. Store and demo data ──────────────────────────────────────────────────
store = SqliteStore(settings.DATABASE_URL)
monitor = MonitoringService(store)
if settings.SIMULATE_TELEMETRY and not store.list_devices():
    logger.info("Empty database, seeding demo fleet...")
    seed_demo(monitor)

# ── 3. Scheduler ──────────────────────────────────────────────────────────────
scheduler = PredictionScheduler(monitor)
scheduler.start()

# ── 4. Dash app ───────────────────────────────────────────────────────────────
app = dash.Dash(
    __name__,
    external_stylesheets=[dbc.themes.DARKLY],
    suppress_callback_exceptions=True,
    meta_tags=[{"name": "viewport", "content": "width=device-width, initial-scale=1"}],
    title="Genset Monitor",
)

server = app.server  # gunicorn entry point
app.layout = create_layout()

from src.callbacks import navigation, trends

navigation.register(app, monitor)
trends.register(app, monitor)

# ── 5. Run ────────────────────────────────────────────────────────────────────
if __name__ == "__main__":
    app.run(
        debug=settings.DEBUG,
        host=settings.HOST,
        port=settings.PORT,
        use_reloader=False,
    )
