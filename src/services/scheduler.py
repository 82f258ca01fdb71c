"""
src/services/scheduler.py
─────────────────────────
Periodic prediction batch.

Every PREDICTION_INTERVAL_MINUTES the scheduler runs one prediction cycle
per registered device on a small thread pool, then applies retention.
A failure on one device is logged with its id and never aborts the batch.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from config.settings import settings
from src.services.monitor import MonitoringService

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


class PredictionScheduler:
    def __init__(
        self,
        monitor: MonitoringService,
        interval_minutes: float | None = None,
        workers: int | None = None,
    ) -> None:
        self._monitor = monitor
        self._interval = (interval_minutes or settings.PREDICTION_INTERVAL_MINUTES) * 60.0
        self._workers = workers or settings.SCHEDULER_WORKERS
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            logger.warning("Prediction scheduler is already running")
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._worker_loop, name="prediction-scheduler", daemon=True)
        self._thread.start()
        logger.info("Prediction scheduler started (every %.0f s)", self._interval)

    def stop(self) -> None:
        if not self.running:
            return
        self._stop_event.set()
        self._thread.join(timeout=5)
        logger.info("Prediction scheduler stopped")

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                self.run_batch()
            except Exception:
                logger.error("Error in prediction scheduler loop", exc_info=True)
            self._stop_event.wait(self._interval)

    def _run_one(self, device_id: str) -> None:
        self._monitor.run_prediction_cycle(device_id)

    def run_batch(self) -> BatchReport:
        report = BatchReport()
        devices = self._monitor.list_devices()
        if devices:
            with ThreadPoolExecutor(max_workers=self._workers, thread_name_prefix="predict") as pool:
                futures = {pool.submit(self._run_one, d): d for d in devices}
                for future in as_completed(futures):
                    device_id = futures[future]
                    try:
                        future.result()
                        report.succeeded.append(device_id)
                    except Exception as exc:
                        logger.error("Prediction cycle failed for device %s: %s", device_id, exc, exc_info=True)
                        report.failed[device_id] = str(exc)

        self._monitor.purge_expired()
        logger.info(
            "Prediction batch complete: %d succeeded, %d failed", len(report.succeeded), len(report.failed)
        )
        return report
