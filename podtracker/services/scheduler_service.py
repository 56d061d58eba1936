"""
POD Tracker
Scheduler Service.

A small in-process scheduler for the daily SLA reminder sweep.

Architecture:
    - Job functions register themselves with ``@register_job(name)``
    - Every registered job has a ScheduledJob row (config, counters, last run)
    - ``run_job`` executes one job inside the app context and records the run
    - ``start`` launches one daemon thread per process that fires the enabled
      jobs once a day; calling it again while the thread is alive does nothing
"""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Callable

from flask import Flask

from podtracker.models import db
from podtracker.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("sla_reminder")
        def send_sla_reminders(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


def seconds_until(hour: int, minute: int, now: datetime | None = None) -> float:
    """Seconds from ``now`` to the next local ``hour:minute``."""
    now = now or datetime.now()
    target = now.replace(hour=hour, minute=minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class SchedulerService:
    """
    Process-level scheduler.

    Manages job registration, persistence, execution and the daily trigger.
    Jobs are executed within Flask app context.
    """

    _app: Flask | None = None
    _thread: threading.Thread | None = None
    _stop_event: threading.Event | None = None
    _lock = threading.Lock()

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Initialize scheduler with Flask app context."""
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """
        Ensure all registered jobs have a corresponding DB record.
        Creates missing records with the configured daily trigger time.
        """
        if not cls._app:
            return []

        created = []
        with cls._app.app_context():
            for name, fn in _job_registry.items():
                existing = ScheduledJob.query.filter_by(job_name=name).first()
                if not existing:
                    job = ScheduledJob(
                        job_name=name,
                        description=(fn.__doc__ or f"Scheduled job: {name}").strip().splitlines()[0],
                        schedule_config=cls._schedule_config(),
                        status="active",
                        is_enabled=True,
                    )
                    db.session.add(job)
                    created.append(job)
            if created:
                db.session.commit()
                logger.info("Created %d scheduled job records", len(created))
        return created

    @classmethod
    def _schedule_config(cls) -> dict:
        hour = cls._app.config.get("SLA_REMINDER_HOUR", 9)
        minute = cls._app.config.get("SLA_REMINDER_MINUTE", 0)
        return {"hour": hour, "minute": minute,
                "description": f"Daily at {hour:02d}:{minute:02d}"}

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with status, duration_ms, result or error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"status": "error", "error": f"Unknown job: {job_name}"}

        if not cls._app:
            return {"status": "error", "error": "Scheduler not initialized"}

        start = time.monotonic()
        result = None
        error = None
        status = "success"

        try:
            with cls._app.app_context():
                result = fn(cls._app)
                db.session.commit()
        except Exception as exc:
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc,
                             extra={"job_name": job_name})

        duration_ms = int((time.monotonic() - start) * 1000)

        try:
            with cls._app.app_context():
                job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
                if job_record:
                    job_record.record_run(
                        status=status,
                        duration_ms=duration_ms,
                        result=result if isinstance(result, dict) else {"output": str(result)},
                        error=error,
                    )
                    db.session.commit()
        except Exception:
            logger.exception("Failed to update job record for %s", job_name,
                             extra={"job_name": job_name})

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def run_enabled_jobs(cls) -> list[dict]:
        """Run every registered job whose DB record is enabled (or missing)."""
        names = []
        with cls._app.app_context():
            for name in _job_registry:
                record = ScheduledJob.query.filter_by(job_name=name).first()
                if record is None or record.is_enabled:
                    names.append(name)
        return [cls.run_job(name) for name in names]

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs

    @classmethod
    def get_job_status(cls, job_name: str) -> dict | None:
        """Get status of a specific job."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if job_record:
            return job_record.to_dict()
        return None

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Enable or disable a scheduled job."""
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record:
            return None
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        return job_record.to_dict()

    # ── Daily trigger ─────────────────────────────────────────────────────

    @classmethod
    def is_running(cls) -> bool:
        return cls._thread is not None and cls._thread.is_alive()

    @classmethod
    def start(cls) -> bool:
        """Start the daily trigger thread. Returns False if it is already running."""
        if not cls._app:
            raise RuntimeError("SchedulerService.init_app() must be called first")
        with cls._lock:
            if cls.is_running():
                return False
            cls._stop_event = threading.Event()
            cls._thread = threading.Thread(
                target=cls._loop, args=(cls._stop_event,),
                name="podtracker-scheduler", daemon=True,
            )
            cls._thread.start()
        logger.info("Scheduler thread started (daily at %02d:%02d)",
                    cls._app.config.get("SLA_REMINDER_HOUR", 9),
                    cls._app.config.get("SLA_REMINDER_MINUTE", 0))
        return True

    @classmethod
    def stop(cls, timeout: float = 5.0) -> None:
        with cls._lock:
            if cls._stop_event is not None:
                cls._stop_event.set()
            if cls._thread is not None:
                cls._thread.join(timeout)
            cls._thread = None
            cls._stop_event = None

    @classmethod
    def _loop(cls, stop_event: threading.Event) -> None:
        hour = cls._app.config.get("SLA_REMINDER_HOUR", 9)
        minute = cls._app.config.get("SLA_REMINDER_MINUTE", 0)
        while not stop_event.wait(seconds_until(hour, minute)):
            try:
                cls.run_enabled_jobs()
            except Exception:
                logger.exception("Scheduled run failed")
