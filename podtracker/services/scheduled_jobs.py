"""
POD Tracker
Scheduled Jobs.

Concrete job implementations that run on the daily trigger.

Jobs:
    - sla_reminder: warns assignees of PODs whose SLA deadline is within the
      reminder window and sends every SUPER_ADMIN a daily summary
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from podtracker.models.pod import Pod
from podtracker.services.business_days import add_business_days, business_day_diff
from podtracker.services.identity import live_users_with_role, resolve_identity
from podtracker.services.notification import NotificationService
from podtracker.services.scheduler_service import register_job

logger = logging.getLogger(__name__)


def _sla_label(deadline: date) -> str:
    return deadline.strftime("%b %d, %Y")


def pods_due_soon(today: date, window_days: int = 3) -> list[Pod]:
    """Active, assigned PODs whose SLA deadline falls in ``[today, today + window]``."""
    horizon = add_business_days(today, window_days)
    return (
        Pod.query_active()
        .filter(
            Pod.is_history.is_(False),
            Pod.sla_calculated_nbd.isnot(None),
            Pod.sla_calculated_nbd >= today,
            Pod.sla_calculated_nbd <= horizon,
            Pod.assigned_engineer != "",
        )
        .order_by(Pod.sla_calculated_nbd.asc(), Pod.pod.asc())
        .all()
    )


def reminder_message(pod: Pod, today: date) -> str:
    days = business_day_diff(today, pod.sla_calculated_nbd)
    return (
        f"⚠️ POD {pod.pod} is due in {days} business days "
        f"(SLA: {_sla_label(pod.sla_calculated_nbd)}). "
        f"Current status: {pod.status} - {pod.sub_status}"
    )


def summary_message(pods: list[Pod], today: date, window_days: int = 3) -> str:
    if not pods:
        return (
            f"📋 Daily SLA Report - No PODs are due within the next "
            f"{window_days} business days. All good! ✅"
        )
    lines = [
        f"• POD {p.pod} ({p.assigned_engineer}) - Due in "
        f"{business_day_diff(today, p.sla_calculated_nbd)} days "
        f"({_sla_label(p.sla_calculated_nbd)}) - Status: {p.status} - {p.sub_status}"
        for p in pods
    ]
    return (
        f"📋 Daily SLA Report - {len(pods)} PODs due within {window_days} business days:\n\n"
        + "\n".join(lines)
    )


# ═══════════════════════════════════════════════════════════════════════════
#  Job: SLA Reminder
# ═══════════════════════════════════════════════════════════════════════════

@register_job("sla_reminder")
def send_sla_reminders(app, today: date | None = None) -> dict[str, Any]:
    """Remind assignees of PODs nearing their SLA deadline and report to super-admins."""
    today = today or date.today()
    window = app.config.get("SLA_REMINDER_WINDOW_DAYS", 3)

    # Read the whole batch first, then fan out notifications
    pods = pods_due_soon(today, window)
    logger.info("Found %d pod(s) due within %d business days", len(pods), window,
                extra={"job_name": "sla_reminder"})

    results = {"pods_due": len(pods), "engineer_reminders": 0,
               "unresolved_assignees": 0, "admin_reports": 0}

    for pod in pods:
        engineer = resolve_identity(pod.assigned_engineer)
        if engineer is None:
            results["unresolved_assignees"] += 1
            logger.debug("No live identity for assignee %r on pod %s",
                         pod.assigned_engineer, pod.pod)
            continue
        NotificationService.create(
            user_id=engineer.id,
            created_for_id=engineer.id,
            message=reminder_message(pod, today),
            pod_id=pod.pod,
            created_by_id=None,
        )
        results["engineer_reminders"] += 1

    report = summary_message(pods, today, window)
    for admin in live_users_with_role("SUPER_ADMIN"):
        NotificationService.create(
            user_id=admin.id,
            created_for_id=admin.id,
            message=report,
            created_by_id=None,
        )
        results["admin_reports"] += 1

    logger.info("SLA reminders sent: %d engineer, %d admin",
                results["engineer_reminders"], results["admin_reports"],
                extra={"job_name": "sla_reminder"})
    return results
