"""
SLA reminder sweep and SchedulerService tests.
"""

from datetime import date, datetime

import pytest

from podtracker.models import db
from podtracker.models.notification import Notification
from podtracker.models.scheduling import ScheduledJob
from podtracker.services.scheduled_jobs import pods_due_soon, send_sla_reminders
from podtracker.services.scheduler_service import (
    SchedulerService,
    get_registered_jobs,
    seconds_until,
)

MONDAY = date(2024, 3, 4)


@pytest.fixture()
def scheduler(app):
    SchedulerService.init_app(app)
    yield SchedulerService
    SchedulerService.stop()


# ═══════════════════════════════════════════════════════════════════════════
# SLA reminder sweep
# ═══════════════════════════════════════════════════════════════════════════


class TestPodsDueSoon:

    def test_window_and_filters(self, make_pod):
        due = make_pod("D-1", sla_calculated_nbd=date(2024, 3, 6), assigned_engineer="e@example.com")
        make_pod("D-2", sla_calculated_nbd=date(2024, 3, 7), assigned_engineer="e@example.com")
        make_pod("D-3", sla_calculated_nbd=date(2024, 3, 8), assigned_engineer="e@example.com")
        make_pod("D-4", sla_calculated_nbd=date(2024, 3, 6), assigned_engineer="")
        make_pod("D-5", sla_calculated_nbd=date(2024, 3, 6), assigned_engineer="e@example.com",
                 is_history=True)
        make_pod("D-6", sla_calculated_nbd=date(2024, 3, 1), assigned_engineer="e@example.com")
        deleted = make_pod("D-7", sla_calculated_nbd=date(2024, 3, 6), assigned_engineer="e@example.com")
        deleted.soft_delete()
        db.session.flush()

        keys = [p.pod for p in pods_due_soon(MONDAY, 3)]

        assert keys == ["D-1", "D-2"]
        assert due.pod in keys


class TestSendSlaReminders:

    def test_engineer_reminder_and_admin_summary(self, app, make_user, make_pod):
        eng = make_user(email="eng@example.com", name="Eng")
        admin = make_user(email="root@example.com", role="SUPER_ADMIN")
        make_pod("S-1", sla_calculated_nbd=date(2024, 3, 6), assigned_engineer="eng@example.com")

        result = send_sla_reminders(app, today=MONDAY)

        assert result["pods_due"] == 1
        assert result["engineer_reminders"] == 1
        assert result["admin_reports"] == 1

        reminder = Notification.query.filter_by(user_id=eng.id).one()
        assert reminder.message == (
            "⚠️ POD S-1 is due in 2 business days (SLA: Mar 06, 2024). "
            "Current status: Initial - Assignment"
        )
        assert reminder.created_by_id is None
        assert reminder.pod_id == "S-1"

        report = Notification.query.filter_by(user_id=admin.id).one()
        assert report.message.startswith("📋 Daily SLA Report - 1 PODs due within 3 business days:")
        assert "• POD S-1 (eng@example.com) - Due in 2 days (Mar 06, 2024)" in report.message

    def test_all_good_report(self, app, make_user):
        admin = make_user(email="root@example.com", role="SUPER_ADMIN")

        result = send_sla_reminders(app, today=MONDAY)

        assert result["pods_due"] == 0
        report = Notification.query.filter_by(user_id=admin.id).one()
        assert report.message == (
            "📋 Daily SLA Report - No PODs are due within the next 3 business days. All good! ✅"
        )

    def test_unresolved_and_tombstoned_assignees(self, app, make_user, make_pod):
        survivor = make_user(email="s@example.com", name="Sam")
        make_user(name="Sammy", imported=True, merged_into=survivor)
        make_user(email="gone-admin@example.com", role="SUPER_ADMIN", merged_into=survivor)
        make_pod("S-2", sla_calculated_nbd=MONDAY, assigned_engineer="Sammy")
        make_pod("S-3", sla_calculated_nbd=MONDAY, assigned_engineer="stranger@example.com")

        result = send_sla_reminders(app, today=MONDAY)

        assert result["engineer_reminders"] == 1
        assert result["unresolved_assignees"] == 1
        assert result["admin_reports"] == 0
        assert Notification.query.filter_by(user_id=survivor.id).count() == 1


# ═══════════════════════════════════════════════════════════════════════════
# SchedulerService
# ═══════════════════════════════════════════════════════════════════════════


class TestSchedulerService:

    def test_sla_job_is_registered(self):
        assert "sla_reminder" in get_registered_jobs()

    def test_ensure_jobs_registered_is_idempotent(self, scheduler):
        assert len(scheduler.ensure_jobs_registered()) == 1
        assert scheduler.ensure_jobs_registered() == []

        record = ScheduledJob.query.filter_by(job_name="sla_reminder").one()
        assert record.schedule_config["hour"] == 9

    def test_toggle_job(self, scheduler):
        scheduler.ensure_jobs_registered()
        assert scheduler.toggle_job("sla_reminder", False)["status"] == "paused"
        assert scheduler.toggle_job("sla_reminder", True)["is_enabled"] is True
        assert scheduler.toggle_job("nonexistent", True) is None

    def test_run_unknown_job(self, scheduler):
        result = scheduler.run_job("unknown_job_xyz")
        assert result["status"] == "error"

    def test_run_job_records_run(self, scheduler, make_user):
        make_user(email="root@example.com", role="SUPER_ADMIN")
        db.session.commit()
        scheduler.ensure_jobs_registered()

        result = scheduler.run_job("sla_reminder")

        assert result["status"] == "success"
        assert result["result"]["admin_reports"] == 1
        record = ScheduledJob.query.filter_by(job_name="sla_reminder").one()
        assert record.run_count == 1
        assert record.last_run_status == "success"

    def test_start_is_idempotent(self, scheduler):
        assert scheduler.start() is True
        assert scheduler.start() is False
        assert scheduler.is_running()
        scheduler.stop()
        assert not scheduler.is_running()

    def test_seconds_until(self):
        now = datetime(2024, 3, 4, 8, 30)
        assert seconds_until(9, 0, now) == 1800
        assert seconds_until(8, 0, now) == 23.5 * 3600


class TestSchedulerApi:

    @pytest.fixture()
    def admin_headers(self, make_user):
        admin = make_user(email="root@example.com", role="SUPER_ADMIN")
        db.session.commit()
        return {"X-User-Id": admin.id}

    def test_list_and_run(self, client, scheduler, admin_headers):
        body = client.get("/api/v1/scheduler/jobs", headers=admin_headers).get_json()
        assert [j["job_name"] for j in body["jobs"]] == ["sla_reminder"]

        res = client.post("/api/v1/scheduler/jobs/sla_reminder/run", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["status"] == "success"

    def test_run_unknown(self, client, scheduler, admin_headers):
        assert client.post("/api/v1/scheduler/jobs/nope/run", headers=admin_headers).status_code == 404

    def test_toggle(self, client, scheduler, admin_headers):
        res = client.put("/api/v1/scheduler/jobs/sla_reminder/toggle", json={"enabled": False},
                         headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["is_enabled"] is False

    def test_job_status(self, client, scheduler, admin_headers):
        scheduler.ensure_jobs_registered()
        res = client.get("/api/v1/scheduler/jobs/sla_reminder", headers=admin_headers)
        assert res.status_code == 200
        assert res.get_json()["job_name"] == "sla_reminder"
        assert client.get("/api/v1/scheduler/jobs/nope", headers=admin_headers).status_code == 404

    def test_requires_caller(self, client, scheduler):
        assert client.get("/api/v1/scheduler/jobs").status_code == 401
        assert client.post("/api/v1/scheduler/jobs/sla_reminder/run").status_code == 401

    def test_requires_super_admin(self, client, scheduler, make_user):
        regular = make_user(email="reg@example.com")
        db.session.commit()
        headers = {"X-User-Id": regular.id}

        assert client.get("/api/v1/scheduler/jobs", headers=headers).status_code == 403
        assert client.post("/api/v1/scheduler/jobs/sla_reminder/run", headers=headers).status_code == 403
        res = client.put("/api/v1/scheduler/jobs/sla_reminder/toggle", json={"enabled": False},
                         headers=headers)
        assert res.status_code == 403
        assert Notification.query.count() == 0
