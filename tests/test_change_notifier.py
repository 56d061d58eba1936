"""
Change notifier tests:
  - rule selection (pure)
  - assignment and milestone recipients
  - tombstone exclusion and failure isolation
"""

from datetime import datetime, timezone
from unittest.mock import patch

from podtracker.models.notification import Notification
from podtracker.services.change_notifier import changed_fields, dispatch, format_day

MARCH_4 = datetime(2024, 3, 4, 15, 0, tzinfo=timezone.utc)


def _image(**fields):
    base = {"id": "pod-uuid", "pod": "P-100", "assigned_engineer": "", "lcm_complete": None}
    base.update(fields)
    return base


class TestChangedFields:

    def test_identical_images_fire_nothing(self):
        img = _image(assigned_engineer="e@example.com", lcm_complete=MARCH_4)
        assert changed_fields(img, dict(img)) == []

    def test_whitespace_only_assignment_change_is_ignored(self):
        assert changed_fields(_image(assigned_engineer="e@x.com"),
                              _image(assigned_engineer="  e@x.com ")) == []

    def test_same_calendar_day_is_not_a_change(self):
        later = MARCH_4.replace(hour=20)
        assert changed_fields(_image(lcm_complete=MARCH_4), _image(lcm_complete=later)) == []

    def test_cleared_milestone_does_not_fire(self):
        assert changed_fields(_image(lcm_complete=MARCH_4), _image(lcm_complete=None)) == []

    def test_each_rule_fires_once(self):
        fired = changed_fields(
            {},
            _image(assigned_engineer="e@x.com", lcm_complete=MARCH_4, preload_complete=MARCH_4),
        )
        assert [r.field for r in fired] == ["assigned_engineer", "lcm_complete", "preload_complete"]

    def test_format_day(self):
        assert format_day(MARCH_4) == "Mon Mar 04 2024"


class TestDispatch:

    def test_noop_produces_no_notifications(self, make_user):
        actor = make_user(email="a@example.com")
        img = _image(assigned_engineer="a@example.com")
        assert dispatch(img, dict(img), actor.id) == []
        assert Notification.query.count() == 0

    def test_assignment_notifies_the_engineer_even_when_actor(self, make_user):
        eng = make_user(email="eng@example.com", name="Eng One")

        created = dispatch(_image(), _image(assigned_engineer="eng@example.com"), eng.id)

        assert len(created) == 1
        notif = created[0]
        assert notif.user_id == eng.id
        assert notif.created_for_id == eng.id
        assert notif.message == "Pod P-100 has been Assigned to you"
        assert notif.pod_id == "P-100"

    def test_assignment_to_imported_name(self, make_user):
        eng = make_user(name="Jane Doe", imported=True)
        created = dispatch(_image(), _image(assigned_engineer="jane doe"), None)
        assert [n.user_id for n in created] == [eng.id]
        assert created[0].created_by_id is None

    def test_assignment_to_unknown_value_is_silent(self, make_user):
        assert dispatch(_image(), _image(assigned_engineer="nobody@example.com"), None) == []

    def test_assignment_to_tombstone_goes_to_survivor(self, make_user):
        survivor = make_user(email="s@example.com", name="Sam")
        make_user(name="Sammy", imported=True, merged_into=survivor)

        created = dispatch(_image(), _image(assigned_engineer="Sammy"), None)
        assert [n.user_id for n in created] == [survivor.id]

    def test_milestone_notifies_priority_users_except_actor(self, make_user):
        p1 = make_user(email="p1@example.com", role="PRIORITY")
        p2 = make_user(email="p2@example.com", role="PRIORITY")
        make_user(email="r@example.com", role="REGULAR")

        created = dispatch(_image(), _image(lcm_complete=MARCH_4), p1.id)

        assert [n.user_id for n in created] == [p2.id]
        assert created[0].message == "POD P-100 has completed LCM processes on Mon Mar 04 2024"
        assert created[0].created_by_id == p1.id

    def test_milestone_skips_tombstoned_priority_users(self, make_user):
        live = make_user(email="live@example.com", role="PRIORITY")
        make_user(email="gone@example.com", role="PRIORITY", merged_into=live)

        created = dispatch(_image(), _image(vm_deletes_complete=MARCH_4), None)
        assert [n.user_id for n in created] == [live.id]
        assert "VM Deletes have been completed for the pod P-100" in created[0].message

    def test_create_counts_populated_fields_as_changed(self, make_user):
        eng = make_user(email="eng@example.com")
        pri = make_user(email="pri@example.com", role="PRIORITY")

        created = dispatch(None, _image(assigned_engineer="eng@example.com",
                                        preload_ticket_submitted=MARCH_4), None)

        assert sorted(n.user_id for n in created) == sorted([eng.id, pri.id])

    def test_creation_failure_is_swallowed(self, make_user):
        make_user(email="pri@example.com", role="PRIORITY")
        eng = make_user(email="eng@example.com")

        with patch("podtracker.services.change_notifier.NotificationService.create",
                   side_effect=RuntimeError("write failed")):
            created = dispatch(_image(), _image(assigned_engineer=eng.email, lcm_complete=MARCH_4), None)

        assert created == []
        assert Notification.query.count() == 0
