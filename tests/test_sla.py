"""SLA deadline calculator."""

from datetime import date

from podtracker.services.business_days import add_business_days
from podtracker.services.sla import SLA_BUSINESS_DAYS, compute_deadline, should_recompute

MONDAY = date(2024, 3, 4)


class TestComputeDeadline:

    def test_ffa_uses_22_business_days(self):
        start = date(2024, 1, 1)
        assert compute_deadline("FFA", start) == add_business_days(start, 22)

    def test_greenfield_is_ten_business_days(self):
        assert compute_deadline("Greenfield", MONDAY) == date(2024, 3, 18)

    def test_brownfield_upgrades(self):
        assert compute_deadline("Brownfield Upgrades", MONDAY) == date(2024, 3, 25)

    def test_string_workable_date(self):
        assert compute_deadline("Greenfield", "2024-03-04") == date(2024, 3, 18)
        assert compute_deadline("Greenfield", "03/04/2024") == date(2024, 3, 18)

    def test_unknown_category_passes_supplied_deadline_through(self):
        supplied = date(2030, 1, 1)
        assert compute_deadline("Z", MONDAY, supplied) == supplied
        assert compute_deadline("", MONDAY) is None

    def test_missing_workable_date_passes_through(self):
        supplied = date(2024, 5, 1)
        assert compute_deadline("FFA", None, supplied) == supplied

    def test_table_covers_three_categories(self):
        assert SLA_BUSINESS_DAYS == {"FFA": 22, "Greenfield": 10, "Brownfield Upgrades": 15}


class TestShouldRecompute:

    def test_needs_both_inputs(self):
        assert should_recompute({"pod_type_original": "FFA", "pod_workable_date": MONDAY})
        assert not should_recompute({"pod_type_original": "FFA"})
        assert not should_recompute({"pod_workable_date": MONDAY})

    def test_milestone_only_payload_keeps_override(self):
        assert not should_recompute({"lcm_complete": "2024-03-05"})

    def test_workable_date_flagged_na(self):
        payload = {
            "pod_type_original": "FFA",
            "pod_workable_date": MONDAY,
            "pod_workable_date_is_na": True,
        }
        assert not should_recompute(payload)
