"""Identity resolution, imported profiles and the engineer list."""

from podtracker.models.identity import User
from podtracker.services.identity import (
    IdentityKeySet,
    create_or_get_imported_profile,
    list_engineers,
    pick_identity,
    resolve_engineer_value,
    resolve_identity,
    resolve_live_id,
)


def _user(uid, *, email=None, name=None, merged_into=None):
    user = User(id=uid, email=email, name=name, is_imported_profile=email is None)
    if merged_into is not None:
        user.merged_into = merged_into
        user.merged_into_user_id = merged_into.id
    return user


class TestIdentityKeySet:

    def test_keys_cover_name_email_and_id(self):
        keys = IdentityKeySet.from_user(_user("u1", email="a@x.com", name="Ann"))
        assert keys.keys == frozenset({"u1", "a@x.com", "Ann"})
        assert keys.text_keys == frozenset({"a@x.com", "Ann"})

    def test_membership_is_case_sensitive(self):
        keys = IdentityKeySet.from_user(_user("u1", name="Ann Lee"))
        assert "Ann Lee" in keys
        assert " Ann Lee " in keys
        assert "ann lee" not in keys
        assert keys.matches_casefold("ANN LEE")
        assert not keys.matches_casefold("u1".upper())


class TestPickIdentity:

    def test_email_beats_name(self):
        by_name = _user("u1", name="a@x.com")
        by_email = _user("u2", email="a@x.com", name="Ann")
        assert pick_identity([by_name, by_email], "a@x.com") is by_email

    def test_registered_wins_case_insensitive_tie(self):
        imported = _user("u1", name="ann lee")
        registered = _user("u2", email="ann@x.com", name="Ann Lee")
        assert pick_identity([imported, registered], "ANN LEE") is registered

    def test_tombstone_is_never_returned(self):
        survivor = _user("s", email="s@x.com", name="Sam")
        tomb = _user("t", name="Sammy", merged_into=survivor)
        assert pick_identity([tomb], "Sammy") is survivor

    def test_tombstone_with_tombstoned_survivor_resolves_to_none(self):
        root = _user("r", email="r@x.com")
        middle = _user("m", email="m@x.com", merged_into=root)
        tomb = _user("t", name="Tee", merged_into=middle)
        assert pick_identity([tomb], "Tee") is None

    def test_blank_value(self):
        assert pick_identity([_user("u1", name="Ann")], "   ") is None


class TestResolveFromStorage:

    def test_resolve_by_email_name_and_id(self, make_user):
        user = make_user(email="eng@example.com", name="Eng Person")
        assert resolve_identity("eng@example.com") is user
        assert resolve_identity("ENG@example.com") is user
        assert resolve_identity("eng person") is user
        assert resolve_identity(user.id) is user
        assert resolve_identity("") is None
        assert resolve_identity(None) is None

    def test_resolve_live_id(self, make_user):
        survivor = make_user(email="s@example.com")
        tomb = make_user(name="Old", imported=True, merged_into=survivor)
        assert resolve_live_id(survivor.id) == survivor.id
        assert resolve_live_id(tomb.id) == survivor.id
        assert resolve_live_id("unknown") is None
        assert resolve_live_id(None) is None


class TestImportedProfiles:

    def test_create_or_get_is_case_insensitive(self, make_user):
        first = create_or_get_imported_profile("Jane Doe")
        again = create_or_get_imported_profile("  jane doe ")
        assert first.id == again.id
        assert first.is_imported_profile is True
        assert User.query.count() == 1

    def test_name_matching_registered_user_becomes_email(self, make_user):
        make_user(email="jane@example.com", name="Jane Doe")
        assert resolve_engineer_value("jane doe") == "jane@example.com"
        assert User.query.filter_by(is_imported_profile=True).count() == 0

    def test_unknown_name_creates_imported_profile(self):
        assert resolve_engineer_value("New Person") == "New Person"
        profile = User.query.filter_by(name="New Person").one()
        assert profile.is_imported_profile is True

    def test_emails_and_blanks_pass_through(self):
        assert resolve_engineer_value("x@example.com") == "x@example.com"
        assert resolve_engineer_value("  ") == ""
        assert User.query.count() == 0


class TestListEngineers:

    def test_deduplicates_by_name_preferring_registered(self, make_user):
        make_user(name="Jane Doe", imported=True)
        registered = make_user(email="jane@example.com", name="jane doe")
        make_user(email="zed@example.com", name="Zed")

        engineers = list_engineers()

        assert [e["name"].lower() for e in engineers] == ["jane doe", "zed"]
        jane = engineers[0]
        assert jane["id"] == registered.id
        assert jane["isRegistered"] is True

    def test_tombstones_are_hidden(self, make_user):
        survivor = make_user(email="s@example.com", name="Sam")
        make_user(name="Sammy", imported=True, merged_into=survivor)
        assert [e["name"] for e in list_engineers()] == ["Sam"]
