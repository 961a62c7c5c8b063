"""Tests for the portal key gate and the check-in ledger."""

import pytest

from signin.errors import ForbiddenError, InvalidInputError, NotFoundError
from signin.models import Checkin, GroupMember, Key
from signin.services.checkin_service import USER_NOT_PERMITTED, CheckinService, clean_notes
from signin.services.portal_service import INVALID_KEY_OR_LOCATION, PortalService


@pytest.fixture
def kiosk(make_user, make_group, make_location, make_key):
    """A location with one eligible student and a key for it."""
    student = make_user(display_name="Sam Student")
    group = make_group(members=[student])
    location = make_location(identifier="library", groups=[group], notes_enabled=True)
    key = make_key(locations=[location], key_value="library-kiosk")
    return {"student": student, "group": group, "location": location, "key": key}


class TestPortalService:
    """Test key and location authorization."""

    def test_authorize_matches_identifier_case_insensitively(self, db, kiosk):
        location, key = PortalService(db).authorize("library-kiosk", "  LIBRARY ")
        assert location.id == kiosk["location"].id
        assert key.id == kiosk["key"].id

    def test_authorize_records_key_usage(self, db, kiosk):
        PortalService(db).authorize("library-kiosk", "library")
        db.expire_all()
        assert db.query(Key).filter(Key.id == kiosk["key"].id).one().last_used_at is not None

    def test_key_for_other_location_fails_like_unknown_key(self, db, kiosk, make_location, make_key):
        other = make_location(identifier="gym")
        make_key(locations=[other], key_value="gym-kiosk")
        service = PortalService(db)

        with pytest.raises(NotFoundError) as wrong_location:
            service.authorize("gym-kiosk", "library")
        with pytest.raises(NotFoundError) as unknown_key:
            service.authorize("no-such-key", "library")

        assert wrong_location.value.message == unknown_key.value.message == INVALID_KEY_OR_LOCATION

    def test_key_value_is_case_sensitive(self, db, kiosk):
        with pytest.raises(NotFoundError):
            PortalService(db).authorize("LIBRARY-KIOSK", "library")

    def test_blank_inputs(self, db, kiosk):
        with pytest.raises(NotFoundError):
            PortalService(db).authorize("", "library")
        with pytest.raises(NotFoundError):
            PortalService(db).authorize("library-kiosk", "   ")


class TestCleanNotes:
    """Test the notes rules."""

    def test_dropped_when_location_disallows(self):
        assert clean_notes("late bus", notes_enabled=False) is None

    def test_blank_becomes_none(self):
        assert clean_notes("   ", notes_enabled=True) is None
        assert clean_notes(None, notes_enabled=True) is None

    def test_trimmed(self):
        assert clean_notes("  late bus \n", notes_enabled=True) == "late bus"


class TestRecordCheckin:
    """Test check-in validation and persistence."""

    def test_happy_path(self, db, kiosk):
        checkin = CheckinService(db).record_checkin(
            key_value="library-kiosk",
            identifier="library",
            user_id=kiosk["student"].id,
            direction="in",
            notes="  returning books ",
        )

        assert checkin.id is not None
        assert checkin.location_id == kiosk["location"].id
        assert checkin.key_id == kiosk["key"].id
        assert checkin.direction == "in"
        assert checkin.notes == "returning books"
        db.expire_all()
        assert db.query(Key).filter(Key.id == kiosk["key"].id).one().last_used_at is not None

    def test_notes_discarded_when_disabled(self, db, make_user, make_group, make_location, make_key):
        student = make_user()
        location = make_location(identifier="gym", groups=[make_group(members=[student])])
        make_key(locations=[location], key_value="gym-kiosk")

        checkin = CheckinService(db).record_checkin("gym-kiosk", "gym", student.id, "out", notes="hello")

        assert checkin.notes is None

    def test_invalid_key_is_forbidden(self, db, kiosk):
        with pytest.raises(ForbiddenError) as exc_info:
            CheckinService(db).record_checkin("wrong", "library", kiosk["student"].id, "in")
        assert exc_info.value.message == INVALID_KEY_OR_LOCATION
        assert db.query(Checkin).count() == 0

    def test_invalid_direction(self, db, kiosk):
        for direction in ("IN", "sideways", ""):
            with pytest.raises(InvalidInputError) as exc_info:
                CheckinService(db).record_checkin("library-kiosk", "library", kiosk["student"].id, direction)
            assert "direction" in exc_info.value.field_errors

    def test_key_checked_before_direction(self, db, kiosk):
        """A bad key is reported as such even when the direction is also bad."""
        with pytest.raises(ForbiddenError):
            CheckinService(db).record_checkin("wrong", "library", kiosk["student"].id, "sideways")

    def test_non_member_refused(self, db, kiosk, make_user):
        outsider = make_user()
        with pytest.raises(ForbiddenError) as exc_info:
            CheckinService(db).record_checkin("library-kiosk", "library", outsider.id, "in")
        assert exc_info.value.message == USER_NOT_PERMITTED

    def test_unknown_user_refused(self, db, kiosk):
        with pytest.raises(ForbiddenError):
            CheckinService(db).record_checkin("library-kiosk", "library", "00000000-0000-0000-0000-000000000000", "in")

    def test_membership_revoked_after_roster_load(self, db, kiosk):
        """A stale kiosk roster does not let a removed member check in."""
        student = kiosk["student"]
        db.query(GroupMember).filter(GroupMember.user_id == student.id).delete()
        db.commit()

        with pytest.raises(ForbiddenError) as exc_info:
            CheckinService(db).record_checkin("library-kiosk", "library", student.id, "in")
        assert exc_info.value.message == USER_NOT_PERMITTED
        assert db.query(Checkin).count() == 0

    def test_deleting_key_keeps_checkins(self, db, kiosk):
        checkin = CheckinService(db).record_checkin("library-kiosk", "library", kiosk["student"].id, "in")
        db.delete(kiosk["key"])
        db.commit()
        db.expire_all()

        kept = db.query(Checkin).filter(Checkin.id == checkin.id).one()
        assert kept.key_id is None
