"""Tests for src.data.db — ObjectiveDB and PreferenceDB (SQLite storage)."""

from datetime import date, datetime, timedelta, timezone

import pytest

from src.data.db import ConflictError, NotFoundError
from src.data.models import Frequency, Objective, Visibility

T0 = datetime(2025, 1, 1, 8, 0, tzinfo=timezone.utc)


class TestObjectiveDBCreateAndGet:
    def test_create_returns_fresh_objective(self, objective_db):
        obj = objective_db.create(12345, "Run", Frequency.DAILY)
        assert obj == Objective(owner_id=12345, name="Run", frequency=Frequency.DAILY)

    def test_get_after_create(self, objective_db):
        objective_db.create(12345, "Run", Frequency.WEEKLY)
        fetched = objective_db.get(12345, "Run")
        assert fetched is not None
        assert fetched.frequency is Frequency.WEEKLY
        assert fetched.streak == 0
        assert fetched.last_submitted is None

    def test_get_not_found(self, objective_db):
        assert objective_db.get(12345, "Missing") is None

    def test_duplicate_create_raises_conflict(self, objective_db):
        objective_db.create(12345, "Run", Frequency.DAILY)
        with pytest.raises(ConflictError):
            objective_db.create(12345, "Run", Frequency.MONTHLY)

    def test_same_name_for_other_owner_is_allowed(self, objective_db):
        objective_db.create(111, "Run", Frequency.DAILY)
        objective_db.create(222, "Run", Frequency.DAILY)
        assert objective_db.get(222, "Run") is not None


class TestObjectiveDBListing:
    def test_list_for_owner_filters_and_sorts(self, objective_db):
        objective_db.create(111, "b", Frequency.DAILY)
        objective_db.create(222, "x", Frequency.DAILY)
        objective_db.create(111, "a", Frequency.DAILY)
        assert [o.name for o in objective_db.list_for_owner(111)] == ["a", "b"]

    def test_list_all_returns_every_owner(self, objective_db):
        objective_db.create(111, "a", Frequency.DAILY)
        objective_db.create(222, "b", Frequency.DAILY)
        assert {(o.owner_id, o.name) for o in objective_db.list_all()} == {(111, "a"), (222, "b")}


class TestObjectiveDBUpsert:
    def test_upsert_round_trips_all_fields(self, objective_db):
        obj = Objective(
            owner_id=1, name="Read", frequency=Frequency.MONTHLY,
            last_submitted=T0, streak=4, last_streak_anchor=date(2025, 1, 1),
            last_reminded=T0 + timedelta(days=40),
        )
        objective_db.upsert(obj)
        assert objective_db.get(1, "Read") == obj

    def test_upsert_overwrites_existing(self, objective_db):
        objective_db.create(1, "Read", Frequency.DAILY)
        objective_db.upsert(Objective(owner_id=1, name="Read", frequency=Frequency.DAILY, streak=7))
        assert objective_db.get(1, "Read").streak == 7

    def test_non_utc_instants_are_normalized(self, objective_db):
        plus_two = timezone(timedelta(hours=2))
        local = datetime(2025, 1, 1, 10, 0, tzinfo=plus_two)
        objective_db.upsert(Objective(owner_id=1, name="R", frequency=Frequency.DAILY, last_submitted=local))
        stored = objective_db.get(1, "R").last_submitted
        assert stored == T0
        assert stored.utcoffset() == timedelta(0)

    def test_naive_datetime_rejected(self, objective_db):
        with pytest.raises(ValueError):
            objective_db.upsert(Objective(
                owner_id=1, name="R", frequency=Frequency.DAILY,
                last_submitted=datetime(2025, 1, 1, 8, 0),
            ))


class TestObjectiveDBRecordSubmission:
    def test_swap_succeeds_when_expected_matches(self, objective_db):
        obj = objective_db.create(1, "Run", Frequency.DAILY)
        updated = Objective(
            owner_id=1, name="Run", frequency=Frequency.DAILY,
            last_submitted=T0, streak=1, last_streak_anchor=date(2025, 1, 1),
        )
        assert objective_db.record_submission(updated, obj.last_submitted) is True
        assert objective_db.get(1, "Run") == updated

    def test_swap_fails_when_value_changed(self, objective_db):
        objective_db.upsert(Objective(owner_id=1, name="Run", frequency=Frequency.DAILY, last_submitted=T0, streak=1))
        stale = Objective(
            owner_id=1, name="Run", frequency=Frequency.DAILY,
            last_submitted=T0 + timedelta(minutes=1), streak=1,
        )
        assert objective_db.record_submission(stale, None) is False
        assert objective_db.get(1, "Run").last_submitted == T0

    def test_swap_leaves_last_reminded_alone(self, objective_db):
        reminded = T0 - timedelta(hours=2)
        objective_db.upsert(Objective(
            owner_id=1, name="Run", frequency=Frequency.DAILY,
            last_submitted=T0 - timedelta(days=2), streak=1, last_reminded=reminded,
        ))
        current = objective_db.get(1, "Run")
        new = Objective(
            owner_id=1, name="Run", frequency=Frequency.DAILY,
            last_submitted=T0, streak=1, last_streak_anchor=date(2025, 1, 1),
        )
        assert objective_db.record_submission(new, current.last_submitted) is True
        assert objective_db.get(1, "Run").last_reminded == reminded


class TestObjectiveDBMarkReminded:
    def test_sets_only_last_reminded(self, objective_db):
        objective_db.upsert(Objective(owner_id=1, name="Run", frequency=Frequency.DAILY, last_submitted=T0, streak=3))
        at = T0 + timedelta(days=2)
        assert objective_db.mark_reminded(1, "Run", at) is True
        stored = objective_db.get(1, "Run")
        assert stored.last_reminded == at
        assert stored.last_submitted == T0
        assert stored.streak == 3

    def test_missing_objective_returns_false(self, objective_db):
        assert objective_db.mark_reminded(1, "Gone", T0) is False


class TestObjectiveDBDeleteAndRename:
    def test_delete_is_permanent(self, objective_db):
        objective_db.create(1, "Run", Frequency.DAILY)
        assert objective_db.delete(1, "Run") is True
        assert objective_db.get(1, "Run") is None
        assert objective_db.delete(1, "Run") is False

    def test_rename_keeps_state(self, objective_db):
        objective_db.upsert(Objective(owner_id=1, name="Run", frequency=Frequency.DAILY, last_submitted=T0, streak=5))
        renamed = objective_db.rename(1, "Run", "Jog")
        assert renamed.name == "Jog"
        assert renamed.streak == 5
        assert objective_db.get(1, "Run") is None

    def test_rename_missing_raises_not_found(self, objective_db):
        with pytest.raises(NotFoundError):
            objective_db.rename(1, "Run", "Jog")

    def test_rename_onto_existing_raises_conflict_and_changes_nothing(self, objective_db):
        objective_db.upsert(Objective(owner_id=1, name="Run", frequency=Frequency.DAILY, streak=2))
        objective_db.upsert(Objective(owner_id=1, name="Jog", frequency=Frequency.WEEKLY, streak=9))
        with pytest.raises(ConflictError):
            objective_db.rename(1, "Run", "Jog")
        assert objective_db.get(1, "Run").streak == 2
        assert objective_db.get(1, "Jog").streak == 9
        assert objective_db.get(1, "Jog").frequency is Frequency.WEEKLY

    def test_rename_to_same_name_raises_conflict(self, objective_db):
        objective_db.upsert(Objective(owner_id=1, name="Run", frequency=Frequency.DAILY, streak=3))
        with pytest.raises(ConflictError):
            objective_db.rename(1, "Run", "Run")
        assert objective_db.get(1, "Run").streak == 3

    def test_rename_missing_to_same_name_raises_not_found(self, objective_db):
        with pytest.raises(NotFoundError):
            objective_db.rename(1, "Run", "Run")


class TestPreferenceDB:
    def test_default_is_private_without_row(self, preference_db):
        assert preference_db.get(1).visibility is Visibility.PRIVATE

    def test_set_and_update_visibility(self, preference_db):
        preference_db.set_visibility(1, Visibility.SHARED)
        assert preference_db.get(1).visibility is Visibility.SHARED
        preference_db.set_visibility(1, Visibility.PRIVATE)
        assert preference_db.get(1).visibility is Visibility.PRIVATE
