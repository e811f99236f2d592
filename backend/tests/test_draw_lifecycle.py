"""
Draw Lifecycle Tests

Tests verify:
1. Only listed status transitions are allowed
2. New grants land in the current draw, or the next queued one after the freeze
3. The time-driven sweep completes, freezes and activates draws
4. Mini draws refuse entries once closed or full
"""

from datetime import timedelta

import pytest
from bson import ObjectId

from services.draw_lifecycle import (
    MINI_DRAW_TRANSITIONS,
    can_transition,
    close_mini_draw_at_capacity,
    get_target_major_draw,
    get_target_mini_draw,
    transition_draw_status,
    transition_major_draws,
)
from services.errors import DrawUnavailableError, InvalidTransitionError, NotFoundError


class TestTransitions:
    def test_major_status_machine(self):
        assert can_transition("queued", "active")
        assert can_transition("active", "frozen")
        assert can_transition("frozen", "completed")
        assert can_transition("active", "cancelled")
        assert not can_transition("queued", "completed")
        assert not can_transition("completed", "active")
        assert not can_transition("cancelled", "queued")

    def test_mini_status_machine(self):
        assert can_transition("active", "completed", MINI_DRAW_TRANSITIONS)
        assert not can_transition("completed", "active", MINI_DRAW_TRANSITIONS)

    def test_completion_locks_configuration(self, database, make_major_draw, now):
        draw = make_major_draw(status="frozen")

        transition_draw_status(database.majordraws, draw, "completed", now=now)

        stored = database.majordraws.find_one({"_id": draw["_id"]})
        assert stored["status"] == "completed"
        assert stored["configurationLocked"] is True
        assert stored["lockedAt"] == now
        assert stored["isActive"] is False

    def test_illegal_transition_raises(self, database, make_major_draw):
        draw = make_major_draw(status="completed")

        with pytest.raises(InvalidTransitionError):
            transition_draw_status(database.majordraws, draw, "active")

        assert database.majordraws.find_one({"_id": draw["_id"]})["status"] == "completed"


class TestMajorDrawTarget:
    """Which draw a new grant belongs to"""

    def test_active_draw_before_freeze(self, database, make_major_draw, now):
        current = make_major_draw()
        make_major_draw(status="queued", activationDate=now + timedelta(days=22))

        assert get_target_major_draw(database, payment_created=now, now=now)["_id"] == current["_id"]

    def test_frozen_draw_routes_to_earliest_queued(self, database, make_major_draw, now):
        make_major_draw(status="frozen")
        later = make_major_draw(status="queued", activationDate=now + timedelta(days=60))
        sooner = make_major_draw(status="queued", activationDate=now + timedelta(days=30))

        target = get_target_major_draw(database, now=now)

        assert target["_id"] == sooner["_id"]
        assert target["_id"] != later["_id"]

    def test_payment_at_freeze_point_rolls_over(self, database, make_major_draw, now):
        make_major_draw(freezeEntriesAt=now)
        queued = make_major_draw(status="queued", activationDate=now + timedelta(days=2))

        assert get_target_major_draw(database, payment_created=now)["_id"] == queued["_id"]

    def test_frozen_with_nothing_queued(self, database, make_major_draw, now):
        make_major_draw(status="frozen")

        with pytest.raises(DrawUnavailableError):
            get_target_major_draw(database, now=now)

    def test_gap_between_draws_uses_queued(self, database, make_major_draw, now):
        make_major_draw(status="completed")
        queued = make_major_draw(status="queued", activationDate=now + timedelta(days=1))

        assert get_target_major_draw(database, now=now)["_id"] == queued["_id"]

    def test_no_draw_at_all(self, database, now):
        with pytest.raises(NotFoundError):
            get_target_major_draw(database, now=now)


class TestLifecycleSweep:
    """Time-driven major draw transitions"""

    def test_past_draw_date_completes(self, database, make_major_draw, now):
        draw = make_major_draw(status="frozen", freezeEntriesAt=now - timedelta(days=2),
                               drawDate=now - timedelta(hours=1))

        counts = transition_major_draws(database, now=now)

        assert counts["completed"] == 1
        stored = database.majordraws.find_one({"_id": draw["_id"]})
        assert stored["status"] == "completed"
        assert stored["configurationLocked"] is True

    def test_past_freeze_point_freezes(self, database, make_major_draw, now):
        draw = make_major_draw(freezeEntriesAt=now - timedelta(minutes=5))

        counts = transition_major_draws(database, now=now)

        assert counts == {"completed": 0, "frozen": 1, "activated": 0}
        assert database.majordraws.find_one({"_id": draw["_id"]})["status"] == "frozen"

    def test_completion_activates_next_due_draw(self, database, make_major_draw, now):
        make_major_draw(status="frozen", drawDate=now - timedelta(minutes=1))
        due = make_major_draw(status="queued", activationDate=now - timedelta(minutes=1))
        not_due = make_major_draw(status="queued", activationDate=now + timedelta(days=3))

        counts = transition_major_draws(database, now=now)

        assert counts["activated"] == 1
        assert database.majordraws.find_one({"_id": due["_id"]})["status"] == "active"
        assert database.majordraws.find_one({"_id": not_due["_id"]})["status"] == "queued"

    def test_nothing_due(self, database, make_major_draw, now):
        make_major_draw()
        assert transition_major_draws(database, now=now) == {"completed": 0, "frozen": 0, "activated": 0}


class TestMiniDrawTarget:
    def test_bad_and_missing_ids(self, database):
        with pytest.raises(NotFoundError):
            get_target_mini_draw(database, "not-an-id")
        with pytest.raises(NotFoundError):
            get_target_mini_draw(database, ObjectId())

    def test_full_draw_refused(self, database, make_mini_draw):
        draw = make_mini_draw(minimumEntries=10, totalEntries=10)

        with pytest.raises(DrawUnavailableError) as exc_info:
            get_target_mini_draw(database, str(draw["_id"]))

        assert exc_info.value.draw_id == str(draw["_id"])

    def test_no_minimum_means_no_cap(self, database, make_mini_draw):
        draw = make_mini_draw(minimumEntries=0, totalEntries=5000)
        assert get_target_mini_draw(database, draw["_id"])["_id"] == draw["_id"]

    def test_close_at_capacity(self, now):
        draw = {"_id": ObjectId(), "status": "active", "minimumEntries": 5, "totalEntries": 5}

        assert close_mini_draw_at_capacity(draw, now) is True
        assert draw["status"] == "completed"
        assert draw["lockedAt"] == now
        assert close_mini_draw_at_capacity(draw, now) is False
