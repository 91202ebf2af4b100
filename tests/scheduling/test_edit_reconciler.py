from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from itertools import combinations

import pytest

from src.shift_scheduling.shift_scheduling.core.enums import EditState, RejectionReason, ShiftType
from src.shift_scheduling.shift_scheduling.core.exceptions import (
    EditInProgressError,
    NotFoundError,
    StoreError,
    ValidationError,
)
from src.shift_scheduling.shift_scheduling.employees.memory_employee_repository import InMemoryEmployeeRepository
from src.shift_scheduling.shift_scheduling.employees.model import Employee
from src.shift_scheduling.shift_scheduling.employees.service import EmployeeService
from src.shift_scheduling.shift_scheduling.scheduling.edit_reconciler import EditReconciler
from src.shift_scheduling.shift_scheduling.shifts.memory_shift_repository import InMemoryShiftRepository
from src.shift_scheduling.shift_scheduling.shifts.model import Shift


def at(day: int, hour: int) -> datetime:
    return datetime(2025, 3, day, hour, tzinfo=timezone.utc)


def existing(start: datetime, end: datetime, shift_id: int, employee_id: str = "bob@x.com", **kw) -> Shift:
    return Shift(employee_id=employee_id, shift_type=ShiftType.REGULAR, start=start, end=end, shift_id=shift_id, **kw)


class FakeSurface:
    def __init__(self):
        self.commits = []
        self.reverts = []
        self.refreshes = 0

    def commit(self, outcome):
        self.commits.append(outcome)

    def revert(self, outcome):
        self.reverts.append(outcome)

    def refresh(self):
        self.refreshes += 1


def make(shifts=(), repo=None):
    repo = repo or InMemoryShiftRepository(shifts)
    surface = FakeSurface()
    return EditReconciler(repo, surface=surface), repo, surface


def test_create_commits_and_refreshes():
    rec, repo, surface = make()

    outcome = rec.create(employee_id="bob@x.com", start=at(3, 9), end=at(3, 17), notes=" opening ")

    assert outcome.state == EditState.COMMITTED
    assert outcome.shift.shift_id == 1
    stored = repo.get_by_id(1)
    assert stored.created_by == "System"
    assert stored.notes == "opening"
    assert len(surface.commits) == 1
    assert surface.refreshes == 1


def test_create_records_caller_as_creator():
    rec, repo, _ = make()
    rec.create(employee_id="bob@x.com", start=at(3, 9), end=at(3, 17), created_by="Alice")
    assert repo.get_by_id(1).created_by == "Alice"


def test_create_touching_existing_shift_is_allowed():
    rec, repo, _ = make([existing(at(3, 9), at(3, 17), 1)])
    outcome = rec.create(employee_id="bob@x.com", start=at(3, 17), end=at(3, 22))
    assert outcome.committed
    assert len(repo.all()) == 2


def test_create_overlapping_is_rejected_without_store_mutation():
    rec, repo, surface = make([existing(at(3, 9), at(3, 17), 4)])

    outcome = rec.create(employee_id="bob@x.com", start=at(3, 16), end=at(3, 20))

    assert outcome.state == EditState.REJECTED_REVERT
    assert outcome.reason == RejectionReason.OVERLAP
    assert outcome.conflicting_shift_id == 4
    assert len(repo.all()) == 1
    assert surface.reverts == [outcome]
    assert surface.commits == []


def test_create_for_other_employee_ignores_their_overlap():
    rec, _, _ = make([existing(at(3, 9), at(3, 17), 1, employee_id="ann@x.com")])
    assert rec.create(employee_id="bob@x.com", start=at(3, 9), end=at(3, 17)).committed


def test_drag_into_another_shift_reverts_and_names_blocker():
    rec, repo, surface = make([existing(at(3, 9), at(3, 17), 1), existing(at(4, 9), at(4, 17), 2)])

    outcome = rec.move(1, start=at(4, 12), end=at(4, 20))

    assert outcome.reason == RejectionReason.OVERLAP
    assert outcome.conflicting_shift_id == 2
    assert repo.get_by_id(1).start == at(3, 9)
    body = outcome.to_dict()
    assert body["success"] is False
    assert body["revert"] == {"start": at(3, 9).isoformat(), "end": at(3, 17).isoformat()}
    assert surface.reverts == [outcome]


def test_drag_over_its_own_old_position_is_allowed():
    rec, repo, _ = make([existing(at(3, 9), at(3, 17), 1, created_by="Alice", notes="keep")])

    outcome = rec.move(1, start=at(3, 10), end=at(3, 18))

    assert outcome.committed
    moved = repo.get_by_id(1)
    assert (moved.start, moved.end) == (at(3, 10), at(3, 18))
    assert (moved.created_by, moved.notes) == ("Alice", "keep")


def test_drop_without_end_defaults_by_event_kind():
    rec, repo, _ = make([existing(at(3, 9), at(3, 17), 1), existing(at(5, 9), at(5, 17), 2)])

    rec.move(1, start=at(4, 9))
    rec.move(2, start=at(6, 0), all_day=True)

    assert repo.get_by_id(1).end == at(4, 10)
    assert repo.get_by_id(2).end == at(7, 0)


def test_resize_validates_interval_before_store_access():
    rec, _, _ = make([existing(at(3, 9), at(3, 17), 1)])
    with pytest.raises(ValidationError):
        rec.propose_resize(1, start=at(3, 9), end=at(3, 9))


def test_resize_commits_new_end():
    rec, repo, _ = make([existing(at(3, 9), at(3, 17), 1)])
    assert rec.resize(1, start=at(3, 9), end=at(3, 19)).committed
    assert repo.get_by_id(1).end == at(3, 19)


def test_pending_edit_walks_through_states():
    rec, _, _ = make([existing(at(3, 9), at(3, 17), 1)])

    pending = rec.propose_move(1, start=at(3, 10), end=at(3, 18))
    assert pending.state == EditState.PROPOSED
    assert rec.pending_for(1) is pending

    outcome = rec.resolve(pending.token)
    assert pending.state == EditState.COMMITTED
    assert outcome.committed
    assert rec.pending_for(1) is None


def test_second_edit_of_same_shift_is_rejected_until_first_resolves():
    rec, _, _ = make([existing(at(3, 9), at(3, 17), 1), existing(at(4, 9), at(4, 17), 2)])

    first = rec.propose_move(1, start=at(3, 10), end=at(3, 18))
    with pytest.raises(EditInProgressError):
        rec.propose_resize(1, start=at(3, 9), end=at(3, 20))
    with pytest.raises(EditInProgressError):
        rec.delete(1, confirmed=True)

    # Other shifts stay editable.
    assert rec.move(2, start=at(4, 10), end=at(4, 18)).committed

    rec.resolve(first.token)
    assert rec.resize(1, start=at(3, 10), end=at(3, 20)).committed


def test_cancel_releases_shift_and_reverts_surface():
    rec, repo, surface = make([existing(at(3, 9), at(3, 17), 1)])

    pending = rec.propose_move(1, start=at(3, 10), end=at(3, 18))
    rec.cancel(pending.token)

    assert rec.pending_for(1) is None
    assert len(surface.reverts) == 1
    assert repo.get_by_id(1).start == at(3, 9)
    with pytest.raises(ValidationError):
        rec.resolve(pending.token)


def test_editing_a_missing_shift_raises_not_found():
    rec, _, surface = make()
    with pytest.raises(NotFoundError):
        rec.propose_move(5, start=at(3, 9), end=at(3, 10))
    assert surface.refreshes == 1


def test_shift_deleted_between_propose_and_resolve_is_not_found():
    rec, repo, surface = make([existing(at(3, 9), at(3, 17), 1)])

    pending = rec.propose_move(1, start=at(3, 10), end=at(3, 18))
    repo.delete(1)  # another session
    outcome = rec.resolve(pending.token)

    assert outcome.reason == RejectionReason.NOT_FOUND
    assert surface.refreshes == 1
    assert rec.pending_for(1) is None


class RacingShifts(InMemoryShiftRepository):
    """Another session commits an overlapping shift right before our insert."""

    def insert(self, shift):
        super().insert(Shift(employee_id=shift.employee_id, shift_type=ShiftType.REGULAR, start=shift.start, end=shift.end))
        return super().insert(shift)


def test_lost_race_surfaces_as_recoverable_overlap():
    rec, repo, _ = make(repo=RacingShifts())

    outcome = rec.create(employee_id="bob@x.com", start=at(3, 9), end=at(3, 17))

    assert outcome.reason == RejectionReason.OVERLAP
    assert outcome.conflicting_shift_id == 1
    assert len(repo.all()) == 1


class BrokenWrites(InMemoryShiftRepository):
    def update(self, shift_id, patch):
        raise StoreError("timeout", outcome_unknown=True)


def test_store_failure_on_commit_reverts_with_unknown_outcome():
    rec, _, surface = make(repo=BrokenWrites([existing(at(3, 9), at(3, 17), 1)]))

    outcome = rec.move(1, start=at(3, 10), end=at(3, 18))

    assert outcome.reason == RejectionReason.STORE_ERROR
    assert outcome.outcome_unknown is True
    assert outcome.to_dict()["outcome_unknown"] is True
    assert surface.refreshes == 1
    assert rec.pending_for(1) is None


def test_full_update_can_reassign_employee_and_checks_their_shifts():
    rec, repo, _ = make(
        [existing(at(3, 9), at(3, 17), 1), existing(at(3, 12), at(3, 14), 2, employee_id="ann@x.com")]
    )

    blocked = rec.update(1, employee_id="ann@x.com", shift_type=ShiftType.OVERTIME, start=at(3, 9), end=at(3, 17))
    assert blocked.conflicting_shift_id == 2

    ok = rec.update(1, employee_id="ann@x.com", shift_type=ShiftType.OVERTIME, start=at(3, 14), end=at(3, 18), notes="")
    assert ok.committed
    stored = repo.get_by_id(1)
    assert (stored.employee_id, stored.shift_type) == ("ann@x.com", ShiftType.OVERTIME)


def test_unknown_employee_is_rejected_when_directory_is_wired():
    directory = EmployeeService(InMemoryEmployeeRepository([Employee("bob@x.com", "Bob Stone")]))
    rec = EditReconciler(InMemoryShiftRepository(), employees=directory)
    with pytest.raises(ValidationError):
        rec.propose_create(employee_id="ghost@x.com", start=at(3, 9), end=at(3, 17))
    with pytest.raises(ValidationError):
        rec.propose_create(employee_id="", start=at(3, 9), end=at(3, 17))


def test_delete_requires_confirmation():
    rec, repo, surface = make([existing(at(3, 9), at(3, 17), 1)])

    assert rec.delete(1, confirmed=False) is False
    assert repo.get_by_id(1) is not None

    assert rec.delete(1, confirmed=True) is True
    assert repo.get_by_id(1) is None
    assert surface.refreshes == 1

    with pytest.raises(NotFoundError):
        rec.delete(1, confirmed=True)


def test_no_operation_sequence_leaves_overlapping_shifts():
    rng = random.Random(20250303)
    rec, repo, _ = make()
    employees = ["bob@x.com", "ann@x.com"]
    base = at(3, 0)

    for _ in range(400):
        op = rng.choice(["create", "create", "move", "resize", "delete"])
        start = base + timedelta(hours=rng.randrange(0, 96))
        end = start + timedelta(hours=rng.randrange(1, 12))
        ids = [s.shift_id for s in repo.all()]
        if op == "create" or not ids:
            rec.create(employee_id=rng.choice(employees), start=start, end=end)
        elif op == "move":
            rec.move(rng.choice(ids), start=start, end=end)
        elif op == "resize":
            target = repo.get_by_id(rng.choice(ids))
            rec.resize(target.shift_id, start=target.start, end=target.start + timedelta(hours=rng.randrange(1, 12)))
        else:
            rec.delete(rng.choice(ids), confirmed=True)

    shifts = repo.all()
    assert shifts
    for a, b in combinations(shifts, 2):
        if a.employee_id == b.employee_id:
            assert not (a.start < b.end and a.end > b.start)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


def test_abandoned_proposal_expires_and_frees_its_shift():
    clock = FakeClock(at(1, 8))
    repo = InMemoryShiftRepository([existing(at(3, 9), at(3, 17), 1)])
    surface = FakeSurface()
    rec = EditReconciler(repo, surface=surface, pending_ttl=timedelta(minutes=5), clock=clock)

    abandoned = rec.propose_move(1, start=at(3, 10), end=at(3, 18))
    clock.now += timedelta(minutes=4)
    with pytest.raises(EditInProgressError):
        rec.propose_move(1, start=at(3, 11), end=at(3, 19))

    clock.now += timedelta(minutes=2)
    assert rec.pending_for(1) is None
    assert abandoned.state == EditState.REJECTED_REVERT
    assert len(surface.reverts) == 1

    assert rec.move(1, start=at(3, 11), end=at(3, 19)).committed
    with pytest.raises(ValidationError):
        rec.resolve(abandoned.token)
    assert repo.get_by_id(1).start == at(3, 11)
