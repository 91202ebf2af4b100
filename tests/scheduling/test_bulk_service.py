from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from src.shift_scheduling.shift_scheduling.core.enums import BulkFailureReason, ShiftType
from src.shift_scheduling.shift_scheduling.core.exceptions import BulkGenerationError, StoreError, ValidationError
from src.shift_scheduling.shift_scheduling.employees.memory_employee_repository import InMemoryEmployeeRepository
from src.shift_scheduling.shift_scheduling.employees.model import Employee
from src.shift_scheduling.shift_scheduling.employees.service import EmployeeService
from src.shift_scheduling.shift_scheduling.recurrence.model import BulkRequest, CandidateInterval
from src.shift_scheduling.shift_scheduling.scheduling.bulk_service import BulkGenerationService
from src.shift_scheduling.shift_scheduling.shifts.memory_shift_repository import InMemoryShiftRepository
from src.shift_scheduling.shift_scheduling.shifts.model import Shift


def utc(d: int, h: int, m: int = 3) -> datetime:
    return datetime(2025, m, d, h, tzinfo=timezone.utc)


def existing(start: datetime, end: datetime, employee_id: str = "bob@x.com") -> Shift:
    return Shift(employee_id=employee_id, shift_type=ShiftType.REGULAR, start=start, end=end)


def weekday_request(**overrides) -> BulkRequest:
    params = dict(
        employee_id="bob@x.com",
        date_from=date(2025, 3, 3),
        date_to=date(2025, 3, 7),
        weekdays=frozenset({1, 2, 3, 4, 5}),
        time_start="09:00",
        time_end="17:00",
    )
    params.update(overrides)
    return BulkRequest(**params)


def always(plan) -> bool:
    return True


class CountingShifts(InMemoryShiftRepository):
    def __init__(self, shifts=(), *, fail_find=False, fail_insert=False):
        super().__init__(shifts)
        self.find_calls = 0
        self.insert_batch_calls = 0
        self._fail_find = fail_find
        self._fail_insert = fail_insert

    def find_overlapping(self, **kwargs):
        self.find_calls += 1
        if self._fail_find:
            raise StoreError("down")
        return super().find_overlapping(**kwargs)

    def insert_batch(self, shifts):
        self.insert_batch_calls += 1
        if self._fail_insert:
            raise StoreError("lost connection during commit", outcome_unknown=True)
        return super().insert_batch(shifts)


class FixedExpander:
    def __init__(self, candidates):
        self._candidates = candidates

    def expand_request(self, request):
        return list(self._candidates)

    def day_bounds(self, date_from, date_to):
        return utc(3, 0), utc(8, 0)


def test_existing_monday_shift_is_skipped_and_rest_created():
    repo = CountingShifts([existing(utc(3, 9), utc(3, 17))])
    svc = BulkGenerationService(repo)

    result = svc.generate(weekday_request(), confirm=always)

    assert (result.created, result.skipped) == (4, 1)
    assert result.committed
    assert repo.find_calls == 1
    assert repo.insert_batch_calls == 1
    assert len(repo.all()) == 5


def test_counts_are_reproducible_for_the_same_store_state():
    def run():
        repo = InMemoryShiftRepository([existing(utc(3, 9), utc(3, 17)), existing(utc(5, 16), utc(5, 20))])
        return BulkGenerationService(repo).generate(weekday_request(), confirm=always).to_dict()

    assert run() == run() == {"created": 3, "skipped": 2, "committed": True}


def test_plan_does_not_write_and_exposes_confirmation_summary():
    repo = CountingShifts([existing(utc(3, 9), utc(3, 17))])
    plan = BulkGenerationService(repo).plan(weekday_request())

    assert (plan.will_create, plan.will_skip) == (4, 1)
    assert plan.summary()["willCreate"] == 4
    assert repo.insert_batch_calls == 0


def test_declined_confirmation_leaves_store_untouched():
    repo = CountingShifts()
    seen = []

    def decline(plan) -> bool:
        seen.append((plan.will_create, plan.will_skip))
        return False

    result = BulkGenerationService(repo).generate(weekday_request(), confirm=decline)

    assert seen == [(5, 0)]
    assert result.committed is False
    assert result.created == 0
    assert repo.all() == []


def test_touching_existing_shift_is_not_a_conflict():
    repo = InMemoryShiftRepository([existing(utc(3, 17), utc(3, 22)), existing(utc(4, 6), utc(4, 9))])
    result = BulkGenerationService(repo).generate(weekday_request(), confirm=always)
    assert (result.created, result.skipped) == (5, 0)


def test_later_candidate_is_skipped_when_batch_overlaps_itself():
    first = CandidateInterval("bob@x.com", utc(3, 22), utc(4, 10), ShiftType.REGULAR)
    second = CandidateInterval("bob@x.com", utc(4, 8), utc(4, 16), ShiftType.REGULAR)
    third = CandidateInterval("bob@x.com", utc(4, 10), utc(4, 18), ShiftType.REGULAR)
    repo = InMemoryShiftRepository()
    svc = BulkGenerationService(repo, expander=FixedExpander([first, second, third]))

    result = svc.generate(weekday_request(), confirm=always)

    assert (result.created, result.skipped) == (2, 1)
    assert [s.start for s in repo.all()] == [utc(3, 22), utc(4, 10)]


def test_no_matching_weekday_is_reported_as_no_candidates():
    svc = BulkGenerationService(CountingShifts())
    with pytest.raises(BulkGenerationError) as exc:
        svc.plan(weekday_request(weekdays=frozenset({0, 6})))
    assert exc.value.reason == BulkFailureReason.NO_CANDIDATES


def test_everything_overlapping_is_reported_as_all_skipped():
    repo = CountingShifts([existing(utc(3, 0), utc(8, 0))])
    with pytest.raises(BulkGenerationError) as exc:
        BulkGenerationService(repo).generate(weekday_request(), confirm=always)
    assert exc.value.reason == BulkFailureReason.ALL_SKIPPED
    assert exc.value.skipped == 5
    assert repo.insert_batch_calls == 0


def test_bulk_shifts_are_tagged_and_attributed():
    repo = InMemoryShiftRepository()
    svc = BulkGenerationService(repo)

    svc.generate(weekday_request(date_to=date(2025, 3, 3), notes="front desk"), confirm=always)
    svc.generate(weekday_request(date_from=date(2025, 3, 4), date_to=date(2025, 3, 4)), confirm=always, created_by="Alice")

    a, b = repo.all()
    assert (a.notes, a.created_by) == ("front desk (Bulk)", "Bulk")
    assert (b.notes, b.created_by) == ("(Bulk)", "Alice")


def test_overnight_on_last_day_sees_shift_after_the_range():
    # 22:00-06:00 on Friday runs into Saturday; a Saturday 02:00 shift must block it.
    repo = CountingShifts([existing(utc(8, 2), utc(8, 4))])
    req = weekday_request(time_start="22:00", time_end="06:00")

    result = BulkGenerationService(repo).generate(req, confirm=always)

    assert (result.created, result.skipped) == (4, 1)


def test_prefetch_failure_is_a_store_error_with_known_outcome():
    repo = CountingShifts(fail_find=True)
    with pytest.raises(BulkGenerationError) as exc:
        BulkGenerationService(repo).generate(weekday_request(), confirm=always)
    assert exc.value.reason == BulkFailureReason.STORE_ERROR
    assert exc.value.outcome_unknown is False
    assert repo.insert_batch_calls == 0


def test_commit_failure_reports_unknown_outcome():
    repo = CountingShifts(fail_insert=True)
    with pytest.raises(BulkGenerationError) as exc:
        BulkGenerationService(repo).generate(weekday_request(), confirm=always)
    assert exc.value.reason == BulkFailureReason.STORE_ERROR
    assert exc.value.outcome_unknown is True


def test_unknown_employee_is_a_validation_error():
    employees = EmployeeService(InMemoryEmployeeRepository([Employee("ann@x.com", "Ann Lee")]))
    svc = BulkGenerationService(CountingShifts(), employees=employees)
    with pytest.raises(ValidationError):
        svc.plan(weekday_request())


def test_validation_happens_before_any_store_access():
    repo = CountingShifts()
    with pytest.raises(ValidationError):
        BulkGenerationService(repo).plan(weekday_request(date_from=date(2025, 3, 9), date_to=date(2025, 3, 3)))
    assert repo.find_calls == 0


def test_inverted_candidate_is_rejected_before_any_store_access():
    repo = CountingShifts()
    svc = BulkGenerationService(
        repo,
        expander=FixedExpander(
            [CandidateInterval(employee_id="bob@x.com", start=utc(9, 7), end=utc(9, 7), shift_type=ShiftType.REGULAR)]
        ),
    )

    with pytest.raises(ValidationError):
        svc.generate(weekday_request(), confirm=always)

    assert (repo.find_calls, repo.insert_batch_calls) == (0, 0)
    assert repo.all() == []
