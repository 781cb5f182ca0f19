"""Tests for tagged results and the ManualClock."""

from datetime import UTC, datetime, timedelta, timezone

from tokenguard.core.clock import ManualClock, SystemClock
from tokenguard.core.results import (
    INVALID,
    BusinessError,
    FieldErrors,
    Invalid,
    Ok,
    OperationError,
    ValidationError,
)


class TestTaggedResults:
    """Results are distinguished by type."""

    def test_business_errors_share_a_base(self):
        for error in (INVALID, ValidationError(), OperationError("boom")):
            assert isinstance(error, BusinessError)
            assert not isinstance(error, Ok)

    def test_ok_is_not_a_business_error(self):
        assert not isinstance(Ok(1), BusinessError)

    def test_match_by_type(self):
        def describe(result) -> str:
            match result:
                case Ok(value=value):
                    return f"ok:{value}"
                case Invalid():
                    return "invalid"
                case ValidationError(errors=errors):
                    return f"invalid-fields:{sorted(errors)}"
                case _:
                    return "other"

        assert describe(Ok(3)) == "ok:3"
        assert describe(INVALID) == "invalid"
        assert describe(ValidationError({"email": ["x"]})) == "invalid-fields:['email']"
        assert describe(OperationError()) == "other"

    def test_invalid_carries_no_detail(self):
        assert Invalid() == INVALID


class TestFieldErrors:
    """Tests for the FieldErrors builder."""

    def test_empty_builder_has_no_result(self):
        errors = FieldErrors()
        assert not errors
        assert errors.to_result() is None

    def test_collects_in_order_and_deduplicates(self):
        errors = FieldErrors()
        errors.add("email", "a")
        errors.add("password", "b")
        errors.add("email", "c")
        errors.add("email", "a")
        result = errors.to_result()
        assert result == ValidationError({"email": ["a", "c"], "password": ["b"]})

    def test_starts_from_initial_errors(self):
        errors = FieldErrors({"name": ["can't be blank"]})
        errors.add("name", "can't be blank")
        errors.add("email", "has invalid format")
        result = errors.to_result()
        assert result is not None
        assert result.messages_for("name") == ["can't be blank"]
        assert result.messages_for("email") == ["has invalid format"]
        assert result.messages_for("password") == []

    def test_result_is_a_copy(self):
        errors = FieldErrors()
        errors.add("email", "a")
        result = errors.to_result()
        errors.add("email", "b")
        assert result is not None
        assert result.messages_for("email") == ["a"]


class TestManualClock:
    """Tests for ManualClock."""

    def test_naive_start_is_utc(self):
        clock = ManualClock(datetime(2026, 1, 1, 12, 0))
        assert clock.now() == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def test_other_offsets_are_converted(self):
        plus_two = timezone(timedelta(hours=2))
        clock = ManualClock(datetime(2026, 1, 1, 14, 0, tzinfo=plus_two))
        assert clock.now() == datetime(2026, 1, 1, 12, 0, tzinfo=UTC)
        assert clock.now().tzinfo == UTC

    def test_advance_by_seconds_and_timedelta(self):
        clock = ManualClock(datetime(2026, 1, 1, tzinfo=UTC))
        clock.advance(1.5)
        clock.advance(timedelta(minutes=1))
        assert clock.now() == datetime(2026, 1, 1, 0, 1, 1, 500000, tzinfo=UTC)

    def test_set_jumps(self):
        clock = ManualClock(datetime(2026, 1, 1, tzinfo=UTC))
        clock.set(datetime(2025, 6, 1, tzinfo=UTC))
        assert clock.now() == datetime(2025, 6, 1, tzinfo=UTC)

    def test_system_clock_is_aware(self):
        assert SystemClock().now().tzinfo is not None
