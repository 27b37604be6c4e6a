"""Tests for the duration grammar."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from janitor.classify.duration import is_unlimited, parse_duration, parse_grace_period, within_ttl
from janitor.errors import InvalidDuration

NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


class TestParseDuration:
    @pytest.mark.parametrize(
        "value,expected",
        [
            ("24h", timedelta(hours=24)),
            ("1w2d", timedelta(days=9)),
            ("1y", timedelta(days=365)),
            ("90m", timedelta(minutes=90)),
            ("1h30m15s", timedelta(hours=1, minutes=30, seconds=15)),
            ("500ms", timedelta(milliseconds=500)),
            ("1m500ms", timedelta(minutes=1, milliseconds=500)),
            ("-1w", -timedelta(weeks=1)),
            ("0", timedelta(0)),
        ],
    )
    def test_valid(self, value, expected) -> None:
        """Test accepted duration strings."""
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "abc", "1x", "24", "h", "1h1d", "--1h", "1.5h"])
    def test_invalid(self, value) -> None:
        """Test malformed duration strings raise InvalidDuration."""
        with pytest.raises(InvalidDuration):
            parse_duration(value)

    def test_invalid_duration_is_value_error(self) -> None:
        """Test invalid duration is value error."""
        with pytest.raises(ValueError):
            parse_duration("forever")

    @pytest.mark.parametrize("value", ["99999999999h", "9999999999999999999y", "99999999999999999999ms"])
    def test_out_of_range_is_invalid(self, value) -> None:
        """Test a duration too large for timedelta raises InvalidDuration, not OverflowError."""
        with pytest.raises(InvalidDuration, match="out of range"):
            parse_duration(value)


class TestParseGracePeriod:
    def test_unlimited_sentinel(self) -> None:
        """Test "0" means the lease never expires."""
        assert parse_grace_period("0") is None

    def test_regular_grace_period(self) -> None:
        """Test a positive grace period parses like any duration."""
        assert parse_grace_period("24h") == timedelta(hours=24)

    @pytest.mark.parametrize("value", ["-1h", "500ms", "soon"])
    def test_rejected(self, value) -> None:
        """Test negative, sub-second and malformed grace periods."""
        with pytest.raises(InvalidDuration):
            parse_grace_period(value)


class TestWithinTtl:
    def test_unlimited_never_expires(self) -> None:
        """Test unlimited never expires."""
        created = NOW - timedelta(days=3650)

        assert is_unlimited("0")
        assert within_ttl("0", created, NOW) is True

    def test_young_resource_is_within(self) -> None:
        """Test young resource is within."""
        assert within_ttl("24h", NOW - timedelta(hours=1), NOW) is True

    def test_old_resource_is_expired(self) -> None:
        """Test old resource is expired."""
        assert within_ttl("24h", NOW - timedelta(hours=25), NOW) is False

    def test_exact_boundary_is_expired(self) -> None:
        """Test exact boundary is expired."""
        assert within_ttl("24h", NOW - timedelta(hours=24), NOW) is False

    def test_negative_ttl_is_expired(self) -> None:
        """Test negative ttl is expired."""
        assert within_ttl("-1w", NOW - timedelta(days=8), NOW) is False

    def test_unparseable_fails_open(self) -> None:
        """Test unparseable fails open."""
        assert within_ttl("someday", NOW - timedelta(days=3650), NOW) is True

    def test_out_of_range_ttl_fails_open(self) -> None:
        """Test an overflowing ttl counts as not expired."""
        assert within_ttl("99999999999h", NOW - timedelta(days=1), NOW) is True

    def test_unknown_creation_fails_open(self) -> None:
        """Test unknown creation fails open."""
        assert within_ttl("1h", None, NOW) is True

    def test_naive_creation_treated_as_utc(self) -> None:
        """Test naive creation treated as utc."""
        created = datetime(2024, 5, 31, 11, 0, 0)

        assert within_ttl("24h", created, NOW) is False
