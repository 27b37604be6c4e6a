"""Duration grammar used by ttl tags and grace periods.

Accepted forms are one or more ``<int><unit>`` groups in descending unit
order, optionally prefixed by ``-``. Units: ``y`` (365d), ``w``, ``d``,
``h``, ``m``, ``s``, ``ms``. ``"0"`` is the never-expire sentinel.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from janitor.errors import InvalidDuration

logger = logging.getLogger(__name__)

UNLIMITED = "0"
MIN_GRACE_PERIOD = timedelta(seconds=1)

_DURATION_RE = re.compile(
    r"^(?P<sign>-)?"
    r"(?:(?P<y>\d+)y)?(?:(?P<w>\d+)w)?(?:(?P<d>\d+)d)?(?:(?P<h>\d+)h)?"
    r"(?:(?P<m>\d+)m(?!s))?(?:(?P<s>\d+)s)?(?:(?P<ms>\d+)ms)?$"
)

_UNITS = {
    "y": timedelta(days=365),
    "w": timedelta(weeks=1),
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
    "ms": timedelta(milliseconds=1),
}


def parse_duration(value: str) -> timedelta:
    """Parse a duration string.

    Args:
        value: Duration such as "24h", "1w2d" or "-1w"

    Returns:
        Parsed duration (negative when prefixed by "-")

    Raises:
        InvalidDuration: If the value does not match the grammar or overflows
    """
    if value == UNLIMITED:
        return timedelta(0)

    match = _DURATION_RE.match(value or "")
    if not match or not any(match.group(unit) for unit in _UNITS):
        raise InvalidDuration(f"not a valid duration string: {value!r}")

    total = timedelta(0)
    try:
        for unit, size in _UNITS.items():
            amount = match.group(unit)
            if amount:
                total += size * int(amount)
    except OverflowError as e:
        raise InvalidDuration(f"duration out of range: {value!r}") from e

    return -total if match.group("sign") else total


def is_unlimited(ttl: str) -> bool:
    return ttl == UNLIMITED


def within_ttl(ttl: str, created_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Check whether a resource is still inside its ttl.

    Fails open: an unparseable ttl or unknown creation time counts as
    not yet expired.

    Args:
        ttl: ttl tag value
        created_at: Resource creation time
        now: Reference time (default: current UTC time)

    Returns:
        True while time since creation is less than the ttl
    """
    if is_unlimited(ttl):
        return True
    if created_at is None:
        return True

    try:
        limit = parse_duration(ttl)
    except InvalidDuration:
        logger.debug(f"Unparseable ttl {ttl!r}, treating as not expired")
        return True

    if now is None:
        now = datetime.now(timezone.utc)
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)

    return (now - created_at) < limit


def parse_grace_period(value: str) -> Optional[timedelta]:
    """Parse a grace period.

    Returns None for the ``"0"`` sentinel: the lease never expires.

    Raises:
        InvalidDuration: If the value is malformed, negative or under one second
    """
    if is_unlimited(value):
        return None
    grace = parse_duration(value)
    if grace < MIN_GRACE_PERIOD:
        raise InvalidDuration(f"grace period must be at least 1s: {value!r}")
    return grace
