"""Age-weighted priority scoring.

An email's score is its priority base weight scaled by how long it has been
waiting. Older unattended mail pushes a scope towards its alert threshold
faster than fresh mail of the same priority.

The function is pure apart from a warning log; ``now`` is always passed in.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from email.utils import parsedate_to_datetime
from typing import Optional

from loguru import logger

from mailpulse.domain.models import PriorityLabel

BASE_SCORES: dict[PriorityLabel, int] = {
    PriorityLabel.HIGH: 5,
    PriorityLabel.MEDIUM: 2,
    PriorityLabel.LOW: 1,
}

# (upper bound of age band, multiplier); ages past the last bound get STALE_MULTIPLIER
AGE_BANDS: tuple[tuple[timedelta, Decimal], ...] = (
    (timedelta(hours=6), Decimal("1.0")),
    (timedelta(hours=12), Decimal("1.2")),
    (timedelta(hours=24), Decimal("1.5")),
)
RECENT_MULTIPLIER = Decimal("1.0")
STALE_MULTIPLIER = Decimal("2.0")


def parse_sent_timestamp(raw: Optional[str]) -> Optional[datetime]:
    """Parse a free-text sent timestamp into an aware UTC datetime.

    Understands ISO 8601 (``2024-05-01T09:30:00Z``) and RFC 2822 email dates
    (``Wed, 01 May 2024 09:30:00 +0000``). Naive values are taken as UTC.
    Returns None when the text is empty or neither format matches.
    """
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return None

    parsed: Optional[datetime] = None
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00") if text.endswith("Z") else text)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None

    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def age_multiplier(sent_at: Optional[str], now: datetime) -> Decimal:
    """Multiplier for the elapsed time between ``sent_at`` and ``now``.

    Absent, unparseable and future timestamps fall back to the recent
    multiplier with a warning.
    """
    sent = parse_sent_timestamp(sent_at)
    if sent is None:
        logger.warning(f"Unparseable or missing sent timestamp {sent_at!r}; using recent multiplier")
        return RECENT_MULTIPLIER

    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    age = now - sent
    if age < timedelta(0):
        logger.warning(f"Sent timestamp {sent_at!r} is {-age} in the future; using recent multiplier")
        return RECENT_MULTIPLIER

    for upper, multiplier in AGE_BANDS:
        if age < upper:
            return multiplier
    return STALE_MULTIPLIER


def score(priority: PriorityLabel, sent_at: Optional[str], now: datetime) -> int:
    """Score one event: ``round(base(priority) * age_multiplier)``, halves rounded up."""
    base = BASE_SCORES[PriorityLabel(priority)]
    weighted = Decimal(base) * age_multiplier(sent_at, now)
    return int(weighted.quantize(Decimal("1"), rounding=ROUND_HALF_UP))
