"""Pure aggregation functions over session log entries and progress records.

Nothing here touches storage: the aggregators load the collections and pass
them in, which keeps every dashboard number unit-testable. All day buckets
are UTC calendar dates. Rounding is half-up (0.5 minute -> 1 minute).
"""

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import UTC, date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from uuid import UUID

from audiocoach.catalog.models import AudioTrack, Member

from .models import ProgressRecord, SessionLogEntry
from .schemas import (
    CategoryProgress,
    ContinueListeningItem,
    Dropoff,
    PopularAudio,
    TrendPoint,
)


# Single completion policy: 90% of the nominal duration
COMPLETION_RATIO = Decimal("0.9")

ACTIVE_WINDOW = timedelta(days=7)
ACTIVE_MIN_SECONDS = 600
TREND_DAYS = 30
POPULAR_LIMIT = 5
DROPOFF_AFTER = timedelta(days=7)
DROPOFF_LIMIT = 5
CONTINUE_LIMIT = 3

UNKNOWN_CATEGORY = "other"
FALLBACK_TITLE = "Audio"


def round_half_up(value: float | int | Decimal, ndigits: int = 0) -> Decimal:
    """Round like a person would (0.5 goes up), unlike built-in round()."""
    quantum = Decimal(1).scaleb(-ndigits)
    return Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)


def round_int(value: float | int | Decimal) -> int:
    """Round half-up to an integer."""
    return int(round_half_up(value))


def percent(part: int, whole: int) -> int:
    """Integer percentage, 0 when ``whole`` is 0."""
    if whole <= 0:
        return 0
    return round_int(Decimal(part) * 100 / Decimal(whole))


def reaches_completion(position: float, duration_seconds: int | None) -> bool:
    """Whether a position counts as having finished the audio.

    Audios with an unknown (0) duration can never be completed.
    """
    if not duration_seconds or duration_seconds <= 0:
        return False
    return Decimal(str(position)) >= COMPLETION_RATIO * Decimal(duration_seconds)


def utc_day(moment: datetime) -> date:
    """UTC calendar day of a timestamp."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC).date()


# ==============================================================================
# Shared KPIs
# ==============================================================================


def total_seconds(sessions: Iterable[SessionLogEntry]) -> int:
    """Sum of listened seconds."""
    return sum(entry.duration_seconds for entry in sessions)


def listening_hours(sessions: Iterable[SessionLogEntry]) -> float:
    """Listened hours rounded to one decimal."""
    return float(round_half_up(Decimal(total_seconds(sessions)) / 3600, 1))


def listening_minutes(sessions: Iterable[SessionLogEntry]) -> int:
    """Listened minutes rounded to an integer."""
    return round_int(Decimal(total_seconds(sessions)) / 60)


def completion_rate(records: Sequence[ProgressRecord]) -> int:
    """Share of progress records that are completed, as a percentage."""
    completed = sum(1 for record in records if record.completed)
    return percent(completed, len(records))


# ==============================================================================
# Admin KPIs
# ==============================================================================


def active_athlete_count(
    sessions: Iterable[SessionLogEntry],
    now: datetime,
) -> int:
    """Users with at least 10 minutes listened over the trailing 7 days."""
    since = now - ACTIVE_WINDOW
    seconds_by_user: dict[UUID, int] = defaultdict(int)
    for entry in sessions:
        if entry.created_at >= since:
            seconds_by_user[entry.user_id] += entry.duration_seconds
    return sum(
        1 for seconds in seconds_by_user.values() if seconds >= ACTIVE_MIN_SECONDS
    )


def engagement_trend(
    sessions: Iterable[SessionLogEntry],
    now: datetime,
    days: int = TREND_DAYS,
) -> list[TrendPoint]:
    """Minutes listened per UTC day, one point per day ending today.

    Always returns exactly ``days`` points in chronological order; days
    without sessions are 0.
    """
    today = utc_day(now)
    first_day = today - timedelta(days=days - 1)

    seconds_by_day: dict[date, int] = defaultdict(int)
    for entry in sessions:
        day = utc_day(entry.created_at)
        if first_day <= day <= today:
            seconds_by_day[day] += entry.duration_seconds

    points = []
    for offset in range(days):
        day = first_day + timedelta(days=offset)
        minutes = round_int(Decimal(seconds_by_day.get(day, 0)) / 60)
        points.append(TrendPoint(date=day.isoformat(), minutes=minutes))
    return points


def popular_audios(
    sessions: Iterable[SessionLogEntry],
    records: Iterable[ProgressRecord],
    audios: Mapping[UUID, AudioTrack],
    limit: int = POPULAR_LIMIT,
) -> list[PopularAudio]:
    """Top audios by listened seconds, each with its own completion rate.

    Ties are broken by audio id so the leaderboard is stable between polls.
    """
    ranked = _rank_audios(sessions)

    totals: dict[UUID, int] = defaultdict(int)
    completed: dict[UUID, int] = defaultdict(int)
    for record in records:
        totals[record.audio_id] += 1
        if record.completed:
            completed[record.audio_id] += 1

    leaderboard = []
    for audio_id, seconds in ranked[:limit]:
        audio = audios.get(audio_id)
        leaderboard.append(
            PopularAudio(
                audio_id=audio_id,
                title=(audio.title if audio and audio.title else FALLBACK_TITLE),
                minutes=round_int(Decimal(seconds) / 60),
                completion_rate=percent(completed[audio_id], totals[audio_id]),
            )
        )
    return leaderboard


def top_audio_ids(
    sessions: Iterable[SessionLogEntry], limit: int = POPULAR_LIMIT
) -> list[UUID]:
    """Audio ids that ``popular_audios`` will rank, for title lookups."""
    return [audio_id for audio_id, _ in _rank_audios(sessions)[:limit]]


def _rank_audios(sessions: Iterable[SessionLogEntry]) -> list[tuple[UUID, int]]:
    seconds_by_audio: dict[UUID, int] = defaultdict(int)
    for entry in sessions:
        seconds_by_audio[entry.audio_id] += entry.duration_seconds
    return sorted(seconds_by_audio.items(), key=lambda item: (-item[1], str(item[0])))


def dropoffs(
    athletes: Iterable[Member],
    sessions: Iterable[SessionLogEntry],
    now: datetime,
    limit: int = DROPOFF_LIMIT,
) -> list[Dropoff]:
    """Athletes whose last session is older than 7 days, or who never listened.

    Athletes who never listened are the most stale and come first.
    """
    last_session: dict[UUID, datetime] = {}
    for entry in sessions:
        previous = last_session.get(entry.user_id)
        if previous is None or entry.created_at > previous:
            last_session[entry.user_id] = entry.created_at

    stale: list[tuple[float, Dropoff]] = []
    for athlete in athletes:
        last = last_session.get(athlete.user_id)
        if last is None:
            staleness = float("inf")
            days_since = None
        else:
            elapsed = now - last
            if elapsed <= DROPOFF_AFTER:
                continue
            staleness = elapsed.total_seconds()
            days_since = elapsed.days
        dropoff = Dropoff(
            user_id=athlete.user_id, name=athlete.name, days_since=days_since
        )
        stale.append((staleness, dropoff))

    stale.sort(key=lambda item: (-item[0], str(item[1].user_id)))
    return [dropoff for _, dropoff in stale[:limit]]


# ==============================================================================
# Athlete KPIs
# ==============================================================================


def streak_days(sessions: Iterable[SessionLogEntry], now: datetime) -> int:
    """Consecutive days with a session, counting back from today.

    A day without sessions ends the streak, and that includes today: no
    session today means a streak of 0.
    """
    active_days = {utc_day(entry.created_at) for entry in sessions}
    day = utc_day(now)
    streak = 0
    while day in active_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def category_progress(
    records: Iterable[ProgressRecord],
    audios: Mapping[UUID, AudioTrack],
) -> list[CategoryProgress]:
    """Completion percentage per audio category, sorted by category id."""
    totals: dict[str, int] = defaultdict(int)
    completed: dict[str, int] = defaultdict(int)
    for record in records:
        audio = audios.get(record.audio_id)
        category_id = (audio.category_id if audio else None) or UNKNOWN_CATEGORY
        totals[category_id] += 1
        if record.completed:
            completed[category_id] += 1

    return [
        CategoryProgress(
            category_id=category_id, percent=percent(completed[category_id], total)
        )
        for category_id, total in sorted(totals.items())
    ]


def continue_listening(
    records: Iterable[ProgressRecord],
    audios: Mapping[UUID, AudioTrack],
    limit: int = CONTINUE_LIMIT,
) -> list[ContinueListeningItem]:
    """Started, unfinished audios, most recently played first."""
    in_progress = [r for r in records if not r.completed and r.last_position > 0]
    in_progress.sort(key=lambda r: r.updated_at, reverse=True)

    items = []
    for record in in_progress[:limit]:
        audio = audios.get(record.audio_id)
        # Unknown duration saturates at 100% instead of dividing by zero
        duration = (audio.duration_seconds if audio else 0) or 1
        position = Decimal(str(record.last_position))
        progress = round_int(position * 100 / Decimal(duration))
        items.append(
            ContinueListeningItem(
                audio_id=record.audio_id,
                title=(audio.title if audio and audio.title else FALLBACK_TITLE),
                progress_percent=min(100, progress),
            )
        )
    return items
