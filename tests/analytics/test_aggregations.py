"""Tests for the pure dashboard aggregation functions."""

from datetime import timedelta
from decimal import Decimal
from uuid import UUID, uuid4

import pytest

from audiocoach.analytics import aggregations as agg
from audiocoach.analytics.models import ProgressRecord, SessionLogEntry
from audiocoach.catalog.models import AudioTrack, Member
from tests.fakes import NOW


def _session(user_id, audio_id, seconds, at=NOW) -> SessionLogEntry:
    return SessionLogEntry(
        user_id=user_id, audio_id=audio_id, duration_seconds=seconds, created_at=at
    )


def _record(user_id, audio_id, **kwargs) -> ProgressRecord:
    return ProgressRecord(user_id=user_id, audio_id=audio_id, **kwargs)


class TestRounding:
    """Half-up rounding used by every dashboard number."""

    @pytest.mark.parametrize(
        "value,expected",
        [(0.5, 1), (1.5, 2), (2.5, 3), (1.49, 1), (0, 0), (29.5, 30)],
    )
    def test_round_int(self, value: float, expected: int) -> None:
        assert agg.round_int(value) == expected

    def test_round_one_decimal(self) -> None:
        assert agg.round_half_up(0.25, 1) == Decimal("0.3")

    @pytest.mark.parametrize(
        "part,whole,expected",
        [(1, 3, 33), (2, 3, 67), (1, 2, 50), (0, 0, 0), (3, 3, 100)],
    )
    def test_percent(self, part: int, whole: int, expected: int) -> None:
        assert agg.percent(part, whole) == expected


class TestCompletionThreshold:
    def test_ninety_percent_completes(self) -> None:
        assert agg.reaches_completion(540, 600) is True
        assert agg.reaches_completion(539.9, 600) is False

    def test_unknown_duration_never_completes(self) -> None:
        assert agg.reaches_completion(10_000, 0) is False
        assert agg.reaches_completion(10_000, None) is False


class TestSharedKpis:
    def test_listening_hours(self) -> None:
        user, audio = uuid4(), uuid4()
        sessions = [_session(user, audio, 3600), _session(user, audio, 180)]
        assert agg.listening_hours(sessions) == 1.1

    def test_listening_minutes(self) -> None:
        user, audio = uuid4(), uuid4()
        assert agg.listening_minutes([_session(user, audio, 90)]) == 2
        assert agg.listening_minutes([]) == 0

    def test_completion_rate(self) -> None:
        user = uuid4()
        records = [
            _record(user, uuid4(), completed=True),
            _record(user, uuid4()),
            _record(user, uuid4()),
        ]
        assert agg.completion_rate(records) == 33
        assert agg.completion_rate([]) == 0


class TestEngagementTrend:
    def test_always_thirty_points(self) -> None:
        trend = agg.engagement_trend([], NOW)
        assert len(trend) == 30
        assert all(point.minutes == 0 for point in trend)

    def test_dates_end_today_in_order(self) -> None:
        trend = agg.engagement_trend([], NOW)
        assert trend[-1].date == "2026-03-15"
        assert trend[0].date == (NOW - timedelta(days=29)).date().isoformat()
        assert [p.date for p in trend] == sorted(p.date for p in trend)

    def test_buckets_by_utc_day(self) -> None:
        user, audio = uuid4(), uuid4()
        sessions = [
            _session(user, audio, 60, NOW),
            _session(user, audio, 30, NOW.replace(hour=0, minute=0)),
            _session(user, audio, 120, NOW - timedelta(days=1)),
            # Outside the window
            _session(user, audio, 6000, NOW - timedelta(days=30)),
        ]
        trend = agg.engagement_trend(sessions, NOW)
        assert trend[-1].minutes == 2  # 90 s rounds half-up
        assert trend[-2].minutes == 2
        assert sum(p.minutes for p in trend) == 4

    def test_whole_first_day_counts(self) -> None:
        user, audio = uuid4(), uuid4()
        first_day_morning = (NOW - timedelta(days=29)).replace(hour=0, minute=5)
        trend = agg.engagement_trend([_session(user, audio, 600, first_day_morning)], NOW)
        assert trend[0].minutes == 10


class TestActiveAthletes:
    def test_ten_minutes_in_seven_days(self) -> None:
        active, almost, stale = uuid4(), uuid4(), uuid4()
        audio = uuid4()
        sessions = [
            _session(active, audio, 300, NOW - timedelta(days=1)),
            _session(active, audio, 300, NOW - timedelta(days=6)),
            _session(almost, audio, 599, NOW),
            _session(stale, audio, 6000, NOW - timedelta(days=8)),
        ]
        assert agg.active_athlete_count(sessions, NOW) == 1


class TestPopularAudios:
    def test_ranked_by_minutes_with_completion_rate(self) -> None:
        user_a, user_b = uuid4(), uuid4()
        top, second = uuid4(), uuid4()
        sessions = [
            _session(user_a, top, 600),
            _session(user_b, top, 600),
            _session(user_a, second, 300),
        ]
        records = [
            _record(user_a, top, completed=True),
            _record(user_b, top),
            _record(user_a, second),
        ]
        audios = {top: AudioTrack(top, title="Breathing", duration_seconds=600)}

        leaderboard = agg.popular_audios(sessions, records, audios)

        assert [p.audio_id for p in leaderboard] == [top, second]
        assert leaderboard[0].title == "Breathing"
        assert leaderboard[0].minutes == 20
        assert leaderboard[0].completion_rate == 50
        assert leaderboard[1].title == "Audio"
        assert leaderboard[1].completion_rate == 0

    def test_ties_broken_by_audio_id(self) -> None:
        user = uuid4()
        ids = [UUID(int=3), UUID(int=1), UUID(int=2)]
        sessions = [_session(user, audio_id, 60) for audio_id in ids]
        leaderboard = agg.popular_audios(sessions, [], {})
        assert [p.audio_id for p in leaderboard] == [UUID(int=1), UUID(int=2), UUID(int=3)]

    def test_capped_at_five(self) -> None:
        user = uuid4()
        sessions = [_session(user, uuid4(), 60 * (i + 1)) for i in range(8)]
        leaderboard = agg.popular_audios(sessions, [], {})
        assert len(leaderboard) == 5
        assert leaderboard[0].minutes == 8
        assert agg.top_audio_ids(sessions) == [p.audio_id for p in leaderboard]


class TestDropoffs:
    def test_never_listened_first_then_most_stale(self) -> None:
        audio = uuid4()
        never = Member(uuid4(), "Nina", "Never")
        old = Member(uuid4(), "Olga", "Old")
        older = Member(uuid4(), "Otto", "Older")
        recent = Member(uuid4(), "Rita", "Recent")
        sessions = [
            _session(old.user_id, audio, 60, NOW - timedelta(days=9, hours=5)),
            _session(older.user_id, audio, 60, NOW - timedelta(days=20)),
            _session(recent.user_id, audio, 60, NOW - timedelta(days=2)),
        ]

        result = agg.dropoffs([never, old, older, recent], sessions, NOW)

        assert [d.user_id for d in result] == [never.user_id, older.user_id, old.user_id]
        assert result[0].days_since is None
        assert result[1].days_since == 20
        assert result[2].days_since == 9
        assert result[2].name == "Olga Old"

    def test_latest_session_counts(self) -> None:
        audio = uuid4()
        member = Member(uuid4(), "Ana", "Souza")
        sessions = [
            _session(member.user_id, audio, 60, NOW - timedelta(days=30)),
            _session(member.user_id, audio, 60, NOW - timedelta(days=3)),
        ]
        assert agg.dropoffs([member], sessions, NOW) == []

    def test_exactly_seven_days_is_not_a_dropoff(self) -> None:
        audio = uuid4()
        member = Member(uuid4(), "Ana", "Souza")
        sessions = [_session(member.user_id, audio, 60, NOW - timedelta(days=7))]
        assert agg.dropoffs([member], sessions, NOW) == []

    def test_capped_at_five(self) -> None:
        members = [Member(uuid4(), f"Athlete {i}") for i in range(7)]
        assert len(agg.dropoffs(members, [], NOW)) == 5


class TestStreak:
    def test_consecutive_days_ending_today(self) -> None:
        user, audio = uuid4(), uuid4()
        sessions = [
            _session(user, audio, 60, NOW),
            _session(user, audio, 60, NOW - timedelta(days=1)),
            _session(user, audio, 60, NOW - timedelta(days=2)),
            _session(user, audio, 60, NOW - timedelta(days=4)),
        ]
        assert agg.streak_days(sessions, NOW) == 3

    def test_no_session_today_breaks_streak(self) -> None:
        user, audio = uuid4(), uuid4()
        sessions = [
            _session(user, audio, 60, NOW - timedelta(days=1)),
            _session(user, audio, 60, NOW - timedelta(days=2)),
        ]
        assert agg.streak_days(sessions, NOW) == 0

    def test_empty(self) -> None:
        assert agg.streak_days([], NOW) == 0


class TestCategoryProgress:
    def test_grouped_and_sorted(self) -> None:
        user = uuid4()
        focus, sleep, orphan = uuid4(), uuid4(), uuid4()
        audios = {
            focus: AudioTrack(focus, category_id="focus"),
            sleep: AudioTrack(sleep, category_id="sleep"),
        }
        records = [
            _record(user, focus, completed=True),
            _record(user, sleep),
            _record(user, orphan, completed=True),
        ]

        result = agg.category_progress(records, audios)

        assert [(c.category_id, c.percent) for c in result] == [
            ("focus", 100),
            ("other", 100),
            ("sleep", 0),
        ]


class TestContinueListening:
    def test_started_unfinished_recent_first(self) -> None:
        user = uuid4()
        audios = {}
        records = []
        for minutes_ago in range(5):
            audio_id = uuid4()
            audios[audio_id] = AudioTrack(audio_id, f"Track {minutes_ago}", 600)
            records.append(
                _record(
                    user,
                    audio_id,
                    last_position=60.0,
                    updated_at=NOW - timedelta(minutes=minutes_ago),
                )
            )
        records.append(_record(user, uuid4(), last_position=0.0))
        records.append(_record(user, uuid4(), last_position=580.0, completed=True))

        result = agg.continue_listening(records, audios)

        assert [item.title for item in result] == ["Track 0", "Track 1", "Track 2"]
        assert result[0].progress_percent == 10

    def test_unknown_duration_saturates(self) -> None:
        user, audio_id = uuid4(), uuid4()
        records = [_record(user, audio_id, last_position=42.0)]

        result = agg.continue_listening(records, {})

        assert result[0].title == "Audio"
        assert result[0].progress_percent == 100
