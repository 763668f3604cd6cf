"""
Tests for the carry-forward rule and the offline repair passes.
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from conftest import BASE_TIME, at
from watchtime.core.errors import UnknownRepairFieldError
from watchtime.models.creator_stat import CreatorDailyStat
from watchtime.models.stream_session import StreamSession
from watchtime.models.viewer_sample import ViewerSample
from watchtime.services.quality import carry_forward, is_sentinel
from watchtime.services.repair import repair_daily_stats, repair_sessions, run_repair
from watchtime.services.rollup import run_rollup

START = date(2026, 3, 1)


def _stats(db, creator, values, field="hours_watched_week"):
    for i, value in enumerate(values):
        db.add(CreatorDailyStat(
            creator_id=creator.id,
            day=START + timedelta(days=i),
            streams_count_day=0,
            **{field: value},
        ))
    db.commit()


def _values(db, creator, field="hours_watched_week"):
    db.expire_all()
    rows = (
        db.query(CreatorDailyStat)
        .filter(CreatorDailyStat.creator_id == creator.id)
        .order_by(CreatorDailyStat.day)
        .all()
    )
    return [getattr(r, field) for r in rows]


# ---------------------------------------------------------------------------
# carry_forward (pure)
# ---------------------------------------------------------------------------

class TestCarryForward:
    def test_preceding_good_value(self):
        assert carry_forward([100, None, None, 400]) == {1: 100, 2: 100}

    def test_zero_is_sentinel(self):
        assert carry_forward([100, 0, 250, 0]) == {1: 100, 3: 250}

    def test_leading_bad_uses_following(self):
        assert carry_forward([None, 0, 50, None]) == {0: 50, 1: 50, 3: 50}

    def test_no_good_value(self):
        assert carry_forward([None, 0]) == {}

    def test_nothing_bad(self):
        assert carry_forward([1, 2, 3]) == {}

    def test_custom_predicate(self):
        assert carry_forward([5, -1, 7], is_bad=lambda v: v < 0) == {1: 5}

    def test_is_sentinel(self):
        assert is_sentinel(None)
        assert is_sentinel(0)
        assert is_sentinel(0.0)
        assert not is_sentinel(0.1)


# ---------------------------------------------------------------------------
# repair_daily_stats
# ---------------------------------------------------------------------------

def _finalized(db, creator, ended_at, hours, stream_id="s"):
    db.add(StreamSession(
        creator_id=creator.id,
        stream_id=stream_id,
        started_at=ended_at - timedelta(hours=1),
        ended_at=ended_at,
        peak_viewers=100,
        avg_viewers=50.0,
        hours_watched=hours,
        sample_count=12,
    ))
    db.commit()


class TestRepairDailyStats:
    def test_nulls_carried_forward(self, db, make_creator):
        creator = make_creator("5001")
        _stats(db, creator, [100.0, None, None, 400.0])

        report = repair_daily_stats(db, ["hours_watched_week"], tz=timezone.utc)

        assert _values(db, creator) == [100.0, 100.0, 100.0, 400.0]
        assert report.bad_values == 2
        assert report.fixed_values == 2
        assert report.rows_scanned == 4
        assert [c.day for c in report.changes] == [START + timedelta(days=1), START + timedelta(days=2)]

    def test_zero_contradicted_by_sessions_is_repaired(self, db, make_creator):
        creator = make_creator("5002")
        _stats(db, creator, [100.0, 0.0, 0.0, 400.0])
        # Inside the 7-day windows of 03-02 and 03-03.
        _finalized(db, creator, datetime(2026, 3, 2, 12, tzinfo=timezone.utc), hours=50.0)

        report = repair_daily_stats(db, ["hours_watched_week"], tz=timezone.utc)

        assert _values(db, creator) == [100.0, 100.0, 100.0, 400.0]
        assert report.bad_values == 2

    def test_idle_week_zero_is_kept(self, db, make_creator):
        creator = make_creator("5003")
        _finalized(db, creator, datetime(2026, 3, 1, 20, tzinfo=timezone.utc), hours=200.0)
        run_rollup(db, day=date(2026, 3, 1), tz=timezone.utc)
        run_rollup(db, day=date(2026, 3, 20), tz=timezone.utc)

        report = run_repair(db, ["hours_watched_week"], tz=timezone.utc)

        assert _values(db, creator) == [200.0, 0.0]
        assert report.bad_values == 0
        assert report.changes == []

    def test_zero_outside_session_window_is_kept(self, db, make_creator):
        creator = make_creator("5004")
        _stats(db, creator, [80.0, 0.0], field="hours_watched_day")
        # Ends the day before the zero row: outside its 1-day window.
        _finalized(db, creator, datetime(2026, 3, 1, 12, tzinfo=timezone.utc), hours=80.0)

        repair_daily_stats(db, ["hours_watched_day"], tz=timezone.utc)
        assert _values(db, creator, field="hours_watched_day") == [80.0, 0.0]

    def test_genuine_zero_fills_a_null(self, db, make_creator):
        creator = make_creator("5005")
        _stats(db, creator, [None, 0.0])

        repair_daily_stats(db, ["hours_watched_week"], tz=timezone.utc)
        assert _values(db, creator) == [0.0, 0.0]

    def test_dry_run_writes_nothing(self, db, make_creator):
        creator = make_creator("5006")
        _stats(db, creator, [100.0, None])

        report = repair_daily_stats(db, ["hours_watched_week"], dry_run=True, tz=timezone.utc)

        assert report.dry_run is True
        assert report.fixed_values == 1
        assert report.changes[0].new_value == 100.0
        assert _values(db, creator) == [100.0, None]

    def test_idempotent(self, db, make_creator):
        creator = make_creator("5007")
        _stats(db, creator, [None, 30.0, 0.0])

        repair_daily_stats(db, ["hours_watched_week"], tz=timezone.utc)
        second = repair_daily_stats(db, ["hours_watched_week"], tz=timezone.utc)

        assert _values(db, creator) == [30.0, 30.0, 0.0]
        assert second.bad_values == 0
        assert second.changes == []

    def test_unrecoverable_left_alone(self, db, make_creator):
        creator = make_creator("5008")
        _stats(db, creator, [None, None])

        report = repair_daily_stats(db, ["hours_watched_week"], tz=timezone.utc)
        assert report.unrecoverable_values == 2
        assert report.fixed_values == 0
        assert _values(db, creator) == [None, None]

    def test_creators_repaired_independently(self, db, make_creator):
        first = make_creator("5009")
        second = make_creator("5010")
        _stats(db, first, [10.0, None])
        _stats(db, second, [None, 90.0])

        repair_daily_stats(db, ["hours_watched_week"], tz=timezone.utc)
        assert _values(db, first) == [10.0, 10.0]
        assert _values(db, second) == [90.0, 90.0]

    def test_unknown_field(self, db):
        with pytest.raises(UnknownRepairFieldError):
            repair_daily_stats(db, ["creator_id"])


# ---------------------------------------------------------------------------
# repair_sessions / run_repair
# ---------------------------------------------------------------------------

class TestRepairSessions:
    def _unfinalized(self, db, creator):
        session = StreamSession(
            creator_id=creator.id,
            stream_id="broken",
            started_at=BASE_TIME,
            ended_at=at(60),
            peak_viewers=0,
        )
        db.add(session)
        db.flush()
        db.add(ViewerSample(session_id=session.id, viewer_count=100, recorded_at=at(0)))
        db.add(ViewerSample(session_id=session.id, viewer_count=300, recorded_at=at(30)))
        db.commit()
        return session

    def test_refinalizes_closed_session(self, db, make_creator):
        session = self._unfinalized(db, make_creator("5101"))

        report = repair_sessions(db)
        db.refresh(session)

        assert report.sessions_refinalized == 1
        assert session.avg_viewers == pytest.approx(200.0)
        assert session.hours_watched == pytest.approx(100.0)
        assert session.ended_at == at(60)

    def test_dry_run(self, db, make_creator):
        session = self._unfinalized(db, make_creator("5102"))

        report = repair_sessions(db, dry_run=True)
        db.refresh(session)
        assert report.sessions_refinalized == 1
        assert session.hours_watched is None

    def test_run_repair_both_passes(self, db, make_creator):
        creator = make_creator("5103")
        self._unfinalized(db, creator)
        _stats(db, creator, [5.0, None])

        report = run_repair(db, ["hours_watched_week"], tz=timezone.utc)
        assert report.sessions_refinalized == 1
        assert report.fixed_values == 1

    def test_run_repair_validates_first(self, db, make_creator):
        session = self._unfinalized(db, make_creator("5104"))
        with pytest.raises(UnknownRepairFieldError):
            run_repair(db, ["nope"])
        db.refresh(session)
        assert session.hours_watched is None
