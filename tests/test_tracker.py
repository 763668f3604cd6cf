"""
Tests for the session tracker.

Covered scenarios:
  A) decide() transition table
  B) Unknown never closes a session (live, Unknown, live -> one session)
  C) a changed stream id finalizes the old session and opens a new one
  D) NotLive closes and finalizes at the poll timestamp
  E) the same stream id reported live after a close reopens that session
  F) consecutive Unknown verdicts flag the creator for review
"""
import pytest

from conftest import BASE_TIME, at
from watchtime.models.poll_state import CreatorPollState
from watchtime.models.stream_session import StreamSession
from watchtime.models.viewer_sample import ViewerSample
from watchtime.services.platforms.base import NOT_LIVE, Failed, Live, Ok, Unknown
from watchtime.services.sampler import SampleOutcome
from watchtime.services.tracker import Action, apply_verdict, decide, get_open_session


def live(stream_id="A", count=100, title="title", category="Chess"):
    return Live(
        external_stream_id=stream_id,
        viewer_count=Ok(count) if isinstance(count, int) else count,
        title=title,
        category=category,
        started_at=BASE_TIME,
    )


def _sessions(db, creator_id):
    return (
        db.query(StreamSession)
        .filter(StreamSession.creator_id == creator_id)
        .order_by(StreamSession.id)
        .all()
    )


def _sample_count(db, session_id):
    return db.query(ViewerSample).filter(ViewerSample.session_id == session_id).count()


# ---------------------------------------------------------------------------
# A) decide()
# ---------------------------------------------------------------------------

class TestDecide:
    def _open(self, stream_id="A"):
        return StreamSession(creator_id=1, stream_id=stream_id, started_at=BASE_TIME)

    @pytest.mark.parametrize("verdict,expected", [
        (NOT_LIVE, Action.NOOP),
        (Unknown("timeout"), Action.NOOP),
        (live("A"), Action.OPEN),
    ])
    def test_no_open_session(self, verdict, expected):
        assert decide(None, verdict) is expected

    @pytest.mark.parametrize("verdict,expected", [
        (NOT_LIVE, Action.CLOSE),
        (Unknown("timeout"), Action.NOOP),
        (live("A"), Action.CONTINUE),
        (live("B"), Action.ROTATE),
    ])
    def test_with_open_session(self, verdict, expected):
        assert decide(self._open("A"), verdict) is expected


# ---------------------------------------------------------------------------
# B-E) apply_verdict against the store
# ---------------------------------------------------------------------------

class TestApplyVerdict:
    def test_open_records_first_sample(self, db, make_creator):
        creator = make_creator("3001")
        result = apply_verdict(db, creator.id, live("A", 150), at(0))
        db.commit()

        assert result.action is Action.OPEN
        assert result.sample is SampleOutcome.recorded
        session = get_open_session(db, creator.id)
        assert session.stream_id == "A"
        assert session.started_at == BASE_TIME
        assert session.peak_viewers == 150
        assert session.game_name == "Chess"
        assert _sample_count(db, session.id) == 1

    def test_unknown_does_not_close(self, db, make_creator):
        creator = make_creator("3002")
        apply_verdict(db, creator.id, live("A", 100), at(0))
        unknown = apply_verdict(db, creator.id, Unknown("batch timed out"), at(5))
        again = apply_verdict(db, creator.id, live("A", 120), at(10))
        db.commit()

        assert unknown.action is Action.NOOP
        assert again.action is Action.CONTINUE
        sessions = _sessions(db, creator.id)
        assert len(sessions) == 1
        assert sessions[0].ended_at is None
        assert _sample_count(db, sessions[0].id) == 2

    def test_not_live_closes_and_finalizes(self, db, make_creator):
        creator = make_creator("3003")
        apply_verdict(db, creator.id, live("A", 100), at(0))
        apply_verdict(db, creator.id, live("A", 300), at(5))
        result = apply_verdict(db, creator.id, NOT_LIVE, at(10))
        db.commit()

        assert result.action is Action.CLOSE
        session = db.get(StreamSession, result.closed_session_id)
        assert session.ended_at == at(10)
        assert session.avg_viewers == pytest.approx(200.0)
        assert session.hours_watched == pytest.approx(200.0 * 5 / 60)
        assert get_open_session(db, creator.id) is None

    def test_stream_change_rotates(self, db, make_creator):
        creator = make_creator("3004")
        apply_verdict(db, creator.id, live("A", 100), at(0))
        apply_verdict(db, creator.id, live("A", 100), at(5))
        result = apply_verdict(db, creator.id, live("B", 40), at(10))
        db.commit()

        assert result.action is Action.ROTATE
        old, new = _sessions(db, creator.id)
        assert old.stream_id == "A"
        assert old.ended_at == at(10)
        assert old.hours_watched == pytest.approx(100.0 * 5 / 60)
        assert new.stream_id == "B"
        assert new.ended_at is None
        assert _sample_count(db, new.id) == 1

    def test_continue_refreshes_title_and_category(self, db, make_creator):
        creator = make_creator("3005")
        apply_verdict(db, creator.id, live("A", title="first", category="Chess"), at(0))
        apply_verdict(db, creator.id, live("A", title="second", category="Art"), at(5))
        session = get_open_session(db, creator.id)
        assert session.title == "second"
        assert session.game_name == "Art"

    def test_failed_count_keeps_session_without_sample(self, db, make_creator):
        creator = make_creator("3006")
        result = apply_verdict(db, creator.id, live("A", Failed("viewer_count missing")), at(0))
        session = get_open_session(db, creator.id)

        assert result.action is Action.OPEN
        assert result.sample is SampleOutcome.rejected
        assert session.peak_viewers == 0
        assert _sample_count(db, session.id) == 0

    def test_same_stream_after_close_reopens(self, db, make_creator):
        creator = make_creator("3007")
        apply_verdict(db, creator.id, live("A", 100), at(0))
        apply_verdict(db, creator.id, NOT_LIVE, at(5))
        result = apply_verdict(db, creator.id, live("A", 200), at(10))
        db.commit()

        assert result.action is Action.OPEN
        sessions = _sessions(db, creator.id)
        assert len(sessions) == 1
        session = sessions[0]
        assert session.ended_at is None
        assert session.hours_watched is None
        assert session.avg_viewers is None
        assert session.peak_viewers == 200
        assert _sample_count(db, session.id) == 2

    def test_repeating_a_cycle_is_idempotent(self, db, make_creator):
        creator = make_creator("3008")
        apply_verdict(db, creator.id, live("A", 100), at(0))
        repeat = apply_verdict(db, creator.id, live("A", 100), at(0))
        db.commit()

        assert repeat.action is Action.CONTINUE
        assert repeat.sample is SampleOutcome.duplicate
        assert _sample_count(db, get_open_session(db, creator.id).id) == 1

    def test_not_live_without_session_is_noop(self, db, make_creator):
        creator = make_creator("3009")
        result = apply_verdict(db, creator.id, NOT_LIVE, at(0))
        assert result.action is Action.NOOP
        assert _sessions(db, creator.id) == []


# ---------------------------------------------------------------------------
# F) Poll state and review flag
# ---------------------------------------------------------------------------

class TestPollState:
    def test_unknown_streak_flags_creator(self, db, make_creator):
        creator = make_creator("3101")
        results = [
            apply_verdict(db, creator.id, Unknown("slug not resolved"), at(5 * i), review_threshold=3)
            for i in range(4)
        ]
        db.commit()

        assert [r.flagged_for_review for r in results] == [False, False, True, False]
        state = db.get(CreatorPollState, creator.id)
        assert state.needs_review is True
        assert state.consecutive_unknown == 4
        assert state.last_verdict == "unknown"
        assert state.last_reason == "slug not resolved"

    def test_definite_verdict_clears_flag(self, db, make_creator):
        creator = make_creator("3102")
        for i in range(3):
            apply_verdict(db, creator.id, Unknown("timeout"), at(5 * i), review_threshold=3)
        apply_verdict(db, creator.id, NOT_LIVE, at(15), review_threshold=3)
        db.commit()

        state = db.get(CreatorPollState, creator.id)
        assert state.needs_review is False
        assert state.consecutive_unknown == 0
        assert state.last_verdict == "not_live"
        assert state.last_polled_at == at(15)

    def test_threshold_zero_never_flags(self, db, make_creator):
        creator = make_creator("3103")
        for i in range(20):
            apply_verdict(db, creator.id, Unknown("timeout"), at(5 * i))
        assert db.get(CreatorPollState, creator.id).needs_review is False

    def test_flag_does_not_close_open_session(self, db, make_creator):
        creator = make_creator("3104")
        apply_verdict(db, creator.id, live("A"), at(0))
        for i in range(1, 5):
            apply_verdict(db, creator.id, Unknown("timeout"), at(5 * i), review_threshold=2)
        db.commit()

        assert db.get(CreatorPollState, creator.id).needs_review is True
        assert get_open_session(db, creator.id) is not None
