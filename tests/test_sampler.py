"""
Tests for the viewer sampler and the inline quality check.
"""
from conftest import BASE_TIME, at
from watchtime.models.stream_session import StreamSession
from watchtime.models.viewer_sample import ViewerSample
from watchtime.services.platforms.base import Failed, Live, Ok
from watchtime.services.quality import accept_viewer_count, is_valid_count
from watchtime.services.sampler import SampleOutcome, record_sample


def _open(db, creator):
    session = StreamSession(creator_id=creator.id, stream_id="s-1", started_at=BASE_TIME, peak_viewers=0)
    db.add(session)
    db.flush()
    return session


def _live(count, category="Just Chatting"):
    return Live(external_stream_id="s-1", viewer_count=count, category=category)


def _samples(db, session):
    return db.query(ViewerSample).filter(ViewerSample.session_id == session.id).all()


class TestAcceptViewerCount:
    def test_ok_value_accepted(self):
        assert accept_viewer_count(Ok(250)) == 250

    def test_explicit_zero_accepted(self):
        assert accept_viewer_count(Ok(0)) == 0

    def test_failed_rejected(self):
        assert accept_viewer_count(Failed("timeout")) is None

    def test_negative_ok_rejected(self):
        assert accept_viewer_count(Ok(-5)) is None

    def test_is_valid_count(self):
        assert is_valid_count(0)
        assert is_valid_count(10)
        assert not is_valid_count(-1)
        assert not is_valid_count(None)
        assert not is_valid_count(True)
        assert not is_valid_count(3.5)


class TestRecordSample:
    def test_records_and_bumps_peak(self, db, make_creator):
        session = _open(db, make_creator("2001"))
        assert record_sample(db, session, _live(Ok(120)), at(0)) is SampleOutcome.recorded
        assert record_sample(db, session, _live(Ok(80)), at(5)) is SampleOutcome.recorded

        rows = _samples(db, session)
        assert [r.viewer_count for r in rows] == [120, 80]
        assert rows[0].game_name == "Just Chatting"
        assert session.peak_viewers == 120

    def test_failed_count_never_stored(self, db, make_creator):
        session = _open(db, make_creator("2002"))
        outcome = record_sample(db, session, _live(Failed("viewer_count missing")), at(0))

        assert outcome is SampleOutcome.rejected
        assert _samples(db, session) == []
        assert session.peak_viewers == 0

    def test_duplicate_timestamp(self, db, make_creator):
        session = _open(db, make_creator("2003"))
        record_sample(db, session, _live(Ok(10)), at(0))
        assert record_sample(db, session, _live(Ok(99)), at(0)) is SampleOutcome.duplicate
        assert len(_samples(db, session)) == 1
        assert session.peak_viewers == 10

    def test_out_of_order_dropped(self, db, make_creator):
        session = _open(db, make_creator("2004"))
        record_sample(db, session, _live(Ok(10)), at(10))
        assert record_sample(db, session, _live(Ok(500)), at(5)) is SampleOutcome.out_of_order
        assert len(_samples(db, session)) == 1
        assert session.peak_viewers == 10
