from datetime import timedelta

import feeds_crud as crud
import models
from conftest import FIXED_NOW, FakeParser, item, make_feed
from database import SessionLocal
from errors import ParseError
from gateway import RefreshGateway
from worker import FeedWorker

URL = "https://example.com/feed.xml"
LATER = FIXED_NOW + timedelta(days=1)


def _worker(scheduler, parser):
    gateway = RefreshGateway(scheduler, SessionLocal, parser)
    return FeedWorker(scheduler, gateway, poll_interval=0.01, max_workers=1)


def test_due_trigger_runs_ingestion(db, world, scheduler):
    feed = make_feed(db, world["collection"], URL, update_freq="hourly")
    scheduler.schedule_feed(feed.id)
    parser = FakeParser({URL: [item(link="https://a/1"), item(link="https://a/2")]})
    worker = _worker(scheduler, parser)

    results = worker.run_pending(LATER)

    assert results == [{"processed": 2, "created": 2}]
    assert crud.count_articles(db, feed.id) == 2
    stats = worker.monitor.get_stats()
    assert stats["success_count"] == 1
    assert stats["articles_created"] == 2
    # released to the next hourly slot once done
    assert scheduler.get_trigger(feed.id)["nextRunAt"] == LATER.replace(minute=0) + timedelta(hours=1)


def test_failure_is_logged_and_trigger_survives(db, world, scheduler):
    feed = make_feed(db, world["collection"], URL, update_freq="hourly")
    scheduler.schedule_feed(feed.id)
    worker = _worker(scheduler, FakeParser({URL: ParseError("garbage")}))

    assert worker.run_pending(LATER) == [None]

    assert scheduler.get_trigger(feed.id) is not None
    assert worker.monitor.get_stats()["errors_by_type"] == {"ParseError": 1}

    # next firing still happens
    assert len(scheduler.claim_due(LATER + timedelta(hours=1))) == 1


def test_scheduled_firing_of_inactive_feed_is_refused(db, world, scheduler):
    feed = make_feed(db, world["collection"], URL, update_freq="hourly", status=models.FeedStatus.INACTIVE)
    scheduler.schedule_feed(feed.id)
    parser = FakeParser({URL: [item(link="https://a/1")]})
    worker = _worker(scheduler, parser)

    assert worker.run_pending(LATER) == [None]

    assert parser.calls == []
    assert crud.count_articles(db, feed.id) == 0
    assert worker.monitor.get_stats()["errors_by_type"] == {"InvalidState": 1}


def test_firing_for_deleted_feed_drops_its_trigger(db, world, scheduler):
    feed = make_feed(db, world["collection"], URL, update_freq="hourly")
    feed_id = feed.id
    scheduler.schedule_feed(feed_id)
    # row removed without going through feed removal, e.g. collection deleted
    db.query(models.Feed).filter(models.Feed.id == feed_id).delete(synchronize_session=False)
    db.commit()
    worker = _worker(scheduler, FakeParser())

    assert worker.run_pending(LATER) == [None]

    assert worker.monitor.get_stats()["errors_by_type"] == {"NotFound": 1}
    assert scheduler.get_trigger(feed_id) is None
    assert worker.run_pending(LATER + timedelta(days=1)) == []


def test_start_and_stop(db, world, scheduler):
    worker = _worker(scheduler, FakeParser())
    worker.start()
    worker.start()
    worker.stop()
    worker.stop()
    assert worker._thread is None
