# worker.py
"""Runs due recurring triggers against the refresh gateway."""
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime
from typing import Optional

import redis

from config import settings
from contracts import FeedRefresher
from errors import NotFound, RSSReaderError
from logger import logger
from monitoring import JobMonitor
from scheduler import FeedScheduler


class FeedWorker:
    def __init__(
        self,
        scheduler: FeedScheduler,
        refresher: FeedRefresher,
        monitor: Optional[JobMonitor] = None,
        poll_interval: Optional[float] = None,
        max_workers: Optional[int] = None,
    ):
        self.scheduler = scheduler
        self.refresher = refresher
        self.monitor = monitor or JobMonitor()
        self.poll_interval = poll_interval if poll_interval is not None else settings.SCHEDULER_POLL_INTERVAL
        self.max_workers = max_workers or settings.WORKER_THREADS
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._pool: Optional[ThreadPoolExecutor] = None

    def run_job(self, trigger: dict) -> Optional[dict]:
        """Execute one firing. Failures are logged, never raised: the trigger stays registered."""
        feed_id = int(trigger["feedId"])
        actor_id = trigger.get("actorId")
        started = time.monotonic()
        try:
            result = self.refresher.refresh_scheduled(feed_id, actor_id)
        except NotFound as e:
            self.monitor.record_failure(feed_id, time.monotonic() - started, e)
            # the feed row is gone without going through removal
            logger.warning(f"Feed #{feed_id} no longer exists, dropping its trigger")
            self.scheduler.unschedule_feed(feed_id)
            return None
        except RSSReaderError as e:
            self.monitor.record_failure(feed_id, time.monotonic() - started, e)
            logger.warning(f"Refresh of feed #{feed_id} failed ({type(e).__name__}): {e.message}")
            return None
        except Exception as e:
            self.monitor.record_failure(feed_id, time.monotonic() - started, e)
            logger.error(f"Refresh of feed #{feed_id} crashed: {e}", exc_info=True)
            return None
        self.monitor.record_success(feed_id, time.monotonic() - started, result.get("created", 0))
        logger.info(f"Refreshed feed #{feed_id} for user #{actor_id}: {result}")
        return result

    def process(self, trigger: dict) -> Optional[dict]:
        """Run a claimed trigger, then release it to its next fire time."""
        try:
            return self.run_job(trigger)
        finally:
            try:
                self.scheduler.complete(trigger)
            except redis.RedisError as e:
                # lease expiry re-delivers the firing
                logger.error(f"Could not complete trigger {trigger['name']}: {e}")

    def run_pending(self, now: Optional[datetime] = None) -> list:
        """Claim due triggers and run them in the calling thread."""
        return [self.process(t) for t in self.scheduler.claim_due(now)]

    def _loop(self):
        while not self._stop.is_set():
            try:
                for trigger in self.scheduler.claim_due():
                    self._pool.submit(self.process, trigger)
            except Exception as e:
                # Redis hiccup: keep polling
                logger.error(f"Worker poll failed: {e}", exc_info=True)
            self._stop.wait(self.poll_interval)

    def start(self):
        if self._thread is not None:
            return
        self._stop.clear()
        self._pool = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="feed-refresh")
        self._thread = threading.Thread(target=self._loop, name="feed-refresh-poller", daemon=True)
        self._thread.start()
        logger.info(f"Feed worker started (poll every {self.poll_interval}s, {self.max_workers} threads)")

    def stop(self, timeout: float = 10.0):
        if self._thread is None:
            return
        self._stop.set()
        self._thread.join(timeout=timeout)
        self._thread = None
        self._pool.shutdown(wait=True)
        self._pool = None
        logger.info("Feed worker stopped")
