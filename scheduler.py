# scheduler.py
"""Recurring refresh triggers kept in Redis, one per feed.

Layout under the configured prefix:
  <prefix>:repeat    hash  trigger name -> JSON {name, feedId, actorId, pattern}
  <prefix>:schedule  zset  trigger name -> next fire time, or lease expiry while a
                           claimed firing runs (epoch seconds)
"""
import json
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import redis
from croniter import croniter
from sqlalchemy.orm import Session

import feeds_crud as crud
from config import settings
from logger import logger

FREQ_TO_CRON = {
    "hourly": "0 * * * *",
    "6h": "0 */6 * * *",
    "daily": "0 6 * * *",
}
DEFAULT_FREQ = "daily"
TRIGGER_FIELDS = ("name", "feedId", "actorId", "pattern")


def get_pattern(freq: Optional[str]) -> str:
    # unspecified and unknown frequencies both fall back to daily
    return FREQ_TO_CRON.get(freq or DEFAULT_FREQ, FREQ_TO_CRON[DEFAULT_FREQ])


def trigger_name(feed_id: int) -> str:
    return f"feed:{feed_id}"


def next_fire_time(pattern: str, after: datetime) -> datetime:
    return croniter(pattern, after).get_next(datetime)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FeedScheduler:
    """Owns the feed -> recurring trigger mapping."""

    def __init__(
        self,
        conn: redis.Redis,
        session_factory: Callable[[], Session],
        prefix: Optional[str] = None,
        clock: Callable[[], datetime] = _utcnow,
        lease_seconds: Optional[float] = None,
    ):
        self.conn = conn
        self.session_factory = session_factory
        self.prefix = prefix or settings.SCHEDULER_KEY_PREFIX
        self.repeat_key = f"{self.prefix}:repeat"
        self.schedule_key = f"{self.prefix}:schedule"
        self.clock = clock
        self.lease_seconds = lease_seconds if lease_seconds is not None else settings.SCHEDULER_LEASE_SECONDS

    def schedule_feed(self, feed_id: int) -> Optional[dict]:
        db = self.session_factory()
        try:
            feed = crud.get_feed(db, feed_id)
            if feed is None:
                # deleted concurrently with the request
                return None
            actor_id = crud.get_collection_owner_id(db, feed.collection_id)
            freq = feed.update_freq
        finally:
            db.close()

        name = trigger_name(feed_id)
        pattern = get_pattern(freq)
        pipe = self.conn.pipeline(transaction=True)
        pipe.hdel(self.repeat_key, name)
        pipe.zrem(self.schedule_key, name)
        trigger = {"name": name, "feedId": feed_id, "actorId": actor_id, "pattern": pattern}
        next_run = next_fire_time(pattern, self.clock())
        pipe.hset(self.repeat_key, name, json.dumps(trigger))
        pipe.zadd(self.schedule_key, {name: next_run.timestamp()})
        pipe.execute()
        logger.info(f"Scheduled {name} ({freq or DEFAULT_FREQ}: '{pattern}'), next run {next_run.isoformat()}")
        return {**trigger, "nextRunAt": next_run}

    def unschedule_feed(self, feed_id: int) -> None:
        name = trigger_name(feed_id)
        pipe = self.conn.pipeline(transaction=True)
        pipe.hdel(self.repeat_key, name)
        pipe.zrem(self.schedule_key, name)
        removed, _ = pipe.execute()
        if removed:
            logger.info(f"Unscheduled {name}")

    def schedule_all_feeds(self) -> dict:
        db = self.session_factory()
        try:
            feed_ids = crud.list_feed_ids(db)
        finally:
            db.close()
        for feed_id in feed_ids:
            self.schedule_feed(feed_id)
        pruned = self._prune(set(feed_ids))
        logger.info(f"Rescheduled {len(feed_ids)} feeds, pruned {pruned} stale triggers")
        return {"scheduled": len(feed_ids)}

    def _prune(self, known_ids: set) -> int:
        """Drop triggers whose feed row is gone (collection deleted, lost race with a removal)."""
        names = set(self.conn.hkeys(self.repeat_key)) | set(self.conn.zrange(self.schedule_key, 0, -1))
        candidates = {}
        for name in names:
            name = name.decode() if isinstance(name, bytes) else name
            if not name.startswith("feed:"):
                continue
            try:
                feed_id = int(name.split(":", 1)[1])
            except ValueError:
                continue
            if feed_id not in known_ids:
                candidates[feed_id] = name
        if not candidates:
            return 0

        # a feed created after the listing above must keep its trigger
        db = self.session_factory()
        try:
            stale = [name for feed_id, name in candidates.items() if crud.get_feed(db, feed_id) is None]
        finally:
            db.close()
        if stale:
            pipe = self.conn.pipeline(transaction=True)
            pipe.hdel(self.repeat_key, *stale)
            pipe.zrem(self.schedule_key, *stale)
            pipe.execute()
            for name in stale:
                logger.info(f"Pruned stale trigger {name}")
        return len(stale)

    def _load(self, name: str, raw, score) -> Optional[dict]:
        if raw is None:
            return None
        trigger = json.loads(raw)
        if score is not None:
            trigger["nextRunAt"] = datetime.fromtimestamp(float(score), tz=timezone.utc)
        else:
            trigger["nextRunAt"] = None
        return trigger

    def get_trigger(self, feed_id: int) -> Optional[dict]:
        name = trigger_name(feed_id)
        pipe = self.conn.pipeline(transaction=True)
        pipe.hget(self.repeat_key, name)
        pipe.zscore(self.schedule_key, name)
        raw, score = pipe.execute()
        return self._load(name, raw, score)

    def list_triggers(self) -> list[dict]:
        entries = self.conn.hgetall(self.repeat_key)
        triggers = []
        for name, raw in entries.items():
            name = name.decode() if isinstance(name, bytes) else name
            triggers.append(self._load(name, raw, self.conn.zscore(self.schedule_key, name)))
        return sorted(triggers, key=lambda t: t["feedId"])

    def claim_due(self, now: Optional[datetime] = None) -> list[dict]:
        """Lease the triggers due at `now` to the caller.

        A claimed trigger is pushed `lease_seconds` ahead rather than to its next
        fire time. If the process dies before `complete` runs, the firing is
        handed out again when the lease expires. A trigger replaced or removed
        between the read and the claim is skipped.
        """
        now = now or self.clock()
        lease_until = now + timedelta(seconds=self.lease_seconds)
        due = self.conn.zrangebyscore(self.schedule_key, "-inf", now.timestamp())
        claimed = []
        for name in due:
            name = name.decode() if isinstance(name, bytes) else name
            with self.conn.pipeline(transaction=True) as pipe:
                try:
                    pipe.watch(self.repeat_key, self.schedule_key)
                    score = pipe.zscore(self.schedule_key, name)
                    raw = pipe.hget(self.repeat_key, name)
                    if score is None or raw is None or float(score) > now.timestamp():
                        pipe.unwatch()
                        continue
                    pipe.multi()
                    pipe.zadd(self.schedule_key, {name: lease_until.timestamp()})
                    pipe.execute()
                except redis.WatchError:
                    logger.info(f"Trigger {name} changed while claiming, skipped")
                    continue
            trigger = json.loads(raw)
            trigger["firedAt"] = now
            trigger["leaseUntil"] = lease_until
            trigger["nextRunAt"] = next_fire_time(trigger["pattern"], now)
            claimed.append(trigger)
        return claimed

    def complete(self, trigger: dict) -> bool:
        """Move a claimed trigger on to its next fire time.

        Returns False when the trigger was re-registered, removed or re-claimed
        while its job ran; the registry is then left as it is.
        """
        name = trigger["name"]
        definition = {key: trigger[key] for key in TRIGGER_FIELDS}
        with self.conn.pipeline(transaction=True) as pipe:
            try:
                pipe.watch(self.repeat_key, self.schedule_key)
                score = pipe.zscore(self.schedule_key, name)
                raw = pipe.hget(self.repeat_key, name)
                if (
                    score is None
                    or raw is None
                    or json.loads(raw) != definition
                    or abs(float(score) - trigger["leaseUntil"].timestamp()) > 0.001
                ):
                    pipe.unwatch()
                    return False
                pipe.multi()
                pipe.zadd(self.schedule_key, {name: trigger["nextRunAt"].timestamp()})
                pipe.execute()
            except redis.WatchError:
                return False
        return True
