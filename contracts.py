# contracts.py
"""Capabilities the refresh gateway and the job side see of each other.

Concrete instances are wired in main.py at startup.
"""
from typing import Optional, Protocol


class FeedScheduling(Protocol):
    def schedule_feed(self, feed_id: int) -> Optional[dict]: ...

    def unschedule_feed(self, feed_id: int) -> None: ...

    def schedule_all_feeds(self) -> dict: ...

    def get_trigger(self, feed_id: int) -> Optional[dict]: ...


class FeedRefresher(Protocol):
    def refresh_scheduled(self, feed_id: int, actor_id: Optional[int]) -> dict: ...
