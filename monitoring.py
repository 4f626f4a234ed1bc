# monitoring.py
import os
import threading
from datetime import datetime, timezone
from typing import Dict, List

import psutil

from logger import logger


class JobMonitor:
    """Counters and timings of refresh job firings (per process)."""

    def __init__(self, keep_last: int = 200):
        self.keep_last = keep_last
        self.lock = threading.Lock()
        self.durations: List[float] = []
        self.success_count = 0
        self.error_count = 0
        self.articles_created = 0
        self.errors_by_type: Dict[str, int] = {}
        self.last_run_at: datetime | None = None

    def record_success(self, feed_id: int, duration: float, created: int):
        with self.lock:
            self.success_count += 1
            self.articles_created += created
            self._record_duration(duration)

    def record_failure(self, feed_id: int, duration: float, error: BaseException):
        with self.lock:
            self.error_count += 1
            kind = type(error).__name__
            self.errors_by_type[kind] = self.errors_by_type.get(kind, 0) + 1
            self._record_duration(duration)

    def _record_duration(self, duration: float):
        self.last_run_at = datetime.now(timezone.utc)
        self.durations.append(duration)
        # Keep only the most recent firings
        if len(self.durations) > self.keep_last:
            self.durations = self.durations[-self.keep_last:]

    def get_stats(self) -> Dict:
        with self.lock:
            times = list(self.durations)
            total = self.success_count + self.error_count
            stats = {
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "total_runs": total,
                "success_count": self.success_count,
                "error_count": self.error_count,
                "error_rate": self.error_count / max(1, total),
                "articles_created": self.articles_created,
                "errors_by_type": dict(self.errors_by_type),
                "last_run_at": self.last_run_at.isoformat() if self.last_run_at else None,
            }
        if times:
            stats["durations"] = {
                "avg_time": sum(times) / len(times),
                "max_time": max(times),
                "min_time": min(times),
                "p95_time": sorted(times)[int(len(times) * 0.95)] if len(times) > 1 else times[0],
            }
        stats["system"] = self.get_system_stats()
        return stats

    def get_system_stats(self) -> Dict:
        process = psutil.Process(os.getpid())
        memory_info = process.memory_info()
        return {
            "memory_mb": memory_info.rss / 1024 / 1024,
            "memory_percent": process.memory_percent(),
            "cpu_percent": process.cpu_percent(),
            "threads": process.num_threads(),
        }

    def log_stats(self):
        logger.info(f"JOB_METRICS - {self.get_stats()}")
