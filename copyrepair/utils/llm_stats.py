"""
Generator call statistics.

One LLMStatistics per generator instance: call outcomes, token usage and
time, broken down by call purpose (generate / repair / surgical).
"""
from dataclasses import dataclass, field
from typing import Any
import time
import logging

logger = logging.getLogger(__name__)


@dataclass
class PurposeStats:
    """Counters for one call purpose."""
    calls: int = 0
    failed: int = 0
    time: float = 0.0
    completion_tokens: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "calls": self.calls,
            "failed": self.failed,
            "time": round(self.time, 2),
            "completion_tokens": self.completion_tokens,
        }


@dataclass
class LLMStatistics:
    """Statistics for generator calls."""
    total_calls: int = 0
    successful_calls: int = 0
    failed_calls: int = 0

    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_time: float = 0.0

    # Retries scheduled by the backoff policy
    retry_attempts: int = 0
    rate_limit_errors: int = 0

    by_purpose: dict[str, PurposeStats] = field(default_factory=dict)

    def add_call(
        self,
        success: bool,
        purpose: str = None,
        prompt_tokens: int = 0,
        completion_tokens: int = 0,
        elapsed_time: float = 0.0
    ):
        """Record one finished call, retries included."""
        self.total_calls += 1
        if success:
            self.successful_calls += 1
        else:
            self.failed_calls += 1
        self.total_prompt_tokens += prompt_tokens
        self.total_completion_tokens += completion_tokens
        self.total_time += elapsed_time

        if purpose:
            bucket = self.by_purpose.setdefault(purpose, PurposeStats())
            bucket.calls += 1
            bucket.time += elapsed_time
            bucket.completion_tokens += completion_tokens
            if not success:
                bucket.failed += 1

    def add_retry(self, is_rate_limit: bool = False):
        self.retry_attempts += 1
        if is_rate_limit:
            self.rate_limit_errors += 1

    def get_summary(self) -> dict[str, Any]:
        calls = max(self.total_calls, 1)
        return {
            "calls": {
                "total": self.total_calls,
                "successful": self.successful_calls,
                "failed": self.failed_calls,
                "success_rate": f"{self.successful_calls / calls * 100:.1f}%",
            },
            "tokens": {
                "total": self.total_prompt_tokens + self.total_completion_tokens,
                "prompt": self.total_prompt_tokens,
                "completion": self.total_completion_tokens,
            },
            "timing": {
                "total_seconds": round(self.total_time, 2),
                "avg_per_call": round(self.total_time / calls, 2),
            },
            "retries": {
                "attempts": self.retry_attempts,
                "rate_limit_errors": self.rate_limit_errors,
            },
            "per_purpose": {name: bucket.to_dict() for name, bucket in self.by_purpose.items()},
        }

    def log_summary(self):
        summary = self.get_summary()
        logger.info(
            f"Generator stats: {summary['calls']['total']} calls "
            f"({summary['calls']['success_rate']} ok), {summary['tokens']['total']} tokens, "
            f"{summary['retries']['attempts']} retries, {summary['timing']['total_seconds']}s"
        )


class StatsTimer:
    """Context manager measuring wall time of a call."""

    def __init__(self):
        self._start = 0.0
        self.elapsed = 0.0

    def __enter__(self):
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self._start
        return False
