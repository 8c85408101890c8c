"""
Metrics Collection for the repeating task engine.

In-process counters and timers for materialization passes.
"""

import threading
import time
from collections import defaultdict
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Dict

OCCURRENCES_SPAWNED = "occurrences_spawned_total"
SPAWNS_SKIPPED = "spawns_skipped_total"
COMPLETIONS_ADVANCED = "completions_advanced_total"
MATERIALIZATION_ERRORS = "materialization_errors_total"
PASS_DURATION = "materialization_pass_seconds"


class MetricsCollector:
    """Collects and manages metrics for materialization."""

    def __init__(self):
        """Initialize metrics collector."""
        self.metrics = defaultdict(int)
        self.timers = defaultdict(float)
        self.lock = threading.Lock()
        self.reset()

    def reset(self):
        with self.lock:
            self.metrics.clear()
            self.timers.clear()
            for name in (OCCURRENCES_SPAWNED, SPAWNS_SKIPPED, COMPLETIONS_ADVANCED, MATERIALIZATION_ERRORS):
                self.metrics[name] = 0

    def increment_counter(self, metric_name: str, value: int = 1):
        """Increment a counter metric."""
        with self.lock:
            self.metrics[metric_name] += value

    def record_timer(self, metric_name: str, duration: float):
        """Record a timing metric."""
        with self.lock:
            self.timers[metric_name] += duration

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics values."""
        with self.lock:
            return {
                "counters": dict(self.metrics),
                "timers": dict(self.timers),
                "timestamp": datetime.utcnow().isoformat()
            }

    def occurrence_spawned(self):
        self.increment_counter(OCCURRENCES_SPAWNED)

    def spawn_skipped(self):
        self.increment_counter(SPAWNS_SKIPPED)

    def completion_advanced(self):
        self.increment_counter(COMPLETIONS_ADVANCED)

    def materialization_error(self):
        self.increment_counter(MATERIALIZATION_ERRORS)

    def time_operation(self, metric_name: str) -> Callable:
        """Decorator that adds the wrapped call's duration to a timer."""
        def decorator(func):
            @wraps(func)
            def wrapper(*args, **kwargs):
                start_time = time.time()
                try:
                    return func(*args, **kwargs)
                finally:
                    self.record_timer(metric_name, time.time() - start_time)
            return wrapper
        return decorator


# Global metrics instance
metrics_collector = MetricsCollector()
