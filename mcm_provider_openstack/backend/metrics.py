"""Request accounting for outbound cloud calls."""

import threading
from collections import Counter


class MetricsRecorder:
    """Counts outbound API requests and failures per provider and service.

    One recorder is built per process and handed to every client, so the
    counters cover all calls regardless of which executor issued them.
    """

    def __init__(self) -> None:
        """Init empty counters."""
        self._lock = threading.Lock()
        self._requests: Counter = Counter()
        self._failures: Counter = Counter()

    def record_request(self, provider: str, service: str) -> None:
        """Count one request."""
        with self._lock:
            self._requests[(provider, service)] += 1

    def record_failure(self, provider: str, service: str) -> None:
        """Count one failed request."""
        with self._lock:
            self._failures[(provider, service)] += 1

    def request_count(self, provider: str, service: str) -> int:
        """Return the number of requests issued to the service."""
        with self._lock:
            return self._requests[(provider, service)]

    def failure_count(self, provider: str, service: str) -> int:
        """Return the number of failed requests issued to the service."""
        with self._lock:
            return self._failures[(provider, service)]

    def snapshot(self) -> dict[str, dict[str, int]]:
        """Return the counters keyed by ``provider/service``."""
        with self._lock:
            keys = set(self._requests) | set(self._failures)
            return {
                f"{provider}/{service}": {
                    "requests": self._requests[(provider, service)],
                    "failures": self._failures[(provider, service)],
                }
                for provider, service in sorted(keys)
            }
