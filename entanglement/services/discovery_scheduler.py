"""
Deduplicated discovery queue drained periodically by a bounded worker pool.

The pending and in-flight sets are local to one scheduler instance. Running
several engine processes against the same graph gives no cross-process
exclusivity.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, List, Optional, Tuple

from ..utils.logging_config import get_logger

logger = get_logger(__name__)

QueueKey = Tuple[str, str]
IDLE_JOIN_TIMEOUT = 1.0
DiscoveryRunner = Callable[[str, str, threading.Event], Any]


class DiscoveryScheduler:
    """Queue of (memory_id, user_id) entries with at most one run per memory at a time."""

    def __init__(self, run_discovery: DiscoveryRunner, batch_size: int = 10, interval_seconds: float = 300.0):
        """
        Args:
            run_discovery: Called as run_discovery(memory_id, user_id, cancel_event) for each entry
            batch_size: Maximum entries started per tick, also the worker pool size
            interval_seconds: Time between ticks
        """
        self.run_discovery = run_discovery
        self.batch_size = max(1, batch_size)
        self.interval_seconds = interval_seconds

        self._pending = {}  # insertion-ordered set of QueueKey
        self._in_flight = set()
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def pending_entries(self) -> List[QueueKey]:
        with self._lock:
            return list(self._pending)

    def in_flight_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._in_flight)

    def queue_for_discovery(self, memory_id: str, user_id: str) -> bool:
        """
        Add an entry to the pending set.

        Returns:
            True if the entry was new, False if it was already queued
        """
        key = (str(memory_id), str(user_id))
        with self._lock:
            if key in self._pending:
                return False
            self._pending[key] = None

        logger.info(f'Memory {memory_id} queued for entanglement discovery (user {user_id})')
        return True

    def _claim_batch(self) -> List[QueueKey]:
        """Move up to batch_size pending entries whose memory is idle into the in-flight set."""
        claimed = []
        with self._lock:
            for key in list(self._pending):
                if len(claimed) >= self.batch_size:
                    break
                memory_id = key[0]
                # Entries for a memory already running stay pending for a later tick
                if memory_id in self._in_flight:
                    continue
                self._in_flight.add(memory_id)
                del self._pending[key]
                claimed.append(key)
        return claimed

    def _run_one(self, memory_id: str, user_id: str) -> None:
        try:
            self.run_discovery(memory_id, user_id, self._stop_event)
        except Exception as e:
            logger.warning(f'Discovery queue processing failed for memory {memory_id}: {e}')
        finally:
            with self._lock:
                self._in_flight.discard(memory_id)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=self.batch_size, thread_name_prefix='entanglement-discovery')
        return self._executor

    def process_batch(self) -> int:
        """
        Run one batch and wait for it to finish.

        Returns:
            Number of entries started
        """
        claimed = self._claim_batch()
        if not claimed:
            return 0

        logger.debug(f'Processing discovery batch of {len(claimed)} memories')
        executor = self._get_executor()
        futures = [executor.submit(self._run_one, memory_id, user_id) for memory_id, user_id in claimed]
        wait(futures)
        return len(claimed)

    def _loop(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            if self.pending_count:
                try:
                    self.process_batch()
                except Exception as e:
                    logger.error(f'Discovery batch failed: {e}')

    def start(self) -> None:
        """Start ticking on a daemon thread."""
        if self._thread is not None and self._thread.is_alive():
            logger.warning('Discovery scheduler already running')
            return

        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name='entanglement-discovery-scheduler', daemon=True)
        self._thread.start()
        logger.info(f'Starting automatic entanglement discovery every {self.interval_seconds}s')

    def stop(self, wait_for_runs: bool = True) -> None:
        """Stop ticking and signal cancellation to discoveries in progress."""
        self._stop_event.set()
        if self._thread is not None:
            # An idle loop wakes as soon as the stop event is set; only a running batch keeps it alive
            busy = wait_for_runs and bool(self.in_flight_ids())
            self._thread.join(timeout=None if busy else IDLE_JOIN_TIMEOUT)
            self._thread = None
        if self._executor is not None:
            self._executor.shutdown(wait=wait_for_runs)
            self._executor = None

    def clear(self) -> None:
        with self._lock:
            self._pending.clear()
            self._in_flight.clear()
