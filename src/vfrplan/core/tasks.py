"""Cancellable background jobs with generation-tagged completions.

Long-running work (opening an archive, parsing NASR data, decoding a chart)
runs on a worker thread. Results come back over a single-consumer queue and
are dispatched on the owning thread when it calls ``process()``. Each logical
slot (e.g. "nasr" or "chart:0") carries a generation counter; submitting new
work to a slot cancels the previous job and any result it still produces is
discarded on arrival.

Typical usage example:
    from vfrplan.core.tasks import BackgroundLoader

    loader = BackgroundLoader(handler=on_complete)
    loader.submit("nasr", lambda cancel: load_nasr_archive(path, cancel=cancel))
    ...
    loader.process()  # Call from the UI loop
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from queue import Empty, Queue
from typing import Any

from vfrplan.core.errors import OperationCancelled

logger = logging.getLogger(__name__)


class CancelToken:
    """Cooperative cancellation flag shared between a job and its owner."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        """Request cancellation. Safe to call more than once."""
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelled if cancellation was requested.

        Raises:
            OperationCancelled: If cancel() has been called.
        """
        if self._event.is_set():
            raise OperationCancelled("operation cancelled")


@dataclass(frozen=True)
class Completion:
    """Outcome of one background job.

    Attributes:
        slot: Logical slot the job was submitted to.
        generation: Slot generation the job was tagged with.
        result: Job return value (None on failure).
        error: Exception raised by the job, or None on success.
    """

    slot: str
    generation: int
    result: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


Job = Callable[[CancelToken], Any]
CompletionHandler = Callable[[Completion], None]


class BackgroundLoader:
    """Runs jobs on worker threads and hands back only current results.

    Examples:
        >>> loader = BackgroundLoader()
        >>> loader.submit("chart:0", lambda cancel: open_chart_package(path))
        1
        >>> loader.wait()
        >>> [c.result for c in loader.process()]
        [ChartPackage(...)]
    """

    def __init__(self, handler: CompletionHandler | None = None) -> None:
        """Initialize the loader.

        Args:
            handler: Optional callable invoked by process() for each
                current-generation completion.
        """
        self._handler = handler
        self._queue: Queue[Completion] = Queue()
        self._lock = threading.Lock()
        self._generations: dict[str, int] = {}
        self._tokens: dict[str, CancelToken] = {}
        self._threads: list[threading.Thread] = []

    def submit(self, slot: str, job: Job) -> int:
        """Start a job in a slot, superseding any job already running there.

        Args:
            slot: Logical slot name.
            job: Callable receiving a CancelToken and returning the result.

        Returns:
            The generation number assigned to the job.
        """
        token = CancelToken()
        with self._lock:
            previous = self._tokens.get(slot)
            if previous is not None:
                previous.cancel()
            generation = self._generations.get(slot, 0) + 1
            self._generations[slot] = generation
            self._tokens[slot] = token
            self._threads = [t for t in self._threads if t.is_alive()]

            thread = threading.Thread(
                target=self._run,
                args=(slot, generation, job, token),
                name=f"vfrplan-{slot}-{generation}",
                daemon=True,
            )
            self._threads.append(thread)

        logger.debug("Submitted job to slot %s (generation %d)", slot, generation)
        thread.start()
        return generation

    def _run(self, slot: str, generation: int, job: Job, token: CancelToken) -> None:
        try:
            result = job(token)
        except OperationCancelled as e:
            logger.debug("Job in slot %s (generation %d) cancelled", slot, generation)
            self._queue.put(Completion(slot, generation, error=e))
        except Exception as e:
            logger.warning("Job in slot %s (generation %d) failed: %s", slot, generation, e)
            self._queue.put(Completion(slot, generation, error=e))
        else:
            self._queue.put(Completion(slot, generation, result=result))

    def current_generation(self, slot: str) -> int:
        """Return the latest generation submitted to a slot (0 if none)."""
        with self._lock:
            return self._generations.get(slot, 0)

    def is_current(self, completion: Completion) -> bool:
        return completion.generation == self.current_generation(completion.slot)

    def cancel(self, slot: str) -> None:
        """Cancel the job in a slot and make any late result stale."""
        with self._lock:
            token = self._tokens.pop(slot, None)
            if token is not None:
                token.cancel()
            self._generations[slot] = self._generations.get(slot, 0) + 1

    def process(self, max_completions: int = 100) -> list[Completion]:
        """Dispatch queued completions on the calling thread.

        Stale completions (from a superseded or cancelled generation) are
        logged and dropped.

        Args:
            max_completions: Upper bound on completions taken this call.

        Returns:
            Current-generation completions, in arrival order.
        """
        delivered: list[Completion] = []

        for _ in range(max_completions):
            try:
                completion = self._queue.get_nowait()
            except Empty:
                break

            if not self.is_current(completion):
                logger.info(
                    "Discarding stale result for slot %s (generation %d)",
                    completion.slot,
                    completion.generation,
                )
                continue

            with self._lock:
                if self._tokens.get(completion.slot) is not None:
                    del self._tokens[completion.slot]

            delivered.append(completion)
            if self._handler is not None:
                self._handler(completion)

        return delivered

    def pending(self) -> bool:
        """Return True while any worker thread is still running."""
        with self._lock:
            return any(t.is_alive() for t in self._threads)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until all worker threads finish.

        Args:
            timeout: Overall time limit in seconds, or None to wait forever.

        Returns:
            True if every worker finished within the timeout.
        """
        with self._lock:
            threads = list(self._threads)

        if timeout is None:
            for thread in threads:
                thread.join()
            return True

        deadline = time.monotonic() + timeout
        for thread in threads:
            thread.join(max(0.0, deadline - time.monotonic()))
        return not any(t.is_alive() for t in threads)

    def shutdown(self, timeout: float | None = 5.0) -> None:
        """Cancel every slot, wait for workers, and drop queued results."""
        with self._lock:
            slots = list(self._generations)
        for slot in slots:
            self.cancel(slot)

        if not self.wait(timeout):
            logger.warning("Background jobs still running at shutdown")

        while True:
            try:
                self._queue.get_nowait()
            except Empty:
                break
