import asyncio
import logging
from typing import Awaitable, Callable, Generic, Optional, TypeVar

from app.errors import PollingCancelledError, PollingExhaustedError

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Type variable for the value a poll eventually produces
T = TypeVar("T")


class CancellationToken:
    """Signals a polling loop (and anything sharing the token) to stop."""

    def __init__(self):
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise PollingCancelledError("Polling was cancelled")


class PollingTask(Generic[T]):
    """
    Calls ``poll`` every ``interval`` seconds until it returns a value.

    The loop ends when ``poll`` returns something other than None, when
    ``poll`` raises (the exception propagates to ``wait``), when the token is
    cancelled (``PollingCancelledError``) or after ``max_attempts`` polls
    (``PollingExhaustedError``). At most one poll is in flight at a time.
    """

    def __init__(
        self,
        poll: Callable[[int], Awaitable[Optional[T]]],
        interval: float,
        max_attempts: int,
        name: str = "poll",
        token: Optional[CancellationToken] = None,
    ):
        """
        Args:
            poll: Coroutine function receiving the 1-based attempt number
            interval: Seconds between two polls
            max_attempts: Maximum number of polls before giving up
            name: Label used in logs and as the asyncio task name
            token: Cancellation token, a fresh one is created if omitted
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._poll = poll
        self.interval = interval
        self.max_attempts = max_attempts
        self.name = name
        self.token = token or CancellationToken()
        self.attempts = 0
        self._in_flight = False
        self._task: Optional[asyncio.Task] = None

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> asyncio.Task:
        """Schedule the loop on the running event loop."""
        if self._task is None:
            self._task = asyncio.create_task(self.run(), name=self.name)
        return self._task

    async def wait(self) -> T:
        """Wait for the loop to finish and return the polled value."""
        return await self.start()

    def cancel(self) -> None:
        """Stop the loop. A poll already in flight finishes but its result is dropped."""
        if not self.token.cancelled:
            logger.info(f"{self.name}: cancelled after {self.attempts} attempts")
        self.token.cancel()

    async def poll_now(self) -> Optional[T]:
        """Poll once, unless a previous poll is still outstanding."""
        if self._in_flight:
            logger.debug(f"{self.name}: previous request still pending, skipping poll")
            return None

        self.token.raise_if_cancelled()
        self._in_flight = True
        self.attempts += 1
        try:
            return await self._poll(self.attempts)
        finally:
            self._in_flight = False

    async def run(self) -> T:
        while self.attempts < self.max_attempts:
            result = await self.poll_now()
            self.token.raise_if_cancelled()
            if result is not None:
                return result
            if self.attempts >= self.max_attempts:
                break
            await self._sleep()
            self.token.raise_if_cancelled()

        logger.warning(f"{self.name}: gave up after {self.attempts} attempts")
        raise PollingExhaustedError(self.attempts)

    async def _sleep(self) -> None:
        # Wakes up early when the token is cancelled
        try:
            await asyncio.wait_for(self.token.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass
