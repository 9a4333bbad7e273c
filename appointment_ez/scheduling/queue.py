"""Single-writer FIFO that admits booking mutations one at a time.

A submitted request moves Pending -> Processing -> one of Success, Conflict
or Error, and never leaves its final state. Only the head of the queue is
ever Processing, and a failed request does not stop the ones behind it.
"""

import asyncio
import enum
import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Callable

from appointment_ez.core.exceptions import BookingError, SlotConflictDuringProcessing
from appointment_ez.models.booking import Booking
from appointment_ez.scheduling.availability import AvailabilityMatcher
from appointment_ez.scheduling.timestamps import parse_stored_instant

logger = logging.getLogger(__name__)


class RequestState(str, enum.Enum):
    PENDING = 'pending'
    PROCESSING = 'processing'
    SUCCESS = 'success'
    CONFLICT = 'conflict'
    ERROR = 'error'


TERMINAL_STATES = frozenset({RequestState.SUCCESS, RequestState.CONFLICT, RequestState.ERROR})


@dataclass(eq=False)
class QueuedRequest:
    operation: Callable[[], Any]
    future: asyncio.Future
    label: str
    state: RequestState = RequestState.PENDING
    history: list[RequestState] = field(default_factory=list)

    def transition(self, state: RequestState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f'{self.label} already resolved as {self.state.value}')
        self.history.append(self.state)
        self.state = state


class BookingQueue:
    def __init__(self, store, matcher: AvailabilityMatcher) -> None:
        self._store = store
        self._matcher = matcher
        self._pending: deque[QueuedRequest] = deque()
        self._processing = False
        self._drain_task: asyncio.Task | None = None

    @property
    def depth(self) -> int:
        return len(self._pending)

    @property
    def is_processing(self) -> bool:
        return self._processing

    async def submit(self, booking: Booking) -> Booking:
        """Queue a creation; resolves with the stored booking or raises SlotConflictDuringProcessing."""
        request = self.enqueue(lambda: self._create(booking), label=f'create {booking.id}')
        return await request.future

    async def run_exclusive(self, operation: Callable[[], Any], label: str = 'mutation') -> Any:
        """Run a blocking read-check-write callable in the same single-writer order as creations."""
        request = self.enqueue(operation, label=label)
        return await request.future

    def enqueue(self, operation: Callable[[], Any], label: str) -> QueuedRequest:
        loop = asyncio.get_running_loop()
        request = QueuedRequest(operation=operation, future=loop.create_future(), label=label)
        self._pending.append(request)
        logger.info('Queued %s (depth %d)', label, len(self._pending))

        if not self._processing:
            self._processing = True
            self._drain_task = loop.create_task(self._drain())
        return request

    def _create(self, booking: Booking) -> Booking:
        bookings = self._store.list()
        candidate = parse_stored_instant(booking.appointment_time, self._matcher.business_tz)
        if not self._matcher.is_available(candidate, bookings):
            raise SlotConflictDuringProcessing(appointmentTime=booking.appointment_time)

        self._store.append(booking)
        return booking

    async def _drain(self) -> None:
        try:
            while self._pending:
                request = self._pending[0]
                request.transition(RequestState.PROCESSING)
                try:
                    result = await asyncio.to_thread(request.operation)
                except SlotConflictDuringProcessing as exc:
                    logger.info('%s rejected: slot taken while queued', request.label)
                    request.transition(RequestState.CONFLICT)
                    self._settle(request, exception=exc)
                except BookingError as exc:
                    logger.info('%s failed: %s', request.label, exc.message)
                    request.transition(RequestState.ERROR)
                    self._settle(request, exception=exc)
                except Exception as exc:
                    logger.exception('%s failed', request.label)
                    request.transition(RequestState.ERROR)
                    self._settle(request, exception=exc)
                else:
                    request.transition(RequestState.SUCCESS)
                    self._settle(request, result=result)
                finally:
                    self._pending.popleft()
        finally:
            self._processing = False

    @staticmethod
    def _settle(request: QueuedRequest, result: Any = None, exception: BaseException | None = None) -> None:
        # A caller that stopped waiting leaves a cancelled future behind.
        if request.future.done():
            return
        if exception is not None:
            request.future.set_exception(exception)
        else:
            request.future.set_result(result)
