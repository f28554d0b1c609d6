"""Per-class request supersession with best-effort transport abort."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum
import logging
from typing import Awaitable, Dict, Optional, TypeVar

from utils.exceptions import RequestSupersededError


logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestClass(str, Enum):
    """Request classes that can be reissued before completing."""

    LOAD = "load"
    SEARCH = "search"
    DETAIL = "detail"


@dataclass(eq=False)
class CancellationToken:
    """Handle for one in-flight request of a given class."""

    request_class: RequestClass
    generation: int
    superseded: bool = False
    _task: Optional[asyncio.Future] = field(default=None, repr=False)

    def attach(self, task: asyncio.Future) -> None:
        self._task = task

    def supersede(self, *, abort: bool) -> None:
        self.superseded = True
        if abort and self._task is not None and not self._task.done():
            self._task.cancel()


class SupersessionManager:
    """Only the most recently issued token of each class may apply results."""

    def __init__(self, *, abort_in_flight: bool = True) -> None:
        self._abort = bool(abort_in_flight)
        self._generations: Dict[RequestClass, int] = {}
        self._current: Dict[RequestClass, CancellationToken] = {}

    def begin(self, request_class: RequestClass) -> CancellationToken:
        """Issue a fresh token, superseding the previous one of the same class."""
        request_class = RequestClass(request_class)
        previous = self._current.get(request_class)
        if previous is not None:
            previous.supersede(abort=self._abort)
            logger.debug("superseded %s #%s", request_class.value, previous.generation)

        generation = self._generations.get(request_class, 0) + 1
        self._generations[request_class] = generation
        token = CancellationToken(request_class=request_class, generation=generation)
        self._current[request_class] = token
        return token

    def is_current(self, token: CancellationToken) -> bool:
        return not token.superseded and self._current.get(token.request_class) is token

    async def run(self, token: CancellationToken, awaitable: Awaitable[T]) -> T:
        """Await the transport call under ``token``.

        Raises ``RequestSupersededError`` when the call was aborted because the
        token was superseded. Cancellation of the calling task still propagates.
        """
        task = asyncio.ensure_future(awaitable)
        token.attach(task)
        try:
            return await task
        except asyncio.CancelledError:
            if token.superseded and task.cancelled():
                current_task = asyncio.current_task()
                if current_task is None or not current_task.cancelling():
                    raise RequestSupersededError(token.request_class.value, token.generation) from None
            raise

    def cancel_all(self) -> None:
        for token in list(self._current.values()):
            token.supersede(abort=True)
