"""
Faultline - Fault handlers.

Defines the handler abstraction and the handler chain.

Handlers are pushed onto a chain and run in reverse registration order:
the last handler pushed sees the fault first. This lets a late handler
(a test double, a request-scoped reporter) intercept before the ones
registered at start-up.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Optional, Union

from .core import Fault


logger = logging.getLogger("faultline.handlers")


HandlerResult = Union[Fault, BaseException, None]


class FaultHandler(ABC):
    """
    Abstract base class for fault handlers.

    A handler observes a fault and may return a replacement:
    - a Fault: becomes the fault seen by the next handler
    - any other exception: wrapped as a NATIVE fault and used as replacement
    - None: the current fault flows on unchanged

    Handlers must tolerate both CONVERTED and NATIVE faults and must not
    assume they are the only handler on the chain.

    Example:
        ```python
        class TagHandler(FaultHandler):
            def handle(self, fault: Fault) -> Optional[Fault]:
                fault.metadata["service"] = "billing"
                return None
        ```
    """

    @abstractmethod
    def handle(self, fault: Fault) -> HandlerResult:
        """
        Handle a fault.

        Args:
            fault: Fault record flowing through the chain

        Returns:
            Replacement fault/exception, or None to keep the current one
        """
        pass


class HandlerChain:
    """
    Ordered, mutable collection of handlers.

    Registration order is append-at-tail; dispatch order is strictly the
    reverse. Every operation holds one re-entrant lock, so push/pop/clear
    never interleave with a running dispatch from another thread while a
    handler can still touch the chain from inside ``run``.
    """

    def __init__(self, handlers: Optional[list[FaultHandler]] = None):
        self._handlers: list[FaultHandler] = []
        self._lock = threading.RLock()
        for handler in handlers or []:
            self.push(handler)

    def push(self, handler: FaultHandler) -> HandlerChain:
        """Append a handler at the tail. Duplicates are allowed."""
        with self._lock:
            self._handlers.append(handler)
        return self

    def pop(self) -> Optional[FaultHandler]:
        """Remove and return the tail handler (None if empty)."""
        with self._lock:
            if not self._handlers:
                return None
            return self._handlers.pop()

    def list(self) -> list[FaultHandler]:
        """Handlers in registration order (a copy)."""
        with self._lock:
            return self._handlers.copy()

    def clear(self) -> HandlerChain:
        """Remove every handler."""
        with self._lock:
            self._handlers.clear()
        return self

    def run(self, fault: Fault) -> Fault:
        """
        Thread one fault through every handler, last registered first.

        Exceptions raised by a handler propagate to the caller; the
        remaining handlers do not run.

        Args:
            fault: Fault to dispatch

        Returns:
            The last replacement produced, or the original fault
        """
        with self._lock:
            for handler in reversed(self._handlers.copy()):
                result = handler.handle(fault)
                if isinstance(result, Fault):
                    fault = result
                elif isinstance(result, BaseException):
                    fault = Fault.from_exception(result)
                else:
                    continue
                logger.debug(
                    f"Handler {handler.__class__.__name__} replaced fault: {fault!r}"
                )
            return fault

    def __len__(self) -> int:
        with self._lock:
            return len(self._handlers)

    def __repr__(self) -> str:
        names = ", ".join(h.__class__.__name__ for h in self.list())
        return f"HandlerChain([{names}])"
