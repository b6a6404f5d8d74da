"""
Faultline - Dispatcher.

The Dispatcher is the fault pipeline that:
1. Receives raw faults from three entry points (recoverable signal,
   uncaught exception, shutdown check)
2. Normalizes them into Fault records
3. Filters by the host's live reporting mask
4. Threads the fault through the handler chain
5. Renders a fault page under the silencing policy
6. Terminates the process on fatal severities

Dispatch is synchronous and single-pass.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Iterator, Optional, Protocol, Union

from .core import Fault, Severity, is_fatal, is_reportable, severity_name
from .handlers import FaultHandler, HandlerChain
from .host import Host, HookRegistration, ProcessHost

if TYPE_CHECKING:
    from .config import FaultlineConfig


class PageRenderer(Protocol):
    """Formats a fault into user-facing output."""

    def format(self, fault: Fault) -> str: ...


class DispatcherState(str, Enum):
    """Dispatcher lifecycle states."""
    IDLE = "idle"
    DISPATCHING = "dispatching"
    TERMINATED = "terminated"


INTERNAL_FAILURE_STATUS = 500


class Dispatcher:
    """
    Fault interception and dispatch pipeline.

    Responsibilities:
    1. Own the handler chain (handlers are referenced, not owned)
    2. Classify faults against the reporting and fatal masks
    3. Route reportable faults through the chain
    4. Apply the silencing and throw-as-exception policies
    5. Enforce fatal termination after dispatch

    The fatal mask is copied from the host at construction and never
    changes. The reporting mask is read from the host on every fault.

    Usage:
        ```python
        dispatcher = Dispatcher([LoggingHandler()])
        dispatcher.push_handler(SentryHandler())

        with dispatcher.registered():
            run_application()
        ```
    """

    def __init__(
        self,
        handlers: Optional[Iterable[FaultHandler]] = None,
        *,
        host: Optional[Host] = None,
        error_page: Optional[PageRenderer] = None,
        logger: Optional[logging.Logger] = None,
        reentrancy_guard: bool = True,
    ):
        """
        Initialize dispatcher.

        Args:
            handlers: Initial handlers, pushed in order
            host: Host facility (a ProcessHost if None)
            error_page: Renderer used for silenced NATIVE faults
            logger: Logger for dispatch events (creates default if None)
            reentrancy_guard: Skip the chain for faults raised during dispatch
        """
        self.host = host if host is not None else ProcessHost()
        self.logger = logger or logging.getLogger("faultline.engine")
        self.error_page = error_page
        self.reentrancy_guard = reentrancy_guard

        self._chain = HandlerChain()
        for handler in handlers or []:
            self.push_handler(handler)

        self._fatal_mask = Severity(self.host.fatal_severities)
        self._silence = not self.host.display_errors()
        self._throw = False

        self._state = DispatcherState.IDLE
        self._local = threading.local()
        self._registration: Optional[HookRegistration] = None

    @classmethod
    def from_config(
        cls,
        config: FaultlineConfig,
        *,
        host: Optional[Host] = None,
        handlers: Iterable[FaultHandler] = (),
        logger: Optional[logging.Logger] = None,
    ) -> Dispatcher:
        """
        Build a dispatcher from a validated configuration.

        Args:
            config: FaultlineConfig (see ``faultline.config``)
            host: Host to use (a ProcessHost built from config if None)
            handlers: Initial handlers
            logger: Logger for dispatch events

        Returns:
            Configured Dispatcher
        """
        from .debug.pages import get_renderer

        if host is None:
            host = ProcessHost(
                reporting=config.reporting,
                display=config.display_errors,
            )

        renderer = None
        if config.error_page:
            renderer = get_renderer(config.error_page, debug=config.debug)

        dispatcher = cls(
            handlers,
            host=host,
            error_page=renderer,
            logger=logger,
            reentrancy_guard=config.reentrancy_guard,
        )
        if config.silence is not None:
            dispatcher.silence_all_faults(config.silence)
        dispatcher.treat_faults_as_exceptions(config.throw_faults)
        return dispatcher

    # ========================================================================
    # Policy
    # ========================================================================

    @property
    def fatal_mask(self) -> Severity:
        return self._fatal_mask

    @property
    def silenced(self) -> bool:
        return self._silence

    @property
    def throws_faults(self) -> bool:
        return self._throw

    @property
    def state(self) -> DispatcherState:
        return self._state

    def silence_all_faults(self, flag: bool) -> Dispatcher:
        """Suppress default fault visibility in favor of the fault page."""
        self._silence = bool(flag)
        return self

    def treat_faults_as_exceptions(self, flag: bool) -> Dispatcher:
        """Raise recoverable faults instead of dispatching them."""
        self._throw = bool(flag)
        return self

    def set_error_page(self, renderer: Optional[PageRenderer]) -> Dispatcher:
        self.error_page = renderer
        return self

    # ========================================================================
    # Handler chain
    # ========================================================================

    @property
    def handlers(self) -> HandlerChain:
        return self._chain

    def push_handler(self, handler: FaultHandler) -> Dispatcher:
        """Add a handler; it runs before every handler pushed earlier."""
        self._chain.push(handler)
        self.logger.debug(f"Pushed handler: {handler.__class__.__name__}")
        return self

    def pop_handler(self) -> Optional[FaultHandler]:
        """Remove the most recently pushed handler."""
        return self._chain.pop()

    def get_handlers(self) -> list[FaultHandler]:
        """Handlers in registration order."""
        return self._chain.list()

    def clear_handlers(self) -> Dispatcher:
        self._chain.clear()
        return self

    # ========================================================================
    # Entry points
    # ========================================================================

    def handle_recoverable_fault(
        self,
        severity: int,
        message: str,
        file: Optional[str] = None,
        line: Optional[int] = None,
    ) -> bool:
        """
        Handle a recoverable fault signal (e.g. a warning).

        Unreportable faults skip the chain but are still fatal-checked.
        In throw mode the fault is raised and the fatal check is skipped;
        whoever catches it is responsible for re-reporting it. Otherwise a
        fatal fault terminates after dispatch, even if a handler raised.

        Args:
            severity: Severity of the signal
            message: Signal message
            file: Origin file
            line: Origin line

        Returns:
            True when the fault was handled and native reporting should be
            suppressed; False when it was left to the host

        Raises:
            Fault: in throw-as-exception mode
        """
        severity = Severity(severity)

        if not is_reportable(severity, self.host.reporting_mask()):
            if is_fatal(severity, self._fatal_mask):
                self._terminate(severity, message)
            return True

        if self._nested():
            self.logger.warning(
                f"Fault raised during dispatch, skipping handlers: "
                f"[{severity_name(severity)}] {message}"
            )
            if is_fatal(severity, self._fatal_mask):
                self._terminate(severity, message)
            return False

        fault = Fault.from_signal(severity, message, file, line)

        if self._throw:
            raise fault

        # Fatal faults terminate even when a handler raises
        try:
            self._dispatch(fault)
        finally:
            if is_fatal(severity, self._fatal_mask):
                self._terminate(severity, message)

        return True

    def handle_uncaught_fault(self, fault: Union[Fault, BaseException]) -> bool:
        """
        Handle an uncaught exception or converted fault.

        Args:
            fault: Fault record or native exception

        Returns:
            True if a fault page was emitted (default visibility
            suppressed), False if the host should report it natively
        """
        fault = Fault.from_exception(fault)

        if self._nested():
            self.logger.warning(f"Fault raised during dispatch, skipping handlers: {fault}")
            return False

        return self._dispatch(fault)

    def handle_shutdown(self) -> None:
        """
        Give faults that bypassed synchronous handling a last dispatch.

        Throw mode is switched off for good: raising at shutdown is not
        supported.
        """
        self._throw = False

        signal = self.host.last_fault()
        if signal is not None and is_fatal(signal.severity, self._fatal_mask):
            self.logger.debug(f"Dispatching last fault at shutdown: {signal.message}")
            self.handle_recoverable_fault(
                signal.severity,
                signal.message,
                signal.file,
                signal.line,
            )

    # ========================================================================
    # Registration
    # ========================================================================

    def register(self) -> HookRegistration:
        """Install this dispatcher's entry points as the host fault hooks."""
        if self._registration is None or not self._registration.active:
            self._registration = self.host.install(self)
        return self._registration

    def deregister(self) -> Dispatcher:
        """Restore the hooks that were active before ``register()``."""
        if self._registration is not None:
            self._registration.restore()
            self._registration = None
        return self

    @property
    def is_registered(self) -> bool:
        return self._registration is not None and self._registration.active

    @contextmanager
    def registered(self) -> Iterator[Dispatcher]:
        """Install hooks for the duration of a ``with`` block."""
        self.register()
        try:
            yield self
        finally:
            self.deregister()

    # ========================================================================
    # Internals
    # ========================================================================

    def _nested(self) -> bool:
        return self.reentrancy_guard and getattr(self._local, "dispatching", False)

    def _dispatch(self, fault: Fault) -> bool:
        """Run the chain and apply the silencing policy."""
        self.host.set_status(INTERNAL_FAILURE_STATUS)

        self._local.dispatching = True
        if self._state is not DispatcherState.TERMINATED:
            self._state = DispatcherState.DISPATCHING
        try:
            self.logger.debug(f"Dispatching fault {fault!r} to {len(self._chain)} handler(s)")
            fault = self._chain.run(fault)
        finally:
            self._local.dispatching = False
            if self._state is DispatcherState.DISPATCHING:
                self._state = DispatcherState.IDLE

        if self._silence and self.error_page is not None and not fault.is_converted:
            self.host.write(self.error_page.format(fault))
            return True

        return False

    def _terminate(self, severity: Severity, message: str) -> None:
        self._state = DispatcherState.TERMINATED
        self.logger.critical(
            f"Fatal fault [{severity_name(severity)}] {message}; terminating"
        )
        self.host.terminate(1)

    def __repr__(self) -> str:
        return (
            f"<Dispatcher handlers={len(self._chain)} state={self._state.value} "
            f"silenced={self._silence} throws={self._throw}>"
        )
