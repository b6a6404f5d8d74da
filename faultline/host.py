"""
Faultline - Host integration.

The host is everything the dispatcher needs from the running process but
does not own:
- the live reporting mask and the display setting
- the last fault that bypassed synchronous handling
- the response status and output stream
- the termination action
- installation of the process-wide fault hooks

``ProcessHost`` binds these to ``sys.excepthook``, ``warnings.showwarning``,
``threading.excepthook`` and ``atexit``. Hook installation is a scoped
resource: ``install()`` returns a ``HookRegistration`` whose ``restore()``
(or ``with`` exit) puts the previous hooks back.
"""

from __future__ import annotations

import atexit
import logging
import os
import sys
import threading
import warnings
from abc import ABC, abstractmethod
from typing import IO, TYPE_CHECKING, Any, Callable, Optional

from .core import FATAL_SEVERITIES, FaultSignal, Severity, parse_severity, severity_for_warning

if TYPE_CHECKING:
    from .engine import Dispatcher


logger = logging.getLogger("faultline.host")


# ============================================================================
# Registration handle
# ============================================================================

class HookRegistration:
    """
    Handle for installed fault hooks.

    Calling ``restore()`` reverts the hooks exactly once; later calls are
    no-ops. Usable as a context manager so the restore runs on every exit
    path.
    """

    def __init__(self, restore: Callable[[], None], *, name: str = "hooks"):
        self._restore = restore
        self.name = name
        self.active = True

    def restore(self) -> None:
        if not self.active:
            return
        self.active = False
        self._restore()

    def __enter__(self) -> HookRegistration:
        return self

    def __exit__(self, *exc_info) -> None:
        self.restore()

    def __repr__(self) -> str:
        state = "active" if self.active else "restored"
        return f"<HookRegistration {self.name} {state}>"


# ============================================================================
# Host interface
# ============================================================================

class Host(ABC):
    """
    Abstract host facility consumed by the dispatcher.

    ``fatal_severities`` is the host's set of unrecoverable categories; the
    dispatcher copies it once at construction.
    """

    fatal_severities: Severity = FATAL_SEVERITIES

    @abstractmethod
    def reporting_mask(self) -> Severity:
        """Severities currently eligible for handling. Read on every fault."""

    @abstractmethod
    def display_errors(self) -> bool:
        """Whether the host shows faults by default."""

    @abstractmethod
    def last_fault(self) -> Optional[FaultSignal]:
        """Most recent fault that was not handled synchronously, if any."""

    @abstractmethod
    def set_status(self, code: int) -> None:
        """Record the user-visible response status."""

    @abstractmethod
    def write(self, text: str) -> None:
        """Emit rendered output (the fault page)."""

    @abstractmethod
    def terminate(self, code: int = 1) -> None:
        """Exit the process."""

    @abstractmethod
    def install(self, dispatcher: Dispatcher) -> HookRegistration:
        """Install the dispatcher's entry points as the active fault hooks."""


# ============================================================================
# Process host
# ============================================================================

class ProcessHost(Host):
    """
    Host bound to the current Python process.

    Attributes:
        error_reporting: Live reporting mask (mutable between faults)
        display: Whether faults are displayed natively
        status_code: Last status requested by the dispatcher
        stream: Output stream for rendered fault pages
    """

    def __init__(
        self,
        *,
        reporting: Any = Severity.ALL,
        display: bool = True,
        stream: Optional[IO[str]] = None,
    ):
        self.error_reporting = parse_severity(reporting)
        self.display = display
        self.stream = stream
        self.status_code: Optional[int] = None
        self._last_fault: Optional[FaultSignal] = None
        self._lock = threading.Lock()
        self._registration: Optional[HookRegistration] = None

    # ------------------------------------------------------------------
    # Reporting configuration
    # ------------------------------------------------------------------

    def reporting_mask(self) -> Severity:
        return self.error_reporting

    def set_reporting_mask(self, mask: Any) -> Severity:
        """Replace the reporting mask; returns the previous one."""
        previous = self.error_reporting
        self.error_reporting = parse_severity(mask)
        return previous

    def display_errors(self) -> bool:
        return self.display

    # ------------------------------------------------------------------
    # Last fault
    # ------------------------------------------------------------------

    def last_fault(self) -> Optional[FaultSignal]:
        with self._lock:
            return self._last_fault

    def record_fault(self, signal: FaultSignal) -> None:
        """Remember a fault that escaped synchronous handling."""
        with self._lock:
            self._last_fault = signal

    def clear_last_fault(self) -> None:
        with self._lock:
            self._last_fault = None

    # ------------------------------------------------------------------
    # Output & termination
    # ------------------------------------------------------------------

    def set_status(self, code: int) -> None:
        self.status_code = code
        logger.debug(f"Response status set to {code}")

    def write(self, text: str) -> None:
        stream = self.stream or sys.stdout
        stream.write(text)
        stream.flush()

    def terminate(self, code: int = 1) -> None:
        logging.shutdown()
        for stream in (sys.stdout, sys.stderr):
            if stream is not None:
                stream.flush()
        os._exit(code)

    # ------------------------------------------------------------------
    # Hook installation
    # ------------------------------------------------------------------

    def install(self, dispatcher: Dispatcher) -> HookRegistration:
        """
        Install the dispatcher as the process fault handler.

        Replaces ``sys.excepthook``, ``warnings.showwarning`` and
        ``threading.excepthook`` and registers the shutdown check with
        ``atexit``. The previous hooks are kept and called whenever the
        dispatcher leaves a fault to native reporting.

        Raises:
            RuntimeError: if another dispatcher is installed on this host
        """
        if self._registration is not None and self._registration.active:
            raise RuntimeError("A dispatcher is already installed on this host")

        previous_excepthook = sys.excepthook
        previous_showwarning = warnings.showwarning
        previous_thread_hook = threading.excepthook

        def excepthook(exc_type, exc_value, exc_tb):
            # Ctrl-C is an interruption, not a fault
            if issubclass(exc_type, KeyboardInterrupt):
                previous_excepthook(exc_type, exc_value, exc_tb)
                return
            if exc_value is None:
                exc_value = exc_type()
            if exc_tb is not None and exc_value.__traceback__ is None:
                exc_value = exc_value.with_traceback(exc_tb)
            if not dispatcher.handle_uncaught_fault(exc_value):
                previous_excepthook(exc_type, exc_value, exc_tb)

        def showwarning(message, category, filename, lineno, file=None, line=None):
            severity = severity_for_warning(category)
            if not dispatcher.handle_recoverable_fault(severity, str(message), filename, lineno):
                previous_showwarning(message, category, filename, lineno, file, line)

        def thread_excepthook(args):
            if args.exc_value is not None and not issubclass(args.exc_type, SystemExit):
                self.record_fault(FaultSignal.from_exception(args.exc_value))
            previous_thread_hook(args)

        sys.excepthook = excepthook
        warnings.showwarning = showwarning
        threading.excepthook = thread_excepthook
        atexit.register(dispatcher.handle_shutdown)
        logger.debug(f"Installed fault hooks for {dispatcher!r}")

        def restore():
            if sys.excepthook is excepthook:
                sys.excepthook = previous_excepthook
            if warnings.showwarning is showwarning:
                warnings.showwarning = previous_showwarning
            if threading.excepthook is thread_excepthook:
                threading.excepthook = previous_thread_hook
            atexit.unregister(dispatcher.handle_shutdown)
            self._registration = None
            logger.debug(f"Restored fault hooks for {dispatcher!r}")

        self._registration = HookRegistration(restore, name="process")
        return self._registration

    def __repr__(self) -> str:
        return (
            f"ProcessHost(reporting={int(self.error_reporting)}, "
            f"display={self.display})"
        )
