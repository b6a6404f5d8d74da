"""
Faultline - Default Handlers.

Pre-built handlers for common fault treatment:
1. LoggingHandler: Structured logging through stdlib ``logging``
2. SentryHandler: Forward faults to Sentry
3. CallbackHandler: Adapt a plain callable to the handler interface

None of these replace the fault; they observe it and return None.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from .core import FATAL_SEVERITIES, Fault, FaultKind, Severity, is_fatal, parse_severity
from .handlers import FaultHandler, HandlerResult


# ============================================================================
# 1. LoggingHandler - Structured logging
# ============================================================================

_ERROR_SEVERITIES = Severity.RECOVERABLE_ERROR
_WARNING_SEVERITIES = (
    Severity.WARNING
    | Severity.CORE_WARNING
    | Severity.COMPILE_WARNING
    | Severity.USER_WARNING
)


def log_level_for(severity: Severity) -> int:
    """Map a fault severity to a ``logging`` level."""
    if is_fatal(severity, FATAL_SEVERITIES):
        return logging.CRITICAL
    if severity & _ERROR_SEVERITIES:
        return logging.ERROR
    if severity & _WARNING_SEVERITIES:
        return logging.WARNING
    return logging.INFO


class LoggingHandler(FaultHandler):
    """
    Log every fault with structured metadata.

    NATIVE faults are logged with their traceback attached.

    Usage:
        ```python
        dispatcher = Dispatcher([LoggingHandler()])
        ```
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        """
        Initialize logging handler.

        Args:
            logger: Logger to use
        """
        self.logger = logger or logging.getLogger("faultline.faults")

    def handle(self, fault: Fault) -> HandlerResult:
        """Log fault and let it flow on."""
        exc_info = None
        if fault.kind is FaultKind.NATIVE and fault.cause is not None:
            exc_info = (type(fault.cause), fault.cause, fault.cause.__traceback__)

        self.logger.log(
            log_level_for(fault.severity),
            f"{fault} ({fault.location})",
            exc_info=exc_info,
            extra={"fault": fault.to_dict()},
        )
        return None


# ============================================================================
# 2. SentryHandler - Remote fault reporting
# ============================================================================

class SentryHandler(FaultHandler):
    """
    Forward faults to Sentry.

    CONVERTED faults are filtered by their own severity; NATIVE faults count
    as ERROR. A fault is forwarded when its level intersects
    ``minimum_level``.

    Args:
        client: Object exposing ``capture_exception(exc)``; defaults to the
            ``sentry_sdk`` module (initialize it with ``sentry_sdk.init``)
        minimum_level: Severity mask of faults worth forwarding
    """

    def __init__(self, client: Any = None, minimum_level: Any = Severity.ALL):
        if client is None:
            import sentry_sdk
            client = sentry_sdk
        self.client = client
        self.minimum_level = parse_severity(minimum_level)

    def handle(self, fault: Fault) -> HandlerResult:
        if fault.kind is FaultKind.CONVERTED:
            level = fault.severity
        else:
            level = Severity.ERROR

        if self.minimum_level & level:
            self.client.capture_exception(fault.cause if fault.cause is not None else fault)
        return None


# ============================================================================
# 3. CallbackHandler - Plain callables
# ============================================================================

class CallbackHandler(FaultHandler):
    """
    Wrap a callable ``(fault) -> replacement | None`` as a handler.

    Usage:
        ```python
        dispatcher.push_handler(CallbackHandler(alerts.append))
        ```
    """

    def __init__(self, callback: Callable[[Fault], HandlerResult]):
        self.callback = callback

    def handle(self, fault: Fault) -> HandlerResult:
        return self.callback(fault)

    def __repr__(self) -> str:
        name = getattr(self.callback, "__qualname__", repr(self.callback))
        return f"CallbackHandler({name})"
