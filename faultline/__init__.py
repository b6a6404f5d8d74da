"""
Faultline - Process fault interception and dispatch.

Faults in Faultline are normalized records that flow through one pipeline,
whatever raised them:
- recoverable signals (warnings)
- uncaught exceptions
- fatal faults detected at shutdown

Each fault is classified against the live reporting mask, threaded through
a chain of handlers (last pushed runs first), optionally rendered as a
fault page, and terminates the process when its severity is fatal.

Core exports:
- Fault, FaultKind, Severity: fault record and taxonomy
- Dispatcher: the pipeline
- FaultHandler, HandlerChain: handler abstraction
- Host, ProcessHost: process integration
"""

__version__ = "0.1.0"

from .core import (
    FATAL_SEVERITIES,
    Fault,
    FaultKind,
    FaultSignal,
    Severity,
    is_fatal,
    is_reportable,
    parse_severity,
    severity_for_warning,
    severity_name,
)

from .handlers import FaultHandler, HandlerChain

from .host import Host, HookRegistration, ProcessHost

from .engine import Dispatcher, DispatcherState

from .default_handlers import CallbackHandler, LoggingHandler, SentryHandler

from .config import ConfigError, ConfigLoader, FaultlineConfig, load_config

__all__ = [
    # Core types
    "FATAL_SEVERITIES",
    "Fault",
    "FaultKind",
    "FaultSignal",
    "Severity",
    "is_fatal",
    "is_reportable",
    "parse_severity",
    "severity_for_warning",
    "severity_name",

    # Handlers
    "FaultHandler",
    "HandlerChain",
    "CallbackHandler",
    "LoggingHandler",
    "SentryHandler",

    # Runtime
    "Dispatcher",
    "DispatcherState",
    "Host",
    "HookRegistration",
    "ProcessHost",

    # Config
    "ConfigError",
    "ConfigLoader",
    "FaultlineConfig",
    "load_config",
]
