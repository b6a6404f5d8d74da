"""
Faultline - Core types and severity classification.

Defines:
- Severity bitmask (the host's fault categories)
- FaultKind discriminant (converted signal vs native exception)
- Fault record (normalized, raisable fault object)
- FaultSignal (raw fault as reported by the host)
- Reportability / fatality classifiers
"""

from __future__ import annotations

import traceback
from dataclasses import dataclass
from enum import Enum, IntFlag
from typing import Any, Iterable, Optional, Union


# ============================================================================
# Severity
# ============================================================================

class Severity(IntFlag):
    """
    Fault severity categories.

    Each category is a single bit so that reporting and fatal policies can be
    expressed as masks and tested with a bitwise AND.
    """
    ERROR = 1
    WARNING = 2
    SYNTAX = 4
    NOTICE = 8
    CORE_ERROR = 16
    CORE_WARNING = 32
    COMPILE_ERROR = 64
    COMPILE_WARNING = 128
    USER_ERROR = 256
    USER_WARNING = 512
    USER_NOTICE = 1024
    RECOVERABLE_ERROR = 4096
    DEPRECATED = 8192
    USER_DEPRECATED = 16384

    ALL = (
        ERROR | WARNING | SYNTAX | NOTICE | CORE_ERROR | CORE_WARNING
        | COMPILE_ERROR | COMPILE_WARNING | USER_ERROR | USER_WARNING
        | USER_NOTICE | RECOVERABLE_ERROR | DEPRECATED | USER_DEPRECATED
    )


# Unrecoverable categories: a fault in any of these terminates the process
FATAL_SEVERITIES = (
    Severity.ERROR
    | Severity.USER_ERROR
    | Severity.COMPILE_ERROR
    | Severity.CORE_ERROR
    | Severity.SYNTAX
)


# Most specific class wins (resolved by walking the category MRO)
_WARNING_SEVERITIES: dict[type, Severity] = {
    Warning: Severity.WARNING,
    UserWarning: Severity.USER_WARNING,
    DeprecationWarning: Severity.DEPRECATED,
    PendingDeprecationWarning: Severity.DEPRECATED,
    FutureWarning: Severity.USER_DEPRECATED,
    SyntaxWarning: Severity.COMPILE_WARNING,
    RuntimeWarning: Severity.WARNING,
    ImportWarning: Severity.CORE_WARNING,
    UnicodeWarning: Severity.NOTICE,
    BytesWarning: Severity.WARNING,
    ResourceWarning: Severity.NOTICE,
    EncodingWarning: Severity.NOTICE,
}


def severity_for_warning(category: type) -> Severity:
    """
    Map a warning category to a severity.

    Args:
        category: Warning class (e.g. ``DeprecationWarning``)

    Returns:
        Severity of the closest mapped ancestor, ``WARNING`` if none matches
    """
    for klass in getattr(category, "__mro__", ()):
        if klass in _WARNING_SEVERITIES:
            return _WARNING_SEVERITIES[klass]
    return Severity.WARNING


def parse_severity(value: Union[int, str, Severity, Iterable[Any]]) -> Severity:
    """
    Coerce a configuration value into a severity mask.

    Accepts an int, a Severity, a flag name (``"WARNING"``), a ``|``-separated
    list of names (``"ERROR|USER_ERROR"``), or an iterable of any of these.

    Raises:
        ValueError: on unknown names or out-of-range integers
    """
    if isinstance(value, Severity):
        return value

    if isinstance(value, bool):
        raise ValueError(f"Invalid severity: {value!r}")

    if isinstance(value, int):
        if value & ~int(Severity.ALL):
            raise ValueError(f"Severity mask {value} has unknown bits")
        return Severity(value)

    if isinstance(value, str):
        names = [part.strip() for part in value.split("|") if part.strip()]
        if not names:
            raise ValueError("Empty severity expression")
        mask = Severity(0)
        for name in names:
            if name.lstrip("-").isdigit():
                mask |= parse_severity(int(name))
                continue
            try:
                mask |= Severity[name.upper()]
            except KeyError:
                raise ValueError(f"Unknown severity: {name!r}") from None
        return mask

    mask = Severity(0)
    for item in value:
        mask |= parse_severity(item)
    return mask


def severity_name(severity: int) -> str:
    """Readable ``A|B`` name for a mask (``"NONE"`` when empty)."""
    severity = Severity(severity)
    if not severity:
        return "NONE"
    if severity == Severity.ALL:
        return "ALL"
    return "|".join(
        member.name for member in Severity
        if member is not Severity.ALL and member & severity
    )


# ============================================================================
# Classifiers
# ============================================================================

def is_reportable(severity: int, reportable_mask: int) -> bool:
    """True iff the severity intersects the live reporting mask."""
    return (int(severity) & int(reportable_mask)) != 0


def is_fatal(severity: int, fatal_mask: int = FATAL_SEVERITIES) -> bool:
    """True iff the severity intersects the fatal mask."""
    return (int(severity) & int(fatal_mask)) != 0


# ============================================================================
# Fault record
# ============================================================================

class FaultKind(str, Enum):
    """Where a fault record came from."""
    CONVERTED = "converted"   # Synthesized from a recoverable signal (warning)
    NATIVE = "native"         # Wraps a genuine exception


class Fault(Exception):
    """
    Normalized fault record.

    Every raw signal entering the dispatcher, whether a warning or an
    uncaught exception, is converted into a Fault. The ``kind`` attribute
    tells downstream consumers which one it was, so nothing needs to inspect
    runtime types.

    ``severity`` is fixed at construction. Handlers that want a different
    fault must return a replacement instead of mutating this one.

    Attributes:
        message: Human-readable summary
        severity: Severity category (read-only)
        kind: FaultKind.CONVERTED or FaultKind.NATIVE
        origin_file: Source file of the fault, None when unknown
        origin_line: Source line of the fault, None when unknown
        cause: Wrapped native exception (NATIVE faults)
        metadata: Free-form annotations added by handlers

    Example:
        ```python
        fault = Fault.from_signal(Severity.WARNING, "disk almost full", "app.py", 12)
        fault.location  # "app.py:12"
        ```
    """

    def __init__(
        self,
        message: str,
        severity: int = Severity.ERROR,
        *,
        kind: FaultKind = FaultKind.CONVERTED,
        origin_file: Optional[str] = None,
        origin_line: Optional[int] = None,
        cause: Optional[BaseException] = None,
        metadata: Optional[dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self._severity = parse_severity(severity)
        self.kind = FaultKind(kind)
        self.origin_file = origin_file
        self.origin_line = origin_line
        self.cause = cause
        self.metadata = metadata or {}

    @property
    def severity(self) -> Severity:
        return self._severity

    @property
    def location(self) -> str:
        """``file:line`` of the fault origin, ``"unknown"`` if not known."""
        if not self.origin_file:
            return "unknown"
        if self.origin_line is None:
            return self.origin_file
        return f"{self.origin_file}:{self.origin_line}"

    @property
    def is_converted(self) -> bool:
        return self.kind is FaultKind.CONVERTED

    @property
    def exception_type(self) -> str:
        """Name of the underlying exception type."""
        if self.cause is not None:
            return type(self.cause).__qualname__
        return type(self).__qualname__

    # ------------------------------------------------------------------
    # Constructors
    # ------------------------------------------------------------------

    @classmethod
    def from_signal(
        cls,
        severity: int,
        message: str,
        origin_file: Optional[str] = None,
        origin_line: Optional[int] = None,
    ) -> Fault:
        """Build a CONVERTED fault from a raw recoverable signal."""
        return cls(
            str(message),
            severity,
            kind=FaultKind.CONVERTED,
            origin_file=origin_file,
            origin_line=origin_line,
        )

    @classmethod
    def from_exception(cls, exc: BaseException) -> Fault:
        """
        Wrap a native exception.

        Faults are returned unchanged. Anything else becomes a NATIVE fault
        of severity ERROR whose origin is the innermost traceback frame.

        Args:
            exc: Exception to wrap

        Returns:
            Fault record
        """
        if isinstance(exc, Fault):
            return exc

        origin_file = origin_line = None
        if exc.__traceback__ is not None:
            frames = traceback.extract_tb(exc.__traceback__)
            if frames:
                origin_file, origin_line = frames[-1].filename, frames[-1].lineno
        elif isinstance(exc, SyntaxError):
            origin_file, origin_line = exc.filename, exc.lineno

        message = str(exc) or type(exc).__name__
        return cls(
            message,
            Severity.ERROR,
            kind=FaultKind.NATIVE,
            origin_file=origin_file,
            origin_line=origin_line,
            cause=exc,
        )

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize fault to dictionary.

        Returns:
            Dictionary representation suitable for logging/serialization
        """
        return {
            "message": self.message,
            "severity": severity_name(self.severity),
            "severity_value": int(self.severity),
            "kind": self.kind.value,
            "type": self.exception_type,
            "file": self.origin_file,
            "line": self.origin_line,
            "metadata": self.metadata,
        }

    def __str__(self) -> str:
        return f"[{severity_name(self.severity)}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"Fault(message={self.message!r}, severity={severity_name(self.severity)}, "
            f"kind={self.kind.value}, location={self.location!r})"
        )


@dataclass(frozen=True)
class FaultSignal:
    """
    A raw fault as the host recorded it, before normalization.

    Returned by ``Host.last_fault()`` for the shutdown check.
    """
    severity: Severity
    message: str
    file: Optional[str] = None
    line: Optional[int] = None

    @classmethod
    def from_exception(cls, exc: BaseException, severity: int = Severity.ERROR) -> FaultSignal:
        fault = Fault.from_exception(exc)
        return cls(
            severity=parse_severity(severity),
            message=f"{fault.exception_type}: {fault.message}",
            file=fault.origin_file,
            line=fault.origin_line,
        )
