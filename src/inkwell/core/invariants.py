"""Guards for integration invariants.

An invariant violation is a programming error in the host integration
(``undo`` issued from inside an update, a flush of an empty history buffer,
and so on). In strict mode the guard raises :class:`InvariantViolation`; in
lenient mode it logs, records a telemetry event and lets the caller turn the
operation into a no-op.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover - imports for type checking only
    from ..utils.telemetry import TelemetryClient

LOGGER = logging.getLogger(__name__)

__all__ = [
    "InvariantPolicy",
    "InvariantViolation",
    "configure_invariants",
    "ensure",
    "get_invariant_policy",
]


class InvariantViolation(AssertionError):
    """Raised when the host breaks a contract of the editing core."""

    def __init__(self, message: str, *, code: str = "invariant") -> None:
        super().__init__(message)
        self.code = code

    def details(self) -> dict[str, Any]:
        return {"code": self.code, "message": str(self)}


@dataclass(slots=True)
class InvariantPolicy:
    """How invariant violations are surfaced."""

    strict: bool = True
    telemetry: "TelemetryClient | None" = None


_POLICY = InvariantPolicy()


def configure_invariants(*, strict: bool, telemetry: "TelemetryClient | None" = None) -> InvariantPolicy:
    """Switch between development (raise) and production (log + telemetry) handling."""

    global _POLICY
    _POLICY = InvariantPolicy(strict=bool(strict), telemetry=telemetry)
    return _POLICY


def get_invariant_policy() -> InvariantPolicy:
    return _POLICY


def ensure(condition: bool, message: str, *, code: str = "invariant") -> bool:
    """Return ``True`` when ``condition`` holds, otherwise report the violation.

    Strict mode raises; lenient mode returns ``False`` so the caller can bail
    out without touching any state.
    """

    if condition:
        return True
    policy = _POLICY
    if policy.strict:
        raise InvariantViolation(message, code=code)
    LOGGER.error("Invariant violated (%s): %s", code, message)
    if policy.telemetry is not None:
        policy.telemetry.record_invariant_violation(code, message)
    return False
