"""
Gate observers.

The gate reports its checkpoints to an observer instead of logging timings
itself. Observers receive elapsed times computed by the gate, so they hold
no per-request state.
"""

import logging
from typing import Optional

from ..models import GateDecision, GateErrorType

logger = logging.getLogger(__name__)


class GateObserver:
    """No-op observer. Subclass and override the hooks you need."""

    def checkpoint(self, request_id: str, label: str, elapsed_ms: float) -> None:
        pass

    def decision_made(self, request_id: str, path: str, decision: GateDecision, elapsed_ms: float) -> None:
        pass

    def gate_failed(self, request_id: str, path: str, error_type: GateErrorType, exc: BaseException) -> None:
        pass


class LoggingGateObserver(GateObserver):
    """
    Log gate checkpoints and decisions.

    Everything is logged at DEBUG and only when ``timing`` is enabled
    (GATE_DEBUG_TIMING). The middleware logs gate failures itself.
    """

    def __init__(self, timing: bool = False, log: Optional[logging.Logger] = None):
        self.timing = timing
        self.log = log or logger

    def checkpoint(self, request_id: str, label: str, elapsed_ms: float) -> None:
        if self.timing:
            self.log.debug(
                f"[{request_id}] {label}: {elapsed_ms:.2f}ms",
                extra={"request_id": request_id, "checkpoint": label, "elapsed_ms": elapsed_ms},
            )

    def decision_made(self, request_id: str, path: str, decision: GateDecision, elapsed_ms: float) -> None:
        if self.timing:
            self.log.debug(
                f"[{request_id}] {path} -> {decision.action.value} in {elapsed_ms:.2f}ms",
                extra={
                    "request_id": request_id,
                    "path": path,
                    "category": decision.category.value,
                    "action": decision.action.value,
                    "auth_status": decision.auth_status,
                    "elapsed_ms": elapsed_ms,
                },
            )

    def gate_failed(self, request_id: str, path: str, error_type: GateErrorType, exc: BaseException) -> None:
        if self.timing:
            self.log.debug(
                f"[{request_id}] {path} -> {error_type.value}: {type(exc).__name__}",
                extra={"request_id": request_id, "path": path, "error_type": error_type.value},
            )
