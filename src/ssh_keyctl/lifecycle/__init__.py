"""Credential lifecycle: init, revoke and renew of per-host identities."""

from .models import (
    InitRequest,
    LifecycleState,
    Operation,
    OperationResult,
    RenewRequest,
    RenewResult,
    RevokeRequest,
)
from .orchestrator import LifecycleOrchestrator

__all__ = [
    "InitRequest",
    "LifecycleOrchestrator",
    "LifecycleState",
    "Operation",
    "OperationResult",
    "RenewRequest",
    "RenewResult",
    "RevokeRequest",
]
