"""Core sync operations for snapper-sync.

The controller in ``operations`` drives each snapper configuration through
planning, confirmation and execution over an explicit ``RunContext``.
"""

from .context import ConfigPlan, RunContext, SyncState
from .operations import SyncController
from .recovery import RecoveryScanner
from .transfer import TransferEngine, TransferRequest

__all__ = [
    "ConfigPlan",
    "RunContext",
    "SyncState",
    "SyncController",
    "RecoveryScanner",
    "TransferEngine",
    "TransferRequest",
]
