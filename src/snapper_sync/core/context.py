"""Per-run state shared by the synchronization phases.

A run walks every snapper configuration through the same states. The
``RunContext`` carries what is fixed for the run (destination volume,
description, interaction mode) and the ``ConfigPlan`` list records where each
configuration currently stands.
"""

import enum
from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Optional

from .. import DEFAULT_DESCRIPTION
from ..config.schema import SnapperConfig
from ..snapper.matcher import PreviousMatch
from ..volume import Volume


class SyncState(enum.Enum):
    SKIPPED = "skipped"
    PENDING_MATCH = "pending match"
    SNAPSHOT_CREATED = "snapshot created"
    AWAITING_CONFIRMATION = "awaiting confirmation"
    TRANSFERRING = "transferring"
    TAGGED = "tagged"
    OLD_DELETED = "done"
    ABORTED = "aborted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset(
    {SyncState.SKIPPED, SyncState.OLD_DELETED, SyncState.ABORTED, SyncState.FAILED}
)


@dataclass
class ConfigPlan:
    """Progress of one configuration through a run."""

    config: SnapperConfig
    state: SyncState = SyncState.PENDING_MATCH
    previous: Optional[PreviousMatch] = None
    backupdir: Optional[str] = None
    new_number: Optional[int] = None
    destination: Optional[PurePosixPath] = None
    error: Optional[BaseException] = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def incremental(self) -> bool:
        return self.previous is not None

    @property
    def awaiting(self) -> bool:
        return self.state is SyncState.AWAITING_CONFIRMATION

    def fail(self, error: BaseException) -> None:
        self.state = SyncState.FAILED
        self.error = error


@dataclass
class RunContext:
    """Everything a run needs besides the collaborators.

    Attributes:
        volume: Destination volume, fixed for the run
        description: Description of a snapshot after a completed sync
        interactive: Ask for confirmation and missing backup directories
        keep_old: Keep the superseded snapshot, only removing its tag
        backupdir: Backup directory given by the caller, if any
        plans: One plan per configuration, in processing order
    """

    volume: Volume
    description: str = DEFAULT_DESCRIPTION
    interactive: bool = True
    keep_old: bool = False
    backupdir: Optional[str] = None
    plans: list[ConfigPlan] = field(default_factory=list)

    def add_plan(self, config: SnapperConfig) -> ConfigPlan:
        plan = ConfigPlan(config=config)
        self.plans.append(plan)
        return plan

    def pending(self) -> list[ConfigPlan]:
        """Plans that passed the plan phase and wait for confirmation."""
        return [plan for plan in self.plans if plan.awaiting]

    def failed(self) -> list[ConfigPlan]:
        return [plan for plan in self.plans if plan.state is SyncState.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed()
