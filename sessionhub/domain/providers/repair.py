"""Container repair interface for SessionHub.

Repair is expressed as an ordered chain of strategies. Each strategy
reports one of three outcomes and the chain stops at the first ``FIXED``.
"""

from abc import (
    ABC,
    abstractmethod,
)
from dataclasses import (
    dataclass,
    field,
)
from enum import Enum
from pathlib import Path
from typing import (
    List,
    Optional,
)


class RepairOutcome(str, Enum):
    """Result of a single repair strategy."""

    FIXED = "fixed"
    NOT_APPLICABLE = "not_applicable"
    FAILED = "failed"


@dataclass(frozen=True)
class StrategyResult:
    """What one strategy did."""

    strategy: str
    outcome: RepairOutcome
    note: str = ""


@dataclass
class RepairReport:
    """Aggregate result of a repair run."""

    path: Path
    needed: bool
    attempts: List[StrategyResult] = field(default_factory=list)
    backup_path: Optional[Path] = None

    @property
    def fixed(self) -> bool:
        """Whether a strategy rewrote the container."""
        return any(a.outcome == RepairOutcome.FIXED for a in self.attempts)

    @property
    def succeeded(self) -> bool:
        """Whether the artifact ends up usable without a caveat."""
        if not self.needed or self.fixed:
            return True
        # The structural check may decide the layout is already acceptable
        return bool(self.attempts) and self.attempts[-1].outcome == RepairOutcome.NOT_APPLICABLE

    @property
    def fixed_by(self) -> Optional[str]:
        """Name of the strategy that fixed the file."""
        for attempt in self.attempts:
            if attempt.outcome == RepairOutcome.FIXED:
                return attempt.strategy
        return None

    @property
    def note(self) -> str:
        """Human readable summary of the run."""
        if not self.needed:
            return "container already fast-start"
        if self.fixed:
            return f"repaired by {self.fixed_by}"
        notes = [a.note for a in self.attempts if a.note]
        return notes[-1] if notes else "no repair strategy succeeded"


class ContainerRepairInterface(ABC):
    """Detects and fixes recordings that are not browser playable."""

    @abstractmethod
    async def needs_repair(self, path: Path) -> bool:
        """Whether the container's index box sits after its media data."""
        pass

    @abstractmethod
    async def repair(self, path: Path) -> RepairReport:
        """Run the strategy chain. Never raises for tool failures."""
        pass

    @abstractmethod
    async def probe_duration(self, path: Path) -> Optional[int]:
        """Duration in whole seconds read from the container, if readable."""
        pass
