"""
Contracts shared by the chunk engine: reader, processor and writer
interfaces, the exit status value type and the chunk result holders.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Generic, List, Optional, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession

InT = TypeVar("InT")
OutT = TypeVar("OutT")


# ============================================================================
# Exit status
# ============================================================================

_SEVERITY = {
    "EXECUTING": 1,
    "COMPLETED": 2,
    "NOOP": 3,
    "STOPPED": 4,
    "FAILED": 5,
    "UNKNOWN": 6,
}
# Codes not listed above (NO_DATA and other listener-defined codes)
_CUSTOM_SEVERITY = 7


@dataclass(frozen=True)
class ExitStatus:
    """
    Outcome code of a job or step, independent of its BatchStatus.
    
    Listeners may replace a step's exit status with a custom code (for
    example NO_DATA). Combining statuses with `and_` keeps the most severe
    code; custom codes rank above the built-in ones.
    """
    exit_code: str
    exit_description: str = ""
    
    @property
    def severity(self) -> int:
        return _SEVERITY.get(self.exit_code, _CUSTOM_SEVERITY)
    
    def and_(self, other: "ExitStatus") -> "ExitStatus":
        if other is None:
            return self
        if other.severity > self.severity:
            winner, loser = other, self
        else:
            winner, loser = self, other
        description = winner.exit_description
        if winner.exit_code == loser.exit_code and loser.exit_description:
            if description and loser.exit_description not in description:
                description = f"{description}; {loser.exit_description}"
            elif not description:
                description = loser.exit_description
        return ExitStatus(winner.exit_code, description)
    
    def with_description(self, description: str) -> "ExitStatus":
        return ExitStatus(self.exit_code, description or "")
    
    def __str__(self) -> str:
        return f"exitCode={self.exit_code};exitDescription={self.exit_description}"


UNKNOWN = ExitStatus("UNKNOWN")
EXECUTING = ExitStatus("EXECUTING")
COMPLETED = ExitStatus("COMPLETED")
NOOP = ExitStatus("NOOP")
STOPPED = ExitStatus("STOPPED")
FAILED = ExitStatus("FAILED")
NO_DATA = ExitStatus("NO_DATA", "No pending records to process")


# ============================================================================
# Chunk result holders
# ============================================================================

@dataclass
class WriteResult:
    """What the writer did with one chunk"""
    written: int = 0
    conflicts: List[int] = field(default_factory=list)
    missing_source_ids: List[int] = field(default_factory=list)


@dataclass
class Chunk(Generic[OutT]):
    """Items buffered between two commits plus the counts gathered while reading them"""
    items: List[OutT] = field(default_factory=list)
    read_count: int = 0
    filter_count: int = 0
    read_skip_count: int = 0
    process_skip_count: int = 0
    end_of_input: bool = False
    
    def __len__(self) -> int:
        return len(self.items)
    
    @property
    def is_empty(self) -> bool:
        """Nothing was read, so there is nothing to commit"""
        return self.read_count == 0 and self.read_skip_count == 0


# ============================================================================
# Item contracts
# ============================================================================

class ItemReader(ABC, Generic[InT]):
    """
    Pull-based source of items for one execution.
    
    `read` returns None once the input is exhausted and keeps returning
    None on later calls.
    """
    
    async def open(self, context: Dict[str, Any]) -> None:
        """Restore position from a saved execution context"""
        pass
    
    @abstractmethod
    async def read(self) -> Optional[InT]:
        pass
    
    async def update(self, context: Dict[str, Any]) -> None:
        """Write the current position into the execution context"""
        pass
    
    async def close(self) -> None:
        pass


class ItemProcessor(ABC, Generic[InT, OutT]):
    """Transforms one item. Returning None filters the item out."""
    
    @abstractmethod
    async def process(self, item: InT) -> Optional[OutT]:
        pass


class ItemWriter(ABC, Generic[OutT]):
    """
    Writes one chunk inside the caller's transaction.
    
    Implementations must not commit; the chunk engine owns the
    transaction boundary.
    """
    
    @abstractmethod
    async def write(
        self,
        session: AsyncSession,
        items: List[OutT],
        job_execution_id: Optional[int] = None,
    ) -> WriteResult:
        pass


def exit_status_of(execution) -> ExitStatus:
    """ExitStatus stored on a job or step execution"""
    return ExitStatus(execution.exit_code or "UNKNOWN", execution.exit_description or "")


def apply_exit_status(execution, status: ExitStatus) -> None:
    execution.exit_code = status.exit_code
    execution.exit_description = (status.exit_description or "")[:2500]
