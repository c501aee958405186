# pokeprofit/models/analysis.py

"""Analysis run models: persisted run records and live progress."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum


class RunState(str, Enum):
    """Lifecycle state of a persisted analysis run."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not RunState.RUNNING


class Phase(str, Enum):
    """Externally visible phase tag carried by progress events."""

    SCRAPING = "scraping"
    NORMALIZING = "normalizing"
    SAVING = "saving"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class AnalysisRun:
    """Run record as stored by the run-record store."""

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    started_at: datetime = field(default_factory=datetime.now)
    completed_at: datetime | None = None
    status: RunState = RunState.RUNNING
    products_count: int = 0
    sales_count: int = 0
    search_query: str | None = None
    error_message: str | None = None

    def complete(self, products_count: int, sales_count: int) -> None:
        """Mark the run completed with its final counts."""
        self.completed_at = datetime.now()
        self.status = RunState.COMPLETED
        self.products_count = products_count
        self.sales_count = sales_count

    def fail(self, error: BaseException | str) -> None:
        """Mark the run failed, keeping the error text."""
        self.completed_at = datetime.now()
        self.status = RunState.FAILED
        self.error_message = str(error)

    @property
    def duration(self) -> timedelta:
        """Elapsed time so far, or total time once terminal."""
        end = self.completed_at or datetime.now()
        return end - self.started_at


@dataclass(frozen=True)
class AnalysisProgress:
    """Point-in-time status snapshot emitted during a run."""

    phase: Phase
    pages_scraped: int = 0
    sales_found: int = 0
    products_matched: int = 0
    percent_complete: float = 0.0
    message: str = ""


@dataclass
class AnalysisStatus:
    """Run-level state visible to status pollers."""

    is_running: bool = False
    analysis_id: str | None = None
    started_at: datetime | None = None
    progress: AnalysisProgress | None = None


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome returned to the caller of a successful run."""

    analysis_id: str
    products_count: int
    sales_count: int
    duration: timedelta
    pages_scraped: int = 0
    scrape_errors: int = 0
