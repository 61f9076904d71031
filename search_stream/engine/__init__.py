"""Engine Layer - Stream Orchestration

This module provides the core engine layer for streaming ingestion, implementing:
- StreamOrchestrator: Turn execution (initial → backfill → live, gap fill on resume)
- JobWorkflow: Submit → poll-with-backoff → fetch results
- BudgetManager: Per-turn wall-clock budget
- StreamState: Resumable continuation token (tagged union)
- TurnResult: Standardized turn output
"""

from .budget import BudgetConfig, BudgetManager
from .job_workflow import JobWorkflow, job_poll_policy
from .orchestrator import StreamOrchestrator
from .result import TurnKind, TurnResult
from .state import (
    BackfillState,
    InitialState,
    LiveState,
    StreamState,
    dump_state,
    dump_state_json,
    load_state,
)

__all__ = [
    "StreamOrchestrator",
    "JobWorkflow",
    "job_poll_policy",
    "BudgetManager",
    "BudgetConfig",
    "TurnResult",
    "TurnKind",
    # State
    "StreamState",
    "InitialState",
    "BackfillState",
    "LiveState",
    "load_state",
    "dump_state",
    "dump_state_json",
]
