"""Execution Report: what happened when a batch was applied."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ExecutionReport(BaseModel):
    """Outcome of applying one action batch to a world."""

    reason: Optional[str] = None
    actions_applied: List[dict]
    actions_skipped: List[dict]             # No-ops: inapplicable or failed intents
    speed_restored: bool
    executed_at: datetime
    execution_duration_seconds: float
