"""
Scan Supervisor

Registry of in-process scan tasks keyed by scan id. Each scan runs as one
asyncio task; its terminal outcome (success or failure) is persisted to the
scan_queue row and recorded here before the task resolves, so a failed scan
is always visible to pollers and to anyone awaiting the task.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional

from supabase import Client

from prospect_intel.database import get_supabase_service
from prospect_intel.models.prospect_intel import QueueStatus
from prospect_intel.services.scan_state_machine import ScanStateMachine

logger = logging.getLogger(__name__)

# Outcomes nobody waited for are dropped oldest first past this many
MAX_RETAINED_OUTCOMES = 1000


@dataclass
class ScanOutcome:
    """Terminal result of a supervised scan."""
    scan_id: str
    success: bool
    prospect_ids: List[str] = field(default_factory=list)
    error: Optional[str] = None


class ScanSupervisor:
    """
    Usage:
        supervisor = get_scan_supervisor()
        supervisor.launch(ScanStateMachine(scan_id, user_id, source_id))
        outcome = await supervisor.wait(scan_id)
    """

    def __init__(self, supabase: Optional[Client] = None, max_outcomes: int = MAX_RETAINED_OUTCOMES):
        self._supabase = supabase
        self._max_outcomes = max_outcomes
        self._tasks: Dict[str, asyncio.Task] = {}
        self._outcomes: Dict[str, ScanOutcome] = {}

    @property
    def supabase(self) -> Client:
        if self._supabase is None:
            self._supabase = get_supabase_service()
        return self._supabase

    def launch(self, machine: ScanStateMachine) -> asyncio.Task:
        """Start a scan without awaiting it. Must be called inside a running loop."""
        scan_id = machine.context.scan_id
        if scan_id in self._tasks:
            raise ValueError(f"Scan {scan_id} is already running")

        task = asyncio.create_task(self._supervise(machine), name=f"scan-{scan_id}")
        self._tasks[scan_id] = task
        logger.info(f"[SCAN_SUPERVISOR] Launched scan {scan_id}")
        return task

    async def _supervise(self, machine: ScanStateMachine) -> ScanOutcome:
        scan_id = machine.context.scan_id
        self._set_queue_status(scan_id, QueueStatus.PROCESSING, started=True)

        try:
            prospect_ids = await machine.run()
            outcome = ScanOutcome(scan_id=scan_id, success=True, prospect_ids=prospect_ids)
        except Exception as e:
            message = str(e) or type(e).__name__
            self._set_queue_status(scan_id, QueueStatus.FAILED, error=message)
            outcome = ScanOutcome(scan_id=scan_id, success=False, error=message)
            logger.error(f"[SCAN_SUPERVISOR] Scan {scan_id} failed: {message}")

        self._outcomes[scan_id] = outcome
        while len(self._outcomes) > self._max_outcomes:
            self._outcomes.pop(next(iter(self._outcomes)))
        self._tasks.pop(scan_id, None)
        return outcome

    def _set_queue_status(
        self,
        scan_id: str,
        status: QueueStatus,
        error: Optional[str] = None,
        started: bool = False,
    ) -> None:
        now = datetime.now(timezone.utc).isoformat()
        update = {"status": status.value}
        if started:
            update["started_at"] = now
        if error is not None:
            update["error_message"] = error
            update["completed_at"] = now
        try:
            self.supabase.table("scan_queue").update(update).eq("scan_id", scan_id).execute()
        except Exception as e:
            logger.error(f"[SCAN_SUPERVISOR] Could not mark scan {scan_id} {status.value}: {e}")

    def is_running(self, scan_id: str) -> bool:
        return scan_id in self._tasks

    def get_outcome(self, scan_id: str) -> Optional[ScanOutcome]:
        return self._outcomes.get(scan_id)

    async def wait(self, scan_id: str, timeout: Optional[float] = None) -> Optional[ScanOutcome]:
        """
        Await a scan launched by this supervisor.

        The outcome is handed out once: later calls (and get_outcome) return
        None, as they do for scans this process never launched. Raises
        asyncio.TimeoutError if the timeout elapses first; the scan keeps
        running.
        """
        task = self._tasks.get(scan_id)
        if task is None:
            return self._outcomes.pop(scan_id, None)
        outcome = await asyncio.wait_for(asyncio.shield(task), timeout)
        self._outcomes.pop(scan_id, None)
        return outcome


# Singleton instance
_scan_supervisor: Optional[ScanSupervisor] = None


def get_scan_supervisor() -> ScanSupervisor:
    """Get or create the process-wide scan supervisor."""
    global _scan_supervisor
    if _scan_supervisor is None:
        _scan_supervisor = ScanSupervisor()
    return _scan_supervisor
