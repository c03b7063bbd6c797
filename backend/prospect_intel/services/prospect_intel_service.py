"""
Prospect Intel Service

Public entry points of the pipeline: start a scan, poll its status, and read
the resulting entities and intelligence.

Scans are dispatched either in-process (supervised asyncio task) or to
Inngest, depending on SCAN_DISPATCH_MODE. When an Inngest event cannot be
sent the scan falls back to in-process execution.
"""

import logging
import uuid
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError
from supabase import Client

from prospect_intel.database import get_supabase_service
from prospect_intel.inngest.events import Events, send_event, use_inngest_for_scans
from prospect_intel.models.prospect_intel import QueueStatus, ScanState, SourceType, parse_source_payload
from prospect_intel.services.scan_state_machine import ProgressCallback, ScanStateMachine
from prospect_intel.services.scan_supervisor import ScanOutcome, ScanSupervisor, get_scan_supervisor
from prospect_intel.utils.errors import AppError, ErrorCodes, InvalidSourceError

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = "unknown"


class ProspectIntelService:
    """
    Usage:
        service = get_prospect_intel_service()
        scan_id = await service.start_scan(user_id, "paste_text", {"text": "..."})
        status = await service.get_scan_status(scan_id)
    """

    def __init__(
        self,
        supabase: Optional[Client] = None,
        supervisor: Optional[ScanSupervisor] = None,
        state_machine_factory: Callable[..., ScanStateMachine] = ScanStateMachine,
        use_inngest: Optional[bool] = None,
    ):
        self.supabase = supabase or get_supabase_service()
        self.supervisor = supervisor or get_scan_supervisor()
        self.state_machine_factory = state_machine_factory
        self.use_inngest = use_inngest_for_scans() if use_inngest is None else use_inngest

    # ==========================================
    # SCANS
    # ==========================================

    async def start_scan(
        self,
        user_id: str,
        source_type: str,
        raw_payload: Dict[str, Any],
        on_progress: Optional[ProgressCallback] = None,
    ) -> str:
        """
        Persist the source and queue row, launch the scan, return its id.

        The scan itself is not awaited; progress arrives through on_progress
        and get_scan_status. Raises InvalidSourceError for unknown source
        types or malformed payloads.
        """
        try:
            source_type = SourceType(source_type).value
        except ValueError:
            raise InvalidSourceError(
                f"Unknown source type: {source_type}",
                details={"allowed": [t.value for t in SourceType]},
            )
        if not isinstance(raw_payload, dict):
            raise InvalidSourceError("raw_payload must be a JSON object")
        try:
            parse_source_payload(source_type, raw_payload)
        except ValidationError as e:
            raise InvalidSourceError(
                f"Invalid payload for source type {source_type}",
                details={"errors": e.errors(include_url=False, include_context=False)},
            )

        scan_id = str(uuid.uuid4())

        source_result = self.supabase.table("prospect_sources").insert({
            "user_id": user_id,
            "source_type": source_type,
            "raw_payload": raw_payload,
            "processed": False,
        }).execute()
        if not source_result.data:
            raise AppError("Failed to create prospect source", code=ErrorCodes.DATABASE_ERROR)
        source_id = source_result.data[0]["id"]

        self.supabase.table("scan_queue").insert({
            "scan_id": scan_id,
            "user_id": user_id,
            "source_id": source_id,
            "status": QueueStatus.PENDING.value,
        }).execute()

        logger.info(f"[PROSPECT_INTEL] Scan {scan_id} queued for user {user_id} ({source_type})")

        if self.use_inngest:
            if on_progress is not None:
                logger.debug(f"[PROSPECT_INTEL] Progress callbacks are not forwarded to Inngest (scan {scan_id})")
            event_sent = await send_event(
                Events.PROSPECT_SCAN_REQUESTED,
                {"scan_id": scan_id, "user_id": user_id, "source_id": source_id},
            )
            if event_sent:
                return scan_id
            logger.warning(f"[PROSPECT_INTEL] Inngest unavailable, running scan {scan_id} in-process")

        machine = self.state_machine_factory(
            scan_id,
            user_id,
            source_id,
            progress_callback=on_progress,
            supabase=self.supabase,
        )
        self.supervisor.launch(machine)
        return scan_id

    async def get_scan_status(self, scan_id: str, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Latest queue status and state snapshot of a scan.

        Returns {"status": "unknown", "state": "IDLE", ...} when nothing has
        been persisted yet.
        """
        queue_query = self.supabase.table("scan_queue").select(
            "status, error_message"
        ).eq("scan_id", scan_id)
        snapshot_query = self.supabase.table("deep_scan_state_machine").select(
            "current_state, context_snapshot, error_message"
        ).eq("scan_id", scan_id)
        if user_id:
            queue_query = queue_query.eq("user_id", user_id)
            snapshot_query = snapshot_query.eq("user_id", user_id)

        queue_resp = queue_query.maybe_single().execute()
        snapshot_resp = snapshot_query.maybe_single().execute()
        queue = (queue_resp.data if queue_resp else None) or {}
        snapshot = (snapshot_resp.data if snapshot_resp else None) or {}

        return {
            "scan_id": scan_id,
            "status": queue.get("status") or UNKNOWN_STATUS,
            "state": snapshot.get("current_state") or ScanState.IDLE.value,
            "context": snapshot.get("context_snapshot"),
            "error": snapshot.get("error_message") or queue.get("error_message"),
        }

    async def wait_for_scan(self, scan_id: str, timeout: Optional[float] = None) -> Optional[ScanOutcome]:
        """Await an in-process scan. None if this process did not launch it."""
        return await self.supervisor.wait(scan_id, timeout=timeout)

    # ==========================================
    # PROSPECTS
    # ==========================================

    async def get_prospect_intel(self, user_id: str, prospect_id: str) -> Dict[str, Any]:
        """Entity, latest intel and history of one prospect; parts may be empty."""
        entity_resp = self.supabase.table("prospect_entities").select("*").eq(
            "id", prospect_id
        ).eq("user_id", user_id).maybe_single().execute()

        intel_resp = self.supabase.table("prospect_intel").select("*").eq(
            "prospect_entity_id", prospect_id
        ).eq("user_id", user_id).maybe_single().execute()

        history_resp = self.supabase.table("prospect_history").select("*").eq(
            "prospect_entity_id", prospect_id
        ).eq("user_id", user_id).order("created_at", desc=True).execute()

        return {
            "entity": entity_resp.data if entity_resp else None,
            "intel": intel_resp.data if intel_resp else None,
            "history": history_resp.data or [],
        }

    async def list_prospects(self, user_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        """User's entities with their latest intel, most recently updated first."""
        result = self.supabase.table("prospect_entities").select(
            "*, prospect_intel(*)"
        ).eq("user_id", user_id).order("updated_at", desc=True).limit(limit).execute()
        return result.data or []

    async def search_prospects(self, user_id: str, query: str, limit: int = 100) -> List[Dict[str, Any]]:
        """Case-insensitive substring search on display_name."""
        query = (query or "").strip()
        if not query:
            return await self.list_prospects(user_id, limit=limit)

        result = self.supabase.table("prospect_entities").select(
            "*, prospect_intel(*)"
        ).eq("user_id", user_id).ilike("display_name", f"%{query}%").order(
            "updated_at", desc=True
        ).limit(limit).execute()
        return result.data or []


# Singleton instance
_prospect_intel_service: Optional[ProspectIntelService] = None


def get_prospect_intel_service() -> ProspectIntelService:
    """Get or create prospect intel service instance."""
    global _prospect_intel_service
    if _prospect_intel_service is None:
        _prospect_intel_service = ProspectIntelService()
    return _prospect_intel_service
