"""
Prospect Scan Inngest Function.

Runs the scan state machine for a scan created by start_scan when scans are
dispatched to Inngest instead of an in-process task.
"""

import logging
from datetime import datetime, timezone

from inngest import TriggerEvent

from prospect_intel.inngest.client import inngest_client
from prospect_intel.inngest.events import Events
from prospect_intel.database import get_supabase_service
from prospect_intel.models.prospect_intel import QueueStatus
from prospect_intel.services.scan_state_machine import ScanStateMachine

logger = logging.getLogger(__name__)


@inngest_client.create_function(
    fn_id="prospect-intel-scan",
    trigger=TriggerEvent(event=Events.PROSPECT_SCAN_REQUESTED),
    retries=0,
)
async def process_prospect_scan_fn(ctx, step):
    """
    Process one prospect scan.

    Event data:
    - scan_id: ID of the scan (scan_queue.scan_id)
    - user_id: User ID
    - source_id: ID of the prospect_sources row
    """
    data = ctx.event.data
    scan_id = data.get("scan_id")
    user_id = data.get("user_id")
    source_id = data.get("source_id")

    logger.info(f"[SCAN_INNGEST] Processing scan {scan_id} for user {user_id}")

    supabase = get_supabase_service()

    # Step 1: Mark the queue row as processing
    def update_status_processing():
        supabase.table("scan_queue")\
            .update({
                "status": QueueStatus.PROCESSING.value,
                "started_at": datetime.now(timezone.utc).isoformat()
            })\
            .eq("scan_id", scan_id)\
            .execute()
        return {"updated": True}

    await step.run("update-status-processing", update_status_processing)

    # Step 2: Run the pipeline (failures are returned, not raised)
    async def run_scan():
        machine = ScanStateMachine(scan_id, user_id, source_id, supabase=supabase)
        try:
            prospect_ids = await machine.run()
            return {"success": True, "prospect_ids": prospect_ids, "error": None}
        except Exception as e:
            return {"success": False, "prospect_ids": [], "error": str(e) or type(e).__name__}

    result = await step.run("run-scan", run_scan)

    # Step 3: Handle failure
    if not result["success"]:
        def update_status_failed():
            supabase.table("scan_queue")\
                .update({
                    "status": QueueStatus.FAILED.value,
                    "error_message": result["error"],
                    "completed_at": datetime.now(timezone.utc).isoformat()
                })\
                .eq("scan_id", scan_id)\
                .execute()
            return {"updated": True}

        await step.run("update-status-failed", update_status_failed)
        logger.error(f"[SCAN_INNGEST] Scan {scan_id} failed: {result['error']}")
        return {"success": False, "scan_id": scan_id, "error": result["error"]}

    logger.info(f"[SCAN_INNGEST] Completed scan {scan_id} with {len(result['prospect_ids'])} prospects")

    return {
        "success": True,
        "scan_id": scan_id,
        "prospects_found": len(result["prospect_ids"])
    }
