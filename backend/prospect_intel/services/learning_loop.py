"""
Learning Loop

Per-user aggregate statistics fed by every completed scan. This is the only
writer of ai_learning_profiles; scoring calibration reads the aggregates
elsewhere.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from supabase import Client

from prospect_intel.database import get_supabase_service
from prospect_intel.models.prospect_intel import QueueStatus

logger = logging.getLogger(__name__)


def compute_learning_update(
    profile: Optional[Dict[str, Any]],
    scan_id: str,
    prospect_count: int,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    """New aggregate values for a profile row (None = zero-initialized)."""
    profile = profile or {}
    total_scans = int(profile.get("total_scans") or 0) + 1
    total_prospects = int(profile.get("total_prospects_discovered") or 0) + prospect_count

    learning_data = dict(profile.get("learning_data") or {})
    learning_data.update({
        "last_scan_id": scan_id,
        "last_scan_at": (now or datetime.now(timezone.utc)).isoformat(),
        "last_scan_prospects": prospect_count,
    })

    return {
        "total_scans": total_scans,
        "total_prospects_discovered": total_prospects,
        "avg_prospects_per_scan": round(total_prospects / total_scans, 2),
        "learning_data": learning_data,
    }


async def record_learning(
    user_id: str,
    scan_id: str,
    entity_ids: List[str],
    supabase: Optional[Client] = None,
) -> Dict[str, Any]:
    """
    Fold one scan into the user's learning profile and complete its queue row.

    Returns the upserted profile values.
    """
    supabase = supabase or get_supabase_service()

    response = supabase.table("ai_learning_profiles").select(
        "total_scans, total_prospects_discovered, avg_prospects_per_scan, learning_data"
    ).eq("user_id", user_id).maybe_single().execute()
    existing = response.data if response else None

    update = compute_learning_update(existing, scan_id, len(entity_ids))
    supabase.table("ai_learning_profiles").upsert(
        {"user_id": user_id, **update},
        on_conflict="user_id",
    ).execute()

    supabase.table("scan_queue").update({
        "status": QueueStatus.COMPLETED.value,
        "completed_at": datetime.now(timezone.utc).isoformat(),
    }).eq("scan_id", scan_id).execute()

    logger.info(
        f"[LEARNING] User {user_id}: scans={update['total_scans']}, "
        f"prospects={update['total_prospects_discovered']}, avg={update['avg_prospects_per_scan']}"
    )
    return update
