"""
Energy Service

Read-only access to a user's energy balance. Energy is the in-app currency
that gates premium model usage during deep scanning; earning and spending
it happens elsewhere.

Key principles:
- Balance is checked BEFORE choosing a model tier
- On any read failure the balance is 0 (safe default - no premium usage)
"""

import logging
from typing import Optional

from supabase import Client

from prospect_intel.database import get_supabase_service

logger = logging.getLogger(__name__)


class EnergyService:
    """
    Usage:
        energy_service = get_energy_service()
        balance = await energy_service.get_energy_balance(user_id)
    """

    def __init__(self, supabase: Optional[Client] = None):
        self.supabase = supabase or get_supabase_service()

    async def get_energy_balance(self, user_id: str) -> int:
        """Current energy of the user, 0 when no row exists or the read fails."""
        try:
            response = self.supabase.table("user_energy").select(
                "current_energy"
            ).eq("user_id", user_id).maybe_single().execute()

            if not response or not response.data:
                return 0
            return int(response.data.get("current_energy") or 0)

        except Exception as e:
            logger.error(f"[ENERGY] Error getting energy balance for {user_id}: {e}")
            return 0


# Singleton instance
_energy_service: Optional[EnergyService] = None


def get_energy_service() -> EnergyService:
    """Get or create energy service instance."""
    global _energy_service
    if _energy_service is None:
        _energy_service = EnergyService()
    return _energy_service
