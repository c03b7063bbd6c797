"""
Supabase client access.

The service-role client bypasses row level security; every query issued by
the pipeline is therefore scoped by user_id explicitly.
"""

import logging
from typing import Optional

from supabase import create_client, Client

from prospect_intel import config

logger = logging.getLogger(__name__)

_supabase_service: Optional[Client] = None


def get_supabase_service() -> Client:
    """Get or create the service-role Supabase client."""
    global _supabase_service
    if _supabase_service is None:
        if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE_KEY:
            raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
        _supabase_service = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE_KEY)
        logger.info("[DATABASE] Supabase service client initialized")
    return _supabase_service
