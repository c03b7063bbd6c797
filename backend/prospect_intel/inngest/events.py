"""
Inngest event names and the send helper.
"""

import logging
from typing import Any, Dict

import inngest

from prospect_intel import config

logger = logging.getLogger(__name__)


class Events:
    PROSPECT_SCAN_REQUESTED = "prospect-intel/scan.requested"


def use_inngest_for_scans() -> bool:
    """True when scans are dispatched to Inngest instead of run in-process."""
    return config.SCAN_DISPATCH_MODE == "inngest"


async def send_event(event_name: str, data: Dict[str, Any]) -> bool:
    """
    Send an event to Inngest.

    Returns False when the event could not be sent, so callers can fall back
    to in-process handling.
    """
    # Imported here so that importing this module does not build the client
    from prospect_intel.inngest.client import inngest_client

    try:
        await inngest_client.send(inngest.Event(name=event_name, data=data))
        logger.info(f"[INNGEST] Sent event {event_name}")
        return True
    except Exception as e:
        logger.error(f"[INNGEST] Failed to send event {event_name}: {e}")
        return False
