"""
Inngest client configuration.
"""

import logging

import inngest

from prospect_intel import config

logger = logging.getLogger(__name__)

inngest_client = inngest.Inngest(
    app_id=config.INNGEST_APP_ID,
    logger=logger,
    is_production=not config.INNGEST_DEV,
)
