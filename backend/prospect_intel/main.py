"""
Prospect Intel API - FastAPI application.

Run with:
    uvicorn prospect_intel.main:app --reload
"""

import logging

from fastapi import FastAPI

from prospect_intel import __version__, config
from prospect_intel.inngest.events import use_inngest_for_scans
from prospect_intel.routers import prospect_intel

logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Prospect Intel API",
    description="Prospect ingestion, entity resolution and AI intelligence",
    version=__version__,
)

app.include_router(prospect_intel.router)


@app.get("/health")
async def health():
    return {"status": "ok", "version": __version__}


if use_inngest_for_scans():
    import inngest.fast_api

    from prospect_intel.inngest.client import inngest_client
    from prospect_intel.inngest.functions import all_functions

    inngest.fast_api.serve(app, inngest_client, all_functions)
    logger.info(f"[MAIN] Inngest endpoint registered with {len(all_functions)} functions")
