#!/usr/bin/env python3
"""
Run one prospect scan from a local file and print the result.

Usage:
    python scripts/run_scan.py USER_ID FILE [--source-type paste_text] [--output result.json]

Example:
    python scripts/run_scan.py 6f1c... contacts.csv --source-type csv
    python scripts/run_scan.py 6f1c... page.html --source-type web_crawl -o result.json
"""

import os
import sys
import asyncio
import argparse
import logging
import json
from datetime import datetime

# Add backend to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from prospect_intel.models.prospect_intel import ScanProgressEvent, SourceType
from prospect_intel.services.prospect_intel_service import ProspectIntelService

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Payload field that carries the file content, per source type
PAYLOAD_FIELDS = {
    SourceType.PASTE_TEXT: "text",
    SourceType.CSV: "csv_text",
    SourceType.IMAGE: "extracted_text",
    SourceType.OCR: "extracted_text",
    SourceType.WEB_CRAWL: "html",
    SourceType.BROWSER_CAPTURE: "html",
    SourceType.CHATBOT_CONVERSATION: "transcript",
    SourceType.FB_DATA_FILE: "text",
    SourceType.LINKEDIN_EXPORT: "csv_text",
    SourceType.MANUAL_INPUT: "text",
}


def build_payload(source_type: SourceType, content: str) -> dict:
    return {PAYLOAD_FIELDS[source_type]: content}


def log_progress(event: ScanProgressEvent):
    logger.info(f"  [{event.progress:5.1f}%] {event.label}")


async def run_scan(
    user_id: str,
    file_path: str,
    source_type: SourceType,
    output_file: str = None
):
    """Run a scan in-process and wait for it to finish."""
    logger.info(f"\n{'='*60}")
    logger.info(f"Scanning: {file_path} ({source_type.value})")
    logger.info(f"User: {user_id}")
    logger.info(f"{'='*60}\n")

    if not os.getenv("SUPABASE_URL") or not os.getenv("SUPABASE_SERVICE_ROLE_KEY"):
        logger.error("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set!")
        return 1

    with open(file_path, 'r', encoding='utf-8', errors='replace') as f:
        content = f.read()

    service = ProspectIntelService(use_inngest=False)
    start_time = datetime.now()

    scan_id = await service.start_scan(
        user_id,
        source_type.value,
        build_payload(source_type, content),
        on_progress=log_progress
    )
    outcome = await service.wait_for_scan(scan_id)
    status = await service.get_scan_status(scan_id, user_id=user_id)

    elapsed = (datetime.now() - start_time).total_seconds()

    if outcome and outcome.success:
        logger.info(f"✅ COMPLETE in {elapsed:.1f}s: {len(outcome.prospect_ids)} prospects")
        for prospect_id in outcome.prospect_ids:
            logger.info(f"  - {prospect_id}")
    else:
        logger.error(f"❌ FAILED after {elapsed:.1f}s: {status.get('error')}")

    print(json.dumps(status, indent=2, default=str))

    if output_file:
        with open(output_file, 'w', encoding='utf-8') as f:
            json.dump(status, f, indent=2, default=str)
        logger.info(f"\nSaved to: {output_file}")

    return 0 if outcome and outcome.success else 1


def main():
    parser = argparse.ArgumentParser(description='Run one prospect scan from a local file')
    parser.add_argument('user_id', help='ID of the user who owns the scan')
    parser.add_argument('file', help='File holding the raw source data')
    parser.add_argument('--source-type', '-t', default=SourceType.PASTE_TEXT.value,
                       choices=[t.value for t in SourceType],
                       help='Source type of the file (default: paste_text)')
    parser.add_argument('--output', '-o', help='Output file for the final scan status (JSON)')

    args = parser.parse_args()

    sys.exit(asyncio.run(run_scan(
        user_id=args.user_id,
        file_path=args.file,
        source_type=SourceType(args.source_type),
        output_file=args.output
    )))


if __name__ == "__main__":
    main()
