"""
Prospect Normalizer

Canonical forms for draft prospect fields so that matching compares like
with like. Idempotent: normalizing twice gives the same result as once.
"""

import re
import string
import logging
from typing import List, Optional

from prospect_intel import config
from prospect_intel.models.prospect_intel import ContactInfo, DraftProspect, SocialHandles

logger = logging.getLogger(__name__)

VALID_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_PHONE_STRIP_RE = re.compile(r"[^0-9+]")


def normalize_name(value: Optional[str]) -> Optional[str]:
    """Collapse whitespace and capitalize each word ("juan  DELA cruz" -> "Juan Dela Cruz")."""
    if not value:
        return value
    words = value.split()
    if not words:
        return None
    return " ".join(word[:1].upper() + word[1:].lower() for word in words)


def normalize_email(value: str) -> Optional[str]:
    email = value.strip().lower()
    if VALID_EMAIL_RE.match(email):
        return email
    return None


def normalize_phone(value: str, default_country_code: str = config.DEFAULT_PHONE_COUNTRY_CODE) -> Optional[str]:
    """
    Keep digits and '+', then rewrite local prefixes.

    "00" becomes "+" (international dialing prefix) and a single leading "0"
    becomes the default country code.
    """
    phone = _PHONE_STRIP_RE.sub("", value)
    # '+' is only meaningful in front
    phone = phone[:1] + phone[1:].replace("+", "")
    if phone.startswith("00"):
        phone = "+" + phone[2:]
    elif phone.startswith("0"):
        phone = default_country_code + phone[1:]
    if not phone or phone == "+":
        return None
    return phone


def normalize_handle(value: Optional[str]) -> Optional[str]:
    if not value:
        return value
    handle = value.lstrip("@" + string.whitespace).rstrip("/" + string.whitespace).lower()
    return handle or None


def _dedupe(values: List[str]) -> List[str]:
    seen = set()
    unique = []
    for value in values:
        if value not in seen:
            seen.add(value)
            unique.append(value)
    return unique


def normalize_prospect(
    draft: DraftProspect,
    default_country_code: str = config.DEFAULT_PHONE_COUNTRY_CODE,
) -> DraftProspect:
    """Normalize one draft. Fields that are absent stay absent."""
    contact = None
    if draft.contact_info is not None:
        emails = draft.contact_info.emails
        phones = draft.contact_info.phones
        if emails is not None:
            emails = _dedupe([e for e in (normalize_email(x) for x in emails if x) if e])
        if phones is not None:
            phones = _dedupe([
                p for p in (normalize_phone(x, default_country_code) for x in phones if x) if p
            ])
        contact = ContactInfo(emails=emails, phones=phones)

    social = None
    if draft.social_handles is not None:
        handles = draft.social_handles
        social = SocialHandles(
            facebook=normalize_handle(handles.facebook),
            instagram=normalize_handle(handles.instagram),
            linkedin=normalize_handle(handles.linkedin),
            tiktok=normalize_handle(handles.tiktok),
        )

    return draft.model_copy(update={
        "display_name": normalize_name(draft.display_name),
        "first_name": normalize_name(draft.first_name),
        "last_name": normalize_name(draft.last_name),
        "contact_info": contact,
        "social_handles": social,
    })


def normalize_prospects(
    drafts: List[DraftProspect],
    default_country_code: str = config.DEFAULT_PHONE_COUNTRY_CODE,
) -> List[DraftProspect]:
    """Normalize a batch of drafts, preserving order and count."""
    normalized = [normalize_prospect(d, default_country_code) for d in drafts]
    logger.debug(f"[NORMALIZER] Normalized {len(normalized)} drafts")
    return normalized
