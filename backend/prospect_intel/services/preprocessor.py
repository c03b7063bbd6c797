"""
Source Preprocessor

Turns a prospect_sources row into the canonical working text of a scan:
which payload field holds the text, what structure the text has, and which
language it is written in. Pure and synchronous; no external calls.
"""

import re
import logging
from typing import Dict, Any, List, Optional, Tuple

from pydantic import ValidationError

from prospect_intel.models.prospect_intel import (
    BrowserCapturePayload,
    ChatbotConversationPayload,
    CsvPayload,
    FbDataFilePayload,
    ImagePayload,
    Language,
    LinkedInExportPayload,
    ManualInputPayload,
    OcrPayload,
    PasteTextPayload,
    ScanState,
    SourcePayload,
    SourceType,
    TextStructure,
    WebCrawlPayload,
    parse_source_payload,
)
from prospect_intel.utils.errors import InvalidSourceError

logger = logging.getLogger(__name__)


# Common Tagalog function words and particles
FILIPINO_WORDS = frozenset([
    "ang", "ng", "mga", "sa", "na", "nang", "ay", "at", "si", "ni",
    "ako", "ikaw", "ka", "siya", "kami", "tayo", "kayo", "sila",
    "ko", "mo", "niya", "namin", "natin", "nila", "ito", "iyan", "iyon",
    "po", "opo", "naman", "lang", "kasi", "pero", "talaga", "ba", "din", "rin",
    "hindi", "oo", "sige", "pwede", "puwede", "magkano", "salamat", "kung",
    "may", "wala", "meron", "gusto", "kailangan", "dito", "doon",
])

ENGLISH_WORDS = frozenset([
    "the", "and", "is", "are", "was", "were", "to", "of", "for", "with",
    "you", "your", "my", "me", "we", "our", "this", "that", "have", "has",
    "will", "can", "in", "on", "from", "about", "please", "thanks",
    "hello", "hi", "interested", "business", "call", "contact", "email",
])

# Both counts must exceed this for a text to count as Taglish
MIXED_LANGUAGE_THRESHOLD = 2

_WORD_RE = re.compile(r"[a-zA-Z']+")

KNOWN_SOURCE_TYPES = frozenset(t.value for t in SourceType)


def detect_language(text: Optional[str]) -> Language:
    """
    Classify text as English, Filipino, Taglish or unknown.

    Counts Filipino function words and English-looking function words.
    Taglish when both counts exceed the threshold, Filipino when Filipino
    words dominate, English when no Filipino word is found, unknown
    otherwise.
    """
    if not text:
        return Language.UNKNOWN

    tokens = [t.lower() for t in _WORD_RE.findall(text)]
    filipino = sum(1 for t in tokens if t in FILIPINO_WORDS)
    english = sum(1 for t in tokens if t in ENGLISH_WORDS)

    if filipino > MIXED_LANGUAGE_THRESHOLD and english > MIXED_LANGUAGE_THRESHOLD:
        return Language.TAGLISH
    if filipino > english:
        return Language.FILIPINO
    if english > 0 and filipino == 0:
        return Language.ENGLISH
    return Language.UNKNOWN


def _csv_cell(value: str) -> str:
    if any(ch in value for ch in (",", '"', "\n")):
        return '"' + value.replace('"', '""') + '"'
    return value


def _render_manual_input(payload: ManualInputPayload) -> Tuple[str, TextStructure]:
    """Structured manual entries become a one-row CSV; free text stays a list."""
    fields = [
        ("name", payload.name),
        ("email", payload.email),
        ("phone", payload.phone),
        ("facebook", payload.facebook),
        ("instagram", payload.instagram),
        ("linkedin", payload.linkedin),
        ("tiktok", payload.tiktok),
    ]
    present = [(header, value.strip()) for header, value in fields if value and value.strip()]
    if present:
        header_line = ",".join(header for header, _ in present)
        row_line = ",".join(_csv_cell(value) for _, value in present)
        return f"{header_line}\n{row_line}\n", TextStructure.CSV
    return payload.text or "", TextStructure.LIST


def _render_friends(friends: List[Dict[str, Any]]) -> str:
    names = []
    for friend in friends:
        if isinstance(friend, dict):
            name = friend.get("name")
            if isinstance(name, str) and name.strip():
                names.append(name.strip())
    return "\n".join(names)


def extract_text(payload: SourcePayload) -> Tuple[str, TextStructure]:
    """Pick the payload field holding text and the structural hint for it."""
    if isinstance(payload, PasteTextPayload):
        return payload.text, TextStructure.PARAGRAPHS
    if isinstance(payload, (CsvPayload, LinkedInExportPayload)):
        return payload.csv_text, TextStructure.CSV
    if isinstance(payload, (ImagePayload, OcrPayload)):
        return payload.extracted_text, TextStructure.OCR
    if isinstance(payload, WebCrawlPayload):
        return payload.html, TextStructure.HTML
    if isinstance(payload, BrowserCapturePayload):
        if payload.html:
            return payload.html, TextStructure.HTML
        return payload.text_content or "", TextStructure.PARAGRAPHS
    if isinstance(payload, ChatbotConversationPayload):
        return payload.transcript, TextStructure.PARAGRAPHS
    if isinstance(payload, FbDataFilePayload):
        if payload.friends:
            return _render_friends(payload.friends), TextStructure.LIST
        return payload.text or "", TextStructure.LIST
    if isinstance(payload, ManualInputPayload):
        return _render_manual_input(payload)
    raise TypeError(f"Unhandled payload type: {type(payload).__name__}")


def _language_sample(raw_text: str, structure: TextStructure) -> str:
    if structure == TextStructure.HTML:
        # Tags and attribute names would read as English tokens
        return re.sub(r"<[^>]+>", " ", raw_text)
    return raw_text


def preprocess_source(source: Dict[str, Any]) -> Dict[str, Any]:
    """
    Build the ScanContext patch for a prospect_sources row.

    Returns a dict with ``raw_text``, ``structure``, ``language`` and
    ``state``. Unrecognized source types leave ``raw_text``/``structure``
    unset; a known source type whose payload has the wrong shape raises
    InvalidSourceError.
    """
    source_type = source.get("source_type")
    patch: Dict[str, Any] = {"state": ScanState.PREPROCESSING}

    try:
        payload = parse_source_payload(source_type, source.get("raw_payload"))
    except ValidationError as e:
        type_value = source_type.value if isinstance(source_type, SourceType) else source_type
        if type_value in KNOWN_SOURCE_TYPES:
            logger.warning(
                f"[PREPROCESSOR] Malformed {type_value} payload on source {source.get('id')}: "
                f"{e.error_count()} validation error(s)"
            )
            raise InvalidSourceError(
                f"Malformed {type_value} payload",
                details={"source_id": source.get("id"), "error_count": e.error_count()},
            ) from e
        logger.warning(
            f"[PREPROCESSOR] Unrecognized source {source.get('id')} "
            f"(type={source_type}): {e.error_count()} validation error(s)"
        )
        patch["language"] = Language.UNKNOWN
        return patch

    raw_text, structure = extract_text(payload)
    patch["raw_text"] = raw_text
    patch["structure"] = structure
    patch["language"] = detect_language(_language_sample(raw_text, structure))

    logger.info(
        f"[PREPROCESSOR] Source {source.get('id')}: type={source_type}, "
        f"structure={structure.value}, language={patch['language'].value}, chars={len(raw_text)}"
    )
    return patch
