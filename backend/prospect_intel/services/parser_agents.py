"""
Parser Agents

Format-specific extraction of draft prospects from a scan's canonical text.

- CSV parser: header alias resolution + quote-aware row splitting
- Text parser: line-oriented regex extraction (emails, phones, social URLs, names)
- HTML parser: anchors (mailto/tel/social profiles) + visible text via BeautifulSoup

Parsing is total: malformed input degrades to fewer drafts, never to an
exception.
"""

import re
import logging
from typing import Dict, List, Optional, Tuple

from bs4 import BeautifulSoup

from prospect_intel.models.prospect_intel import (
    ContactInfo,
    DraftProspect,
    SocialHandles,
    TextStructure,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Patterns
# =============================================================================

EMAIL_RE = re.compile(r"[A-Za-z0-9._%+\-]+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")

# 11-digit local mobile (0917 123 4567), its +63 form, or generic NNN-NNN-NNNN
PHONE_RE = re.compile(
    r"(?<![\d+])"
    r"(?:\+63[\s\-]?\d{3}[\s\-]?\d{3}[\s\-]?\d{4}"
    r"|0\d{3}[\s\-]?\d{3}[\s\-]?\d{4}"
    r"|\d{3}[\-.\s]\d{3}[\-.\s]\d{4})"
    r"(?!\d)"
)

# (platform, pattern) in priority order; group 1 is the handle
SOCIAL_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("facebook", re.compile(r"facebook\.com/profile\.php\?id=(\d+)", re.IGNORECASE)),
    ("facebook", re.compile(r"(?:facebook\.com|fb\.me)/([A-Za-z0-9_.\-]+)", re.IGNORECASE)),
    ("instagram", re.compile(r"instagram\.com/([A-Za-z0-9_.]+)", re.IGNORECASE)),
    ("linkedin", re.compile(r"linkedin\.com/in/([A-Za-z0-9_\-%]+)", re.IGNORECASE)),
    ("tiktok", re.compile(r"tiktok\.com/@([A-Za-z0-9_.]+)", re.IGNORECASE)),
]

# Path segments that are site sections, not profiles
RESERVED_SOCIAL_PATHS = frozenset([
    "groups", "pages", "sharer", "share", "events", "watch", "photo.php",
    "story.php", "profile.php", "people", "p", "reel", "reels", "explore",
    "stories", "login", "home",
])

URL_DELIMITERS = frozenset(" \t,;|<>\"'()[]")

_CAP_WORD = r"[A-Z][A-Za-z.'\-]*"
NAME_BEFORE_COMMA_RE = re.compile(rf"^\s*({_CAP_WORD}(?:[ \t]+{_CAP_WORD})+)\s*,")
NAME_ONLY_LINE_RE = re.compile(rf"^\s*({_CAP_WORD}(?:[ \t]+{_CAP_WORD})+)\s*$")
NAME_LIKE_RE = re.compile(r"^[A-Z][a-z'.\-]+(?: [A-Z][a-z'.\-]+){1,3}$")
LIST_MARKER_RE = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s+")


# =============================================================================
# Shared helpers
# =============================================================================

def _blank(text: str, start: int, end: int) -> str:
    """Replace a consumed span with spaces so it cannot be read twice."""
    return text[:start] + " " * (end - start) + text[end:]


def extract_social_handles(text: str) -> Tuple[Dict[str, str], str]:
    """Return one handle per platform plus the text with matched URLs blanked."""
    handles: Dict[str, str] = {}
    remaining = text
    for platform, pattern in SOCIAL_PATTERNS:
        for match in pattern.finditer(remaining):
            handle = match.group(1)
            if handle.lower() in RESERVED_SOCIAL_PATHS:
                continue
            if platform not in handles:
                handles[platform] = handle
            url_start = match.start()
            while url_start > 0 and remaining[url_start - 1] not in URL_DELIMITERS:
                url_start -= 1
            remaining = _blank(remaining, url_start, match.end())
    return handles, remaining


def _split_name(display_name: str) -> Tuple[Optional[str], Optional[str]]:
    parts = display_name.split()
    if len(parts) < 2:
        return None, None
    return parts[0], " ".join(parts[1:])


def _build_draft(
    display_name: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    emails: Optional[List[str]] = None,
    phones: Optional[List[str]] = None,
    handles: Optional[Dict[str, str]] = None,
) -> DraftProspect:
    contact = None
    if emails or phones:
        contact = ContactInfo(emails=emails or None, phones=phones or None)
    social = SocialHandles(**handles) if handles else None
    return DraftProspect(
        display_name=display_name or None,
        first_name=first_name or None,
        last_name=last_name or None,
        contact_info=contact,
        social_handles=social,
    )


def _dedupe_key(draft: DraftProspect) -> Optional[str]:
    contact = draft.contact_info
    if contact and contact.emails:
        return f"email:{contact.emails[0].lower()}"
    if contact and contact.phones:
        return f"phone:{re.sub(r'[^0-9]', '', contact.phones[0])}"
    handles = draft.social_handles
    if handles:
        for platform in ("facebook", "instagram", "linkedin", "tiktok"):
            value = getattr(handles, platform)
            if value:
                return f"{platform}:{value.lower()}"
    if draft.display_name:
        return f"name:{draft.display_name.lower()}"
    return None


def dedupe_drafts(drafts: List[DraftProspect]) -> List[DraftProspect]:
    """Drop later drafts sharing the strongest identifier of an earlier one."""
    seen = set()
    unique = []
    for draft in drafts:
        key = _dedupe_key(draft)
        if key is None or key in seen:
            continue
        seen.add(key)
        unique.append(draft)
    return unique


# =============================================================================
# Text parser
# =============================================================================

def parse_text_line(line: str, allow_bare_name: bool = False) -> Optional[DraftProspect]:
    """
    Extract one draft from a single line, or None if nothing is recognized.

    Social URLs are consumed first, then emails, then phones, so no substring
    feeds two fields.
    """
    handles, remaining = extract_social_handles(line)

    emails = []
    for match in EMAIL_RE.finditer(remaining):
        if match.group(0) not in emails:
            emails.append(match.group(0))
        remaining = _blank(remaining, match.start(), match.end())

    phones = []
    for match in PHONE_RE.finditer(remaining):
        if match.group(0) not in phones:
            phones.append(match.group(0))
        remaining = _blank(remaining, match.start(), match.end())

    candidate = LIST_MARKER_RE.sub(lambda m: " " * len(m.group(0)), remaining)
    display_name = None
    name_match = NAME_BEFORE_COMMA_RE.match(candidate)
    if not name_match and allow_bare_name:
        name_match = NAME_ONLY_LINE_RE.match(candidate)
    if name_match:
        display_name = " ".join(name_match.group(1).split())

    if not (display_name or emails or phones or handles):
        return None

    first_name, last_name = _split_name(display_name) if display_name else (None, None)
    return _build_draft(
        display_name=display_name,
        first_name=first_name,
        last_name=last_name,
        emails=emails,
        phones=phones,
        handles=handles,
    )


def parse_text(raw_text: str, structure: TextStructure = TextStructure.PARAGRAPHS) -> List[DraftProspect]:
    """Line-oriented extraction for paragraphs, lists and OCR output."""
    drafts: List[DraftProspect] = []
    if not raw_text:
        return drafts

    allow_bare_name = structure == TextStructure.LIST
    try:
        for line in raw_text.splitlines():
            if not line.strip():
                continue
            draft = parse_text_line(line, allow_bare_name=allow_bare_name)
            if draft is not None:
                drafts.append(draft)
    except Exception as e:
        logger.warning(f"[PARSER_TEXT] Stopped early after {len(drafts)} drafts: {e}")

    return dedupe_drafts(drafts)


# =============================================================================
# CSV parser
# =============================================================================

# Header aliases per logical field, matched as case-insensitive substrings.
# Resolution order matters: "first name" must be claimed before "name".
CSV_FIELD_ALIASES: List[Tuple[str, List[str]]] = [
    ("first", ["first name", "first_name", "firstname", "given name", "fname"]),
    ("last", ["last name", "last_name", "lastname", "surname", "family name", "lname"]),
    ("email", ["email", "e-mail", "mail"]),
    ("phone", ["phone", "mobile", "cell", "contact number", "contact no", "tel", "whatsapp", "viber"]),
    ("facebook", ["facebook", "fb"]),
    ("instagram", ["instagram", "insta"]),
    ("linkedin", ["linkedin"]),
    ("tiktok", ["tiktok", "tik tok"]),
    ("name", ["name", "contact", "customer", "client", "prospect", "lead"]),
]

NAME_COLUMN_EXCLUDES = ("company", "organization", "organisation", "business", "file", "user")

# A header is searched for within the first few non-empty lines (exports may
# carry a preamble before the header row)
MAX_HEADER_SEARCH_LINES = 5

# Longer cells are data or prose, never column titles
MAX_HEADER_CELL_LENGTH = 40
MAX_HEADER_CELL_WORDS = 4

_HEADER_CELL_DIGITS_RE = re.compile(r"\d")


def split_csv_row(line: str) -> List[str]:
    """Split one CSV line, honoring double-quoted cells and "" escapes."""
    cells: List[str] = []
    current: List[str] = []
    in_quotes = False
    i = 0
    while i < len(line):
        ch = line[i]
        if in_quotes:
            if ch == '"':
                if i + 1 < len(line) and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(ch)
        elif ch == '"':
            in_quotes = True
        elif ch == ",":
            cells.append("".join(current).strip())
            current = []
        else:
            current.append(ch)
        i += 1
    cells.append("".join(current).strip())
    return cells


def looks_like_header(cells: List[str]) -> bool:
    """True when every non-empty cell could be a column title rather than data."""
    titles = [cell.strip() for cell in cells if cell.strip()]
    if not titles:
        return False
    for title in titles:
        lowered = title.lower()
        if len(title) > MAX_HEADER_CELL_LENGTH or len(title.split()) > MAX_HEADER_CELL_WORDS:
            return False
        if "@" in title or "://" in lowered or "www." in lowered:
            return False
        if len(_HEADER_CELL_DIGITS_RE.findall(title)) >= 3:
            return False
    return True


def resolve_columns(header_cells: List[str]) -> Dict[str, int]:
    """Map logical fields to column indices using the alias table."""
    lowered = [cell.lower().strip() for cell in header_cells]
    columns: Dict[str, int] = {}
    claimed = set()
    for field, aliases in CSV_FIELD_ALIASES:
        for index, header in enumerate(lowered):
            if index in claimed or not header or len(header) > MAX_HEADER_CELL_LENGTH:
                continue
            if field == "name" and any(word in header for word in NAME_COLUMN_EXCLUDES):
                continue
            if any(alias in header for alias in aliases):
                columns[field] = index
                claimed.add(index)
                break
    return columns


def _cell(cells: List[str], columns: Dict[str, int], field: str) -> str:
    index = columns.get(field)
    if index is None or index >= len(cells):
        return ""
    return cells[index]


def _social_cell(value: str, platform: str) -> Optional[str]:
    if not value:
        return None
    handles, _ = extract_social_handles(value)
    if platform in handles:
        return handles[platform]
    if "/" in value or " " in value.strip():
        return None
    return value


def _row_to_draft(cells: List[str], columns: Dict[str, int]) -> DraftProspect:
    name = " ".join(_cell(cells, columns, "name").split())
    first = _cell(cells, columns, "first")
    last = _cell(cells, columns, "last")

    email_cell = _cell(cells, columns, "email")
    emails = EMAIL_RE.findall(email_cell)

    phone_cell = _cell(cells, columns, "phone")
    phones = [m.group(0) for m in PHONE_RE.finditer(phone_cell)]
    if not phones and len(re.sub(r"\D", "", phone_cell)) >= 7:
        phones = [phone_cell]

    handles: Dict[str, str] = {}
    for platform in ("facebook", "instagram", "linkedin", "tiktok"):
        value = _social_cell(_cell(cells, columns, platform), platform)
        if value:
            handles[platform] = value

    # Profile URLs sitting in unmapped columns (e.g. a LinkedIn export's URL column)
    mapped = set(columns.values())
    for index, value in enumerate(cells):
        if index in mapped or not value:
            continue
        found, _ = extract_social_handles(value)
        for platform, handle in found.items():
            handles.setdefault(platform, handle)

    display_name = name or " ".join(part for part in (first, last) if part)
    if name and not (first or last):
        first, last = _split_name(name)

    return _build_draft(
        display_name=display_name,
        first_name=first,
        last_name=last,
        emails=emails,
        phones=phones,
        handles=handles,
    )


def parse_csv(raw_text: str) -> List[DraftProspect]:
    """Parse CSV text whose header names the prospect columns."""
    drafts: List[DraftProspect] = []
    if not raw_text:
        return drafts

    try:
        lines = [line for line in raw_text.splitlines() if line.strip()]
        columns: Dict[str, int] = {}
        header_index = None
        for index, line in enumerate(lines[:MAX_HEADER_SEARCH_LINES]):
            cells = split_csv_row(line)
            if not looks_like_header(cells):
                continue
            columns = resolve_columns(cells)
            if columns:
                header_index = index
                break

        if header_index is None:
            logger.info("[PARSER_CSV] No recognizable header row, nothing parsed")
            return drafts

        logger.debug(f"[PARSER_CSV] Resolved columns: {columns}")

        for line in lines[header_index + 1:]:
            draft = _row_to_draft(split_csv_row(line), columns)
            if draft.has_any_field():
                drafts.append(draft)
    except Exception as e:
        logger.warning(f"[PARSER_CSV] Stopped early after {len(drafts)} drafts: {e}")

    return dedupe_drafts(drafts)


# =============================================================================
# HTML parser
# =============================================================================

def _anchor_name(label: str) -> Optional[str]:
    label = " ".join(label.split())
    if NAME_LIKE_RE.match(label):
        return label
    return None


def parse_html(raw_html: str) -> List[DraftProspect]:
    """
    Best-effort extraction from captured or crawled markup.

    Anchors are read first (mailto:, tel:, social profile links, with the
    link label as a display name when it looks like one) and removed from
    the tree; the remaining visible text goes through the text parser.
    """
    drafts: List[DraftProspect] = []
    if not raw_html:
        return drafts

    try:
        soup = BeautifulSoup(raw_html, "html.parser")
        for tag in soup(["script", "style", "noscript", "template"]):
            tag.decompose()

        for anchor in soup.find_all("a", href=True):
            href = str(anchor.get("href") or "").strip()
            name = _anchor_name(anchor.get_text(" ", strip=True))
            draft = None

            if href.lower().startswith("mailto:"):
                address = href[7:].split("?")[0]
                if EMAIL_RE.fullmatch(address):
                    draft = _build_draft(display_name=name, emails=[address])
            elif href.lower().startswith("tel:"):
                number = href[4:].strip()
                if len(re.sub(r"\D", "", number)) >= 7:
                    draft = _build_draft(display_name=name, phones=[number])
            else:
                handles, _ = extract_social_handles(href)
                if handles:
                    draft = _build_draft(display_name=name, handles=handles)

            if draft is not None:
                if draft.display_name:
                    first, last = _split_name(draft.display_name)
                    draft = draft.model_copy(update={"first_name": first, "last_name": last})
                drafts.append(draft)
                anchor.decompose()

        text = soup.get_text("\n")
        drafts.extend(parse_text(text, TextStructure.PARAGRAPHS))
    except Exception as e:
        logger.warning(f"[PARSER_HTML] Malformed markup, kept {len(drafts)} drafts: {e}")

    return dedupe_drafts(drafts)


# =============================================================================
# Dispatcher
# =============================================================================

def run_parser(raw_text: Optional[str], structure: Optional[TextStructure]) -> List[DraftProspect]:
    """Select the parser for a structural hint. Unknown hints yield []."""
    if not raw_text or structure is None:
        return []

    try:
        structure = TextStructure(structure)
    except ValueError:
        logger.info(f"[PARSER] Unknown structure '{structure}', nothing parsed")
        return []

    if structure == TextStructure.CSV:
        drafts = parse_csv(raw_text)
    elif structure == TextStructure.HTML:
        drafts = parse_html(raw_text)
    else:
        drafts = parse_text(raw_text, structure)

    logger.info(f"[PARSER] {structure.value}: {len(drafts)} draft prospects")
    return drafts
