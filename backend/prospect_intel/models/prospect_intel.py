"""
Prospect Intel Pipeline - Pydantic Models

Models for sources, draft prospects, the scan working context and the
deep intelligence result.
"""

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from typing import Optional, List, Dict, Any, Literal, Union, Annotated
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class SourceType(str, Enum):
    """Where a batch of raw prospect data came from."""
    PASTE_TEXT = "paste_text"
    CSV = "csv"
    IMAGE = "image"
    OCR = "ocr"
    WEB_CRAWL = "web_crawl"
    BROWSER_CAPTURE = "browser_capture"
    CHATBOT_CONVERSATION = "chatbot_conversation"
    FB_DATA_FILE = "fb_data_file"
    LINKEDIN_EXPORT = "linkedin_export"
    MANUAL_INPUT = "manual_input"


class ScanState(str, Enum):
    """Pipeline states. Transitions follow declaration order; ERROR is terminal."""
    IDLE = "IDLE"
    PREPROCESSING = "PREPROCESSING"
    PARSING = "PARSING"
    ENTITY_MATCHING = "ENTITY_MATCHING"
    ENRICHING = "ENRICHING"
    DEEP_SCANNING = "DEEP_SCANNING"
    ASSEMBLING_INTEL = "ASSEMBLING_INTEL"
    SAVING = "SAVING"
    LEARNING_UPDATE = "LEARNING_UPDATE"
    COMPLETE = "COMPLETE"
    ERROR = "ERROR"


class TextStructure(str, Enum):
    """Structural hint consumed by the parser dispatcher."""
    CSV = "csv"
    HTML = "html"
    LIST = "list"
    PARAGRAPHS = "paragraphs"
    OCR = "ocr"


class Language(str, Enum):
    ENGLISH = "en"
    FILIPINO = "fil"
    TAGLISH = "taglish"
    UNKNOWN = "unknown"


class QueueStatus(str, Enum):
    """Status of a scan_queue row."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


# =============================================================================
# SOURCE PAYLOADS (one variant per SourceType)
# =============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore")


class PasteTextPayload(_Payload):
    source_type: Literal["paste_text"] = "paste_text"
    text: str = ""


class CsvPayload(_Payload):
    source_type: Literal["csv"] = "csv"
    csv_text: str = ""
    file_name: Optional[str] = None


class ImagePayload(_Payload):
    source_type: Literal["image"] = "image"
    extracted_text: str = ""  # OCR output of the uploaded image
    image_url: Optional[str] = None


class OcrPayload(_Payload):
    source_type: Literal["ocr"] = "ocr"
    extracted_text: str = ""


class WebCrawlPayload(_Payload):
    source_type: Literal["web_crawl"] = "web_crawl"
    html: str = ""
    url: Optional[str] = None


class BrowserCapturePayload(_Payload):
    source_type: Literal["browser_capture"] = "browser_capture"
    html: str = ""
    text_content: Optional[str] = None
    platform: Optional[str] = None  # facebook, instagram, linkedin, tiktok...


class ChatbotConversationPayload(_Payload):
    source_type: Literal["chatbot_conversation"] = "chatbot_conversation"
    transcript: str = ""


class FbDataFilePayload(_Payload):
    source_type: Literal["fb_data_file"] = "fb_data_file"
    text: Optional[str] = None
    friends: List[Dict[str, Any]] = Field(default_factory=list)  # [{"name": ..., "timestamp": ...}]


class LinkedInExportPayload(_Payload):
    source_type: Literal["linkedin_export"] = "linkedin_export"
    csv_text: str = ""


class ManualInputPayload(_Payload):
    source_type: Literal["manual_input"] = "manual_input"
    text: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    linkedin: Optional[str] = None
    tiktok: Optional[str] = None


SourcePayload = Annotated[
    Union[
        PasteTextPayload,
        CsvPayload,
        ImagePayload,
        OcrPayload,
        WebCrawlPayload,
        BrowserCapturePayload,
        ChatbotConversationPayload,
        FbDataFilePayload,
        LinkedInExportPayload,
        ManualInputPayload,
    ],
    Field(discriminator="source_type"),
]

_source_payload_adapter: TypeAdapter = TypeAdapter(SourcePayload)


def parse_source_payload(source_type: Optional[str], raw_payload: Any) -> SourcePayload:
    """
    Build the typed payload for a source row.

    Raises pydantic.ValidationError for unknown source types or payloads
    whose fields have the wrong shape.
    """
    data = dict(raw_payload) if isinstance(raw_payload, dict) else {}
    data["source_type"] = source_type.value if isinstance(source_type, Enum) else source_type
    return _source_payload_adapter.validate_python(data)


# =============================================================================
# DRAFT PROSPECTS
# =============================================================================

class ContactInfo(BaseModel):
    emails: Optional[List[str]] = None
    phones: Optional[List[str]] = None


class SocialHandles(BaseModel):
    facebook: Optional[str] = None
    instagram: Optional[str] = None
    linkedin: Optional[str] = None
    tiktok: Optional[str] = None


class SourceRef(BaseModel):
    """Reference to an existing prospect entity a draft was matched to."""
    entity_id: str
    matched_on: str  # email, phone, facebook, instagram, linkedin, display_name


class DraftProspect(BaseModel):
    """Unvalidated candidate record produced by a parser."""
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    contact_info: Optional[ContactInfo] = None
    social_handles: Optional[SocialHandles] = None
    source_refs: Optional[SourceRef] = None

    def has_any_field(self) -> bool:
        contact = self.contact_info
        handles = self.social_handles
        return bool(
            self.display_name
            or self.first_name
            or self.last_name
            or (contact and (contact.emails or contact.phones))
            or (handles and any(handles.model_dump().values()))
        )


# =============================================================================
# SCAN CONTEXT
# =============================================================================

class ScanContext(BaseModel):
    """
    Working state of one scan.

    Frozen: every stage returns an updated copy via ``evolve`` instead of
    mutating a shared object.
    """
    model_config = ConfigDict(frozen=True)

    scan_id: str
    user_id: str
    source_id: str
    state: ScanState = ScanState.IDLE
    error: Optional[str] = None
    language: Optional[Language] = None
    structure: Optional[TextStructure] = None
    raw_text: Optional[str] = None
    parsed_prospects: Optional[List[DraftProspect]] = None
    normalized_prospects: Optional[List[DraftProspect]] = None
    final_prospect_ids: Optional[List[str]] = None

    def evolve(self, **changes: Any) -> "ScanContext":
        return self.model_copy(update=changes)

    def snapshot(self) -> Dict[str, Any]:
        """JSON-safe serialization persisted at every transition."""
        return self.model_dump(mode="json")


class ScanProgressEvent(BaseModel):
    scan_id: str
    user_id: str
    state: ScanState
    progress: float
    label: str


# =============================================================================
# DEEP INTELLIGENCE
# =============================================================================

class DeepIntelResult(BaseModel):
    """Structured output of the deep intelligence agent."""
    scout_score: int = Field(default=50, ge=0, le=100)
    confidence_score: float = Field(default=0.5, ge=0.0, le=1.0)
    personality_profile: Dict[str, Any] = Field(default_factory=dict)
    pain_points: List[Any] = Field(default_factory=list)
    financial_signals: Dict[str, Any] = Field(default_factory=dict)
    business_interest: List[Any] = Field(default_factory=list)
    life_events: List[Any] = Field(default_factory=list)
    emotional_state: Dict[str, Any] = Field(default_factory=dict)
    engagement_prediction: Dict[str, Any] = Field(default_factory=dict)
    upsell_readiness: Dict[str, Any] = Field(default_factory=dict)
    closing_likelihood: Dict[str, Any] = Field(default_factory=dict)
    top_opportunities: List[Any] = Field(default_factory=list)
