"""
Scan State Machine

Drives one scan through the fixed pipeline:

    IDLE -> PREPROCESSING -> PARSING -> ENTITY_MATCHING -> ENRICHING ->
    DEEP_SCANNING -> ASSEMBLING_INTEL -> SAVING -> LEARNING_UPDATE -> COMPLETE

Every transition persists a full context snapshot to deep_scan_state_machine
(one row per scan, overwritten) and notifies the optional progress callback.
Any exception escaping a stage moves the scan to ERROR, is persisted, and is
re-raised to the caller of run().
"""

import inspect
import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

from supabase import Client

from prospect_intel import config
from prospect_intel.database import get_supabase_service
from prospect_intel.models.prospect_intel import (
    DeepIntelResult,
    DraftProspect,
    ScanContext,
    ScanProgressEvent,
    ScanState,
)
from prospect_intel.services.deep_intel_agent import DeepIntelAgent, get_deep_intel_agent
from prospect_intel.services.entity_matcher import EntityMatcher
from prospect_intel.services.learning_loop import record_learning
from prospect_intel.services.normalizer import normalize_prospects
from prospect_intel.services.parser_agents import run_parser
from prospect_intel.services.preprocessor import preprocess_source
from prospect_intel.utils.errors import SourceNotFoundError

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ScanProgressEvent], Union[None, Awaitable[None]]]

STATE_ORDER: List[ScanState] = [
    ScanState.IDLE,
    ScanState.PREPROCESSING,
    ScanState.PARSING,
    ScanState.ENTITY_MATCHING,
    ScanState.ENRICHING,
    ScanState.DEEP_SCANNING,
    ScanState.ASSEMBLING_INTEL,
    ScanState.SAVING,
    ScanState.LEARNING_UPDATE,
    ScanState.COMPLETE,
]

STATE_LABELS: Dict[ScanState, str] = {
    ScanState.IDLE: "Initializing",
    ScanState.PREPROCESSING: "Preparing data",
    ScanState.PARSING: "Extracting prospects",
    ScanState.ENTITY_MATCHING: "Matching entities",
    ScanState.ENRICHING: "Enriching data",
    ScanState.DEEP_SCANNING: "Running deep intelligence",
    ScanState.ASSEMBLING_INTEL: "Assembling intelligence",
    ScanState.SAVING: "Saving results",
    ScanState.LEARNING_UPDATE: "Updating learning models",
    ScanState.COMPLETE: "Complete",
    ScanState.ERROR: "Error",
}

# Characters of the source text handed to the deep intel agent
SOURCE_EXCERPT_CHARS = 500


def calculate_progress(state: ScanState) -> float:
    """Percentage for a state; ERROR (not in the forward order) reports 0."""
    try:
        index = STATE_ORDER.index(ScanState(state))
    except ValueError:
        return 0.0
    return index / (len(STATE_ORDER) - 1) * 100


def get_state_label(state: ScanState) -> str:
    return STATE_LABELS.get(state, str(state))


def display_name_for(draft: DraftProspect) -> Optional[str]:
    """Name an entity is stored under: display name, full name, or first identifier."""
    if draft.display_name:
        return draft.display_name
    full_name = " ".join(p for p in (draft.first_name, draft.last_name) if p)
    if full_name:
        return full_name
    contact = draft.contact_info
    if contact and contact.emails:
        return contact.emails[0]
    handles = draft.social_handles
    if handles:
        for platform in ("facebook", "instagram", "linkedin", "tiktok"):
            value = getattr(handles, platform)
            if value:
                return value
    if contact and contact.phones:
        return contact.phones[0]
    return None


def _merge_lists(existing: Optional[List[str]], new: Optional[List[str]]) -> Optional[List[str]]:
    merged = list(existing or [])
    for value in new or []:
        if value not in merged:
            merged.append(value)
    return merged or None


class ScanStateMachine:
    """
    Usage:
        machine = ScanStateMachine(scan_id, user_id, source_id, progress_callback=on_progress)
        entity_ids = await machine.run()
    """

    def __init__(
        self,
        scan_id: str,
        user_id: str,
        source_id: str,
        progress_callback: Optional[ProgressCallback] = None,
        supabase: Optional[Client] = None,
        deep_intel_agent: Optional[DeepIntelAgent] = None,
        entity_matcher: Optional[EntityMatcher] = None,
        default_country_code: str = config.DEFAULT_PHONE_COUNTRY_CODE,
    ):
        self.context = ScanContext(scan_id=scan_id, user_id=user_id, source_id=source_id)
        self.progress_callback = progress_callback
        self.supabase = supabase or get_supabase_service()
        self._deep_intel_agent = deep_intel_agent
        self.entity_matcher = entity_matcher or EntityMatcher(self.supabase)
        self.default_country_code = default_country_code

    @property
    def deep_intel_agent(self) -> DeepIntelAgent:
        if self._deep_intel_agent is None:
            self._deep_intel_agent = get_deep_intel_agent()
        return self._deep_intel_agent

    # ==========================================
    # RUN
    # ==========================================

    async def run(self) -> List[str]:
        """Run every stage in order. Returns the ids of the entities touched."""
        stages = [
            (ScanState.IDLE, None),
            (ScanState.PREPROCESSING, self._preprocessing),
            (ScanState.PARSING, self._parsing),
            (ScanState.ENTITY_MATCHING, self._entity_matching),
            (ScanState.ENRICHING, self._enriching),
            (ScanState.DEEP_SCANNING, self._deep_scanning),
            (ScanState.ASSEMBLING_INTEL, self._assembling_intel),
            (ScanState.SAVING, self._saving),
            (ScanState.LEARNING_UPDATE, self._learning_update),
            (ScanState.COMPLETE, None),
        ]

        try:
            for state, stage in stages:
                await self._transition(state)
                if stage is not None:
                    self.context = await stage(self.context)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error(
                f"[SCAN_STATE] Scan {self.context.scan_id} failed in {self.context.state.value}: {message}",
                exc_info=True,
            )
            try:
                await self._transition(ScanState.ERROR, error=message)
            except Exception as persist_error:
                logger.error(
                    f"[SCAN_STATE] Could not persist ERROR for scan {self.context.scan_id}: {persist_error}"
                )
            raise

        ids = self.context.final_prospect_ids or []
        logger.info(f"[SCAN_STATE] Scan {self.context.scan_id} complete: {len(ids)} prospects")
        return ids

    async def _transition(self, state: ScanState, error: Optional[str] = None) -> None:
        changes: Dict[str, Any] = {"state": state}
        if error:
            changes["error"] = error
        self.context = self.context.evolve(**changes)

        self.supabase.table("deep_scan_state_machine").upsert({
            "scan_id": self.context.scan_id,
            "user_id": self.context.user_id,
            "current_state": state.value,
            "context_snapshot": self.context.snapshot(),
            "error_message": error,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }, on_conflict="scan_id").execute()

        logger.debug(f"[SCAN_STATE] Scan {self.context.scan_id} -> {state.value}")
        await self._notify(state)

    async def _notify(self, state: ScanState) -> None:
        if not self.progress_callback:
            return
        event = ScanProgressEvent(
            scan_id=self.context.scan_id,
            user_id=self.context.user_id,
            state=state,
            progress=calculate_progress(state),
            label=get_state_label(state),
        )
        try:
            result = self.progress_callback(event)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.warning(f"[SCAN_STATE] Progress callback failed for scan {self.context.scan_id}: {e}")

    # ==========================================
    # STAGES
    # ==========================================

    async def _preprocessing(self, context: ScanContext) -> ScanContext:
        response = self.supabase.table("prospect_sources").select("*").eq(
            "id", context.source_id
        ).eq("user_id", context.user_id).maybe_single().execute()

        source = response.data if response else None
        if not source:
            raise SourceNotFoundError(context.source_id)

        return context.evolve(**preprocess_source(source))

    async def _parsing(self, context: ScanContext) -> ScanContext:
        drafts = run_parser(context.raw_text, context.structure)
        return context.evolve(parsed_prospects=drafts)

    async def _entity_matching(self, context: ScanContext) -> ScanContext:
        normalized = normalize_prospects(context.parsed_prospects or [], self.default_country_code)
        return context.evolve(normalized_prospects=normalized)

    async def _enriching(self, context: ScanContext) -> ScanContext:
        matched = await self.entity_matcher.match_drafts(context.user_id, context.normalized_prospects or [])
        return context.evolve(normalized_prospects=matched)

    async def _deep_scanning(self, context: ScanContext) -> ScanContext:
        entity_ids: List[str] = []
        excerpt = (context.raw_text or "")[:SOURCE_EXCERPT_CHARS]

        for draft in context.normalized_prospects or []:
            entity = await self._save_entity(context, draft)
            if not entity or entity["id"] in entity_ids:
                continue
            entity_ids.append(entity["id"])

            intel = await self.deep_intel_agent.run_deep_intel(
                context.user_id,
                entity["id"],
                {"entity": entity, "source": excerpt},
            )
            await self._save_intel(context.user_id, entity["id"], intel)

        return context.evolve(final_prospect_ids=entity_ids)

    async def _assembling_intel(self, context: ScanContext) -> ScanContext:
        return context

    async def _saving(self, context: ScanContext) -> ScanContext:
        for entity_id in context.final_prospect_ids or []:
            self.supabase.table("prospect_history").insert({
                "user_id": context.user_id,
                "prospect_entity_id": entity_id,
                "event_type": "discovered",
                "event_data": {"source_id": context.source_id, "scan_id": context.scan_id},
            }).execute()

        self.supabase.table("prospect_sources").update({"processed": True}).eq(
            "id", context.source_id
        ).eq("user_id", context.user_id).execute()
        return context

    async def _learning_update(self, context: ScanContext) -> ScanContext:
        await record_learning(
            context.user_id,
            context.scan_id,
            context.final_prospect_ids or [],
            supabase=self.supabase,
        )
        return context

    # ==========================================
    # PERSISTENCE HELPERS
    # ==========================================

    async def _save_entity(self, context: ScanContext, draft: DraftProspect) -> Optional[Dict[str, Any]]:
        """
        Persist one draft as a prospect entity.

        A matched draft updates the matched entity (contact lists merged).
        An unmatched draft merges into the user's entity with the same
        display name when one exists, so two drafts of one person in a
        single scan fold together; otherwise it is upserted on
        (user_id, display_name).
        """
        display_name = display_name_for(draft)
        if not display_name:
            logger.debug("[SCAN_STATE] Skipping draft without any usable identifier")
            return None

        contact = draft.contact_info
        handles = draft.social_handles
        row: Dict[str, Any] = {
            "first_name": draft.first_name,
            "last_name": draft.last_name,
            "emails": contact.emails if contact else None,
            "phones": contact.phones if contact else None,
            "facebook_handle": handles.facebook if handles else None,
            "instagram_handle": handles.instagram if handles else None,
            "linkedin_handle": handles.linkedin if handles else None,
            "tiktok_handle": handles.tiktok if handles else None,
            "last_seen_source_id": context.source_id,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }

        if draft.source_refs:
            entity_id = draft.source_refs.entity_id
            existing_resp = self.supabase.table("prospect_entities").select("*").eq(
                "id", entity_id
            ).eq("user_id", context.user_id).maybe_single().execute()
            existing = existing_resp.data if existing_resp else None
            if existing:
                return self._merge_into_entity(context, existing, row)

            logger.warning(f"[SCAN_STATE] Matched entity {entity_id} vanished, creating a new one")

        same_name_resp = self.supabase.table("prospect_entities").select("*").eq(
            "user_id", context.user_id
        ).eq("display_name", display_name).maybe_single().execute()
        same_name = same_name_resp.data if same_name_resp else None
        if same_name:
            return self._merge_into_entity(context, same_name, row)

        row.update({"user_id": context.user_id, "display_name": display_name})
        result = self.supabase.table("prospect_entities").upsert(
            row, on_conflict="user_id,display_name"
        ).execute()
        return result.data[0] if result.data else None

    def _merge_into_entity(
        self, context: ScanContext, existing: Dict[str, Any], row: Dict[str, Any]
    ) -> Dict[str, Any]:
        """Update an existing entity: contact lists merged, other present fields overwrite."""
        row["emails"] = _merge_lists(existing.get("emails"), row["emails"])
        row["phones"] = _merge_lists(existing.get("phones"), row["phones"])
        update = {
            key: value for key, value in row.items()
            if value is not None or key in ("emails", "phones")
        }
        result = self.supabase.table("prospect_entities").update(update).eq(
            "id", existing["id"]
        ).eq("user_id", context.user_id).execute()
        if result.data:
            return result.data[0]
        return {**existing, **update}

    async def _save_intel(self, user_id: str, entity_id: str, intel: DeepIntelResult) -> None:
        self.supabase.table("prospect_intel").upsert({
            "user_id": user_id,
            "prospect_entity_id": entity_id,
            **intel.model_dump(),
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }, on_conflict="prospect_entity_id").execute()
