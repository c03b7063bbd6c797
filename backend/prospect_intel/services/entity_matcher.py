"""
Entity Matcher - Resolve draft prospects against the user's contact graph

Every draft is compared to the user's existing prospect_entities. A match on
any single identifier annotates the draft with a SourceRef; unmatched drafts
are left untouched and become new entities downstream.
"""
from typing import Any, Dict, List, Optional
import logging

from supabase import Client

from prospect_intel.models.prospect_intel import DraftProspect, SourceRef

logger = logging.getLogger(__name__)


ENTITY_COLUMNS = (
    "id, display_name, first_name, last_name, emails, phones, "
    "facebook_handle, instagram_handle, linkedin_handle, tiktok_handle, updated_at"
)


class EntityMatcher:
    """Matches normalized drafts to existing prospect entities."""

    # Checks in priority order: (matched_on, entity column, is list column)
    MATCH_CHECKS = [
        ("email", "emails", True),
        ("phone", "phones", True),
        ("facebook", "facebook_handle", False),
        ("instagram", "instagram_handle", False),
        ("linkedin", "linkedin_handle", False),
    ]

    def __init__(self, supabase: Client):
        self.supabase = supabase

    async def load_entities(self, user_id: str) -> List[Dict[str, Any]]:
        """
        Fetch the user's entities once per scan.

        Most recently updated first: when several entities satisfy a check,
        the freshest one wins.
        """
        result = self.supabase.table("prospect_entities").select(
            ENTITY_COLUMNS
        ).eq("user_id", user_id).order("updated_at", desc=True).execute()
        return result.data or []

    @staticmethod
    def _draft_values(draft: DraftProspect, matched_on: str) -> List[str]:
        contact = draft.contact_info
        handles = draft.social_handles
        if matched_on == "email":
            return [e.lower() for e in (contact.emails if contact and contact.emails else [])]
        if matched_on == "phone":
            return list(contact.phones if contact and contact.phones else [])
        value = getattr(handles, matched_on, None) if handles else None
        return [value.lower()] if value else []

    @staticmethod
    def _entity_values(entity: Dict[str, Any], column: str, is_list: bool) -> List[str]:
        raw = entity.get(column)
        if not raw:
            return []
        values = raw if is_list else [raw]
        return [str(v).lower() if column != "phones" else str(v) for v in values if v]

    def match_entity(self, draft: DraftProspect, entity: Dict[str, Any]) -> Optional[str]:
        """Return which identifier links the draft to the entity, or None."""
        for matched_on, column, is_list in self.MATCH_CHECKS:
            draft_values = self._draft_values(draft, matched_on)
            if not draft_values:
                continue
            if set(draft_values) & set(self._entity_values(entity, column, is_list)):
                return matched_on

        name = (draft.display_name or "").strip().lower()
        if name and name == (entity.get("display_name") or "").strip().lower():
            return "display_name"
        return None

    def find_match(
        self,
        draft: DraftProspect,
        entities: List[Dict[str, Any]],
    ) -> Optional[SourceRef]:
        """First entity in load order satisfying any check."""
        for entity in entities:
            matched_on = self.match_entity(draft, entity)
            if matched_on:
                return SourceRef(entity_id=entity["id"], matched_on=matched_on)
        return None

    async def match_drafts(
        self,
        user_id: str,
        drafts: List[DraftProspect],
    ) -> List[DraftProspect]:
        """Annotate drafts with source_refs. Order and count are preserved."""
        if not drafts:
            return []

        entities = await self.load_entities(user_id)
        matched = []
        for draft in drafts:
            ref = self.find_match(draft, entities)
            matched.append(draft.model_copy(update={"source_refs": ref}) if ref else draft)

        hits = sum(1 for d in matched if d.source_refs)
        logger.info(
            f"[ENTITY_MATCH] User {user_id}: {hits}/{len(drafts)} drafts matched "
            f"against {len(entities)} entities"
        )
        return matched
