"""
Tests for the prospect normalizer.
"""

import pytest

from prospect_intel.models.prospect_intel import ContactInfo, DraftProspect, SocialHandles, SourceRef
from prospect_intel.services.normalizer import (
    normalize_email,
    normalize_handle,
    normalize_name,
    normalize_phone,
    normalize_prospect,
    normalize_prospects,
)


class TestNormalizePhone:

    @pytest.mark.parametrize("digits", ["9171234567", "2812345678", "9998887777"])
    def test_local_number_gets_country_code(self, digits):
        assert normalize_phone("0" + digits) == "+63" + digits

    @pytest.mark.parametrize("raw,expected", [
        ("0917-123-4567", "+639171234567"),
        ("(0917) 123 4567", "+639171234567"),
        ("+63 917 123 4567", "+639171234567"),
        ("+1 (415) 555-0100", "+14155550100"),
        ("00441234567890", "+441234567890"),
        ("415.555.0100", "4155550100"),
    ])
    def test_formats(self, raw, expected):
        assert normalize_phone(raw) == expected

    def test_configurable_country_code(self):
        assert normalize_phone("0301234567", default_country_code="+92") == "+92301234567"

    @pytest.mark.parametrize("raw", ["", "call me", "+", "---"])
    def test_empty_results_are_dropped(self, raw):
        assert normalize_phone(raw) is None


class TestNormalizeFields:

    def test_email(self):
        assert normalize_email("  Juan@X.COM ") == "juan@x.com"

    @pytest.mark.parametrize("raw", ["juan.x.com", "juan@x", "@", "a b@c.d", "plainaddress"])
    def test_email_without_at_or_dot_is_rejected(self, raw):
        assert normalize_email(raw) is None

    def test_name(self):
        assert normalize_name("  juan   DELA cruz ") == "Juan Dela Cruz"
        assert normalize_name("   ") is None
        assert normalize_name(None) is None

    def test_handle(self):
        assert normalize_handle(" @Juan.Dela/ ") == "juan.dela"
        assert normalize_handle("@") is None

    @pytest.mark.parametrize("raw", ["@ ana", "@ @ana", " ana / ", "@Ana/ /"])
    def test_handle_is_idempotent(self, raw):
        once = normalize_handle(raw)
        assert once == "ana"
        assert normalize_handle(once) == once


class TestNormalizeProspect:

    def _draft(self):
        return DraftProspect(
            display_name="ana   CRUZ",
            contact_info=ContactInfo(
                emails=["Ana@X.com", "not-an-email", "ana@x.com"],
                phones=["0917 123 4567", "+639171234567"],
            ),
            social_handles=SocialHandles(instagram="@AnaCruz/"),
        )

    def test_every_present_field_is_canonical(self):
        result = normalize_prospect(self._draft())
        assert result.display_name == "Ana Cruz"
        assert result.contact_info.emails == ["ana@x.com"]
        assert result.contact_info.phones == ["+639171234567"]
        assert result.social_handles.instagram == "anacruz"

    def test_absent_fields_stay_absent(self):
        result = normalize_prospect(DraftProspect(display_name="ana"))
        assert result.contact_info is None
        assert result.social_handles is None
        assert result.first_name is None

        partial = normalize_prospect(DraftProspect(contact_info=ContactInfo(phones=["09171234567"])))
        assert partial.contact_info.emails is None
        assert partial.display_name is None

    def test_source_refs_preserved(self):
        draft = self._draft().model_copy(update={"source_refs": SourceRef(entity_id="e1", matched_on="email")})
        assert normalize_prospect(draft).source_refs == draft.source_refs

    def test_idempotent(self):
        once = normalize_prospect(self._draft())
        twice = normalize_prospect(once)
        assert twice == once

    def test_batch_preserves_order_and_count(self):
        drafts = [DraftProspect(display_name="b"), DraftProspect(display_name="a"), DraftProspect()]
        result = normalize_prospects(drafts)
        assert [d.display_name for d in result] == ["B", "A", None]
