"""
Tests for the source preprocessor.

Covers:
- Payload field and structure selection per source type
- Manual input rendering and friends lists
- Unknown source types and malformed payloads
- Language detection (en, fil, taglish, unknown)
"""

import pytest

from prospect_intel.models.prospect_intel import Language, ScanState, TextStructure
from prospect_intel.services.preprocessor import detect_language, preprocess_source
from prospect_intel.utils.errors import InvalidSourceError


def _source(source_type, payload):
    return {"id": "src-1", "user_id": "user-123", "source_type": source_type, "raw_payload": payload}


# ===================================================================
# Structure selection
# ===================================================================

class TestStructureSelection:

    @pytest.mark.parametrize("source_type,payload,expected_text,expected_structure", [
        ("paste_text", {"text": "Pedro Reyes, 09171234567"}, "Pedro Reyes, 09171234567", TextStructure.PARAGRAPHS),
        ("csv", {"csv_text": "name,email\n"}, "name,email\n", TextStructure.CSV),
        ("linkedin_export", {"csv_text": "First Name\n"}, "First Name\n", TextStructure.CSV),
        ("image", {"extracted_text": "Ana Cruz"}, "Ana Cruz", TextStructure.OCR),
        ("ocr", {"extracted_text": "Ana Cruz"}, "Ana Cruz", TextStructure.OCR),
        ("web_crawl", {"html": "<p>hi</p>"}, "<p>hi</p>", TextStructure.HTML),
        ("browser_capture", {"html": "<p>hi</p>"}, "<p>hi</p>", TextStructure.HTML),
        ("chatbot_conversation", {"transcript": "Hi po"}, "Hi po", TextStructure.PARAGRAPHS),
        ("fb_data_file", {"text": "Juan Dela Cruz"}, "Juan Dela Cruz", TextStructure.LIST),
        ("manual_input", {"text": "Juan Dela Cruz"}, "Juan Dela Cruz", TextStructure.LIST),
    ])
    def test_text_and_structure(self, source_type, payload, expected_text, expected_structure):
        patch = preprocess_source(_source(source_type, payload))
        assert patch["state"] == ScanState.PREPROCESSING
        assert patch["raw_text"] == expected_text
        assert patch["structure"] == expected_structure

    def test_browser_capture_without_html_uses_text_content(self):
        patch = preprocess_source(_source("browser_capture", {"text_content": "Ana Cruz, ana@x.com"}))
        assert patch["raw_text"] == "Ana Cruz, ana@x.com"
        assert patch["structure"] == TextStructure.PARAGRAPHS

    def test_friends_list_rendered_one_per_line(self):
        payload = {"friends": [{"name": "Juan Dela Cruz"}, {"name": " Ana Santos "}, {"timestamp": 1}]}
        patch = preprocess_source(_source("fb_data_file", payload))
        assert patch["raw_text"] == "Juan Dela Cruz\nAna Santos"
        assert patch["structure"] == TextStructure.LIST

    def test_structured_manual_input_becomes_csv(self):
        payload = {"name": "Juan Dela Cruz", "email": "juan@x.com"}
        patch = preprocess_source(_source("manual_input", payload))
        assert patch["structure"] == TextStructure.CSV
        assert patch["raw_text"] == "name,email\nJuan Dela Cruz,juan@x.com\n"

    def test_manual_input_quotes_commas(self):
        patch = preprocess_source(_source("manual_input", {"name": "Reyes, Pedro"}))
        assert patch["raw_text"] == 'name\n"Reyes, Pedro"\n'

    def test_extra_payload_fields_are_ignored(self):
        patch = preprocess_source(_source("paste_text", {"text": "hello", "client_version": "3.1"}))
        assert patch["raw_text"] == "hello"


# ===================================================================
# Unrecognized sources
# ===================================================================

class TestUnrecognizedSource:

    def test_unknown_type_leaves_text_and_structure_unset(self):
        patch = preprocess_source(_source("carrier_pigeon", {"text": "hello"}))
        assert patch["state"] == ScanState.PREPROCESSING
        assert "raw_text" not in patch
        assert "structure" not in patch
        assert patch["language"] == Language.UNKNOWN

    def test_missing_payload(self):
        patch = preprocess_source({"id": "src-1", "source_type": None, "raw_payload": None})
        assert "raw_text" not in patch

    def test_non_dict_payload_uses_defaults(self):
        patch = preprocess_source(_source("paste_text", "not a dict"))
        assert patch["raw_text"] == ""
        assert patch["structure"] == TextStructure.PARAGRAPHS

    @pytest.mark.parametrize("source_type,payload", [
        ("paste_text", {"text": 123}),
        ("csv", {"csv_text": ["a", "b"]}),
        ("fb_data_file", {"friends": "Juan Dela Cruz"}),
    ])
    def test_malformed_payload_of_known_type_raises(self, source_type, payload):
        with pytest.raises(InvalidSourceError) as exc_info:
            preprocess_source(_source(source_type, payload))
        assert exc_info.value.details["source_id"] == "src-1"
        assert source_type in exc_info.value.message


# ===================================================================
# Language detection
# ===================================================================

class TestDetectLanguage:

    def test_english(self):
        assert detect_language("Hello, I am interested in your business. Please call me.") == Language.ENGLISH

    def test_filipino(self):
        assert detect_language("Magkano po ito? Gusto ko sana malaman kung may stock pa") == Language.FILIPINO

    def test_taglish(self):
        text = "Hi po, interested ako sa business mo. Can you send me the details kasi gusto ko talaga"
        assert detect_language(text) == Language.TAGLISH

    @pytest.mark.parametrize("text", ["", None, "12345 !!!", "xyzzy plugh"])
    def test_unknown(self, text):
        assert detect_language(text) == Language.UNKNOWN

    @pytest.mark.parametrize("text", ["Thanks po", "hello po", "Salamat, thanks"])
    def test_small_even_mix_is_unknown(self, text):
        assert detect_language(text) == Language.UNKNOWN

    def test_english_with_one_particle_is_unknown(self):
        assert detect_language("Hello, please call me about the business po") == Language.UNKNOWN

    def test_html_tags_do_not_count_as_english(self):
        patch = preprocess_source(_source("web_crawl", {"html": "<div class='the'><a href='#'>Salamat po</a></div>"}))
        assert patch["language"] == Language.FILIPINO
