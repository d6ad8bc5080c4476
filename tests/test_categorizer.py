"""Unit tests for KnowledgeCategorizer and item normalization."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock
from models.knowledge import CompressedPage, KnowledgeItem
from services.categorizer import (
    KnowledgeCategorizer,
    CATEGORIZATION_PROMPT,
    normalize_item,
    is_placeholder_text,
)
from services.errors import ParseFailure
from services.llm_client import LLMResponse, LLMError, LLMClientError


def _llm_response(text):
    return LLMResponse(
        text=text,
        tokens_input=1200,
        tokens_output=300,
        latency_ms=850,
        model_used="llama-3.3-70b-versatile"
    )


class TestNormalize:
    """Tests for normalizing raw categorizer output."""

    def test_placeholder_items_are_dropped(self):
        """Test that N/A entries disappear and the category is omitted."""
        data = {"safety": [{"page": 0, "text": "N/A"}]}
        assert KnowledgeCategorizer.normalize(data) == {}

    def test_text_is_trimmed_and_whitespace_collapsed(self):
        """Test that item text is cleaned."""
        data = {"parts": [{"page": 2, "text": "  USB-C\n  port  "}]}
        assert KnowledgeCategorizer.normalize(data) == {
            "parts": [KnowledgeItem(page=2, text="USB-C port")]
        }

    def test_page_split_across_categories_is_preserved(self):
        """Test that one page can contribute to several categories."""
        data = {
            "parts": [{"page": 6, "text": "CPU: Intel i7, RAM: 16GB"}],
            "warranty": [{"page": 6, "text": "1 year limited warranty"}],
        }

        buckets = KnowledgeCategorizer.normalize(data)

        assert buckets["parts"] == [KnowledgeItem(page=6, text="CPU: Intel i7, RAM: 16GB")]
        assert buckets["warranty"] == [KnowledgeItem(page=6, text="1 year limited warranty")]

    def test_structured_item_without_text_is_synthesized(self):
        """Test that arbitrary fields are rendered as "key: value" pairs."""
        data = {"errors": [{"page": 4, "code": "E01", "meaning": "Fan failure"}]}
        assert KnowledgeCategorizer.normalize(data) == {
            "errors": [KnowledgeItem(page=4, text="code: E01 | meaning: Fan failure")]
        }

    def test_empty_and_missing_categories_are_absent(self):
        """Test that empty lists, non-lists and unknown keys produce no bucket."""
        data = {
            "safety": [],
            "parts": "not a list",
            "bogus": [{"page": 1, "text": "Ignored entirely"}],
            "video": [{"page": 9, "text": "https://example.com/setup"}],
        }
        assert KnowledgeCategorizer.normalize(data) == {
            "video": [KnowledgeItem(page=9, text="https://example.com/setup")]
        }

    def test_item_order_is_preserved(self):
        """Test that items keep the order the categorizer returned."""
        data = {"procedures": [
            {"page": 3, "text": "Step one"},
            {"page": 1, "text": "Step two"},
        ]}
        assert [i.page for i in KnowledgeCategorizer.normalize(data)["procedures"]] == [3, 1]


class TestNormalizeItem:
    """Tests for single-item normalization."""

    def test_bare_string_item(self):
        """Test that a string becomes an item on page 0."""
        assert normalize_item("Keep away from water") == KnowledgeItem(page=0, text="Keep away from water")

    @pytest.mark.parametrize("raw", [None, 42, ["a", "b"], True])
    def test_non_object_items_are_dropped(self, raw):
        """Test that unusable items are skipped."""
        assert normalize_item(raw) is None

    @pytest.mark.parametrize("page, expected", [
        ("7", 7),
        (3.0, 3),
        ("2.0", 2),
        ("seven", 0),
        (None, 0),
        (True, 0),
    ])
    def test_page_coercion(self, page, expected):
        """Test that page numbers are coerced to integers with 0 as fallback."""
        assert normalize_item({"page": page, "text": "Fuse rating 5A"}).page == expected

    def test_synthesized_list_and_nested_values(self):
        """Test that lists are comma-joined and nested objects serialized."""
        item = normalize_item({
            "page": 5,
            "ports": ["HDMI", "USB-A"],
            "size": {"w": 30},
            "empty": "",
            "flag": True,
        })
        assert item.text == 'ports: HDMI, USB-A | size: {"w": 30}'

    def test_structured_item_with_nothing_usable_is_dropped(self):
        """Test that an item whose fields are all empty is dropped."""
        assert normalize_item({"page": 1, "note": "", "tags": []}) is None


class TestIsPlaceholderText:
    """Tests for placeholder detection."""

    @pytest.mark.parametrize("text", [
        "", "   ", None, "N/A", "none", "NA", "-",
        "No warranty information found",
        "None provided",
        "Please visit our website",
        "ab",
    ])
    def test_placeholders(self, text):
        assert is_placeholder_text(text)

    @pytest.mark.parametrize("text", ["USB", "Nonetheless, unplug first", "Notebook charger 65W"])
    def test_real_content(self, text):
        assert not is_placeholder_text(text)


class TestKnowledgeCategorizer:
    """Test suite for the categorize call."""

    @pytest.fixture
    def mock_llm(self):
        """Create a mock LLMClient."""
        return Mock()

    @pytest.fixture
    def categorizer(self, mock_llm):
        return KnowledgeCategorizer(mock_llm, model="test-model", max_tokens=4096)

    @pytest.fixture
    def pages(self):
        return [
            CompressedPage(page_num=1, text="WARNING: Risk of electric shock"),
            CompressedPage(page_num=2, text="1. Card reader 2. HDMI port"),
        ]

    def test_build_context(self, pages):
        """Test that pages are labeled and separated by blank lines."""
        assert KnowledgeCategorizer.build_context(pages) == (
            "[PAGE 1]:\nWARNING: Risk of electric shock\n\n"
            "[PAGE 2]:\n1. Card reader 2. HDMI port"
        )

    def test_categorize_success(self, categorizer, mock_llm, pages):
        """Test a successful JSON-mode categorization."""
        mock_llm.generate.return_value = _llm_response(
            '{"safety":[{"page":1,"text":"WARNING: Risk of electric shock"}],'
            '"parts":[{"page":2,"text":"1. Card reader"},{"page":2,"text":"2. HDMI port"}],'
            '"warranty":[],"procedures":[],"errors":[],"video":[]}'
        )

        buckets = categorizer.categorize(pages)

        assert set(buckets) == {"safety", "parts"}
        assert len(buckets["parts"]) == 2

        args, kwargs = mock_llm.generate.call_args
        assert args[0].startswith(CATEGORIZATION_PROMPT)
        assert "MANUAL CONTENT:\n[PAGE 1]:" in args[0]
        assert kwargs["model"] == "test-model"
        assert kwargs["json_mode"] is True
        assert kwargs["max_tokens"] == 4096

    def test_fenced_response_with_trailing_comma(self, categorizer, mock_llm, pages):
        """Test that repaired responses are accepted."""
        mock_llm.generate.return_value = _llm_response(
            '```json\n{"errors": [{"page": 2, "text": "E01: Fan failure"},]}\n```'
        )
        assert categorizer.categorize(pages) == {
            "errors": [KnowledgeItem(page=2, text="E01: Fan failure")]
        }

    def test_json_mode_failure_retries_plain(self, categorizer, mock_llm, pages):
        """Test that a rejected JSON-mode request is retried without it."""
        error = LLMClientError(LLMError(code="API_ERROR", message="json mode unsupported", details={}))
        mock_llm.generate.side_effect = [
            error,
            _llm_response('{"video": [{"page": 2, "text": "https://example.com/help"}]}'),
        ]

        buckets = categorizer.categorize(pages)

        assert buckets == {"video": [KnowledgeItem(page=2, text="https://example.com/help")]}
        assert mock_llm.generate.call_count == 2
        assert "json_mode" not in mock_llm.generate.call_args.kwargs

    def test_plain_retry_failure_propagates(self, categorizer, mock_llm, pages):
        """Test that an error on the retry is raised to the caller."""
        error = LLMClientError(LLMError(code="RATE_LIMIT_ERROR", message="slow down", details={}))
        mock_llm.generate.side_effect = [error, error]

        with pytest.raises(LLMClientError):
            categorizer.categorize(pages)

    def test_unparseable_response_raises_parse_failure(self, categorizer, mock_llm, pages):
        """Test that a response without JSON fails the run."""
        mock_llm.generate.return_value = _llm_response("Sorry, I cannot categorize this manual.")

        with pytest.raises(ParseFailure):
            categorizer.categorize(pages)

    def test_all_placeholder_response_yields_no_buckets(self, categorizer, mock_llm, pages):
        """Test that a response of only placeholders produces empty buckets."""
        mock_llm.generate.return_value = _llm_response(
            '{"safety": [{"page": 0, "text": "N/A"}], "warranty": ["None"]}'
        )
        assert categorizer.categorize(pages) == {}
