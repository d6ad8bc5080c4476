"""Unit tests for CompressionAdapter."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, call
from models.document import PageRecord
from services.compression_adapter import CompressionAdapter, PAGE_CLEANING_PROMPT
from services.compression_client import UNAVAILABLE_SENTINEL, AUTH_FAILURE_SENTINEL
from services.errors import TransportFailure

LONG_TEXT = "1. Card reader 6. USB-A 2. HDMI port 7. Power jack 3. Headphone jack"


class TestCompressionAdapter:
    """Test suite for CompressionAdapter class."""

    @pytest.fixture
    def mock_client(self):
        """Create a mock CompressionClient."""
        return Mock()

    @pytest.fixture
    def adapter(self, mock_client):
        """Create a CompressionAdapter with a mocked client."""
        return CompressionAdapter(mock_client, model="gpt-4o", rate=0.95)

    def test_short_page_bypasses_service(self, adapter, mock_client):
        """Test that pages under 50 characters are returned untouched."""
        text = "Page 3 intentionally left blank."
        assert adapter.compress(text) == text
        mock_client.compress.assert_not_called()

    def test_page_of_49_characters_bypasses_service(self, adapter, mock_client):
        """Test the bypass boundary."""
        text = "x" * 49
        assert adapter.compress(text) == text
        mock_client.compress.assert_not_called()

    def test_successful_compression(self, adapter, mock_client):
        """Test that a good result replaces the page text."""
        mock_client.compress.return_value = "1. Card reader | 6. USB-A\n2. HDMI port | 7. Power jack"

        result = adapter.compress(LONG_TEXT)

        assert result == "1. Card reader | 6. USB-A\n2. HDMI port | 7. Power jack"
        mock_client.compress.assert_called_once_with(
            context=LONG_TEXT,
            prompt=PAGE_CLEANING_PROMPT,
            model="gpt-4o",
            rate=0.95
        )

    def test_explicit_prompt_model_and_rate(self, adapter, mock_client):
        """Test that per-call arguments override the defaults."""
        mock_client.compress.return_value = "Compressed output text"

        adapter.compress(LONG_TEXT, "Extract safety warnings.", model="gpt-4o-mini", rate=0.4)

        mock_client.compress.assert_called_once_with(
            context=LONG_TEXT,
            prompt="Extract safety warnings.",
            model="gpt-4o-mini",
            rate=0.4
        )

    @pytest.mark.parametrize("result", [
        UNAVAILABLE_SENTINEL,
        AUTH_FAILURE_SENTINEL,
        "Service temporarily unavailable, retry later",
        "",
        "too short",
        "ten chars!",
    ])
    def test_unusable_result_falls_back_to_original(self, adapter, mock_client, result):
        """Test that sentinels and short results are rejected."""
        mock_client.compress.return_value = result
        assert adapter.compress(LONG_TEXT) == LONG_TEXT

    def test_eleven_character_result_is_accepted(self, adapter, mock_client):
        """Test the result length boundary."""
        mock_client.compress.return_value = "eleven char"
        assert adapter.compress(LONG_TEXT) == "eleven char"

    def test_transport_failure_falls_back_to_original(self, adapter, mock_client):
        """Test that service errors keep the original text."""
        mock_client.compress.side_effect = TransportFailure("connection refused")
        assert adapter.compress(LONG_TEXT) == LONG_TEXT

    def test_compress_pages_drops_blank_pages(self, adapter, mock_client):
        """Test that blank pages contribute no compressed page."""
        mock_client.compress.return_value = "Compressed specifications page"
        pages = [
            PageRecord(page_num=1, text="   "),
            PageRecord(page_num=2, text="Short caption"),
            PageRecord(page_num=3, text=LONG_TEXT),
        ]

        result = adapter.compress_pages(pages)

        assert [p.page_num for p in result] == [2, 3]
        assert result[0].text == "Short caption"
        assert result[1].text == "Compressed specifications page"
        assert mock_client.compress.call_count == 1

    def test_compress_pages_reports_progress_in_order(self, adapter, mock_client):
        """Test that progress is reported once per page, in order."""
        mock_client.compress.return_value = "Compressed page content"
        progress = Mock()
        pages = [PageRecord(page_num=i, text=LONG_TEXT) for i in range(1, 4)]

        adapter.compress_pages(pages, progress=progress)

        assert progress.call_args_list == [call(1, 3), call(2, 3), call(3, 3)]

    def test_one_page_failure_does_not_abort_batch(self, adapter, mock_client):
        """Test that a failing page falls back while the rest are compressed."""
        mock_client.compress.side_effect = [
            TransportFailure("timeout"),
            "Second page compressed",
        ]
        pages = [
            PageRecord(page_num=1, text=LONG_TEXT),
            PageRecord(page_num=2, text=LONG_TEXT + " 4. Fan vent"),
        ]

        result = adapter.compress_pages(pages)

        assert [(p.page_num, p.text) for p in result] == [
            (1, LONG_TEXT),
            (2, "Second page compressed"),
        ]

    def test_compress_pages_empty_input(self, adapter, mock_client):
        """Test that no pages yields no compressed pages."""
        assert adapter.compress_pages([]) == []
        mock_client.compress.assert_not_called()
