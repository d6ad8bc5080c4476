"""Unit tests for ManualSession and PageRecord models."""
import sys
from datetime import datetime
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from models.document import PageRecord
from models.knowledge import KnowledgeItem, CATEGORY_KEYS, count_items
from models.session import (
    ManualSession,
    ExtractionStatus,
    CATEGORY_UNEXTRACTED,
    CATEGORY_EMPTY,
    CATEGORY_POPULATED,
)


class TestManualSession:
    """Test suite for the manual session aggregate."""

    @pytest.fixture
    def session(self):
        return ManualSession(
            manual_id="42",
            name="Router Guide.pdf",
            pages=[PageRecord(page_num=1, text="Reset: hold the button for 10 seconds")]
        )

    def test_new_session_defaults(self, session):
        assert session.page_count == 1
        assert session.buckets == {}
        assert session.status == ExtractionStatus.UNEXTRACTED
        assert session.category_stats == {key: 0 for key in CATEGORY_KEYS}
        assert not session.is_extracting

    def test_extraction_slot_is_exclusive(self, session):
        """Test that only one extraction can hold the session."""
        assert session.try_begin_extraction()
        assert session.status == ExtractionStatus.EXTRACTING
        assert session.is_extracting
        assert not session.try_begin_extraction()

        session.end_extraction()

        assert not session.is_extracting
        assert session.try_begin_extraction()
        session.end_extraction()

    def test_replace_pages_discards_knowledge(self, session):
        """Test that new pages invalidate buckets derived from old ones."""
        session.replace_buckets({"procedures": [KnowledgeItem(page=1, text="Hold reset")]})

        session.replace_pages([PageRecord(page_num=1, text="New text")])

        assert session.buckets == {}
        assert session.status == ExtractionStatus.UNEXTRACTED
        assert session.pages[0].text == "New text"

    def test_mark_failed_keeps_buckets(self, session):
        buckets = {"errors": [KnowledgeItem(page=1, text="E01: Fan failure")]}
        session.replace_buckets(buckets)

        session.mark_failed("Could not parse JSON from response")

        assert session.buckets == buckets
        assert session.status == ExtractionStatus.FAILED
        assert session.last_error == "Could not parse JSON from response"

    def test_category_state(self, session):
        """Test that unextracted, empty and populated categories are distinguishable."""
        assert session.category_state("warranty") == CATEGORY_UNEXTRACTED

        session.replace_buckets({"procedures": [KnowledgeItem(page=1, text="Hold reset")]})

        assert session.category_state("procedures") == CATEGORY_POPULATED
        assert session.category_state("warranty") == CATEGORY_EMPTY

    def test_record_category(self, session):
        session.record_category("warranty")
        session.record_category("warranty")
        assert session.category_stats["warranty"] == 2

    def test_query_counters(self, session):
        """Test that asked and answered questions are counted separately."""
        session.record_query()
        session.record_query()
        session.record_resolved()

        assert session.total_queries == 2
        assert session.resolved_queries == 1

    def test_dict_round_trip(self, session):
        """Test that a snapshot restores pages, knowledge, status and stats."""
        session.replace_buckets({"procedures": [KnowledgeItem(page=1, text="Hold reset")]})
        session.record_category("procedures")
        session.record_query()
        session.record_resolved()
        session.date_added = datetime(2024, 3, 1, 12, 30)

        data = session.to_dict()
        restored = ManualSession.from_dict(data)

        assert data["pages"][0] == {
            "pageNum": 1,
            "text": "Reset: hold the button for 10 seconds",
            "imageSrc": None,
            "links": [],
        }
        assert restored.manual_id == "42"
        assert restored.name == "Router Guide.pdf"
        assert restored.pages == session.pages
        assert restored.buckets == session.buckets
        assert restored.status == ExtractionStatus.READY
        assert restored.category_stats["procedures"] == 1
        assert restored.total_queries == 1
        assert restored.resolved_queries == 1
        assert restored.date_added == datetime(2024, 3, 1, 12, 30)

    def test_from_dict_never_restores_in_flight_status(self):
        """Test that a snapshot taken mid-extraction is restored as unextracted."""
        restored = ManualSession.from_dict({"id": 7, "name": "x", "status": "extracting"})
        assert restored.manual_id == "7"
        assert restored.status == ExtractionStatus.UNEXTRACTED
        assert not restored.is_extracting

    def test_count_items(self):
        assert count_items({
            "parts": [KnowledgeItem(page=1, text="a b c"), KnowledgeItem(page=2, text="d e f")],
            "video": [KnowledgeItem(page=3, text="https://x.y")],
        }) == 3
