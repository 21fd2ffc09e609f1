"""Tests for CAS section detector FSM."""

import re

from cas_analyzer.models import ReconstructedLine
from cas_analyzer.section_detector import (
    Section,
    SectionDetector,
    SectionPatterns,
    SectionState,
    detect_sections,
    get_section_by_type,
)

STATEMENT_LINES = [
    "Consolidated Account Statement",
    "PORTFOLIO SUMMARY",
    "Mutual Fund Cost Value Market Value",
    "HDFC Mutual Fund 5,000.00 5,025.00",
    "Total 5,000.00 5,025.00",
    "Date Transaction Amount Units Price Unit Balance",
    "01-Apr-2023 Purchase 5,000.00 100.000 50.00 100.000",
]


class TestSectionPatterns:
    """Tests for section pattern matching."""

    def test_summary_patterns(self):
        """Test portfolio summary marker patterns."""
        patterns = [re.compile(p) for p in SectionPatterns.SUMMARY_MARKERS]

        assert any(p.search("PORTFOLIO SUMMARY") for p in patterns)
        assert any(p.search("Portfolio Summary as on 31-Mar-2024") for p in patterns)
        assert any(p.search("PortfolioSummary") for p in patterns)

    def test_transaction_patterns(self):
        """Test transaction table header patterns."""
        patterns = [re.compile(p) for p in SectionPatterns.TRANSACTION_MARKERS]

        assert any(p.search("Date Transaction Amount Units") for p in patterns)
        assert not any(p.search("Transaction charges") for p in patterns)


class TestSectionDetector:
    """Tests for SectionDetector FSM."""

    def test_initial_state(self):
        """Test detector starts in INITIAL state."""
        detector = SectionDetector()

        assert detector.current_state == SectionState.INITIAL

    def test_full_document_sections(self):
        """Test summary then transaction sections are detected in order."""
        sections = SectionDetector().detect_sections(STATEMENT_LINES)

        assert [s.section_type for s in sections] == [
            SectionState.PORTFOLIO_SUMMARY,
            SectionState.TRANSACTION_DETAILS,
        ]
        summary = sections[0]
        assert summary.start_line == 1
        assert summary.end_line == 5
        assert summary.lines[0] == "PORTFOLIO SUMMARY"
        assert summary.lines[-1] == "Total 5,000.00 5,025.00"

    def test_no_summary(self):
        """Test a transaction header alone never opens a section."""
        sections = detect_sections([
            "Consolidated Account Statement",
            "Date Transaction Amount Units Price Unit Balance",
        ])

        assert sections == []

    def test_repeated_summary_marker_opens_new_section(self):
        """Test a second summary marker starts a second summary section."""
        lines = STATEMENT_LINES + ["Portfolio Summary (continued)", "Total 1.00 2.00"]

        sections = detect_sections(lines)

        summaries = [s for s in sections if s.section_type == SectionState.PORTFOLIO_SUMMARY]
        assert len(summaries) == 2
        assert summaries[1].lines == ["Portfolio Summary (continued)", "Total 1.00 2.00"]

    def test_accepts_reconstructed_lines(self):
        """Test reconstructed lines are read through their text."""
        lines = [ReconstructedLine(y=800 - i, text=t) for i, t in enumerate(STATEMENT_LINES)]

        sections = detect_sections(lines)

        assert sections[0].lines[1] == "Mutual Fund Cost Value Market Value"

    def test_detector_reusable(self):
        """Test state is reset between documents."""
        detector = SectionDetector()
        detector.detect_sections(STATEMENT_LINES)

        sections = detector.detect_sections(["Date Transaction Amount"])

        assert sections == []


class TestHelperFunctions:
    """Tests for helper functions."""

    def test_get_section_by_type_found(self):
        """Test finding a section by type."""
        sections = [
            Section(SectionState.PORTFOLIO_SUMMARY, 0, 5),
            Section(SectionState.TRANSACTION_DETAILS, 5, 10),
        ]

        result = get_section_by_type(sections, SectionState.TRANSACTION_DETAILS)

        assert result is not None
        assert result.start_line == 5

    def test_get_section_by_type_not_found(self):
        """Test section not found returns None."""
        sections = [Section(SectionState.TRANSACTION_DETAILS, 0, 5)]

        assert get_section_by_type(sections, SectionState.PORTFOLIO_SUMMARY) is None
