"""Tests for configuration and exceptions."""

from pathlib import Path

from cas_analyzer.config import HISTORY_LIMIT, STORAGE_KEY, AnalyzerConfig
from cas_analyzer.exceptions import (
    CASAnalyzerError,
    CSVFormatError,
    InvalidRowError,
    NoHoldingsDetectedError,
    StatementParseError,
)


class TestAnalyzerConfig:
    """Tests for environment driven settings."""

    def test_defaults(self, monkeypatch):
        for name in (
            "CAS_ANALYZER_DATA_DIR",
            "CAS_ANALYZER_HISTORY_LIMIT",
            "CAS_ANALYZER_CONTINUATION_LINES",
        ):
            monkeypatch.delenv(name, raising=False)

        config = AnalyzerConfig.from_env()

        assert config.history_limit == HISTORY_LIMIT
        assert config.continuation_lines == 0

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.setenv("CAS_ANALYZER_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("CAS_ANALYZER_HISTORY_LIMIT", "5")
        monkeypatch.setenv("CAS_ANALYZER_CONTINUATION_LINES", "2")

        config = AnalyzerConfig.from_env()

        assert config.data_dir == tmp_path
        assert config.history_limit == 5
        assert config.continuation_lines == 2
        assert config.history_path == tmp_path / f"{STORAGE_KEY}.json"

    def test_invalid_values_fall_back(self, monkeypatch):
        monkeypatch.setenv("CAS_ANALYZER_HISTORY_LIMIT", "many")
        monkeypatch.setenv("CAS_ANALYZER_CONTINUATION_LINES", "-3")

        config = AnalyzerConfig.from_env()

        assert config.history_limit == HISTORY_LIMIT
        assert config.continuation_lines == 0

    def test_history_path(self):
        config = AnalyzerConfig(data_dir=Path("/var/lib/cas"))

        assert config.history_path == Path("/var/lib/cas/mf-portfolio-cas-analyses.json")


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_hierarchy(self):
        assert issubclass(NoHoldingsDetectedError, StatementParseError)
        assert issubclass(StatementParseError, CASAnalyzerError)
        assert issubclass(InvalidRowError, CSVFormatError)

    def test_error_code(self):
        error = InvalidRowError(4, "Scheme name is required.")

        assert error.error_code == "INVALID_ROW"
        assert error.message == "Row 4: Scheme name is required."
        assert error.row_number == 4
