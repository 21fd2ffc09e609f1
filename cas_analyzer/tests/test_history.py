"""Tests for the analysis history repositories."""

import json
from datetime import datetime, timedelta

import pytest

from cas_analyzer.config import STORAGE_KEY
from cas_analyzer.history import InMemoryAnalysisRepository, JsonFileAnalysisRepository
from cas_analyzer.models import Analysis, Holding
from cas_analyzer.session import PortfolioSession

START = datetime(2024, 4, 1, 10, 0)


def make_analysis(index):
    return Analysis(
        id=f"a{index}",
        label=f"Analysis {index}",
        created_at=START + timedelta(minutes=index),
        holdings=[
            Holding(id="h", fund_family="HDFC", folio="1", scheme_name="S", market_value="10")
        ],
    )


@pytest.fixture(params=["memory", "json"])
def repository(request, tmp_path):
    if request.param == "memory":
        return InMemoryAnalysisRepository()
    return JsonFileAnalysisRepository(tmp_path / "history.json")


class TestAnalysisRepository:
    """Behaviour shared by every repository."""

    def test_empty(self, repository):
        assert repository.list() == []
        assert repository.get("missing") is None

    def test_newest_first(self, repository):
        repository.save(make_analysis(1))
        repository.save(make_analysis(2))

        assert [a.id for a in repository.list()] == ["a2", "a1"]

    def test_bounded_history(self, repository):
        """Test only the 15 most recent analyses are kept."""
        for i in range(20):
            repository.save(make_analysis(i))

        saved = repository.list()
        assert len(saved) == 15
        assert saved[0].id == "a19"
        assert saved[-1].id == "a5"

    def test_save_same_id_replaces(self, repository):
        repository.save(make_analysis(1))
        repository.save(make_analysis(2))
        updated = make_analysis(1)
        updated.label = "Renamed"

        repository.save(updated)

        saved = repository.list()
        assert [a.id for a in saved] == ["a1", "a2"]
        assert saved[0].label == "Renamed"

    def test_get(self, repository):
        repository.save(make_analysis(1))

        assert repository.get("a1").label == "Analysis 1"

    def test_delete(self, repository):
        repository.save(make_analysis(1))
        repository.save(make_analysis(2))

        assert repository.delete("a1") is True
        assert repository.delete("a1") is False
        assert [a.id for a in repository.list()] == ["a2"]

    def test_clear(self, repository):
        repository.save(make_analysis(1))

        repository.clear()

        assert repository.list() == []


class TestJsonFileAnalysisRepository:
    """Tests specific to the JSON file store."""

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "data" / "history.json"
        JsonFileAnalysisRepository(path).save(make_analysis(1))

        reloaded = JsonFileAnalysisRepository(path).list()

        assert reloaded == [make_analysis(1)]

    def test_document_layout(self, tmp_path):
        """Test analyses are stored under the storage key."""
        path = tmp_path / "history.json"
        JsonFileAnalysisRepository(path).save(make_analysis(1))

        document = json.loads(path.read_text(encoding="utf-8"))

        assert list(document) == [STORAGE_KEY]
        assert document[STORAGE_KEY][0]["id"] == "a1"

    def test_unreadable_file(self, tmp_path):
        """Test a corrupt file reads as an empty history."""
        path = tmp_path / "history.json"
        path.write_text("{not json", encoding="utf-8")

        assert JsonFileAnalysisRepository(path).list() == []

    def test_custom_limit(self, tmp_path):
        repository = JsonFileAnalysisRepository(tmp_path / "history.json", history_limit=2)
        for i in range(3):
            repository.save(make_analysis(i))

        assert [a.id for a in repository.list()] == ["a2", "a1"]

    def test_malformed_entries_skipped(self, tmp_path):
        """Test entries that cannot be loaded are skipped, not fatal."""
        path = tmp_path / "history.json"
        document = {
            STORAGE_KEY: [
                make_analysis(1).to_dict(),
                {"label": "no id"},
                {"id": "b", "created_at": "not a date"},
                "not an object",
            ]
        }
        path.write_text(json.dumps(document), encoding="utf-8")

        assert [a.id for a in JsonFileAnalysisRepository(path).list()] == ["a1"]

    def test_non_object_document(self, tmp_path):
        path = tmp_path / "history.json"
        path.write_text("[1, 2]", encoding="utf-8")

        assert JsonFileAnalysisRepository(path).list() == []

    def test_session_restores_past_malformed_entries(self, tmp_path):
        path = tmp_path / "history.json"
        document = {STORAGE_KEY: [{"label": "no id"}, make_analysis(1).to_dict()]}
        path.write_text(json.dumps(document), encoding="utf-8")

        session = PortfolioSession(JsonFileAnalysisRepository(path))

        assert session.current_analysis.id == "a1"
