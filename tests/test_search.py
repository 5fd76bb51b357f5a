"""Tests for artifact content search."""

import pytest

from agentmem.store.errors import StorageFailedError
from agentmem.store.models import ListOptions, new_artifact, new_project, new_task


@pytest.fixture
def populated(store):
    """Two projects, three tasks, one note per task mentioning a cache."""
    for pid in ["alpha", "beta"]:
        store.create_project(new_project(pid, pid, now=store.now()))
    for pid, tid, content in [
        ("alpha", "t1", "Flushed the CACHE"),
        ("alpha", "t2", "cache warmup notes"),
        ("beta", "t1", "The cache key was wrong"),
    ]:
        store.create_task(new_task(pid, tid, tid, now=store.now()))
        store.save_artifact(new_artifact(pid, tid, "note", content, now=store.now()))
    return store


class TestSearch:
    def test_case_insensitive_everywhere(self, populated):
        result = populated.search_artifacts("cache")
        assert result.total == 3

    def test_project_scope(self, populated):
        result = populated.search_artifacts("cache", project_id="alpha")
        assert {(a.project_id, a.task_id) for a in result.items} == {("alpha", "t1"), ("alpha", "t2")}

    def test_task_scope(self, populated):
        result = populated.search_artifacts("cache", project_id="beta", task_id="t1")
        assert [a.content for a in result.items] == ["The cache key was wrong"]

    def test_task_without_project_is_ignored(self, populated):
        assert populated.search_artifacts("cache", task_id="t2").total == 3

    def test_no_match(self, populated):
        result = populated.search_artifacts("database")
        assert result.items == []
        assert result.total == 0
        assert result.has_more is False

    def test_missing_scope_is_empty(self, populated):
        assert populated.search_artifacts("cache", project_id="nope").total == 0
        assert populated.search_artifacts("cache", project_id="alpha", task_id="nope").total == 0

    def test_empty_query_matches_everything(self, populated):
        assert populated.search_artifacts("").total == 3

    def test_pagination_after_full_scan(self, populated):
        first = populated.search_artifacts("cache", opts=ListOptions(limit=2))
        second = populated.search_artifacts("cache", opts=ListOptions(limit=2, offset=2))
        assert first.total == second.total == 3
        assert first.has_more is True
        assert len(first.items) == 2
        assert len(second.items) == 1
        assert second.has_more is False

    def test_storage_failure_propagates(self, populated, monkeypatch):
        def broken(project_id, task_id):
            raise StorageFailedError("disk gone")

        monkeypatch.setattr(populated, "all_artifacts", broken)
        with pytest.raises(StorageFailedError):
            populated.search_artifacts("cache")
