"""Tests for the directory-tree store."""

import json
import logging
from pathlib import Path

import pytest
from conftest import START, TickingClock

from agentmem.store.errors import (
    ArtifactNotFoundError,
    InvalidProjectIDError,
    InvalidTaskIDError,
    ProjectAlreadyExistsError,
    ProjectNotFoundError,
    StorageFailedError,
    TaskAlreadyExistsError,
    TaskNotFoundError,
)
from agentmem.store.filesystem import FileSystemStore, split_task_dir_name
from agentmem.store.models import (
    ZERO_TIME,
    ListOptions,
    Project,
    Task,
    TaskStatus,
    new_artifact,
    new_project,
    new_task,
    unix_seconds,
)


def _project(store: FileSystemStore, pid: str = "demo") -> Project:
    project = new_project(pid, pid.title(), now=store.now())
    store.create_project(project)
    return project


def _task(store: FileSystemStore, pid: str = "demo", tid: str = "bug-1") -> Task:
    task = new_task(pid, tid, tid.upper(), now=store.now())
    store.create_task(task)
    return task


def _note(store: FileSystemStore, content: str, pid: str = "demo", tid: str = "bug-1", type: str = "note"):
    artifact = new_artifact(pid, tid, type, content, now=store.now())
    store.save_artifact(artifact)
    return artifact


def _leftover_temp_files(directory: Path) -> list[Path]:
    return [p for p in directory.rglob("*") if p.name.endswith(".tmp")]


class TestTaskDirName:
    def test_prefixed(self):
        assert split_task_dir_name("[in_progress]-fix-bug") == ("in_progress", "fix-bug")

    def test_legacy(self):
        assert split_task_dir_name("fix-bug") == (None, "fix-bug")

    def test_prefix_pattern_is_strict(self):
        assert split_task_dir_name("[Open]-x") == (None, "[Open]-x")


class TestProjects:
    def test_create_and_get(self, store):
        project = _project(store)
        assert (store.base_path / "demo" / "project.json").is_file()
        assert store.get_project("demo") == project

    def test_on_disk_json(self, store):
        project = new_project("demo", "Demo", now=START)
        project.workspace_path = "/src/demo"
        store.create_project(project)
        data = json.loads((store.base_path / "demo" / "project.json").read_text())
        assert data == {
            "id": "demo",
            "name": "Demo",
            "workspace_path": "/src/demo",
            "created_at": "2024-12-04T11:33:20Z",
            "updated_at": "2024-12-04T11:33:20Z",
        }

    def test_duplicate(self, store):
        _project(store)
        with pytest.raises(ProjectAlreadyExistsError):
            _project(store)

    @pytest.mark.parametrize("pid", ["", "Demo", "../evil", "a/b", "-x"])
    def test_invalid_id(self, store, pid):
        with pytest.raises(InvalidProjectIDError):
            store.create_project(Project(id=pid, name="x"))

    def test_get_missing(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.get_project("nope")

    @pytest.mark.parametrize("pid", ["..", ".", "a/b"])
    def test_get_rejects_path_components(self, store, pid):
        with pytest.raises(ProjectNotFoundError):
            store.get_project(pid)

    def test_list_most_recent_first(self, store):
        _project(store, "alpha")
        _project(store, "beta")
        assert [p.id for p in store.list_projects().items] == ["beta", "alpha"]

        alpha = store.get_project("alpha")
        alpha.description = "touched"
        store.update_project(alpha)
        assert [p.id for p in store.list_projects().items] == ["alpha", "beta"]

    def test_list_paginates(self, store):
        for pid in ["a", "b", "c"]:
            _project(store, pid)
        result = store.list_projects(ListOptions(limit=2))
        assert [p.id for p in result.items] == ["c", "b"]
        assert result.total == 3
        assert result.has_more is True

    def test_update_sets_updated_at(self, store):
        project = _project(store)
        project.name = "Renamed"
        store.update_project(project)
        reloaded = store.get_project("demo")
        assert reloaded.name == "Renamed"
        assert reloaded.updated_at > reloaded.created_at

    def test_update_missing(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.update_project(Project(id="ghost", name="Ghost"))

    def test_delete_removes_everything(self, store):
        _project(store)
        _task(store)
        _note(store, "hello")
        store.delete_project("demo")
        assert not (store.base_path / "demo").exists()
        with pytest.raises(ProjectNotFoundError):
            store.get_project("demo")
        with pytest.raises(TaskNotFoundError):
            store.get_task("demo", "bug-1")

    def test_delete_missing(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.delete_project("nope")

    def test_legacy_project_without_metadata(self, store):
        (store.base_path / "old").mkdir()
        project = store.get_project("old")
        assert project.id == "old"
        assert project.name == "old"
        assert "old" in [p.id for p in store.list_projects().items]

    def test_unreadable_project(self, store):
        _project(store, "good")
        (store.base_path / "bad").mkdir()
        (store.base_path / "bad" / "project.json").write_text("{not json")
        with pytest.raises(StorageFailedError):
            store.get_project("bad")
        assert [p.id for p in store.list_projects().items] == ["good"]

    def test_stray_files_in_base_ignored(self, store):
        _project(store)
        (store.base_path / "notes.txt").write_text("x")
        assert [p.id for p in store.list_projects().items] == ["demo"]


class TestTasks:
    def test_create_makes_prefixed_dir(self, store):
        _project(store)
        _task(store)
        task_dir = store.base_path / "demo" / "[open]-bug-1"
        assert (task_dir / "task.json").is_file()
        assert (task_dir / "artifacts").is_dir()

    def test_get(self, store):
        _project(store)
        task = _task(store)
        assert store.get_task("demo", "bug-1") == task

    def test_create_in_missing_project(self, store):
        with pytest.raises(ProjectNotFoundError):
            _task(store, "nope")

    def test_duplicate_in_any_status(self, store):
        _project(store)
        task = _task(store)
        task.status = TaskStatus.ARCHIVED
        store.update_task(task)
        with pytest.raises(TaskAlreadyExistsError):
            _task(store)

    @pytest.mark.parametrize("tid", ["", "Bug", "../x", "a b"])
    def test_invalid_id(self, store, tid):
        _project(store)
        with pytest.raises(InvalidTaskIDError):
            store.create_task(Task(id=tid, project_id="demo", name="x"))

    def test_get_missing(self, store):
        _project(store)
        with pytest.raises(TaskNotFoundError):
            store.get_task("demo", "nope")

    def test_get_rejects_path_components(self, store):
        _project(store)
        _task(store)
        with pytest.raises(TaskNotFoundError):
            store.get_task("demo", "../demo")

    def test_status_change_moves_directory(self, store):
        _project(store)
        task = _task(store)
        task.status = TaskStatus.COMPLETED
        store.update_task(task)

        project_dir = store.base_path / "demo"
        assert not (project_dir / "[open]-bug-1").exists()
        assert (project_dir / "[completed]-bug-1" / "artifacts").is_dir()
        data = json.loads((project_dir / "[completed]-bug-1" / "task.json").read_text())
        assert data["status"] == "completed"
        assert store.get_task("demo", "bug-1").status is TaskStatus.COMPLETED
        assert _leftover_temp_files(project_dir) == []

    def test_update_without_status_change(self, store):
        _project(store)
        task = _task(store)
        task.description = "details"
        store.update_task(task)
        reloaded = store.get_task("demo", "bug-1")
        assert reloaded.description == "details"
        assert reloaded.updated_at > reloaded.created_at
        assert _leftover_temp_files(store.base_path) == []

    def test_update_keeps_artifacts(self, store):
        _project(store)
        task = _task(store)
        _note(store, "kept")
        task.status = TaskStatus.IN_PROGRESS
        store.update_task(task)
        assert [a.content for a in store.all_artifacts("demo", "bug-1")] == ["kept"]

    def test_failed_rename_leaves_task_untouched(self, store, monkeypatch):
        _project(store)
        task = _task(store)

        def boom(src, dst):
            raise PermissionError("denied")

        monkeypatch.setattr("agentmem.store.filesystem.os.rename", boom)
        task.status = TaskStatus.COMPLETED
        task.name = "changed"
        with pytest.raises(StorageFailedError):
            store.update_task(task)

        project_dir = store.base_path / "demo"
        assert [p.name for p in project_dir.iterdir() if p.is_dir()] == ["[open]-bug-1"]
        reloaded = store.get_task("demo", "bug-1")
        assert reloaded.status is TaskStatus.OPEN
        assert reloaded.name == "BUG-1"
        assert _leftover_temp_files(project_dir) == []

    def test_update_missing(self, store):
        _project(store)
        with pytest.raises(TaskNotFoundError):
            store.update_task(Task(id="ghost", project_id="demo", name="Ghost"))

    def test_update_rejects_malformed_status(self, store):
        _project(store)
        task = _task(store)
        task.status = "Not Valid"
        with pytest.raises(ValueError):
            store.update_task(task)

    def test_zero_timestamps_survive_update(self, store):
        _project(store)
        _task(store)
        task_json = store.base_path / "demo" / "[open]-bug-1" / "task.json"
        task_json.write_text(
            json.dumps(
                {
                    "id": "bug-1",
                    "project_id": "demo",
                    "name": "Bug",
                    "status": "open",
                    "created_at": "0001-01-01T00:00:00Z",
                }
            )
        )
        task = store.get_task("demo", "bug-1")
        task.status = TaskStatus.COMPLETED
        store.update_task(task)

        data = json.loads((store.base_path / "demo" / "[completed]-bug-1" / "task.json").read_text())
        assert data["created_at"] == "0001-01-01T00:00:00Z"
        reloaded = store.get_task("demo", "bug-1")
        assert reloaded.created_at == ZERO_TIME
        assert [t.id for t in store.list_tasks("demo").items] == ["bug-1"]

    def test_directory_status_wins_over_file(self, store):
        _project(store)
        _task(store)
        project_dir = store.base_path / "demo"
        (project_dir / "[open]-bug-1").rename(project_dir / "[in_progress]-bug-1")
        assert store.get_task("demo", "bug-1").status is TaskStatus.IN_PROGRESS

    def test_list_filters_and_sorts(self, store):
        _project(store)
        for tid in ["t1", "t2", "t3"]:
            _task(store, tid=tid)
        t2 = store.get_task("demo", "t2")
        t2.status = TaskStatus.COMPLETED
        store.update_task(t2)

        assert [t.id for t in store.list_tasks("demo").items] == ["t2", "t3", "t1"]
        done = store.list_tasks("demo", ListOptions(status=TaskStatus.COMPLETED))
        assert [t.id for t in done.items] == ["t2"]
        assert done.total == 1
        assert store.list_tasks("demo", ListOptions(status=TaskStatus.ARCHIVED)).items == []

    def test_list_missing_project(self, store):
        with pytest.raises(ProjectNotFoundError):
            store.list_tasks("nope")

    def test_list_all_tasks(self, store):
        _project(store, "alpha")
        _project(store, "beta")
        _task(store, "alpha", "a1")
        _task(store, "beta", "b1")
        _task(store, "alpha", "a2")
        result = store.list_all_tasks()
        assert [(t.project_id, t.id) for t in result.items] == [("alpha", "a2"), ("beta", "b1"), ("alpha", "a1")]
        assert result.total == 3

    def test_delete(self, store):
        _project(store)
        _task(store)
        store.delete_task("demo", "bug-1")
        assert not (store.base_path / "demo" / "[open]-bug-1").exists()
        with pytest.raises(TaskNotFoundError):
            store.delete_task("demo", "bug-1")


class TestLegacyTasks:
    def test_unprefixed_dir_with_metadata(self, store):
        _project(store)
        legacy = store.base_path / "demo" / "old-task"
        legacy.mkdir()
        (legacy / "task.json").write_text(
            json.dumps({"id": "old-task", "project_id": "demo", "name": "Old", "status": "completed"})
        )
        task = store.get_task("demo", "old-task")
        assert task.status is TaskStatus.COMPLETED
        assert "old-task" in [t.id for t in store.list_tasks("demo").items]

    def test_dir_without_metadata_is_synthesized(self, store):
        _project(store)
        (store.base_path / "demo" / "[in_progress]-bare").mkdir()
        task = store.get_task("demo", "bare")
        assert task.name == "bare"
        assert task.project_id == "demo"
        assert task.status is TaskStatus.IN_PROGRESS
        # Listing only covers directories that carry task.json.
        assert store.list_tasks("demo").items == []

    def test_unknown_status_on_disk(self, store):
        _project(store)
        (store.base_path / "demo" / "[blocked]-waiting").mkdir()
        assert store.get_task("demo", "waiting").status == "blocked"

    def test_first_matching_dir_wins(self, store):
        _project(store)
        project_dir = store.base_path / "demo"
        for name in ["[open]-dup", "[completed]-dup"]:
            (project_dir / name).mkdir()
        assert store.get_task("demo", "dup").status is TaskStatus.COMPLETED


class TestArtifacts:
    def test_save_writes_markdown(self, store):
        _project(store)
        _task(store)
        artifact = _note(store, "Root cause found", type="decision")
        path = store.base_path / "demo" / "[open]-bug-1" / "artifacts" / artifact.filename
        assert path.name == f"decision.{unix_seconds(artifact.created_at)}.md"
        text = path.read_text()
        assert text.startswith("---\n")
        assert text.endswith("---\n\nRoot cause found")

    def test_save_touches_task(self, store):
        _project(store)
        before = _task(store).updated_at
        _note(store, "x")
        assert store.get_task("demo", "bug-1").updated_at > before

    def test_save_to_missing_task(self, store):
        _project(store)
        with pytest.raises(TaskNotFoundError):
            _note(store, "x")

    @pytest.mark.parametrize("artifact_type", ["", "a/b", "x.y", ".."])
    def test_save_rejects_bad_type(self, store, artifact_type):
        _project(store)
        _task(store)
        with pytest.raises(ValueError):
            _note(store, "x", type=artifact_type)

    def test_touch_failure_only_warns(self, store, caplog):
        _project(store)
        _task(store)
        (store.base_path / "demo" / "[open]-bug-1" / "task.json").write_text("{broken")
        with caplog.at_level(logging.WARNING, logger="agentmem.store.filesystem"):
            _note(store, "still saved")
        assert "could not update task" in caplog.text
        assert [a.content for a in store.all_artifacts("demo", "bug-1")] == ["still saved"]

    def test_same_second_same_type_overwrites(self, tmp_path, caplog):
        store = FileSystemStore(tmp_path, clock=TickingClock(step=0))
        _project(store)
        _task(store)
        with caplog.at_level(logging.WARNING, logger="agentmem.store.filesystem"):
            _note(store, "first")
            _note(store, "second")
        assert "already exists" in caplog.text
        assert [a.content for a in store.all_artifacts("demo", "bug-1")] == ["second"]

    def test_list_newest_first(self, store):
        _project(store)
        _task(store)
        for content in ["one", "two", "three"]:
            _note(store, content)
        result = store.list_artifacts("demo", "bug-1", ListOptions(limit=2))
        assert [a.content for a in result.items] == ["three", "two"]
        assert result.total == 3
        assert result.has_more is True

    def test_id_on_read_is_filename_seconds(self, store):
        _project(store)
        _task(store)
        saved = _note(store, "hello")
        listed = store.all_artifacts("demo", "bug-1")[0]
        assert saved.id == str(unix_seconds(saved.created_at) * 10**9)
        assert listed.id == str(unix_seconds(saved.created_at))
        assert store.get_artifact("demo", "bug-1", listed.id).content == "hello"
        with pytest.raises(ArtifactNotFoundError):
            store.get_artifact("demo", "bug-1", saved.id)

    def test_unreadable_files_skipped(self, store):
        _project(store)
        _task(store)
        _note(store, "ok")
        artifacts_dir = store.base_path / "demo" / "[open]-bug-1" / "artifacts"
        (artifacts_dir / "garbage.md").write_text("x")
        (artifacts_dir / "readme.txt").write_text("x")
        assert [a.content for a in store.all_artifacts("demo", "bug-1")] == ["ok"]

    def test_out_of_range_filename_skipped(self, store):
        _project(store)
        _task(store)
        _note(store, "ok")
        artifacts_dir = store.base_path / "demo" / "[open]-bug-1" / "artifacts"
        (artifacts_dir / "note.99999999999999999.md").write_text("---\ntype: note\n---\n\nfar future")
        assert [a.content for a in store.list_artifacts("demo", "bug-1").items] == ["ok"]
        assert store.search_artifacts("future").total == 0

    def test_type_with_yaml_syntax_keeps_metadata(self, store):
        _project(store)
        _task(store)
        artifact = new_artifact("demo", "bug-1", "design: v2", "layout", now=store.now())
        artifact.metadata = {"source": "chat"}
        store.save_artifact(artifact)
        listed = store.all_artifacts("demo", "bug-1")[0]
        assert listed.type == "design: v2"
        assert listed.metadata == {"source": "chat"}

    def test_missing_artifacts_dir_is_empty(self, store):
        _project(store)
        (store.base_path / "demo" / "[open]-bare").mkdir()
        assert store.list_artifacts("demo", "bare").items == []

    def test_delete(self, store):
        _project(store)
        _task(store)
        _note(store, "gone soon")
        artifact = store.all_artifacts("demo", "bug-1")[0]
        store.delete_artifact("demo", "bug-1", artifact.id)
        assert store.all_artifacts("demo", "bug-1") == []
        with pytest.raises(ArtifactNotFoundError):
            store.delete_artifact("demo", "bug-1", artifact.id)


class TestLifecycle:
    def test_status_change_then_artifacts_then_search(self, store):
        _project(store)
        task = _task(store)
        project_dir = store.base_path / "demo"
        assert (project_dir / "[open]-bug-1").is_dir()

        task.status = TaskStatus.COMPLETED
        store.update_task(task)
        assert (project_dir / "[completed]-bug-1").is_dir()
        assert not (project_dir / "[open]-bug-1").exists()

        _note(store, "a")
        _note(store, "b")
        listed = store.list_artifacts("demo", "bug-1")
        assert [a.content for a in listed.items] == ["b", "a"]

        found = store.search_artifacts("a")
        assert found.total == 1
        assert found.items[0].content == "a"

        store.delete_artifact("demo", "bug-1", found.items[0].id)
        assert [a.content for a in store.all_artifacts("demo", "bug-1")] == ["b"]
        assert store.search_artifacts("a").total == 0

        store.delete_task("demo", "bug-1")
        with pytest.raises(TaskNotFoundError):
            store.get_task("demo", "bug-1")
        assert not (project_dir / "[completed]-bug-1").exists()
