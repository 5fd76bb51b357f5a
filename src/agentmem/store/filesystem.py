"""Directory-tree store for projects, tasks and artifacts.

Layout::

    <base>/<project-id>/project.json
    <base>/<project-id>/[<status>]-<task-id>/task.json
    <base>/<project-id>/[<status>]-<task-id>/artifacts/<type>.<unix-seconds>.md

A task's status lives in its directory name, so every task lookup scans the
project directory and every status change is a rename. Nothing is cached:
each call re-reads the tree.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from agentmem.store.errors import (
    ArtifactNotFoundError,
    InvalidProjectIDError,
    InvalidTaskIDError,
    ProjectAlreadyExistsError,
    ProjectNotFoundError,
    StorageFailedError,
    StoreError,
    TaskAlreadyExistsError,
    TaskNotFoundError,
)
from agentmem.store.ids import is_valid
from agentmem.store.markdown import ARTIFACT_SUFFIX, parse_artifact, render_artifact
from agentmem.store.models import (
    Artifact,
    ListOptions,
    ListResult,
    Project,
    Task,
    TaskStatus,
    coerce_status,
    utcnow,
)
from agentmem.store.pagination import paginate
from agentmem.store.search import search_artifacts as _search_artifacts

logger = logging.getLogger(__name__)

PROJECT_METADATA_FILE = "project.json"
TASK_METADATA_FILE = "task.json"
ARTIFACTS_DIR = "artifacts"

_TASK_DIR_NAME = re.compile(r"^\[([a-z_]+)\]-(.+)$")
_STATUS_TOKEN = re.compile(r"[a-z_]+")

Clock = Callable[[], datetime]


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    """Re-raise low-level failures as ``StorageFailedError``; store errors pass through."""
    try:
        yield
    except StoreError:
        raise
    except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
        raise StorageFailedError(f"{action}: {e}") from e


def split_task_dir_name(name: str) -> tuple[str | None, str]:
    """``[open]-bug-1`` -> ``("open", "bug-1")``; a legacy ``bug-1`` -> ``(None, "bug-1")``."""
    m = _TASK_DIR_NAME.match(name)
    if m:
        return m.group(1), m.group(2)
    return None, name


def _check_path_component(value: str) -> bool:
    return bool(value) and value not in (".", "..") and "/" not in value and "\\" not in value


def _sorted_subdirs(path: Path) -> list[Path]:
    return sorted((p for p in path.iterdir() if p.is_dir()), key=lambda p: p.name)


class FileSystemStore:
    """Persist projects, tasks and artifacts as plain directories and files."""

    def __init__(self, base_path: Path | str, clock: Clock | None = None) -> None:
        self.base_path = Path(base_path).expanduser()
        self._clock = clock or utcnow
        with _storage_errors(f"create base directory {self.base_path}"):
            self.base_path.mkdir(parents=True, exist_ok=True)

    def now(self) -> datetime:
        return self._clock()

    def close(self) -> None:
        """Nothing to release; kept for callers that manage store lifecycles."""

    # ── Paths & metadata files ───────────────────────────────

    def _project_path(self, project_id: str) -> Path:
        if not _check_path_component(project_id):
            raise ProjectNotFoundError(project_id)
        return self.base_path / project_id

    def _find_task_dir(self, project_id: str, task_id: str) -> Path | None:
        """Scan the project directory for the one directory backing ``task_id``.

        Directories are visited in name order and the first match wins.
        """
        if not _check_path_component(project_id) or not _check_path_component(task_id):
            return None
        try:
            candidates = _sorted_subdirs(self.base_path / project_id)
        except OSError:
            return None
        for candidate in candidates:
            _, name_id = split_task_dir_name(candidate.name)
            if name_id == task_id:
                return candidate
        return None

    def _require_task_dir(self, project_id: str, task_id: str) -> Path:
        task_dir = self._find_task_dir(project_id, task_id)
        if task_dir is None:
            raise TaskNotFoundError(project_id, task_id)
        return task_dir

    def _stage_json(self, directory: Path, data: dict[str, Any], name: str) -> Path:
        """Write ``data`` to a fresh temp file in ``directory`` and return its path."""
        fd, tmp = tempfile.mkstemp(dir=directory, prefix=f".{name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
        except Exception:
            Path(tmp).unlink(missing_ok=True)
            raise
        return Path(tmp)

    def _write_json(self, path: Path, data: dict[str, Any]) -> None:
        """Atomic write: temp file in the same directory, then ``os.replace``."""
        staged = self._stage_json(path.parent, data, path.name)
        try:
            os.replace(staged, path)
        except OSError:
            staged.unlink(missing_ok=True)
            raise

    def _read_json(self, path: Path) -> dict[str, Any]:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, dict):
            raise ValueError(f"{path.name} is not a JSON object")
        return data

    def _load_project(self, project_id: str) -> Project:
        path = self._project_path(project_id) / PROJECT_METADATA_FILE
        with _storage_errors(f"load project {project_id}"):
            try:
                data = self._read_json(path)
            except FileNotFoundError:
                now = self.now()
                return Project(id=project_id, name=project_id, created_at=now, updated_at=now)
            project = Project.from_dict(data)
        project.id = project.id or project_id
        return project

    def _load_task(self, task_dir: Path) -> Task:
        """Read ``task.json``; synthesize an open task when it is missing.

        A ``[status]-`` prefix on the directory overrides the status in the
        file, so a task interrupted mid-update still reports where it lives.
        """
        dir_status, dir_task_id = split_task_dir_name(task_dir.name)
        project_id = task_dir.parent.name
        with _storage_errors(f"load task {project_id}/{dir_task_id}"):
            try:
                data = self._read_json(task_dir / TASK_METADATA_FILE)
            except FileNotFoundError:
                now = self.now()
                return Task(
                    id=dir_task_id,
                    project_id=project_id,
                    name=dir_task_id,
                    status=coerce_status(dir_status),
                    created_at=now,
                    updated_at=now,
                )
            task = Task.from_dict(data)
        task.id = task.id or dir_task_id
        task.project_id = task.project_id or project_id
        if dir_status is not None:
            task.status = coerce_status(dir_status)
        return task

    # ── Projects ─────────────────────────────────────────────

    def create_project(self, project: Project) -> None:
        if not is_valid(project.id):
            raise InvalidProjectIDError(project.id)
        project_dir = self._project_path(project.id)
        if project_dir.exists():
            raise ProjectAlreadyExistsError(project.id)
        with _storage_errors(f"create project {project.id}"):
            project_dir.mkdir(parents=True)
            self._write_json(project_dir / PROJECT_METADATA_FILE, project.to_dict())
        logger.debug("Created project directory %s", project_dir)

    def get_project(self, project_id: str) -> Project:
        if not self._project_path(project_id).is_dir():
            raise ProjectNotFoundError(project_id)
        return self._load_project(project_id)

    def all_projects(self) -> list[Project]:
        """Every readable project, most recently updated first."""
        with _storage_errors("list projects"):
            project_dirs = _sorted_subdirs(self.base_path)
        projects: list[Project] = []
        for project_dir in project_dirs:
            try:
                projects.append(self._load_project(project_dir.name))
            except StoreError as e:
                logger.debug("Skipping unreadable project %s: %s", project_dir.name, e)
        projects.sort(key=lambda p: p.updated_at, reverse=True)
        return projects

    def list_projects(self, opts: ListOptions | None = None) -> ListResult[Project]:
        return paginate(self.all_projects(), opts)

    def update_project(self, project: Project) -> None:
        project_dir = self._project_path(project.id)
        if not project_dir.is_dir():
            raise ProjectNotFoundError(project.id)
        project.updated_at = self.now()
        with _storage_errors(f"update project {project.id}"):
            self._write_json(project_dir / PROJECT_METADATA_FILE, project.to_dict())

    def delete_project(self, project_id: str) -> None:
        project_dir = self._project_path(project_id)
        if not project_dir.is_dir():
            raise ProjectNotFoundError(project_id)
        with _storage_errors(f"delete project {project_id}"):
            shutil.rmtree(project_dir)
        logger.debug("Removed project directory %s", project_dir)

    # ── Tasks ────────────────────────────────────────────────

    def create_task(self, task: Task) -> None:
        if not is_valid(task.id):
            raise InvalidTaskIDError(task.id)
        _check_status(task.status)
        project_dir = self._project_path(task.project_id)
        if not project_dir.is_dir():
            raise ProjectNotFoundError(task.project_id)
        if self._find_task_dir(task.project_id, task.id) is not None:
            raise TaskAlreadyExistsError(task.project_id, task.id)

        task_dir = project_dir / task.dir_name
        with _storage_errors(f"create task {task.project_id}/{task.id}"):
            (task_dir / ARTIFACTS_DIR).mkdir(parents=True)
            self._write_json(task_dir / TASK_METADATA_FILE, task.to_dict())
        logger.debug("Created task directory %s", task_dir)

    def get_task(self, project_id: str, task_id: str) -> Task:
        return self._load_task(self._require_task_dir(project_id, task_id))

    def all_tasks(self, project_id: str, status: TaskStatus | str | None = None) -> list[Task]:
        """Every readable task of one project, most recently updated first.

        Only directories holding a ``task.json`` are listed.
        """
        project_dir = self._project_path(project_id)
        if not project_dir.is_dir():
            raise ProjectNotFoundError(project_id)
        with _storage_errors(f"list tasks of {project_id}"):
            task_dirs = _sorted_subdirs(project_dir)

        tasks: list[Task] = []
        for task_dir in task_dirs:
            if not (task_dir / TASK_METADATA_FILE).is_file():
                continue
            try:
                task = self._load_task(task_dir)
            except StoreError as e:
                logger.debug("Skipping unreadable task %s: %s", task_dir, e)
                continue
            if status and task.status != status:
                continue
            tasks.append(task)
        tasks.sort(key=lambda t: t.updated_at, reverse=True)
        return tasks

    def list_tasks(self, project_id: str, opts: ListOptions | None = None) -> ListResult[Task]:
        opts = opts or ListOptions()
        return paginate(self.all_tasks(project_id, opts.status), opts)

    def list_all_tasks(self, opts: ListOptions | None = None) -> ListResult[Task]:
        """Tasks across every project, most recently updated first."""
        opts = opts or ListOptions()
        tasks: list[Task] = []
        for project in self.all_projects():
            try:
                tasks.extend(self.all_tasks(project.id, opts.status))
            except ProjectNotFoundError:
                continue
        tasks.sort(key=lambda t: t.updated_at, reverse=True)
        return paginate(tasks, opts)

    def update_task(self, task: Task) -> None:
        """Rewrite ``task.json`` and move the directory if the status changed.

        The new metadata is staged inside the current directory first; the
        rename is the commit point and the staged file then replaces
        ``task.json``. A failed rename leaves the task exactly as it was.
        """
        _check_status(task.status)
        old_dir = self._require_task_dir(task.project_id, task.id)
        task.updated_at = self.now()
        new_dir = old_dir.parent / task.dir_name

        with _storage_errors(f"stage metadata for {task.project_id}/{task.id}"):
            staged = self._stage_json(old_dir, task.to_dict(), TASK_METADATA_FILE)

        if new_dir != old_dir:
            try:
                if new_dir.exists():
                    raise FileExistsError(f"{new_dir} already exists")
                os.rename(old_dir, new_dir)
            except OSError as e:
                staged.unlink(missing_ok=True)
                raise StorageFailedError(f"rename task directory {old_dir.name}: {e}") from e
            staged = new_dir / staged.name
            logger.debug("Moved task %s/%s: %s -> %s", task.project_id, task.id, old_dir.name, new_dir.name)

        with _storage_errors(f"write metadata for {task.project_id}/{task.id}"):
            os.replace(staged, new_dir / TASK_METADATA_FILE)

    def delete_task(self, project_id: str, task_id: str) -> None:
        task_dir = self._require_task_dir(project_id, task_id)
        with _storage_errors(f"delete task {project_id}/{task_id}"):
            shutil.rmtree(task_dir)
        logger.debug("Removed task directory %s", task_dir)

    # ── Artifacts ────────────────────────────────────────────

    def save_artifact(self, artifact: Artifact) -> None:
        """Write the artifact file, then bump the owning task's ``updated_at``.

        The bump is best-effort: a failure there is logged, not raised.
        """
        _check_artifact_type(artifact.type)
        task_dir = self._require_task_dir(artifact.project_id, artifact.task_id)
        artifacts_dir = task_dir / ARTIFACTS_DIR
        path = artifacts_dir / artifact.filename

        with _storage_errors(f"save artifact {artifact.filename}"):
            artifacts_dir.mkdir(parents=True, exist_ok=True)
            if path.exists():
                logger.warning("Artifact file %s already exists, overwriting", path)
            path.write_text(render_artifact(artifact), encoding="utf-8")

        try:
            task = self._load_task(task_dir)
            task.updated_at = self.now()
            with _storage_errors(f"touch task {artifact.project_id}/{artifact.task_id}"):
                self._write_json(task_dir / TASK_METADATA_FILE, task.to_dict())
        except StoreError as e:
            logger.warning(
                "Saved artifact %s but could not update task %s/%s: %s",
                artifact.filename,
                artifact.project_id,
                artifact.task_id,
                e,
            )

    def _artifact_files(self, task_dir: Path, project_id: str, task_id: str) -> list[tuple[Artifact, Path]]:
        artifacts_dir = task_dir / ARTIFACTS_DIR
        try:
            entries = sorted(artifacts_dir.iterdir(), key=lambda p: p.name)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise StorageFailedError(f"list artifacts of {project_id}/{task_id}: {e}") from e

        found: list[tuple[Artifact, Path]] = []
        for path in entries:
            if not path.name.endswith(ARTIFACT_SUFFIX) or path.is_dir():
                continue
            try:
                text = path.read_text(encoding="utf-8")
                artifact = parse_artifact(path.name, text, project_id, task_id)
            except (OSError, ValueError) as e:
                logger.debug("Skipping unreadable artifact %s: %s", path, e)
                continue
            found.append((artifact, path))
        found.sort(key=lambda pair: pair[0].created_at, reverse=True)
        return found

    def all_artifacts(self, project_id: str, task_id: str) -> list[Artifact]:
        """Every readable artifact of one task, newest first."""
        task_dir = self._require_task_dir(project_id, task_id)
        return [a for a, _ in self._artifact_files(task_dir, project_id, task_id)]

    def list_artifacts(self, project_id: str, task_id: str, opts: ListOptions | None = None) -> ListResult[Artifact]:
        return paginate(self.all_artifacts(project_id, task_id), opts)

    def get_artifact(self, project_id: str, task_id: str, artifact_id: str) -> Artifact:
        for artifact in self.all_artifacts(project_id, task_id):
            if artifact.id == artifact_id:
                return artifact
        raise ArtifactNotFoundError(project_id, task_id, artifact_id)

    def delete_artifact(self, project_id: str, task_id: str, artifact_id: str) -> None:
        task_dir = self._require_task_dir(project_id, task_id)
        for artifact, path in self._artifact_files(task_dir, project_id, task_id):
            if artifact.id == artifact_id:
                with _storage_errors(f"delete artifact {path.name}"):
                    path.unlink()
                logger.debug("Removed artifact file %s", path)
                return
        raise ArtifactNotFoundError(project_id, task_id, artifact_id)

    def search_artifacts(
        self,
        query: str,
        project_id: str | None = None,
        task_id: str | None = None,
        opts: ListOptions | None = None,
    ) -> ListResult[Artifact]:
        return _search_artifacts(self, query, project_id, task_id, opts)


def _check_status(status: TaskStatus | str) -> None:
    if not _STATUS_TOKEN.fullmatch(str(status)):
        raise ValueError(f"invalid task status: {status!r}")


def _check_artifact_type(artifact_type: str) -> None:
    text = str(artifact_type)
    if not text or "." in text or not _check_path_component(text):
        raise ValueError(f"invalid artifact type: {artifact_type!r}")
