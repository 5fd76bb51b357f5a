"""Tool table for project, task and artifact operations.

Each tool takes plain JSON-compatible arguments and returns a JSON string,
so the table can be registered with any tool-calling transport or called
directly. Store errors come back as ``{"error": "..."}`` instead of raising.
"""

from __future__ import annotations

import functools
import json
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from agentmem.store.errors import StoreError

if TYPE_CHECKING:
    from agentmem.service import TaskService


def _dump(payload: Any) -> str:
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _tool(fn: Callable[..., Any]) -> Callable[..., str]:
    @functools.wraps(fn)
    def wrapper(*args: Any, **kwargs: Any) -> str:
        try:
            return _dump(fn(*args, **kwargs))
        except (StoreError, ValueError) as e:
            return _dump({"error": str(e)})

    return wrapper


def get_task_tools(service: TaskService) -> dict[str, Callable[..., str]]:
    """Return a dict of tool_name -> callable for every store operation."""

    @_tool
    def create_project(
        id: str,
        name: str = "",
        description: str = "",
        workspace_path: str = "",
        metadata: dict[str, str] | None = None,
    ) -> dict:
        """Create a project. The ID is normalized to a lowercase slug."""
        return service.create_project(id, name, description, workspace_path, metadata).to_dict()

    @_tool
    def get_project(id: str) -> dict:
        return service.get_project(id).to_dict()

    @_tool
    def list_projects(limit: int = 0, offset: int = 0) -> dict:
        """List projects, most recently updated first."""
        return service.list_projects(limit, offset).to_dict("projects")

    @_tool
    def update_project(
        id: str,
        name: str | None = None,
        description: str | None = None,
        workspace_path: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> dict:
        return service.update_project(
            id,
            name=name,
            description=description,
            workspace_path=workspace_path,
            metadata=metadata,
        ).to_dict()

    @_tool
    def delete_project(id: str) -> dict:
        """Delete a project with all of its tasks and artifacts."""
        service.delete_project(id)
        return {"deleted": id}

    @_tool
    def create_task(
        project_id: str,
        id: str,
        name: str = "",
        description: str = "",
        workspace_path: str = "",
        metadata: dict[str, str] | None = None,
    ) -> dict:
        """Create an open task inside a project."""
        return service.create_task(project_id, id, name, description, workspace_path, metadata).to_dict()

    @_tool
    def get_task(project_id: str, id: str) -> dict:
        return service.get_task(project_id, id).to_dict()

    @_tool
    def list_tasks(project_id: str, limit: int = 0, offset: int = 0, status: str = "") -> dict:
        """List a project's tasks, optionally only those with one status."""
        return service.list_tasks(project_id, limit, offset, status or None).to_dict("tasks")

    @_tool
    def list_all_tasks(limit: int = 0, offset: int = 0, status: str = "") -> dict:
        """List tasks across every project."""
        return service.list_all_tasks(limit, offset, status or None).to_dict("tasks")

    @_tool
    def update_task(
        project_id: str,
        id: str,
        name: str | None = None,
        description: str | None = None,
        workspace_path: str | None = None,
        status: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> dict:
        """Update a task. Changing the status moves its directory."""
        return service.update_task(
            project_id,
            id,
            name=name,
            description=description,
            workspace_path=workspace_path,
            status=status,
            metadata=metadata,
        ).to_dict()

    @_tool
    def delete_task(project_id: str, id: str) -> dict:
        service.delete_task(project_id, id)
        return {"deleted": f"{project_id}/{id}"}

    @_tool
    def save_artifact(
        project_id: str,
        task_id: str,
        content: str,
        type: str = "",
        metadata: dict[str, str] | None = None,
    ) -> dict:
        """Save an immutable artifact (note, code, decision, ...) to a task."""
        return service.save_artifact(project_id, task_id, content, type, metadata).to_dict()

    @_tool
    def get_artifact(project_id: str, task_id: str, id: str) -> dict:
        return service.get_artifact(project_id, task_id, id).to_dict()

    @_tool
    def list_artifacts(project_id: str, task_id: str, limit: int = 0, offset: int = 0) -> dict:
        """List a task's artifacts, newest first."""
        return service.list_artifacts(project_id, task_id, limit, offset).to_dict("artifacts")

    @_tool
    def search_artifacts(
        query: str,
        project_id: str = "",
        task_id: str = "",
        limit: int = 0,
        offset: int = 0,
    ) -> dict:
        """Case-insensitive substring search over artifact content."""
        result = service.search_artifacts(query, project_id, task_id, limit, offset)
        payload = result.to_dict("artifacts")
        payload["query"] = query
        return payload

    @_tool
    def delete_artifact(project_id: str, task_id: str, id: str) -> dict:
        service.delete_artifact(project_id, task_id, id)
        return {"deleted": id}

    @_tool
    def get_workspace_path(project_id: str, task_id: str) -> dict:
        """Workspace directory for a task (falls back to the project's)."""
        return {"workspace_path": service.effective_workspace_path(project_id, task_id)}

    return {
        "create_project": create_project,
        "get_project": get_project,
        "list_projects": list_projects,
        "update_project": update_project,
        "delete_project": delete_project,
        "create_task": create_task,
        "get_task": get_task,
        "list_tasks": list_tasks,
        "list_all_tasks": list_all_tasks,
        "update_task": update_task,
        "delete_task": delete_task,
        "save_artifact": save_artifact,
        "get_artifact": get_artifact,
        "list_artifacts": list_artifacts,
        "search_artifacts": search_artifacts,
        "delete_artifact": delete_artifact,
        "get_workspace_path": get_workspace_path,
    }
