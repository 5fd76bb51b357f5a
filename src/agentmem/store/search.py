"""Case-insensitive substring search over artifact content.

There is no index: every artifact in scope is read and checked, and the
page is cut only after the whole scope has been scanned.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from agentmem.store.errors import ProjectNotFoundError, TaskNotFoundError
from agentmem.store.models import Artifact, ListOptions, ListResult
from agentmem.store.pagination import paginate

if TYPE_CHECKING:
    from agentmem.store.filesystem import FileSystemStore

logger = logging.getLogger(__name__)


def search_artifacts(
    store: FileSystemStore,
    query: str,
    project_id: str | None = None,
    task_id: str | None = None,
    opts: ListOptions | None = None,
) -> ListResult[Artifact]:
    """Find artifacts whose content contains ``query``, ignoring case.

    ``project_id`` narrows the scan to one project; ``task_id`` narrows it to
    one task but only together with ``project_id``. Projects or tasks that
    vanish or cannot be found mid-scan are skipped.
    """
    needle = query.lower()

    if project_id:
        project_ids = [project_id]
    else:
        project_ids = [p.id for p in store.all_projects()]

    matches: list[Artifact] = []
    scanned = 0
    for pid in project_ids:
        if task_id and project_id:
            task_ids = [task_id]
        else:
            try:
                task_ids = [t.id for t in store.all_tasks(pid)]
            except ProjectNotFoundError:
                continue

        for tid in task_ids:
            try:
                artifacts = store.all_artifacts(pid, tid)
            except TaskNotFoundError:
                continue
            scanned += len(artifacts)
            matches.extend(a for a in artifacts if needle in a.content.lower())

    logger.debug("Search %r: %d of %d artifacts matched", query, len(matches), scanned)
    return paginate(matches, opts)
