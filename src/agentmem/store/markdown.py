"""Artifact file codec: ``<type>.<unix-seconds>.md`` with a YAML frontmatter header.

Written form::

    ---
    id: 1733312000123456789
    project_id: demo
    task_id: bug-1
    type: note
    created_at: 2024-12-04T11:33:20Z
    metadata:
      source: chat
    ---

    <content, verbatim>

Type and creation time are read back from the file name, not the header.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import timedelta
from typing import Any

import frontmatter
import yaml

from agentmem.store.models import EPOCH, Artifact, format_timestamp

logger = logging.getLogger(__name__)

ARTIFACT_SUFFIX = ".md"
_FILENAME_SECONDS = re.compile(r"[+-]?\d+")


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _yaml_scalar(text: str, *, allow_empty: bool = True) -> str:
    """Emit ``text`` bare when YAML reads it back as the same string, else JSON-quoted."""
    if not text and not allow_empty:
        return json.dumps(text)
    try:
        loaded = yaml.safe_load(f"k: {text}")
    except yaml.YAMLError:
        loaded = None
    if "\n" not in text and isinstance(loaded, dict) and _as_text(loaded.get("k")) == text:
        return text
    return json.dumps(text, ensure_ascii=False)


def render_artifact(artifact: Artifact) -> str:
    lines = [
        "---",
        f"id: {_yaml_scalar(artifact.id)}",
        f"project_id: {_yaml_scalar(artifact.project_id)}",
        f"task_id: {_yaml_scalar(artifact.task_id)}",
        f"type: {_yaml_scalar(str(artifact.type))}",
        f"created_at: {format_timestamp(artifact.created_at, precise=False)}",
    ]
    if artifact.metadata:
        lines.append("metadata:")
        for key, value in artifact.metadata.items():
            lines.append(f"  {_yaml_scalar(key, allow_empty=False)}: {_yaml_scalar(value)}")
    lines.append("---")
    return "\n".join(lines) + "\n\n" + artifact.content


def parse_artifact_filename(filename: str) -> tuple[str, int]:
    """Split ``note.1733312000.md`` into ``("note", 1733312000)``."""
    if not filename.endswith(ARTIFACT_SUFFIX):
        raise ValueError(f"not an artifact file: {filename}")
    parts = filename[: -len(ARTIFACT_SUFFIX)].split(".")
    if len(parts) < 2:
        raise ValueError(f"invalid artifact filename: {filename}")
    if not _FILENAME_SECONDS.fullmatch(parts[1]):
        raise ValueError(f"invalid timestamp in filename: {filename}")
    return parts[0], int(parts[1])


def _split_delimited(text: str) -> str:
    if text.startswith("---\n"):
        end = text.find("\n---\n", 4)
        if end != -1:
            return text[end + 5 :].strip()
    return text.strip()


def parse_artifact(filename: str, text: str, project_id: str, task_id: str) -> Artifact:
    """Rebuild an artifact from its file name and file body.

    The ID is the file name's second-resolution timestamp, so it differs
    from the nanosecond ID the artifact was created with.
    """
    artifact_type, seconds = parse_artifact_filename(filename)

    metadata: dict[str, str] = {}
    try:
        post = frontmatter.loads(text)
        content = post.content
        block = post.metadata.get("metadata")
        if isinstance(block, dict):
            metadata = {_as_text(k): _as_text(v) for k, v in block.items()}
    except yaml.YAMLError as e:
        logger.debug("Unreadable frontmatter in %s (%s); using raw body", filename, e)
        content = _split_delimited(text)

    try:
        created_at = EPOCH + timedelta(seconds=seconds)
    except OverflowError as e:
        raise ValueError(f"timestamp out of range in filename: {filename}") from e

    return Artifact(
        id=str(seconds),
        project_id=project_id,
        task_id=task_id,
        type=artifact_type,
        content=content,
        metadata=metadata,
        created_at=created_at,
    )
