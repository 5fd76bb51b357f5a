"""Entry point: python -m agentmem <command> [args]

- projects                         List projects
- tasks <project> [status]         List one project's tasks
- all-tasks [status]               List tasks across all projects
- artifacts <project> <task>       List a task's artifacts
- search <query> [project] [task]  Search artifact content
- info                             Server name, version and storage path

Output is JSON on stdout; logs go to stderr.
"""

from __future__ import annotations

import json
import logging
import sys

from agentmem.config import AgentMemConfig, load_config

_USAGE = """\
Usage: python -m agentmem <command> [args]
  projects                         List projects
  tasks <project> [status]         List one project's tasks
  all-tasks [status]               List tasks across all projects
  artifacts <project> <task>       List a task's artifacts
  search <query> [project] [task]  Search artifact content
  info                             Server name, version and storage path"""

# command -> (tool name, positional argument names, minimum argument count)
_COMMANDS: dict[str, tuple[str, tuple[str, ...], int]] = {
    "projects": ("list_projects", (), 0),
    "tasks": ("list_tasks", ("project_id", "status"), 1),
    "all-tasks": ("list_all_tasks", ("status",), 0),
    "artifacts": ("list_artifacts", ("project_id", "task_id"), 2),
    "search": ("search_artifacts", ("query", "project_id", "task_id"), 1),
}


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


def _server_info(config: AgentMemConfig) -> dict[str, str]:
    return {
        "name": config.server.name,
        "version": config.server.version,
        "tasks_dir": str(config.tasks_dir),
    }


def _usage_exit() -> None:
    print(_USAGE)
    sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if args == ["info"]:
        config = load_config()
        print(json.dumps(_server_info(config), indent=2))
        return
    if not args or args[0] not in _COMMANDS:
        _usage_exit()

    tool_name, arg_names, required = _COMMANDS[args[0]]
    values = args[1:]
    if len(values) < required or len(values) > len(arg_names):
        _usage_exit()

    config = load_config()
    _setup_logging(config.log_level)

    from agentmem.service import TaskService
    from agentmem.store.filesystem import FileSystemStore
    from agentmem.tools.task_tools import get_task_tools

    store = FileSystemStore(config.tasks_dir)
    logging.getLogger(__name__).debug(
        "%s %s using filesystem storage at %s", config.server.name, config.server.version, config.tasks_dir
    )
    try:
        tools = get_task_tools(TaskService(store))
        print(tools[tool_name](**dict(zip(arg_names, values))))
    finally:
        store.close()


if __name__ == "__main__":
    main()
