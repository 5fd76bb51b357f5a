"""Filesystem-backed store for projects, tasks and artifacts.

Layout:
    ~/.agentmem/tasks/
    ├── demo/                               # one directory per project
    │   ├── project.json                    # project metadata
    │   ├── [open]-bug-1/                   # status-tagged task directory
    │   │   ├── task.json                   # task metadata
    │   │   └── artifacts/
    │   │       ├── note.1733312000.md      # frontmatter + Markdown body
    │   │       └── code.1733312042.md
    │   └── [completed]-setup/
    └── legacy-project/                     # no project.json: defaults synthesized
        └── old-task/                       # no [status]- prefix: treated as open

Status changes rename the task directory. Lookups scan; there is no index.
"""
