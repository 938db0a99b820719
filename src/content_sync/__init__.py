"""content-sync: Keep content files in git repositories current with external data.

This package provides the repository synchronization workflow (clone, reset,
run a content task, commit and push only real changes), the front-matter change
gate, the bundled event tasks and their data provider, and the scheduler and
command-line interface that drive them.
"""

from . import (
    backend,
    cli,
    config,
    constants,
    content,
    daemon,
    errors,
    git_wrapper,
    providers,
    repository,
    tasks,
    workflow,
)

__all__ = [
    "backend",
    "cli",
    "config",
    "constants",
    "content",
    "daemon",
    "errors",
    "git_wrapper",
    "providers",
    "repository",
    "tasks",
    "workflow",
]
