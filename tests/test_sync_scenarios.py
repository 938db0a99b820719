"""End-to-end runs of the workflow and change gate against a local remote."""

from pathlib import Path

import frontmatter
import httpx
import pytest
from conftest import BALOR_FILE, git

from content_sync.config import Config
from content_sync.content import FileWriteIntent
from content_sync.daemon import build_workflow
from content_sync.errors import PushRejectedError, TaskError
from content_sync.providers import WarframestatProvider
from content_sync.repository import RepositoryDescriptor
from content_sync.tasks import event_tasks, gated
from content_sync.workflow import ExecutionContext

PLACE = [{"platform": "PC", "place": "Larunda"}]


def balor_producer(context: ExecutionContext) -> FileWriteIntent:
    return FileWriteIntent(
        repo_folder=context.repository.directory,
        file="balor-fomorian-event.md",
        data={"eventPlace": PLACE},
    )


def test_first_run_publishes_then_second_run_is_a_noop(
    config: Config, descriptor: RepositoryDescriptor, remote: Path
) -> None:
    """Verifies a changed payload is committed once and a repeat changes nothing."""
    workflow, gate = build_workflow(config)
    task = gated(gate, balor_producer)
    initial = git(remote, "rev-parse", "refs/heads/develop")

    assert workflow.run(descriptor, task) is True

    tree = workflow.backend.working_tree(descriptor)
    published = git(remote, "rev-parse", "refs/heads/develop")
    assert published != initial
    assert git(tree, "rev-parse", "HEAD") == published
    assert frontmatter.load(tree / BALOR_FILE)["eventPlace"] == PLACE
    assert workflow.backend.has_uncommitted_changes(descriptor) is False

    assert workflow.run(descriptor, task) is False
    assert git(remote, "rev-parse", "refs/heads/develop") == published


def test_failed_task_leaves_clean_tree(
    config: Config, descriptor: RepositoryDescriptor, remote: Path
) -> None:
    """Verifies partial edits are rolled back and the error reaches the caller."""
    workflow, gate = build_workflow(config)
    initial = git(remote, "rev-parse", "refs/heads/develop")

    def half_done(context: ExecutionContext) -> None:
        gate.apply(balor_producer(context))
        tree = workflow.backend.working_tree(context.repository)
        (tree / "content" / "scratch.md").write_text("partial")
        raise RuntimeError("source went away")

    with pytest.raises(RuntimeError, match="source went away"):
        workflow.run(descriptor, half_done)

    assert workflow.backend.has_uncommitted_changes(descriptor) is False
    assert git(remote, "rev-parse", "refs/heads/develop") == initial


def test_unchanged_payload_never_commits(
    config: Config, descriptor: RepositoryDescriptor, remote: Path
) -> None:
    """Verifies data identical to the stored front-matter produces no commit."""
    workflow, gate = build_workflow(config)
    initial = git(remote, "rev-parse", "refs/heads/develop")

    def same_as_stored(context: ExecutionContext) -> FileWriteIntent:
        return FileWriteIntent(
            repo_folder=context.repository.directory,
            file="balor-fomorian-event.md",
            data={"eventPlace": [], "title": "Balor Fomorian"},
        )

    assert workflow.run(descriptor, gated(gate, same_as_stored)) is False
    assert git(remote, "rev-parse", "refs/heads/develop") == initial


def test_rejected_publish_is_retried_on_next_run(
    config: Config, descriptor: RepositoryDescriptor, remote: Path
) -> None:
    """Verifies a change the remote refused is published once the remote accepts."""
    workflow, gate = build_workflow(config)
    task = gated(gate, balor_producer)
    initial = git(remote, "rev-parse", "refs/heads/develop")
    hook = remote / "hooks" / "pre-receive"
    hook.parent.mkdir(exist_ok=True)
    hook.write_text("#!/bin/sh\nexit 1\n")
    hook.chmod(0o755)

    with pytest.raises(PushRejectedError):
        workflow.run(descriptor, task)

    tree = workflow.backend.working_tree(descriptor)
    assert git(tree, "rev-parse", "HEAD") == initial
    assert workflow.backend.has_uncommitted_changes(descriptor) is False

    hook.unlink()
    assert workflow.run(descriptor, task) is True

    published = git(remote, "show", f"refs/heads/develop:{BALOR_FILE}")
    assert "Larunda" in published


def test_partial_source_outage_publishes_nothing(
    config: Config, descriptor: RepositoryDescriptor, remote: Path
) -> None:
    """Verifies content is not rewritten while one platform's data is missing."""
    workflow, gate = build_workflow(config)
    initial = git(remote, "rev-parse", "refs/heads/develop")

    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path.startswith("/pc/"):
            return httpx.Response(502)
        return httpx.Response(
            200, json=[{"description": "Balor Fomorian", "victimNode": "Naeglar"}]
        )

    client = httpx.Client(transport=httpx.MockTransport(handler))
    provider = WarframestatProvider("https://api.example", client=client)

    with pytest.raises(TaskError):
        workflow.run(descriptor, gated(gate, *event_tasks(provider)))

    tree = workflow.backend.working_tree(descriptor)
    assert workflow.backend.has_uncommitted_changes(descriptor) is False
    assert frontmatter.load(tree / BALOR_FILE)["eventPlace"] == []
    assert git(remote, "rev-parse", "refs/heads/develop") == initial
