import enum
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .backend import VersionControlBackend
from .constants import APP_NAME
from .errors import VcsError
from .repository import RepositoryDescriptor

logger = logging.getLogger(APP_NAME)


class WorkflowState(enum.Enum):
    """Where a repository is in its current (or most recent) run."""

    UNINITIALIZED = "uninitialized"
    CLONED = "cloned"
    CLEAN = "clean"
    RUNNING_TASK = "running-task"
    DIRTY = "dirty"
    PUBLISHED = "published"
    FAILED = "failed"


@dataclass(frozen=True)
class ExecutionContext:
    """Read-only context handed to a content task for one run.

    Attributes:
        repository (RepositoryDescriptor): The repository the task writes into.
    """

    repository: RepositoryDescriptor


ContentTask = Callable[[ExecutionContext], Any]
"""A unit of work that may write content files; its return value is ignored."""


class SyncWorkflow:
    """Runs content tasks against a working tree and publishes what they change.

    A run always starts from a tree identical to upstream and always ends with
    a tree that has no uncommitted changes: either nothing changed, the
    changes were committed, or a failure forced the tree back to upstream.

    Runs for the same repository directory are serialized; runs for different
    directories may proceed in parallel.

    Attributes:
        backend (VersionControlBackend): The git mechanism.
        reset_attempts (int): Tries allowed for a rollback reset.
        states (dict[str, WorkflowState]): Latest state per repository directory.
    """

    def __init__(self, backend: VersionControlBackend, reset_attempts: int = 3):
        self.backend = backend
        self.reset_attempts = max(1, reset_attempts)
        self.states: dict[str, WorkflowState] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def state(self, descriptor: RepositoryDescriptor) -> WorkflowState:
        return self.states.get(descriptor.directory, WorkflowState.UNINITIALIZED)

    def _enter(self, descriptor: RepositoryDescriptor, state: WorkflowState) -> None:
        logger.debug(f"STATE {descriptor.directory}: {state.value}")
        self.states[descriptor.directory] = state

    def _lock_for(self, descriptor: RepositoryDescriptor) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(descriptor.directory, threading.Lock())

    def run(self, descriptor: RepositoryDescriptor, task: ContentTask) -> bool:
        """Executes one synchronization run.

        Steps:
        1. Clone the repository if its working tree does not exist yet.
        2. Reset the tree to upstream (always).
        3. Run the task; on failure reset again and re-raise.
        4. If the tree is dirty, commit and push.

        Args:
            descriptor (RepositoryDescriptor): The repository to work in.
            task (ContentTask): The unit of work producing content changes.

        Returns:
            bool: True if a commit was created and pushed, False if the task
                  left the tree unchanged.

        Raises:
            VcsError: If a git operation fails.
            Exception: Whatever the task raised, after the tree was reset.
        """
        with self._lock_for(descriptor):
            return self._run(descriptor, task)

    def _run(self, descriptor: RepositoryDescriptor, task: ContentTask) -> bool:
        self._enter(descriptor, WorkflowState.UNINITIALIZED)
        try:
            self.backend.ensure_cloned(descriptor)
            self._enter(descriptor, WorkflowState.CLONED)
            self.backend.reset_to_upstream(descriptor)
            self._enter(descriptor, WorkflowState.CLEAN)
        except VcsError:
            self._enter(descriptor, WorkflowState.FAILED)
            raise

        self._enter(descriptor, WorkflowState.RUNNING_TASK)
        try:
            task(ExecutionContext(repository=descriptor))
        except Exception as e:
            self._enter(descriptor, WorkflowState.FAILED)
            logger.error(f"TASK ERROR {descriptor.directory}: {e}")
            self._rollback(descriptor, e)
            raise

        try:
            dirty = self.backend.has_uncommitted_changes(descriptor)
        except VcsError as e:
            self._enter(descriptor, WorkflowState.FAILED)
            self._rollback(descriptor, e)
            raise

        if not dirty:
            self._enter(descriptor, WorkflowState.CLEAN)
            logger.info(f"UNCHANGED {descriptor.directory}: Nothing to publish.")
            return False

        self._enter(descriptor, WorkflowState.DIRTY)
        try:
            self.backend.commit_and_push(descriptor)
        except VcsError as e:
            self._enter(descriptor, WorkflowState.FAILED)
            self._rollback(descriptor, e)
            raise

        self._enter(descriptor, WorkflowState.PUBLISHED)
        logger.info(f"PUBLISHED {descriptor.url}: Repository state was updated.")
        return True

    def _rollback(self, descriptor: RepositoryDescriptor, error: Exception) -> None:
        """Resets the tree after a failure, retrying before giving up.

        The original error is left for the caller to raise; a rollback that
        never succeeds is recorded on it as a note.
        """
        last_error: VcsError | None = None
        for attempt in range(1, self.reset_attempts + 1):
            try:
                self.backend.reset_to_upstream(descriptor)
                logger.info(f"ROLLED BACK {descriptor.directory}")
                return
            except VcsError as e:
                last_error = e
                logger.warning(
                    f"ROLLBACK {descriptor.directory}: attempt "
                    f"{attempt}/{self.reset_attempts} failed: {e}"
                )

        logger.critical(
            f"CRITICAL {descriptor.directory}: Working tree left dirty "
            f"after failed rollback: {last_error}"
        )
        error.add_note(f"rollback of {descriptor.directory} failed: {last_error}")
