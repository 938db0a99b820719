import base64
import datetime
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .config import GitConfig
from .constants import APP_NAME, COMMIT_MESSAGE_PREFIX, TOKEN_PASSWORD
from .errors import (
    CheckoutError,
    CloneError,
    CommitError,
    FetchMergeError,
    PushError,
    PushRejectedError,
    StatusError,
)
from .git_wrapper import GitCommandError, GitRepo, PushUpdate
from .repository import RepositoryDescriptor, WorkingTreeManager

logger = logging.getLogger(APP_NAME)


def transport_options(config: GitConfig) -> list[str]:
    """Builds the `-c` options carrying credentials and TLS policy.

    The token travels as HTTP basic auth (`<token>:x-oauth-basic`).

    Args:
        config (GitConfig): The backend's transport settings.

    Returns:
        list[str]: Options to place before every git subcommand.
    """
    options = []
    if config.token:
        credentials = base64.b64encode(
            f"{config.token}:{TOKEN_PASSWORD}".encode()
        ).decode()
        options += ["-c", f"http.extraHeader=Authorization: Basic {credentials}"]
    if not config.verify_ssl:
        options += ["-c", "http.sslVerify=false"]
    return options


@dataclass
class PushResult:
    """What a successful publish produced.

    Attributes:
        commit (str): SHA-1 of the commit created on the branch.
        updates (list[PushUpdate]): Per-reference push report.
    """

    commit: str
    updates: list[PushUpdate] = field(default_factory=list)


class VersionControlBackend:
    """Primitive git operations over the working trees of configured repositories.

    The backend carries no policy: it never decides when to reset or publish.
    Every failure is logged with its context and raised as a `VcsError`.

    Attributes:
        config (GitConfig): Transport, identity and timeout settings.
        trees (WorkingTreeManager): Resolves descriptors to working-tree paths.
    """

    def __init__(self, config: GitConfig, trees: WorkingTreeManager):
        self.config = config
        self.trees = trees
        self._options = transport_options(config)

    def _open(self, descriptor: RepositoryDescriptor) -> GitRepo:
        return GitRepo(
            self.trees.resolve_path(descriptor),
            options=self._options,
            timeout=self.config.timeout,
        )

    def ensure_cloned(self, descriptor: RepositoryDescriptor) -> bool:
        """Clones the repository unless its working-tree path already exists.

        Args:
            descriptor (RepositoryDescriptor): The repository to materialize.

        Returns:
            bool: True if a clone was made, False if the path was already there.

        Raises:
            CloneError: If cloning fails.
        """
        path = self.trees.resolve_path(descriptor)
        if path.exists():
            return False

        try:
            GitRepo.clone(
                descriptor.url,
                path,
                descriptor.branch,
                options=self._options,
                timeout=self.config.timeout,
            )
        except (GitCommandError, OSError) as e:
            logger.error(f"CLONE ERROR {descriptor.url} -> {path}: {e}")
            raise CloneError(f"cannot clone {descriptor.url} to {path}", e) from e

        logger.info(f"CLONED {descriptor.url} -> {path}")
        return True

    def reset_to_upstream(self, descriptor: RepositoryDescriptor) -> None:
        """Makes the working tree pristine and current with its upstream branch.

        Forces a checkout of the branch (discarding local modifications),
        removes untracked files, fetches all remotes and moves the branch to
        `<remote>/<branch>`. Outside a run the branch has no commits of its
        own, so this fast-forwards; a commit left behind by a failed push is
        dropped so the next run recomputes and publishes it. Safe to call any
        number of times.

        Args:
            descriptor (RepositoryDescriptor): The repository to reset.

        Raises:
            CheckoutError: If discarding local state fails.
            FetchMergeError: If fetching or moving to the upstream branch fails.
        """
        path = self.trees.resolve_path(descriptor)
        try:
            repo = self._open(descriptor)
            repo.checkout(descriptor.branch, force=True)
            repo.clean_untracked()
        except (GitCommandError, ValueError) as e:
            logger.error(f"CHECKOUT ERROR {path}: {e}")
            raise CheckoutError(f"cannot checkout {path}", e) from e

        upstream = f"{self.config.remote_name}/{descriptor.branch}"
        try:
            repo.fetch_all()
            repo.reset_hard(upstream)
        except GitCommandError as e:
            logger.error(f"PULL ERROR {path} ({upstream}): {e}")
            raise FetchMergeError(f"cannot update {path} to {upstream}", e) from e

    def has_uncommitted_changes(self, descriptor: RepositoryDescriptor) -> bool:
        """Whether the working tree has modified, added, deleted or untracked files.

        Raises:
            StatusError: If the status cannot be read.
        """
        try:
            return bool(self._open(descriptor).status_porcelain())
        except (GitCommandError, ValueError) as e:
            logger.error(f"STATUS ERROR {descriptor.url}: {e}")
            raise StatusError(f"cannot get status of {descriptor.url}", e) from e

    def _commit_env(self) -> dict[str, str]:
        env = os.environ.copy()
        env["GIT_AUTHOR_NAME"] = env["GIT_COMMITTER_NAME"] = self.config.author_name
        env["GIT_AUTHOR_EMAIL"] = env["GIT_COMMITTER_EMAIL"] = (
            self.config.author_email
        )
        return env

    def commit(self, descriptor: RepositoryDescriptor) -> str:
        """Stages everything and commits it on the descriptor's branch.

        The commit has the current branch head as its sole parent and a
        timestamped message; the branch ref is advanced only if it still points
        at that parent.

        Returns:
            str: The new commit's SHA-1.

        Raises:
            CommitError: If staging, tree writing or committing fails.
        """
        branch_ref = f"refs/heads/{descriptor.branch}"
        try:
            repo = self._open(descriptor)
            repo.add_all()
            tree_oid = repo.write_tree()

            parents = []
            if parent := repo.rev_parse(branch_ref):
                parents.append(parent)

            millis = int(datetime.datetime.now().timestamp() * 1000)
            commit_oid = repo.commit_tree(
                tree_oid,
                parents,
                f"{COMMIT_MESSAGE_PREFIX}: {millis}",
                env=self._commit_env(),
            )
            repo.update_ref(branch_ref, commit_oid, parent)
        except (GitCommandError, ValueError) as e:
            logger.error(f"COMMIT ERROR {descriptor.url} ({branch_ref}): {e}")
            raise CommitError(f"cannot commit to {branch_ref}", e) from e

        logger.info(f"COMMITTED {descriptor.directory}: {commit_oid[:8]}")
        return commit_oid

    def push(self, descriptor: RepositoryDescriptor) -> list[PushUpdate]:
        """Pushes the descriptor's branch to the same branch on the remote.

        Returns:
            list[PushUpdate]: Per-reference push report.

        Raises:
            PushRejectedError: If the remote reported a message for a rejected ref.
            PushError: If the push fails outright.
        """
        branch_ref = f"refs/heads/{descriptor.branch}"
        refspec = f"{branch_ref}:{branch_ref}"
        try:
            updates = self._open(descriptor).push(self.config.remote_name, refspec)
        except (GitCommandError, ValueError) as e:
            logger.error(f"PUSH ERROR {descriptor.url}: {e}")
            raise PushError(f"cannot push {refspec}", e) from e

        rejected = {u.ref: u.summary for u in updates if u.rejected}
        if rejected:
            logger.error(f"PUSH REJECTED {descriptor.url}: {rejected}")
            raise PushRejectedError(rejected)

        logger.info(f"PUSHED {descriptor.directory}: {refspec}")
        return updates

    def commit_and_push(self, descriptor: RepositoryDescriptor) -> PushResult:
        """Commits all working-tree changes and publishes them upstream.

        Args:
            descriptor (RepositoryDescriptor): The repository to publish.

        Returns:
            PushResult: The commit and the remote's per-reference report.

        Raises:
            CommitError: If the commit cannot be created.
            PushError: If the push fails or is rejected.
        """
        commit_oid = self.commit(descriptor)
        return PushResult(commit=commit_oid, updates=self.push(descriptor))

    def working_tree(self, descriptor: RepositoryDescriptor) -> Path:
        """The working-tree path of a repository."""
        return self.trees.resolve_path(descriptor)
