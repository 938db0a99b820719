import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from .constants import APP_NAME

logger = logging.getLogger(APP_NAME)


class GitCommandError(RuntimeError):
    """A git subprocess exited non-zero or timed out.

    The message never includes the command line, which may carry credentials.

    Attributes:
        command (str): The git subcommand that failed (e.g. 'push').
        returncode (int | None): Exit status, or None on timeout.
        stderr (str): Captured standard error.
    """

    def __init__(self, command: str, returncode: int | None, stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stderr = stderr.strip()
        if returncode is None:
            msg = f"git {command} timed out"
        else:
            msg = f"git {command} exited with {returncode}"
        if self.stderr:
            msg = f"{msg}: {self.stderr}"
        super().__init__(msg)


@dataclass(frozen=True)
class PushUpdate:
    """The outcome of one reference in a `git push --porcelain` report.

    Attributes:
        flag (str): Status flag (' ', '+', '-', '*', '!', '=').
        ref (str): The `<src>:<dst>` pair the line reports on.
        summary (str): Summary text; for rejected refs, the remote's message.
    """

    flag: str
    ref: str
    summary: str

    @property
    def rejected(self) -> bool:
        return self.flag == "!"


def parse_push_porcelain(output: str) -> list[PushUpdate]:
    """Extracts per-reference results from `git push --porcelain` output.

    Args:
        output (str): Standard output of the push.

    Returns:
        list[PushUpdate]: One entry per reported reference.
    """
    updates = []
    for line in output.splitlines():
        parts = line.split("\t")
        if len(parts) < 3 or len(parts[0]) != 1:
            continue  # "To <url>" and "Done" lines.
        updates.append(PushUpdate(parts[0], parts[1], parts[2].strip()))
    return updates


def _run_git(
    args: list[str],
    cwd: Path,
    options: list[str] | None = None,
    env: dict | None = None,
    timeout: float | None = None,
) -> subprocess.CompletedProcess:
    """Runs git without raising on a non-zero exit status.

    Raises:
        GitCommandError: If the command does not finish within `timeout`.
    """
    # Never block on a credential prompt in a background process.
    env = dict(os.environ if env is None else env)
    env["GIT_TERMINAL_PROMPT"] = "0"
    try:
        return subprocess.run(
            ["git", *(options or []), *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            env=env,
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        raise GitCommandError(args[0], None) from e


class GitRepo:
    """A wrapper around the Git command-line interface for a specific repository.

    Every command is prefixed with `options` (typically `-c key=value` pairs
    carrying transport settings) and bounded by `timeout`.

    Attributes:
        path (Path): The file system path to the repository root.
        options (list[str]): Global git options placed before each subcommand.
        timeout (float | None): Seconds before a command is abandoned.
    """

    def __init__(
        self,
        path: Path,
        options: list[str] | None = None,
        timeout: float | None = None,
    ):
        """Initializes the GitRepo instance.

        Args:
            path (Path): The path to the repository root directory.
            options (list[str] | None): Global git options. Defaults to none.
            timeout (float | None): Per-command timeout. Defaults to none.

        Raises:
            ValueError: If the specified path does not contain a .git directory.
        """
        self.path = path
        self.options = list(options or [])
        self.timeout = timeout
        if not (self.path / ".git").exists():
            raise ValueError(f"Not a git repository: {self.path}")

    @classmethod
    def clone(
        cls,
        url: str,
        path: Path,
        branch: str,
        options: list[str] | None = None,
        timeout: float | None = None,
    ) -> "GitRepo":
        """Clones `url` into `path` with `branch` checked out.

        Args:
            url (str): The remote URL.
            path (Path): Destination directory; its parent is created if needed.
            branch (str): The branch to check out after cloning.
            options (list[str] | None): Global git options, also kept on the result.
            timeout (float | None): Per-command timeout.

        Returns:
            GitRepo: A wrapper around the fresh clone.

        Raises:
            GitCommandError: If the clone fails.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        args = ["clone", "--branch", branch, url, str(path)]
        res = _run_git(args, cwd=path.parent, options=options, timeout=timeout)
        if res.returncode != 0:
            raise GitCommandError("clone", res.returncode, res.stderr)
        return cls(path, options=options, timeout=timeout)

    def _exec(
        self, args: list[str], env: dict | None = None
    ) -> subprocess.CompletedProcess:
        """Executes a Git command and returns the completed process unchecked."""
        return _run_git(
            args, cwd=self.path, options=self.options, env=env, timeout=self.timeout
        )

    def _run(self, args: list[str], env: dict | None = None) -> str:
        """Executes a Git command within the repository context.

        Args:
            args (list[str]): A list of arguments to pass to the git command.
            env (Optional[dict], optional): Environment variables to pass to the
                                            subprocess. Defaults to None.

        Returns:
            str: The stripped stdout of the command.

        Raises:
            GitCommandError: If the git command fails or times out.
        """
        res = self._exec(args, env=env)
        if res.returncode != 0:
            raise GitCommandError(args[0], res.returncode, res.stderr)
        return res.stdout.strip()

    def current_branch(self) -> str:
        """Retrieves the name of the currently checked-out branch."""
        return self._run(["branch", "--show-current"])

    def status_porcelain(self) -> list[str]:
        """Returns the porcelain status, listing every untracked file individually.

        Returns:
            list[str]: One line per modified, added, deleted or untracked path.
        """
        output = self._run(["status", "--porcelain", "--untracked-files=all"])
        return output.splitlines() if output else []

    def checkout(self, branch: str, force: bool = False) -> None:
        """Checks out a branch, optionally discarding local modifications.

        Args:
            branch (str): The target branch name or commit.
            force (bool, optional): Whether to force the checkout. Defaults to False.
        """
        cmd = ["checkout"]
        if force:
            cmd.append("-f")
        cmd.append(branch)
        self._run(cmd)

    def clean_untracked(self) -> None:
        """Deletes untracked files and directories (ignored files are kept)."""
        self._run(["clean", "-f", "-d"])

    def fetch_all(self) -> None:
        """Fetches every configured remote."""
        self._run(["fetch", "--all"])

    def reset_hard(self, ref: str) -> None:
        """Points the current branch, index and working tree at `ref`."""
        self._run(["reset", "--hard", ref])

    def add_all(self) -> None:
        """
        Stages all changes (modified, deleted, and untracked files)
        in the working directory.
        """
        self._run(["add", "--all"])

    def rev_parse(self, rev: str) -> str | None:
        """Resolves a revision (tag, branch, relative ref) to a full SHA-1 hash.

        Args:
            rev (str): The revision to parse (e.g., 'HEAD', 'master').

        Returns:
            Optional[str]:  The full SHA-1 hash,
                            or None if the revision could not be resolved.
        """
        try:
            return self._run(["rev-parse", "--verify", "--quiet", rev])
        except GitCommandError as e:
            logger.debug(f"rev-parse failed for '{rev}': {e}")
            return None

    def write_tree(self) -> str:
        """Creates a tree object from the current index.

        Returns:
            str: The SHA-1 hash of the created tree object.
        """
        return self._run(["write-tree"])

    def commit_tree(
        self, tree: str, parents: list[str], message: str, env: dict | None = None
    ) -> str:
        """Creates a commit object from a tree object.

        Args:
            tree (str): The tree SHA-1 to commit.
            parents (list[str]): A list of parent commit SHA-1s.
            message (str): The commit message.
            env (Optional[dict], optional): Environment variables, used to set
                                            the author and committer identity.

        Returns:
            str: The SHA-1 hash of the new commit.
        """
        cmd = ["commit-tree", tree, "-m", message]
        for p in parents:
            cmd.extend(["-p", p])
        try:
            return self._run(cmd, env=env)
        except GitCommandError as e:
            logger.warning(f"Failed to commit tree {tree}: {e}")
            raise

    def update_ref(self, ref: str, new_oid: str, old_oid: str | None = None) -> None:
        """Safely updates a reference to a new object ID.

        Args:
            ref (str): The reference to update (e.g., 'refs/heads/master').
            new_oid (str): The new SHA-1 hash.
            old_oid (Optional[str], optional): The expected old SHA-1 hash. If provided,
                                               the update will fail if the current ref
                                               does not match this value.
        """
        cmd = ["update-ref", "-m", "content update", ref, new_oid]
        if old_oid:
            cmd.append(old_oid)
        try:
            self._run(cmd)
        except GitCommandError as e:
            logger.warning(f"Failed to update ref {ref}: {e}")
            raise

    def push(self, remote: str, refspec: str) -> list[PushUpdate]:
        """Pushes a refspec and reports the status of every reference.

        Rejections are returned, not raised, so callers can inspect the remote's
        message for each reference.

        Args:
            remote (str): The remote name (e.g. 'origin').
            refspec (str): The `<src>:<dst>` refspec to push.

        Returns:
            list[PushUpdate]: Per-reference results.

        Raises:
            GitCommandError: If the push fails without reporting any reference
                             (e.g. authentication or network failure).
        """
        res = self._exec(["push", "--porcelain", remote, refspec])
        updates = parse_push_porcelain(res.stdout)
        if res.returncode != 0 and not any(u.rejected for u in updates):
            raise GitCommandError("push", res.returncode, res.stderr)
        return updates
