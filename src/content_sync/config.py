import logging
import os
import re
import tomllib
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from .constants import (
    APP_NAME,
    COMMIT_AUTHOR_EMAIL,
    COMMIT_AUTHOR_NAME,
    CONFIG_FILE,
    REMOTE_NAME,
)
from .repository import RepositoryDescriptor

logger = logging.getLogger(APP_NAME)


_QUANTITY = re.compile(r"(\d+(?:\.\d+)?)\s*([a-z]*)")

SIZE_UNITS = {"": 1, "b": 1, "kb": 1024, "mb": 1024**2, "gb": 1024**3}
"""dict[str, int]: Bytes per size unit accepted in config files."""

TIME_UNITS = {"": 1, "s": 1, "m": 60, "min": 60, "h": 3600}
"""dict[str, int]: Seconds per time unit accepted in config files."""


def _parse_quantity(value: int | str, units: dict[str, int], kind: str) -> int:
    if isinstance(value, int):
        return value
    match = _QUANTITY.fullmatch(str(value).strip().lower())
    if not match or match.group(2) not in units:
        raise ValueError(f"Invalid {kind} format '{value}'")
    return int(float(match.group(1)) * units[match.group(2)])


def parse_size(value: int | str) -> int:
    """Converts a size such as '512kb' or '5 MB' to bytes."""
    return _parse_quantity(value, SIZE_UNITS, "size")


def parse_time(value: int | str) -> int:
    """Converts a duration such as '30s', '5m' or '1h' to seconds."""
    return _parse_quantity(value, TIME_UNITS, "time")


_FIELD_PARSERS = {
    "max_log_size": parse_size,
    "interval": parse_time,
    "timeout": parse_time,
}


@dataclass
class CoreConfig:
    """Filesystem layout settings.

    Attributes:
        base_dir (str): Root directory all working trees live under.
        repos_folder (str): Folder below base_dir holding one clone per repository.
    """

    base_dir: str = field(default_factory=lambda: str(Path.cwd()))
    repos_folder: str = "repos"


@dataclass
class GitConfig:
    """Transport and identity settings handed to the version-control backend.

    Attributes:
        token (str | None): Access token sent as the basic-auth username.
        verify_ssl (bool): Whether TLS certificates are validated. Disabled by
            default for the self-signed hosting setup; enable it wherever the
            remote presents a trusted certificate.
        author_name (str): Author and committer name for content commits.
        author_email (str): Author and committer email for content commits.
        remote_name (str): The remote to fetch from and push to.
        timeout (int): Seconds before a single git command is abandoned.
    """

    token: str | None = None
    verify_ssl: bool = False
    author_name: str = COMMIT_AUTHOR_NAME
    author_email: str = COMMIT_AUTHOR_EMAIL
    remote_name: str = REMOTE_NAME
    timeout: int = 120


@dataclass
class SchedulerConfig:
    """Scheduler settings.

    Attributes:
        interval (int): Seconds between two synchronization cycles.
    """

    interval: int = 300


@dataclass
class WorkflowConfig:
    """Workflow recovery settings.

    Attributes:
        reset_attempts (int): How many times a rollback reset is tried after a
            failed task before giving up.
    """

    reset_attempts: int = 3


@dataclass
class LimitsConfig:
    """Resource limitation settings.

    Attributes:
        max_log_size (int): Max bytes for log files before rotation.
    """

    max_log_size: int = 5 * 1024 * 1024


@dataclass
class WarframestatConfig:
    """Source data API settings.

    Attributes:
        api_url (str): Base URL of the warframestat API.
        timeout (int): Seconds before a single API request is abandoned.
    """

    api_url: str = "https://api.warframestat.us"
    timeout: int = 30


WARFRAMEBLOG_DIR = "warframeblog"
"""str: Directory of the repository `WARFRAMEBLOG_REPO_URL` points at."""


def _default_repositories() -> list[RepositoryDescriptor]:
    return [
        RepositoryDescriptor(
            url="",
            directory=WARFRAMEBLOG_DIR,
            branch="develop",
        )
    ]


@dataclass
class Config:
    """Global configuration aggregator.

    Attributes:
        core (CoreConfig): Filesystem layout.
        git (GitConfig): Backend transport and identity.
        scheduler (SchedulerConfig): Cycle timing.
        workflow (WorkflowConfig): Recovery behaviour.
        limits (LimitsConfig): Resource limits.
        warframestat (WarframestatConfig): Source data API.
        repositories (list[RepositoryDescriptor]): Repositories to keep in sync.
    """

    core: CoreConfig = field(default_factory=CoreConfig)
    git: GitConfig = field(default_factory=GitConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    workflow: WorkflowConfig = field(default_factory=WorkflowConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    warframestat: WarframestatConfig = field(default_factory=WarframestatConfig)
    repositories: list[RepositoryDescriptor] = field(
        default_factory=_default_repositories
    )

    @classmethod
    def load(cls, path: Path | None = None) -> "Config":
        """Loads configuration from defaults, a TOML file and the environment.

        Args:
            path (Path | None): Explicit config file. Defaults to the global
                                CONFIG_FILE when it exists.

        Returns:
            Config: The fully merged configuration object.
        """
        instance = cls()

        source = path or CONFIG_FILE
        if source.exists():
            instance._merge_from_file(source)

        instance._merge_from_env(os.environ)
        return instance

    def _merge_from_file(self, path: Path) -> None:
        """Parses a TOML file and merges it into the current instance.

        Args:
            path (Path): Path to the TOML file.
        """
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)

            if not data:
                return

            for section in (
                "core",
                "git",
                "scheduler",
                "workflow",
                "limits",
                "warframestat",
            ):
                if section in data:
                    updated = self._update_dataclass(
                        section, getattr(self, section), data[section]
                    )
                    setattr(self, section, updated)

            if "repositories" in data:
                self.repositories = self._parse_repositories(data["repositories"])

        except tomllib.TOMLDecodeError as e:
            logger.error(f"Config syntax error in {path}: {e}")
        except Exception as e:
            logger.warning(f"Failed to load config from {path}: {e}")

    def _merge_from_env(self, env: Any) -> None:
        """Applies environment overrides on top of file settings."""
        if base_dir := env.get("CONTENT_SYNC_BASEDIR"):
            self.core.base_dir = base_dir
        if repos_folder := env.get("REPOS_FOLDER"):
            self.core.repos_folder = repos_folder
        if token := env.get("GITHUB_TOKEN"):
            self.git.token = token
        if api_url := env.get("WARFRAMESTAT_API_URL"):
            self.warframestat.api_url = api_url
        if repo_url := env.get("WARFRAMEBLOG_REPO_URL"):
            self.repositories = [
                replace(r, url=repo_url) if r.directory == WARFRAMEBLOG_DIR else r
                for r in self.repositories
            ]

    @staticmethod
    def _parse_repositories(entries: list[dict]) -> list[RepositoryDescriptor]:
        """Builds descriptors from [[repositories]] tables, skipping broken ones."""
        repositories = []
        seen = set()
        for entry in entries:
            try:
                descriptor = RepositoryDescriptor(
                    url=entry["url"],
                    directory=entry["directory"],
                    branch=entry.get("branch", "master"),
                )
            except KeyError as e:
                logger.warning(f"Repository entry missing key {e}. Ignoring.")
                continue
            if descriptor.directory in seen:
                logger.warning(
                    f"Duplicate repository directory '{descriptor.directory}'. Ignoring."
                )
                continue
            seen.add(descriptor.directory)
            repositories.append(descriptor)
        return repositories

    @staticmethod
    def _update_dataclass(section_name: str, instance: Any, updates: dict) -> Any:
        """Returns a copy of a section with file values applied.

        Unknown keys and unparsable values are logged and skipped, leaving the
        section's default in place.
        """
        known = {f.name for f in fields(instance)}
        unknown = sorted(set(updates) - known)
        if unknown:
            logger.warning(
                f"Unknown config keys in [{section_name}]: {', '.join(unknown)}. Ignoring."
            )

        changes = {}
        for key, value in updates.items():
            if key not in known:
                continue
            parser = _FIELD_PARSERS.get(key)
            try:
                changes[key] = parser(value) if parser else value
            except ValueError as e:
                logger.warning(
                    f"Config error in [{section_name}].{key}: {e}. Falling back to default."
                )
        return replace(instance, **changes)
