"""Change detection for front-matter content files.

A content file is Markdown with a YAML front-matter block. Tasks describe the
front-matter values they want through a `FileWriteIntent`; the `ChangeGate`
writes the file only when at least one of those values differs from what is
already on disk, so unchanged data never dirties the working tree.
"""

import datetime
import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import frontmatter
import yaml

from .constants import APP_NAME, DATE_FIELD, DEFAULT_CONTENT_TYPE
from .errors import ReadError, WriteError
from .repository import WorkingTreeManager

logger = logging.getLogger(APP_NAME)

_MISSING = object()


def _utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


@dataclass(frozen=True)
class FileWriteIntent:
    """Front-matter values a task wants a content file to hold.

    Attributes:
        repo_folder (str): Directory of the repository the file lives in.
        file (str): File name.
        data (dict[str, Any]): Front-matter keys to assign.
        content_type (str): Top-level content folder.
        folder (str): Subfolder below the content folder; ignored when equal
            to `content_type`.
    """

    repo_folder: str
    file: str
    data: dict[str, Any] = field(default_factory=dict)
    content_type: str = DEFAULT_CONTENT_TYPE
    folder: str = DEFAULT_CONTENT_TYPE


def merge_metadata(
    metadata: dict[str, Any], updates: dict[str, Any]
) -> tuple[dict[str, Any], list[str]]:
    """Assigns `updates` over `metadata` and reports which keys changed.

    Values are compared by structural equality, so nested lists and mappings
    that are equal but not identical count as unchanged. A key absent from
    `metadata` counts as changed.

    Args:
        metadata (dict[str, Any]): The current front-matter.
        updates (dict[str, Any]): Values to assign.

    Returns:
        tuple[dict[str, Any], list[str]]: The merged mapping (a new dict) and
        the keys whose value actually changed.
    """
    merged = dict(metadata)
    changed = []
    for key, value in updates.items():
        if metadata.get(key, _MISSING) != value:
            changed.append(key)
        merged[key] = value
    return merged, changed


class ChangeGate:
    """Writes content files only when their front-matter actually changes.

    Attributes:
        trees (WorkingTreeManager): Resolves intents to file paths.
        clock (Callable[[], datetime.datetime]): Source of the `date` stamp.
    """

    def __init__(
        self,
        trees: WorkingTreeManager,
        clock: Callable[[], datetime.datetime] = _utc_now,
    ):
        self.trees = trees
        self.clock = clock

    def path_for(self, intent: FileWriteIntent) -> Path:
        return self.trees.content_path(
            intent.repo_folder, intent.content_type, intent.folder, intent.file
        )

    def _read(self, path: Path) -> frontmatter.Post:
        try:
            return frontmatter.load(path)
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"READ ERROR {path}: {e}")
            raise ReadError(f"Cannot read file {path} content: {e}", path) from e
        except yaml.YAMLError as e:
            logger.error(f"READ ERROR {path}: {e}")
            raise ReadError(f"Cannot parse front-matter of {path}: {e}", path) from e

    def _write(self, path: Path, post: frontmatter.Post) -> None:
        try:
            path.write_text(frontmatter.dumps(post) + "\n", encoding="utf-8")
        except OSError as e:
            logger.error(f"WRITE ERROR {path}: {e}")
            raise WriteError(f"Cannot write new content to {path}: {e}", path) from e

    def apply(self, intent: FileWriteIntent) -> bool:
        """Merges the intent's data into its file's front-matter, writing on change.

        When any value changes, `date` is also set to the current time. When
        nothing changes the file is not touched at all.

        Args:
            intent (FileWriteIntent): The values to apply.

        Returns:
            bool: True if the file was rewritten, False if it was left alone.

        Raises:
            ReadError: If the file is missing or cannot be parsed.
            WriteError: If the updated file cannot be written.
        """
        path = self.path_for(intent)
        post = self._read(path)

        merged, changed = merge_metadata(post.metadata, intent.data)
        if not changed:
            logger.debug(f"UNCHANGED {path}")
            return False

        merged[DATE_FIELD] = self.clock()
        post.metadata = merged
        self._write(path, post)
        logger.info(f"UPDATED {path}: {', '.join(changed)}")
        return True
