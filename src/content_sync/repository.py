from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class RepositoryDescriptor:
    """Identifies one logical repository kept in sync.

    Attributes:
        url (str): The remote URL cloned from and pushed to.
        directory (str): Folder name of the working tree; unique per repository.
        branch (str): The branch that is reset, committed to and pushed.
    """

    url: str
    directory: str
    branch: str


class WorkingTreeManager:
    """Maps repository descriptors to working-tree locations on disk.

    Attributes:
        root (Path): The directory holding one working tree per repository.
    """

    def __init__(self, base_dir: str | Path, repos_folder: str):
        self.root = Path(base_dir) / repos_folder

    def resolve_path(self, descriptor: RepositoryDescriptor) -> Path:
        """Returns the working-tree path for a repository.

        Args:
            descriptor (RepositoryDescriptor): The repository to locate.

        Returns:
            Path: `<base_dir>/<repos_folder>/<directory>`.
        """
        return self.root / descriptor.directory

    def is_cloned(self, descriptor: RepositoryDescriptor) -> bool:
        """Whether a working tree already exists at the resolved path."""
        return self.resolve_path(descriptor).exists()

    def content_path(
        self, repo_folder: str, content_type: str, folder: str, file: str
    ) -> Path:
        """Resolves a content file inside a working tree.

        The subfolder is dropped when it repeats the content type, so both
        ('content', 'content', 'a.md') and ('content', '', 'a.md') point at
        `<tree>/content/a.md`.

        Args:
            repo_folder (str): The repository directory name.
            content_type (str): Top-level content folder (e.g. 'content').
            folder (str): Subfolder below the content folder.
            file (str): The file name.

        Returns:
            Path: The absolute path of the content file.
        """
        content_root = self.root / repo_folder / content_type
        if not folder or folder == content_type:
            return content_root / file
        return content_root / folder / file
