"""Git synchronization for workspaces."""

from lemma.storage.git.base import GitClient, GitClientFactory
from lemma.storage.git.client import SubprocessGitClient, classify_git_error
from lemma.storage.git.coordinator import GitCoordinator

__all__ = [
    "GitClient",
    "GitClientFactory",
    "GitCoordinator",
    "SubprocessGitClient",
    "classify_git_error",
]
