"""VCS host layer — protocol, value objects, and the GitHub client."""

from repodigest.vcs.github import GitHubClient
from repodigest.vcs.protocol import VcsHost
from repodigest.vcs.types import CommitInfo, RepoFile, RepoRef, SnapshotFilter, parse_repo_url

__all__ = [
    "CommitInfo",
    "GitHubClient",
    "RepoFile",
    "RepoRef",
    "SnapshotFilter",
    "VcsHost",
    "parse_repo_url",
]
