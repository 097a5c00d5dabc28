"""VCS value objects — repository references, commit metadata, file snapshots."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from repodigest.exceptions import VcsError

_GITHUB_RE = re.compile(r"github\.com[/:]([^/]+)/([^/?#]+)", re.I)


@dataclass(frozen=True, slots=True)
class RepoRef:
    """An ``owner/name`` repository on the VCS host."""

    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def url(self) -> str:
        return f"https://github.com/{self.owner}/{self.name}"


def parse_repo_url(url: str) -> RepoRef:
    """Normalize a GitHub URL (with or without scheme, ``.git`` suffix, SSH form).

    Raises:
        VcsError: If *url* does not identify an ``owner/repo``.
    """
    cleaned = url.strip()
    cleaned = re.sub(r"\.git/?$", "", cleaned, flags=re.I).rstrip("/")
    match = _GITHUB_RE.search(cleaned)
    if match is None:
        msg = f"Invalid GitHub URL {url!r}. Use: https://github.com/owner/repo"
        raise VcsError(msg)
    owner, name = match.groups()
    return RepoRef(owner=owner, name=name)


@dataclass(frozen=True, slots=True)
class CommitInfo:
    """Metadata for one commit as reported by the VCS host.

    Attributes:
        hash: Full commit SHA.
        message: Commit message.
        author_name: Author display name.
        author_avatar: Author avatar URL (empty if unknown).
        date: Author date, timezone-aware when the host provides one.
    """

    hash: str
    message: str = ""
    author_name: str = ""
    author_avatar: str = ""
    date: datetime | None = None


@dataclass(frozen=True, slots=True)
class RepoFile:
    """One text file from a repository snapshot."""

    path: str
    content: str


@dataclass(frozen=True, slots=True)
class SnapshotFilter:
    """Which repository paths are worth summarizing.

    A path is kept when its extension is in *include_extensions*, no path
    segment is in *exclude_dirs*, and its file name matches none of
    *ignore_names* (exact names or ``*.suffix`` patterns).
    """

    include_extensions: frozenset[str] = frozenset(
        {
            ".py", ".ts", ".tsx", ".js", ".jsx", ".mdx", ".md", ".html", ".css",
            ".go", ".rs", ".java", ".rb", ".c", ".h", ".cpp", ".cs", ".php",
        }
    )
    exclude_dirs: frozenset[str] = frozenset(
        {"node_modules", ".next", "dist", "build", ".git", "__pycache__", ".venv", "vendor"}
    )
    ignore_names: frozenset[str] = frozenset(
        {
            "package-lock.json", "yarn.lock", "pnpm-lock.yaml", "bun.lockb",
            "*.min.js", "*.map",
        }
    )
    max_file_size: int = 512 * 1024

    def matches(self, path: str) -> bool:
        """Return True if *path* should be included in a snapshot."""
        lowered = path.lower()
        parts = lowered.split("/")
        if any(part in self.exclude_dirs for part in parts[:-1]):
            return False
        name = parts[-1]
        for pattern in self.ignore_names:
            if pattern.startswith("*") and name.endswith(pattern[1:]):
                return False
            if name == pattern:
                return False
        dot = name.rfind(".")
        return dot > 0 and name[dot:] in self.include_extensions
