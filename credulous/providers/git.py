"""
Git change-log store.

A store root that is the top level of a git work tree is "managed": every
saved envelope is committed. Anything else is saved without a commit.
"""
import os
import logging
import subprocess

from ..exceptions import PersistenceError
from ..models import RepoConfig

logger = logging.getLogger("credulous.providers.git")

DEFAULT_AUTHOR = "credulous"


class GitChangeLog:
    """Commits saved envelopes with the ``git`` command line."""

    def __init__(self, git: str = "git"):
        self.git = git

    def _run(self, repo: str, *args: str) -> subprocess.CompletedProcess:
        return subprocess.run(
            [self.git, "-C", repo, *args],
            capture_output=True,
            text=True,
        )

    def is_managed_store(self, path: str) -> bool:
        """True if ``path`` is the top level of a git work tree."""
        if not os.path.isdir(path):
            return False
        try:
            result = self._run(path, "rev-parse", "--show-toplevel")
        except FileNotFoundError:
            logger.debug("git executable not found; %s is not managed", path)
            return False
        if result.returncode != 0:
            return False
        toplevel = result.stdout.strip()
        return os.path.realpath(toplevel) == os.path.realpath(path)

    def _check(self, repo: str, *args: str) -> str:
        try:
            result = self._run(repo, *args)
        except OSError as err:
            raise PersistenceError(f"cannot run git: {err}") from err
        if result.returncode != 0:
            raise PersistenceError(
                f"git failed in {repo}: {result.stderr.strip()}"
            )
        return result.stdout.strip()

    def commit(
        self, repo: str, filename: str, message: str, author: RepoConfig
    ) -> str:
        """Add and commit ``filename`` (relative to ``repo``).

        Returns:
            The new commit id.

        Raises:
            PersistenceError: If any git command fails.
        """
        name = author.name or DEFAULT_AUTHOR
        email = author.email or f"{name}@localhost"
        self._check(repo, "add", "--", filename)
        self._check(
            repo,
            "-c", f"user.name={name}",
            "-c", f"user.email={email}",
            "-c", "commit.gpgsign=false",
            "commit", "-m", message, "--", filename,
        )
        commit_id = self._check(repo, "rev-parse", "HEAD")
        logger.info("Committed %s to %s as %s", filename, repo, commit_id)
        return commit_id
