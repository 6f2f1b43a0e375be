"""Tests for the git change-log store against a real temporary repository."""
import shutil
import subprocess

import pytest

from credulous.exceptions import PersistenceError
from credulous.models import RepoConfig
from credulous.providers.git import GitChangeLog

pytestmark = pytest.mark.skipif(
    shutil.which("git") is None, reason="git executable not available"
)


def git(repo, *args):
    return subprocess.run(
        ["git", "-C", str(repo), *args],
        capture_output=True, text=True, check=True,
    ).stdout.strip()


@pytest.fixture
def repo(tmp_path):
    path = tmp_path / "store"
    path.mkdir()
    git(path, "init", "-q")
    return path


class TestIsManagedStore:
    """Tests for is_managed_store."""

    def test_repository_root(self, repo):
        """The top level of a work tree is managed."""
        assert GitChangeLog().is_managed_store(str(repo))

    def test_plain_directory(self, tmp_path):
        """A directory outside any work tree is not managed."""
        plain = tmp_path / "plain"
        plain.mkdir()
        assert not GitChangeLog().is_managed_store(str(plain))

    def test_subdirectory_of_repository(self, repo):
        """Only the top level counts."""
        sub = repo / "alias"
        sub.mkdir()
        assert not GitChangeLog().is_managed_store(str(sub))

    def test_missing_directory(self, tmp_path):
        """A missing path is not managed."""
        assert not GitChangeLog().is_managed_store(str(tmp_path / "missing"))

    def test_missing_git_binary(self, repo):
        """Without git nothing is managed."""
        changelog = GitChangeLog(git="git-does-not-exist")
        assert not changelog.is_managed_store(str(repo))


class TestCommit:
    """Tests for commit."""

    def test_commit_file(self, repo):
        """The file is committed with the given message and author."""
        (repo / "alias" / "user").mkdir(parents=True)
        (repo / "alias" / "user" / "1-aaaa.json").write_text("{}")
        commit_id = GitChangeLog().commit(
            str(repo), "alias/user/1-aaaa.json", "Added by Credulous",
            RepoConfig(name="user"),
        )
        assert commit_id == git(repo, "rev-parse", "HEAD")
        assert git(repo, "log", "-1", "--format=%s") == "Added by Credulous"
        assert git(repo, "log", "-1", "--format=%an <%ae>") == "user <user@localhost>"
        assert git(repo, "ls-files") == "alias/user/1-aaaa.json"

    def test_default_author(self, repo):
        """An empty author falls back to the tool name."""
        (repo / "f.json").write_text("{}")
        GitChangeLog().commit(str(repo), "f.json", "msg", RepoConfig())
        assert git(repo, "log", "-1", "--format=%an") == "credulous"

    def test_missing_file_fails(self, repo):
        """Committing a file that does not exist is a persistence failure."""
        with pytest.raises(PersistenceError, match="git failed"):
            GitChangeLog().commit(str(repo), "nope.json", "msg", RepoConfig())
