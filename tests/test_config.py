"""Tests for environment-sourced configuration."""
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from credulous.config import (
    CredulousConfig,
    get_environment_credential,
    get_public_key_paths,
    get_repo_path,
    get_root_path,
)
from credulous.exceptions import CredentialsNotFoundError

ENV_NAMES = (
    "CREDULOUS_HOME", "CREDULOUS_REPO", "CREDULOUS_PRIVATE_KEY",
    "CREDULOUS_PUBLIC_KEYS", "CREDULOUS_LIFETIME", "CREDULOUS_LOG_LEVEL",
    "AWS_ACCESS_KEY_ID", "AWS_SECRET_ACCESS_KEY",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in ENV_NAMES:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("CREDULOUS_HOME", str(tmp_path / "home"))


class TestPaths:
    """Tests for path resolution."""

    def test_root_created_private(self, tmp_path):
        """The tool root is created with mode 0700."""
        root = get_root_path()
        assert root == tmp_path / "home"
        assert root.is_dir()
        assert os.stat(root).st_mode & 0o077 == 0

    def test_default_repo(self, tmp_path):
        """'local' and nothing mean the default store."""
        assert get_repo_path() == tmp_path / "home" / "local"
        assert get_repo_path("local") == tmp_path / "home" / "local"

    def test_repo_from_environment(self, monkeypatch, tmp_path):
        """CREDULOUS_REPO overrides the default store."""
        monkeypatch.setenv("CREDULOUS_REPO", str(tmp_path / "shared"))
        assert get_repo_path() == tmp_path / "shared"

    def test_explicit_repo_wins(self, monkeypatch, tmp_path):
        """An explicit repository beats the environment."""
        monkeypatch.setenv("CREDULOUS_REPO", str(tmp_path / "shared"))
        assert get_repo_path(str(tmp_path / "mine")) == tmp_path / "mine"

    def test_public_keys_from_environment(self, monkeypatch):
        """CREDULOUS_PUBLIC_KEYS is a path list."""
        monkeypatch.setenv("CREDULOUS_PUBLIC_KEYS", os.pathsep.join(["/a.pub", "/b.pub"]))
        assert get_public_key_paths() == [Path("/a.pub"), Path("/b.pub")]

    def test_public_keys_default(self):
        """Defaults to the user's RSA public key."""
        assert get_public_key_paths() == [Path.home() / ".ssh" / "id_rsa.pub"]


class TestEnvironmentCredential:
    """Tests for get_environment_credential."""

    def test_loaded(self, monkeypatch):
        """Both AWS variables make a credential."""
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIA")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        cred = get_environment_credential({"FOO": "bar"})
        assert (cred.key_id, cred.secret_key, cred.env_vars) == ("AKIA", "secret", {"FOO": "bar"})

    def test_missing_secret(self, monkeypatch):
        """A lone key id is not enough."""
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "AKIA")
        with pytest.raises(CredentialsNotFoundError, match="no credentials"):
            get_environment_credential()


class TestCredulousConfig:
    """Tests for CredulousConfig."""

    def test_from_env_defaults(self, tmp_path):
        """Defaults without overrides."""
        config = CredulousConfig.from_env()
        assert config.repo == tmp_path / "home" / "local"
        assert config.private_key == Path.home() / ".ssh" / "id_rsa"
        assert config.lifetime == 0
        assert config.log_level == "WARNING"

    def test_from_env_overrides(self, monkeypatch):
        """Environment variables feed the settings."""
        monkeypatch.setenv("CREDULOUS_PRIVATE_KEY", "/keys/id_rsa")
        monkeypatch.setenv("CREDULOUS_LIFETIME", "3600")
        monkeypatch.setenv("CREDULOUS_LOG_LEVEL", "debug")
        config = CredulousConfig.from_env()
        assert config.private_key == Path("/keys/id_rsa")
        assert config.lifetime == 3600
        assert config.log_level == "DEBUG"

    def test_explicit_keys_win(self, monkeypatch):
        """Arguments beat the environment."""
        monkeypatch.setenv("CREDULOUS_PRIVATE_KEY", "/keys/id_rsa")
        config = CredulousConfig.from_env(private_key="/other/id_rsa", public_keys=["/x.pub"])
        assert config.private_key == Path("/other/id_rsa")
        assert config.public_keys == [Path("/x.pub")]

    def test_negative_lifetime_rejected(self, monkeypatch):
        """Lifetimes are never negative."""
        monkeypatch.setenv("CREDULOUS_LIFETIME", "-1")
        with pytest.raises(ValidationError):
            CredulousConfig.from_env()

    def test_unknown_log_level_rejected(self, monkeypatch):
        """Only standard level names are accepted."""
        monkeypatch.setenv("CREDULOUS_LOG_LEVEL", "chatty")
        with pytest.raises(ValidationError):
            CredulousConfig.from_env()
