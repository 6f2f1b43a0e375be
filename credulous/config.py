"""
Credulous Configuration — Environment-sourced defaults and validated settings.

Reads defaults from environment variables:
    CREDULOUS_HOME = <tool root, default ~/.credulous>
    CREDULOUS_REPO = <store root, default $CREDULOUS_HOME/local>
    CREDULOUS_PRIVATE_KEY = <private key, default ~/.ssh/id_rsa>
    CREDULOUS_PUBLIC_KEYS = <os.pathsep separated public keys, default ~/.ssh/id_rsa.pub>
    CREDULOUS_LIFETIME = <default credential lifetime in seconds, default 0>
    CREDULOUS_LOG_LEVEL = <logging level name, default WARNING>

Security Note:
    Never log credential values. Only log paths and names.
"""
import os
import logging
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator

from .exceptions import CredentialsNotFoundError
from .models import Credential

logger = logging.getLogger("credulous.config")

LOCAL_REPO = "local"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def get_root_path() -> Path:
    """Tool root directory, created with mode 0700 if missing."""
    env_home = os.environ.get("CREDULOUS_HOME")
    root = Path(env_home).expanduser() if env_home else Path.home() / ".credulous"
    root.mkdir(mode=0o700, parents=True, exist_ok=True)
    return root


def get_repo_path(repo: Optional[str] = None) -> Path:
    """Resolve a store root; ``None`` or ``"local"`` mean the default store."""
    if repo and repo != LOCAL_REPO:
        return Path(repo).expanduser()
    env_repo = os.environ.get("CREDULOUS_REPO")
    if env_repo:
        return Path(env_repo).expanduser()
    return get_root_path() / LOCAL_REPO


def get_private_key_path(name: Optional[str] = None) -> Path:
    """Private key used to decrypt; defaults to ``~/.ssh/id_rsa``."""
    if name:
        return Path(name).expanduser()
    env_key = os.environ.get("CREDULOUS_PRIVATE_KEY")
    if env_key:
        return Path(env_key).expanduser()
    return Path.home() / ".ssh" / "id_rsa"


def get_public_key_paths(names: Optional[list[str]] = None) -> list[Path]:
    """Recipient public keys; defaults to ``~/.ssh/id_rsa.pub``."""
    if names:
        return [Path(name).expanduser() for name in names]
    env_keys = os.environ.get("CREDULOUS_PUBLIC_KEYS")
    if env_keys:
        return [Path(p).expanduser() for p in env_keys.split(os.pathsep) if p]
    return [Path.home() / ".ssh" / "id_rsa.pub"]


def get_environment_credential(
    env_vars: Optional[dict[str, str]] = None,
) -> Credential:
    """The AWS access key currently loaded in the environment.

    Raises:
        CredentialsNotFoundError: If either variable is missing.
    """
    key_id = os.environ.get("AWS_ACCESS_KEY_ID")
    secret = os.environ.get("AWS_SECRET_ACCESS_KEY")
    if not key_id or not secret:
        raise CredentialsNotFoundError(
            "can't save, no credentials in the environment"
        )
    return Credential(key_id=key_id, secret_key=secret, env_vars=env_vars)


class CredulousConfig(BaseModel):
    """Validated credulous configuration."""

    repo: Path
    private_key: Path
    public_keys: list[Path]
    lifetime: int = Field(default=0)
    log_level: str = Field(default="WARNING")

    @field_validator("lifetime")
    @classmethod
    def validate_lifetime(cls, v: int) -> int:
        """Lifetime is a number of seconds; 0 means forever."""
        if v < 0:
            raise ValueError(f"lifetime cannot be negative, got {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate the logging level name."""
        level = v.upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"Unsupported log level: {v}")
        return level

    @classmethod
    def from_env(
        cls,
        repo: Optional[str] = None,
        private_key: Optional[str] = None,
        public_keys: Optional[list[str]] = None,
    ) -> "CredulousConfig":
        """Create CredulousConfig from explicit values and the environment.

        Returns:
            Populated CredulousConfig instance.
        """
        config = cls(
            repo=get_repo_path(repo),
            private_key=get_private_key_path(private_key),
            public_keys=get_public_key_paths(public_keys),
            lifetime=int(os.environ.get("CREDULOUS_LIFETIME", "0")),
            log_level=os.environ.get("CREDULOUS_LOG_LEVEL", "WARNING"),
        )
        logger.debug("Using credentials store %s", config.repo)
        return config
