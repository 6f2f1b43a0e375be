"""
Credential Store — directory layout of saved envelopes.

Layout::

    <root>/<account alias>/<identity>/<epoch>-<key id suffix>.json

Envelope file names start with a decimal Unix epoch, so sorting names as
strings sorts them by age; the last name is the latest envelope. Files are
never rewritten: every save creates a new one.
"""
import os
import logging
from pathlib import Path
from typing import Union

from .codec import dump_credentials
from .exceptions import (
    AmbiguousCredentialsError,
    CredentialsNotFoundError,
    PersistenceError,
)
from .models import Credentials

logger = logging.getLogger("credulous.store")

PathLike = Union[str, os.PathLike]

# Change-log control directories living inside a store root.
MANAGEMENT_DIRS = frozenset({".git", ".cgit"})

MIN_SUFFIX = 4
KEY_ID_PREFIX = 12


def get_subdirectories(path: PathLike) -> list[str]:
    """Names of the directories directly below ``path``, sorted."""
    with os.scandir(path) as entries:
        return sorted(entry.name for entry in entries if entry.is_dir())


def find_default_directory(path: PathLike) -> str:
    """Name of the only subdirectory of ``path``.

    Raises:
        CredentialsNotFoundError: No subdirectory (or ``path`` missing).
        AmbiguousCredentialsError: More than one subdirectory.
    """
    try:
        dirs = [d for d in get_subdirectories(path) if d not in MANAGEMENT_DIRS]
    except FileNotFoundError:
        dirs = []
    if not dirs:
        raise CredentialsNotFoundError(
            "no saved credentials found; please run 'credulous save' first"
        )
    if len(dirs) > 1:
        raise AmbiguousCredentialsError(
            "more than one account found; please specify account and user"
        )
    return dirs[0]


def latest_envelope(path: PathLike) -> str:
    """Lexicographically last entry of an identity directory.

    Raises:
        CredentialsNotFoundError: If the directory is empty or missing.
    """
    try:
        entries = sorted(os.listdir(path))
    except FileNotFoundError:
        entries = []
    if not entries:
        raise CredentialsNotFoundError(
            "no credentials have been saved for that user and account; "
            "please run 'credulous save' first"
        )
    return entries[-1]


def list_all(root: PathLike) -> list[str]:
    """Every ``identity@alias`` with at least one saved envelope, sorted.

    Raises:
        CredentialsNotFoundError: If the store holds no account directories.
    """
    root = Path(root)
    try:
        aliases = [d for d in get_subdirectories(root) if d not in MANAGEMENT_DIRS]
    except FileNotFoundError:
        aliases = []
    if not aliases:
        raise CredentialsNotFoundError(
            "no saved credentials found; please run 'credulous save' first"
        )
    names = set()
    for alias in aliases:
        for identity in get_subdirectories(root / alias):
            if any((root / alias / identity).iterdir()):
                names.add(f"{identity}@{alias}")
    return sorted(names)


def envelope_filename(create_time: str, key_id: str) -> str:
    """``<epoch>-<key id suffix>.json``.

    The suffix drops the fixed 12-character key id prefix, keeping at least
    the last four characters for short ids.
    """
    suffix = key_id[KEY_ID_PREFIX:]
    if len(suffix) < MIN_SUFFIX:
        suffix = key_id[-MIN_SUFFIX:]
    return f"{create_time}-{suffix}.json"


def check_name(kind: str, name: str) -> None:
    """Reject names that would not be exactly one directory level."""
    if not name or name in (".", "..") or "/" in name or os.sep in name:
        raise PersistenceError(f"invalid {kind} for a credentials directory: {name!r}")


def envelope_directory(root: PathLike, creds: Credentials) -> Path:
    """``root/alias/identity``; both names must be single path components."""
    check_name("account alias", creds.account_alias_or_id)
    check_name("username", creds.iam_username)
    return Path(root) / creds.account_alias_or_id / creds.iam_username


def _make_private_dirs(root: Path, directory: Path) -> None:
    # every level below the root is created 0700, not only the leaf
    root.mkdir(mode=0o700, parents=True, exist_ok=True)
    current = root
    for part in directory.relative_to(root).parts:
        current = current / part
        current.mkdir(mode=0o700, exist_ok=True)


def save(creds: Credentials, root: PathLike, key_id: str) -> Path:
    """Write ``creds`` as a new envelope file below ``root``.

    Args:
        creds: Envelope to write.
        root: Store root directory.
        key_id: Live access key id, used for the file name suffix.

    Returns:
        Path of the written file.

    Raises:
        PersistenceError: If the alias or username is not a single path
            component, or the file exists already or cannot be written.
    """
    directory = envelope_directory(root, creds)
    path = directory / envelope_filename(creds.create_time, key_id)
    data = dump_credentials(creds)
    try:
        _make_private_dirs(Path(root), directory)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, "wb") as f:
            f.write(data)
    except FileExistsError as err:
        raise PersistenceError(f"credentials file already exists: {path}") from err
    except OSError as err:
        raise PersistenceError(f"cannot write credentials to {path}: {err}") from err
    logger.info("Saved credentials for %s to %s", creds.name, path)
    return path
