"""
Access Key Rotation — retire one live access key and issue its replacement.

Rotation talks only to the identity provider; saving the new key is up to
the caller. There is no persisted state and no rollback: if the victim key
is deleted and creating the replacement fails, the identity is left with one
key fewer and the operator has to intervene.

A single remaining key is never rotated: the whole operation is refused and
no replacement is created.

Security Note:
    Never log secret access keys. Key ids and statuses are safe.
"""
import logging
from typing import Optional

from .exceptions import RotationError
from .interfaces import KeyRotator, OneKeyDeleter
from .models import INACTIVE, AccessKey

logger = logging.getLogger("credulous.rotation")


def select_victim(keys: list[AccessKey]) -> Optional[AccessKey]:
    """Pick the key to delete.

    The first inactive key wins outright; otherwise the oldest key, with
    ties going to the first one listed.
    """
    oldest: Optional[AccessKey] = None
    for key in keys:
        if key.status == INACTIVE:
            return key
        if oldest is None or key.create_date < oldest.create_date:
            oldest = key
    return oldest


def delete_one_key(provider: OneKeyDeleter, username: str) -> AccessKey:
    """Delete the victim key of ``username``.

    Returns:
        The deleted key.

    Raises:
        RotationError: If only one key exists or no victim can be found.
        ProviderError: If listing or deleting fails.
    """
    keys = provider.get_all_access_keys(username)
    if len(keys) == 1:
        raise RotationError("only one key in the account; cannot delete")

    victim = select_victim(keys)
    if victim is None:
        raise RotationError(
            "cannot find oldest key for this account, will not rotate"
        )

    logger.info(
        "Deleting access key %s of %s (status=%s)",
        victim.key_id, username, victim.status,
    )
    provider.delete_access_key(victim)
    return victim


def rotate_access_key(provider: KeyRotator, username: str) -> AccessKey:
    """Delete the victim key of ``username`` and create a new one.

    Args:
        provider: Identity provider able to list, delete and create keys.
        username: Identity whose keys are rotated.

    Returns:
        The newly created key, including its secret.
    """
    logger.info("Starting access key rotation for %s", username)
    victim = delete_one_key(provider, username)
    try:
        new_key = provider.create_access_key(username)
    except Exception:
        logger.error(
            "Access key %s of %s was deleted but no replacement was created",
            victim.key_id, username,
        )
        raise
    logger.info(
        "Access key rotation complete for %s: %s replaced by %s",
        username, victim.key_id, new_key.key_id,
    )
    return new_key
