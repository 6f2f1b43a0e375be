"""Cross-check a decrypted envelope's claims against the request and provider."""
import logging

from .exceptions import ProviderError, ValidationFailedError
from .interfaces import AliasGetter, UsernameAliasGetter, UsernameGetter
from .models import Credentials

logger = logging.getLogger("credulous.validation")


def get_username_and_alias(provider: UsernameAliasGetter) -> tuple[str, str]:
    """Identity and account alias of the currently loaded credentials."""
    return provider.get_username(), provider.get_alias()


def verify_account(provider: AliasGetter, alias: str) -> None:
    """Fail unless the provider's current account alias is ``alias``."""
    if provider.get_alias() != alias:
        raise ValidationFailedError(
            f"cannot verify account, does not match alias: {alias}"
        )


def verify_user(provider: UsernameGetter, username: str) -> None:
    """Fail unless the provider's current identity is ``username``."""
    try:
        name = provider.get_username()
    except ProviderError as err:
        raise ValidationFailedError(
            f"cannot verify user {username!r}: {err}"
        ) from err
    if name != username:
        raise ValidationFailedError(
            f"cannot verify user, does not match access keys: {username}"
        )


def validate_credentials(
    creds: Credentials,
    alias: str,
    username: str,
    provider: UsernameAliasGetter,
) -> None:
    """Check that ``creds`` belong to ``username@alias`` and to the live account.

    The account's root identity has no login name of its own; its envelopes
    carry the alias as identity and are verified against an empty username.

    Raises:
        ValidationFailedError: On any mismatch.
        ProviderError: If the account alias cannot be fetched.
    """
    if creds.iam_username != username:
        raise ValidationFailedError(
            "username in credential does not match requested username"
        )
    if creds.account_alias_or_id != alias:
        raise ValidationFailedError(
            "account alias in credential does not match requested alias"
        )
    verify_account(provider, creds.account_alias_or_id)
    if creds.iam_username == creds.account_alias_or_id:
        verify_user(provider, "")
    else:
        verify_user(provider, creds.iam_username)
    logger.debug("Validated credentials for %s", creds.name)
