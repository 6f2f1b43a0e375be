"""
CredentialVault — save, retrieve, list and rotate stored credentials.

Provides the public API tying the crypto core, the envelope codec and the
directory store to the identity provider and change-log collaborators:
- ``save(request)`` — encrypt a credential for every recipient and store it
- ``retrieve(request)`` — locate, decrypt and validate the latest envelope
- ``list_credentials(repo)`` — every saved ``identity@alias``
- ``current()`` — ``identity@alias`` of the loaded credentials
- ``rotate(...)`` — replace a live access key and save the new one

Security Note:
    Never log plaintext or ciphertext values. Only log identities, aliases,
    fingerprints and file names.
"""
import time
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from cryptography.hazmat.primitives.asymmetric import rsa

from . import crypto, store
from .codec import dump_credential, read_credentials
from .exceptions import CredulousError, KeyParseError, PersistenceError
from .interfaces import AccountInformer, ChangeLog
from .models import (
    FORMAT_VERSION,
    Credential,
    Credentials,
    Encryption,
    RepoConfig,
    RetrieveRequest,
    SaveRequest,
)
from .prompt import SecretPrompt
from .rotation import rotate_access_key
from .validation import get_username_and_alias, validate_credentials

logger = logging.getLogger("credulous.vault")

COMMIT_MESSAGE = "Added by Credulous"


def format_exports(creds: Credentials) -> str:
    """Shell ``export`` statements for the decrypted credential."""
    cred = creds.decoded
    if cred is None:
        raise CredulousError("credentials have not been decrypted")
    lines = [
        f'export AWS_ACCESS_KEY_ID="{cred.key_id}"',
        f'export AWS_SECRET_ACCESS_KEY="{cred.secret_key}"',
    ]
    for key, val in (cred.env_vars or {}).items():
        lines.append(f'export {key}="{val}"')
    return "\n".join(lines) + "\n"


def encrypt_credentials(
    cred: Credential,
    public_keys: list[rsa.RSAPublicKey],
    username: str,
    alias: str,
    create_time: int,
    lifetime: int = 0,
) -> Credentials:
    """Build an envelope with one slot per recipient public key."""
    plaintext = dump_credential(cred)
    encryptions = [
        Encryption(
            fingerprint=crypto.ssh_fingerprint(pubkey),
            ciphertext=crypto.encode(plaintext, pubkey),
        )
        for pubkey in public_keys
    ]
    return Credentials(
        version=FORMAT_VERSION,
        iam_username=username,
        account_alias_or_id=alias,
        create_time=str(create_time),
        life_time=lifetime,
        encryptions=encryptions,
    )


class CredentialVault:
    """Credential store bound to an identity provider.

    Args:
        provider: Identity provider (see :mod:`credulous.interfaces`).
        changelog: Optional change-log store; saves into a managed store root
            are committed.
        prompt: Passphrase prompt for encrypted private keys.
    """

    def __init__(
        self,
        provider: AccountInformer,
        changelog: Optional[ChangeLog] = None,
        prompt: Optional[SecretPrompt] = None,
    ):
        self._provider = provider
        self._changelog = changelog
        self._prompt = prompt

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _key_create_time(self, request: SaveRequest) -> int:
        if request.create_time is not None:
            return int(request.create_time.timestamp())
        if request.force:
            return int(time.time())
        # root envelopes carry the alias as identity; IAM knows root unnamed
        username = "" if request.username == request.alias else request.username
        created: datetime = self._provider.get_key_creation_date(username)
        return int(created.timestamp())

    def _store_creds(self, repo: str, username: str, relpath: str) -> Optional[str]:
        """Commit ``relpath`` if ``repo`` is a managed store."""
        if self._changelog is None or not self._changelog.is_managed_store(repo):
            logger.debug("%s is not a managed store; skipping commit", repo)
            return None
        return self._changelog.commit(
            repo, relpath, COMMIT_MESSAGE, RepoConfig(name=username),
        )

    def load_private_key(self, keyfile: str) -> rsa.RSAPrivateKey:
        try:
            raw = Path(keyfile).read_bytes()
        except OSError as err:
            raise KeyParseError(f"cannot read private key {keyfile}: {err}") from err
        return crypto.parse_key(raw, keyfile, self._prompt)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def current(self) -> str:
        """``identity@alias`` of the credentials loaded in the provider."""
        username, alias = get_username_and_alias(self._provider)
        return f"{username}@{alias}"

    def save(self, request: SaveRequest) -> Path:
        """Encrypt ``request.credential`` for every recipient and store it.

        Unless forced, a missing identity or alias is taken from the provider
        and the envelope's creation time is the creation time of the access
        key in use.

        Returns:
            Path of the new envelope file.

        Raises:
            CredulousError: On invalid requests.
            ProviderError: If the provider cannot be queried.
            PersistenceError: If writing or committing fails.
        """
        if not request.public_keys:
            raise CredulousError("at least one public key is required to save")
        if request.force:
            if not request.username or not request.alias:
                raise CredulousError(
                    "must specify both username and account with force"
                )
            logger.warning(
                "Saving credentials without verifying username or account alias"
            )
        else:
            if not request.alias:
                request.alias = self._provider.get_alias()
            if not request.username:
                # the account root has no user name of its own
                request.username = self._provider.get_username() or request.alias

        create_time = self._key_create_time(request)
        logger.info("Saving credentials for %s@%s", request.username, request.alias)
        creds = encrypt_credentials(
            request.credential,
            request.public_keys,
            request.username,
            request.alias,
            create_time,
            request.lifetime,
        )
        path = store.save(creds, request.repo, request.credential.key_id)
        relpath = str(path.relative_to(request.repo))
        self._store_creds(request.repo, request.username, relpath)
        return path

    def retrieve(self, request: RetrieveRequest) -> Credentials:
        """Decrypt the latest envelope for ``request`` and validate it.

        An omitted alias or identity defaults to the only directory present.
        Validation against the provider is skipped when ``request.force``.

        Returns:
            The envelope with the requester's slot decrypted.
        """
        repo = Path(request.repo)
        alias = request.alias or store.find_default_directory(repo)
        username = request.username or store.find_default_directory(repo / alias)
        full_path = repo / alias / username

        latest = store.latest_envelope(full_path)
        private_key = self.load_private_key(request.keyfile)
        fingerprint = crypto.ssh_private_fingerprint(private_key)
        try:
            data = (full_path / latest).read_bytes()
        except OSError as err:
            raise PersistenceError(f"cannot read {full_path / latest}: {err}") from err

        creds = read_credentials(data, fingerprint, private_key)
        if not request.force:
            validate_credentials(creds, alias, username, self._provider)
        logger.info("Retrieved credentials %s from %s", creds.name, latest)
        return creds

    def list_credentials(self, repo: Any) -> list[str]:
        """Every ``identity@alias`` with saved credentials in ``repo``."""
        return store.list_all(repo)

    def rotate(
        self,
        repo: str,
        public_keys: list[rsa.RSAPublicKey],
        lifetime: int = 0,
        env_vars: Optional[dict[str, str]] = None,
    ) -> Path:
        """Replace a live access key of the current identity and save the new one.

        If the victim key is deleted but the new key cannot be created, the
        error propagates and nothing is saved; see :mod:`credulous.rotation`.

        Returns:
            Path of the envelope holding the new key.
        """
        username, alias = get_username_and_alias(self._provider)
        new_key = rotate_access_key(self._provider, username)
        request = SaveRequest(
            credential=Credential(
                key_id=new_key.key_id,
                secret_key=new_key.secret or "",
                env_vars=env_vars,
            ),
            username=username or alias,
            alias=alias,
            public_keys=public_keys,
            lifetime=lifetime,
            repo=repo,
            create_time=new_key.create_date,
        )
        return self.save(request)
