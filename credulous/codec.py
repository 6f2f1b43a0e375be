"""
Envelope codec — reading and writing credential envelope documents.

Decoding is dispatched through a registry keyed by the envelope's format
version. Each registered decoder turns one recipient slot into a
:class:`~credulous.models.Credential`; adding a format means registering a
new decoder, nothing else changes.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any

import orjson
from pydantic import ValidationError
from cryptography.hazmat.primitives.asymmetric import rsa

from . import crypto
from .exceptions import DecryptionError, EnvelopeFormatError, NoMatchingKeyError
from .models import (
    FORMAT_VERSION,
    PURE_RSA_VERSION,
    SALTED_VERSION,
    Credential,
    Credentials,
    OldCredentials,
)

logger = logging.getLogger("credulous.codec")


class EnvelopeDecoder(ABC):
    """Decodes one recipient slot of a given format version."""

    version: str

    @abstractmethod
    def decode(
        self,
        ciphertext: str,
        private_key: rsa.RSAPrivateKey,
        document: dict[str, Any],
    ) -> Credential:
        """Return the plaintext credential held in ``ciphertext``.

        ``document`` is the raw parsed file, for formats that keep
        decoding inputs outside the recipient slot.
        """


_DECODERS: dict[str, EnvelopeDecoder] = {}


def register_decoder(cls: type[EnvelopeDecoder]) -> type[EnvelopeDecoder]:
    """Class decorator adding a decoder to the registry."""
    _DECODERS[cls.version] = cls()
    return cls


def get_decoder(version: str) -> EnvelopeDecoder:
    try:
        return _DECODERS[version]
    except KeyError:
        raise EnvelopeFormatError(
            f"unsupported credentials format version: {version!r}"
        ) from None


def _parse_credential(plaintext: str) -> Credential:
    try:
        return Credential.model_validate_json(plaintext)
    except ValidationError as err:
        raise DecryptionError("decrypted payload is not a credential") from err


@register_decoder
class AESDecoder(EnvelopeDecoder):
    """Current hybrid RSA-OAEP + AES-CFB format."""

    version = FORMAT_VERSION

    def decode(self, ciphertext, private_key, document):
        return _parse_credential(crypto.decode_aes(ciphertext, private_key))


@register_decoder
class PureRSADecoder(EnvelopeDecoder):
    """Single-stage RSA-OAEP of the JSON credential."""

    version = PURE_RSA_VERSION

    def decode(self, ciphertext, private_key, document):
        return _parse_credential(crypto.decode_pure_rsa(ciphertext, private_key))


@register_decoder
class SaltedRSADecoder(EnvelopeDecoder):
    """Flat pre-versioned documents: salted RSA secret, key id in clear."""

    version = SALTED_VERSION

    def decode(self, ciphertext, private_key, document):
        secret = crypto.decode_with_salt(ciphertext, document["Salt"], private_key)
        return Credential(key_id=document["KeyId"], secret_key=secret)


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def _load_document(data: bytes) -> dict[str, Any]:
    try:
        document = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise EnvelopeFormatError(f"credentials file is not valid JSON: {err}") from err
    if not isinstance(document, dict):
        raise EnvelopeFormatError("credentials file is not a JSON object")
    return document


def parse_credentials(data: bytes) -> tuple[Credentials, dict[str, Any]]:
    """Parse an envelope file without decrypting anything.

    Returns:
        The envelope and the raw parsed document.
    """
    document = _load_document(data)
    try:
        if "Version" not in document and "Salt" in document:
            creds = OldCredentials.model_validate(document).to_credentials()
        else:
            creds = Credentials.model_validate(document)
    except ValidationError as err:
        raise EnvelopeFormatError(f"invalid credentials document: {err}") from err
    return creds, document


def find_encryption(creds: Credentials, fingerprint: str) -> int:
    """Index of the first slot encrypted for ``fingerprint``.

    Raises:
        NoMatchingKeyError: If no slot matches.
    """
    for offset, enc in enumerate(creds.encryptions):
        if enc.fingerprint == fingerprint:
            return offset
    raise NoMatchingKeyError(
        "the SSH key specified cannot decrypt those credentials"
    )


def read_credentials(
    data: bytes,
    fingerprint: str,
    private_key: rsa.RSAPrivateKey,
) -> Credentials:
    """Parse an envelope and decrypt the slot matching ``fingerprint``.

    The decoded credential is attached to the matched slot only; every other
    slot keeps ``decoded=None``.

    Args:
        data: Raw envelope file contents.
        fingerprint: Fingerprint of ``private_key``.
        private_key: Requester's RSA private key.

    Returns:
        The envelope with the matched slot's ``decoded`` populated.
    """
    creds, document = parse_credentials(data)
    offset = find_encryption(creds, fingerprint)
    decoder = get_decoder(creds.version)
    enc = creds.encryptions[offset]
    enc.decoded = decoder.decode(enc.ciphertext, private_key, document)
    logger.debug(
        "Decrypted %s (format %r) with slot %d", creds.name, creds.version, offset,
    )
    return creds


# ---------------------------------------------------------------------------
# Writing
# ---------------------------------------------------------------------------

def dump_credential(cred: Credential) -> bytes:
    """Serialize a plaintext credential for encryption."""
    return orjson.dumps(cred.model_dump(by_alias=True))


def dump_credentials(creds: Credentials) -> bytes:
    """Serialize an envelope for writing to disk."""
    return orjson.dumps(creds.model_dump(by_alias=True))
