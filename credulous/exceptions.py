"""Credulous exceptions.

Every failure surfaced by the library derives from ``CredulousError`` so
callers (the CLI in particular) can report it with a single handler.
"""


class CredulousError(Exception):
    """Base exception for credulous errors."""


class CredentialsNotFoundError(CredulousError):
    """No saved credentials, no envelope, or no access keys."""


class NoMatchingKeyError(CredentialsNotFoundError):
    """No recipient slot in the envelope matches the private key."""


class AmbiguousCredentialsError(CredulousError):
    """More than one candidate directory; caller must be explicit."""


class ValidationFailedError(CredulousError):
    """Identity or account claims do not match the request or provider."""


class CryptoError(CredulousError):
    """Base class for cryptographic failures."""


class DecryptionError(CryptoError):
    """Ciphertext could not be decrypted (wrong key or corrupt data)."""


class KeyParseError(CryptoError):
    """Private or public key could not be loaded."""


class EnvelopeFormatError(CryptoError):
    """Envelope document is malformed or of an unknown format version."""


class ProviderError(CredulousError):
    """An identity-provider call failed."""


class RotationError(ProviderError):
    """Access key rotation was refused or could not pick a victim."""


class PersistenceError(CredulousError):
    """Writing an envelope or committing it to the change-log failed."""
