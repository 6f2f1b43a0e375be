"""Credulous — cloud access credentials encrypted for SSH key holders.

Security Note (Threat Model):
    Credentials are decrypted in process memory only for the lifetime of a
    single command. Envelope files are written 0600 inside 0700 directories;
    anyone able to read them still needs a recipient's RSA private key.
    The store has no locking: concurrent saves for the same identity within
    the same second and key id can collide on one file name.
"""

from .version import __version__
from .vault import CredentialVault, format_exports
from .rotation import rotate_access_key, select_victim
from .validation import validate_credentials
from .config import CredulousConfig
from .models import (
    AccessKey,
    Credential,
    Credentials,
    Encryption,
    RetrieveRequest,
    SaveRequest,
)

__all__ = [
    "__version__",
    "CredentialVault",
    "format_exports",
    "rotate_access_key",
    "select_victim",
    "validate_credentials",
    "CredulousConfig",
    "AccessKey",
    "Credential",
    "Credentials",
    "Encryption",
    "RetrieveRequest",
    "SaveRequest",
]
