"""
Credulous Crypto Core — Hybrid envelope encryption, fingerprints and key loading.

Implements the per-recipient encryption used by credential envelopes:
- Symmetric layer: random 256-bit key → AES-CFB → base64([iv | ciphertext])
- Key layer: RSA-OAEP(SHA-1, label "Credulous") of the symmetric key
- Wrapper: base64(JSON {"EncodedKey": ..., "Ciphertext": ...})

Recipients are identified by the MD5 fingerprint of their SSH public key.

Security Note:
    Never log plaintext, ciphertext or key material. Fingerprints are safe.
"""
import os
import base64
import binascii
import hashlib
import logging
import secrets
from typing import Optional, Union

import orjson
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import padding, rsa
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms

try:
    from cryptography.hazmat.decrepit.ciphers.modes import CFB
except ImportError:
    # releases that still ship CFB with the primitives
    from cryptography.hazmat.primitives.ciphers.modes import CFB

from .exceptions import DecryptionError, KeyParseError
from .prompt import SecretPrompt, console_prompt

logger = logging.getLogger("credulous.crypto")

SALT_LENGTH = 8
KEY_LENGTH = 32  # AES-256
BLOCK_SIZE = 16  # AES block, IV length
OAEP_LABEL = b"Credulous"


def _oaep() -> padding.OAEP:
    return padding.OAEP(
        mgf=padding.MGF1(algorithm=hashes.SHA1()),
        algorithm=hashes.SHA1(),
        label=OAEP_LABEL,
    )


def _b64decode(data: str) -> bytes:
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError, TypeError) as err:
        raise DecryptionError(f"malformed base64 payload: {err}") from err


def _rsa_decrypt(ciphertext: bytes, private_key: rsa.RSAPrivateKey) -> bytes:
    try:
        return private_key.decrypt(ciphertext, _oaep())
    except ValueError as err:
        # OAEP padding mismatch: almost always the wrong private key
        raise DecryptionError("RSA decryption failed; wrong key?") from err


def _to_text(data: bytes) -> str:
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise DecryptionError("decrypted payload is not valid UTF-8") from err


# ---------------------------------------------------------------------------
# Salt (legacy format only)
# ---------------------------------------------------------------------------

def generate_salt() -> str:
    """Return 8 random bytes, base64-encoded."""
    return base64.b64encode(secrets.token_bytes(SALT_LENGTH)).decode("ascii")


# ---------------------------------------------------------------------------
# Symmetric layer
# ---------------------------------------------------------------------------

def encode_aes(key: bytes, plaintext: bytes) -> str:
    """AES-CFB encrypt with a random IV prepended; returns base64."""
    iv = os.urandom(BLOCK_SIZE)
    encryptor = Cipher(algorithms.AES(key), CFB(iv)).encryptor()
    out = iv + encryptor.update(plaintext) + encryptor.finalize()
    return base64.b64encode(out).decode("ascii")


def decode_aes_payload(key: bytes, ciphertext: str) -> bytes:
    """Inverse of :func:`encode_aes`."""
    encrypted = _b64decode(ciphertext)
    if len(encrypted) < BLOCK_SIZE:
        raise DecryptionError(
            f"ciphertext too short: {len(encrypted)} bytes (minimum {BLOCK_SIZE})"
        )
    iv, msg = encrypted[:BLOCK_SIZE], encrypted[BLOCK_SIZE:]
    try:
        decryptor = Cipher(algorithms.AES(key), CFB(iv)).decryptor()
    except ValueError as err:
        raise DecryptionError(f"invalid symmetric key: {err}") from err
    return decryptor.update(msg) + decryptor.finalize()


# ---------------------------------------------------------------------------
# Hybrid envelope
# ---------------------------------------------------------------------------

def encode(plaintext: Union[str, bytes], public_key: rsa.RSAPublicKey) -> str:
    """Encrypt ``plaintext`` for one recipient.

    Only the 32-byte symmetric key goes through RSA-OAEP, so plaintext
    length is unbounded.

    Args:
        plaintext: Data to encrypt.
        public_key: Recipient RSA public key.

    Returns:
        base64 of the JSON wrapper ``{"EncodedKey", "Ciphertext"}``.
    """
    if isinstance(plaintext, str):
        plaintext = plaintext.encode("utf-8")
    sym_key = secrets.token_bytes(KEY_LENGTH)
    encoded = encode_aes(sym_key, plaintext)
    cipher_key = public_key.encrypt(sym_key, _oaep())
    wrapper = {
        "EncodedKey": base64.b64encode(cipher_key).decode("ascii"),
        "Ciphertext": encoded,
    }
    return base64.b64encode(orjson.dumps(wrapper)).decode("ascii")


def decode_aes(ciphertext: str, private_key: rsa.RSAPrivateKey) -> str:
    """Decrypt a hybrid ciphertext produced by :func:`encode`.

    Raises:
        DecryptionError: On malformed base64/JSON or an OAEP mismatch.
    """
    try:
        wrapper = orjson.loads(_b64decode(ciphertext))
        encoded_key = wrapper["EncodedKey"]
        payload = wrapper["Ciphertext"]
    except (orjson.JSONDecodeError, KeyError, TypeError) as err:
        raise DecryptionError("malformed hybrid ciphertext wrapper") from err
    sym_key = _rsa_decrypt(_b64decode(encoded_key), private_key)
    return _to_text(decode_aes_payload(sym_key, payload))


def decode_pure_rsa(ciphertext: str, private_key: rsa.RSAPrivateKey) -> str:
    """Legacy single-stage RSA-OAEP decode."""
    return _to_text(_rsa_decrypt(_b64decode(ciphertext), private_key))


def decode_with_salt(
    ciphertext: str, salt: str, private_key: rsa.RSAPrivateKey
) -> str:
    """Legacy salted decode: strips the first occurrence of ``salt``."""
    return decode_pure_rsa(ciphertext, private_key).replace(salt, "", 1)


# ---------------------------------------------------------------------------
# Fingerprints
# ---------------------------------------------------------------------------

def ssh_wire_encoding(public_key: rsa.RSAPublicKey) -> bytes:
    """SSH wire-format blob of a public key (the base64 part of authorized_keys)."""
    openssh = public_key.public_bytes(
        serialization.Encoding.OpenSSH,
        serialization.PublicFormat.OpenSSH,
    )
    return base64.b64decode(openssh.split()[1])


def ssh_fingerprint(public_key: rsa.RSAPublicKey) -> str:
    """MD5 of the wire encoding as colon-separated lowercase hex."""
    digest = hashlib.md5(ssh_wire_encoding(public_key)).digest()
    return ":".join(f"{b:02x}" for b in digest)


def ssh_private_fingerprint(private_key: rsa.RSAPrivateKey) -> str:
    """Fingerprint of the public half of ``private_key``."""
    return ssh_fingerprint(private_key.public_key())


# ---------------------------------------------------------------------------
# Key loading
# ---------------------------------------------------------------------------

def load_public_key(data: bytes) -> rsa.RSAPublicKey:
    """Load an ``ssh-rsa AAAA... comment`` public key line.

    Raises:
        KeyParseError: If the data is not an RSA SSH public key.
    """
    try:
        key = serialization.load_ssh_public_key(data.strip())
    except (ValueError, UnsupportedAlgorithm) as err:
        raise KeyParseError(f"cannot parse SSH public key: {err}") from err
    if not isinstance(key, rsa.RSAPublicKey):
        raise KeyParseError("only RSA public keys are supported")
    return key


def _is_encrypted(raw: bytes) -> bool:
    return (
        b"Proc-Type: 4,ENCRYPTED" in raw
        or b"BEGIN ENCRYPTED PRIVATE KEY" in raw
    )


def _load_private(raw: bytes, password: Optional[bytes]):
    if b"BEGIN OPENSSH PRIVATE KEY" in raw:
        return serialization.load_ssh_private_key(raw, password=password)
    return serialization.load_pem_private_key(raw, password=password)


def parse_key(
    raw: bytes,
    name: str,
    prompt: Optional[SecretPrompt] = None,
) -> rsa.RSAPrivateKey:
    """Load an RSA private key, asking for a passphrase when it is encrypted.

    Args:
        raw: PEM (or OpenSSH) encoded private key.
        name: Display name for the prompt, usually the key file path.
        prompt: Passphrase prompt; defaults to a no-echo console prompt.

    Returns:
        The RSA private key.

    Raises:
        KeyParseError: If the key is not RSA, is corrupt, or the passphrase
            is wrong.
    """
    prompt = prompt or console_prompt
    password = None
    if _is_encrypted(raw):
        password = prompt(f"Enter passphrase for {name}: ").encode("utf-8")
    try:
        try:
            key = _load_private(raw, password)
        except TypeError:
            # OpenSSH keys only reveal encryption when loaded
            if password is not None:
                raise
            password = prompt(f"Enter passphrase for {name}: ").encode("utf-8")
            key = _load_private(raw, password)
    except (ValueError, TypeError, UnsupportedAlgorithm) as err:
        raise KeyParseError(f"cannot load private key {name}: {err}") from err
    if password is None:
        logger.warning("Your private SSH key has no passphrase!")
    if not isinstance(key, rsa.RSAPrivateKey):
        raise KeyParseError(f"{name} is not an RSA private key")
    return key
