"""
Symmetric envelope codec for platforms that encrypt request/response bodies.

Rijndael with a 128-bit block (AES) in ECB mode, PKCS7 padding, base64 on the
wire. The key is the UTF-8 encoding of the secret the platform issues; a
32-character secret selects AES-256. The envelope is ``{"value": <base64>}``.
"""
import base64
import binascii
import json
import logging
from typing import Any, Dict, Union

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from platform_sync.core.exceptions import DecodeError, PayloadCipherError

logger = logging.getLogger(__name__)

ENVELOPE_FIELD = "value"
BLOCK_SIZE_BITS = 128
VALID_KEY_LENGTHS = (16, 24, 32)


def _key_bytes(secret: str) -> bytes:
    key = (secret or "").encode("utf-8")
    if len(key) not in VALID_KEY_LENGTHS:
        raise ValueError(
            f"Secret must be 16, 24 or 32 bytes long, got {len(key)}"
        )
    return key


def _cipher(secret: str) -> Cipher:
    return Cipher(algorithms.AES(_key_bytes(secret)), modes.ECB())


def encrypt(plaintext: str, secret: str) -> str:
    """Encrypt a text payload and return base64 ciphertext."""
    try:
        padder = padding.PKCS7(BLOCK_SIZE_BITS).padder()
        padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
        encryptor = _cipher(secret).encryptor()
        ciphertext = encryptor.update(padded) + encryptor.finalize()
    except ValueError as e:
        raise PayloadCipherError(f"Encryption failed: {e}")
    return base64.b64encode(ciphertext).decode("ascii")


def decrypt(ciphertext: str, secret: str) -> str:
    """Decrypt base64 ciphertext back to text; any failure is a DecodeError."""
    try:
        raw = base64.b64decode(ciphertext, validate=True)
        decryptor = _cipher(secret).decryptor()
        padded = decryptor.update(raw) + decryptor.finalize()
        unpadder = padding.PKCS7(BLOCK_SIZE_BITS).unpadder()
        plaintext = unpadder.update(padded) + unpadder.finalize()
        return plaintext.decode("utf-8")
    except (binascii.Error, ValueError, TypeError) as e:
        # UnicodeDecodeError is a ValueError
        raise DecodeError(f"Could not decrypt payload: {e}")


def encode(payload: Union[str, Dict[str, Any], list], secret: str) -> Dict[str, str]:
    """
    Wrap a payload in an encrypted envelope.

    Strings are encrypted as-is; anything else is JSON-serialised first.
    """
    if isinstance(payload, str):
        text = payload
    else:
        try:
            text = json.dumps(payload, ensure_ascii=False, default=str)
        except (TypeError, ValueError) as e:
            raise PayloadCipherError(f"Payload is not JSON serialisable: {e}")
    return {ENVELOPE_FIELD: encrypt(text, secret)}


def decode(envelope: Union[str, Dict[str, Any]], secret: str) -> str:
    """Open an envelope (or a bare ciphertext string) and return the plaintext."""
    if isinstance(envelope, dict):
        ciphertext = envelope.get(ENVELOPE_FIELD)
    else:
        ciphertext = envelope
    if not isinstance(ciphertext, str) or not ciphertext:
        raise DecodeError("Envelope has no ciphertext value")
    return decrypt(ciphertext, secret)


def decode_json(envelope: Union[str, Dict[str, Any]], secret: str) -> Any:
    """Open an envelope and parse its plaintext as JSON."""
    plaintext = decode(envelope, secret)
    try:
        return json.loads(plaintext)
    except ValueError as e:
        raise DecodeError(f"Decrypted payload is not valid JSON: {e}")


def is_envelope(body: Any) -> bool:
    """True for ``{"value": "<ciphertext>"}`` and nothing else."""
    return (
        isinstance(body, dict)
        and set(body.keys()) == {ENVELOPE_FIELD}
        and isinstance(body[ENVELOPE_FIELD], str)
    )
