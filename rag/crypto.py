"""
AES-256-GCM for chunk text at rest.

Storage format:
  text     = base64(ciphertext || 16-byte tag)
  metadata = enc="aesgcm", enc_iv=base64(12-byte IV), enc_v=1
"""
import base64
import binascii
import logging
import os
from typing import NamedTuple, Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

logger = logging.getLogger(__name__)

ENC_SCHEME  = "aesgcm"
ENC_VERSION = 1
KEY_BYTES   = 32
IV_BYTES    = 12
KEY_ENV_VAR = "VECTORSTORE_ENC_KEY"


class InvalidKey(ValueError):
    pass


class AuthenticationFailure(Exception):
    pass


class EncResult(NamedTuple):
    iv_b64: str
    cipher_b64: str


class CryptoService:
    def __init__(self, key: bytes):
        if not isinstance(key, (bytes, bytearray)) or len(key) != KEY_BYTES:
            raise InvalidKey("AES-256 key must be 32 bytes")
        self._aead = AESGCM(bytes(key))

    def encrypt(self, plaintext: str) -> EncResult:
        iv = os.urandom(IV_BYTES)
        ct = self._aead.encrypt(iv, plaintext.encode("utf-8"), None)
        return EncResult(
            base64.b64encode(iv).decode("ascii"),
            base64.b64encode(ct).decode("ascii"),
        )

    def decrypt(self, iv_b64: str, cipher_b64: str) -> str:
        try:
            iv = base64.b64decode(iv_b64, validate=True)
            ct = base64.b64decode(cipher_b64, validate=True)
            if len(iv) != IV_BYTES:
                raise AuthenticationFailure(f"IV must be {IV_BYTES} bytes")
            return self._aead.decrypt(iv, ct, None).decode("utf-8")
        except AuthenticationFailure:
            raise
        except (InvalidTag, binascii.Error, ValueError, TypeError) as exc:
            raise AuthenticationFailure("Decrypt failed") from exc


# ───────── key resolution: settings → env → nothing ─────────
def resolve_key_material() -> Optional[str]:
    configured = settings.RAG.get("ENCRYPTION_KEY_BASE64")
    if configured and configured.strip():
        return configured.strip()
    from_env = os.getenv(KEY_ENV_VAR)
    if from_env and from_env.strip():
        return from_env.strip()
    return None


def codec_from_settings(required: bool = True) -> Optional[CryptoService]:
    """Build the codec from configured key material.

    With ``required`` a missing or malformed key aborts with
    ImproperlyConfigured; otherwise a missing key yields None.
    """
    key_b64 = resolve_key_material()
    if key_b64 is None:
        if required:
            raise ImproperlyConfigured(
                f"Encryption is enabled but no key was found in "
                f"RAG['ENCRYPTION_KEY_BASE64'] or {KEY_ENV_VAR}"
            )
        return None
    try:
        return CryptoService(base64.b64decode(key_b64, validate=True))
    except (binascii.Error, InvalidKey) as exc:
        if required:
            raise ImproperlyConfigured(f"Invalid encryption key: {exc}") from exc
        logger.warning("Ignoring invalid encryption key: %s", exc)
        return None
