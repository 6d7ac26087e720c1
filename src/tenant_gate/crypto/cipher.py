"""
tenant_gate.crypto.cipher

Tenant-scoped authenticated encryption for stored secrets (AES-256-GCM).

Responsibilities:
- Refuse to start with a weak master key.
- Derive a per-tenant key (PBKDF2-HMAC-SHA256, 100k iterations) bound to a random salt.
- Encrypt with a fresh salt and IV on every call; decrypt fail-closed.
- Offer thread-offloaded variants so key stretching never blocks the event loop.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Mapping
from dataclasses import dataclass

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from tenant_gate.errors import AuthenticationFailed, WeakMasterKey
from tenant_gate.observability.logging import get_logger
from tenant_gate.settings import Settings

log = get_logger(__name__)

MIN_MASTER_KEY_LENGTH = 32
KEY_LENGTH = 32
IV_LENGTH = 16
SALT_LENGTH = 32
TAG_LENGTH = 16
KDF_ITERATIONS = 100_000

_RECORD_FIELDS = ("ciphertext", "iv", "auth_tag", "salt")


@dataclass(frozen=True, slots=True)
class EncryptedSecret:
    ciphertext: bytes
    iv: bytes
    auth_tag: bytes
    salt: bytes

    def to_record(self) -> dict[str, str]:
        return {name: getattr(self, name).hex() for name in _RECORD_FIELDS}

    @classmethod
    def from_record(cls, record: Mapping[str, str]) -> EncryptedSecret:
        missing = [name for name in _RECORD_FIELDS if name not in record]
        if missing:
            raise ValueError(f"Encrypted secret record is missing: {', '.join(missing)}")
        return cls(**{name: bytes.fromhex(record[name]) for name in _RECORD_FIELDS})


def _tenant_label(tenant_id: str) -> bytes:
    return f"tenant-gate:{tenant_id}:".encode()


class SecretCipher:
    def __init__(self, master_key: str | None) -> None:
        if not master_key or len(master_key) < MIN_MASTER_KEY_LENGTH:
            raise WeakMasterKey()
        self._master = master_key.encode()

    @classmethod
    def from_settings(cls, settings: Settings) -> SecretCipher:
        return cls(settings.encryption_master_key)

    def encrypt(self, plaintext: str, tenant_id: str | None = None) -> EncryptedSecret:
        salt = os.urandom(SALT_LENGTH)
        iv = os.urandom(IV_LENGTH)
        key = self._key_for(tenant_id, salt)
        sealed = AESGCM(key).encrypt(iv, plaintext.encode("utf-8"), self._aad(tenant_id))
        # AESGCM appends the 16-byte tag to the ciphertext.
        return EncryptedSecret(
            ciphertext=sealed[:-TAG_LENGTH],
            iv=iv,
            auth_tag=sealed[-TAG_LENGTH:],
            salt=salt,
        )

    def decrypt(self, secret: EncryptedSecret, tenant_id: str | None = None) -> str:
        try:
            if (
                len(secret.iv) != IV_LENGTH
                or len(secret.salt) != SALT_LENGTH
                or len(secret.auth_tag) != TAG_LENGTH
            ):
                raise InvalidTag()
            key = self._key_for(tenant_id, secret.salt)
            plaintext = AESGCM(key).decrypt(
                secret.iv, secret.ciphertext + secret.auth_tag, self._aad(tenant_id)
            )
            return plaintext.decode("utf-8")
        except (InvalidTag, ValueError, TypeError) as e:
            # Wrong tenant scope and tampered data raise the same error.
            correlation_id = uuid.uuid4().hex
            log.warning(
                "secret_decrypt_failed",
                kind=type(e).__name__,
                correlation_id=correlation_id,
            )
            raise AuthenticationFailed(correlation_id) from None

    async def encrypt_async(self, plaintext: str, tenant_id: str | None = None) -> EncryptedSecret:
        return await asyncio.to_thread(self.encrypt, plaintext, tenant_id)

    async def decrypt_async(self, secret: EncryptedSecret, tenant_id: str | None = None) -> str:
        return await asyncio.to_thread(self.decrypt, secret, tenant_id)

    def _key_for(self, tenant_id: str | None, salt: bytes) -> bytes:
        if tenant_id:
            return self._tenant_key(tenant_id, salt)
        digest = hashes.Hash(hashes.SHA256())
        digest.update(self._master)
        return digest.finalize()

    def _tenant_key(self, tenant_id: str, salt: bytes) -> bytes:
        kdf = PBKDF2HMAC(
            algorithm=hashes.SHA256(),
            length=KEY_LENGTH,
            salt=_tenant_label(tenant_id) + salt,
            iterations=KDF_ITERATIONS,
        )
        return kdf.derive(self._master)

    @staticmethod
    def _aad(tenant_id: str | None) -> bytes | None:
        return _tenant_label(tenant_id) if tenant_id else None


def generate_master_key() -> str:
    return os.urandom(KEY_LENGTH).hex()


# --- Module Notes -----------------------------------------------------------
# Records persist as four hex fields (`EncryptedSecret.to_record`). Re-encrypting a
# value always yields a new salt/iv/tag set; stored records are replaced, never patched.
