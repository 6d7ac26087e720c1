"""
tests.test_cipher

Tenant-scoped secret encryption: key policy, isolation and tamper detection.
"""

from __future__ import annotations

import hashlib

import pytest
from conftest import MASTER_KEY

from tenant_gate.crypto.cipher import (
    IV_LENGTH,
    SALT_LENGTH,
    TAG_LENGTH,
    EncryptedSecret,
    SecretCipher,
    generate_master_key,
)
from tenant_gate.errors import AuthenticationFailed, WeakMasterKey


@pytest.fixture(scope="module")
def cipher() -> SecretCipher:
    return SecretCipher(MASTER_KEY)


@pytest.mark.parametrize("master_key", [None, "", "short", "k" * 31])
def test_weak_master_key_is_refused(master_key) -> None:
    with pytest.raises(WeakMasterKey):
        SecretCipher(master_key)


def test_minimum_length_master_key_is_accepted() -> None:
    SecretCipher("k" * 32)


def test_generated_master_key_is_strong() -> None:
    SecretCipher(generate_master_key())


@pytest.mark.parametrize("plaintext", ["hunter2", "", "päss wörd ✓", "x" * 4096])
def test_round_trip_with_tenant(cipher: SecretCipher, plaintext: str) -> None:
    secret = cipher.encrypt(plaintext, "t-acme")
    assert len(secret.iv) == IV_LENGTH
    assert len(secret.salt) == SALT_LENGTH
    assert len(secret.auth_tag) == TAG_LENGTH
    assert cipher.decrypt(secret, "t-acme") == plaintext


def test_round_trip_without_tenant(cipher: SecretCipher) -> None:
    assert cipher.decrypt(cipher.encrypt("global")) == "global"


def test_other_tenant_cannot_decrypt(cipher: SecretCipher) -> None:
    secret = cipher.encrypt("acme-only", "t-acme")
    with pytest.raises(AuthenticationFailed):
        cipher.decrypt(secret, "t-beta")


def test_tenant_scoped_secret_requires_tenant(cipher: SecretCipher) -> None:
    with pytest.raises(AuthenticationFailed):
        cipher.decrypt(cipher.encrypt("scoped", "t-acme"))
    with pytest.raises(AuthenticationFailed):
        cipher.decrypt(cipher.encrypt("unscoped"), "t-acme")


def test_other_master_key_cannot_decrypt(cipher: SecretCipher) -> None:
    secret = cipher.encrypt("value", "t-acme")
    with pytest.raises(AuthenticationFailed):
        SecretCipher("n" * 48).decrypt(secret, "t-acme")


def test_re_encryption_uses_fresh_salt_and_iv(cipher: SecretCipher) -> None:
    a = cipher.encrypt("same", "t-acme")
    b = cipher.encrypt("same", "t-acme")
    assert a.salt != b.salt
    assert a.iv != b.iv
    assert a.ciphertext + a.auth_tag != b.ciphertext + b.auth_tag


def test_salt_and_iv_never_repeat(monkeypatch) -> None:
    cipher = SecretCipher(MASTER_KEY)
    # Key stretching is irrelevant to nonce generation; keep the loop fast.
    monkeypatch.setattr(
        SecretCipher,
        "_tenant_key",
        lambda self, tenant_id, salt: hashlib.sha256(self._master + salt).digest(),
    )
    salts: set[bytes] = set()
    ivs: set[bytes] = set()
    for _ in range(10_000):
        secret = cipher.encrypt("p", "t-acme")
        salts.add(secret.salt)
        ivs.add(secret.iv)
    assert len(salts) == 10_000
    assert len(ivs) == 10_000


def _flip(data: bytes, index: int) -> bytes:
    buf = bytearray(data)
    buf[index // 8] ^= 1 << (index % 8)
    return bytes(buf)


def test_every_ciphertext_and_tag_bit_is_authenticated(cipher: SecretCipher) -> None:
    secret = cipher.encrypt("tamper-evident")
    for field in ("ciphertext", "auth_tag", "iv"):
        value = getattr(secret, field)
        for bit in range(len(value) * 8):
            tampered = EncryptedSecret(**{**_fields(secret), field: _flip(value, bit)})
            with pytest.raises(AuthenticationFailed):
                cipher.decrypt(tampered)


def test_tenant_scoped_bit_flips_are_detected(cipher: SecretCipher) -> None:
    secret = cipher.encrypt("tamper-evident", "t-acme")
    for field, bit in (("ciphertext", 0), ("auth_tag", 127), ("salt", 3), ("iv", 64)):
        tampered = EncryptedSecret(**{**_fields(secret), field: _flip(getattr(secret, field), bit)})
        with pytest.raises(AuthenticationFailed):
            cipher.decrypt(tampered, "t-acme")


def test_truncated_components_fail_closed(cipher: SecretCipher) -> None:
    secret = cipher.encrypt("value", "t-acme")
    for field in ("iv", "salt", "auth_tag"):
        short = EncryptedSecret(**{**_fields(secret), field: getattr(secret, field)[:-1]})
        with pytest.raises(AuthenticationFailed):
            cipher.decrypt(short, "t-acme")


def test_failure_carries_correlation_id(cipher: SecretCipher) -> None:
    secret = cipher.encrypt("value", "t-acme")
    with pytest.raises(AuthenticationFailed) as exc_info:
        cipher.decrypt(secret, "t-beta")
    assert len(exc_info.value.correlation_id) == 32
    assert "value" not in str(exc_info.value)


def test_record_round_trip(cipher: SecretCipher) -> None:
    secret = cipher.encrypt("stored", "t-acme")
    record = secret.to_record()
    assert set(record) == {"ciphertext", "iv", "auth_tag", "salt"}
    assert all(isinstance(v, str) for v in record.values())
    assert cipher.decrypt(EncryptedSecret.from_record(record), "t-acme") == "stored"


def test_record_missing_field_is_rejected() -> None:
    with pytest.raises(ValueError):
        EncryptedSecret.from_record({"ciphertext": "00", "iv": "00"})


@pytest.mark.asyncio
async def test_async_variants(cipher: SecretCipher) -> None:
    secret = await cipher.encrypt_async("async", "t-acme")
    assert await cipher.decrypt_async(secret, "t-acme") == "async"
    with pytest.raises(AuthenticationFailed):
        await cipher.decrypt_async(secret, "t-beta")


def _fields(secret: EncryptedSecret) -> dict[str, bytes]:
    return {
        "ciphertext": secret.ciphertext,
        "iv": secret.iv,
        "auth_tag": secret.auth_tag,
        "salt": secret.salt,
    }
