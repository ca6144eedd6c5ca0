"""
core/crypto.py -- Field-level encryption for stored secrets.

FieldCipher turns a plaintext secret (credential password, note content, card
cv/password) into a base64 text token that fits in a TEXT column, and back.

Token layout (before base64):
    [key_id 2B big-endian][nonce 12B][AES-GCM ciphertext + 16B tag]

Security design decisions:
  AEAD: AES-256-GCM. A flipped bit anywhere in the nonce or ciphertext fails
       the tag check, so tampering surfaces as CipherError instead of silently
       producing garbage plaintext.

  Nonce: 96 random bits from os.urandom per encrypt() call. Two encryptions
       of the same plaintext never produce the same token.

  Key derivation: the configured ENCRYPTION_KEY is input key material, not the
       AES key. HKDF-SHA256 with a versioned context ("secretkeeper-field-v1")
       derives the 32-byte key, so any string of sufficient length works and
       each key version is domain separated.

  Rotation: the cipher holds a key ring. encrypt() always uses the primary
       key id; decrypt() picks the key named in the token header. add_key()
       is the hook for introducing a new version; old tokens stay readable as
       long as their version remains in the ring.

  Compatibility: values written in the legacy CFB format are not readable
       here. They must be re-encrypted on import.

Never log plaintext or ciphertext values.

Layer rule: core/ is the kernel. No imports from api/, auth/, or vault/.
"""

from __future__ import annotations

import base64
import binascii
import logging
import os
import struct

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from core.errors import CipherError, DecodeError

logger = logging.getLogger("secretkeeper.crypto")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_ID_SIZE = 2  # uint16 big-endian
KEY_LENGTH = 32  # AES-256

_HEADER = struct.Struct(">H")
_MIN_TOKEN_BYTES = KEY_ID_SIZE + NONCE_SIZE + TAG_SIZE


def derive_field_key(material: str | bytes, key_id: int) -> bytes:
    """Derive the 32-byte AES key for a key version with HKDF-SHA256."""
    if isinstance(material, str):
        material = material.encode("utf-8")
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,  # deterministic: the same material must yield the same key after restart
        info=f"secretkeeper-field-v{key_id}".encode("utf-8"),
    )
    return hkdf.derive(material)


class FieldCipher:
    """Encrypt and decrypt individual secret fields.

    Holds only immutable key material after construction (add_key() aside),
    so a single instance is shared by every request thread.

    Usage:
        cipher = FieldCipher(settings.encryption_key)
        token = cipher.encrypt("hunter2")
        cipher.decrypt(token)  # "hunter2"
    """

    def __init__(self, material: str | bytes, key_id: int = 1) -> None:
        self._keys: dict[int, AESGCM] = {}
        self._primary_id = key_id
        self.add_key(key_id, material, primary=True)

    @property
    def primary_key_id(self) -> int:
        return self._primary_id

    def add_key(self, key_id: int, material: str | bytes, primary: bool = False) -> None:
        """Register a key version. With primary=True new tokens use it.

        Existing tokens keep decrypting under their original version as long
        as it stays registered. Re-encrypting stored rows to the new version
        is the caller's job.
        """
        if not 0 < key_id < 2**16:
            raise ValueError("key_id must fit in an unsigned 16-bit integer and be non-zero")
        self._keys[key_id] = AESGCM(derive_field_key(material, key_id))
        if primary:
            self._primary_id = key_id
            logger.info("Field cipher primary key version is now v%d", key_id)

    def encrypt(self, plaintext: str) -> str:
        nonce = os.urandom(NONCE_SIZE)
        aead = self._keys[self._primary_id]
        ct = aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        raw = _HEADER.pack(self._primary_id) + nonce + ct
        return base64.b64encode(raw).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Reverse encrypt().

        Raises:
            DecodeError: token is not valid base64.
            CipherError: token is too short, names an unknown key version,
                         fails authentication, or is not UTF-8 underneath.
        """
        try:
            raw = base64.b64decode(token, validate=True)
        except (binascii.Error, ValueError) as exc:
            raise DecodeError("stored value is not valid base64") from exc

        if len(raw) < _MIN_TOKEN_BYTES:
            raise CipherError(f"ciphertext too short: {len(raw)} bytes (minimum {_MIN_TOKEN_BYTES})")

        (key_id,) = _HEADER.unpack_from(raw)
        aead = self._keys.get(key_id)
        if aead is None:
            raise CipherError(f"unknown key version v{key_id}")

        nonce = raw[KEY_ID_SIZE : KEY_ID_SIZE + NONCE_SIZE]
        try:
            plaintext = aead.decrypt(nonce, raw[KEY_ID_SIZE + NONCE_SIZE :], None)
        except InvalidTag as exc:
            raise CipherError("ciphertext failed authentication") from exc
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise CipherError("decrypted value is not valid UTF-8") from exc
