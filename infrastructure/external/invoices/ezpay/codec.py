"""
EZPay PostData_ codec: AES-256-CBC over a url-encoded query string, hex encoded,
plus the SHA-256 CheckValue used by the validation endpoints.
"""
from __future__ import annotations

import hashlib
from typing import Any, Mapping

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from infrastructure.external.payments.ecpay.codec import encode_uri_component


# PKCS7 pad bytes EZPay leaves in decrypted results
_PAD_CHARS = "".join(chr(i) for i in range(1, 17))


class EZPayCodec:
    def __init__(self, hash_key: str, hash_iv: str) -> None:
        self._hash_key = hash_key
        self._hash_iv = hash_iv
        self._key = hash_key.encode("utf-8")
        self._iv = hash_iv.encode("utf-8")

    def _cipher(self) -> Cipher:
        return Cipher(algorithms.AES(self._key), modes.CBC(self._iv))

    def encrypt(self, data: Mapping[str, Any]) -> str:
        encoded = "&".join(
            f"{k}={encode_uri_component('' if v is None else str(v))}" for k, v in data.items()
        )
        padder = padding.PKCS7(algorithms.AES.block_size).padder()
        padded = padder.update(encoded.encode("utf-8")) + padder.finalize()
        encryptor = self._cipher().encryptor()
        return (encryptor.update(padded) + encryptor.finalize()).hex()

    def decrypt(self, secret: str) -> str:
        decryptor = self._cipher().decryptor()
        raw = decryptor.update(bytes.fromhex(secret)) + decryptor.finalize()
        return raw.decode("utf-8", errors="ignore").replace("\x1b", "").rstrip(_PAD_CHARS)

    def check_value(self, post_data: str) -> str:
        raw = f"HashKey={self._hash_key}&{post_data}&HashIV={self._hash_iv}"
        return hashlib.sha256(raw.encode("utf-8")).hexdigest().upper()
