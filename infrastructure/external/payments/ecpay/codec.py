"""
ECPay CheckMacValue codec.

The canonical string is built exactly the way ECPay verifies it: entries sorted
by lower-cased key, wrapped in HashKey/HashIV, percent-encoded with
encodeURIComponent semantics, lower-cased, then patched for ECPay's escaping.
"""
from __future__ import annotations

import hashlib
from typing import Any, Mapping
from urllib.parse import quote


CHECK_MAC_FIELD = "CheckMacValue"

# encodeURIComponent leaves these unescaped
_URI_COMPONENT_SAFE = "-_.!~*'()"


def encode_uri_component(value: str) -> str:
    return quote(value, safe=_URI_COMPONENT_SAFE)


class CheckMacCodec:
    def __init__(self, hash_key: str, hash_iv: str) -> None:
        self._hash_key = hash_key
        self._hash_iv = hash_iv

    def canonicalize(self, payload: Mapping[str, Any]) -> str:
        entries = sorted(
            ((str(k), "" if v is None else str(v)) for k, v in payload.items() if k != CHECK_MAC_FIELD),
            key=lambda kv: kv[0].lower(),
        )
        raw = "&".join(
            f"{k}={v}"
            for k, v in [("HashKey", self._hash_key), *entries, ("HashIV", self._hash_iv)]
        )
        return (
            encode_uri_component(raw)
            .lower()
            .replace("'", "%27")
            .replace("~", "%7e")
            .replace("%20", "+")
        )

    def sign(self, payload: Mapping[str, Any]) -> str:
        return hashlib.sha256(self.canonicalize(payload).encode("utf-8")).hexdigest().upper()

    def attach(self, payload: Mapping[str, Any]) -> dict[str, str]:
        signed = {k: "" if v is None else str(v) for k, v in payload.items() if k != CHECK_MAC_FIELD}
        signed[CHECK_MAC_FIELD] = self.sign(signed)
        return signed

    def verify(self, payload: Mapping[str, Any]) -> bool:
        mac = payload.get(CHECK_MAC_FIELD)
        if not mac:
            return False
        return self.sign(payload) == str(mac)
