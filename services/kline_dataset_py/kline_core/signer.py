"""Bybit V5 request signing.

The fetcher only needs something with a ``sign(payload, credentials)``
method, so tests can pass a stub and other venues can plug their own.
"""
from __future__ import annotations

import hashlib
import hmac
import json
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Protocol

from .settings import BYBIT_RECV_WINDOW


def _now_ms_str() -> str:
    return str(int(time.time() * 1000))


@dataclass(frozen=True)
class Credentials:
    api_key: str
    api_secret: str
    recv_window: int = BYBIT_RECV_WINDOW
    timestamp: str = field(default_factory=_now_ms_str)

    def stamped(self) -> "Credentials":
        """Copy with a fresh timestamp; each request is signed at send time."""
        return Credentials(self.api_key, self.api_secret, self.recv_window, _now_ms_str())


class Signer(Protocol):
    def sign(self, payload: Mapping[str, Any], credentials: Credentials) -> str: ...


class HmacSigner:
    """HMAC-SHA256 over ``timestamp + key + recvWindow + json(payload)``."""

    def sign(self, payload: Mapping[str, Any], credentials: Credentials) -> str:
        body = json.dumps(dict(payload), separators=(",", ":"))
        message = f"{credentials.timestamp}{credentials.api_key}{credentials.recv_window}{body}"
        return hmac.new(
            credentials.api_secret.encode("utf-8"),
            message.encode("utf-8"),
            hashlib.sha256,
        ).hexdigest()


def auth_headers(signer: Signer, payload: Mapping[str, Any], credentials: Credentials) -> Dict[str, str]:
    signature = signer.sign(payload, credentials)
    return {
        "X-BAPI-API-KEY": credentials.api_key,
        "X-BAPI-SIGN": signature,
        "X-BAPI-SIGN-TYPE": "2",
        "X-BAPI-TIMESTAMP": credentials.timestamp,
        "X-BAPI-RECV-WINDOW": str(credentials.recv_window),
    }
