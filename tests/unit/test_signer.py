import hashlib
import hmac

from kline_core import Credentials, HmacSigner
from kline_core.signer import auth_headers


def test_signature_covers_timestamp_key_window_and_payload():
    creds = Credentials("my-key", "my-secret", recv_window=5000, timestamp="1700000000000")
    payload = {"category": "linear", "symbol": "BTCUSDT", "limit": 200}

    expected = hmac.new(
        b"my-secret",
        b'1700000000000my-key5000{"category":"linear","symbol":"BTCUSDT","limit":200}',
        hashlib.sha256,
    ).hexdigest()
    assert HmacSigner().sign(payload, creds) == expected


def test_signature_depends_on_payload_order():
    creds = Credentials("k", "s", timestamp="1")
    signer = HmacSigner()
    assert signer.sign({"a": 1, "b": 2}, creds) != signer.sign({"b": 2, "a": 1}, creds)


def test_auth_headers():
    creds = Credentials("my-key", "my-secret", recv_window=5000, timestamp="42")
    headers = auth_headers(HmacSigner(), {"symbol": "ETHUSDT"}, creds)
    assert headers["X-BAPI-API-KEY"] == "my-key"
    assert headers["X-BAPI-SIGN-TYPE"] == "2"
    assert headers["X-BAPI-TIMESTAMP"] == "42"
    assert headers["X-BAPI-RECV-WINDOW"] == "5000"
    assert len(headers["X-BAPI-SIGN"]) == 64


def test_stamped_keeps_secret_and_refreshes_timestamp():
    creds = Credentials("k", "s", recv_window=1000, timestamp="0")
    fresh = creds.stamped()
    assert (fresh.api_key, fresh.api_secret, fresh.recv_window) == ("k", "s", 1000)
    assert fresh.timestamp != "0"
