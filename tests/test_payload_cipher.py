import base64

import pytest

from platform_sync.core.exceptions import DecodeError, PayloadCipherError
from platform_sync.services import payload_cipher

SECRET = "0123456789abcdef0123456789abcdef"
OTHER_SECRET = "fedcba9876543210fedcba9876543210"


def test_envelope_round_trip_keeps_unicode():
    payload = {"orderId": "A-1", "items": [{"name": "Çiğ köfte dürüm", "amount": 2}]}
    envelope = payload_cipher.encode(payload, SECRET)

    assert set(envelope) == {"value"}
    assert payload_cipher.decode_json(envelope, SECRET) == payload


def test_ciphertext_is_whole_aes_blocks():
    envelope = payload_cipher.encode({"test": True}, SECRET)
    raw = base64.b64decode(envelope["value"])
    assert len(raw) % 16 == 0
    assert len(raw) > 0


def test_ecb_is_deterministic():
    assert payload_cipher.encrypt("hello", SECRET) == payload_cipher.encrypt("hello", SECRET)
    assert payload_cipher.encrypt("hello", SECRET) != payload_cipher.encrypt("hello", OTHER_SECRET)


def test_string_payload_is_encrypted_verbatim():
    envelope = payload_cipher.encode("plain text", SECRET)
    assert payload_cipher.decode(envelope, SECRET) == "plain text"


def test_bare_ciphertext_string_is_accepted():
    ciphertext = payload_cipher.encrypt('{"a": 1}', SECRET)
    assert payload_cipher.decode_json(ciphertext, SECRET) == {"a": 1}


def test_wrong_secret_fails_to_decode():
    envelope = payload_cipher.encode({"orderId": "A-1", "status": "CONFIRMED"}, SECRET)
    with pytest.raises(DecodeError):
        payload_cipher.decode_json(envelope, OTHER_SECRET)


def test_invalid_base64_fails_to_decode():
    with pytest.raises(DecodeError):
        payload_cipher.decode({"value": "not base64 at all!"}, SECRET)


def test_envelope_without_value_fails_to_decode():
    with pytest.raises(DecodeError):
        payload_cipher.decode({"data": "x"}, SECRET)


def test_non_json_plaintext_fails_decode_json():
    envelope = payload_cipher.encode("not json", SECRET)
    with pytest.raises(DecodeError):
        payload_cipher.decode_json(envelope, SECRET)


def test_bad_key_length_is_rejected():
    with pytest.raises(PayloadCipherError):
        payload_cipher.encode({"a": 1}, "short")
    with pytest.raises(DecodeError):
        payload_cipher.decrypt(payload_cipher.encrypt("x", SECRET), "short")


@pytest.mark.parametrize("body, expected", [
    ({"value": "abc"}, True),
    ({"value": "abc", "extra": 1}, False),
    ({"value": 5}, False),
    ({"id": "A-1"}, False),
    ("abc", False),
    (None, False),
])
def test_is_envelope(body, expected):
    assert payload_cipher.is_envelope(body) is expected
