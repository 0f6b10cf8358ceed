from dataclasses import replace

import pytest

from nostr_crypto.errors import FormatError, InvalidKeyError
from nostr_crypto.events import EventRecord, create_event, event_id
from nostr_crypto.signing import sign, sign_event, verify, verify_signature


def test_sign_verify(alice_sk, alice_pub):
    eid = event_id(create_event(content="msg", created_at=1, pubkey=alice_pub))
    sig = sign(eid, alice_sk)
    assert len(sig) == 64
    assert verify(sig, eid, alice_pub.x_only)
    assert verify(sig.hex(), eid.hex(), alice_pub.x_only_hex)


def test_verify_wrong_key_or_message(alice_sk, bob_pub, alice_pub):
    eid = bytes(32)
    sig = sign(eid, alice_sk)
    assert not verify(sig, eid, bob_pub.x_only)
    assert not verify(sig, b"\x01" * 32, alice_pub.x_only)


def test_sign_requires_32_byte_id(alice_sk):
    with pytest.raises(FormatError):
        sign(b"short", alice_sk)
    with pytest.raises(InvalidKeyError):
        sign(bytes(32), "00" * 32)


@pytest.mark.parametrize(
    "sig,pubkey",
    [
        ("invalid hex", None),
        ("ab" * 10, None),
        (None, None),
        ("00" * 64, "ff" * 32),
        ("00" * 64, "abcd"),
    ],
)
def test_verify_never_raises(alice_pub, sig, pubkey):
    assert verify(sig, bytes(32), pubkey or alice_pub.x_only_hex) is False


def test_verify_reports_to_sink(alice_pub):
    lines = []
    assert not verify("zz", bytes(32), alice_pub.x_only, sink=lines.append)
    assert lines


def test_verify_accepts_scheme_byte_prefix(alice_sk, alice_pub):
    eid = bytes(range(32))
    sig = sign(eid, alice_sk)
    assert verify("01" + sig.hex(), eid, alice_pub.x_only)


def test_sign_event_fills_pubkey_and_does_not_mutate(alice_sk, alice_pub):
    record = create_event(kind=1, content="Hello, Nostr!", created_at=1700000000)
    signed = sign_event(record, alice_sk)

    assert record.pubkey == ""
    assert signed.pubkey == alice_pub.x_only_hex
    assert signed.id == event_id(signed).hex()
    assert verify_signature(signed)
    assert verify_signature(signed.to_dict())


def test_sign_event_lowercases_declared_pubkey(alice_sk, alice_pub):
    record = EventRecord(kind=1, content="x", created_at=1, pubkey=alice_pub.x_only_hex.upper())
    signed = sign_event(record, alice_sk)
    assert signed.pubkey == alice_pub.x_only_hex
    assert signed.id == event_id(replace(record, pubkey=alice_pub.x_only_hex)).hex()
    assert verify_signature(signed)


def test_sign_event_rejects_foreign_pubkey(alice_sk, bob_pub):
    record = EventRecord(kind=1, content="x", created_at=1, pubkey=bob_pub.x_only_hex)
    with pytest.raises(InvalidKeyError):
        sign_event(record, alice_sk)


def test_verify_signature_truncated_sig(signed_note):
    ev = signed_note.to_dict()
    ev["sig"] = "invalid hex"
    assert verify_signature(ev) is False


def test_verify_signature_corrupted_byte(signed_note):
    ev = signed_note.to_dict()
    last = ev["sig"][-1]
    ev["sig"] = ev["sig"][:-1] + ("0" if last != "0" else "1")
    assert verify_signature(ev) is False


def test_verify_signature_missing_fields():
    assert verify_signature({"kind": 1}) is False
