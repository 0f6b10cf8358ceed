import hashlib
import json

import pytest

from nostr_crypto.errors import FormatError
from nostr_crypto.events import (
    EventRecord,
    SignedEventRecord,
    canonicalize,
    create_event,
    event_id,
    event_id_hex,
    extract_referenced_events,
    format_event_for_relay,
    parse_relay_message,
)

PUBKEY = "a" * 64


def test_canonical_form_is_byte_exact():
    record = EventRecord(
        kind=1,
        content='hi "there"\n\ttab',
        created_at=1700000000,
        tags=[["e", "x"], ["p", "y", "wss://relay"]],
        pubkey=PUBKEY,
    )
    expected = (
        '[0,"' + PUBKEY + '",1700000000,1,[["e","x"],["p","y","wss://relay"]],'
        '"hi \\"there\\"\\n\\ttab"]'
    )
    assert canonicalize(record) == expected.encode("utf-8")


def test_non_ascii_is_emitted_raw():
    record = EventRecord(kind=1, content="café 🌱", created_at=1, pubkey=PUBKEY)
    out = canonicalize(record)
    assert "café 🌱".encode("utf-8") in out
    assert b"\\u" not in out


def test_control_characters_use_lowercase_unicode_escapes():
    record = EventRecord(kind=1, content="\x01\x1f", created_at=1, pubkey=PUBKEY)
    assert canonicalize(record).endswith(b'"\\u0001\\u001f"]')


def test_event_id_is_sha256_of_canonical_form():
    record = EventRecord(kind=7, content="+", created_at=42, tags=[["e", "b" * 64]], pubkey=PUBKEY)
    assert event_id(record) == hashlib.sha256(canonicalize(record)).digest()
    assert event_id_hex(record) == event_id(record).hex()


def test_canonical_form_ignores_field_insertion_order():
    a = {"pubkey": PUBKEY, "created_at": 5, "kind": 1, "tags": [["t", "x"]], "content": "c"}
    b = {"content": "c", "tags": [["t", "x"]], "kind": 1, "created_at": 5, "pubkey": PUBKEY}
    record = EventRecord(kind=1, content="c", created_at=5, tags=(("t", "x"),), pubkey=PUBKEY)
    assert canonicalize(a) == canonicalize(b) == canonicalize(record)


def test_tag_order_matters():
    first = EventRecord(kind=1, content="", created_at=1, tags=[["a"], ["b"]], pubkey=PUBKEY)
    swapped = EventRecord(kind=1, content="", created_at=1, tags=[["b"], ["a"]], pubkey=PUBKEY)
    inner = EventRecord(kind=1, content="", created_at=1, tags=[["b", "a"]], pubkey=PUBKEY)
    assert len({event_id(first), event_id(swapped), event_id(inner)}) == 3


def test_create_event_defaults(alice_pub, now):
    ev = create_event(kind=1, content="x", pubkey=alice_pub)
    assert ev.pubkey == alice_pub.x_only_hex
    assert ev.tags == ()
    assert abs(ev.created_at - now) <= 2

    assert create_event(content="y", created_at=10).pubkey == ""
    assert create_event(content="z", pubkey=alice_pub.compressed_hex).pubkey == alice_pub.x_only_hex


def test_records_are_immutable():
    ev = create_event(kind=1, content="x", created_at=1, tags=[["p", PUBKEY]])
    with pytest.raises(AttributeError):
        ev.content = "changed"
    assert ev.tags == (("p", PUBKEY),)


def test_signed_record_json_round_trip(signed_note):
    again = SignedEventRecord.from_json(signed_note.to_json())
    assert again == signed_note
    assert list(json.loads(signed_note.to_json())) == ["id", "pubkey", "created_at", "kind", "tags", "content", "sig"]


def test_from_json_rejects_garbage():
    with pytest.raises(FormatError):
        SignedEventRecord.from_json("{nope")
    with pytest.raises(FormatError):
        SignedEventRecord.from_json("[1, 2]")
    with pytest.raises(FormatError):
        SignedEventRecord.from_json('{"kind": 1}')


@pytest.mark.parametrize("tags", ["ab", [1], ["p", "x"], {"p": "x"}])
def test_tags_must_be_an_array_of_arrays(tags):
    with pytest.raises(FormatError):
        EventRecord(kind=1, content="x", created_at=1, tags=tags)


@pytest.mark.parametrize("tags", ["p", [1]])
def test_from_json_rejects_malformed_tags(signed_note, tags):
    raw = json.dumps(signed_note.to_dict() | {"tags": tags})
    with pytest.raises(FormatError):
        SignedEventRecord.from_json(raw)


def test_relay_framing(signed_note):
    msg = parse_relay_message(format_event_for_relay(signed_note))
    assert msg[0] == "EVENT"
    assert msg[1]["id"] == signed_note.id
    with pytest.raises(FormatError):
        parse_relay_message('{"not": "a list"}')


def test_extract_referenced_events():
    ev = create_event(content="", created_at=1, tags=[["e", "1" * 64], ["p", PUBKEY], ["e", "2" * 64, "", "reply"]])
    assert extract_referenced_events(ev) == ["1" * 64, "2" * 64]
    assert extract_referenced_events(ev.to_dict()) == ["1" * 64, "2" * 64]
