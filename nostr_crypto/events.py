import hashlib
import json
import time
from dataclasses import dataclass, field
from typing import Mapping, Union

from .config import TEXT_NOTE_KIND
from .errors import FormatError
from .keys import PublicKeyInput, resolve_x_only_hex
from .utils import bytes_to_hex, utf8_encode

# format-version tag in position one of the serialized array, not the kind
SERIALIZATION_VERSION = 0


def _freeze_tags(tags) -> tuple[tuple[str, ...], ...]:
    if tags is None:
        return ()
    if not isinstance(tags, (list, tuple)) or not all(isinstance(t, (list, tuple)) for t in tags):
        raise FormatError("tags must be an array of arrays")
    return tuple(tuple(t) for t in tags)


@dataclass(frozen=True)
class EventRecord:
    kind: int
    content: str
    created_at: int
    tags: tuple[tuple[str, ...], ...] = field(default_factory=tuple)
    pubkey: str = ""

    def __post_init__(self):
        # lists from callers / JSON become tuples; both orders are kept
        object.__setattr__(self, "tags", _freeze_tags(self.tags))

    def to_dict(self) -> dict:
        return {
            "pubkey": self.pubkey,
            "created_at": self.created_at,
            "kind": self.kind,
            "tags": [list(t) for t in self.tags],
            "content": self.content,
        }

    @classmethod
    def from_dict(cls, data: Mapping) -> "EventRecord":
        return cls(
            kind=data["kind"],
            content=data["content"],
            created_at=data["created_at"],
            tags=data.get("tags"),
            pubkey=data.get("pubkey") or "",
        )


@dataclass(frozen=True)
class SignedEventRecord(EventRecord):
    id: str = ""
    sig: str = ""

    def to_dict(self) -> dict:
        d = {"id": self.id}
        d.update(super().to_dict())
        d["sig"] = self.sig
        return d

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping) -> "SignedEventRecord":
        return cls(
            kind=data["kind"],
            content=data["content"],
            created_at=data["created_at"],
            tags=data.get("tags"),
            pubkey=data.get("pubkey") or "",
            id=data.get("id") or "",
            sig=data.get("sig") or "",
        )

    @classmethod
    def from_json(cls, raw: str) -> "SignedEventRecord":
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            raise FormatError(f"event is not valid JSON: {e.msg}") from e
        if not isinstance(data, dict):
            raise FormatError("event JSON must be an object")
        try:
            return cls.from_dict(data)
        except KeyError as e:
            raise FormatError(f"event is missing field {e.args[0]!r}") from e
        except TypeError as e:
            raise FormatError(f"event has a malformed field: {e}") from e


EventLike = Union[EventRecord, Mapping]


def create_event(
    kind: int = TEXT_NOTE_KIND,
    content: str = "",
    tags: list[list[str]] | None = None,
    created_at: int | None = None,
    pubkey: PublicKeyInput | None = None,
) -> EventRecord:
    """
    Build an unsigned event. created_at defaults to now; pubkey may be left
    empty and filled in by sign_event.
    """
    return EventRecord(
        kind=kind,
        content=content,
        created_at=int(time.time()) if created_at is None else created_at,
        tags=tags or (),
        pubkey=resolve_x_only_hex(pubkey) if pubkey else "",
    )


def _fields(record: EventLike) -> tuple:
    if isinstance(record, EventRecord):
        return record.pubkey, record.created_at, record.kind, record.tags, record.content
    return record["pubkey"], record["created_at"], record["kind"], record["tags"], record["content"]


def serialize_fields(pubkey: str, created_at: int, kind: int, tags, content: str) -> bytes:
    # NIP-01: [0, pubkey, created_at, kind, tags, content], no whitespace, raw UTF-8
    event_data = [SERIALIZATION_VERSION, pubkey, created_at, kind, [list(t) for t in tags], content]
    serialized = json.dumps(event_data, separators=(",", ":"), ensure_ascii=False)
    return utf8_encode(serialized)


def canonicalize(record: EventLike) -> bytes:
    return serialize_fields(*_fields(record))


def event_id(record: EventLike) -> bytes:
    return hashlib.sha256(canonicalize(record)).digest()


def event_id_hex(record: EventLike) -> str:
    return bytes_to_hex(event_id(record))


# relay framing

def format_event_for_relay(event: SignedEventRecord) -> str:
    return json.dumps(["EVENT", event.to_dict()], separators=(",", ":"), ensure_ascii=False)


def parse_relay_message(raw: str) -> list:
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError as e:
        raise FormatError(f"relay message is not valid JSON: {e.msg}") from e
    if not isinstance(msg, list) or not msg or not isinstance(msg[0], str):
        raise FormatError("relay message must be a JSON array starting with a type string")
    return msg


def extract_referenced_events(record: EventLike) -> list[str]:
    tags = record.tags if isinstance(record, EventRecord) else record.get("tags") or []
    return [t[1] for t in tags if len(t) >= 2 and t[0] == "e"]
