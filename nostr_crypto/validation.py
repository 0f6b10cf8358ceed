"""
Validation of untrusted events.

Nothing in here raises for an event that can be looked at: every problem is
reported as a string in ValidationResult.errors, in the order
structure -> timestamp -> hex format -> id -> signature, so a batch of relay
input can be checked without aborting the loop.
"""
import time
from dataclasses import dataclass, field
from typing import Mapping

from . import config
from .errors import ValidationError
from .events import EventRecord, event_id
from .signing import verify
from .utils import DiagnosticSink, emit, hex_to_bytes, is_hex

INVALID_STRUCTURE = "Invalid event structure"
BAD_KIND = "Event kind must be a non-negative integer"
BAD_CONTENT = "Event content must be a string"
BAD_CREATED_AT = "Event created_at must be an integer"
BAD_TAGS = "Event tags must be an array"
BAD_TAG = "Each tag must be a non-empty array of strings"
NEGATIVE_TIMESTAMP = "Invalid timestamp: must be non-negative"
FUTURE_TIMESTAMP = "Event timestamp is too far in the future"
BAD_PUBKEY_FORMAT = "Invalid public key format"
BAD_ID_FORMAT = "Invalid event ID format"
BAD_SIG_FORMAT = "Invalid signature format"
ID_MISMATCH = "Invalid event ID"
BAD_SIGNATURE = "Invalid signature"


@dataclass
class ValidationResult:
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def raise_for_errors(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


def _is_int(v) -> bool:
    # bool is an int subclass but never a valid kind / timestamp
    return isinstance(v, int) and not isinstance(v, bool)


def _as_mapping(event) -> Mapping | None:
    if isinstance(event, EventRecord):
        return event.to_dict()
    if isinstance(event, Mapping):
        return event
    return None


def _check_structure(ev: Mapping) -> list[str]:
    errors = []

    kind = ev.get("kind")
    if not _is_int(kind) or kind < 0:
        errors.append(BAD_KIND)

    if not isinstance(ev.get("content"), str):
        errors.append(BAD_CONTENT)

    if not _is_int(ev.get("created_at")):
        errors.append(BAD_CREATED_AT)

    tags = ev.get("tags")
    if not isinstance(tags, (list, tuple)):
        errors.append(BAD_TAGS)
    elif not all(
        isinstance(tag, (list, tuple)) and tag and all(isinstance(item, str) for item in tag)
        for tag in tags
    ):
        errors.append(BAD_TAG)

    return errors


def _check_timestamp(created_at: int, future_skew: int, now: int | None) -> list[str]:
    errors = []
    if created_at < 0:
        errors.append(NEGATIVE_TIMESTAMP)
    now = int(time.time()) if now is None else now
    if created_at > now + future_skew:
        errors.append(FUTURE_TIMESTAMP)
    return errors


def _finish(errors: list[str], sink: DiagnosticSink | None) -> ValidationResult:
    for e in errors:
        emit(sink, e)
    return ValidationResult(errors=errors)


def validate_event(
    event,
    *,
    future_skew: int = config.LOOSE_FUTURE_SKEW,
    now: int | None = None,
    sink: DiagnosticSink | None = None,
) -> ValidationResult:
    """
    Structure and timestamp checks for an unsigned event.
    """
    ev = _as_mapping(event)
    if ev is None:
        return _finish([INVALID_STRUCTURE], sink)

    errors = _check_structure(ev)
    if _is_int(ev.get("created_at")):
        errors += _check_timestamp(ev["created_at"], future_skew, now)
    return _finish(errors, sink)


def validate_signed_event(
    event,
    *,
    future_skew: int = config.STRICT_FUTURE_SKEW,
    now: int | None = None,
    sink: DiagnosticSink | None = None,
) -> ValidationResult:
    """
    Full check of a signed event: structure, timestamp, hex formats, then
    the id and the signature. The id and signature are independent checks;
    both are reported when both fail.
    """
    ev = _as_mapping(event)
    if ev is None:
        return _finish([INVALID_STRUCTURE], sink)

    structure = _check_structure(ev)
    errors = list(structure)
    if _is_int(ev.get("created_at")):
        errors += _check_timestamp(ev["created_at"], future_skew, now)

    pubkey, eid, sig = ev.get("pubkey"), ev.get("id"), ev.get("sig")
    pubkey_ok = is_hex(pubkey, 64)
    id_ok = is_hex(eid, 64)
    # is_hex refuses odd lengths, so 129 fails here along with undecodable input
    sig_ok = is_hex(sig) and 128 <= len(sig) <= 130
    if not pubkey_ok:
        errors.append(BAD_PUBKEY_FORMAT)
    if not id_ok:
        errors.append(BAD_ID_FORMAT)
    if not sig_ok:
        errors.append(BAD_SIG_FORMAT)

    if not structure and pubkey_ok and id_ok:
        if event_id(ev) != hex_to_bytes(eid):
            errors.append(ID_MISMATCH)

    if pubkey_ok and id_ok and sig_ok:
        if not verify(sig, eid, pubkey, sink=sink):
            errors.append(BAD_SIGNATURE)

    return _finish(errors, sink)
