from dataclasses import replace

from secp256k1 import PrivateKey, PublicKey as Secp256k1PublicKey

from .errors import FormatError, InvalidKeyError
from .events import EventRecord, SignedEventRecord, event_id
from .keys import derive_public_key, private_key_bytes
from .utils import DiagnosticSink, bytes_to_hex, emit, hex_to_bytes

EVENT_ID_LENGTH = 32
SIGNATURE_LENGTH = 64


def _as_bytes(value, label: str) -> bytes:
    if isinstance(value, str):
        return hex_to_bytes(value.strip())
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise FormatError(f"{label} must be bytes or hex")


def sign(event_id_bytes: bytes, private_key) -> bytes:
    """
    BIP340 Schnorr signature over an already-computed 32-byte event id.
    """
    msg = _as_bytes(event_id_bytes, "event id")
    if len(msg) != EVENT_ID_LENGTH:
        raise FormatError("event id must be 32 bytes")

    sk = private_key_bytes(private_key)
    return PrivateKey(sk, raw=True).schnorr_sign(msg, None, raw=True)


def verify(signature, event_id_bytes, x_only_pubkey, *, sink: DiagnosticSink | None = None) -> bool:
    """
    Never raises: malformed hex, wrong lengths, points off the curve and any
    library error all come back as False.
    """
    try:
        sig = _as_bytes(signature, "signature")
        msg = _as_bytes(event_id_bytes, "event id")
        pk = _as_bytes(x_only_pubkey, "pubkey")

        if len(sig) == SIGNATURE_LENGTH + 1:
            # historical variant with a leading scheme byte
            sig = sig[1:]
        if len(sig) != SIGNATURE_LENGTH:
            emit(sink, f"signature must be {SIGNATURE_LENGTH} bytes, got {len(sig)}")
            return False
        if len(msg) != EVENT_ID_LENGTH:
            emit(sink, f"event id must be {EVENT_ID_LENGTH} bytes, got {len(msg)}")
            return False
        if len(pk) != 32:
            emit(sink, f"x-only pubkey must be 32 bytes, got {len(pk)}")
            return False

        # libsecp256k1 takes the even-y lift of the x-only key for BIP340
        pub_verify = Secp256k1PublicKey(b"\x02" + pk, raw=True)
        return bool(pub_verify.schnorr_verify(msg, sig, None, raw=True))
    except Exception as e:
        emit(sink, f"signature verification failed: {type(e).__name__}: {e}")
        return False


def sign_event(record: EventRecord, private_key) -> SignedEventRecord:
    """
    Returns a new SignedEventRecord; the input record is left untouched.
    An empty pubkey is filled with the signer's x-only key.
    """
    pubkey = derive_public_key(private_key)
    if record.pubkey and record.pubkey.lower() != pubkey.x_only_hex:
        raise InvalidKeyError("event pubkey does not belong to the signing key")

    # the derived key, so a caller's uppercase hex never reaches the wire
    unsigned = replace(record, pubkey=pubkey.x_only_hex)
    eid = event_id(unsigned)
    sig = sign(eid, private_key)

    return SignedEventRecord(
        kind=unsigned.kind,
        content=unsigned.content,
        created_at=unsigned.created_at,
        tags=unsigned.tags,
        pubkey=unsigned.pubkey,
        id=bytes_to_hex(eid),
        sig=bytes_to_hex(sig),
    )


def verify_signature(record, *, sink: DiagnosticSink | None = None) -> bool:
    """
    Check sig against the declared id and pubkey. Does not re-derive the
    id; use validation.validate_signed_event for the full check.
    """
    try:
        if isinstance(record, SignedEventRecord):
            sig, eid, pubkey = record.sig, record.id, record.pubkey
        else:
            sig, eid, pubkey = record["sig"], record["id"], record["pubkey"]
    except (KeyError, TypeError) as e:
        emit(sink, f"event is missing signature fields: {e}")
        return False
    return verify(sig, eid, pubkey, sink=sink)
