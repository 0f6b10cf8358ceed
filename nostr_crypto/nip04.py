import os
import base64
import binascii

from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.padding import PKCS7
from cryptography.hazmat.primitives.asymmetric import ec

from .config import DEFAULT_WIRE_ENCODING, WIRE_ENCODINGS
from .errors import CryptoProviderError, DecryptionError, FormatError, InvalidKeyError
from .keys import PublicKeyInput, private_key_bytes, resolve_compressed
from .utils import DiagnosticSink, bytes_to_hex, emit, hex_to_bytes, utf8_decode, utf8_encode

IV_LENGTH = 16
BLOCK_SIZE = 16
SHARED_SECRET_LENGTH = 32

# legacy stand-in for an integrity check: a wrong key almost never yields
# mostly-printable text
MAX_NON_PRINTABLE_RATIO = 0.1


def _aes_cbc_encrypt(key32: bytes, iv16: bytes, plaintext: bytes) -> bytes:
    padder = PKCS7(128).padder()
    padded = padder.update(plaintext) + padder.finalize()

    cipher = Cipher(algorithms.AES(key32), modes.CBC(iv16))
    enc = cipher.encryptor()
    return enc.update(padded) + enc.finalize()


def _aes_cbc_decrypt(key32: bytes, iv16: bytes, ciphertext: bytes) -> bytes:
    cipher = Cipher(algorithms.AES(key32), modes.CBC(iv16))
    dec = cipher.decryptor()
    padded = dec.update(ciphertext) + dec.finalize()

    unpadder = PKCS7(128).unpadder()
    return unpadder.update(padded) + unpadder.finalize()


def derive_shared_secret(
    private_key_hex: str,
    counterparty_pubkey: PublicKeyInput,
    *,
    sink: DiagnosticSink | None = None,
) -> bytes:
    """
    NIP-04: use ONLY the X coordinate of the ECDH shared point (32 bytes) as the AES key.
    Do NOT hash it.

    A bare 32-byte Nostr pubkey is lifted with the 0x02 (even Y) prefix.
    """
    sk_int = int.from_bytes(private_key_bytes(private_key_hex), "big")
    pub_bytes = resolve_compressed(counterparty_pubkey)

    try:
        priv = ec.derive_private_key(sk_int, ec.SECP256K1())
        pub = ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), pub_bytes)
    except ValueError as e:
        emit(sink, f"ECDH key load failed: {e}")
        raise InvalidKeyError(f"ECDH key load failed: {e}") from e

    shared = priv.exchange(ec.ECDH(), pub)  # cryptography returns the 32-byte X coordinate
    if len(shared) != SHARED_SECRET_LENGTH:
        raise CryptoProviderError(f"ECDH shared secret unexpected length: {len(shared)}")
    return shared


def _check_encoding(encoding: str) -> None:
    if encoding not in WIRE_ENCODINGS:
        raise FormatError(f"unknown wire encoding {encoding!r}, expected one of {', '.join(WIRE_ENCODINGS)}")


def _b64decode(s: str) -> bytes:
    try:
        return base64.b64decode(s, validate=True)
    except binascii.Error as e:
        raise FormatError(f"invalid base64: {e}") from e


def encode_payload(iv: bytes, ciphertext: bytes, encoding: str = DEFAULT_WIRE_ENCODING) -> str:
    _check_encoding(encoding)
    if encoding == "hex":
        return bytes_to_hex(iv + ciphertext)
    if encoding == "nip04":
        b64_ct = base64.b64encode(ciphertext).decode("ascii")
        b64_iv = base64.b64encode(iv).decode("ascii")
        return f"{b64_ct}?iv={b64_iv}"
    return base64.b64encode(iv + ciphertext).decode("ascii")


def decode_payload(wire: str, encoding: str = DEFAULT_WIRE_ENCODING) -> tuple[bytes, bytes]:
    """
    Returns (iv, ciphertext). Raises FormatError when the string cannot be a
    NIP-04 payload at all.
    """
    _check_encoding(encoding)
    if not isinstance(wire, str) or not wire.strip():
        raise FormatError("encrypted payload must be a non-empty string")
    wire = wire.strip()

    if encoding == "nip04":
        if "?iv=" not in wire:
            raise FormatError("Invalid NIP-04 content (missing ?iv=)")
        b64_ct, b64_iv = wire.split("?iv=", 1)
        iv, ct = _b64decode(b64_iv), _b64decode(b64_ct)
    else:
        raw = hex_to_bytes(wire) if encoding == "hex" else _b64decode(wire)
        iv, ct = raw[:IV_LENGTH], raw[IV_LENGTH:]

    if len(iv) != IV_LENGTH:
        raise FormatError(f"IV must be {IV_LENGTH} bytes")
    if not ct or len(ct) % BLOCK_SIZE:
        raise FormatError("ciphertext length must be a non-zero multiple of the AES block size")
    return iv, ct


def _looks_like_plaintext(text: str) -> bool:
    # counted over UTF-8 bytes; only 0x20-0x7E is printable, newlines included
    raw = utf8_encode(text)
    if not raw:
        return False
    odd = sum(1 for b in raw if not 0x20 <= b <= 0x7E)
    return odd <= len(raw) * MAX_NON_PRINTABLE_RATIO


def encrypt(
    plaintext: str,
    recipient_pubkey: PublicKeyInput,
    sender_private_key_hex: str,
    encoding: str = DEFAULT_WIRE_ENCODING,
) -> str:
    """
    AES-256-CBC under the raw ECDH secret, fresh random IV per call.

    encoding:
      "base64" -> base64(iv || ciphertext)
      "hex"    -> hex(iv || ciphertext)
      "nip04"  -> base64(ciphertext)?iv=base64(iv)
    """
    _check_encoding(encoding)
    if not isinstance(plaintext, str) or not plaintext:
        raise FormatError("plaintext must be a non-empty string")

    key = derive_shared_secret(sender_private_key_hex, recipient_pubkey)
    iv = os.urandom(IV_LENGTH)
    try:
        ct = _aes_cbc_encrypt(key, iv, utf8_encode(plaintext))
    except ValueError as e:
        raise CryptoProviderError(f"AES-CBC encryption failed: {e}") from e
    return encode_payload(iv, ct, encoding)


def decrypt(
    wire: str,
    counterparty_pubkey: PublicKeyInput,
    private_key_hex: str,
    encoding: str = DEFAULT_WIRE_ENCODING,
    *,
    sink: DiagnosticSink | None = None,
) -> str:
    """
    Inverse of encrypt, called with the other side's pubkey and our private key.

    Bad padding, invalid UTF-8, empty output or mostly non-printable output
    all raise the same DecryptionError.
    """
    iv, ct = decode_payload(wire, encoding)
    key = derive_shared_secret(private_key_hex, counterparty_pubkey, sink=sink)

    try:
        pt = _aes_cbc_decrypt(key, iv, ct)
    except ValueError as e:
        emit(sink, f"decrypt: padding check failed ({e})")
        raise DecryptionError() from e

    try:
        text = utf8_decode(pt)
    except FormatError as e:
        emit(sink, "decrypt: plaintext is not valid UTF-8")
        raise DecryptionError() from e

    if not _looks_like_plaintext(text):
        emit(sink, "decrypt: plaintext failed the printable-text check")
        raise DecryptionError()
    return text
