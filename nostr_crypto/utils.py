import os
import string
from typing import Callable

from dotenv import load_dotenv
from bech32 import bech32_decode, convertbits

from .config import PRIVATE_KEY_ENV
from .errors import FormatError

# receives one human-readable line per failure
DiagnosticSink = Callable[[str], None]

_HEX_DIGITS = frozenset(string.hexdigits)


def emit(sink: DiagnosticSink | None, message: str) -> None:
    if sink is not None:
        sink(message)


def is_hex(s, length: int | None = None) -> bool:
    if not isinstance(s, str) or len(s) % 2:
        return False
    if length is not None and len(s) != length:
        return False
    return all(c in _HEX_DIGITS for c in s)


def hex_to_bytes(s: str) -> bytes:
    """
    Strict hex decoding: odd length or any non-hex character is a FormatError.
    Leading zero bytes are preserved.
    """
    if not isinstance(s, str):
        raise FormatError("hex input must be a string")
    if len(s) % 2:
        raise FormatError("hex string has odd length")
    if not all(c in _HEX_DIGITS for c in s):
        raise FormatError("hex string contains non-hex characters")
    return bytes.fromhex(s)


def bytes_to_hex(b: bytes) -> str:
    return bytes(b).hex()


def utf8_encode(s: str) -> bytes:
    return s.encode("utf-8")


def utf8_decode(b: bytes) -> str:
    # strict: replacement characters would hide corrupted ciphertext
    try:
        return bytes(b).decode("utf-8")
    except UnicodeDecodeError as e:
        raise FormatError(f"invalid UTF-8: {e.reason}") from e


def is_32byte_hex(s: str | None) -> bool:
    if not s:
        return False
    return is_hex(s.strip(), 64)


def require_32byte_hex(s: str | None, label: str) -> str:
    """
    Validate and return normalized lowercase 64-hex (32 bytes).
    """
    if not is_32byte_hex(s):
        raise FormatError(f"{label} must be 64-hex (32 bytes)")
    return s.strip().lower()


def decode_nip19(bech: str) -> tuple[str, bytes]:
    hrp, data = bech32_decode(bech)
    if hrp is None or data is None:
        raise FormatError("Invalid bech32 string")
    decoded = convertbits(data, 5, 8, False)
    if decoded is None:
        raise FormatError("convertbits failed")
    return hrp, bytes(decoded)


def normalize_pubkey_input(s: str) -> str:
    """
    Accepts either:
      - 64-hex pubkey
      - npub1... (NIP-19)
    Returns 64-hex pubkey (lowercase).
    """
    s = (s or "").strip()

    if is_32byte_hex(s):
        return s.lower()

    if s.startswith("npub1"):
        hrp, data = decode_nip19(s)
        if hrp != "npub" or len(data) != 32:
            raise FormatError("Invalid npub (must decode to 32 bytes)")
        return data.hex()

    raise FormatError("pubkey must be 64-hex or npub1...")


def get_private_key_from_env() -> str:
    """
    Read the signing key from .env / the environment and return it as 64-hex.
    NOSTR_NSEC may hold an nsec1... string or plain hex.
    """
    load_dotenv()
    raw = (os.getenv(PRIVATE_KEY_ENV) or "").strip()
    if not raw:
        raise FormatError(f"Missing {PRIVATE_KEY_ENV} in .env")

    if raw.startswith("nsec1"):
        hrp, sk_bytes = decode_nip19(raw)
        if hrp != "nsec" or len(sk_bytes) != 32:
            raise FormatError(f"Invalid {PRIVATE_KEY_ENV}")
        return sk_bytes.hex()

    return require_32byte_hex(raw, PRIVATE_KEY_ENV)
