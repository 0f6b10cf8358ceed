import os
from dotenv import load_dotenv

load_dotenv()


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


PRIVATE_KEY_ENV = "NOSTR_NSEC"

# how far created_at may run ahead of the local clock
STRICT_FUTURE_SKEW = _int_env("NOSTR_STRICT_FUTURE_SKEW", 60)            # signed events
LOOSE_FUTURE_SKEW = _int_env("NOSTR_LOOSE_FUTURE_SKEW", 4 * 60 * 60)    # unsigned pre-validation

DEFAULT_WIRE_ENCODING = "base64"
WIRE_ENCODINGS = ("base64", "hex", "nip04")

TEXT_NOTE_KIND = 1
ENCRYPTED_DM_KIND = 4
