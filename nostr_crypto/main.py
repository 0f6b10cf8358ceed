import json
import sys

from .config import DEFAULT_WIRE_ENCODING, WIRE_ENCODINGS
from .errors import NostrCryptoError
from .events import create_event, format_event_for_relay
from .keys import derive_public_key, generate_key_pair
from .nip04 import decrypt, encrypt
from .signing import sign_event
from .utils import get_private_key_from_env, normalize_pubkey_input
from .validation import validate_signed_event


def print_header(title: str):
    print("\n" + "=" * 40)
    print(title)
    print("=" * 40)


def warn(message: str) -> None:
    print(f"⚠️ {message}", file=sys.stderr)


def ask_encoding() -> str:
    enc = input(f"Encoding {'/'.join(WIRE_ENCODINGS)} [{DEFAULT_WIRE_ENCODING}]: ").strip().lower()
    return enc or DEFAULT_WIRE_ENCODING


def do_keys(privkey_hex: str):
    print_header("KEYS")
    pub = derive_public_key(privkey_hex)
    print(f"x-only pubkey    : {pub.x_only_hex}")
    print(f"compressed pubkey: {pub.compressed_hex}")


def do_sign_note(privkey_hex: str):
    print_header("SIGN NOTE")
    content = input("Enter content: ").strip()
    if not content:
        print("⚠️ empty content, cancelled")
        return
    ev = sign_event(create_event(kind=1, content=content), privkey_hex)
    print(format_event_for_relay(ev))


def do_validate():
    print_header("VALIDATE")
    raw = input("Paste event JSON: ").strip()
    try:
        event = json.loads(raw)
    except json.JSONDecodeError as e:
        print(f"❌ not JSON: {e.msg}")
        return

    result = validate_signed_event(event, sink=warn)
    if result.is_valid:
        print("✅ valid event")
    else:
        for err in result.errors:
            print(f" - {err}")


def do_encrypt(privkey_hex: str):
    print_header("ENCRYPT (NIP-04)")
    recipient = normalize_pubkey_input(input("Recipient pubkey (64-hex or npub1...): "))
    msg = input("Enter message: ").strip()
    print(encrypt(msg, recipient, privkey_hex, encoding=ask_encoding()))


def do_decrypt(privkey_hex: str):
    print_header("DECRYPT (NIP-04)")
    sender = normalize_pubkey_input(input("Sender pubkey (64-hex or npub1...): "))
    payload = input("Encrypted payload: ").strip()
    print(decrypt(payload, sender, privkey_hex, encoding=ask_encoding(), sink=warn))


def do_generate():
    print_header("NEW KEY PAIR")
    sk_hex, pub = generate_key_pair()
    print(f"private key (hex): {sk_hex}")
    print(f"public key  (hex): {pub.x_only_hex}")


def main():
    privkey_hex = get_private_key_from_env()

    while True:
        print_header("MENU")
        print("1) Show keys")
        print("2) Sign text note")
        print("3) Validate event")
        print("4) Encrypt")
        print("5) Decrypt")
        print("6) Generate key pair")
        print("0) Exit")

        choice = input("\nSelect: ").strip()

        try:
            if choice == "1":
                do_keys(privkey_hex)
            elif choice == "2":
                do_sign_note(privkey_hex)
            elif choice == "3":
                do_validate()
            elif choice == "4":
                do_encrypt(privkey_hex)
            elif choice == "5":
                do_decrypt(privkey_hex)
            elif choice == "6":
                do_generate()
            elif choice == "0":
                print("\n👋 Bye")
                return
            else:
                print("⚠️ invalid option")
        except NostrCryptoError as e:
            print(f"❌ {type(e).__name__}: {e}")


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        print("\n👋 Stopped")
