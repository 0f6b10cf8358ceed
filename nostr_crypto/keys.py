import hashlib
from dataclasses import dataclass
from typing import Union

from secp256k1 import PrivateKey
from cryptography.hazmat.primitives.asymmetric import ec

from .errors import CryptoProviderError, FormatError, InvalidKeyError
from .utils import bytes_to_hex, hex_to_bytes, utf8_encode

CURVE_ORDER = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

PRIVATE_KEY_LENGTH = 32
X_ONLY_LENGTH = 32
COMPRESSED_LENGTH = 33


@dataclass(frozen=True)
class PublicKey:
    """
    Both encodings of one secp256k1 public key.

    compressed: 33 bytes, 0x02/0x03 parity prefix + x. Used for ECDH.
    x_only:     32 bytes, BIP340 form. Used for signing / verification and
                as the "pubkey" field of events.
    """

    compressed: bytes
    x_only: bytes

    def __post_init__(self):
        if len(self.compressed) != COMPRESSED_LENGTH or self.compressed[0] not in (2, 3):
            raise FormatError("compressed public key must be 33 bytes with a 02/03 prefix")
        if len(self.x_only) != X_ONLY_LENGTH:
            raise FormatError("x-only public key must be 32 bytes")
        if self.compressed[1:] != self.x_only:
            raise InvalidKeyError("compressed and x-only encodings disagree")

    @property
    def compressed_hex(self) -> str:
        return bytes_to_hex(self.compressed)

    @property
    def x_only_hex(self) -> str:
        return bytes_to_hex(self.x_only)

    @classmethod
    def from_private_key(cls, private_key) -> "PublicKey":
        return derive_public_key(private_key)

    @classmethod
    def from_compressed_hex(cls, compressed_hex: str) -> "PublicKey":
        # for an already-known compressed key, x-only is the key minus its prefix byte
        raw = hex_to_bytes(compressed_hex.strip())
        if len(raw) != COMPRESSED_LENGTH:
            raise FormatError("compressed public key must be 66-hex (33 bytes)")
        _load_point(raw)
        return cls(compressed=raw, x_only=raw[1:])


# A public key parameter is either hex (64 x-only or 66 compressed) or a PublicKey.
PublicKeyInput = Union[str, PublicKey]


@dataclass(frozen=True)
class KeyPairCheck:
    compressed_matches: bool
    x_only_matches: bool

    @property
    def is_valid(self) -> bool:
        return self.compressed_matches and self.x_only_matches

    @property
    def mismatched(self) -> list[str]:
        out = []
        if not self.compressed_matches:
            out.append("compressed")
        if not self.x_only_matches:
            out.append("x-only")
        return out

    def raise_for_mismatch(self) -> None:
        if not self.is_valid:
            raise InvalidKeyError(
                "Public key does not match private key ({})".format(", ".join(self.mismatched))
            )


def _load_point(compressed: bytes) -> ec.EllipticCurvePublicKey:
    try:
        return ec.EllipticCurvePublicKey.from_encoded_point(ec.SECP256K1(), compressed)
    except ValueError as e:
        raise InvalidKeyError("public key is not a valid secp256k1 point") from e


def private_key_bytes(private_key) -> bytes:
    """
    Normalize a private key given as 32 bytes or 64-hex and check its range.
    """
    if isinstance(private_key, str):
        sk = hex_to_bytes(private_key.strip())
    elif isinstance(private_key, (bytes, bytearray)):
        sk = bytes(private_key)
    else:
        raise FormatError("private key must be bytes or hex")

    if len(sk) != PRIVATE_KEY_LENGTH:
        raise FormatError("private key must be 32 bytes (64-hex)")
    if not is_valid_private_key(sk):
        raise InvalidKeyError("private key is outside the secp256k1 scalar range")
    return sk


def is_valid_private_key(sk: bytes) -> bool:
    if not isinstance(sk, (bytes, bytearray)) or len(sk) != PRIVATE_KEY_LENGTH:
        return False
    return 0 < int.from_bytes(sk, "big") < CURVE_ORDER


def derive_public_key(private_key) -> PublicKey:
    """
    Compute both public key encodings from a private key.

    The compressed point comes from libsecp256k1, the BIP340 x coordinate
    from the cryptography EC backend; the two must agree.
    """
    sk = private_key_bytes(private_key)

    try:
        compressed = PrivateKey(sk, raw=True).pubkey.serialize(compressed=True)
        numbers = ec.derive_private_key(int.from_bytes(sk, "big"), ec.SECP256K1()).public_key().public_numbers()
    except ValueError as e:
        raise CryptoProviderError(f"public key derivation failed: {e}") from e

    x_only = numbers.x.to_bytes(X_ONLY_LENGTH, "big")
    if compressed[1:] != x_only:
        raise CryptoProviderError("curve providers disagree on the public key")
    return PublicKey(compressed=compressed, x_only=x_only)


def validate_key_pair(pubkey: PublicKeyInput, private_key_hex: str) -> KeyPairCheck:
    """
    Re-derive from the private key and compare both encodings.
    A bare hex pubkey only carries one encoding; the other is compared
    through the stripped / prefixed form of the same value.
    """
    derived = derive_public_key(private_key_hex)

    if isinstance(pubkey, PublicKey):
        compressed, x_only = pubkey.compressed, pubkey.x_only
    else:
        raw = hex_to_bytes(pubkey.strip())
        if len(raw) == COMPRESSED_LENGTH:
            compressed, x_only = raw, raw[1:]
        elif len(raw) == X_ONLY_LENGTH:
            compressed, x_only = None, raw
        else:
            raise FormatError("public key must be 64-hex (x-only) or 66-hex (compressed)")

    return KeyPairCheck(
        compressed_matches=compressed is None or compressed == derived.compressed,
        x_only_matches=x_only == derived.x_only,
    )


def resolve_compressed(pubkey: PublicKeyInput) -> bytes:
    """
    33-byte form used for ECDH. Bare x-only hex is taken as the even-parity
    point (0x02 prefix), which is how NIP-04 lifts Nostr pubkeys.
    """
    if isinstance(pubkey, PublicKey):
        return pubkey.compressed

    raw = hex_to_bytes((pubkey or "").strip())
    if len(raw) == X_ONLY_LENGTH:
        return b"\x02" + raw
    if len(raw) == COMPRESSED_LENGTH and raw[0] in (2, 3):
        return raw
    raise FormatError("public key must be 64-hex (x-only) or 66-hex (compressed)")


def resolve_x_only_hex(pubkey: PublicKeyInput) -> str:
    if isinstance(pubkey, PublicKey):
        return pubkey.x_only_hex

    raw = hex_to_bytes((pubkey or "").strip())
    if len(raw) == X_ONLY_LENGTH:
        return bytes_to_hex(raw)
    if len(raw) == COMPRESSED_LENGTH and raw[0] in (2, 3):
        return bytes_to_hex(raw[1:])
    raise FormatError("public key must be 64-hex (x-only) or 66-hex (compressed)")


def validate_public_key(pubkey: PublicKeyInput) -> bool:
    try:
        _load_point(resolve_compressed(pubkey))
    except (FormatError, InvalidKeyError):
        return False
    return True


def generate_private_key() -> str:
    # libsecp256k1 draws the scalar from os.urandom and range-checks it
    return bytes_to_hex(PrivateKey().private_key)


def generate_key_pair(seed_phrase: str | None = None) -> tuple[str, PublicKey]:
    """
    Returns (private_key_hex, PublicKey).
    With a seed phrase the key is sha256(seed), re-hashed until it is a valid scalar.
    """
    if seed_phrase is None:
        sk_hex = generate_private_key()
        return sk_hex, derive_public_key(sk_hex)

    sk = hashlib.sha256(utf8_encode(seed_phrase)).digest()
    while not is_valid_private_key(sk):
        sk = hashlib.sha256(sk).digest()
    return bytes_to_hex(sk), derive_public_key(sk)
