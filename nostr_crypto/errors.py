class NostrCryptoError(ValueError):
    pass


class FormatError(NostrCryptoError):
    """Malformed hex, UTF-8, base64 or a wrong-length identifier."""


class InvalidKeyError(NostrCryptoError):
    """Private key out of range, or a public key that does not match it."""


class DecryptionError(NostrCryptoError):
    """
    Opaque on purpose: a wrong key and a corrupted ciphertext look the same
    to AES-CBC, so callers only ever get this one message.
    """

    def __init__(self, message: str = "Invalid key or corrupted message"):
        super().__init__(message)


class CryptoProviderError(NostrCryptoError):
    """The underlying curve / cipher library failed."""


class ValidationError(NostrCryptoError):
    def __init__(self, errors: list[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "invalid event")
