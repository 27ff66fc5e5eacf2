"""Secret encryption exports."""
from .cipher import DecryptError, SecretCipher, derive_key, generate_passphrase

__all__ = [
    "DecryptError",
    "SecretCipher",
    "derive_key",
    "generate_passphrase",
]
