"""Archive building and recipient envelope encryption."""

from bundler.archive.zip_encoder import EncodeResult, encode_archive
from bundler.archive.envelope import decrypt_file, decrypt_stream, encrypt_stream, wrap_for_recipients
from bundler.archive.identities import (
    LazyPassphraseIdentity,
    PassphraseIdentity,
    PassphraseRecipient,
    X25519Identity,
    X25519Recipient,
    generate_keypair,
    public_key_from_private,
)

__all__ = [
    "EncodeResult",
    "encode_archive",
    "decrypt_file",
    "decrypt_stream",
    "encrypt_stream",
    "wrap_for_recipients",
    "LazyPassphraseIdentity",
    "PassphraseIdentity",
    "PassphraseRecipient",
    "X25519Identity",
    "X25519Recipient",
    "generate_keypair",
    "public_key_from_private",
]
