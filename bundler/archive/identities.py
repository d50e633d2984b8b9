"""Envelope recipients (who can open) and identities (what opens)."""

import base64
import binascii
import os
from typing import Callable, List, Sequence, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from common.logging_config import get_logger
from bundler.archive.stanza import SCRYPT_STANZA, X25519_STANZA, Stanza, b64decode, b64encode
from bundler.exceptions import (
    EnvelopeFormatError,
    IncorrectIdentityError,
    IncorrectPassphraseError,
    PassphraseUnavailableError,
)

logger = get_logger(__name__)

FILE_KEY_SIZE = 16
X25519_KEY_SIZE = 32
SCRYPT_SALT_SIZE = 16
DEFAULT_SCRYPT_WORK_FACTOR = 18
MAX_SCRYPT_WORK_FACTOR = 22

_X25519_INFO = b"sealbox-envelope/v1/X25519"
_SCRYPT_SALT_LABEL = b"sealbox-envelope/v1/scrypt"
_WRAP_NONCE = b"\x00" * 12


# ---- key encoding ----

def _raw_public(key: X25519PublicKey) -> bytes:
    return key.public_bytes(serialization.Encoding.Raw, serialization.PublicFormat.Raw)


def _raw_private(key: X25519PrivateKey) -> bytes:
    return key.private_bytes(
        serialization.Encoding.Raw,
        serialization.PrivateFormat.Raw,
        serialization.NoEncryption(),
    )


def _decode_key_b64(encoded: str) -> bytes:
    try:
        raw = base64.b64decode(encoded.strip(), validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("key is not valid base64") from e
    if len(raw) != X25519_KEY_SIZE:
        raise ValueError(f"key must be {X25519_KEY_SIZE} bytes, got {len(raw)}")
    return raw


def parse_public_key(encoded: str) -> X25519PublicKey:
    """
    Decode a base64 X25519 public key.

    Raises:
        ValueError: If the value is not a 32-byte base64 key
    """
    return X25519PublicKey.from_public_bytes(_decode_key_b64(encoded))


def parse_private_key(encoded: str) -> X25519PrivateKey:
    return X25519PrivateKey.from_private_bytes(_decode_key_b64(encoded))


def generate_keypair() -> Tuple[str, str]:
    """
    Generate a new X25519 keypair.

    Returns:
        (private key, public key), both base64 encoded
    """
    private_key = X25519PrivateKey.generate()
    return (
        base64.b64encode(_raw_private(private_key)).decode('ascii'),
        base64.b64encode(_raw_public(private_key.public_key())).decode('ascii'),
    )


def public_key_from_private(encoded_private: str) -> str:
    private_key = parse_private_key(encoded_private)
    return base64.b64encode(_raw_public(private_key.public_key())).decode('ascii')


def _x25519_wrap_key(shared_secret: bytes, ephemeral_public: bytes, recipient_public: bytes) -> bytes:
    return HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=ephemeral_public + recipient_public,
        info=_X25519_INFO,
    ).derive(shared_secret)


def _scrypt_wrap_key(passphrase: str, salt: bytes, work_factor: int) -> bytes:
    return Scrypt(
        salt=_SCRYPT_SALT_LABEL + salt,
        length=32,
        n=2 ** work_factor,
        r=8,
        p=1,
    ).derive(passphrase.encode('utf-8'))


# ---- recipients ----

class X25519Recipient:
    """Public-key recipient: anyone holding the matching private key can unwrap."""

    def __init__(self, public_key: X25519PublicKey):
        self._public_key = public_key
        self._public_bytes = _raw_public(public_key)

    @classmethod
    def from_public_key(cls, encoded: str) -> "X25519Recipient":
        return cls(parse_public_key(encoded))

    def wrap(self, file_key: bytes) -> List[Stanza]:
        ephemeral = X25519PrivateKey.generate()
        ephemeral_public = _raw_public(ephemeral.public_key())
        shared_secret = ephemeral.exchange(self._public_key)

        wrap_key = _x25519_wrap_key(shared_secret, ephemeral_public, self._public_bytes)
        body = ChaCha20Poly1305(wrap_key).encrypt(_WRAP_NONCE, file_key, None)
        return [Stanza(type=X25519_STANZA, args=(b64encode(ephemeral_public),), body=body)]


class PassphraseRecipient:
    """
    Passphrase recipient. Must be the only recipient of an envelope.
    """

    def __init__(self, passphrase: str, work_factor: int = DEFAULT_SCRYPT_WORK_FACTOR):
        if not passphrase:
            raise ValueError("passphrase must not be empty")
        self._passphrase = passphrase
        self._work_factor = work_factor

    def wrap(self, file_key: bytes) -> List[Stanza]:
        salt = os.urandom(SCRYPT_SALT_SIZE)
        wrap_key = _scrypt_wrap_key(self._passphrase, salt, self._work_factor)
        body = ChaCha20Poly1305(wrap_key).encrypt(_WRAP_NONCE, file_key, None)
        return [Stanza(type=SCRYPT_STANZA, args=(b64encode(salt), str(self._work_factor)), body=body)]


# ---- identities ----

class X25519Identity:
    def __init__(self, private_key: X25519PrivateKey):
        self._private_key = private_key
        self._public_bytes = _raw_public(private_key.public_key())

    @classmethod
    def from_private_key(cls, encoded: str) -> "X25519Identity":
        return cls(parse_private_key(encoded))

    def unwrap(self, stanzas: Sequence[Stanza]) -> bytes:
        for stanza in stanzas:
            if stanza.type != X25519_STANZA:
                continue
            if len(stanza.args) != 1:
                raise EnvelopeFormatError("invalid X25519 stanza")

            ephemeral_public = b64decode(stanza.args[0])
            if len(ephemeral_public) != X25519_KEY_SIZE or len(stanza.body) != FILE_KEY_SIZE + 16:
                raise EnvelopeFormatError("invalid X25519 stanza")

            try:
                shared_secret = self._private_key.exchange(
                    X25519PublicKey.from_public_bytes(ephemeral_public)
                )
            except ValueError as e:
                raise EnvelopeFormatError("invalid X25519 ephemeral share") from e

            wrap_key = _x25519_wrap_key(shared_secret, ephemeral_public, self._public_bytes)
            try:
                return ChaCha20Poly1305(wrap_key).decrypt(_WRAP_NONCE, stanza.body, None)
            except InvalidTag:
                continue

        raise IncorrectIdentityError("no matching X25519 stanza")


def _check_passphrase_stanzas(stanzas: Sequence[Stanza]) -> Stanza:
    for stanza in stanzas:
        if stanza.type == SCRYPT_STANZA and len(stanzas) != 1:
            raise EnvelopeFormatError("a passphrase recipient must be the only one")
    if len(stanzas) != 1 or stanzas[0].type != SCRYPT_STANZA:
        raise IncorrectIdentityError("envelope is not passphrase-protected")
    return stanzas[0]


class PassphraseIdentity:
    def __init__(self, passphrase: str, max_work_factor: int = MAX_SCRYPT_WORK_FACTOR):
        self._passphrase = passphrase
        self._max_work_factor = max_work_factor

    def unwrap(self, stanzas: Sequence[Stanza]) -> bytes:
        stanza = _check_passphrase_stanzas(stanzas)
        if len(stanza.args) != 2 or not stanza.args[1].isdigit():
            raise EnvelopeFormatError("invalid scrypt stanza")

        salt = b64decode(stanza.args[0])
        work_factor = int(stanza.args[1])
        if len(salt) != SCRYPT_SALT_SIZE or len(stanza.body) != FILE_KEY_SIZE + 16:
            raise EnvelopeFormatError("invalid scrypt stanza")
        if not 1 <= work_factor <= self._max_work_factor:
            raise EnvelopeFormatError(f"scrypt work factor {work_factor} out of range")

        wrap_key = _scrypt_wrap_key(self._passphrase, salt, work_factor)
        try:
            return ChaCha20Poly1305(wrap_key).decrypt(_WRAP_NONCE, stanza.body, None)
        except InvalidTag as e:
            raise IncorrectIdentityError("passphrase does not match") from e


class LazyPassphraseIdentity:
    """
    Passphrase identity that asks for the passphrase only once it meets a
    passphrase stanza, then delegates to PassphraseIdentity.

    Meant for a single interactive user, so a wrong passphrase is reported
    as IncorrectPassphraseError rather than as a non-matching identity.
    """

    def __init__(self, prompt: Callable[[], str], max_work_factor: int = MAX_SCRYPT_WORK_FACTOR):
        self._prompt = prompt
        self._max_work_factor = max_work_factor

    def unwrap(self, stanzas: Sequence[Stanza]) -> bytes:
        _check_passphrase_stanzas(stanzas)

        try:
            passphrase = self._prompt()
        except (EOFError, KeyboardInterrupt, OSError) as e:
            raise PassphraseUnavailableError(f"could not read passphrase: {e}") from e

        identity = PassphraseIdentity(passphrase, max_work_factor=self._max_work_factor)
        try:
            return identity.unwrap(stanzas)
        except IncorrectIdentityError as e:
            raise IncorrectPassphraseError() from e
