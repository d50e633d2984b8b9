"""
Multi-recipient envelope encryption.

An envelope is a text header followed by a binary payload::

    sealbox-envelope/v1
    -> X25519 <ephemeral public key>
    <wrapped file key>
    ...
    --- <header MAC>
    <16-byte nonce><payload chunks>

A random file key is wrapped once per recipient, so any one recipient's
identity opens the envelope. The payload is encrypted once, in fixed-size
ChaCha20-Poly1305 chunks under a key derived from the file key and nonce.
"""

import os
from pathlib import Path
from typing import BinaryIO, Iterable, Protocol, Sequence, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from common.constants import ENVELOPE_CHUNK_SIZE_BYTES, ENVELOPE_SUFFIX
from common.logging_config import get_logger
from bundler.archive.identities import FILE_KEY_SIZE, X25519Recipient
from bundler.archive.stanza import (
    SCRYPT_STANZA,
    Stanza,
    encode_header,
    read_header,
    verify_header_mac,
)
from bundler.exceptions import (
    EncryptionError,
    EnvelopeFormatError,
    IncorrectIdentityError,
    NoIdentityMatchedError,
)

logger = get_logger(__name__)

PathLike = Union[str, Path]

PAYLOAD_NONCE_SIZE = 16
TAG_SIZE = 16
_CIPHERTEXT_CHUNK_SIZE = ENVELOPE_CHUNK_SIZE_BYTES + TAG_SIZE


class Recipient(Protocol):
    def wrap(self, file_key: bytes) -> list:
        ...


class Identity(Protocol):
    def unwrap(self, stanzas: Sequence[Stanza]) -> bytes:
        ...


def _payload_key(file_key: bytes, nonce: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=nonce, info=b"payload").derive(file_key)


def _chunk_nonce(counter: int, last: bool) -> bytes:
    return counter.to_bytes(11, 'big') + (b"\x01" if last else b"\x00")


def encrypt_stream(src: BinaryIO, dst: BinaryIO, recipients: Sequence[Recipient]) -> None:
    """
    Encrypt ``src`` into ``dst`` for every recipient in ``recipients``.

    Raises:
        EncryptionError: No recipients, or a passphrase recipient mixed with others
    """
    if not recipients:
        raise EncryptionError("no recipients specified")

    file_key = os.urandom(FILE_KEY_SIZE)
    stanzas = []
    for recipient in recipients:
        stanzas.extend(recipient.wrap(file_key))

    if any(s.type == SCRYPT_STANZA for s in stanzas) and len(stanzas) != 1:
        raise EncryptionError("a passphrase recipient must be the only one")

    dst.write(encode_header(stanzas, file_key))

    nonce = os.urandom(PAYLOAD_NONCE_SIZE)
    dst.write(nonce)
    aead = ChaCha20Poly1305(_payload_key(file_key, nonce))

    counter = 0
    chunk = src.read(ENVELOPE_CHUNK_SIZE_BYTES)
    while True:
        following = src.read(ENVELOPE_CHUNK_SIZE_BYTES) if chunk else b""
        last = not following
        dst.write(aead.encrypt(_chunk_nonce(counter, last), chunk, None))
        if last:
            break
        chunk = following
        counter += 1


def _unwrap_file_key(stanzas: Sequence[Stanza], identities: Iterable[Identity]) -> bytes:
    for identity in identities:
        try:
            file_key = identity.unwrap(stanzas)
        except IncorrectIdentityError:
            continue
        if len(file_key) != FILE_KEY_SIZE:
            raise EnvelopeFormatError("unwrapped file key has the wrong size")
        return file_key
    raise NoIdentityMatchedError()


def decrypt_stream(src: BinaryIO, dst: BinaryIO, identities: Sequence[Identity]) -> None:
    """
    Decrypt an envelope from ``src`` into ``dst``.

    Identities are tried in order; each sees every stanza.

    Raises:
        NoIdentityMatchedError: None of the identities could unwrap the file key
        EnvelopeFormatError: Malformed header, bad MAC or tampered payload
    """
    header = read_header(src)
    file_key = _unwrap_file_key(header.stanzas, identities)
    verify_header_mac(header, file_key)

    nonce = src.read(PAYLOAD_NONCE_SIZE)
    if len(nonce) != PAYLOAD_NONCE_SIZE:
        raise EnvelopeFormatError("truncated payload nonce")
    aead = ChaCha20Poly1305(_payload_key(file_key, nonce))

    counter = 0
    chunk = src.read(_CIPHERTEXT_CHUNK_SIZE)
    while True:
        if len(chunk) < TAG_SIZE:
            raise EnvelopeFormatError("truncated payload")
        following = src.read(_CIPHERTEXT_CHUNK_SIZE)
        last = not following
        if last and counter > 0 and len(chunk) == TAG_SIZE:
            raise EnvelopeFormatError("empty trailing payload chunk")
        try:
            dst.write(aead.decrypt(_chunk_nonce(counter, last), chunk, None))
        except InvalidTag as e:
            raise EnvelopeFormatError(f"payload chunk {counter} failed authentication") from e
        if last:
            break
        chunk = following
        counter += 1


def wrap_for_recipients(
    artifact_path: PathLike,
    dest_dir: PathLike,
    public_keys: Sequence[str],
) -> Path:
    """
    Re-wrap a finished artifact so any one of several recipients can open it.

    The envelope is written to ``dest_dir/<artifact name>.sealed`` through a
    temporary file; once it exists the plain artifact is deleted.

    Args:
        artifact_path: The artifact to wrap
        dest_dir: Directory receiving the envelope
        public_keys: Base64 X25519 public keys of the recipients

    Returns:
        Path of the envelope

    Raises:
        EncryptionError: Invalid key, I/O failure, no recipients or an
            envelope already at the destination
    """
    artifact_path = Path(artifact_path)
    dest_path = Path(dest_dir) / (artifact_path.name + ENVELOPE_SUFFIX)
    tmp_path = dest_path.with_name(dest_path.name + ".part")

    if dest_path.exists():
        raise EncryptionError(f"refusing to overwrite existing envelope {dest_path}")

    try:
        recipients = [X25519Recipient.from_public_key(key) for key in public_keys]
    except ValueError as e:
        raise EncryptionError(f"invalid recipient public key: {e}") from e

    try:
        dest_path.parent.mkdir(parents=True, exist_ok=True)
        with open(artifact_path, 'rb') as src, open(tmp_path, 'wb') as dst:
            encrypt_stream(src, dst, recipients)
            dst.flush()
            os.fsync(dst.fileno())
        os.replace(tmp_path, dest_path)
    except OSError as e:
        tmp_path.unlink(missing_ok=True)
        raise EncryptionError(f"unable to encrypt {artifact_path}: {e}") from e
    except EncryptionError:
        tmp_path.unlink(missing_ok=True)
        raise

    try:
        os.remove(artifact_path)
    except OSError as e:
        logger.warning(f"Envelope written but plain artifact {artifact_path} not removed: {e}")

    logger.info(f"Wrapped {artifact_path.name} for {len(recipients)} recipient(s)")
    return dest_path


def decrypt_file(envelope_path: PathLike, output_path: PathLike, identities: Sequence[Identity]) -> Path:
    """
    Decrypt an envelope file; ``output_path`` only appears once fully authenticated.
    """
    output_path = Path(output_path)
    tmp_path = output_path.with_name(output_path.name + ".part")

    try:
        with open(envelope_path, 'rb') as src, open(tmp_path, 'wb') as dst:
            decrypt_stream(src, dst, identities)
        os.replace(tmp_path, output_path)
    finally:
        tmp_path.unlink(missing_ok=True)

    return output_path
