"""Envelope header: recipient stanzas and the header MAC."""

import base64
from dataclasses import dataclass
from typing import BinaryIO, List, Sequence, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from bundler.exceptions import EnvelopeFormatError

ENVELOPE_VERSION_LINE = b"sealbox-envelope/v1"
STANZA_PREFIX = b"-> "
MAC_PREFIX = b"---"

X25519_STANZA = "X25519"
SCRYPT_STANZA = "scrypt"

MAX_HEADER_LINE_BYTES = 4096
MAX_STANZAS = 256


@dataclass(frozen=True)
class Stanza:
    """
    One recipient's wrapped copy of the file key.

    ``type`` tags the recipient kind (X25519, scrypt, ...); ``args`` are the
    kind-specific public parameters and ``body`` the wrapped key itself.
    """
    type: str
    args: Tuple[str, ...]
    body: bytes


@dataclass(frozen=True)
class Header:
    stanzas: List[Stanza]
    mac: bytes
    mac_input: bytes


def b64encode(data: bytes) -> str:
    return base64.b64encode(data).decode('ascii').rstrip('=')


def b64decode(text: str) -> bytes:
    pad = '=' * (-len(text) % 4)
    try:
        return base64.b64decode(text + pad, validate=True)
    except ValueError as e:
        raise EnvelopeFormatError(f"invalid base64 in header: {text[:16]!r}") from e


def _mac_key(file_key: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=b"header").derive(file_key)


def _compute_mac(file_key: bytes, mac_input: bytes) -> hmac.HMAC:
    h = hmac.HMAC(_mac_key(file_key), hashes.SHA256())
    h.update(mac_input)
    return h


def encode_header(stanzas: Sequence[Stanza], file_key: bytes) -> bytes:
    lines = [ENVELOPE_VERSION_LINE]
    for stanza in stanzas:
        lines.append(STANZA_PREFIX + " ".join((stanza.type,) + tuple(stanza.args)).encode('ascii'))
        lines.append(b64encode(stanza.body).encode('ascii'))
    mac_input = b"\n".join(lines) + b"\n" + MAC_PREFIX
    mac = _compute_mac(file_key, mac_input).finalize()
    return mac_input + b" " + b64encode(mac).encode('ascii') + b"\n"


def _read_line(src: BinaryIO) -> bytes:
    line = src.readline(MAX_HEADER_LINE_BYTES + 1)
    if not line.endswith(b"\n") or len(line) > MAX_HEADER_LINE_BYTES:
        raise EnvelopeFormatError("truncated or oversized header line")
    return line[:-1]


def read_header(src: BinaryIO) -> Header:
    """
    Parse the text header from the start of an envelope stream.

    Leaves ``src`` positioned at the first byte after the MAC line.
    """
    if _read_line(src) != ENVELOPE_VERSION_LINE:
        raise EnvelopeFormatError("not a sealbox envelope")

    consumed = [ENVELOPE_VERSION_LINE]
    stanzas: List[Stanza] = []

    while True:
        line = _read_line(src)

        if line.startswith(MAC_PREFIX + b" "):
            mac = b64decode(line[len(MAC_PREFIX) + 1:].decode('ascii'))
            mac_input = b"\n".join(consumed) + b"\n" + MAC_PREFIX
            return Header(stanzas=stanzas, mac=mac, mac_input=mac_input)

        if not line.startswith(STANZA_PREFIX):
            raise EnvelopeFormatError(f"unexpected header line: {line[:32]!r}")

        fields = line[len(STANZA_PREFIX):].decode('ascii', errors='replace').split(" ")
        if not fields or not fields[0]:
            raise EnvelopeFormatError("stanza without a type")

        body_line = _read_line(src)
        stanzas.append(Stanza(
            type=fields[0],
            args=tuple(fields[1:]),
            body=b64decode(body_line.decode('ascii', errors='replace')),
        ))
        consumed.extend([line, body_line])

        if len(stanzas) > MAX_STANZAS:
            raise EnvelopeFormatError("too many recipient stanzas")


def verify_header_mac(header: Header, file_key: bytes) -> None:
    try:
        _compute_mac(file_key, header.mac_input).verify(header.mac)
    except InvalidSignature as e:
        raise EnvelopeFormatError("header MAC mismatch") from e
