"""Command handler functions for CLI operations."""

import os
from pathlib import Path
from typing import Callable, List, Optional

from prompt_toolkit import prompt

from common.logging_config import get_logger
from bundler.archive.envelope import decrypt_file
from bundler.archive.identities import (
    LazyPassphraseIdentity,
    X25519Identity,
    generate_keypair,
    public_key_from_private,
)
from bundler.exceptions import (
    EnvelopeFormatError,
    IncorrectPassphraseError,
    NoIdentityMatchedError,
    PassphraseUnavailableError,
)
from cli.constants import GREEN, IDENTITY_FILE_HEADER, PASSPHRASE_PROMPT, RED, RESET
from cli.models import DecryptCommand, KeygenCommand

logger = get_logger(__name__)


class IdentityFileError(Exception):
    """Raised when an identity file cannot be read or holds no key."""

    pass


def prompt_passphrase() -> str:
    """Read a passphrase from the terminal without echoing it."""
    return prompt(PASSPHRASE_PROMPT, is_password=True)


def format_identity_file(private_key: str, public_key: str) -> str:
    return f"{IDENTITY_FILE_HEADER}\n# public key: {public_key}\n{private_key}\n"


def read_identity_file(path: str) -> List[X25519Identity]:
    """
    Load every private key of an identity file.

    Blank lines and lines starting with '#' are ignored.

    Raises:
        IdentityFileError: File unreadable, or a line is not a valid key
    """
    try:
        lines = Path(path).read_text().splitlines()
    except OSError as e:
        raise IdentityFileError(f"cannot read identity file {path}: {e}") from e

    identities = []
    for number, line in enumerate(lines, start=1):
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        try:
            identities.append(X25519Identity.from_private_key(line))
        except ValueError as e:
            raise IdentityFileError(f"{path}:{number}: invalid private key ({e})") from e

    if not identities:
        raise IdentityFileError(f"no identities found in {path}")
    return identities


def handle_keygen(cmd: KeygenCommand) -> str:
    """
    Handle 'keygen' command.

    Writes the identity to ``cmd.output_path`` (mode 0600) or returns it
    for printing. The public key is what gets registered with the service.
    """
    private_key, public_key = generate_keypair()
    content = format_identity_file(private_key, public_key)

    if cmd.output_path is None:
        return content.rstrip("\n")

    path = Path(cmd.output_path)
    if path.exists():
        return f"{RED}Refusing to overwrite existing file {path}{RESET}"

    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
    with os.fdopen(fd, 'w') as f:
        f.write(content)

    logger.info(f"Identity written to {path}")
    return f"Public key: {public_key_from_private(private_key)}"


def handle_decrypt(cmd: DecryptCommand, passphrase_prompt: Optional[Callable[[], str]] = None) -> str:
    """
    Handle 'decrypt' command.

    Args:
        cmd: DecryptCommand with envelope, output and identity paths
        passphrase_prompt: Optional prompt function for dependency injection (testing)

    Returns:
        Success or error message
    """
    identities = []
    try:
        for identity_path in cmd.identity_paths:
            identities.extend(read_identity_file(identity_path))
    except IdentityFileError as e:
        return f"{RED}Error: {e}{RESET}"

    # only consulted when the envelope turns out to be passphrase-protected
    identities.append(LazyPassphraseIdentity(passphrase_prompt or prompt_passphrase))

    logger.info(f"Decrypting {cmd.envelope_path} with {len(cmd.identity_paths)} identity file(s)")
    try:
        output = decrypt_file(cmd.envelope_path, cmd.output_path, identities)
    except IncorrectPassphraseError:
        return f"{RED}Error: incorrect passphrase{RESET}"
    except NoIdentityMatchedError:
        return f"{RED}Error: no identity matched any recipient{RESET}"
    except PassphraseUnavailableError as e:
        return f"{RED}Error: {e}{RESET}"
    except EnvelopeFormatError as e:
        return f"{RED}Error: malformed or tampered envelope: {e}{RESET}"
    except OSError as e:
        return f"{RED}Error: {e}{RESET}"

    return f"{GREEN}Decrypted to {output}{RESET}"
