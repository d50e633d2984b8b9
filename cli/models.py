"""Command request data types for CLI."""

from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class KeygenCommand:
    """Generate a new identity."""

    output_path: str | None = None
    command: Literal["keygen"] = "keygen"


@dataclass(frozen=True)
class DecryptCommand:
    """Decrypt an envelope into a file."""

    envelope_path: str
    output_path: str
    identity_paths: tuple[str, ...] = ()
    command: Literal["decrypt"] = "decrypt"


@dataclass(frozen=True)
class HelpCommand:
    command: Literal["help"] = "help"


CommandRequest = KeygenCommand | DecryptCommand | HelpCommand
