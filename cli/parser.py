"""Command parser for CLI input."""

import shlex

from cli.models import CommandRequest, DecryptCommand, HelpCommand, KeygenCommand


class ParseError(Exception):
    """Raised when command parsing fails."""

    pass


def parse_command(input_line: str) -> CommandRequest:
    """Parse a command line string into a CommandRequest object.

    Raises:
        ParseError: If command syntax is invalid
    """
    try:
        tokens = shlex.split(input_line)
    except ValueError as e:
        raise ParseError(f"Invalid syntax: {e}")

    return parse_args(tokens)


def parse_args(tokens: list[str]) -> CommandRequest:
    """Parse already tokenized arguments (e.g. ``sys.argv[1:]``).

    Returns:
        CommandRequest object (one of Keygen/Decrypt/Help)

    Raises:
        ParseError: If command syntax is invalid
    """
    if not tokens:
        raise ParseError("Empty command")

    command_name = tokens[0]

    if command_name == "keygen":
        return _parse_keygen(tokens[1:])
    elif command_name == "decrypt":
        return _parse_decrypt(tokens[1:])
    elif command_name in ("help", "-h", "--help"):
        return HelpCommand()
    else:
        raise ParseError(f"Unknown command: {command_name}")


def _take_value(args: list[str], index: int, flag: str) -> str:
    if index + 1 >= len(args):
        raise ParseError(f"{flag} requires a value")
    return args[index + 1]


def _parse_keygen(args: list[str]) -> KeygenCommand:
    """Parse 'keygen [-o FILE]' command."""
    output_path = None
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("-o", "--output"):
            output_path = _take_value(args, i, arg)
            i += 2
        else:
            raise ParseError(f"keygen: unexpected argument {arg}")

    return KeygenCommand(output_path=output_path)


def _parse_decrypt(args: list[str]) -> DecryptCommand:
    """Parse 'decrypt ENVELOPE -o OUT [-i IDENTITY_FILE]...' command."""
    envelope_path = None
    output_path = None
    identity_paths = []

    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("-o", "--output"):
            output_path = _take_value(args, i, arg)
            i += 2
        elif arg in ("-i", "--identity"):
            identity_paths.append(_take_value(args, i, arg))
            i += 2
        elif arg.startswith("-"):
            raise ParseError(f"decrypt: unknown option {arg}")
        elif envelope_path is None:
            envelope_path = arg
            i += 1
        else:
            raise ParseError(f"decrypt: unexpected argument {arg}")

    if envelope_path is None:
        raise ParseError("decrypt requires an envelope path")
    if output_path is None:
        raise ParseError("decrypt requires -o OUT")

    return DecryptCommand(
        envelope_path=envelope_path,
        output_path=output_path,
        identity_paths=tuple(identity_paths),
    )
