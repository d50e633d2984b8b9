"""CLI entry point."""

import os
import sys

from common.logging_config import setup_logging
from cli.commands import handle_decrypt, handle_keygen
from cli.constants import HELP_TEXT
from cli.models import DecryptCommand, KeygenCommand
from cli.parser import ParseError, parse_args


def dispatch_command(cmd_obj) -> str:
    """Dispatch parsed command to appropriate handler."""
    if isinstance(cmd_obj, KeygenCommand):
        return handle_keygen(cmd_obj)
    elif isinstance(cmd_obj, DecryptCommand):
        return handle_decrypt(cmd_obj)
    else:
        return HELP_TEXT


def main() -> None:
    """Entry point for CLI."""
    args = sys.argv[1:]
    debug = '--debug' in args
    if debug:
        args = [arg for arg in args if arg != '--debug']

    log_level = 'DEBUG' if debug else os.getenv('LOG_LEVEL', 'WARNING')
    logger = setup_logging('cli', log_level=log_level)

    try:
        cmd = parse_args(args)
    except ParseError as e:
        print(f"Error: {e}\n\n{HELP_TEXT}", file=sys.stderr)
        sys.exit(2)

    try:
        output = dispatch_command(cmd)
    except Exception as e:
        logger.error(f"CLI error: {e}", exc_info=True)
        raise

    print(output)
    if "Error:" in output or "Refusing" in output:
        sys.exit(1)


if __name__ == "__main__":
    main()
