"""CLI constants and messages."""

from prompt_toolkit.styles import Style

COMMANDS = ["keygen", "decrypt", "help"]

STYLE = Style.from_dict(
    {
        "prompt": "#F45935 bold",
    }
)

GREEN = "\033[32m"
RED = "\033[31m"
RESET = "\033[0m"

PASSPHRASE_PROMPT = "Enter passphrase: "

IDENTITY_FILE_HEADER = "# created by sealbox keygen"

HELP_TEXT = """Usage:
  sealbox keygen [-o FILE]                       Generate an X25519 identity (prints the public key)
  sealbox decrypt ENVELOPE -o OUT [-i FILE]      Decrypt a sealed bundle
  sealbox help                                   Show this help

decrypt tries every identity file given with -i (repeatable). Without -i,
or when the bundle is passphrase-protected, the passphrase is prompted for.
Options:
  --debug    Enable debug logging"""
