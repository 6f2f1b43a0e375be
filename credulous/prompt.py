"""Secret prompt port.

The crypto core asks for passphrases through a ``SecretPrompt`` callable so
it never touches the terminal itself; tests pass a stub.
"""
import getpass
import sys
from typing import Callable

SecretPrompt = Callable[[str], str]


def console_prompt(message: str) -> str:
    """Read a passphrase without echo, prompting on stderr."""
    return getpass.getpass(message, stream=sys.stderr)
