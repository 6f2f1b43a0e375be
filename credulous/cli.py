"""CLI for credulous - secure AWS credential management."""

import argparse
import logging
import os
import re
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from .version import __version__
from .config import CredulousConfig, get_environment_credential
from .crypto import load_public_key
from .exceptions import CredulousError, KeyParseError
from .models import RetrieveRequest, SaveRequest
from .prompt import console_prompt
from .providers import GitChangeLog, IAMProvider
from .vault import CredentialVault, format_exports

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger("credulous.cli")

ENV_PATTERN = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*=.*")


# ---------------------------------------------------------------------------
# Argument helpers
# ---------------------------------------------------------------------------

def split_user_and_account(arg: str) -> tuple[str, str]:
    """Split ``user@account`` on the last ``@``.

    Returns:
        ``(account, user)``.
    """
    atpos = arg.rfind("@")
    if atpos < 1:
        raise CredulousError(
            "invalid account format; please specify <username>@<account>"
        )
    return arg[atpos + 1:], arg[:atpos]


def parse_env_args(values: list[str]) -> Optional[dict[str, str]]:
    """Turn ``NAME=value`` arguments into a mapping, skipping malformed ones."""
    if not values:
        return None
    env = {}
    for arg in values:
        if not ENV_PATTERN.match(arg):
            logger.warning("Skipping env argument %s -- not in NAME=value format", arg)
            continue
        name, value = arg.split("=", 1)
        env[name] = value
    return env


def parse_user_and_alias(args) -> tuple[str, str]:
    """Username and account given on the command line for ``save``.

    Both or neither must be given, and only together with ``--force``.
    """
    username, account = args.username or "", args.account or ""
    if args.force and (not username or not account):
        raise CredulousError("must specify both username and account with force")
    if username or account:
        if not args.force:
            raise CredulousError(
                "cannot specify username and/or account without force"
            )
    return username, account


def get_account_and_username(args) -> tuple[str, str]:
    """Account and username for ``source``, from ``user@account`` or flags."""
    spec = args.target or args.credentials
    if spec:
        return split_user_and_account(spec)
    return args.account or "", args.username or ""


def load_public_keys(paths: list[Path]) -> list:
    keys = []
    for path in paths:
        try:
            data = path.read_bytes()
        except OSError as err:
            raise KeyParseError(f"cannot read public key {path}: {err}") from err
        keys.append(load_public_key(data))
    return keys


def build_vault() -> CredentialVault:
    return CredentialVault(
        provider=IAMProvider(),
        changelog=GitChangeLog(),
        prompt=console_prompt,
    )


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
    )


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_save(args, config: CredulousConfig) -> int:
    """Save the AWS credentials loaded in the environment."""
    username, alias = parse_user_and_alias(args)
    request = SaveRequest(
        credential=get_environment_credential(parse_env_args(args.env)),
        username=username,
        alias=alias,
        public_keys=load_public_keys(config.public_keys),
        lifetime=args.lifetime if args.lifetime is not None else config.lifetime,
        force=args.force,
        repo=str(config.repo),
    )
    path = build_vault().save(request)
    console.print(f"[green]Saved:[/green] {escape(request.username)}@{escape(request.alias)}")
    console.print(f"[dim]{escape(str(path))}[/dim]")
    return 0


def cmd_source(args, config: CredulousConfig) -> int:
    """Print shell exports for saved credentials."""
    account, username = get_account_and_username(args)
    request = RetrieveRequest(
        repo=str(config.repo),
        alias=account,
        username=username,
        keyfile=str(config.private_key),
        force=args.force,
    )
    creds = build_vault().retrieve(request)
    # Raw output so the result can be eval'ed by the shell
    print(format_exports(creds), end="")
    return 0


def cmd_current(args, config: CredulousConfig) -> int:
    """Show the username and alias of the loaded credentials."""
    console.print(build_vault().current(), markup=False, highlight=False)
    return 0


def cmd_display(args, config: CredulousConfig) -> int:
    """Display the AWS credentials loaded in the environment."""
    print(f"AWS_ACCESS_KEY_ID: {os.environ.get('AWS_ACCESS_KEY_ID', '')}")
    print(f"AWS_SECRET_ACCESS_KEY: {os.environ.get('AWS_SECRET_ACCESS_KEY', '')}")
    return 0


def cmd_list(args, config: CredulousConfig) -> int:
    """List saved credentials."""
    names = build_vault().list_credentials(config.repo)

    table = Table(title="Saved Credentials", show_header=True)
    table.add_column("Username", style="cyan")
    table.add_column("Account", style="green")
    for name in names:
        username, _, alias = name.rpartition("@")
        table.add_row(username, alias)

    console.print(table)
    console.print(f"\n[dim]Total: {len(names)} credentials[/dim]")
    return 0


def cmd_rotate(args, config: CredulousConfig) -> int:
    """Rotate the current AWS access key, deleting the oldest."""
    path = build_vault().rotate(
        repo=str(config.repo),
        public_keys=load_public_keys(config.public_keys),
        lifetime=args.lifetime if args.lifetime is not None else config.lifetime,
        env_vars=parse_env_args(args.env),
    )
    console.print("[green]Rotated:[/green] new access key saved")
    console.print(f"[dim]{escape(str(path))}[/dim]")
    err_console.print(
        "[yellow]Warning:[/yellow] the old key may still be loaded in your "
        "environment; source the new credentials"
    )
    return 0


COMMANDS = {
    "save": cmd_save,
    "source": cmd_source,
    "current": cmd_current,
    "display": cmd_display,
    "list": cmd_list,
    "rotate": cmd_rotate,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="credulous",
        description="Secure AWS Credential Management",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  credulous save                        # Save credentials from the environment
  credulous list                        # List saved credentials
  eval $(credulous source user@account) # Load saved credentials
  credulous rotate                      # Replace the oldest access key

Environment:
  CREDULOUS_HOME         Tool root (default: ~/.credulous)
  CREDULOUS_REPO         Credentials store (default: $CREDULOUS_HOME/local)
  CREDULOUS_PRIVATE_KEY  Private key (default: ~/.ssh/id_rsa)
  CREDULOUS_PUBLIC_KEYS  Public keys (default: ~/.ssh/id_rsa.pub)
        """
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-r", "--repo", help="Repository location ('local' by default)")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # accepted after the subcommand too; SUPPRESS keeps a top-level -r when omitted
    repo_parent = argparse.ArgumentParser(add_help=False)
    repo_parent.add_argument("-r", "--repo", default=argparse.SUPPRESS,
                             help="Repository location ('local' by default)")

    # save
    save_parser = subparsers.add_parser("save", parents=[repo_parent], help="Save AWS credentials")
    save_parser.add_argument("-k", "--key", action="append", default=[],
                             help="SSH public keys for encryption (can repeat)")
    save_parser.add_argument("-e", "--env", action="append", default=[], metavar="VAR=value",
                             help="Environment variables to set (can repeat)")
    save_parser.add_argument("-l", "--lifetime", type=int,
                             help="Credential lifetime in seconds (0 means forever)")
    save_parser.add_argument("-f", "--force", action="store_true",
                             help="Save without validating username or account; "
                                  "requires -u and -a")
    save_parser.add_argument("-u", "--username", help="Username (for use with --force)")
    save_parser.add_argument("-a", "--account", help="Account alias (for use with --force)")

    # source
    source_parser = subparsers.add_parser("source", parents=[repo_parent], help="Source AWS credentials")
    source_parser.add_argument("target", nargs="?", help="Credentials as username@account")
    source_parser.add_argument("-a", "--account", help="AWS account alias or id")
    source_parser.add_argument("-u", "--username", help="IAM user")
    source_parser.add_argument("-c", "--credentials", help="Credentials, for example username@account")
    source_parser.add_argument("-k", "--key", help="SSH private key")
    source_parser.add_argument("-f", "--force", action="store_true",
                               help="Source without validating username or account")

    # current / display / list
    subparsers.add_parser("current", help="Show the username and alias of the loaded credentials")
    subparsers.add_parser("display", help="Display loaded AWS credentials")
    subparsers.add_parser("list", parents=[repo_parent], help="List saved credentials")

    # rotate
    rotate_parser = subparsers.add_parser("rotate", parents=[repo_parent], help="Rotate current AWS credentials, deleting the oldest")
    rotate_parser.add_argument("-k", "--key", action="append", default=[],
                               help="SSH public keys for encryption (can repeat)")
    rotate_parser.add_argument("-e", "--env", action="append", default=[], metavar="VAR=value",
                               help="Environment variables to set (can repeat)")
    rotate_parser.add_argument("-l", "--lifetime", type=int,
                               help="New credential lifetime in seconds (0 means forever)")

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    try:
        public_keys = args.key if isinstance(getattr(args, "key", None), list) else None
        private_key = args.key if isinstance(getattr(args, "key", None), str) else None
        config = CredulousConfig.from_env(
            repo=args.repo, private_key=private_key, public_keys=public_keys,
        )
        setup_logging(config.log_level)
        return COMMANDS[args.command](args, config)
    except CredulousError as e:
        err_console.print(f"[red]ERROR:[/red] {escape(str(e))}", highlight=False)
        return 1
    except ValueError as e:
        # invalid configuration values from the environment
        err_console.print(f"[red]ERROR:[/red] {escape(str(e))}", highlight=False)
        return 1


if __name__ == "__main__":
    sys.exit(main())
