"""Command line front end: send a single message by hand."""

import argparse
import sys
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.markup import escape

from smtp_provider.provider import SMTPProvider
from smtp_provider.utils.config import LoggingConfig
from smtp_provider.utils.errors import ErrorHandler, ProviderError, format_error_message
from smtp_provider.utils.logging import init_logging


def _parse_header(value: str) -> tuple[str, str]:
    key, sep, header_value = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {value!r}")
    return key, header_value


def setup_argument_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""

    parser = argparse.ArgumentParser(
        prog="smtp-message",
        description=(
            "Send one email over SMTP. Account settings come from SMTP_HOST, "
            "SMTP_PORT, SMTP_USERNAME, SMTP_FROM and either SMTP_CRAM_MD5_SECRET "
            "or SMTP_PLAIN_PASSWORD/SMTP_PLAIN_IDENTITY."
        ),
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    send_parser = subparsers.add_parser(
        "send", help="Send a message", description="Compose and send one message"
    )

    account_group = send_parser.add_argument_group("account", "Override account settings")
    account_group.add_argument("--host", help="SMTP server hostname (without port)")
    account_group.add_argument("--port", type=int, help="SMTP server port (default: 587)")
    account_group.add_argument("--username", help="Username for authentication")
    account_group.add_argument(
        "--auth",
        choices=["plain", "cram-md5"],
        default="plain",
        help="Authentication scheme (default: plain)",
    )

    send_parser.add_argument("--subject", required=True, help="Subject of the message")
    send_parser.add_argument("--body", required=True, help="Body of the message")
    send_parser.add_argument("--from", dest="from_address", help="From field override")
    send_parser.add_argument("--to", action="append", default=[], help="Direct recipient")
    send_parser.add_argument("--cc", action="append", default=[], help="CC recipient")
    send_parser.add_argument("--bcc", action="append", default=[], help="BCC recipient")
    send_parser.add_argument(
        "--header",
        action="append",
        type=_parse_header,
        default=[],
        metavar="KEY=VALUE",
        help="Extra header",
    )

    return parser


def _account_record(args) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "host": args.host,
        "port": args.port,
        "username": args.username,
    }
    if args.auth == "cram-md5":
        record["cram_md5_auth"] = {}
    else:
        record["plain_auth"] = {}
    return record


def _message_record(args) -> Dict[str, Any]:
    return {
        "subject": args.subject,
        "body": args.body,
        "from": args.from_address,
        "to": args.to,
        "cc": args.cc,
        "bcc": args.bcc,
        "headers": dict(args.header),
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point.

    Returns:
        Exit code (0 = success, 1 = error)
    """
    # Handled failures are printed once below; the console log shows only critical records
    logging_config = LoggingConfig.from_env(console_level="CRITICAL")
    init_logging(
        logging_config.log_level,
        logging_config.console_level,
        logging_config.log_dir,
        force=True,
    )

    args = setup_argument_parser().parse_args(argv)
    console = Console()

    try:
        provider = SMTPProvider.configure(_account_record(args))
        state = provider.create_message(_message_record(args))

    except ProviderError as e:
        ErrorHandler.handle(e, context=f"smtp-message {args.command}", log_traceback=False)
        console.print(f"[red]Error: {escape(format_error_message(e))}[/red]", soft_wrap=True)
        return 1

    console.print(state.id, soft_wrap=True)
    return 0


if __name__ == "__main__":
    sys.exit(main())
