"""Main CLI entry point for mailcraft."""

import argparse
import logging
import sys
import tempfile
from pathlib import Path
from typing import Optional

from mailcraft.config.config_loader import ConfigError, ConfigLoader
from mailcraft.models.mail import Mail
from mailcraft.services.compose.composer import Composer, add_text_part, attach
from mailcraft.services.launching.launcher import ExternalProgram, edit_mail, open_attachment
from mailcraft.services.mime.base import MessageDecodeError, MessageEncodeError
from mailcraft.services.mime.decoder import read_mail
from mailcraft.services.mime.encoder import MessageEncoder
from mailcraft.services.sending.pipeline import SendError, SendPipeline
from mailcraft.storage.audit_log import AuditLog
from mailcraft.storage.maildir import MaildirError, MaildirMessage
from mailcraft.utils.unicode_utils import decode_email_header

logger = logging.getLogger("mailcraft.cli")

DISPLAY_HEADERS = ("From", "To", "Cc", "Subject", "Date")


def load_config(args):
    config_loader = ConfigLoader(args.config)
    return config_loader.load_app_config()


def write_mail(mail: Mail, output: Optional[Path]) -> None:
    """Write an encoded mail to output, or stdout."""
    content = MessageEncoder().encode(mail)
    if output:
        with open(output, "w", encoding="utf-8", newline="") as f:
            f.write(content)
        print(f"Mail written to: {output}")
    else:
        sys.stdout.write(content)


def finish_mail(mail: Mail, args, config) -> Optional[str]:
    """Apply --body-file, --attach and --edit to a composed mail."""
    if getattr(args, "body_file", None):
        text = Path(args.body_file).read_text(encoding="utf-8")
        if mail.parts:
            mail.parts[0].body = text
        else:
            add_text_part(mail, text)

    if args.edit:
        status = edit_mail(mail, ExternalProgram(config.commands.editor))
        if status:
            return status

    for attachment in getattr(args, "attach", None) or []:
        attach(mail, attachment)
    return None


def cmd_show(args):
    """Show a stored mail command."""
    config = load_config(args)
    mail = read_mail(args.path)

    for name in DISPLAY_HEADERS:
        value = mail.header.get(name)
        if value:
            print(f"{name}: {decode_email_header(value)}")
    print()

    for part in mail.text_parts:
        if part.transfer_encoded:
            print(f"[text in {part.transfer_encoding} encoding not shown]")
            continue
        print(part.body)

    attachments = mail.attachments
    if attachments:
        print("---")
    for i, part in enumerate(attachments, 1):
        print(f"[{i}] {part.filename or '(unnamed)'} ({part.content_type})")

    if args.open:
        if not 1 <= args.open <= len(attachments):
            print(f"No attachment number {args.open}")
            return 1
        directory = args.attachments_dir or Path(tempfile.mkdtemp(prefix="mailcraft-"))
        status = open_attachment(attachments[args.open - 1], directory, ExternalProgram(config.commands.attachments))
        if status:
            print(status)
            return 1
    return 0


def cmd_compose(args):
    """Compose a new mail command."""
    config = load_config(args)
    mail = Composer(config).compose_new()
    if args.sender:
        mail.header["From"] = args.sender
    if args.to:
        mail.header["To"] = args.to
    if args.subject:
        mail.header["Subject"] = args.subject
    if not args.body_file and not args.edit:
        add_text_part(mail, "")

    status = finish_mail(mail, args, config)
    if status:
        print(status)
        return 1
    write_mail(mail, args.output)
    return 0


def cmd_reply(args):
    """Compose a reply command."""
    config = load_config(args)
    original = read_mail(args.path)
    mail = Composer(config).compose_reply(original, group_reply=args.group)

    status = finish_mail(mail, args, config)
    if status:
        print(status)
        return 1
    write_mail(mail, args.output)
    return 0


def _pipeline(config) -> SendPipeline:
    return SendPipeline(config, audit_log=AuditLog(config.storage.get_audit_log_path()))


def cmd_send(args):
    """Send a composed mail command."""
    config = load_config(args)
    mail = read_mail(args.path)
    status = _pipeline(config).send_with_status(mail)
    print(status.message)
    if status.stored_path:
        print(f"Filed as: {status.stored_path}")
    return 0 if status.ok else 1


def cmd_draft(args):
    """Save a composed mail as draft command."""
    config = load_config(args)
    mail = read_mail(args.path)
    receipt = _pipeline(config).save_draft(mail)
    print(f"Draft saved to: {receipt.stored_path}")
    return 0


def cmd_flag(args):
    """Change maildir flags command."""
    message = MaildirMessage.from_path(args.path)
    if args.set is not None:
        path = message.set_flags(args.set)
    elif args.add:
        path = message.add_flag(args.add)
    elif args.remove:
        path = message.remove_flag(args.remove)
    else:
        print(message.flags())
        return 0
    print(path)
    return 0


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="mailcraft - compose, send and file mail")
    parser.add_argument("--config", type=Path, help="Custom config file path")
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Show command
    show_parser = subparsers.add_parser("show", help="Show a mail file")
    show_parser.add_argument("path", type=Path, help="Mail file")
    show_parser.add_argument("--open", type=int, metavar="N", help="Open attachment number N")
    show_parser.add_argument("--attachments-dir", type=Path, help="Directory for opened attachments")

    # Compose command
    compose_parser = subparsers.add_parser("compose", help="Compose a new mail")
    compose_parser.add_argument("--from", dest="sender", help="From address")
    compose_parser.add_argument("--to", help="To addresses")
    compose_parser.add_argument("--subject", help="Subject")

    # Reply command
    reply_parser = subparsers.add_parser("reply", help="Compose a reply to a mail file")
    reply_parser.add_argument("path", type=Path, help="Mail file replied to")
    reply_parser.add_argument("--group", action="store_true", help="Reply to all To recipients")

    for sub in (compose_parser, reply_parser):
        sub.add_argument("--body-file", type=Path, help="Read the body text from a file")
        sub.add_argument("--attach", type=Path, action="append", help="Attach a file (repeatable)")
        sub.add_argument("--edit", action="store_true", help="Edit the mail in the configured editor")
        sub.add_argument("--output", type=Path, help="Write the mail to a file instead of stdout")

    # Send command
    send_parser = subparsers.add_parser("send", help="Send a composed mail file")
    send_parser.add_argument("path", type=Path, help="Mail file")

    # Draft command
    draft_parser = subparsers.add_parser("draft", help="Save a composed mail file as draft")
    draft_parser.add_argument("path", type=Path, help="Mail file")

    # Flag command
    flag_parser = subparsers.add_parser("flag", help="Show or change maildir flags")
    flag_parser.add_argument("path", type=Path, help="Message file in a maildir")
    flag_group = flag_parser.add_mutually_exclusive_group()
    flag_group.add_argument("--set", help="Replace all flags")
    flag_group.add_argument("--add", help="Add a flag")
    flag_group.add_argument("--remove", help="Remove a flag")

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    commands = {
        "show": cmd_show,
        "compose": cmd_compose,
        "reply": cmd_reply,
        "send": cmd_send,
        "draft": cmd_draft,
        "flag": cmd_flag,
    }
    if args.command is None:
        parser.print_help()
        return 1

    try:
        return commands[args.command](args)
    except (ConfigError, MessageDecodeError, MessageEncodeError, SendError, MaildirError, ValueError, OSError) as e:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
