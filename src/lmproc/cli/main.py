#!/usr/bin/env python3
"""
CLI entry point for parsing model output (lmproc command).
"""

import argparse
import json
import sys

from lmproc.config import TOOL_CALL_FORMATS, get_config_manager
from lmproc.engine.extraction import BOUNDARY_NAMES, ContentExtractor, boundary_from_name
from lmproc.engine.toolcall import ToolCallFormat, ToolCallHandler
from lmproc.logging import configure_console_logging


def read_input(text):
    """Use TEXT when given, otherwise read stdin."""
    if text is not None:
        return text
    return sys.stdin.read()


def fail(reason):
    print(f"Error: {reason}", file=sys.stderr)
    sys.exit(1)


def cmd_parse(args):
    """Parse tool calls from model output."""
    manager = get_config_manager()
    fmt = ToolCallFormat(args.format or manager.get("tool_call_format"))
    handler = ToolCallHandler(lenient=args.lenient or manager.get("lenient_json"))

    outcome = handler.parse(read_input(args.text), fmt)
    if not outcome.is_ok:
        fail(outcome.reason)

    calls = [call.to_dict() for call in outcome.value]
    if args.as_json:
        print(json.dumps(calls, indent=2))
        return

    for call in calls:
        params = ", ".join(f"{k}={v!r}" for k, v in call["parameters"].items())
        print(f"{call['function_name']}({params})")


def cmd_extract(args):
    """Extract and decode a JSON payload from model output."""
    manager = get_config_manager()
    boundary = boundary_from_name(args.boundary or manager.get("json_boundary"))
    extractor = ContentExtractor(boundary, lenient=args.lenient or manager.get("lenient_json"))

    outcome = extractor.extract(read_input(args.text))
    if not outcome.is_ok:
        fail(outcome.reason)
    print(json.dumps(outcome.value, indent=2))


def cmd_config(args):
    """Show or change settings in ~/.lmproc/config.json."""
    manager = get_config_manager()

    try:
        if args.action == "list":
            settings = manager.list_settings()
            if not settings:
                print("All settings at defaults.")
            for key, value in settings.items():
                print(f"{key} = {json.dumps(value)}")
        elif args.action == "get":
            print(json.dumps(manager.get(args.key)))
        elif args.action == "set":
            manager.set(args.key, args.value)
            print(f"{args.key} = {json.dumps(manager.get(args.key))}")
        elif args.action == "unset":
            manager.unset(args.key)
            print(f"{args.key} reset to default")
        elif args.action == "reset":
            manager.reset()
            print("Configuration reset.")
        elif args.action == "path":
            print(manager.CONFIG_FILE)
    except ValueError as e:
        fail(e)


def build_parser():
    parser = argparse.ArgumentParser(
        prog="lmproc",
        description="Parse tool calls and JSON payloads from model output",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    lmproc parse "[get_weather(city='Paris')]"
    echo '<function=search>{"q": "x"}</function>' | lmproc parse --json
    lmproc extract --boundary fenced_json < reply.txt
    lmproc config set max_retry_count 5
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # parse command
    parse_parser = subparsers.add_parser("parse", help="Parse tool calls")
    parse_parser.add_argument("text", nargs="?", help="Model output (default: stdin)")
    parse_parser.add_argument(
        "--format", choices=TOOL_CALL_FORMATS, help="Tool call grammar"
    )
    parse_parser.add_argument(
        "--lenient", action="store_true", help="Clean up malformed JSON payloads"
    )
    parse_parser.add_argument(
        "--json", action="store_true", dest="as_json", help="Output as JSON"
    )
    parse_parser.set_defaults(func=cmd_parse)

    # extract command
    extract_parser = subparsers.add_parser("extract", help="Extract a JSON payload")
    extract_parser.add_argument("text", nargs="?", help="Model output (default: stdin)")
    extract_parser.add_argument(
        "--boundary", choices=sorted(BOUNDARY_NAMES), help="Where the JSON lives"
    )
    extract_parser.add_argument(
        "--lenient", action="store_true", help="Clean up malformed JSON"
    )
    extract_parser.set_defaults(func=cmd_extract)

    # config command
    config_parser = subparsers.add_parser("config", help="Show or change settings")
    config_sub = config_parser.add_subparsers(dest="action", required=True)
    config_sub.add_parser("list", help="List customized settings")
    config_sub.add_parser("reset", help="Reset all settings")
    config_sub.add_parser("path", help="Show config file path")
    get_parser = config_sub.add_parser("get", help="Get a setting")
    get_parser.add_argument("key")
    set_parser = config_sub.add_parser("set", help="Set a setting")
    set_parser.add_argument("key")
    set_parser.add_argument("value")
    unset_parser = config_sub.add_parser("unset", help="Reset a setting to default")
    unset_parser.add_argument("key")
    config_parser.set_defaults(func=cmd_config)

    return parser


def main(argv=None):
    """Main entry point for the lmproc CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    configure_console_logging(get_config_manager().get("log_level"))
    args.func(args)


if __name__ == "__main__":
    main()
