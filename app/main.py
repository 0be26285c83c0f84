from __future__ import annotations

import argparse
from copy import deepcopy
from typing import Any, Callable, Iterable

from app.config import ConfigurationError, apply_env_overrides, load_config, validate_config
from conversation.engine import ConversationEngine, build_engine
from ledger.factory import build_ledger
from messaging.channels import ConsoleGateway
from scheduler.base import NoopScheduler

DEFAULT_CONFIG_PATH = "config.yaml"
DEFAULT_CHAT_PHONE = "+15555550100"
EXIT_WORDS = {"/quit", "/exit"}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="SMS donation intake")
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat_parser = subparsers.add_parser("chat", help="Run a donation conversation in the terminal")
    chat_parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml or config.json")
    chat_parser.add_argument("--phone", default=DEFAULT_CHAT_PHONE, help="Sender phone number to simulate")

    inactivity_parser = subparsers.add_parser("check-inactivity", help="Run the idle check for one sender")
    inactivity_parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml or config.json")
    inactivity_parser.add_argument("--phone", required=True)

    check_parser = subparsers.add_parser("check-config", help="Validate configuration and credentials")
    check_parser.add_argument("--config", default=DEFAULT_CONFIG_PATH, help="Path to config.yaml or config.json")

    return parser


def _local_chat_config(config: dict[str, Any]) -> dict[str, Any]:
    updated = deepcopy(config)
    updated.setdefault("sms", {})["platform"] = "console"
    updated.setdefault("scheduler", {})["backend"] = "noop"
    return updated


def cmd_chat(
    args: argparse.Namespace,
    config: dict[str, Any],
    lines: Iterable[str] | None = None,
    writer: Callable[[str], Any] = print,
) -> int:
    runtime_config = _local_chat_config(config)
    try:
        engine = build_engine(
            runtime_config,
            gateway=ConsoleGateway(writer=lambda text: writer(f"< {text}")),
            scheduler=NoopScheduler(),
            ledger=build_ledger(runtime_config),
        )
    except Exception as exc:  # noqa: BLE001
        print(f"chat failed: {exc}")
        return 1

    writer(f"chatting as {args.phone}; type /quit to stop")
    source = lines if lines is not None else _stdin_lines()
    for raw in source:
        text = raw.strip()
        if text.lower() in EXIT_WORDS:
            break
        if not text:
            continue
        engine.handle_inbound(args.phone, text)
    return 0


def _stdin_lines() -> Iterable[str]:
    while True:
        try:
            line = input("> ")
        except EOFError:
            return
        yield line


def cmd_check_inactivity(
    args: argparse.Namespace,
    config: dict[str, Any],
    engine: ConversationEngine | None = None,
) -> int:
    try:
        runtime_engine = engine or build_engine(config)
        nudged = runtime_engine.check_inactivity(args.phone)
    except Exception as exc:  # noqa: BLE001
        print(f"check-inactivity failed: {exc}")
        return 1
    print(f"phone={args.phone} nudged={nudged}")
    return 0


def cmd_check_config(args: argparse.Namespace, config: dict[str, Any]) -> int:
    try:
        validate_config(config)
    except ConfigurationError as exc:
        for problem in exc.problems:
            print(f"config-error {problem}")
        return 1
    app_conf = config.get("app", {})
    print(
        f"config ok env={app_conf.get('env')} sms={config.get('sms', {}).get('platform')} "
        f"sessions={config.get('sessions', {}).get('backend')} "
        f"scheduler={config.get('scheduler', {}).get('backend')} "
        f"ledger={config.get('ledger', {}).get('backend')}"
    )
    return 0


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = apply_env_overrides(load_config(args.config))

    if args.command == "chat":
        return cmd_chat(args, config)
    if args.command == "check-inactivity":
        return cmd_check_inactivity(args, config)
    if args.command == "check-config":
        return cmd_check_config(args, config)

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
