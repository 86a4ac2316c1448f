"""Command-line interface for Antigravity Bridge.

Dry-runs conversions without contacting the backend:

    antigravity-bridge convert request.json --model gemini-3-pro-high
    antigravity-bridge convert native.json --model gemini-2.5-pro --gemini
    antigravity-bridge sanitize schema.json
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, List, Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel

from .config import BridgeConfig, ConfigManager, get_config
from .core.request import RequestAssembler, SessionToken
from .core.schema import sanitize_schema
from .core.signature_cache import SignatureCache

console = Console()


def _setup_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )


def _read_json(source: str) -> Any:
    """Read JSON from a file path, or from stdin when source is "-"."""
    if source == "-":
        return json.load(sys.stdin)
    with open(Path(source).expanduser(), "r", encoding="utf-8") as f:
        return json.load(f)


def _load_config(config_path: Optional[str]) -> BridgeConfig:
    if config_path:
        return ConfigManager(Path(config_path).expanduser()).load()
    return get_config()


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="antigravity-bridge",
        description="Translate OpenAI chat requests into Antigravity request envelopes",
    )
    parser.add_argument("--config", default=None, help="Path to config.yaml")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    convert_parser = subparsers.add_parser("convert", help="Convert a chat request to an envelope")
    convert_parser.add_argument("source", help="Request JSON file, or - for stdin")
    convert_parser.add_argument("--model", "-m", default=None, help="Target model name")
    convert_parser.add_argument("--project", default=None, help="Project id for the envelope")
    convert_parser.add_argument("--session", default=None, help="Session id for the envelope")
    convert_parser.add_argument(
        "--gemini", action="store_true", help="Treat the input as a native Gemini request"
    )

    sanitize_parser = subparsers.add_parser("sanitize", help="Sanitize a JSON Schema")
    sanitize_parser.add_argument("source", help="Schema JSON file, or - for stdin")

    return parser


def _convert(args: argparse.Namespace) -> int:
    payload = _read_json(args.source)
    if not isinstance(payload, dict):
        raise ValueError("Request JSON must be an object")

    model = args.model or payload.get("model")
    if not model:
        raise ValueError("No model given: pass --model or set 'model' in the request")

    token = SessionToken(project_id=args.project, session_id=args.session)
    config = _load_config(args.config)
    assembler = RequestAssembler(
        config=config, cache=SignatureCache(max_entries=config.cache.max_entries)
    )

    if args.gemini:
        envelope = assembler.assemble_from_gemini(payload, model, token)
    else:
        parameters = {
            key: payload.get(key)
            for key in ("top_p", "top_k", "temperature", "max_tokens", "max_completion_tokens")
        }
        envelope = assembler.assemble(
            payload.get("messages") or [],
            model,
            parameters=parameters,
            tools=payload.get("tools"),
            token=token,
        )

    console.print_json(data=envelope)
    return 0


def _sanitize(args: argparse.Namespace) -> int:
    console.print_json(data=sanitize_schema(_read_json(args.source)))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        _setup_logging()

    if args.command is None:
        parser.print_help()
        return 1

    try:
        if args.command == "convert":
            return _convert(args)
        return _sanitize(args)
    except json.JSONDecodeError as e:
        console.print(Panel(f"[red]Invalid JSON: {e}[/red]", title="❌ Error", border_style="red"))
        return 1
    except (ValueError, OSError) as e:
        console.print(Panel(f"[red]{e}[/red]", title="❌ Error", border_style="red"))
        return 1


def run():
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        console.print(
            Panel("[yellow]👋 Interrupted![/yellow]", title="⚠️ Interruption", border_style="yellow")
        )
        sys.exit(0)


if __name__ == "__main__":
    run()
