"""CLI entry point for clipcode.

Headless access to the same registry, relay and panel the Gradio app uses.

Entry point:
    clipcode-cli models [--json]
    clipcode-cli chat --model <id> <prompt>
    clipcode-cli stdio
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# ARGUMENT PARSING
# ─────────────────────────────────────────────────────────────────────


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="clipcode-cli",
        description="Chat with a local Ollama server from the terminal.",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable debug logging"
    )
    parser.add_argument(
        "--host", default=None, help="Ollama base URL (default: $OLLAMA_HOST)"
    )
    sub = parser.add_subparsers(dest="command")

    # models
    models_p = sub.add_parser("models", help="List available models")
    models_p.add_argument(
        "--json", action="store_true", dest="json_output",
        help="Print the modelsList message as JSON",
    )

    # chat
    chat_p = sub.add_parser("chat", help="Send one prompt and stream the reply")
    chat_p.add_argument("--model", "-m", required=True, help="Model name")
    chat_p.add_argument("--timeout", type=int, default=None, help="Timeout (seconds)")
    chat_p.add_argument("prompt", help="Prompt text")

    # stdio
    sub.add_parser(
        "stdio",
        help="Speak the panel message protocol as JSON lines on stdin/stdout",
    )

    return parser


def _build_stack(host: Optional[str], timeout: Optional[int] = None):
    """Adapter -> registry + relay, configured from args and environment."""
    from clipcode.adapters.ollama import create_adapter
    from clipcode.config import get_timeout_seconds
    from clipcode.core import ChatRelay
    from clipcode.registry import ModelRegistry

    adapter = create_adapter(host)
    relay = ChatRelay(adapter, timeout_seconds=timeout or get_timeout_seconds())
    return ModelRegistry(adapter), relay


# ─────────────────────────────────────────────────────────────────────
# COMMANDS
# ─────────────────────────────────────────────────────────────────────


async def _cmd_models(host: Optional[str], json_output: bool = False) -> int:
    """List available models. Returns exit code."""
    from clipcode.core import ModelListUnavailable
    from clipcode.messages import ModelsList, to_wire

    registry, _ = _build_stack(host)
    try:
        models = await registry.refresh()
    except ModelListUnavailable as e:
        print(f"Error: model list unavailable: {e}", file=sys.stderr)
        return 1

    if json_output:
        json.dump(to_wire(ModelsList(models=[m.name for m in models])), sys.stdout, indent=2)
        sys.stdout.write("\n")
    else:
        for model in models:
            print(model.name)
    return 0


class TerminalRenderer:
    """
    Renders panel messages on a terminal.

    chatResponse carries the full text so far; a terminal cannot redraw, so
    only the suffix not yet printed is written.
    """

    def __init__(self, out=None, err=None):
        self.out = out or sys.stdout
        self.err = err or sys.stderr
        self.printed = 0
        self.failed = False

    async def __call__(self, message: BaseModel) -> None:
        from clipcode.messages import ChatDone, ChatError, ChatResponse, Reset

        if isinstance(message, ChatResponse):
            if len(message.text) < self.printed:
                # Not expected from the relay; start over rather than garble.
                self.out.write("\n")
                self.printed = 0
            self.out.write(message.text[self.printed:])
            self.out.flush()
            self.printed = len(message.text)
        elif isinstance(message, ChatError):
            self.failed = True
            if self.printed:
                self.out.write("\n")
            print(f"Error ({message.kind.value}): {message.message}", file=self.err)
        elif isinstance(message, ChatDone):
            if self.printed:
                self.out.write("\n")
            if message.cancelled:
                print("Cancelled.", file=self.err)
        elif isinstance(message, Reset):
            self.printed = 0
        else:
            logger.debug("Ignoring %s", type(message).__name__)


async def _cmd_chat(host: Optional[str], model: str, prompt: str, timeout: Optional[int]) -> int:
    """Stream one reply to stdout. Returns exit code."""
    from clipcode.messages import MessageError
    from clipcode.panel import ChatPanel

    registry, relay = _build_stack(host, timeout)
    renderer = TerminalRenderer()
    panel = ChatPanel(relay, registry, renderer)

    try:
        await panel.handle_message({"command": "chat", "text": prompt, "model": model})
    except MessageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    try:
        await panel.wait_idle()
    finally:
        await panel.close()
    return 1 if renderer.failed else 0


async def _read_lines(stream):
    """Yield lines from a blocking text stream without blocking the event loop."""
    loop = asyncio.get_running_loop()
    while True:
        line = await loop.run_in_executor(None, stream.readline)
        if not line:
            return
        yield line


async def _cmd_stdio(host: Optional[str], stdin=None, stdout=None) -> int:
    """
    JSON-lines bridge for embedding in an editor webview host.

    stdin carries UI messages (chat, cancel) plus the host-initiated
    {"command": "reset"}; stdout carries host messages, one per line.
    """
    from clipcode.messages import MessageError, to_wire
    from clipcode.panel import ChatPanel

    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout

    async def post(message: BaseModel) -> None:
        stdout.write(json.dumps(to_wire(message)) + "\n")
        stdout.flush()

    registry, relay = _build_stack(host)
    panel = ChatPanel(relay, registry, post)
    panel.activate()

    try:
        async for line in _read_lines(stdin):
            if not line.strip():
                continue
            try:
                raw = json.loads(line)
            except json.JSONDecodeError as e:
                logger.warning("Ignoring non-JSON line: %s", e)
                continue
            try:
                if isinstance(raw, dict) and raw.get("command") == "reset":
                    await panel.reset()
                else:
                    await panel.handle_message(raw)
            except MessageError as e:
                logger.warning("%s", e)
        await panel.wait_idle()
    finally:
        await panel.close()
    return 0


# ─────────────────────────────────────────────────────────────────────
# ENTRY POINT
# ─────────────────────────────────────────────────────────────────────


def main():
    parser = _build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Logging
    level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(level=level, format="%(name)s %(message)s", stream=sys.stderr)

    # Load env
    from dotenv import load_dotenv
    load_dotenv()

    # Dispatch
    if args.command == "models":
        code = asyncio.run(_cmd_models(args.host, json_output=args.json_output))
    elif args.command == "chat":
        code = asyncio.run(_cmd_chat(args.host, args.model, args.prompt, args.timeout))
    elif args.command == "stdio":
        code = asyncio.run(_cmd_stdio(args.host))
    else:
        parser.print_help()
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
