"""
Lumen console chat.

Async prompt_toolkit input with history, Rich output for streamed replies.

Usage:
    python -m lumen
    python -m lumen --provider claude --model claude-3-5-haiku-20241022
    python -m lumen --no-memory

Commands inside the prompt:
    /vision <image url>   comment on an image
    /clear                forget the transcript and all memories
    /quit                 exit
"""

from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging

from prompt_toolkit import PromptSession
from prompt_toolkit.history import InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout
from prompt_toolkit.styles import Style
from rich.console import Console
from rich.panel import Panel
from rich.text import Text

from lumen.app import create_turn_processor
from lumen.core.config import LumenConfig, config
from lumen.core.logging import setup_logging
from lumen.core.signals import Signal
from lumen.turn.processor import TurnProcessor

logger = logging.getLogger(__name__)

QUIT_COMMANDS = ("/quit", "/exit", "/q")
VISION_PREFIX = "/vision "


def _parse_args(argv: list[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="lumen", description="Chat with an LLM from the console")
    parser.add_argument("--provider", help="openai, claude or gemini")
    parser.add_argument("--model", help="Chat model (defaults to the provider's)")
    parser.add_argument("--no-memory", action="store_true", help="Disable tiered memory")
    return parser.parse_args(argv)


def _apply_args(base: LumenConfig, args: argparse.Namespace) -> LumenConfig:
    llm = base.llm
    if args.provider:
        llm = dataclasses.replace(llm, provider=args.provider.lower())
    if args.model:
        llm = dataclasses.replace(llm, model=args.model)
    chat = base.chat
    if args.no_memory:
        chat = dataclasses.replace(chat, use_memory=False)
    return dataclasses.replace(base, llm=llm, chat=chat)


def _prompt_style() -> Style:
    return Style.from_dict({"prompt": "#888888"})


class ConsoleChat:
    """Prompt loop that drives a TurnProcessor and renders its signals."""

    def __init__(
        self,
        processor: TurnProcessor,
        console: Console | None = None,
        session: PromptSession | None = None,
    ):
        self.processor = processor
        self.console = console or Console()
        self.session = session or PromptSession(history=InMemoryHistory())
        processor.signals.on(Signal.PARTIAL_TEXT, self._print_partial)

    def _print_partial(self, text: str) -> None:
        self.console.print(Text(text, style="cyan"), end="")

    async def _read_line(self) -> str:
        with patch_stdout():
            return await self.session.prompt_async(
                [("class:prompt", "you → ")],
                style=_prompt_style(),
            )

    async def _clear(self) -> None:
        self.processor.clear_chat_log()
        self.processor.chat_start_time = None
        if self.processor.memory_manager:
            await self.processor.memory_manager.clear_all_memories()
        self.console.print("[dim](cleared)[/dim]")

    async def run(self) -> None:
        self.console.print(
            Panel(
                f"[bold cyan]Lumen[/bold cyan] {self.processor.chat_service.provider}"
                f" / {self.processor.chat_service.model}\n"
                "Type a message and press Enter. [bold]/quit[/bold] to exit.",
                border_style="dim",
                padding=(0, 1),
            )
        )

        while True:
            try:
                line = await self._read_line()
            except (EOFError, KeyboardInterrupt):
                break

            line = line.strip()
            if not line:
                continue
            if line in QUIT_COMMANDS:
                break
            if line == "/clear":
                await self._clear()
                continue

            self.console.print()
            if line.startswith(VISION_PREFIX):
                result = await self.processor.process_vision_chat(line[len(VISION_PREFIX):].strip())
            else:
                result = await self.processor.process_text_chat(line)
            self.console.print()

            if result is None:
                self.console.print("[bold red]Turn failed, see log.[/bold red]")
            elif result.screenplay.emotion:
                self.console.print(Text(f"[{result.screenplay.emotion}]", style="dim"))

        self.console.print("\n[dim]Goodbye.[/dim]")


async def run(argv: list[str] | None = None) -> None:
    setup_logging()
    cfg = _apply_args(config, _parse_args(argv))
    processor = create_turn_processor(cfg)

    if processor.memory_manager:
        await processor.memory_manager.load()

    try:
        await ConsoleChat(processor).run()
    finally:
        await processor.chat_service.stop()
        if processor.tool_executor:
            await processor.tool_executor.stop()
        storage = processor.memory_manager.storage if processor.memory_manager else None
        stop = getattr(storage, "stop", None)
        if stop is not None:
            await stop()


def main(argv: list[str] | None = None) -> None:
    try:
        asyncio.run(run(argv))
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
