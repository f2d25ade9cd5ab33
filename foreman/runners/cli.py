"""
CLI Runner - Interactive console for Foreman

Typed lines go to the foreground surface as text input. Lines starting
with ">" are handed to the speech recognizer as if they had been spoken,
so the wake phrase, voice commands and dictation can be exercised from a
terminal against a real backend.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv
from prompt_toolkit import prompt
from termcolor import colored

from ..__version__ import __version__
from ..config.manager import ConfigManager
from ..config.models import CoreConfig, LogLevel, create_config_from_profile
from ..core.app import ForemanApp
from ..outputs.timeline import Sender
from ..utils.logging import setup_logging
from ..workflows.orchestrator import VoiceOrchestrator

logger = logging.getLogger(__name__)

HELP_TEXT = """
Commands:
  <text>          type a message to the open surface
  ><text>         speak <text> (goes to whichever recognizer is listening)
  /mic            toggle voice input
  /good, /bad     rate the latest work order step
  /open           open the chat widget
  /close          close the foreground surface
  /history        show feedback recorded for the resumed work order
  /status         show listening and workflow state
  /quit           exit
"""


class ForemanCLIRunner:
    """
    Console runner.

    Loads .env and configuration, sets up logging, builds the application
    with scripted speech providers and runs the prompt loop.
    """

    def __init__(self):
        self.app: Optional[ForemanApp] = None
        self._printed: set[int] = set()
        self._logger = logging.getLogger(f"{__name__}.cli")

    async def run(self, args: Optional[List[str]] = None) -> int:
        parsed_args = None
        try:
            load_dotenv()

            parser = self._create_argument_parser()
            parsed_args = parser.parse_args(args)

            config = await self._create_config(parsed_args)
            self._setup_logging(config)

            if parsed_args.generate_config:
                path = await ConfigManager().generate_default_config_file(
                    parsed_args.generate_config, profile=parsed_args.profile
                )
                print(f"✅ Configuration written to: {path}")
                return 0

            # Scripted recognizers: ">" lines stand in for the microphone
            self.app = ForemanApp(config, navigator=self._navigate)
            await self.app.start()
            return await self._interactive_loop(parsed_args)

        except Exception as e:
            self._logger.error(f"CLI runner error: {e}")
            if not getattr(parsed_args, 'quiet', False):
                print(f"❌ CLI runner error: {e}")
            return 1
        finally:
            if self.app:
                await self.app.stop()

    def _create_argument_parser(self) -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            description=f"Foreman v{__version__} - voice-driven work order assistant",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=HELP_TEXT,
        )
        parser.add_argument("--config", "-c", type=Path, default=None,
                            help="Configuration file path (default: auto-detect)")
        parser.add_argument("--profile", choices=["voice", "text"], default="voice",
                            help="Profile used when no configuration file exists")
        parser.add_argument("--base-url", help="Override the backend base URL")
        parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                            default=None, help="Set logging level")
        parser.add_argument("--log-file", type=Path, default=None, help="Write logs to this file")
        parser.add_argument("--debug", action="store_true", help="Enable debug logging")
        parser.add_argument("--quiet", "-q", action="store_true", help="Reduce output verbosity")
        parser.add_argument("--generate-config", type=Path, metavar="PATH",
                            help="Write a default configuration file and exit")
        return parser

    def _setup_logging(self, config: CoreConfig) -> None:
        setup_logging(level=config.log_level, log_file=config.log_file, enable_console=True)

    async def _create_config(self, args: argparse.Namespace) -> CoreConfig:
        manager = ConfigManager()
        if args.config is not None and args.config.exists():
            config = await manager.load_config(args.config, create_default=False)
            if not args.quiet:
                print(f"✅ Loaded configuration from: {args.config}")
        elif args.config is not None:
            raise ValueError(f"Configuration file not found: {args.config}")
        else:
            config = create_config_from_profile(args.profile)
            if not args.quiet:
                print(f"📋 Using the '{args.profile}' profile")

        if args.base_url:
            config.backend.base_url = args.base_url.rstrip("/")
        if args.log_level:
            config.log_level = LogLevel(args.log_level)
        if args.log_file:
            config.log_file = args.log_file
        if args.debug:
            config.debug = True
            config.log_level = LogLevel.DEBUG
        return config

    # ------------------------------------------------------------
    # Interactive loop
    # ------------------------------------------------------------

    async def _interactive_loop(self, args: argparse.Namespace) -> int:
        app = self.app
        if not args.quiet:
            print(f"\n💬 Say '>{app.config.wake_word.phrase}' or type a message. '/help' for commands.")
            print("-" * 50)

        while app.is_running:
            try:
                line = await asyncio.to_thread(prompt, "foreman> ", enable_history_search=True)
            except (EOFError, KeyboardInterrupt):
                break

            line = line.strip()
            if not line:
                continue
            if line.lower() in ("/quit", "quit", "exit", "q"):
                break

            try:
                await self._dispatch(line)
            except Exception as e:
                self._logger.error(f"Command failed: {e}")
                print(f"❌ {e}")

            await app.drain()
            self._render()

        print("👋 Goodbye")
        return 0

    def _foreground(self) -> VoiceOrchestrator:
        return self.app.modal if self.app.modal.is_open else self.app.widget

    async def _dispatch(self, line: str) -> None:
        app = self.app
        surface = self._foreground()

        if line.startswith(">"):
            spoken = line[1:].strip()
            if not (app.recognition_provider.feed(spoken) or app.wake_provider.feed(spoken)):
                print("🔇 Nobody is listening. Use /mic to start voice input.")
            return

        command = line.lower()
        if command == "/help":
            print(HELP_TEXT)
        elif command == "/mic":
            if not surface.is_open:
                await surface.open()
            recording = await surface.toggle_voice_input()
            print("🎤 Listening..." if recording else "🔇 Voice input stopped")
        elif command in ("/good", "/bad"):
            message = next((m for m in reversed(surface.timeline.trackable()) if m.feedback is None), None)
            if message is None:
                print("Nothing to rate")
                return
            outcome = await surface.submit_feedback(message, positive=command == "/good")
            if outcome.error:
                print(f"⚠️  {outcome.error}")
        elif command == "/open":
            await app.widget.open()
        elif command == "/close":
            await surface.close()
        elif command == "/history":
            if not app.modal.is_open:
                print("Open a work order first")
                return
            await app.modal.show_feedback_history()
        elif command == "/status":
            self._print_status()
        else:
            if not surface.is_open:
                await surface.open()
            await surface.submit_text(line)

    def _render(self) -> None:
        for surface in (self.app.widget, self.app.modal):
            for message in surface.timeline:
                if message.id in self._printed or message.is_processing:
                    continue
                self._printed.add(message.id)
                if message.sender is Sender.USER:
                    print(colored(f"👤 {message.text}", "green"))
                else:
                    step = f" [step {message.step_number}]" if message.step_number else ""
                    print(colored(f"🤖{step} {message.text}", "white"))

    def _print_status(self) -> None:
        app = self.app
        workflow = app.modal.workflow
        print(f"Microphone: {app.controller.state.value}")
        for provider in app.providers:
            error = f" ({provider.last_error})" if provider.last_error else ""
            print(f"Provider {provider.get_provider_name()}: {provider.status.value}{error}")
        print(f"Widget open: {app.widget.is_open}, modal open: {app.modal.is_open}")
        print(f"Workflow: {workflow.state.value}"
              + (f" {workflow.session.work_order_id} step {workflow.session.current_step_number}"
                 if workflow.session else ""))

    def _navigate(self, work_order_id: str, action: str) -> None:
        print(colored(f"➡️  Opening work order view for {work_order_id} ({action})", "yellow"))


def main() -> int:
    """Console script entry point"""
    runner = ForemanCLIRunner()
    return asyncio.run(runner.run())


if __name__ == "__main__":
    sys.exit(main())
