"""
Main Entry Point for the effect orchestrator client

Modes:
    live (default)   connect to the game push channel and resolve effects
    --demo KIND      run one scripted effect flow against the sample game
"""

__version__ = "1.0.0"

import argparse
import asyncio
import json
import logging
import sys
import threading
from collections.abc import Callable
from typing import Any

from config import ConfigError, config
from effects.manager import EffectManager
from effects.presenter import BACK, AsyncPresenter, StepRequest
from effects.router import SnapshotRouter
from effects.scenario_runner import run_scenario
from effects.submitter import ActionSubmitter
from models.enums import EffectKind, ResetPolicy
from services.event_bus import Events, event_bus
from services.logger import cleanup_logging, setup_logging
from sources.push_channel import PushChannelClient

logger = logging.getLogger(__name__)


def describe_candidate(candidate: Any) -> str:
    """One-line label for a picker option"""
    if hasattr(candidate, "set_id"):
        return f"set {candidate.set_id} ({candidate.set_name})"
    if hasattr(candidate, "revealed"):
        state = "revealed" if candidate.revealed else "hidden"
        return f"secret {candidate.id} [{state}] {candidate.name or '?'}"
    if hasattr(candidate, "id"):
        return f"{candidate.id} ({getattr(candidate, 'name', None) or '?'})"
    return str(getattr(candidate, "value", candidate))


def parse_answer(text: str) -> Any:
    """Turn a typed/CLI answer into a selection value ("back" means go back)"""
    text = text.strip()
    if text.lower() == "back":
        return BACK
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return text


class LoggingPresenter:
    """Reports which step is awaiting input without answering it"""

    def present(self, request: StepRequest) -> None:
        options = ", ".join(describe_candidate(c) for c in request.candidates) or "(none)"
        back = " [back available]" if request.can_go_back else ""
        logger.info(f"{request.kind.value}/{request.step.value}: {request.prompt}{back}")
        logger.info(f"  options: {options}")


class ConsoleReader:
    """
    Console answers for AsyncPresenter

    One daemon thread owns stdin and queues every line on the event loop.
    A question cancelled by a newer step leaves its line in the queue, so
    the next question receives it instead of it being read and dropped.
    """

    def __init__(self, readline: Callable[[], str] | None = None):
        self._readline = readline or sys.stdin.readline
        self._lines: asyncio.Queue[str] | None = None
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        loop = asyncio.get_running_loop()
        self._lines = asyncio.Queue()
        self._thread = threading.Thread(
            target=self._pump, args=(loop, self._lines), name="console-reader", daemon=True
        )
        self._thread.start()

    def _pump(self, loop: asyncio.AbstractEventLoop, lines: asyncio.Queue) -> None:
        while True:
            line = self._readline()
            if not line:
                logger.info("Console closed, no more answers")
                return
            try:
                loop.call_soon_threadsafe(lines.put_nowait, line)
            except RuntimeError:
                # Loop closed during shutdown
                return

    async def ask(self, request: StepRequest) -> Any:
        """Prompt for one step and wait for the next console line"""
        if self._thread is None:
            self.start()
        LoggingPresenter().present(request)
        hint = " or 'back'" if request.can_go_back else ""
        print(f"{request.step.value}{hint}> ", end="", flush=True)
        return parse_answer(await self._lines.get())


class Application:
    """
    Main application controller
    Wires config, logging, push channel, router, manager and submitter
    """

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.event_bus = event_bus
        self.channel: PushChannelClient | None = None

        overrides = {"log_level": args.log_level} if args.log_level else None
        self.logger = setup_logging(overrides)

        # File first, so explicit flags win over it
        if args.config:
            config.load_from_file(args.config)
        if args.api_url:
            config.set("network", "api_base_url", args.api_url)
        if args.ws_url:
            config.set("network", "ws_url", args.ws_url)
        if args.reset_policy:
            config.set("effects", "reset_policy", args.reset_policy)
        if args.player_id is not None:
            config.set("effects", "player_id", args.player_id)

        config.ensure_directories()
        config.validate()
        self.config = config

        self.game_id = args.game_id or config.get("effects", "game_id") or "0"
        self.player_id = config.get("effects", "player_id")
        self.reset_policy = ResetPolicy(config.get("effects", "reset_policy"))

        self.submitter = ActionSubmitter(
            base_url=config.get("network", "api_base_url"),
            game_id=self.game_id,
            endpoint_overrides=config.endpoint_overrides(),
            timeout=config.get("network", "http_timeout"),
        )
        self._setup_event_handlers()

    def _setup_event_handlers(self):
        """Stand-in notifier: surface failed submissions"""
        self.event_bus.subscribe(Events.EFFECT_SUBMIT_FAILED, self._handle_submit_failed)
        self.event_bus.subscribe(Events.PUSH_CONNECTION, self._handle_connection)

    def _handle_submit_failed(self, event):
        data = event.get("data") or {}
        self.logger.warning(f"Effect {data.get('kind')} was not applied: {data.get('error')}")

    def _handle_connection(self, event):
        data = event.get("data") or {}
        if not data.get("connected"):
            self.logger.warning(f"Push channel down: {data.get('reason') or 'closed'}")

    async def run_demo(self, event: str, answers: list[Any]) -> int:
        """Run one scripted flow against the sample game"""
        result = await run_scenario(
            event,
            answers,
            submitter=self.submitter,
            reset_policy=self.reset_policy,
        )
        print(json.dumps(result.to_dict(), indent=2, default=str))
        return 0 if result.submissions and result.submissions[-1].success else 1

    def build_live(self, interactive: bool) -> tuple[EffectManager, SnapshotRouter]:
        """Wire push channel -> router -> manager -> submitter"""
        presenter = AsyncPresenter(ConsoleReader().ask) if interactive else LoggingPresenter()
        manager = EffectManager(
            submitter=self.submitter,
            presenter=presenter,
            reset_policy=self.reset_policy,
        )
        router = SnapshotRouter(manager, self.player_id)

        ws_url = str(config.get("network", "ws_url")).replace(":gameId", str(self.game_id))
        self.channel = PushChannelClient(
            ws_url,
            reconnect_delay=config.get("network", "reconnect_delay"),
            max_reconnect_delay=config.get("network", "max_reconnect_delay"),
            reconnect_multiplier=config.get("network", "reconnect_multiplier"),
        )
        self.channel.on(router.route)
        return manager, router

    async def run_live(self, interactive: bool) -> int:
        """Resolve effects pushed by the server until interrupted"""
        manager, _ = self.build_live(interactive)
        self.logger.info(f"Live mode: game {self.game_id}, player {self.player_id}")
        try:
            await self.channel.connect()
        finally:
            await manager.wait_for_submissions()
            self.logger.info(f"Manager stats: {manager.get_stats()}")
        return 0

    async def run(self) -> int:
        try:
            if self.args.demo:
                answers = [parse_answer(a) for a in self.args.answer]
                return await self.run_demo(self.args.demo, answers)
            return await self.run_live(self.args.interactive)
        finally:
            await self.shutdown()

    async def shutdown(self):
        """Clean shutdown of application"""
        self.logger.info("Shutting down...")
        if self.channel is not None:
            await self.channel.disconnect()
        await self.submitter.close()
        self.event_bus.unsubscribe(Events.EFFECT_SUBMIT_FAILED, self._handle_submit_failed)
        self.event_bus.unsubscribe(Events.PUSH_CONNECTION, self._handle_connection)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Effect orchestrator client",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --game-id 42 --player-id 1             # live, log awaited steps
  %(prog)s --game-id 42 --player-id 1 --interactive
  %(prog)s --demo stealSet --answer 2 --answer 202
  %(prog)s --demo delayTheMurderersEscape --answer "[8003, 8001, 8002, 8004, 8005]"
        """,
    )
    parser.add_argument("--game-id", help="Game id substituted into endpoints")
    parser.add_argument("--player-id", type=int, help="Acting player id")
    parser.add_argument("--ws-url", help="Push channel URL (:gameId is substituted)")
    parser.add_argument("--api-url", help="Action API base URL")
    parser.add_argument(
        "--reset-policy",
        choices=[p.value for p in ResetPolicy],
        help="Reset the flow before or after the POST settles",
    )
    parser.add_argument("--config", help="JSON config file with overrides")
    parser.add_argument(
        "--demo",
        metavar="KIND",
        choices=[k.value for k in EffectKind],
        help="Run one scripted effect against the sample game",
    )
    parser.add_argument(
        "--answer",
        action="append",
        default=[],
        help="Scripted answer for --demo (JSON value or 'back'), repeatable",
    )
    parser.add_argument(
        "--interactive", action="store_true", help="Answer live steps on the console"
    )
    parser.add_argument("--log-level", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point"""
    args = build_parser().parse_args(argv)

    try:
        app = Application(args)
    except ConfigError as e:
        print(f"FATAL ERROR: {e}", file=sys.stderr)
        cleanup_logging()
        return 2

    try:
        return asyncio.run(app.run())
    except KeyboardInterrupt:
        print("\nInterrupted by user")
        return 130
    finally:
        cleanup_logging()


if __name__ == "__main__":
    sys.exit(main())
