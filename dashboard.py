import os
import shlex
import sys
from typing import Callable, Optional, TextIO

from backend import BackendClient
from core.catalog import CatalogStore
from core.clock import SystemClock
from core.cooldowns import TICK_SECONDS, CooldownRegistry, CooldownTicker
from core.coordinator import RefreshStatus, UpdateCoordinator
from core.errors import NetworkError, NotFoundError
from core.logger import get_logger
from core.pricing import format_countdown
from core.render import build_html_dashboard, build_plaintext_dashboard

logger = get_logger(__name__)

MODE = os.getenv("MODE", "interactive").lower()  # "interactive" or "once"
SNAPSHOT_PATH = os.getenv("SNAPSHOT_PATH", "").strip()

HELP_TEXT = """Commands:
  list            show all games and their cooldowns
  select <id>     show a game in the detail view
  refresh [id]    fetch fresh prices (selected game by default)
  show            print the dashboard
  html <path>     write the dashboard as HTML
  reload          fetch the game list again
  help            this text
  quit            exit"""


class Dashboard:
    """
    Wires the clock, cooldown registry, catalog, coordinator and ticker
    together. `start()`/`stop()` bracket a session; all state lives in memory
    and is dropped on stop.
    """

    def __init__(
        self,
        backend=None,
        clock=None,
        tick_seconds: float = TICK_SECONDS,
        on_tick: Optional[Callable[[int], None]] = None,
    ):
        self.clock = clock or SystemClock()
        self.backend = backend or BackendClient()
        self.registry = CooldownRegistry()
        self.catalog = CatalogStore(self.backend)
        self.coordinator = UpdateCoordinator(
            self.catalog, self.registry, self.backend, self.clock
        )
        self.ticker = CooldownTicker(
            self.registry, self.clock, interval=tick_seconds, on_tick=on_tick
        )
        self.load_error: Optional[str] = None

    def start(self) -> bool:
        """Load the catalog and start the cooldown ticker. False if loading failed."""
        self.ticker.start()
        return self.reload()

    def stop(self) -> None:
        self.ticker.stop(timeout=2.0)
        self.registry.clear()

    def reload(self) -> bool:
        try:
            self.catalog.fetch_all()
        except NetworkError as e:
            self.load_error = e.message
            return False
        self.load_error = None
        return True

    def render_text(self) -> str:
        text = build_plaintext_dashboard(
            self.catalog, self.registry, self.coordinator, self.clock.now()
        )
        if self.load_error:
            text = f"! {self.load_error}\n" + text
        return text

    def render_html(self) -> str:
        return build_html_dashboard(
            self.catalog, self.registry, self.coordinator, self.clock.now()
        )

    def write_html(self, path: str) -> str:
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(self.render_html())
        logger.info("Wrote HTML dashboard to %s", path)
        return path

    def list_games(self) -> str:
        if not len(self.catalog):
            return "(no games)"
        now = self.clock.now()
        selected_id = self.catalog.selected_id
        lines = []
        for it in self.catalog.items:
            marker = "*" if it.id == selected_id else " "
            line = f"{marker} [{it.id}] {it.name} ({it.platform})"
            countdown = format_countdown(self.registry.remaining_time(it.id, now))
            if countdown:
                line += f"  cooldown {countdown}"
            lines.append(line)
        return "\n".join(lines)

    def handle_command(self, line: str) -> Optional[str]:
        """
        Execute one command line and return the text to show.
        Returns None when the session should end.
        """
        try:
            parts = shlex.split(line)
        except ValueError as e:
            return f"Could not parse command: {e}"
        if not parts:
            return ""

        cmd, args = parts[0].lower(), parts[1:]

        if cmd in ("quit", "exit", "q"):
            return None
        if cmd in ("help", "?"):
            return HELP_TEXT
        if cmd in ("list", "ls"):
            return self.list_games()
        if cmd == "show":
            return self.render_text()
        if cmd == "reload":
            if self.reload():
                return f"Loaded {len(self.catalog)} games."
            return self.load_error or ""
        if cmd == "select":
            if not args:
                return "Usage: select <id>"
            try:
                item = self.catalog.select(args[0])
            except NotFoundError as e:
                return e.message
            return f"Selected {item.name}."
        if cmd == "refresh":
            outcome = self.coordinator.refresh(args[0] if args else None)
            if outcome.status is RefreshStatus.NO_SELECTION:
                return "No game selected."
            if outcome.ok:
                return self.render_text()
            return outcome.message or ""
        if cmd == "html":
            if not args:
                return "Usage: html <path>"
            try:
                return f"Wrote {self.write_html(args[0])}"
            except OSError as e:
                logger.error("Failed to write HTML dashboard to %s: %s", args[0], e)
                return f"Could not write {args[0]}: {e}"

        return f"Unknown command '{cmd}'. Type 'help' for the list of commands."


def run_interactive(
    dashboard: Dashboard, stdin: TextIO = sys.stdin, stdout: TextIO = sys.stdout
) -> int:
    dashboard.start()
    try:
        stdout.write(dashboard.render_text() + "\n")
        stdout.write("Type 'help' for commands.\n")
        while True:
            stdout.write("> ")
            stdout.flush()
            line = stdin.readline()
            if not line:
                break
            reply = dashboard.handle_command(line.strip())
            if reply is None:
                break
            if reply:
                stdout.write(reply + "\n")
    finally:
        dashboard.stop()
    return 0


def run_once(dashboard: Dashboard, stdout: TextIO = sys.stdout) -> int:
    if not dashboard.reload():
        stdout.write(dashboard.render_text() + "\n")
        logger.error("Could not load the game list: %s", dashboard.load_error)
        return 1
    stdout.write(dashboard.render_text() + "\n")
    if SNAPSHOT_PATH:
        dashboard.write_html(SNAPSHOT_PATH)
    return 0


def main() -> int:
    dashboard = Dashboard()
    if MODE == "once":
        return run_once(dashboard)
    return run_interactive(dashboard)


if __name__ == "__main__":
    try:
        raise SystemExit(main())
    except KeyboardInterrupt:
        raise SystemExit(130)
    except Exception as e:
        logger.exception("Fatal dashboard error: %s", e)
        raise SystemExit(2)
