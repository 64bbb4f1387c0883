"""Command line entry point for jira-tui."""

import logging
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.live import Live

from jira_tui.app import App
from jira_tui.config import (
    config_exists,
    default_config,
    get_config_path,
    load_config,
    save_config,
)
from jira_tui.events import EventSource, TerminalInput
from jira_tui.exceptions import JiraTuiError, RequestFailedError
from jira_tui.jira_client import JiraClient
from jira_tui.logger import setup_logger
from jira_tui.render import render_app

logger = logging.getLogger(__name__)

TICK_RATE = 0.25


def run_app(app: App, events: EventSource, live: Live) -> None:
    """Render, wait for the next event, handle it; until the app quits.

    Failed requests are shown in the status bar and the loop goes on.
    Anything else ends the loop.
    """
    while not app.should_quit:
        live.update(render_app(app), refresh=True)
        event = events.next()
        if event is None:
            continue
        try:
            app.handle_event(event)
        except RequestFailedError as e:
            app.report_error(e)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Path to the configuration file.",
)
@click.option("--debug", is_flag=True, help="Write debug output to the log file.")
@click.version_option(package_name="jira-tui")
def cli(config_path: Path | None, debug: bool) -> None:
    """Terminal client for JIRA sprints, backlogs and issues."""
    path = config_path or get_config_path()

    if not config_exists(path):
        save_config(default_config(), path)
        raise click.ClickException(
            f"Created a configuration template at {path}. "
            "Fill in your JIRA url, email and api_token, then run jira-tui again."
        )

    try:
        config = load_config(path)
    except JiraTuiError as e:
        raise click.ClickException(str(e)) from e

    setup_logger(path.parent / "jira-tui.log", level=logging.DEBUG if debug else logging.INFO)

    if not sys.stdin.isatty():
        raise click.ClickException("jira-tui requires an interactive terminal.")

    console = Console()
    app = App(config, JiraClient(config), config_saver=lambda c: save_config(c, path))

    with console.status("Loading projects, boards and sprints..."):
        try:
            app.initialize()
        except RequestFailedError as e:
            logger.error("Initialization failed: %s", e)
            app.report_error(e)

    logger.info("Starting UI")
    try:
        with TerminalInput() as terminal:
            events = EventSource(terminal.read_key, tick_rate=TICK_RATE).start()
            try:
                with Live(render_app(app), console=console, screen=True, auto_refresh=False) as live:
                    run_app(app, events, live)
            finally:
                events.stop()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    except Exception as e:
        logger.exception("Fatal error")
        raise click.ClickException(f"Unexpected error: {e}") from e
    logger.info("Exiting")


if __name__ == "__main__":
    cli()
