"""Application controller: the mode-keyed state machine behind the TUI.

``App`` owns every piece of view state and the JIRA client. Each event is
handled to completion, including its network calls, before the next one is
taken from the queue. Handlers fetch first and mutate afterwards, so a failed
call leaves the screen as it was.
"""

import logging
import time
from collections.abc import Callable
from enum import Enum

from jira_tui.config import Config
from jira_tui.events import Event, Key, KeyEvent, Tick
from jira_tui.exceptions import RequestFailedError
from jira_tui.jira_client import JiraClient
from jira_tui.models import Board, Project, Sprint, SprintUpdate
from jira_tui.views import (
    BacklogView,
    BoardSelector,
    InputBuffer,
    IssueDetailView,
    IssueListView,
    ProjectSelector,
    SprintSelector,
    SprintView,
)

logger = logging.getLogger(__name__)


class Mode(Enum):
    SPRINT = "sprint"
    BACKLOG = "backlog"
    ISSUE_DETAIL = "issue_detail"
    SPRINT_SELECTOR = "sprint_selector"
    BOARD_SELECTOR = "board_selector"
    PROJECT_SELECTOR = "project_selector"
    ADD_COMMENT = "add_comment"
    EDIT_ISSUE = "edit_issue"
    EDIT_SPRINT_NAME = "edit_sprint_name"


TEXT_MODES = (Mode.ADD_COMMENT, Mode.EDIT_ISSUE, Mode.EDIT_SPRINT_NAME)

_NAV_DOWN = (Key.DOWN, "j")
_NAV_UP = (Key.UP, "k")


class App:
    """Interprets key and tick events against the current mode."""

    def __init__(
        self,
        config: Config,
        client: JiraClient,
        config_saver: Callable[[Config], None] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self.client = client
        self._config_saver = config_saver
        self._clock = clock

        self.mode = Mode.SPRINT
        self.show_help = False
        self.should_quit = False
        self.status_message: str | None = None

        self.sprint_view = SprintView()
        self.backlog_view = BacklogView()
        self.issue_detail_view = IssueDetailView()
        self.sprint_selector = SprintSelector()
        self.board_selector = BoardSelector()
        self.project_selector = ProjectSelector()
        self.input = InputBuffer()

        self.current_sprint_id: int | None = None
        self.available_boards: list[Board] = []
        self.available_sprints: list[Sprint] = []
        self.available_projects: list[Project] = []
        self.detail_return_mode = Mode.SPRINT
        self._last_load = clock()

    # ─── Dispatch ────────────────────────────────────────────────────────────

    def handle_event(self, event: Event) -> bool:
        """Handle one event. Returns True when the program should exit.

        Raises:
            RequestFailedError: If a network call made for this event fails.
                Nothing has been changed in that case.
        """
        if isinstance(event, Tick):
            self._on_tick()
        elif isinstance(event, KeyEvent) and not event.modifiers:
            self.status_message = None
            if self.show_help:
                self._handle_help_key(event.code)
            else:
                self._handlers[self.mode](self, event.code)
        return self.should_quit

    def report_error(self, error: RequestFailedError) -> None:
        """Show a recoverable failure in the status bar."""
        logger.warning("Request failed in %s mode: %s", self.mode.value, error)
        self.status_message = f"Error: {error}"

    def _handle_global_key(self, key: str) -> bool:
        if key == "q":
            self.should_quit = True
        elif key == "h":
            self.show_help = not self.show_help
        else:
            return False
        return True

    def _handle_help_key(self, key: str) -> None:
        if key == "q":
            self.should_quit = True
        elif key in ("h", Key.ESC):
            self.show_help = False

    def _on_tick(self) -> None:
        interval = self.config.refresh_interval
        if interval <= 0 or self.show_help:
            return
        if self._clock() - self._last_load < interval:
            return
        if self.mode is Mode.SPRINT:
            logger.debug("Auto-refreshing sprint")
            self.refresh_sprint()
        elif self.mode is Mode.BACKLOG:
            logger.debug("Auto-refreshing backlog")
            self.load_backlog()

    # ─── List screens ────────────────────────────────────────────────────────

    def _handle_sprint_key(self, key: str) -> None:
        if self._handle_global_key(key):
            return
        if key == "s":
            self.mode = Mode.SPRINT
        elif key == "b":
            self.load_backlog()
            self.mode = Mode.BACKLOG
        elif key == "r":
            self.refresh_sprint()
        elif key == Key.TAB:
            self.sprint_selector.set_items(self.available_sprints)
            self.sprint_selector.activate()
            self.mode = Mode.SPRINT_SELECTOR
        elif key == "B":
            self.board_selector.set_items(self.available_boards)
            self.board_selector.activate()
            self.mode = Mode.BOARD_SELECTOR
        elif key == "P":
            self.project_selector.set_items(self.available_projects)
            self.project_selector.activate()
            self.mode = Mode.PROJECT_SELECTOR
        elif key in _NAV_DOWN:
            self.sprint_view.next()
        elif key in _NAV_UP:
            self.sprint_view.previous()
        elif key == Key.ENTER:
            self._open_issue(self.sprint_view)

    def _handle_backlog_key(self, key: str) -> None:
        if self._handle_global_key(key):
            return
        if key == "s":
            self.refresh_sprint()
            self.mode = Mode.SPRINT
        elif key == "b":
            self.mode = Mode.BACKLOG
        elif key == "r":
            self.load_backlog()
        elif key in _NAV_DOWN:
            self.backlog_view.next()
        elif key in _NAV_UP:
            self.backlog_view.previous()
        elif key == Key.ENTER:
            self._open_issue(self.backlog_view)

    def _open_issue(self, view: IssueListView) -> None:
        issue = view.selected_issue()
        if issue is None:
            return
        transitions = self.client.get_transitions(issue.key)
        self.issue_detail_view.set_issue(issue)
        self.issue_detail_view.set_transitions(transitions)
        self.issue_detail_view.show_transitions = False
        self.detail_return_mode = self.mode
        self.mode = Mode.ISSUE_DETAIL

    # ─── Issue detail ────────────────────────────────────────────────────────

    def _handle_issue_detail_key(self, key: str) -> None:
        if self._handle_global_key(key):
            return
        detail = self.issue_detail_view

        if key == Key.ESC:
            if detail.show_transitions:
                detail.show_transitions = False
            else:
                self.mode = self.detail_return_mode
        elif key == "c":
            self.input = InputBuffer("Add Comment")
            self.mode = Mode.ADD_COMMENT
        elif key == "e":
            summary = detail.issue.summary if detail.issue else ""
            self.input = InputBuffer("Edit Issue Summary", summary)
            self.mode = Mode.EDIT_ISSUE
        elif key == "t":
            detail.show_transitions = True
        elif detail.show_transitions:
            if key in _NAV_DOWN:
                detail.transitions.next()
            elif key in _NAV_UP:
                detail.transitions.previous()
            elif key == Key.ENTER:
                self._apply_selected_transition()

    def _apply_selected_transition(self) -> None:
        detail = self.issue_detail_view
        transition = detail.selected_transition()
        if transition is not None and detail.issue is not None:
            issue_key = detail.issue.key
            logger.info("Moving %s to %s", issue_key, transition.to.name)
            self.client.transition_issue(issue_key, transition.id)
            self._reload_issue(issue_key, with_transitions=True)
        detail.show_transitions = False

    def _reload_issue(self, issue_key: str, with_transitions: bool = False) -> None:
        issue = self.client.get_issue(issue_key)
        transitions = self.client.get_transitions(issue_key) if with_transitions else None
        self.issue_detail_view.set_issue(issue)
        if transitions is not None:
            self.issue_detail_view.set_transitions(transitions)

    # ─── Text entry ──────────────────────────────────────────────────────────

    def _edit_text(self, key: str) -> None:
        if key == Key.BACKSPACE:
            self.input.backspace()
        elif key == Key.LEFT:
            self.input.move_left()
        elif key == Key.RIGHT:
            self.input.move_right()
        elif len(key) == 1:
            self.input.insert(key)

    def _handle_comment_key(self, key: str) -> None:
        if key == Key.ESC:
            self.input.clear()
            self.mode = Mode.ISSUE_DETAIL
        elif key == Key.ENTER:
            issue = self.issue_detail_view.issue
            comment = self.input.value
            posted = issue is not None and comment
            if posted:
                self.client.add_comment(issue.key, comment)
            self.input.clear()
            self.mode = Mode.ISSUE_DETAIL
            if posted:
                self._reload_issue(issue.key)
        else:
            self._edit_text(key)

    def _handle_edit_issue_key(self, key: str) -> None:
        if key == Key.ESC:
            self.input.clear()
            self.mode = Mode.ISSUE_DETAIL
        elif key == Key.ENTER:
            issue = self.issue_detail_view.issue
            summary = self.input.value
            changed = issue is not None and summary and summary != issue.summary
            if changed:
                self.client.update_issue(issue.key, {"summary": summary})
            self.input.clear()
            self.mode = Mode.ISSUE_DETAIL
            if changed:
                self._reload_issue(issue.key)
        else:
            self._edit_text(key)

    def _handle_edit_sprint_name_key(self, key: str) -> None:
        if key == Key.ESC:
            self.input.clear()
            self.mode = Mode.SPRINT_SELECTOR
        elif key == Key.ENTER:
            sprint = self.sprint_selector.selected()
            name = self.input.value
            renamed = sprint is not None and name
            if renamed:
                self.client.update_sprint(sprint.id, SprintUpdate(name=name))
                if sprint.id == self.current_sprint_id:
                    self.sprint_view.sprint_name = name
            self.input.clear()
            self.mode = Mode.SPRINT_SELECTOR
            if renamed:
                self.refresh_sprints()
        else:
            self._edit_text(key)

    # ─── Selectors ───────────────────────────────────────────────────────────

    def _handle_sprint_selector_key(self, key: str) -> None:
        if self._handle_global_key(key):
            return
        selector = self.sprint_selector

        if key == Key.ESC:
            selector.deactivate()
            self.mode = Mode.SPRINT
        elif key in _NAV_DOWN:
            selector.next()
        elif key in _NAV_UP:
            selector.previous()
        elif key == Key.ENTER:
            sprint = selector.selected()
            if sprint is not None:
                self.load_sprint_issues(sprint.id)
                selector.deactivate()
                self.mode = Mode.SPRINT
        elif key == "e":
            sprint = selector.selected()
            if sprint is not None:
                self.input = InputBuffer(f"Edit Sprint Name: {sprint.name}", sprint.name)
                self.mode = Mode.EDIT_SPRINT_NAME

    def _handle_board_selector_key(self, key: str) -> None:
        if self._handle_global_key(key):
            return
        selector = self.board_selector

        if key == Key.ESC:
            selector.deactivate()
            self.mode = Mode.SPRINT
        elif key in _NAV_DOWN:
            selector.next()
        elif key in _NAV_UP:
            selector.previous()
        elif key == Key.ENTER:
            board = selector.selected()
            if board is not None:
                self.switch_board(board.id)
                self.refresh_sprint()
                selector.deactivate()
                self.mode = Mode.SPRINT

    def _handle_project_selector_key(self, key: str) -> None:
        if self._handle_global_key(key):
            return
        selector = self.project_selector

        if key == Key.ESC:
            selector.deactivate()
            self.mode = Mode.SPRINT
        elif key in _NAV_DOWN:
            selector.next()
        elif key in _NAV_UP:
            selector.previous()
        elif key == Key.ENTER:
            project = selector.selected()
            if project is not None:
                self.select_project(project)
                selector.deactivate()
                self.mode = Mode.SPRINT

    def select_project(self, project: Project) -> None:
        """Restrict the available boards to the ones of ``project``.

        When no board matches, nothing changes.
        """
        boards = [board for board in self.client.get_boards() if board.belongs_to(project.key)]
        if not boards:
            logger.info("No boards found for project %s", project.key)
            return
        self.available_boards = boards
        self.switch_board(boards[0].id)
        self.refresh_sprint()

    def switch_board(self, board_id: int) -> None:
        """Make ``board_id`` the current board and forget the old board's sprints."""
        logger.info("Switching to board %s", board_id)
        self.config.default_board_id = board_id
        self.available_sprints = []
        self.current_sprint_id = None
        if self._config_saver is not None:
            try:
                self._config_saver(self.config)
            except OSError as e:
                logger.warning("Could not save default board: %s", e)

    # ─── Loading ─────────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Load projects, boards and the current sprint.

        Projects and boards are best effort and fall back to empty lists.
        Errors while loading the sprint propagate; the app stays usable.
        """
        if not self.available_projects:
            try:
                self.available_projects = self.client.get_projects()
            except RequestFailedError as e:
                logger.warning("Could not load projects: %s", e)
                self.available_projects = []

        if not self.available_boards:
            try:
                self.available_boards = self.client.get_boards()
            except RequestFailedError as e:
                logger.warning("Could not load boards: %s", e)
                self.available_boards = []

        if self.config.default_board_id is None and self.available_boards:
            self.config.default_board_id = self.available_boards[0].id

        self.refresh_sprint()

    def refresh_sprint(self) -> None:
        """Reload the current sprint's issues.

        Without a remembered sprint the sprint with the highest id is shown.
        With no sprints at all the view is set to an explicit empty state.
        """
        board_id = self.config.default_board_id
        if board_id is None:
            return

        sprints = self.available_sprints
        if not sprints:
            sprints = sorted(self.client.get_board_sprints(board_id), key=lambda s: s.id)

        target = None
        if self.current_sprint_id is not None:
            target = next((s for s in sprints if s.id == self.current_sprint_id), None)
        if target is None and sprints:
            target = sprints[-1]

        if target is None:
            self.available_sprints = sprints
            self.current_sprint_id = None
            self.sprint_view.set_empty()
        else:
            issues = self.client.get_sprint_issues(board_id, target.id)
            self.available_sprints = sprints
            self.current_sprint_id = target.id
            self.sprint_view.set_sprint(issues, target.name, target.goal)
        self._last_load = self._clock()

    def refresh_sprints(self) -> None:
        """Reload the sprint list of the current board into the selector."""
        board_id = self.config.default_board_id
        if board_id is None:
            return
        sprints = sorted(self.client.get_board_sprints(board_id), key=lambda s: s.id)
        previous = self.sprint_selector.selected()
        self.available_sprints = sprints
        self.sprint_selector.set_items(sprints)
        if previous is not None:
            self.sprint_selector.select_where(lambda s: s.id == previous.id)

    def load_sprint_issues(self, sprint_id: int) -> None:
        board_id = self.config.default_board_id
        if board_id is None:
            return
        issues = self.client.get_sprint_issues(board_id, sprint_id)
        sprint = next((s for s in self.available_sprints if s.id == sprint_id), None)
        name = sprint.name if sprint else f"Sprint {sprint_id}"
        goal = sprint.goal if sprint else None
        self.current_sprint_id = sprint_id
        self.sprint_view.set_sprint(issues, name, goal)
        self._last_load = self._clock()

    def load_backlog(self) -> None:
        board_id = self.config.default_board_id
        if board_id is None:
            return
        issues = self.client.get_backlog(board_id)
        self.backlog_view.set_issues(issues)
        self._last_load = self._clock()

    # ─── Queries for the renderer ────────────────────────────────────────────

    def current_board(self) -> Board | None:
        board_id = self.config.default_board_id
        return next((b for b in self.available_boards if b.id == board_id), None)

    def keybindings(self) -> list[tuple[str, str]]:
        """Key hints for the status bar, depending on the mode."""
        bindings = [("q", "Quit"), ("h", "Help")]
        if self.show_help:
            return bindings + [("Esc", "Close Help")]

        if self.mode is Mode.SPRINT:
            bindings += [
                ("j/k", "Navigate"),
                ("Enter", "View Issue"),
                ("r", "Refresh"),
                ("Tab", "Sprint Selector"),
                ("B", "Board Selector"),
                ("P", "Project Selector"),
                ("s", "Sprint"),
                ("b", "Backlog"),
            ]
        elif self.mode is Mode.BACKLOG:
            bindings += [
                ("j/k", "Navigate"),
                ("Enter", "View Issue"),
                ("r", "Refresh"),
                ("s", "Sprint"),
                ("b", "Backlog"),
            ]
        elif self.mode is Mode.SPRINT_SELECTOR:
            bindings += [
                ("j/k", "Navigate"),
                ("Enter", "Select Sprint"),
                ("e", "Edit Sprint"),
                ("Esc", "Back"),
            ]
        elif self.mode is Mode.BOARD_SELECTOR:
            bindings += [("j/k", "Navigate"), ("Enter", "Select Board"), ("Esc", "Back")]
        elif self.mode is Mode.PROJECT_SELECTOR:
            bindings += [("j/k", "Navigate"), ("Enter", "Select Project"), ("Esc", "Back")]
        elif self.mode is Mode.ISSUE_DETAIL:
            if self.issue_detail_view.show_transitions:
                bindings += [("j/k", "Navigate"), ("Enter", "Apply Transition"), ("Esc", "Back")]
            else:
                bindings += [("c", "Comment"), ("e", "Edit"), ("t", "Transitions"), ("Esc", "Back")]
        elif self.mode is Mode.ADD_COMMENT:
            bindings = [("Enter", "Submit"), ("Esc", "Cancel"), ("←/→", "Move Cursor")]
        else:
            bindings = [("Enter", "Save"), ("Esc", "Cancel"), ("←/→", "Move Cursor")]
        return bindings

    _handlers = {
        Mode.SPRINT: _handle_sprint_key,
        Mode.BACKLOG: _handle_backlog_key,
        Mode.ISSUE_DETAIL: _handle_issue_detail_key,
        Mode.SPRINT_SELECTOR: _handle_sprint_selector_key,
        Mode.BOARD_SELECTOR: _handle_board_selector_key,
        Mode.PROJECT_SELECTOR: _handle_project_selector_key,
        Mode.ADD_COMMENT: _handle_comment_key,
        Mode.EDIT_ISSUE: _handle_edit_issue_key,
        Mode.EDIT_SPRINT_NAME: _handle_edit_sprint_name_key,
    }
