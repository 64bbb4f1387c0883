"""Tests for the application controller state machine."""

from unittest.mock import MagicMock

import pytest

from jira_tui.app import App, Mode
from jira_tui.config import Config
from jira_tui.events import Key, KeyEvent, Tick
from jira_tui.exceptions import RequestFailedError
from jira_tui.jira_client import JiraClient
from jira_tui.models import (
    Board,
    BoardLocation,
    Issue,
    IssueType,
    Project,
    Sprint,
    SprintUpdate,
    Status,
    StatusCategory,
    Transition,
)
from jira_tui.views import NO_SPRINTS

TODO = Status("1", "To Do", StatusCategory(2, "new", "To Do"))
DONE = Status("3", "Done", StatusCategory(3, "done", "Done"))


def _make_issue(key, status=TODO, summary=None):
    return Issue(
        id=key.split("-")[1],
        key=key,
        summary=summary or f"Summary of {key}",
        status=status,
        issue_type=IssueType("10001", "Story"),
    )


def _make_sprint(sprint_id, state="closed", goal=None):
    return Sprint(id=sprint_id, name=f"Sprint {sprint_id}", state=state, goal=goal)


def _make_config(board_id=None, refresh_interval=0):
    return Config(
        jira_url="https://example.atlassian.net",
        jira_email="dev@example.com",
        jira_api_token="secret",
        default_board_id=board_id,
        refresh_interval=refresh_interval,
    )


class FakeClock:
    def __init__(self, now=0.0):
        self.now = now

    def __call__(self):
        return self.now


def _make_app(board_id=10, client=None, **kwargs):
    client = client or MagicMock(spec=JiraClient)
    return App(_make_config(board_id, kwargs.pop("refresh_interval", 0)), client, **kwargs)


def _press(app, *codes):
    for code in codes:
        app.handle_event(KeyEvent(code))


def _loaded_app(issues=None, sprints=None, transitions=None):
    """App on board 10 with its sprint view already loaded."""
    app = _make_app()
    client = app.client
    client.get_board_sprints.return_value = sprints if sprints is not None else [_make_sprint(1), _make_sprint(2)]
    client.get_sprint_issues.return_value = issues if issues is not None else [
        _make_issue("ABC-1"), _make_issue("ABC-2"),
    ]
    client.get_transitions.return_value = transitions or [Transition("31", "Finish", DONE)]
    app.refresh_sprint()
    return app


class TestInitialize:
    """Tests for the startup loading sequence."""

    def test_loads_projects_boards_and_latest_sprint(self):
        client = MagicMock(spec=JiraClient)
        client.get_projects.return_value = [Project("1", "ABC", "Alpha", "software")]
        client.get_boards.return_value = [Board(10, "ABC board", "scrum"), Board(11, "Other", "kanban")]
        client.get_board_sprints.return_value = [_make_sprint(7), _make_sprint(9), _make_sprint(8)]
        client.get_sprint_issues.return_value = [_make_issue("ABC-1")]
        app = _make_app(board_id=None, client=client)

        app.initialize()

        assert app.config.default_board_id == 10
        assert app.current_sprint_id == 9
        assert [s.id for s in app.available_sprints] == [7, 8, 9]
        client.get_sprint_issues.assert_called_once_with(10, 9)
        assert app.sprint_view.sprint_name == "Sprint 9"

    def test_configured_board_is_kept(self):
        client = MagicMock(spec=JiraClient)
        client.get_projects.return_value = []
        client.get_boards.return_value = [Board(10, "A", "scrum"), Board(20, "B", "scrum")]
        client.get_board_sprints.return_value = []
        app = _make_app(board_id=20, client=client)

        app.initialize()

        assert app.config.default_board_id == 20
        client.get_board_sprints.assert_called_once_with(20)

    def test_project_and_board_failures_degrade_to_empty(self):
        client = MagicMock(spec=JiraClient)
        client.get_projects.side_effect = RequestFailedError("down", 500)
        client.get_boards.side_effect = RequestFailedError("down", 500)
        app = _make_app(board_id=None, client=client)

        app.initialize()

        assert app.available_projects == []
        assert app.available_boards == []
        assert app.config.default_board_id is None
        client.get_board_sprints.assert_not_called()

    def test_no_sprints_sets_explicit_empty_state(self):
        client = MagicMock(spec=JiraClient)
        client.get_projects.return_value = []
        client.get_boards.return_value = [Board(10, "A", "scrum")]
        client.get_board_sprints.return_value = []
        app = _make_app(board_id=None, client=client)

        app.initialize()

        assert app.sprint_view.sprint_name == NO_SPRINTS
        assert app.sprint_view.issues == []
        assert app.current_sprint_id is None

    def test_sprint_failure_propagates_after_partial_load(self):
        client = MagicMock(spec=JiraClient)
        client.get_projects.return_value = [Project("1", "ABC", "Alpha", "software")]
        client.get_boards.return_value = [Board(10, "A", "scrum")]
        client.get_board_sprints.side_effect = RequestFailedError("down", 503)
        app = _make_app(board_id=None, client=client)

        with pytest.raises(RequestFailedError):
            app.initialize()
        assert len(app.available_projects) == 1
        assert app.config.default_board_id == 10


class TestGlobalKeys:
    """Tests for quit and the help overlay."""

    def test_q_quits(self):
        app = _make_app()
        assert app.handle_event(KeyEvent("q")) is True
        assert app.should_quit

    def test_help_overlay_suppresses_other_input(self):
        app = _loaded_app()
        _press(app, "h")
        assert app.show_help

        _press(app, "b", Key.TAB, "j")

        assert app.mode is Mode.SPRINT
        assert app.sprint_view.cursor.selected == 0
        app.client.get_backlog.assert_not_called()

    def test_help_closes_with_h_or_esc(self):
        app = _make_app()
        _press(app, "h", "h")
        assert not app.show_help
        _press(app, "h", Key.ESC)
        assert not app.show_help

    def test_q_quits_from_help(self):
        app = _make_app()
        _press(app, "h")
        assert app.handle_event(KeyEvent("q")) is True

    def test_help_keeps_underlying_mode(self):
        app = _loaded_app()
        _press(app, Key.TAB, "h", "h")
        assert app.mode is Mode.SPRINT_SELECTOR

    def test_modified_keys_are_ignored(self):
        app = _make_app()
        app.handle_event(KeyEvent("q", modifiers=frozenset({"ctrl"})))
        assert not app.should_quit


class TestSprintMode:
    """Tests for the sprint view."""

    def test_navigation_wraps(self):
        app = _loaded_app()
        assert app.sprint_view.selected_issue().key == "ABC-2"
        _press(app, "j")
        assert app.sprint_view.selected_issue().key == "ABC-1"
        _press(app, Key.DOWN)
        assert app.sprint_view.selected_issue().key == "ABC-2"
        _press(app, "k")
        assert app.sprint_view.selected_issue().key == "ABC-1"

    def test_enter_opens_issue_with_transitions(self):
        app = _loaded_app()

        _press(app, Key.ENTER)

        assert app.mode is Mode.ISSUE_DETAIL
        assert app.issue_detail_view.issue.key == "ABC-2"
        assert app.issue_detail_view.selected_transition().id == "31"
        assert not app.issue_detail_view.show_transitions
        app.client.get_transitions.assert_called_once_with("ABC-2")

    def test_enter_without_issues_does_nothing(self):
        app = _loaded_app(issues=[])
        _press(app, Key.ENTER)
        assert app.mode is Mode.SPRINT
        app.client.get_transitions.assert_not_called()

    def test_failed_open_leaves_state_untouched(self):
        app = _loaded_app()
        app.client.get_transitions.side_effect = RequestFailedError("down", 500)

        with pytest.raises(RequestFailedError):
            _press(app, Key.ENTER)

        assert app.mode is Mode.SPRINT
        assert app.issue_detail_view.issue is None

    def test_b_loads_backlog(self):
        app = _loaded_app()
        app.client.get_backlog.return_value = [_make_issue("ABC-5"), _make_issue("ABC-9")]

        _press(app, "b")

        assert app.mode is Mode.BACKLOG
        assert [i.key for i in app.backlog_view.issues] == ["ABC-9", "ABC-5"]
        app.client.get_backlog.assert_called_once_with(10)

    def test_failed_backlog_keeps_sprint_mode(self):
        app = _loaded_app()
        app.client.get_backlog.side_effect = RequestFailedError("down", 500)

        with pytest.raises(RequestFailedError):
            _press(app, "b")
        assert app.mode is Mode.SPRINT

    def test_refresh_keeps_current_sprint(self):
        app = _loaded_app()
        app.current_sprint_id = 1
        app.client.get_sprint_issues.reset_mock()

        _press(app, "r")

        app.client.get_sprint_issues.assert_called_once_with(10, 1)
        assert app.sprint_view.sprint_name == "Sprint 1"

    def test_refresh_falls_back_to_latest_when_current_sprint_vanished(self):
        app = _loaded_app()
        app.current_sprint_id = 77

        _press(app, "r")

        assert app.current_sprint_id == 2

    def test_tab_opens_sprint_selector_with_snapshot(self):
        app = _loaded_app()

        _press(app, Key.TAB)

        assert app.mode is Mode.SPRINT_SELECTOR
        assert app.sprint_selector.is_active
        assert [s.id for s in app.sprint_selector.items] == [2, 1]
        app.client.get_board_sprints.assert_called_once()

    def test_capital_b_and_p_open_selectors(self):
        app = _loaded_app()
        app.available_boards = [Board(10, "A", "scrum")]
        app.available_projects = [Project("1", "ABC", "Alpha", "software")]

        _press(app, "B")
        assert app.mode is Mode.BOARD_SELECTOR
        _press(app, Key.ESC, "P")
        assert app.mode is Mode.PROJECT_SELECTOR
        assert app.project_selector.selected().key == "ABC"


class TestBacklogMode:
    def test_s_returns_to_sprint_and_refreshes(self):
        app = _loaded_app()
        app.client.get_backlog.return_value = []
        _press(app, "b")
        app.client.get_sprint_issues.reset_mock()

        _press(app, "s")

        assert app.mode is Mode.SPRINT
        app.client.get_sprint_issues.assert_called_once()

    def test_esc_from_detail_returns_to_backlog(self):
        app = _loaded_app()
        app.client.get_backlog.return_value = [_make_issue("ABC-5")]
        _press(app, "b", Key.ENTER)
        assert app.mode is Mode.ISSUE_DETAIL

        _press(app, Key.ESC)

        assert app.mode is Mode.BACKLOG


class TestIssueDetail:
    """Tests for transitions, comments and summary edits."""

    def test_transition_round_trip(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "t")
        assert app.issue_detail_view.show_transitions
        app.client.get_issue.return_value = _make_issue("ABC-2", status=DONE)
        app.client.get_transitions.return_value = [Transition("11", "Reopen", TODO)]

        _press(app, Key.ENTER)

        app.client.transition_issue.assert_called_once_with("ABC-2", "31")
        assert app.issue_detail_view.issue.status == DONE
        assert app.issue_detail_view.issue.status == Transition("31", "Finish", DONE).to
        assert app.issue_detail_view.selected_transition().id == "11"
        assert not app.issue_detail_view.show_transitions
        assert app.mode is Mode.ISSUE_DETAIL

    def test_enter_without_visible_transitions_does_nothing(self):
        app = _loaded_app()
        _press(app, Key.ENTER, Key.ENTER)
        app.client.transition_issue.assert_not_called()

    def test_transition_navigation(self):
        transitions = [Transition("1", "Start", TODO), Transition("2", "Finish", DONE)]
        app = _loaded_app(transitions=transitions)
        _press(app, Key.ENTER, "t", "j")
        assert app.issue_detail_view.selected_transition().id == "2"
        _press(app, "j")
        assert app.issue_detail_view.selected_transition().id == "1"

    def test_failed_transition_keeps_issue(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "t")
        app.client.transition_issue.side_effect = RequestFailedError("conflict", 409)

        with pytest.raises(RequestFailedError):
            _press(app, Key.ENTER)
        assert app.issue_detail_view.issue.status == TODO

    def test_esc_hides_transitions_then_goes_back(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "t", Key.ESC)
        assert app.mode is Mode.ISSUE_DETAIL
        assert not app.issue_detail_view.show_transitions
        _press(app, Key.ESC)
        assert app.mode is Mode.SPRINT

    def test_add_comment(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "c")
        assert app.mode is Mode.ADD_COMMENT
        app.client.get_issue.return_value = _make_issue("ABC-2", summary="reloaded")

        _press(app, "h", "i", "q", Key.ENTER)

        app.client.add_comment.assert_called_once_with("ABC-2", "hiq")
        assert app.issue_detail_view.issue.summary == "reloaded"
        assert app.mode is Mode.ISSUE_DETAIL
        assert app.input.value == ""
        assert not app.should_quit
        assert not app.show_help

    def test_empty_comment_is_not_posted(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "c", Key.ENTER)
        app.client.add_comment.assert_not_called()
        assert app.mode is Mode.ISSUE_DETAIL

    def test_cancel_comment(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "c", "x", Key.ESC)
        assert app.mode is Mode.ISSUE_DETAIL
        assert app.input.value == ""
        app.client.add_comment.assert_not_called()

    def test_failed_comment_keeps_text(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "c", "o", "k")
        app.client.add_comment.side_effect = RequestFailedError("down", 500)

        with pytest.raises(RequestFailedError):
            _press(app, Key.ENTER)
        assert app.mode is Mode.ADD_COMMENT
        assert app.input.value == "ok"

    def test_failed_reload_after_comment_does_not_post_twice(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "c", "h", "i")
        app.client.get_issue.side_effect = RequestFailedError("down", 500)

        with pytest.raises(RequestFailedError):
            _press(app, Key.ENTER)

        assert app.mode is Mode.ISSUE_DETAIL
        assert app.input.value == ""
        _press(app, Key.ENTER)
        app.client.add_comment.assert_called_once_with("ABC-2", "hi")

    def test_failed_reload_after_edit_leaves_edit_mode(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "e", "!")
        app.client.get_issue.side_effect = RequestFailedError("down", 500)

        with pytest.raises(RequestFailedError):
            _press(app, Key.ENTER)

        assert app.mode is Mode.ISSUE_DETAIL
        assert app.input.value == ""
        app.client.update_issue.assert_called_once()

    def test_edit_summary_updates_remotely(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "e")
        assert app.mode is Mode.EDIT_ISSUE
        assert app.input.value == "Summary of ABC-2"
        app.client.get_issue.return_value = _make_issue("ABC-2", summary="Summary of ABC-2!")

        _press(app, "!", Key.ENTER)

        app.client.update_issue.assert_called_once_with("ABC-2", {"summary": "Summary of ABC-2!"})
        assert app.issue_detail_view.issue.summary == "Summary of ABC-2!"
        assert app.mode is Mode.ISSUE_DETAIL

    def test_edit_with_cursor_movement(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "e")
        app.input.set_text("ac")
        _press(app, Key.LEFT, "b", Key.RIGHT, Key.RIGHT, "d", Key.BACKSPACE)
        assert app.input.value == "abc"

    def test_unchanged_summary_is_not_sent(self):
        app = _loaded_app()
        _press(app, Key.ENTER, "e", Key.ENTER)
        app.client.update_issue.assert_not_called()


class TestSprintSelector:
    """Tests for choosing and renaming sprints."""

    def test_enter_loads_chosen_sprint(self):
        app = _loaded_app(sprints=[_make_sprint(1, goal="Ship it"), _make_sprint(2)])
        _press(app, Key.TAB, "j")
        app.client.get_sprint_issues.reset_mock()

        _press(app, Key.ENTER)

        assert app.mode is Mode.SPRINT
        assert app.current_sprint_id == 1
        assert app.sprint_view.sprint_name == "Sprint 1"
        assert app.sprint_view.sprint_goal == "Ship it"
        assert not app.sprint_selector.is_active
        app.client.get_sprint_issues.assert_called_once_with(10, 1)

    def test_esc_cancels(self):
        app = _loaded_app()
        _press(app, Key.TAB, Key.ESC)
        assert app.mode is Mode.SPRINT
        assert not app.sprint_selector.is_active

    def test_rename_sprint(self):
        app = _loaded_app()
        _press(app, Key.TAB, "e")
        assert app.mode is Mode.EDIT_SPRINT_NAME
        assert app.input.value == "Sprint 2"
        app.client.get_board_sprints.return_value = [
            _make_sprint(1), Sprint(id=2, name="Sprint 2b", state="closed"),
        ]

        _press(app, "b", Key.ENTER)

        app.client.update_sprint.assert_called_once_with(2, SprintUpdate(name="Sprint 2b"))
        assert app.mode is Mode.SPRINT_SELECTOR
        assert app.sprint_selector.selected().name == "Sprint 2b"
        assert app.sprint_view.sprint_name == "Sprint 2b"

    def test_failed_list_reload_after_rename_leaves_edit_mode(self):
        app = _loaded_app()
        _press(app, Key.TAB, "e", "b")
        app.client.get_board_sprints.side_effect = RequestFailedError("down", 500)

        with pytest.raises(RequestFailedError):
            _press(app, Key.ENTER)

        assert app.mode is Mode.SPRINT_SELECTOR
        assert app.input.value == ""
        assert app.sprint_view.sprint_name == "Sprint 2b"
        app.client.update_sprint.assert_called_once()

    def test_rename_with_empty_name_is_skipped(self):
        app = _loaded_app()
        _press(app, Key.TAB, "e")
        app.input.clear()
        _press(app, Key.ENTER)
        app.client.update_sprint.assert_not_called()
        assert app.mode is Mode.SPRINT_SELECTOR

    def test_rename_cancel(self):
        app = _loaded_app()
        _press(app, Key.TAB, "e", Key.ESC)
        assert app.mode is Mode.SPRINT_SELECTOR
        app.client.update_sprint.assert_not_called()


class TestBoardSelector:
    """Tests for switching boards."""

    def test_switch_invalidates_sprints_before_reload(self):
        app = _loaded_app()
        app.available_boards = [Board(10, "A", "scrum"), Board(20, "B", "scrum")]
        seen = {}

        def board_sprints(board_id):
            seen["sprints"] = list(app.available_sprints)
            seen["current"] = app.current_sprint_id
            return [_make_sprint(50)]

        app.client.get_board_sprints.side_effect = board_sprints
        _press(app, "B")  # sorted by name descending: B first
        assert app.board_selector.selected().id == 20

        _press(app, Key.ENTER)

        assert seen == {"sprints": [], "current": None}
        assert app.config.default_board_id == 20
        assert app.current_sprint_id == 50
        assert app.mode is Mode.SPRINT
        app.client.get_sprint_issues.assert_called_with(20, 50)

    def test_switch_saves_config(self):
        saver = MagicMock()
        app = _make_app(config_saver=saver)
        app.client.get_board_sprints.return_value = []
        app.available_boards = [Board(30, "C", "scrum")]

        _press(app, "B", Key.ENTER)

        saver.assert_called_once_with(app.config)
        assert app.config.default_board_id == 30

    def test_save_failure_is_not_fatal(self):
        app = _make_app(config_saver=MagicMock(side_effect=OSError("read-only")))
        app.client.get_board_sprints.return_value = []
        app.available_boards = [Board(30, "C", "scrum")]

        _press(app, "B", Key.ENTER)

        assert app.mode is Mode.SPRINT

    def test_failed_reload_leaves_sprints_cleared(self):
        app = _loaded_app()
        app.available_boards = [Board(20, "B", "scrum")]
        app.client.get_board_sprints.side_effect = RequestFailedError("down", 500)

        with pytest.raises(RequestFailedError):
            _press(app, "B", Key.ENTER)

        assert app.available_sprints == []
        assert app.current_sprint_id is None
        assert app.mode is Mode.BOARD_SELECTOR


class TestProjectSelector:
    """Tests for narrowing boards by project."""

    def test_matching_boards_replace_available_boards(self):
        app = _loaded_app()
        app.available_projects = [Project("1", "ABC", "Alpha", "software")]
        app.available_boards = [Board(10, "Old", "scrum")]
        app.client.get_boards.return_value = [
            Board(21, "XYZ board", "scrum"),
            Board(22, "Team", "kanban", BoardLocation(project_key="ABC")),
            Board(23, "ABC scrum", "scrum"),
        ]
        app.client.get_board_sprints.return_value = [_make_sprint(60)]

        _press(app, "P", Key.ENTER)

        assert [b.id for b in app.available_boards] == [22, 23]
        assert app.config.default_board_id == 22
        assert app.current_sprint_id == 60
        assert app.mode is Mode.SPRINT
        assert not app.project_selector.is_active

    def test_no_matching_board_is_a_silent_noop(self):
        app = _loaded_app()
        app.available_projects = [Project("1", "NONE", "Nothing", "software")]
        boards_before = [Board(10, "Old", "scrum")]
        app.available_boards = list(boards_before)
        sprints_before = list(app.available_sprints)
        issues_before = list(app.sprint_view.issues)
        app.client.get_boards.return_value = [Board(21, "XYZ board", "scrum")]

        _press(app, "P", Key.ENTER)

        assert app.available_boards == boards_before
        assert app.config.default_board_id == 10
        assert app.available_sprints == sprints_before
        assert app.current_sprint_id == 2
        assert app.sprint_view.issues == issues_before
        assert app.mode is Mode.SPRINT
        assert not app.project_selector.is_active
        assert app.status_message is None


class TestTick:
    """Tests for periodic refresh."""

    def test_tick_refreshes_after_interval(self):
        clock = FakeClock()
        app = _make_app(clock=clock, refresh_interval=30)
        app.client.get_board_sprints.return_value = [_make_sprint(1)]
        app.client.get_sprint_issues.return_value = []
        app.refresh_sprint()
        app.client.get_sprint_issues.reset_mock()

        clock.now = 10
        app.handle_event(Tick())
        app.client.get_sprint_issues.assert_not_called()

        clock.now = 31
        app.handle_event(Tick())
        app.client.get_sprint_issues.assert_called_once_with(10, 1)

    def test_tick_reloads_backlog_in_backlog_mode(self):
        clock = FakeClock()
        app = _make_app(clock=clock, refresh_interval=5)
        app.client.get_backlog.return_value = []
        _press(app, "b")

        clock.now = 6
        app.handle_event(Tick())

        assert app.client.get_backlog.call_count == 2

    def test_tick_does_nothing_when_disabled_or_in_detail(self):
        clock = FakeClock()
        app = _make_app(clock=clock, refresh_interval=0)
        clock.now = 1000
        app.handle_event(Tick())
        app.client.get_board_sprints.assert_not_called()

        app.config.refresh_interval = 1
        app.mode = Mode.ISSUE_DETAIL
        app.handle_event(Tick())
        app.client.get_board_sprints.assert_not_called()


class TestErrorsAndHints:
    def test_report_error_sets_status_and_next_key_clears_it(self):
        app = _make_app()
        app.report_error(RequestFailedError("GET board failed", 500, "oops"))
        assert "HTTP 500" in app.status_message
        _press(app, "j")
        assert app.status_message is None

    def test_keybindings_follow_mode(self):
        app = _loaded_app()
        assert ("Tab", "Sprint Selector") in app.keybindings()
        _press(app, Key.ENTER, "t")
        assert ("Enter", "Apply Transition") in app.keybindings()
        _press(app, Key.ESC, "c")
        assert app.keybindings()[0] == ("Enter", "Submit")
