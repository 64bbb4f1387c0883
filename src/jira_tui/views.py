"""Per-screen view state: cached collections, selection cursors, input buffer.

Nothing in this module does I/O. The controller fills the holders with
server data and moves the cursors; the renderer only reads them.
"""

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from jira_tui.models import Board, Issue, Project, Sprint, Transition

T = TypeVar("T")

NO_SPRINTS = "No Sprints Available"


class SelectionCursor(Generic[T]):
    """An ordered list plus the index of the selected element.

    ``selected`` is None exactly when the list is empty. Moving past either
    end wraps around.
    """

    def __init__(self, items: list[T] | None = None) -> None:
        self.items: list[T] = []
        self.selected: int | None = None
        self.set_items(items or [])

    def set_items(self, items: list[T]) -> None:
        self.items = list(items)
        self.selected = 0 if self.items else None

    def next(self) -> None:
        if not self.items:
            return
        self.selected = 0 if self.selected is None else (self.selected + 1) % len(self.items)

    def previous(self) -> None:
        if not self.items:
            return
        if self.selected is None:
            self.selected = 0
        else:
            self.selected = (self.selected - 1) % len(self.items)

    def current(self) -> T | None:
        if self.selected is None:
            return None
        return self.items[self.selected]

    def __len__(self) -> int:
        return len(self.items)


class InputBuffer:
    """Single-line text entry with a cursor, ``0 <= cursor <= len(text)``."""

    def __init__(self, title: str = "Input", text: str = "") -> None:
        self.title = title
        self.text = ""
        self.cursor = 0
        self.set_text(text)

    def set_text(self, text: str) -> None:
        self.text = text
        self.cursor = len(text)

    def insert(self, char: str) -> None:
        self.text = self.text[: self.cursor] + char + self.text[self.cursor :]
        self.cursor += len(char)

    def backspace(self) -> None:
        if self.cursor == 0:
            return
        self.text = self.text[: self.cursor - 1] + self.text[self.cursor :]
        self.cursor -= 1

    def move_left(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1

    def move_right(self) -> None:
        if self.cursor < len(self.text):
            self.cursor += 1

    def clear(self) -> None:
        self.text = ""
        self.cursor = 0

    @property
    def value(self) -> str:
        return self.text


class IssueListView:
    """Issues of one list screen, newest key first."""

    def __init__(self) -> None:
        self.cursor: SelectionCursor[Issue] = SelectionCursor()

    @property
    def issues(self) -> list[Issue]:
        return self.cursor.items

    def set_issues(self, issues: list[Issue]) -> None:
        self.cursor.set_items(sorted(issues, key=lambda issue: issue.key, reverse=True))

    def next(self) -> None:
        self.cursor.next()

    def previous(self) -> None:
        self.cursor.previous()

    def selected_issue(self) -> Issue | None:
        return self.cursor.current()


class SprintView(IssueListView):
    """Issues of the current sprint together with the sprint's name and goal."""

    def __init__(self) -> None:
        super().__init__()
        self.sprint_name = ""
        self.sprint_goal: str | None = None

    def set_sprint(self, issues: list[Issue], name: str, goal: str | None = None) -> None:
        self.set_issues(issues)
        self.sprint_name = name
        self.sprint_goal = goal

    def set_empty(self) -> None:
        self.set_sprint([], NO_SPRINTS)


class BacklogView(IssueListView):
    pass


@dataclass
class IssueDetailView:
    """One issue and the transitions currently legal for it."""

    issue: Issue | None = None
    transitions: SelectionCursor[Transition] = field(default_factory=SelectionCursor)
    show_transitions: bool = False

    def set_issue(self, issue: Issue) -> None:
        self.issue = issue

    def set_transitions(self, transitions: list[Transition]) -> None:
        self.transitions.set_items(transitions)

    def selected_transition(self) -> Transition | None:
        return self.transitions.current()


class Selector(Generic[T]):
    """A selectable list shown as a modal screen."""

    def __init__(self) -> None:
        self.cursor: SelectionCursor[T] = SelectionCursor()
        self.is_active = False

    def _order(self, items: list[T]) -> list[T]:
        return list(items)

    def set_items(self, items: list[T]) -> None:
        self.cursor.set_items(self._order(items))

    @property
    def items(self) -> list[T]:
        return self.cursor.items

    def activate(self) -> None:
        self.is_active = True

    def deactivate(self) -> None:
        self.is_active = False

    def next(self) -> None:
        if self.is_active:
            self.cursor.next()

    def previous(self) -> None:
        if self.is_active:
            self.cursor.previous()

    def selected(self) -> T | None:
        return self.cursor.current()

    def select_where(self, predicate: Callable[[T], bool]) -> None:
        """Move the cursor to the first item matching ``predicate``, if any."""
        for index, item in enumerate(self.cursor.items):
            if predicate(item):
                self.cursor.selected = index
                return


class SprintSelector(Selector[Sprint]):
    """Sprints of the current board, highest id first."""

    def _order(self, items: list[Sprint]) -> list[Sprint]:
        return sorted(items, key=lambda sprint: sprint.id, reverse=True)


class BoardSelector(Selector[Board]):
    def _order(self, items: list[Board]) -> list[Board]:
        return sorted(items, key=lambda board: board.name, reverse=True)


class ProjectSelector(Selector[Project]):
    def _order(self, items: list[Project]) -> list[Project]:
        return sorted(items, key=lambda project: project.name, reverse=True)
