"""Drawing of the application state with rich.

Everything here is a pure function of ``App``; nothing is cached between
frames.
"""

from datetime import datetime

from rich.console import Group, RenderableType
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from jira_tui.app import TEXT_MODES, App, Mode
from jira_tui.models import Issue, Sprint
from jira_tui.views import InputBuffer, IssueListView, Selector

THEMES = {
    "default": {"accent": "yellow", "highlight": "bold black on bright_blue", "border": "white"},
    "dark": {"accent": "cyan", "highlight": "bold white on grey23", "border": "grey50"},
    "light": {"accent": "blue", "highlight": "bold black on bright_white", "border": "black"},
}

STATUS_STYLES = {"new": "blue", "indeterminate": "yellow", "done": "green"}

SPRINT_SYMBOLS = {"active": "●", "closed": "✓", "future": "○"}

HELP_SECTIONS = [
    ("Global", [("q", "Quit"), ("h", "Toggle help")]),
    (
        "Sprint view",
        [
            ("s / b", "Sprint / backlog view"),
            ("r", "Refresh"),
            ("Tab", "Sprint selector"),
            ("B", "Board selector"),
            ("P", "Project selector"),
            ("j/k ↓/↑", "Navigate"),
            ("Enter", "Open issue"),
        ],
    ),
    ("Selectors", [("j/k", "Navigate"), ("Enter", "Choose"), ("Esc", "Cancel"), ("e", "Edit sprint name")]),
    ("Issue detail", [("c", "Comment"), ("e", "Edit summary"), ("t", "Transitions"), ("Esc", "Back")]),
    ("Text entry", [("←/→", "Move cursor"), ("Backspace", "Delete"), ("Enter", "Submit"), ("Esc", "Cancel")]),
]


def render_app(app: App) -> RenderableType:
    theme = THEMES.get(app.config.theme, THEMES["default"])
    if app.show_help:
        return Group(render_help(theme), render_status_bar(app, theme))

    parts: list[RenderableType] = [render_tabs(app, theme), render_body(app, theme)]
    if app.mode in TEXT_MODES:
        parts.append(render_input(app.input, theme))
    parts.append(render_status_bar(app, theme))
    return Group(*parts)


def render_tabs(app: App, theme: dict) -> Text:
    active = {Mode.BACKLOG: "Backlog", Mode.ISSUE_DETAIL: "Issue Detail"}.get(app.mode, "Sprint")
    text = Text(" Jira TUI ", style="bold")
    for title in ("Sprint", "Backlog", "Issue Detail"):
        text.append(f" {title} ", style=f"bold {theme['accent']}" if title == active else "")
    board = app.current_board()
    if board is not None:
        text.append(f"  board: {board.name}", style="dim")
    return text


def render_body(app: App, theme: dict) -> RenderableType:
    if app.mode is Mode.SPRINT_SELECTOR or app.mode is Mode.EDIT_SPRINT_NAME:
        return render_selector(app.sprint_selector, "Sprint Selector", format_sprint, theme)
    if app.mode is Mode.BOARD_SELECTOR:
        return render_selector(
            app.board_selector, "Board Selector", lambda b: f"{b.name} [{b.board_type}]", theme
        )
    if app.mode is Mode.PROJECT_SELECTOR:
        return render_selector(
            app.project_selector, "Project Selector", lambda p: f"{p.key}  {p.name}", theme
        )
    if app.mode is Mode.BACKLOG:
        return render_issue_list(app.backlog_view, "Backlog", theme)
    if app.mode in (Mode.ISSUE_DETAIL, Mode.ADD_COMMENT, Mode.EDIT_ISSUE):
        return render_issue_detail(app, theme)

    title = app.sprint_view.sprint_name or "Sprint"
    if app.sprint_view.sprint_goal:
        title = f"{title}: {app.sprint_view.sprint_goal}"
    return render_issue_list(app.sprint_view, title, theme)


def render_issue_list(view: IssueListView, title: str, theme: dict) -> Panel:
    table = Table(expand=True, show_edge=False, box=None)
    table.add_column("Key", no_wrap=True)
    table.add_column("Summary", ratio=1)
    table.add_column("Status", no_wrap=True)
    table.add_column("Assignee", no_wrap=True)
    for index, issue in enumerate(view.issues):
        style = theme["highlight"] if index == view.cursor.selected else ""
        table.add_row(
            Text(issue.key),
            Text(issue.summary),
            Text(issue.status.name, style=STATUS_STYLES.get(issue.status.category.key, "")),
            Text(issue.assignee.display_name if issue.assignee else "Unassigned"),
            style=style,
        )
    if not view.issues:
        return Panel(Text("No issues", style="dim"), title=title, border_style=theme["border"])
    return Panel(table, title=title, border_style=theme["border"])


def render_issue_detail(app: App, theme: dict) -> RenderableType:
    detail = app.issue_detail_view
    issue = detail.issue
    if issue is None:
        return Panel(Text("No issue selected", style="dim"), title="Issue Detail")

    body = Text()
    body.append(f"{issue.summary}\n\n", style="bold")
    for label, value in issue_facts(issue):
        body.append(f"{label}: ", style=theme["accent"])
        body.append(f"{value}\n")
    body.append("\n")
    body.append(issue.description or "No description", style="" if issue.description else "dim")
    parts: list[RenderableType] = [Panel(body, title=issue.key, border_style=theme["border"])]

    if issue.comments:
        comments = Text()
        for comment in issue.comments:
            comments.append(f"{comment.author.display_name}", style="bold")
            comments.append(f" {format_datetime(comment.created)}\n", style="dim")
            comments.append(f"{comment.body}\n\n")
        parts.append(Panel(comments, title=f"Comments ({len(issue.comments)})"))

    if detail.show_transitions:
        transitions = Text()
        for index, transition in enumerate(detail.transitions.items):
            style = theme["highlight"] if index == detail.transitions.selected else ""
            transitions.append(f"{transition.name} → {transition.to.name}\n", style=style)
        if not detail.transitions.items:
            transitions.append("No transitions available", style="dim")
        parts.append(Panel(transitions, title="Transitions", border_style=theme["accent"]))
    return Group(*parts)


def issue_facts(issue: Issue) -> list[tuple[str, str]]:
    return [
        ("Type", issue.issue_type.name),
        ("Status", issue.status.name),
        ("Priority", issue.priority.name if issue.priority else "None"),
        ("Assignee", issue.assignee.display_name if issue.assignee else "Unassigned"),
        ("Reporter", issue.reporter.display_name if issue.reporter else "Unknown"),
        ("Created", format_datetime(issue.created)),
        ("Updated", format_datetime(issue.updated)),
    ]


def render_selector(selector: Selector, title: str, label, theme: dict) -> Panel:
    if selector.is_active:
        title = f"{title} (ACTIVE)"
    text = Text()
    for index, item in enumerate(selector.items):
        selected = index == selector.cursor.selected
        text.append(">> " if selected else "   ")
        text.append(f"{label(item)}\n", style=theme["highlight"] if selected else "")
    if not selector.items:
        text.append("Nothing to select", style="dim")
    border = theme["accent"] if selector.is_active else theme["border"]
    return Panel(text, title=title, border_style=border)


def format_sprint(sprint: Sprint) -> str:
    symbol = SPRINT_SYMBOLS.get(sprint.state, "•")
    if sprint.complete_date:
        dates = f" (Completed: {sprint.complete_date:%d/%b/%y})"
    elif sprint.start_date and sprint.end_date:
        dates = f" ({sprint.start_date:%d/%b} - {sprint.end_date:%d/%b})"
    else:
        dates = ""
    return f"{symbol} {sprint.name} [{sprint.state.upper()}]{dates}"


def format_datetime(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value else "-"


def render_input(buffer: InputBuffer, theme: dict) -> Panel:
    text = Text(buffer.text[: buffer.cursor])
    text.append("|", style=f"bold {theme['accent']}")
    text.append(buffer.text[buffer.cursor :])
    return Panel(text, title=buffer.title, border_style=theme["accent"])


def render_status_bar(app: App, theme: dict) -> Text:
    text = Text()
    if app.status_message:
        text.append(f"{app.status_message}\n", style="bold red")
    for index, (key, description) in enumerate(app.keybindings()):
        if index:
            text.append(" │", style="grey50")
        text.append(f" {key}", style=f"bold {theme['accent']}")
        text.append(f" {description}", style="grey70")
    return text


def render_help(theme: dict) -> Panel:
    table = Table(show_header=False, box=None, expand=True)
    table.add_column("Key", style=f"bold {theme['accent']}", no_wrap=True)
    table.add_column("Action")
    for section, bindings in HELP_SECTIONS:
        table.add_row(Text(section, style="bold underline"), "")
        for key, action in bindings:
            table.add_row(key, action)
        table.add_row("", "")
    return Panel(table, title="Help", border_style=theme["accent"])
