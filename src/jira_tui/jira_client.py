"""JIRA API client for the core and agile REST surfaces."""

import json
import logging
from collections.abc import Callable
from typing import Any

import requests
from jira import JIRA, JIRAError

from jira_tui.config import Config
from jira_tui.exceptions import RequestFailedError
from jira_tui.models import (
    Board,
    Epic,
    Issue,
    Project,
    Sprint,
    SprintUpdate,
    Transition,
    text_to_adf,
)

logger = logging.getLogger(__name__)


class RequestBuilder:
    """Builds URLs for one REST surface of a JIRA host."""

    def __init__(self, server: str, rest_path: str, version: str) -> None:
        self.base_url = f"{server.rstrip('/')}/rest/{rest_path}/{version}"

    def url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"


class JiraClient:
    """Client for interacting with JIRA Cloud API.

    Core resources (issues, transitions, comments, projects) live under
    ``/rest/api/3`` and agile resources (boards, sprints, epics) under
    ``/rest/agile/1.0``. Both go through the same authenticated session.

    Calls are never retried: every failure is raised as
    ``RequestFailedError`` so the user can retry with a refresh.
    """

    def __init__(self, config: Config, session: requests.Session | None = None) -> None:
        """Initialize JIRA client with configuration.

        ``session`` replaces the transport built from the ``jira`` package,
        which is useful in tests.
        """
        self.config = config
        self._client: JIRA | None = None
        self._session = session
        self.core = RequestBuilder(config.jira_url, "api", "3")
        self.agile = RequestBuilder(config.jira_url, "agile", "1.0")

    def _get_session(self) -> requests.Session:
        """Get or create the authenticated session.

        The session belongs to the ``JIRA`` instance, which is kept alive
        for as long as the session is in use.
        """
        if self._session is None:
            try:
                self._client = JIRA(
                    server=self.config.jira_url,
                    basic_auth=(self.config.jira_email, self.config.jira_api_token),
                    timeout=self.config.timeout,
                    max_retries=0,
                    get_server_info=False,
                )
            except JIRAError as e:
                raise RequestFailedError(
                    "Cannot set up JIRA session", e.status_code, e.text or "", self.config.jira_url
                ) from e
            self._session = self._client._session
        return self._session

    # ─── Issues ──────────────────────────────────────────────────────────────

    def get_issue(self, issue_key: str) -> Issue:
        data = self._request(self.core, "GET", f"issue/{issue_key}")
        return self._parse(Issue.from_dict, data)

    def get_sprint_issues(self, board_id: int, sprint_id: int) -> list[Issue]:
        items = self._paginate(self.agile, f"board/{board_id}/sprint/{sprint_id}/issue", "issues")
        return self._parse_all(Issue.from_dict, items)

    def get_backlog(self, board_id: int) -> list[Issue]:
        items = self._paginate(self.agile, f"board/{board_id}/backlog", "issues")
        return self._parse_all(Issue.from_dict, items)

    def get_transitions(self, issue_key: str) -> list[Transition]:
        data = self._request(self.core, "GET", f"issue/{issue_key}/transitions")
        return self._parse_all(Transition.from_dict, self._field(data, "transitions"))

    def transition_issue(self, issue_key: str, transition_id: str) -> None:
        self._request(
            self.core,
            "POST",
            f"issue/{issue_key}/transitions",
            body={"transition": {"id": transition_id}},
        )

    def update_issue(self, issue_key: str, fields: dict[str, Any]) -> None:
        """Set the given issue fields, e.g. ``{"summary": "New title"}``."""
        self._request(self.core, "PUT", f"issue/{issue_key}", body={"fields": fields})

    def add_comment(self, issue_key: str, comment: str) -> None:
        self._request(
            self.core,
            "POST",
            f"issue/{issue_key}/comment",
            body={"body": text_to_adf(comment)},
        )

    # ─── Projects and boards ─────────────────────────────────────────────────

    def get_projects(self) -> list[Project]:
        items = self._paginate(self.core, "project/search", "values")
        return self._parse_all(Project.from_dict, items)

    def get_boards(self) -> list[Board]:
        items = self._paginate(self.agile, "board", "values")
        return self._parse_all(Board.from_dict, items)

    def get_board(self, board_id: int) -> Board:
        data = self._request(self.agile, "GET", f"board/{board_id}")
        return self._parse(Board.from_dict, data)

    # ─── Sprints and epics ───────────────────────────────────────────────────

    def get_board_sprints(self, board_id: int) -> list[Sprint]:
        items = self._paginate(self.agile, f"board/{board_id}/sprint", "values")
        return self._parse_all(Sprint.from_dict, items)

    def get_sprint(self, sprint_id: int) -> Sprint:
        data = self._request(self.agile, "GET", f"sprint/{sprint_id}")
        return self._parse(Sprint.from_dict, data)

    def update_sprint(self, sprint_id: int, update: SprintUpdate) -> Sprint:
        """Partially update a sprint. Returns the sprint as stored by the server."""
        data = self._request(self.agile, "POST", f"sprint/{sprint_id}", body=update.to_dict())
        return self._parse(Sprint.from_dict, data)

    def get_board_epics(self, board_id: int) -> list[Epic]:
        items = self._paginate(self.agile, f"board/{board_id}/epic", "values")
        return self._parse_all(Epic.from_dict, items)

    def get_epic_issues(self, epic_id: int) -> list[Issue]:
        items = self._paginate(self.agile, f"epic/{epic_id}/issue", "issues")
        return self._parse_all(Issue.from_dict, items)

    # ─── Transport ───────────────────────────────────────────────────────────

    def _request(
        self,
        builder: RequestBuilder,
        method: str,
        path: str,
        body: dict | None = None,
        params: dict | None = None,
    ) -> Any:
        """Send one request and return the decoded JSON body (None if empty).

        Raises:
            RequestFailedError: On connection errors, non-2xx responses and
                bodies that are not JSON.
        """
        url = builder.url(path)
        logger.debug("%s %s params=%s", method, url, params)
        session = self._get_session()

        try:
            response = session.request(
                method,
                url,
                params=params,
                data=json.dumps(body) if body is not None else None,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
        except JIRAError as e:
            raise RequestFailedError(
                f"{method} {path} failed", e.status_code, e.text or "", url
            ) from e
        except requests.RequestException as e:
            raise RequestFailedError(f"{method} {path} failed: {e}", None, "", url) from e

        if not 200 <= response.status_code < 300:
            raise RequestFailedError(
                f"{method} {path} failed", response.status_code, response.text, url
            )

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise RequestFailedError(
                f"{method} {path} returned invalid JSON", response.status_code, response.text, url
            ) from e

    def _paginate(self, builder: RequestBuilder, path: str, items_key: str) -> list[dict]:
        """Collect every page of a list endpoint.

        Follows ``startAt``/``maxResults`` until the server reports
        ``isLast``. A response without ``isLast`` is a single page. There is
        no page limit.
        """
        collected: list[dict] = []
        start_at = 0
        while True:
            page = self._request(builder, "GET", path, params={"startAt": start_at})
            items = self._field(page, items_key)
            if not isinstance(items, list):
                raise RequestFailedError(
                    f"GET {path} returned unexpected shape: '{items_key}' is not a list",
                    url=builder.url(path),
                )
            collected.extend(items)

            if page.get("isLast", True):
                break
            start_at = page.get("startAt", start_at) + page.get("maxResults", len(items))

        logger.debug("GET %s collected %d items", path, len(collected))
        return collected

    @staticmethod
    def _field(data: Any, key: str) -> Any:
        if not isinstance(data, dict) or key not in data:
            raise RequestFailedError(f"Response is missing '{key}'")
        return data[key]

    @staticmethod
    def _parse(parser: Callable[[dict], Any], data: Any) -> Any:
        try:
            return parser(data)
        except (KeyError, TypeError, ValueError) as e:
            raise RequestFailedError(f"Unexpected response from JIRA: {e!r}") from e

    @classmethod
    def _parse_all(cls, parser: Callable[[dict], Any], items: list) -> list:
        return [cls._parse(parser, item) for item in items]
