"""Exception hierarchy for jira-tui."""


class JiraTuiError(Exception):
    """Base exception for jira-tui errors."""

    pass


class ConfigNotFoundError(JiraTuiError):
    """Configuration file not found."""

    pass


class InvalidConfigError(JiraTuiError):
    """Configuration is invalid."""

    pass


class RequestFailedError(JiraTuiError):
    """A call to the JIRA server failed.

    Covers transport failures (status_code is None), non-success responses
    and response bodies that do not have the expected shape.
    """

    def __init__(self, message: str, status_code: int | None = None, body: str = "", url: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.url = url

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            message = f"{message} (HTTP {self.status_code})"
        if self.body:
            message = f"{message}: {self.body[:200]}"
        return message
