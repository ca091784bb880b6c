"""Tsty client exceptions."""


class TstyClientError(Exception):
    """Base exception for all Tsty client errors."""


class ConnectionError(TstyClientError):
    """Raised when the client cannot connect to the remote server."""

    def __init__(self, url: str, detail: str = "") -> None:
        self.url = url
        msg = f"Cannot connect to {url}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class FlowNotFoundError(TstyClientError):
    """Raised when a requested flow, action or report does not exist."""

    def __init__(self, flow_id: str) -> None:
        self.flow_id = flow_id
        super().__init__(f"Not found: {flow_id}")


class InvalidFlowError(TstyClientError):
    """Raised when a flow cannot run because of its configuration or dependencies."""

    def __init__(self, flow_id: str, detail: str = "") -> None:
        self.flow_id = flow_id
        self.detail = detail
        super().__init__(f"Flow '{flow_id}' is invalid: {detail}")


class FlowExecutionError(TstyClientError):
    """Raised when a run ends with failed steps or is aborted."""

    def __init__(self, flow_id: str, detail: str = "") -> None:
        self.flow_id = flow_id
        self.detail = detail
        msg = f"Flow '{flow_id}' execution failed"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class TimeoutError(TstyClientError):
    """Raised when a run or connection times out."""

    def __init__(self, detail: str = "Operation timed out") -> None:
        super().__init__(detail)
