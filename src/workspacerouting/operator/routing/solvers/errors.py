"""
Errors raised by routing solvers.

The reconciler is the only place that turns these into phase transitions.
"""
from typing import Optional

DEFAULT_RETRY_SECONDS = 1.0


class RoutingNotSupported(Exception):
    """The routing class is not handled by this operator; the instance is ignored."""

    def __init__(self, routing_class: str = "") -> None:
        self.routing_class = routing_class
        super().__init__(f"routing class '{routing_class}' not supported by this controller")


class RoutingInvalid(Exception):
    """The routing is handled here but cannot be satisfied (missing config, wrong platform)."""

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(f"workspace routing is invalid: {reason or '<no reason given>'}")


class RoutingNotReady(Exception):
    """Transient condition; retry after `retry` seconds (or the default)."""

    def __init__(self, retry: Optional[float] = None) -> None:
        self.retry = retry
        super().__init__("controller not ready to resolve the workspace routing")

    @property
    def retry_after(self) -> float:
        return self.retry if self.retry else DEFAULT_RETRY_SECONDS


class ServiceConflictError(Exception):
    """A discoverable endpoint's Service name is already taken by another workspace."""

    def __init__(self, endpoint_name: str, workspace_name: str = "") -> None:
        self.endpoint_name = endpoint_name
        self.workspace_name = workspace_name
        if workspace_name:
            message = (
                f"discoverable endpoint '{endpoint_name}' is already in use by "
                f"workspace '{workspace_name}'"
            )
        else:
            message = f"discoverable endpoint '{endpoint_name}' is already in use by another workspace"
        super().__init__(message)
