from typing import Any


class GatewayError(Exception):
    """Base class for errors raised by the model gateway"""
    pass


class ValidationError(GatewayError):
    """Raised when a required input (messages, prompt, input) is missing or empty"""
    pass


class NotFoundError(GatewayError):
    """Raised when a model or record does not exist"""
    pass


class ConfigurationError(GatewayError):
    """Raised at startup when required configuration is missing"""
    pass


class UpstreamError(GatewayError):
    """Raised when the upstream aggregator call does not succeed.

    `status_code` is None for network-level failures (connection errors, timeouts).
    """

    def __init__(self, message: str, status_code: int | None = None, body: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.body = body

    @property
    def is_network_error(self) -> bool:
        return self.status_code is None

    def __str__(self) -> str:
        if self.status_code is None:
            return self.message
        return f"{self.message} (status {self.status_code})"
