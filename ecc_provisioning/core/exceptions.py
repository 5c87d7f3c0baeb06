"""ECC provisioning exceptions for error handling."""


class EccError(Exception):
    """Base exception for all ECC provisioning operations."""
    pass


class RequestCanceled(EccError):
    """The caller's context was cancelled or its deadline elapsed."""

    def __init__(self, endpoint: str = "", reason: str = "context cancelled"):
        self.endpoint = endpoint
        self.reason = reason
        message = f"{endpoint}: {reason}" if endpoint else reason
        super().__init__(message)


class EncodingError(EccError):
    """Request payload could not be serialized to JSON."""
    pass


class TransportError(EccError):
    """Connection could not be established or failed mid-exchange.

    Attributes:
        endpoint: URL that was being called
        cause: Underlying transport exception
    """

    def __init__(self, endpoint: str, cause: BaseException):
        self.endpoint = endpoint
        self.cause = cause
        super().__init__(f"{endpoint}: {cause}")


class UnexpectedStatus(EccError):
    """Response status code is outside the operation's accepted set.

    Attributes:
        status_code: HTTP status code
        endpoint: URL that answered
        body: Leading part of the response body, empty when not read
    """

    def __init__(self, status_code: int, endpoint: str = "", body: str = ""):
        self.status_code = status_code
        self.endpoint = endpoint
        self.body = body
        super().__init__(f"Invalid status code {status_code} from {endpoint or 'remote service'}")
