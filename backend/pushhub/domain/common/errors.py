"""Domain error types."""
from typing import Optional


class DomainError(Exception):
    """Base domain error."""
    pass


class NotFoundError(DomainError):
    """Resource not found."""
    def __init__(self, resource: str, identifier: str):
        self.resource = resource
        self.identifier = identifier
        super().__init__(f"{resource} with id {identifier} not found")


class ValidationError(DomainError):
    """Validation error."""
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class AuthorizationError(DomainError):
    """Authorization error."""
    def __init__(self, message: str = "Not authorized"):
        self.message = message
        super().__init__(message)


class PushError(DomainError):
    """Base push delivery error. `code` is the value reported in GatewayResult.error_code."""

    code = "push_error"

    def __init__(self, message: str, gateway: Optional[str] = None):
        self.message = message
        self.gateway = gateway
        super().__init__(message)


class InvalidGateway(PushError, ValidationError):
    """Registration or removal referenced an unsupported provider."""

    code = "invalid_gateway"

    def __init__(self, gateway: str):
        PushError.__init__(self, f"Invalid push provider: {gateway}", gateway)


class AuthFailure(PushError):
    """Credential acquisition failed for one gateway."""

    code = "auth_failure"

    def __init__(self, gateway: str, reason: str):
        self.reason = reason
        super().__init__(f"{gateway} auth failed: {reason}", gateway)


class NetworkError(PushError):
    """Transport-level failure or non-2xx status calling a gateway."""

    code = "network_error"

    def __init__(self, gateway: str, reason: str, status_code: Optional[int] = None):
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{gateway} request failed: {reason}", gateway)


class GatewayRejected(PushError):
    """Gateway answered but refused the message (error code in a 2xx body)."""

    code = "gateway_rejected"

    def __init__(self, gateway: str, reason: str):
        self.reason = reason
        super().__init__(f"{gateway} rejected message: {reason}", gateway)


class ServiceUnavailable(PushError):
    """No push gateway is configured at all."""

    code = "service_unavailable"

    def __init__(self, message: str = "Push service not available"):
        super().__init__(message)
