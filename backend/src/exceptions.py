class DomainError(Exception):
    """Base exception class for all domain-specific exceptions."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class ResourceNotFoundError(DomainError):
    """Exception raised when a requested resource is not found."""

    def __init__(self, resource_type: str, resource_id: object) -> None:
        self.resource_type = resource_type
        self.resource_id = resource_id
        message = f"{resource_type} with ID {resource_id} not found"
        super().__init__(message)


NotFoundError = ResourceNotFoundError


class ValidationError(DomainError):
    """Exception raised when validation fails."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class AuthenticationError(DomainError):
    """No verified identity accompanies the request."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AuthorizationError(DomainError):
    """The caller is known but lacks the entitlement or role."""

    def __init__(self, message: str = "You do not have access to this resource") -> None:
        super().__init__(message)


class ConflictError(DomainError):
    """The request collides with the current state of a resource."""

    def __init__(self, message: str, code: str = "CONFLICT") -> None:
        self.code = code
        super().__init__(message)


class NotReadyError(DomainError):
    """A media asset exists but cannot be played yet (or ever)."""

    def __init__(self, media_id: object, status: str) -> None:
        self.media_id = media_id
        self.status = status
        if status == "FAILED":
            message = f"Media {media_id} failed to process and is not available"
        else:
            message = f"Media {media_id} is not available yet (status: {status})"
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        return self.status != "FAILED"


class InternalError(DomainError):
    """A collaborator (storage, queue) failed on our side."""

    def __init__(self, message: str = "Internal error") -> None:
        super().__init__(message)
