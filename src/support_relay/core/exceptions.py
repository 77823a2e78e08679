"""
Core Exceptions
================

Error kinds raised by the relay service.

Collaborators raise these; the pipeline decides which ones end a message
(user delivery, ticket storage) and which ones only degrade it (LLM, staff
forward). The HTTP layer turns anything left over into a JSON 500.
"""

from typing import Optional


class ApplicationException(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, details: Optional[dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationException(ApplicationException):
    """Missing, unreadable or invalid configuration."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.source = source
        super().__init__(message, details)


class RepositoryException(ApplicationException):
    """Ticket storage failure."""


class ResourceNotFoundException(RepositoryException):
    """A ticket (or other stored record) does not exist."""

    def __init__(self, resource_type: str, resource_id: object, details: Optional[dict] = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(f"{resource_type} {resource_id!r} not found", details)


class ExternalServiceException(ApplicationException):
    """A remote dependency failed; ``service_name`` says which."""

    def __init__(
        self,
        service_name: str,
        message: str,
        details: Optional[dict] = None
    ):
        self.service_name = service_name
        super().__init__(f"{service_name}: {message}", details)


class LLMException(ExternalServiceException):
    """Chat completion request failed."""

    def __init__(self, message: str, details: Optional[dict] = None):
        super().__init__("LLM Service", message, details)


class MessengerDeliveryException(ExternalServiceException):
    """An outbound message could not be delivered."""

    def __init__(
        self,
        message: str,
        target_id: Optional[str] = None,
        details: Optional[dict] = None
    ):
        self.target_id = target_id
        super().__init__("Messenger", message, details)
