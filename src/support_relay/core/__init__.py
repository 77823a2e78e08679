"""
Core Module
============

Shared core abstractions used across the relay service.

This module contains framework-agnostic code: the exception hierarchy that
every layer raises and catches.
"""

from support_relay.core.exceptions import (
    ApplicationException,
    RepositoryException,
    ResourceNotFoundException,
    ConfigurationException,
    ExternalServiceException,
    LLMException,
    MessengerDeliveryException,
)

__all__ = [
    "ApplicationException",
    "RepositoryException",
    "ResourceNotFoundException",
    "ConfigurationException",
    "ExternalServiceException",
    "LLMException",
    "MessengerDeliveryException",
]
