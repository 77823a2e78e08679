"""
Triage Interfaces Layer
========================

Interface adapters (controllers) for the message-triage module.

Contains:
- Controllers: FastAPI route handlers
"""

from support_relay.triage.interfaces.controllers import router as relay_router

__all__ = ["relay_router"]
