"""
Shared Kernel Module
====================

Generic infrastructure used by every part of the relay service:
structured logging and HTTP middleware.

DO NOT add triage business logic to the shared kernel.
"""
