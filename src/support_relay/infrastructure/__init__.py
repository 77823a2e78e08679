"""
Infrastructure Layer
=====================

Adapters for external systems shared by the relay modules:
- LLM chat endpoint client
"""
