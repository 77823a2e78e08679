"""
Triage Module
=============

Message triage for the support relay.

Responsibilities:
- Reject users who exceed the per-window message limit
- Answer from the FAQ table or from an LLM grounded on the knowledge base
- Otherwise open or continue a ticket and forward the message to staff
"""
