"""
Support Relay
=============

Support-ticket relay bot: bridges messenger users to a staff chat and
answers what it can on its own from an FAQ table or an LLM grounded on a
knowledge base.
"""

__version__ = "1.0.0"
