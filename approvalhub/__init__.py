"""Approval Hub: multi-provider WhatsApp routing and human approval workflows."""

__version__ = "0.1.0"
