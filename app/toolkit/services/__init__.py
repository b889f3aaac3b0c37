"""
Service classes for toolkit.

- EmailService: Django mail delivery implementing toolkit.protocols.EmailSender

Usage:
    from toolkit.services import EmailService
"""

from toolkit.services.email import EmailService

__all__ = ["EmailService"]
