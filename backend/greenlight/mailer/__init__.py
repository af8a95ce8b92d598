"""Outbound email delivery."""

from .mailer import TEMPLATES_DIR, Mailer

__all__ = ["Mailer", "TEMPLATES_DIR"]
