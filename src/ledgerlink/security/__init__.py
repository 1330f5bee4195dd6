"""Credential protection utilities."""

from .encryption import TokenCipher

__all__ = ["TokenCipher"]
