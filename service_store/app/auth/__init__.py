"""
Authentication helpers for the store service.
"""

from .tokens import AuthContext, TokenIssuer

__all__ = [
    "AuthContext",
    "TokenIssuer",
]
