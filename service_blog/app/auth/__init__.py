"""
Authentication package: password hashing, registration and login checks.
"""

from .authenticator import Authenticator, hash_password, verify_password

__all__ = ["Authenticator", "hash_password", "verify_password"]
