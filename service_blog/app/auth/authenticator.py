"""
User registration and credential checks.
"""

from typing import Any, Dict, Optional

from passlib.context import CryptContext

from shared.logging import get_logger
from shared.errors import StoreError
from ..access.models import Role
from ..persistence.query_builder import QueryBuilder
from ..persistence.repositories import UserRepository
from ..validation.engine import RuleEngine
from ..validation.rules import parse_rules

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

REGISTRATION_RULES = parse_rules({
    "username": "required|alpha_dash|min:3|max:50|unique:users,username",
    "email": "required|email|max:255|unique:users,email",
    "password": "required|password|confirmed",
})

LOGIN_RULES = parse_rules({
    "username": "required|max:50",
    "password": "required",
})


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


class Authenticator:
    """Registers users and checks their credentials."""

    def __init__(self, builder: QueryBuilder, rule_engine: Optional[RuleEngine] = None):
        self.users = UserRepository(builder)
        self.rule_engine = rule_engine or RuleEngine(builder)
        self.logger = get_logger("blog.auth.authenticator")

    def register(self, data: Dict[str, Any]) -> Any:
        """Validate and store a new ``user``-role account; returns its id."""
        self.rule_engine.validate_or_raise(data, REGISTRATION_RULES)
        user_id = self.users.create(
            username=str(data["username"]),
            email=str(data["email"]),
            password_hash=hash_password(str(data["password"])),
            role=Role.USER.value,
        )
        self.logger.info("User registered", user_id=user_id)
        return user_id

    def authenticate(self, username: str, password: str) -> Optional[Dict[str, Any]]:
        """Return the user row for valid credentials, else None."""
        if not self.rule_engine.passes({"username": username, "password": password}, LOGIN_RULES):
            return None

        try:
            user = self.users.find_by_username(username)
        except StoreError as e:
            self.logger.error("Login lookup failed", error=str(e))
            return None

        if not user or not verify_password(password, user["password"]):
            self.logger.info("Invalid login")
            return None

        self.users.touch_last_login(user["id"])
        self.logger.info("User authenticated", user_id=user["id"])
        return {k: v for k, v in user.items() if k != "password"}
