"""Operator authentication, signed session tokens and role checks."""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import time
from typing import Callable, Optional

from werkzeug.security import check_password_hash, generate_password_hash

from backend.domain.constraints import normalize_role, require_text
from backend.domain.errors import AuthError, ConflictError, PreconditionFailedError, ValidationError
from backend.domain.models import Operator, OperatorAccount, Role
from backend.repository.data_repository import DataRepository
from backend.utils.config import Settings, get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

MIN_PASSWORD_LENGTH = 6


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    padding = "=" * (-len(text) % 4)
    return base64.urlsafe_b64decode(text + padding)


class AuthService:
    """Validates operator credentials and issues/verifies bearer tokens.

    Tokens are ``base64url(payload).base64url(hmac_sha256(payload))`` where the
    payload carries the username, role, issue time and expiry. They are
    stateless; the operator record is re-read on every verification so a
    deactivated account loses access immediately.
    """

    def __init__(
        self,
        repository: Optional[DataRepository] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or get_settings()
        self._repository = repository or DataRepository(self._settings)
        self._clock = clock
        self._secret = self._settings.token_secret.encode("utf-8")

    @property
    def token_ttl_seconds(self) -> int:
        return self._settings.token_ttl_seconds

    def _sign(self, payload_segment: str) -> str:
        digest = hmac.new(self._secret, payload_segment.encode("utf-8"), hashlib.sha256).digest()
        return _b64encode(digest)

    def issue_token(self, operator: Operator) -> str:
        issued_at = int(self._clock())
        payload = {
            "sub": operator.username,
            "role": operator.role.value,
            "iat": issued_at,
            "exp": issued_at + self._settings.token_ttl_seconds,
            "jti": secrets.token_urlsafe(8),
        }
        payload_segment = _b64encode(
            json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
        )
        return f"{payload_segment}.{self._sign(payload_segment)}"

    def login(self, username: str, password: str) -> tuple[str, Operator]:
        normalized = require_text(username, "Username").lower()
        if not password:
            raise ValidationError("Username and password are required")

        account = self._repository.get_operator(normalized)
        if account is None or not check_password_hash(account.password_hash, password):
            logger.info("Rejected login for %s", normalized)
            raise AuthError("Invalid credentials")
        if not account.is_active:
            raise PreconditionFailedError(
                "Account is inactive. Contact administrator.",
                status_code=403,
            )

        operator = account.to_operator()
        logger.info("Operator %s logged in as %s", operator.username, operator.role.value)
        return self.issue_token(operator), operator

    def verify_token(self, token: str) -> Operator:
        """Resolve a bearer token to the active operator it was issued for."""
        try:
            payload_segment, signature = token.split(".")
        except ValueError as exc:
            raise AuthError("Invalid or expired token. Please login again.") from exc

        expected = self._sign(payload_segment)
        if not hmac.compare_digest(signature.encode("utf-8"), expected.encode("utf-8")):
            raise AuthError("Invalid or expired token. Please login again.")
        try:
            payload = json.loads(_b64decode(payload_segment))
            username = str(payload["sub"])
            expires_at = int(payload["exp"])
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthError("Invalid or expired token. Please login again.") from exc

        if self._clock() >= expires_at:
            raise AuthError("Invalid or expired token. Please login again.")

        account = self._repository.get_operator(username)
        if account is None or not account.is_active:
            raise AuthError("Invalid authentication. Please login again.")
        return account.to_operator()

    @staticmethod
    def authorize(operator: Operator, *roles: Role) -> Operator:
        if operator.role not in roles:
            allowed = " or ".join(role.value for role in roles)
            raise AuthError(f"Access denied. {allowed} role required.", status_code=403)
        return operator

    def register_operator(
        self,
        *,
        username: str,
        password: str,
        role: str | Role,
        name: str,
        is_active: bool = True,
    ) -> Operator:
        normalized = require_text(username, "Username").lower()
        display_name = require_text(name, "Name")
        resolved_role = normalize_role(role)
        if password is None or len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters"
            )

        account = OperatorAccount(
            username=normalized,
            name=display_name,
            role=resolved_role,
            password_hash=generate_password_hash(password),
            is_active=is_active,
        )
        if not self._repository.create_operator(account):
            raise ConflictError("Username already exists")
        logger.info("Registered %s operator %s", resolved_role.value, normalized)
        return account.to_operator()

    def ensure_default_operators(self) -> int:
        """Create a configured default account for each role that has none."""
        created = 0
        for username, password, role, name in self._settings.default_operators:
            resolved_role = normalize_role(role)
            if self._repository.has_operator_with_role(resolved_role):
                continue
            try:
                self.register_operator(
                    username=username,
                    password=password,
                    role=resolved_role,
                    name=name,
                )
            except ConflictError:
                continue
            logger.warning(
                "Created default %s account '%s'; change its password",
                resolved_role.value,
                username,
            )
            created += 1
        return created
