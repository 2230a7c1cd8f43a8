from __future__ import annotations

from dataclasses import replace

import pytest

from backend.domain.errors import (
    AuthError,
    ConflictError,
    PreconditionFailedError,
    RateLimitedError,
    ValidationError,
)
from backend.domain.models import Role
from backend.repository.data_repository import DataRepository
from backend.services.auth_service import AuthService
from backend.services.rate_limiter import SlidingWindowRateLimiter
from backend.utils.config import get_settings


class FakeClock:
    def __init__(self, now: float = 1_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def _build_auth(tmp_path, clock: FakeClock) -> tuple[DataRepository, AuthService]:
    get_settings.cache_clear()
    settings = replace(
        get_settings(),
        database_path=tmp_path / "auth.db",
        token_secret="test-secret",
        token_ttl_seconds=60,
    )
    repository = DataRepository(settings)
    repository.initialize_database()
    service = AuthService(repository=repository, settings=settings, clock=clock)
    service.ensure_default_operators()
    return repository, service


def test_default_operators_are_created_once(tmp_path) -> None:
    repository, service = _build_auth(tmp_path, FakeClock())

    assert service.ensure_default_operators() == 0
    assert repository.get_operator("admin").role is Role.ADMIN
    assert repository.get_operator("coordinator").role is Role.COORDINATOR


def test_login_issues_verifiable_token(tmp_path) -> None:
    _, service = _build_auth(tmp_path, FakeClock())

    token, operator = service.login("Admin", "admin123")

    assert operator.username == "admin"
    assert operator.is_admin
    assert service.verify_token(token) == operator


def test_login_rejects_bad_credentials(tmp_path) -> None:
    _, service = _build_auth(tmp_path, FakeClock())

    with pytest.raises(AuthError):
        service.login("admin", "wrong-password")
    with pytest.raises(AuthError):
        service.login("ghost", "admin123")
    with pytest.raises(ValidationError):
        service.login("admin", "")


def test_inactive_account_cannot_login_or_use_token(tmp_path) -> None:
    repository, service = _build_auth(tmp_path, FakeClock())
    token, _ = service.login("coordinator", "coord123")
    repository.set_operator_active("coordinator", False)

    with pytest.raises(PreconditionFailedError) as excinfo:
        service.login("coordinator", "coord123")
    assert excinfo.value.status_code == 403
    with pytest.raises(AuthError):
        service.verify_token(token)


def test_token_expires_after_ttl(tmp_path) -> None:
    clock = FakeClock()
    _, service = _build_auth(tmp_path, clock)
    token, _ = service.login("admin", "admin123")

    clock.advance(59)
    assert service.verify_token(token).username == "admin"
    clock.advance(1)
    with pytest.raises(AuthError):
        service.verify_token(token)


@pytest.mark.parametrize("mangle", [lambda t: t + "x", lambda t: "x" + t, lambda t: t.replace(".", ""), lambda t: ""])
def test_tampered_tokens_are_rejected(tmp_path, mangle) -> None:
    _, service = _build_auth(tmp_path, FakeClock())
    token, _ = service.login("admin", "admin123")

    with pytest.raises(AuthError):
        service.verify_token(mangle(token))


def test_token_signed_with_other_secret_is_rejected(tmp_path) -> None:
    repository, service = _build_auth(tmp_path, FakeClock())
    other = AuthService(
        repository=repository,
        settings=replace(get_settings(), token_secret="other-secret"),
        clock=FakeClock(),
    )
    token, _ = other.login("admin", "admin123")

    with pytest.raises(AuthError):
        service.verify_token(token)


def test_authorize_enforces_roles(tmp_path) -> None:
    _, service = _build_auth(tmp_path, FakeClock())
    _, coordinator = service.login("coordinator", "coord123")

    assert AuthService.authorize(coordinator, Role.ADMIN, Role.COORDINATOR) is coordinator
    with pytest.raises(AuthError) as excinfo:
        AuthService.authorize(coordinator, Role.ADMIN)
    assert excinfo.value.status_code == 403


def test_register_operator_validates_and_rejects_duplicates(tmp_path) -> None:
    _, service = _build_auth(tmp_path, FakeClock())

    created = service.register_operator(
        username="Desk1", password="desk-pass", role="coordinator", name="Desk One"
    )
    assert created.username == "desk1"
    assert created.role is Role.COORDINATOR
    assert service.login("desk1", "desk-pass")[1] == created

    with pytest.raises(ConflictError):
        service.register_operator(username="desk1", password="desk-pass", role="ADMIN", name="Dup")
    with pytest.raises(ValidationError):
        service.register_operator(username="desk2", password="short", role="ADMIN", name="Short")
    with pytest.raises(ValidationError):
        service.register_operator(username="desk3", password="long-enough", role="OWNER", name="Bad")


def test_rate_limiter_blocks_after_budget_and_recovers() -> None:
    clock = FakeClock(0.0)
    limiter = SlidingWindowRateLimiter(window_seconds=10, max_attempts=2, clock=clock)

    limiter.hit("login:1.2.3.4")
    limiter.hit("login:1.2.3.4")
    with pytest.raises(RateLimitedError):
        limiter.hit("login:1.2.3.4")
    limiter.hit("login:5.6.7.8")

    clock.advance(10)
    limiter.hit("login:1.2.3.4")


def test_rate_limiter_evicts_stale_keys() -> None:
    clock = FakeClock(0.0)
    limiter = SlidingWindowRateLimiter(window_seconds=5, max_attempts=1, clock=clock)
    limiter.hit("a")
    limiter.hit("b")
    assert limiter.tracked_keys() == 2

    clock.advance(5)
    assert limiter.purge() == 2
    assert limiter.tracked_keys() == 0

    limiter.hit("a")
    limiter.reset("a")
    limiter.hit("a")


def test_rate_limiter_sweeps_idle_clients_on_later_hits() -> None:
    clock = FakeClock(0.0)
    limiter = SlidingWindowRateLimiter(window_seconds=900, max_attempts=5, clock=clock)
    for index in range(1000):
        limiter.hit(f"login:10.0.{index // 256}.{index % 256}")
    assert limiter.tracked_keys() == 1000

    clock.advance(10_000)
    limiter.hit("login:192.168.0.1")

    assert limiter.tracked_keys() == 1


def test_rate_limiter_keeps_clients_still_inside_window() -> None:
    clock = FakeClock(0.0)
    limiter = SlidingWindowRateLimiter(window_seconds=10, max_attempts=1, clock=clock)
    limiter.hit("old")
    clock.advance(6)
    limiter.hit("recent")
    clock.advance(5)
    limiter.hit("new")

    assert limiter.tracked_keys() == 2
    with pytest.raises(RateLimitedError):
        limiter.hit("recent")


def test_rate_limiter_rejects_bad_configuration() -> None:
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(window_seconds=0, max_attempts=1)
    with pytest.raises(ValueError):
        SlidingWindowRateLimiter(window_seconds=1, max_attempts=0)
