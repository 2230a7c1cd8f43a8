"""Shared FastAPI dependency providers for controller layer."""

from __future__ import annotations

from typing import Any, Callable

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.domain.errors import AuthError, CheckInError
from backend.domain.models import Operator, Role
from backend.services.allocation_service import RoomAllocationService
from backend.services.auth_service import AuthService
from backend.services.directory_service import DirectoryLookupService
from backend.services.participant_service import ParticipantService
from backend.services.rate_limiter import SlidingWindowRateLimiter
from backend.services.report_service import ReportService
from backend.services.room_service import RoomInventoryService
from backend.utils.config import get_settings
from backend.utils.logger import get_logger


logger = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def to_http_exception(exc: CheckInError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


def internal_error(message: str, exc: Exception) -> HTTPException:
    """Generic 500; internals are only exposed in development."""
    detail: dict[str, Any] = {"kind": "internal_error", "message": message}
    if get_settings().is_development:
        detail["error"] = str(exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=detail)


def _state_service(request: Request, attribute: str, label: str) -> Any:
    service = getattr(request.app.state, attribute, None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"kind": "unavailable", "message": f"{label} is not initialized"},
        )
    return service


def get_auth_service(request: Request) -> AuthService:
    return _state_service(request, "auth_service", "Auth service")


def get_login_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return _state_service(request, "login_rate_limiter", "Login rate limiter")


def get_participant_service(request: Request) -> ParticipantService:
    return _state_service(request, "participant_service", "Participant service")


def get_allocation_service(request: Request) -> RoomAllocationService:
    return _state_service(request, "allocation_service", "Allocation service")


def get_room_service(request: Request) -> RoomInventoryService:
    return _state_service(request, "room_service", "Room service")


def get_report_service(request: Request) -> ReportService:
    return _state_service(request, "report_service", "Report service")


def get_directory_service(request: Request) -> DirectoryLookupService:
    return _state_service(request, "directory_service", "Directory service")


def client_key(request: Request) -> str:
    host = request.client.host if request.client is not None else "unknown"
    return f"login:{host}"


def get_current_operator(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Operator:
    if credentials is None:
        raise to_http_exception(AuthError("Authentication required. Please login."))
    try:
        return auth_service.verify_token(credentials.credentials)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc


def require_roles(*roles: Role) -> Callable[..., Any]:
    """Dependency factory resolving the operator and enforcing one of ``roles``."""

    def dependency(operator: Operator = Depends(get_current_operator)) -> Operator:
        try:
            return AuthService.authorize(operator, *roles)
        except AuthError as exc:
            raise to_http_exception(exc) from exc

    return dependency


require_admin = require_roles(Role.ADMIN)
require_operator = require_roles(Role.ADMIN, Role.COORDINATOR)
