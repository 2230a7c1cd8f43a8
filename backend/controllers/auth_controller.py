"""Controller layer for operator login and account management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field

from backend.controllers.dependencies import (
    client_key,
    get_auth_service,
    get_current_operator,
    get_login_rate_limiter,
    internal_error,
    require_admin,
    to_http_exception,
)
from backend.domain.errors import CheckInError
from backend.domain.models import Operator, Role
from backend.services.auth_service import MIN_PASSWORD_LENGTH, AuthService
from backend.services.rate_limiter import SlidingWindowRateLimiter
from backend.utils.logger import get_logger


logger = get_logger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class OperatorResponse(BaseModel):
    username: str
    name: str
    role: Role

    @classmethod
    def from_domain(cls, operator: Operator) -> "OperatorResponse":
        return cls(username=operator.username, name=operator.name, role=operator.role)


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(gt=0)
    operator: OperatorResponse


class RegisterRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=MIN_PASSWORD_LENGTH)
    role: Role
    name: str = Field(min_length=1)


@router.post("/login", response_model=LoginResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    rate_limiter: SlidingWindowRateLimiter = Depends(get_login_rate_limiter),
) -> LoginResponse:
    try:
        rate_limiter.hit(client_key(request))
        token, operator = auth_service.login(payload.username, payload.password)
        return LoginResponse(
            access_token=token,
            expires_in=auth_service.token_ttl_seconds,
            operator=OperatorResponse.from_domain(operator),
        )
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected login failure")
        raise internal_error("Server error during login", exc) from exc


@router.get("/profile", response_model=OperatorResponse, status_code=status.HTTP_200_OK)
def profile(operator: Operator = Depends(get_current_operator)) -> OperatorResponse:
    return OperatorResponse.from_domain(operator)


@router.post(
    "/register",
    response_model=OperatorResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_admin)],
)
def register(
    payload: RegisterRequest,
    auth_service: AuthService = Depends(get_auth_service),
) -> OperatorResponse:
    try:
        operator = auth_service.register_operator(
            username=payload.username,
            password=payload.password,
            role=payload.role,
            name=payload.name,
        )
        return OperatorResponse.from_domain(operator)
    except CheckInError as exc:
        raise to_http_exception(exc) from exc
    except Exception as exc:  # pragma: no cover - defensive fallback
        logger.exception("Unexpected operator registration failure")
        raise internal_error("Server error while creating user", exc) from exc
