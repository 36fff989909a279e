"""Request dependencies — bearer-token principal and permission checks."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from staydesk.config import Settings
from staydesk.enums import Permission
from staydesk.services.event_dispatcher import EventDispatcher
from staydesk.services.idempotency_service import IdempotencyService

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class Principal:
    id: str
    permissions: frozenset[str] = field(default_factory=frozenset)

    def has(self, permission: Permission | str) -> bool:
        return str(getattr(permission, "value", permission)) in self.permissions


def create_access_token(settings: Settings, subject: str, permissions: list[str]) -> str:
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    payload = {"sub": subject, "permissions": permissions, "exp": expire}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_events(request: Request) -> EventDispatcher:
    return request.app.state.events


def get_idempotency(request: Request) -> IdempotencyService:
    return request.app.state.idempotency


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Principal:
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    try:
        payload = jwt.decode(credentials.credentials, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    subject = payload.get("sub")
    if not subject:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return Principal(id=str(subject), permissions=frozenset(payload.get("permissions") or []))


def require_permission(permission: Permission):
    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.has(permission):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permission {permission.value}",
            )
        return principal

    return checker
