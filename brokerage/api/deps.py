from typing import Callable, Optional

from fastapi import Depends, HTTPException, Path, Request, UploadFile, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from brokerage.config import settings
from brokerage.core.security import decode_access_token
from brokerage.database import get_db
from brokerage.models import Department, RoleName, User
from brokerage.services.active_year import get_active_year
from brokerage.services.departments import DepartmentProfile, profile_for_slug


def _token_url() -> str:
    if settings.api_prefix:
        prefix = settings.api_prefix.rstrip("/")
        return f"{prefix}/auth/token"
    return "/auth/token"


oauth2_scheme = OAuth2PasswordBearer(tokenUrl=_token_url())
oauth2_optional = OAuth2PasswordBearer(tokenUrl=_token_url(), auto_error=False)

_DB_DEP = Depends(get_db)
_TOKEN_OPT_DEP = Depends(oauth2_optional)


def get_current_user(
    db: Session = _DB_DEP,
    token: Optional[str] = _TOKEN_OPT_DEP,
) -> User:
    if not token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    claims = decode_access_token(token)
    if claims is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    user = db.query(User).filter(User.email == claims.subject, User.active.is_(True)).first()
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
        )
    return user


def get_current_user_optional(
    db: Session = _DB_DEP,
    token: Optional[str] = _TOKEN_OPT_DEP,
) -> Optional[User]:
    if not token:
        return None
    try:
        return get_current_user(db=db, token=token)
    except HTTPException:
        return None


_CURRENT_USER_DEP = Depends(get_current_user)


def is_admin(user: User) -> bool:
    return getattr(user, "role", None) == RoleName.admin


def require_roles(*roles: RoleName) -> Callable:
    def dependency(user: User = _CURRENT_USER_DEP) -> User:
        # Admin has access to everything
        if is_admin(user):
            return user
        if roles and getattr(user, "role", None) not in roles:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")
        return user

    return dependency


def department_access_denied(department: Department) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=f"Access denied. This endpoint requires {department.value} department access.",
    )


def ensure_department_access(user: User, department: Department) -> None:
    if is_admin(user):
        return
    if getattr(user, "department", None) != department:
        raise department_access_denied(department)


def get_department_profile(
    department: str = Path(..., description="marine | property-engineering | liability"),
) -> DepartmentProfile:
    try:
        return profile_for_slug(department)
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Unknown department") from exc


_PROFILE_DEP = Depends(get_department_profile)


def get_department_user(
    profile: DepartmentProfile = _PROFILE_DEP,
    user: User = _CURRENT_USER_DEP,
) -> User:
    """Department-scoped routes: resolve the `{department}` segment, then check access."""

    ensure_department_access(user, profile.department)
    return user


def get_request_active_year(db: Session = _DB_DEP) -> int:
    """Read the active year once per request; services receive it explicitly."""

    return get_active_year(db)


def request_context(request: Request) -> dict:
    """Keyword arguments for audit_event taken from the current request."""

    return {
        "request_id": getattr(request.state, "request_id", None)
        or request.headers.get("x-request-id"),
        "ip": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }


async def read_upload_bytes(document: Optional[UploadFile]) -> Optional[bytes]:
    if document is None:
        return None
    data = await document.read()
    if len(data) > settings.max_upload_bytes:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail="Uploaded document is too large",
        )
    return data
