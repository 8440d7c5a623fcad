from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from brokerage import models
from brokerage.api.deps import get_current_user_optional, is_admin, request_context, require_roles
from brokerage.core.security import hash_password
from brokerage.database import get_db
from brokerage.schemas import UserCreate, UserRead
from brokerage.services.audit import audit_event

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    request: Request,
    payload: UserCreate,
    db: Session = Depends(get_db),
    current_user: models.User | None = Depends(get_current_user_optional),
):
    # The very first user may be created without a session (bootstrap).
    existing_users = db.query(models.User).count()
    if existing_users > 0:
        if not current_user or not is_admin(current_user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN, detail="Admin required to create users"
            )

    if db.query(models.User).filter(models.User.email == payload.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered"
        )

    user = models.User(
        email=payload.email,
        name=payload.name,
        hashed_password=hash_password(payload.password),
        department=payload.department,
        role=payload.role,
        active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    audit_event(
        "user.created",
        current_user.id if current_user else None,
        {
            "user_id": user.id,
            "email": user.email,
            "department": user.department.value,
            "role": user.role.value,
        },
        db=db,
        **request_context(request),
    )
    return user


@router.get(
    "", response_model=List[UserRead], dependencies=[Depends(require_roles(models.RoleName.admin))]
)
def list_users(db: Session = Depends(get_db)):
    return db.query(models.User).order_by(models.User.id.asc()).all()
