from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from brokerage import models
from brokerage.api.deps import get_current_user, request_context
from brokerage.core.security import create_access_token, hash_password, verify_password
from brokerage.database import get_db
from brokerage.schemas import SignupRequest, Token, UserRead
from brokerage.services.audit import audit_event

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/token", response_model=Token)
def login_for_access_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    email = str(form_data.username or "").strip().lower()
    try:
        user = db.query(models.User).filter(models.User.email == email).first()
    except SQLAlchemyError as exc:
        db.rollback()
        audit_event("auth.login_db_error", None, {"email": email}, db=db, **request_context(request))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable or not initialised. Please try again shortly.",
        ) from exc
    if not user or not verify_password(form_data.password, user.hashed_password):
        audit_event("auth.login_failed", None, {"email": email}, db=db, **request_context(request))
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Incorrect email or password"
        )
    if not user.active:
        audit_event(
            "auth.login_inactive", user.id, {"email": user.email}, db=db, **request_context(request)
        )
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    access_token = create_access_token(
        user.email, department=user.department.value, role=user.role.value
    )
    audit_event(
        "auth.login_success", user.id, {"email": user.email}, db=db, **request_context(request)
    )
    return Token(access_token=access_token)


@router.get("/me", response_model=UserRead)
def read_current_user(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.post("/signup", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def signup(request: Request, payload: SignupRequest, db: Session = Depends(get_db)):
    if db.query(models.User).filter(models.User.email == payload.email).first():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered"
        )

    # Public signup always yields staff; admins are created through /users.
    user = models.User(
        email=payload.email,
        name=payload.name,
        hashed_password=hash_password(payload.password),
        department=payload.department,
        role=models.RoleName.staff,
        active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    audit_event(
        "auth.signup",
        user.id,
        {"email": user.email, "department": user.department.value, "role": user.role.value},
        db=db,
        **request_context(request),
    )
    return user
