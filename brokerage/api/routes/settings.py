from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from brokerage import models
from brokerage.api.deps import get_current_user, request_context, require_roles
from brokerage.database import get_db
from brokerage.schemas import YearRead, YearsRead, YearUpdate
from brokerage.services.active_year import get_active_year, list_known_years, set_active_year
from brokerage.services.audit import audit_event

router = APIRouter(prefix="/settings", tags=["settings"])


@router.get("/year", response_model=YearRead)
def read_active_year(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return YearRead(year=get_active_year(db))


@router.put("/year", response_model=YearRead)
def update_active_year(
    request: Request,
    payload: YearUpdate,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(require_roles(models.RoleName.admin)),
):
    previous = get_active_year(db)
    try:
        year = set_active_year(db, payload.year)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    audit_event(
        "settings.active_year_changed",
        current_user.id,
        {"previous": previous, "year": year},
        db=db,
        **request_context(request),
    )
    return YearRead(year=year)


@router.get("/years", response_model=YearsRead)
def read_known_years(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    return YearsRead(active_year=get_active_year(db), years=list_known_years(db))
