# ruff: noqa: B008
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from brokerage import models
from brokerage.api.deps import ensure_department_access, get_current_user, get_request_active_year
from brokerage.database import get_db
from brokerage.models.domain import BusinessType, Department
from brokerage.schemas import InsuredNamesRead, InsuredSummaryRead, ManagementDashboardRead
from brokerage.services import analytics
from brokerage.services.departments import profile_for_slug

router = APIRouter(prefix="/analytics", tags=["analytics"])


def resolve_report_department(value: Optional[str], user: models.User) -> Department:
    """Department of a management report: slug or display name, default the user's own."""

    if value is None or not value.strip():
        department = user.department
    else:
        s = value.strip()
        try:
            department = Department(s)
        except ValueError:
            try:
                department = profile_for_slug(s).department
            except LookupError as exc:
                raise HTTPException(
                    status_code=status.HTTP_404_NOT_FOUND, detail="Unknown department"
                ) from exc
    ensure_department_access(user, department)
    return department


def parse_business_type_filter(value: Optional[str]) -> Optional[BusinessType]:
    if value is None or not value.strip() or value.strip().lower() == "all":
        return None
    try:
        return BusinessType(value.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid business type: {value}"
        ) from exc


def management_filters(
    department: Optional[str] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    broker: Optional[str] = Query(None),
    product: Optional[str] = Query(None),
    business_type: Optional[str] = Query(None),
    current_user: models.User = Depends(get_current_user),
) -> analytics.ManagementFilters:
    try:
        analytics.resolve_window(start_date, end_date)
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return analytics.ManagementFilters(
        department=resolve_report_department(department, current_user),
        start=start_date,
        end=end_date,
        broker=broker if broker and broker.strip().lower() != "all" else None,
        product=product if product and product.strip().lower() != "all" else None,
        business_type=parse_business_type_filter(business_type),
    )


@router.get("/insured-names", response_model=InsuredNamesRead)
def list_insured_names(
    db: Session = Depends(get_db),
    year: int = Depends(get_request_active_year),
    current_user: models.User = Depends(get_current_user),
):
    return InsuredNamesRead(year=year, names=analytics.list_insured_names(db, year=year))


@router.get("/insured/{insured_name:path}", response_model=InsuredSummaryRead)
def get_insured_summary(
    insured_name: str,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: Session = Depends(get_db),
    year: int = Depends(get_request_active_year),
    current_user: models.User = Depends(get_current_user),
):
    summary = analytics.insured_summary(
        db, year=year, insured_name=insured_name, start=start_date, end=end_date
    )
    return InsuredSummaryRead.model_validate(summary)


@router.get("/management", response_model=ManagementDashboardRead)
def get_management_dashboard(
    filters: analytics.ManagementFilters = Depends(management_filters),
    db: Session = Depends(get_db),
    year: int = Depends(get_request_active_year),
):
    return ManagementDashboardRead.model_validate(
        analytics.management_dashboard(db, year=year, filters=filters)
    )
