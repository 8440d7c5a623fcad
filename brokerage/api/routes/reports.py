# ruff: noqa: B008
from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from brokerage.api.deps import get_request_active_year
from brokerage.api.routes.analytics import management_filters
from brokerage.database import get_db
from brokerage.services.analytics import ManagementFilters
from brokerage.services.exports_workbook import (
    XLSX_MEDIA_TYPE,
    build_management_workbook_bytes,
    workbook_filename,
)

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/management-export")
def export_management_report(
    filters: ManagementFilters = Depends(management_filters),
    db: Session = Depends(get_db),
    year: int = Depends(get_request_active_year),
):
    return Response(
        content=build_management_workbook_bytes(db, year=year, filters=filters),
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={workbook_filename()}"},
    )
