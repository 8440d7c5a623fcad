# ruff: noqa: B008, E501
from datetime import date, datetime
from typing import List, Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    Request,
    Response,
    UploadFile,
    status,
)
from sqlalchemy.orm import Session

from brokerage import models
from brokerage.api.deps import (
    get_department_profile,
    get_department_user,
    get_request_active_year,
    read_upload_bytes,
    request_context,
)
from brokerage.database import get_db
from brokerage.models.domain import QuotationStatus
from brokerage.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    OrderRead,
    QuotationAnalysisRead,
    QuotationCreate,
    QuotationDraft,
    QuotationRead,
    QuotationUpdate,
    QuotationWriteResponse,
)
from brokerage.services import analytics, lifecycle, queries
from brokerage.services.audit import audit_event
from brokerage.services.departments import DepartmentProfile
from brokerage.services.document_text import read_document_text
from brokerage.services.exports_csv import build_quotations_csv_bytes, export_filename
from brokerage.services.extraction import (
    ExtractionError,
    build_quotation_draft,
    extract_document,
)

router = APIRouter(prefix="/{department}/quotations", tags=["quotations"])


def parse_status_param(value: Optional[str]) -> Optional[QuotationStatus]:
    if value is None or not value.strip() or value.strip().lower() == "all":
        return None
    try:
        return QuotationStatus(value.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {value}"
        ) from exc


def parse_date_param(value: Optional[str], *, label: str) -> Optional[date]:
    """Lenient date query parsing: YYYY-MM-DD or a full ISO timestamp."""

    if value is None or not value.strip():
        return None
    s = value.strip()
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(s.replace("Z", "+00:00")).date()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid {label} date format"
        ) from exc


def _get_quotation_or_404(db: Session, profile: DepartmentProfile, quotation_id: int) -> models.Quotation:
    quotation = db.get(models.Quotation, quotation_id)
    if not quotation or quotation.department != profile.department:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quotation not found")
    return quotation


def _write_response(result: lifecycle.QuotationWriteResult) -> QuotationWriteResponse:
    return QuotationWriteResponse(
        quotation=QuotationRead.model_validate(result.quotation),
        order=OrderRead.model_validate(result.order) if result.order is not None else None,
    )


@router.post("", response_model=QuotationWriteResponse, status_code=status.HTTP_201_CREATED)
def create_quotation(
    payload: QuotationCreate,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    try:
        result = lifecycle.create_quotation(
            db=db,
            profile=profile,
            data=payload.model_dump(exclude_none=True),
            user_id=current_user.id,
            year=year,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _write_response(result)


@router.get("", response_model=List[QuotationRead])
def list_quotations(
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    return queries.list_quotations_in_date_range(
        db,
        department=profile.department,
        year=year,
        start=start_date,
        end=end_date,
        status=parse_status_param(status_filter),
    )


@router.get("/export")
def export_quotations(
    status_filter: Optional[str] = Query(None, alias="status"),
    ids: Optional[List[int]] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    if status_filter == "selected":
        rows = queries.list_quotations_by_ids(
            db, department=profile.department, year=year, ids=ids or []
        )
    else:
        rows = queries.list_quotations_in_date_range(
            db,
            department=profile.department,
            year=year,
            start=start_date,
            end=end_date,
            status=parse_status_param(status_filter),
        )

    filename = export_filename("quotations", status=status_filter, start=start_date, end=end_date)
    return Response(
        content=build_quotations_csv_bytes(rows, include_cover_group=profile.uses_cover_groups),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/analyze", response_model=QuotationAnalysisRead)
def analyze_quotations(
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    start = parse_date_param(start_date, label="start")
    end = parse_date_param(end_date, label="end")
    try:
        analysis = analytics.analyze_quotations(
            db, department=profile.department, year=year, start=start, end=end
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except LookupError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return QuotationAnalysisRead.model_validate(analysis)


@router.post("/extract", response_model=QuotationDraft)
async def extract_quotation(
    document: Optional[UploadFile] = File(None),
    manual_text: Optional[str] = Form(None),
    broker_name: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
):
    data = await read_upload_bytes(document)
    try:
        text = read_document_text(
            data=data,
            filename=document.filename if document else None,
            content_type=document.content_type if document else None,
            manual_text=manual_text,
        )
        doc = extract_document(text, profile=profile)
    except ExtractionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return QuotationDraft(**build_quotation_draft(doc, broker_name=broker_name, notes=notes))


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_quotations(
    request: Request,
    payload: BulkDeleteRequest,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    result = lifecycle.bulk_delete_quotations(db=db, department=profile.department, ids=payload.ids)
    audit_event(
        "quotation.bulk_deleted",
        current_user.id,
        {
            "department": profile.department.value,
            "deleted_ids": result.deleted_ids,
            "missing_ids": result.missing_ids,
        },
        db=db,
        **request_context(request),
    )
    return BulkDeleteResponse(deleted_ids=result.deleted_ids, missing_ids=result.missing_ids)


@router.get("/unreconciled", response_model=List[QuotationRead])
def list_unreconciled_quotations(
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    return lifecycle.find_unreconciled_confirmations(db, year=year, department=profile.department)


@router.get("/{quotation_id}", response_model=QuotationRead)
def get_quotation(
    quotation_id: int,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    return _get_quotation_or_404(db, profile, quotation_id)


@router.put("/{quotation_id}", response_model=QuotationWriteResponse)
def update_quotation(
    quotation_id: int,
    payload: QuotationUpdate,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    quotation = _get_quotation_or_404(db, profile, quotation_id)
    try:
        result = lifecycle.update_quotation(
            db=db,
            quotation=quotation,
            changes=payload.model_dump(exclude_unset=True),
            year=year,
            actor_user_id=current_user.id,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return _write_response(result)


@router.delete("/{quotation_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_quotation(
    request: Request,
    quotation_id: int,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    quotation = _get_quotation_or_404(db, profile, quotation_id)
    lifecycle.delete_quotation(db=db, quotation=quotation)
    audit_event(
        "quotation.deleted",
        current_user.id,
        {"quotation_id": quotation_id, "department": profile.department.value},
        db=db,
        **request_context(request),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{quotation_id}/reconcile", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def reconcile_quotation(
    request: Request,
    quotation_id: int,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    quotation = _get_quotation_or_404(db, profile, quotation_id)
    try:
        order = lifecycle.reconcile_quotation(
            db=db, quotation=quotation, year=year, actor_user_id=current_user.id
        )
    except ValueError as exc:
        code = str(exc)
        if code == "order_already_exists":
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=code) from exc
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=code) from exc
    audit_event(
        "quotation.reconciled",
        current_user.id,
        {"quotation_id": quotation_id, "order_id": order.id},
        db=db,
        **request_context(request),
    )
    return order
