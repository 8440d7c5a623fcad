# ruff: noqa: B008, E501
from datetime import date
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
from brokerage.models.domain import ORDER_STATUS_VALUES, BusinessType
from brokerage.schemas import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    OrderCreate,
    OrderRead,
    OrderUpdate,
    OrderUpdateResponse,
    StatusLogRead,
)
from brokerage.services import lifecycle, queries
from brokerage.services.audit import audit_event
from brokerage.services.departments import DepartmentProfile
from brokerage.services.document_text import read_document_text
from brokerage.services.exports_csv import build_orders_csv_bytes, export_filename
from brokerage.services.extraction import ExtractionError, build_order_payload, extract_document

router = APIRouter(prefix="/{department}/orders", tags=["orders"])


def parse_order_status_param(value: Optional[str]) -> Optional[str]:
    if value is None or not value.strip() or value.strip().lower() == "all":
        return None
    s = value.strip()
    if s not in ORDER_STATUS_VALUES:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid status: {value}")
    return s


def parse_business_type_param(value: Optional[str]) -> Optional[BusinessType]:
    if value is None or not value.strip() or value.strip().lower() == "all":
        return None
    try:
        return BusinessType(value.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid business type: {value}"
        ) from exc


def _get_order_or_404(db: Session, profile: DepartmentProfile, order_id: int) -> models.Order:
    order = db.get(models.Order, order_id)
    if not order or order.department != profile.department:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return order


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreate,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    try:
        return lifecycle.create_order(
            db=db,
            profile=profile,
            data=payload.model_dump(exclude_none=True),
            user_id=current_user.id,
            year=year,
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.get("", response_model=List[OrderRead])
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    include_all: bool = Query(False),
    business_type: Optional[str] = Query(None),
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    return queries.list_orders_in_date_range(
        db,
        department=profile.department,
        year=year,
        start=start_date,
        end=end_date,
        status=parse_order_status_param(status_filter),
        include_all=include_all,
        business_type=parse_business_type_param(business_type),
    )


@router.get("/closed", response_model=List[OrderRead])
def list_closed_orders(
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    return queries.list_closed_orders(db, department=profile.department, year=year)


@router.get("/export")
def export_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    ids: Optional[List[int]] = Query(None),
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    include_all: bool = Query(False),
    business_type: Optional[str] = Query(None),
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
):
    if status_filter == "selected":
        rows = queries.list_orders_by_ids(db, department=profile.department, year=year, ids=ids or [])
    else:
        wanted_business_type = parse_business_type_param(business_type)
        rows = queries.list_orders_in_date_range(
            db,
            department=profile.department,
            year=year,
            start=start_date,
            end=end_date,
            status=parse_order_status_param(status_filter),
            # A business-type export covers open and closed orders alike.
            include_all=include_all or wanted_business_type is not None,
            business_type=wanted_business_type,
        )

    filename = export_filename("orders", status=status_filter, start=start_date, end=end_date)
    return Response(
        content=build_orders_csv_bytes(rows, include_cover_group=profile.uses_cover_groups),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.post("/upload", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def upload_order(
    document: Optional[UploadFile] = File(None),
    manual_text: Optional[str] = Form(None),
    broker_name: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    business_type: Optional[str] = Form(None),
    order_date: Optional[str] = Form(None),
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    year: int = Depends(get_request_active_year),
    db: Session = Depends(get_db),
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
        order_payload = build_order_payload(
            doc,
            broker_name=broker_name,
            notes=notes,
            business_type=business_type,
            order_date=order_date,
        )
    except ExtractionError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    try:
        return lifecycle.create_order(
            db=db, profile=profile, data=order_payload, user_id=current_user.id, year=year
        )
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc


@router.post("/bulk-delete", response_model=BulkDeleteResponse)
def bulk_delete_orders(
    request: Request,
    payload: BulkDeleteRequest,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    result = lifecycle.bulk_delete_orders(db=db, department=profile.department, ids=payload.ids)
    audit_event(
        "order.bulk_deleted",
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


@router.get("/{order_id}", response_model=OrderRead)
def get_order(
    order_id: int,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    return _get_order_or_404(db, profile, order_id)


@router.put("/{order_id}", response_model=OrderUpdateResponse)
def update_order(
    order_id: int,
    payload: OrderUpdate,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    order = _get_order_or_404(db, profile, order_id)
    previous_statuses = list(order.statuses or [])
    changes = payload.model_dump(exclude_unset=True)
    try:
        result = lifecycle.update_order(db=db, order=order, changes=changes)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return OrderUpdateResponse(
        order=OrderRead.model_validate(result.order),
        has_moved_to_closed=lifecycle.has_moved_to_closed(previous_statuses, changes.get("statuses")),
    )


@router.delete("/{order_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_order(
    request: Request,
    order_id: int,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    order = _get_order_or_404(db, profile, order_id)
    lifecycle.delete_order(db=db, order=order)
    audit_event(
        "order.deleted",
        current_user.id,
        {"order_id": order_id, "department": profile.department.value},
        db=db,
        **request_context(request),
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{order_id}/logs", response_model=List[StatusLogRead])
def get_order_logs(
    order_id: int,
    profile: DepartmentProfile = Depends(get_department_profile),
    current_user: models.User = Depends(get_department_user),
    db: Session = Depends(get_db),
):
    _get_order_or_404(db, profile, order_id)
    return lifecycle.get_order_logs(db, order_id)
