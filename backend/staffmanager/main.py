from __future__ import annotations

import datetime as dt
from dataclasses import asdict
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from . import models
from .config import settings
from .database import engine, get_db
from .errors import (
    BusinessRuleViolation,
    IntegrationFailure,
    NotFoundError,
    StaffManagerError,
)
from .log_config import configure_logging
from .reports import ReportLabRenderer, ReportRenderer
from .schemas import (
    ActivityCreateRequest,
    ActivityResponse,
    CollaboratorCreateRequest,
    CollaboratorResponse,
    CompteRenduActiviteResponse,
    CustomerCreateRequest,
    CustomerResponse,
    InvoiceResponse,
    InvoiceRunResponse,
    MissionCreateRequest,
    MissionResponse,
    SocietyCreateRequest,
    SocietyResponse,
)
from .services import (
    create_activities,
    create_collaborator,
    create_customer,
    create_mission,
    create_society,
    get_month_summary,
    list_activities,
    list_invoices,
    month_start,
    validate_and_generate_invoice,
)
from .storage import ObjectStorage, S3Storage

configure_logging()
models.Base.metadata.create_all(bind=engine)

app = FastAPI(title=settings.app_name)

ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (BusinessRuleViolation, status.HTTP_409_CONFLICT),
    (IntegrationFailure, status.HTTP_502_BAD_GATEWAY),
)


@app.exception_handler(StaffManagerError)
async def staffmanager_error_handler(request: Request, exc: StaffManagerError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break
    return JSONResponse({"detail": exc.message, "error": exc.kind}, status_code=status_code)


def get_renderer() -> ReportRenderer:
    return ReportLabRenderer(settings.report_temp_dir)


def get_storage() -> ObjectStorage:
    return S3Storage()


def _parse_month(value: Optional[str]) -> dt.date:
    if not value:
        return month_start()
    try:
        return dt.datetime.strptime(value, "%Y-%m").date()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid month, expected YYYY-MM")


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.post("/activities", response_model=list[ActivityResponse], status_code=status.HTTP_201_CREATED)
def post_activities(
    payload: list[ActivityCreateRequest],
    x_user_email: str = Header(...),
    db: Session = Depends(get_db),
) -> list[ActivityResponse]:
    return create_activities(db, x_user_email, payload)


@app.get("/activities", response_model=list[ActivityResponse])
def get_activities(
    collaborator_id: int,
    month: Optional[str] = None,
    db: Session = Depends(get_db),
) -> list[ActivityResponse]:
    return list_activities(db, collaborator_id, _parse_month(month))


@app.get("/cra", response_model=list[CompteRenduActiviteResponse])
def get_cra(month: Optional[str] = None, db: Session = Depends(get_db)) -> list[CompteRenduActiviteResponse]:
    return get_month_summary(db, _parse_month(month))


@app.post("/cra/{collaborator_id}/validate", response_model=InvoiceRunResponse)
def validate_cra(
    collaborator_id: int,
    month: Optional[str] = None,
    db: Session = Depends(get_db),
    renderer: ReportRenderer = Depends(get_renderer),
    storage: ObjectStorage = Depends(get_storage),
) -> Response:
    reference_month = _parse_month(month)
    results = validate_and_generate_invoice(db, collaborator_id, renderer, storage, reference_month)
    payload = InvoiceRunResponse(
        collaborator_id=collaborator_id,
        month=reference_month,
        results=[{**asdict(result), "ok": result.ok} for result in results],
    )
    status_code = status.HTTP_201_CREATED if all(result.ok for result in results) else status.HTTP_502_BAD_GATEWAY
    return JSONResponse(payload.model_dump(mode="json"), status_code=status_code)


@app.get("/invoices", response_model=list[InvoiceResponse])
def get_invoices(collaborator_id: Optional[int] = None, db: Session = Depends(get_db)) -> list[InvoiceResponse]:
    return list_invoices(db, collaborator_id)


@app.post("/collaborators", response_model=CollaboratorResponse, status_code=status.HTTP_201_CREATED)
def post_collaborator(payload: CollaboratorCreateRequest, db: Session = Depends(get_db)) -> CollaboratorResponse:
    return create_collaborator(db, payload.first_name, payload.last_name, payload.email)


@app.post("/customers", response_model=CustomerResponse, status_code=status.HTTP_201_CREATED)
def post_customer(payload: CustomerCreateRequest, db: Session = Depends(get_db)) -> CustomerResponse:
    return create_customer(db, payload.name, payload.address)


@app.post("/missions", response_model=MissionResponse, status_code=status.HTTP_201_CREATED)
def post_mission(payload: MissionCreateRequest, db: Session = Depends(get_db)) -> MissionResponse:
    return create_mission(
        db,
        payload.name,
        payload.start_date,
        payload.end_date,
        payload.customer_id,
        payload.collaborator_id,
    )


@app.post("/societies", response_model=SocietyResponse, status_code=status.HTTP_201_CREATED)
def post_society(payload: SocietyCreateRequest, db: Session = Depends(get_db)) -> SocietyResponse:
    return create_society(db, payload.name, payload.address, payload.vat_number, payload.siret)
