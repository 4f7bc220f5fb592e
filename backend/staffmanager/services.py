from __future__ import annotations

import datetime as dt
from collections import defaultdict
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

import structlog
from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .categories import (
    MISSION_ELIGIBLE_CATEGORIES,
    ActivityCategory,
    CategoryBucket,
    sum_days_by_bucket,
)
from .config import settings
from .errors import (
    BusinessRuleViolation,
    IntegrationFailure,
    MultipleSocietiesFoundError,
    NoMissionFoundError,
    NotFoundError,
    StaffManagerError,
)
from .invoicing import (
    build_line_items,
    build_report_params,
    compute_totals,
    invoice_base_name,
    invoice_document_name,
)
from .models import Activity, Collaborator, Customer, Invoice, Mission, Society
from .reports import ReportRenderer, clear_temp_directory
from .storage import ObjectStorage

logger = structlog.get_logger(__name__)

FAILURE_POLICIES = {"collect", "fail_fast"}


def _today() -> dt.date:
    return dt.date.today()


def month_start(value: Optional[dt.date] = None) -> dt.date:
    """Return the first day of the month containing ``value`` (today by default)."""
    value = value or _today()
    return value.replace(day=1)


def _month_bounds(month: dt.date) -> tuple[dt.date, dt.date]:
    first = month_start(month)
    if first.month == 12:
        following = first.replace(year=first.year + 1, month=1)
    else:
        following = first.replace(month=first.month + 1)
    return first, following - dt.timedelta(days=1)


def _activities_in_month(db: Session, month: dt.date) -> List[Activity]:
    first, last = _month_bounds(month)
    return (
        db.query(Activity)
        .filter(and_(Activity.date >= first, Activity.date <= last))
        .order_by(Activity.date.asc(), Activity.id.asc())
        .all()
    )


def get_collaborator(db: Session, collaborator_id: int) -> Collaborator:
    collaborator = db.query(Collaborator).filter(Collaborator.id == collaborator_id).one_or_none()
    if not collaborator:
        raise NotFoundError(f"Le collaborateur possédant l'ID {collaborator_id} n'existe pas")
    return collaborator


def find_collaborator_by_email(db: Session, email: str) -> Optional[Collaborator]:
    return db.query(Collaborator).filter(Collaborator.email == email.strip().lower()).one_or_none()


def get_collaborator_missions(db: Session, collaborator: Collaborator) -> List[Mission]:
    return db.query(Mission).filter(Mission.collaborator_id == collaborator.id).order_by(Mission.id.asc()).all()


def match_mission(
    day: dt.date,
    category: ActivityCategory,
    missions: Sequence[Mission],
) -> Optional[Mission]:
    """Return the mission an activity of ``category`` on ``day`` belongs to.

    Bounds are inclusive. When several missions cover the day the first one
    in ``missions`` wins; overlapping missions are not disambiguated further.
    """
    if category not in MISSION_ELIGIBLE_CATEGORIES:
        return None
    for mission in missions:
        if mission.covers(day):
            return mission
    return None


def create_activities(db: Session, user_email: str, entries: Iterable[Any]) -> List[Activity]:
    collaborator = find_collaborator_by_email(db, user_email)
    if not collaborator:
        raise NotFoundError("Le collaborateur n'existe pas")
    missions = get_collaborator_missions(db, collaborator)
    records: List[Activity] = []
    for entry in entries:
        if entry.quantity < 0:
            raise BusinessRuleViolation("La quantité d'une activité ne peut pas être négative")
        mission = match_mission(entry.date, entry.category, missions)
        records.append(
            Activity(
                date=entry.date,
                quantity=entry.quantity,
                category=entry.category,
                comment=entry.comment,
                collaborator=collaborator,
                mission=mission,
            )
        )
    db.add_all(records)
    db.commit()
    for record in records:
        db.refresh(record)
    logger.info(
        "activities_created",
        collaborator_id=collaborator.id,
        count=len(records),
        linked=sum(1 for record in records if record.mission_id is not None),
    )
    return records


def list_activities(db: Session, collaborator_id: int, month: Optional[dt.date] = None) -> List[Activity]:
    get_collaborator(db, collaborator_id)
    month = month_start(month)
    return [activity for activity in _activities_in_month(db, month) if activity.collaborator_id == collaborator_id]


def get_month_summary(db: Session, reference_month: Optional[dt.date] = None) -> List[Dict[str, Any]]:
    """Build the compte rendu d'activité rows of every collaborator active in the month."""
    month = month_start(reference_month)
    logger.info("cra_fetch", month=month.strftime("%Y-%m"))
    grouped: Dict[int, List[Activity]] = defaultdict(list)
    collaborators: Dict[int, Collaborator] = {}
    for activity in _activities_in_month(db, month):
        if activity.collaborator is None:
            continue
        grouped[activity.collaborator_id].append(activity)
        collaborators[activity.collaborator_id] = activity.collaborator

    rows: List[Dict[str, Any]] = []
    for collaborator_id in sorted(grouped):
        collaborator = collaborators[collaborator_id]
        activities = grouped[collaborator_id]
        logger.debug("cra_collaborator", collaborator_id=collaborator_id, activities=len(activities))
        rows.append(
            {
                "collaborator_id": collaborator.id,
                "collaborator_first_name": collaborator.first_name,
                "collaborator_last_name": collaborator.last_name,
                "declared_days": sum_days_by_bucket(activities, CategoryBucket.DECLARED),
                "billed_days": sum_days_by_bucket(activities, CategoryBucket.BILLED),
                "rtt_redemption": sum_days_by_bucket(activities, CategoryBucket.RTT_REDEMPTION),
                "absence_days": sum_days_by_bucket(activities, CategoryBucket.ABSENCE),
                "extra_hours_in_days": sum_days_by_bucket(activities, CategoryBucket.EXTRA_HOURS),
                "on_call_hours_in_days": sum_days_by_bucket(activities, CategoryBucket.ON_CALL),
            }
        )
    return rows


def get_current_month_summary(db: Session) -> List[Dict[str, Any]]:
    return get_month_summary(db, _today())


def resolve_society(db: Session) -> Society:
    societies = db.query(Society).all()
    if len(societies) > 1:
        raise MultipleSocietiesFoundError(
            "On s'attend à ce qu'une société soit renvoyée de la base, on en a trouvé plusieurs"
        )
    if not societies:
        raise NotFoundError(
            "Aucune société en base, la génération de la facture client dépend de la TVA de la société"
        )
    return societies[0]


@dataclass
class MissionInvoiceResult:
    mission_id: int
    mission_name: str
    document_name: str
    total_ht: Decimal
    vat: Decimal
    total_ttc: Decimal
    object_key: Optional[str] = None
    invoice_id: Optional[int] = None
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _missions_with_activities(db: Session, collaborator_id: int, month: dt.date) -> Dict[Mission, List[Activity]]:
    grouped: Dict[Mission, List[Activity]] = {}
    for activity in _activities_in_month(db, month):
        if activity.collaborator_id != collaborator_id or activity.mission is None:
            continue
        grouped.setdefault(activity.mission, []).append(activity)
    return grouped


def _document_name(mission: Mission, collaborator: Collaborator, month: dt.date) -> str:
    return invoice_document_name(mission.customer.name, month, collaborator.first_name, collaborator.last_name)


def _object_keys(missions: Iterable[Mission], collaborator: Collaborator, month: dt.date) -> Dict[int, str]:
    """Map each mission id to the storage key of its invoice document.

    Missions billed to the same customer in the same month share a document
    name; those documents are stored under a key carrying the mission id.
    """
    by_name: Dict[str, List[Mission]] = defaultdict(list)
    for mission in missions:
        by_name[_document_name(mission, collaborator, month)].append(mission)
    keys: Dict[int, str] = {}
    for document_name, named in by_name.items():
        if len(named) == 1:
            keys[named[0].id] = document_name
            continue
        logger.warning("invoice_name_collision", document=document_name, missions=[item.id for item in named])
        stem = document_name[: -len(".pdf")]
        for mission in named:
            keys[mission.id] = f"{stem}-mission-{mission.id}.pdf"
    return keys


def _store_invoice(
    db: Session,
    storage: ObjectStorage,
    pdf_bytes: bytes,
    document_name: str,
    object_key: str,
    mission: Mission,
    collaborator: Collaborator,
    month: dt.date,
) -> Invoice:
    bucket = settings.invoice_bucket
    storage.upload(pdf_bytes, bucket, object_key)
    invoice = Invoice(
        name=document_name,
        created_at=_today(),
        customer_id=mission.customer_id,
        collaborator_id=collaborator.id,
        mission_id=mission.id,
        month_year=month,
        bucket=bucket,
        object_key=object_key,
    )
    try:
        db.add(invoice)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("invoice_persist_failed", document=document_name, key=object_key, exc_info=True)
        # The stored document must not outlive a failed invoice write.
        storage.delete(bucket, object_key)
        raise IntegrationFailure(f"Erreur lors de l'enregistrement de la facture {document_name}") from exc
    db.refresh(invoice)
    return invoice


def _invoice_mission(
    db: Session,
    mission: Mission,
    activities: List[Activity],
    collaborator: Collaborator,
    society: Society,
    month: dt.date,
    object_key: str,
    renderer: ReportRenderer,
    storage: ObjectStorage,
) -> MissionInvoiceResult:
    log = logger.bind(mission_id=mission.id, mission=mission.name)
    log.info("invoice_mission_start", activities=len(activities))
    items = build_line_items(activities)
    totals = compute_totals(items)
    params = build_report_params(totals, mission, collaborator, society, month)
    base_name = invoice_base_name(mission.customer.name, month, collaborator.first_name, collaborator.last_name)
    document_name = _document_name(mission, collaborator, month)
    result = MissionInvoiceResult(
        mission_id=mission.id,
        mission_name=mission.name,
        document_name=document_name,
        total_ht=totals.total_ht,
        vat=totals.vat,
        total_ttc=totals.total_ttc,
        object_key=object_key,
    )
    log.info("invoice_details", document=document_name, total_ht=str(totals.total_ht), total_ttc=str(totals.total_ttc))
    try:
        pdf_bytes = renderer.render(settings.report_template, [item.as_row() for item in items], params, base_name)
        invoice = _store_invoice(db, storage, pdf_bytes, document_name, object_key, mission, collaborator, month)
    finally:
        clear_temp_directory(settings.report_temp_dir)
    result.invoice_id = invoice.id
    log.info("invoice_mission_done", invoice_id=invoice.id)
    return result


def validate_and_generate_invoice(
    db: Session,
    collaborator_id: int,
    renderer: ReportRenderer,
    storage: ObjectStorage,
    reference_month: Optional[dt.date] = None,
    failure_policy: Optional[str] = None,
) -> List[MissionInvoiceResult]:
    """Generate, store and record one invoice per mission the collaborator worked on in the month.

    With the ``collect`` policy every mission is attempted and failures are
    reported in the returned results; with ``fail_fast`` the first failure is
    raised and the remaining missions are skipped.
    """
    policy = failure_policy or settings.invoice_failure_policy
    if policy not in FAILURE_POLICIES:
        raise ValueError(f"Unknown invoice failure policy: {policy}")
    collaborator = get_collaborator(db, collaborator_id)
    month = month_start(reference_month)
    period = month.strftime("%Y-%m")
    missions = _missions_with_activities(db, collaborator_id, month)
    logger.info("invoice_run", collaborator_id=collaborator_id, month=period, missions=len(missions))
    if not missions:
        raise NoMissionFoundError(
            f"Le collaborateur {collaborator.first_name} {collaborator.last_name} "
            f"n'a aucune mission pendant la période {period}"
        )
    society = resolve_society(db)
    ordered = sorted(missions, key=lambda item: item.id)
    object_keys = _object_keys(ordered, collaborator, month)

    results: List[MissionInvoiceResult] = []
    for mission in ordered:
        try:
            results.append(
                _invoice_mission(
                    db,
                    mission,
                    missions[mission],
                    collaborator,
                    society,
                    month,
                    object_keys[mission.id],
                    renderer,
                    storage,
                )
            )
        except StaffManagerError as exc:
            logger.error("invoice_mission_failed", mission_id=mission.id, error=exc.message)
            if policy == "fail_fast":
                raise
            results.append(
                MissionInvoiceResult(
                    mission_id=mission.id,
                    mission_name=mission.name,
                    document_name=_document_name(mission, collaborator, month),
                    total_ht=Decimal("0"),
                    vat=Decimal("0"),
                    total_ttc=Decimal("0"),
                    object_key=object_keys[mission.id],
                    error=exc.message,
                    error_kind=exc.kind,
                )
            )
    return results


def collaborators_to_invoice(db: Session, reference_month: Optional[dt.date] = None) -> List[int]:
    month = month_start(reference_month)
    return sorted(
        {
            activity.collaborator_id
            for activity in _activities_in_month(db, month)
            if activity.collaborator_id is not None and activity.mission_id is not None
        }
    )


def list_invoices(db: Session, collaborator_id: Optional[int] = None) -> List[Invoice]:
    query = db.query(Invoice)
    if collaborator_id is not None:
        query = query.filter(Invoice.collaborator_id == collaborator_id)
    return query.order_by(Invoice.month_year.desc(), Invoice.id.asc()).all()


def create_collaborator(db: Session, first_name: str, last_name: str, email: str) -> Collaborator:
    normalized_email = email.strip().lower()
    if find_collaborator_by_email(db, normalized_email):
        raise BusinessRuleViolation(f"Un collaborateur utilise déjà l'adresse {normalized_email}")
    collaborator = Collaborator(first_name=first_name.strip(), last_name=last_name.strip(), email=normalized_email)
    db.add(collaborator)
    db.commit()
    db.refresh(collaborator)
    return collaborator


def create_customer(db: Session, name: str, address: Optional[str]) -> Customer:
    customer = Customer(name=name.strip(), address=address)
    db.add(customer)
    db.commit()
    db.refresh(customer)
    return customer


def create_mission(
    db: Session,
    name: str,
    start_date: dt.date,
    end_date: dt.date,
    customer_id: int,
    collaborator_id: int,
) -> Mission:
    if end_date < start_date:
        raise BusinessRuleViolation("La date de fin de mission précède la date de début")
    customer = db.query(Customer).filter(Customer.id == customer_id).one_or_none()
    if not customer:
        raise NotFoundError(f"Le client possédant l'ID {customer_id} n'existe pas")
    collaborator = get_collaborator(db, collaborator_id)
    mission = Mission(
        name=name.strip(),
        start_date=start_date,
        end_date=end_date,
        customer=customer,
        collaborator=collaborator,
    )
    db.add(mission)
    db.commit()
    db.refresh(mission)
    return mission


def create_society(
    db: Session,
    name: str,
    address: Optional[str],
    vat_number: Optional[str],
    siret: Optional[str],
) -> Society:
    if db.query(Society).count():
        raise MultipleSocietiesFoundError("Une société est déjà configurée")
    society = Society(name=name.strip(), address=address, vat_number=vat_number, siret=siret)
    db.add(society)
    db.commit()
    db.refresh(society)
    return society
