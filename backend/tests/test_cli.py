from __future__ import annotations

import datetime as dt
from contextlib import contextmanager

import pytest
from sqlalchemy.orm import Session, sessionmaker

from conftest import FakeRenderer, FakeStorage, add_activity, add_collaborator, add_customer, add_mission, add_society
from staffmanager import database, main, models
from staffmanager.__main__ import build_parser, invoice_run
from staffmanager.categories import ActivityCategory
from staffmanager.config import settings


def test_invoice_run_arguments() -> None:
    args = build_parser().parse_args(["invoice-run", "--month", "2024-03", "--collaborator", "3", "--collaborator", "7"])
    assert args.command == "invoice-run"
    assert args.month == dt.date(2024, 3, 1)
    assert args.collaborators == [3, 7]


def test_serve_is_default() -> None:
    assert build_parser().parse_args([]).command is None


def test_invalid_month_is_rejected() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["invoice-run", "--month", "mars"])


@pytest.fixture()
def batch(engine, monkeypatch, renderer: FakeRenderer):
    """Point the invoice-run command at the test database and the in-memory adapters."""
    SessionTesting = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    @contextmanager
    def session_scope():
        db = SessionTesting()
        try:
            yield db
            db.commit()
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def use(storage: FakeStorage) -> None:
        monkeypatch.setattr(database, "db_session", session_scope)
        monkeypatch.setattr(main, "get_renderer", lambda: renderer)
        monkeypatch.setattr(main, "get_storage", lambda: storage)

    return use


@pytest.fixture()
def worked_march(session: Session):
    collaborator = add_collaborator(session)
    mission = add_mission(session, collaborator, add_customer(session), dt.date(2024, 3, 1), dt.date(2024, 3, 31))
    add_society(session)
    add_activity(session, dt.date(2024, 3, 4), 8, ActivityCategory.JOUR_TRAVAILLE, collaborator, mission)
    return collaborator


def _lines(capsys) -> list[list[str]]:
    return [line.split("\t") for line in capsys.readouterr().out.splitlines()]


def test_invoice_run_reports_success(batch, worked_march, storage: FakeStorage, march, capsys, session: Session) -> None:
    batch(storage)

    assert invoice_run(march, None) == 0

    total_ttc = settings.unit_price_worked_day * (1 + settings.vat_rate)
    assert _lines(capsys) == [[str(worked_march.id), "ACME_Corp-3-2024-Jean-Dupont.pdf", "OK", f"{total_ttc:.2f}"]]
    assert (settings.invoice_bucket, "ACME_Corp-3-2024-Jean-Dupont.pdf") in storage.objects
    assert session.query(models.Invoice).count() == 1


def test_invoice_run_reports_failed_upload(batch, worked_march, march, capsys, session: Session) -> None:
    batch(FakeStorage(fail_for=["ACME_Corp-3-2024-Jean-Dupont.pdf"]))

    assert invoice_run(march, None) == 1

    [line] = _lines(capsys)
    assert line[:3] == [str(worked_march.id), "ACME_Corp-3-2024-Jean-Dupont.pdf", "FAILED"]
    assert line[3].startswith("integration_failure: ")
    assert session.query(models.Invoice).count() == 0


def test_invoice_run_selects_collaborators_with_mission_activity(
    batch, worked_march, storage: FakeStorage, march, capsys, session: Session
) -> None:
    idle = add_collaborator(session, "Marie", "Curie")
    add_activity(session, dt.date(2024, 3, 4), 8, ActivityCategory.CONGE_PAYE, idle, None)
    batch(storage)

    assert invoice_run(march, None) == 0

    assert [line[0] for line in _lines(capsys)] == [str(worked_march.id)]


def test_invoice_run_reports_unknown_collaborator(batch, storage: FakeStorage, march, capsys) -> None:
    batch(storage)

    assert invoice_run(march, [999]) == 1

    [line] = _lines(capsys)
    assert line[:3] == ["999", "-", "FAILED"]
    assert line[3].startswith("not_found: ")
