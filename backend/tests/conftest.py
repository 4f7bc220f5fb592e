from __future__ import annotations

import datetime as dt
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Generator, List, Mapping, Optional, Sequence

_TMP = tempfile.mkdtemp(prefix="staffmanager-tests-")
os.environ.setdefault("SM_SQLITE_PATH", str(Path(_TMP) / "app.db"))
os.environ.setdefault("SM_REPORT_TEMP_DIR", str(Path(_TMP) / "reports" / "temp"))

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from staffmanager import models  # noqa: E402
from staffmanager.categories import ActivityCategory  # noqa: E402
from staffmanager.config import settings  # noqa: E402
from staffmanager.database import get_db, make_engine  # noqa: E402
from staffmanager.errors import IntegrationFailure  # noqa: E402
from staffmanager.main import app, get_renderer, get_storage  # noqa: E402


class FakeRenderer:
    def __init__(self, fail_for: Sequence[str] = ()):
        self.calls: List[Dict[str, Any]] = []
        self.fail_for = set(fail_for)

    def render(
        self,
        template: str,
        rows: Sequence[Mapping[str, Any]],
        params: Mapping[str, Any],
        base_name: str,
    ) -> bytes:
        self.calls.append({"template": template, "rows": list(rows), "params": dict(params), "base_name": base_name})
        if base_name in self.fail_for:
            raise IntegrationFailure(f"Erreur lors de la génération du rapport {base_name}.pdf")
        settings.report_temp_dir.mkdir(parents=True, exist_ok=True)
        (settings.report_temp_dir / f"{base_name}.pdf").write_bytes(b"%PDF-fake")
        return f"%PDF {base_name}".encode()


class FakeStorage:
    def __init__(self, fail_for: Sequence[str] = ()):
        self.objects: Dict[tuple[str, str], bytes] = {}
        self.deleted: List[tuple[str, str]] = []
        self.fail_for = set(fail_for)

    def upload(self, data: bytes, bucket: str, key: str) -> None:
        if key in self.fail_for:
            raise IntegrationFailure(f"Erreur lors du chargement du rapport {key}")
        self.objects[(bucket, key)] = data

    def delete(self, bucket: str, key: str) -> None:
        self.deleted.append((bucket, key))
        self.objects.pop((bucket, key), None)


@pytest.fixture(scope="function")
def engine(tmp_path: Path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    models.Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session(engine) -> Generator[Session, None, None]:
    SessionTesting = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = SessionTesting()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture()
def storage() -> FakeStorage:
    return FakeStorage()


@pytest.fixture(scope="function")
def client(session: Session, renderer: FakeRenderer, storage: FakeStorage) -> Generator[TestClient, None, None]:
    def override_get_db():
        yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_renderer] = lambda: renderer
    app.dependency_overrides[get_storage] = lambda: storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def march() -> dt.date:
    return dt.date(2024, 3, 1)


def add_collaborator(session: Session, first_name: str = "Jean", last_name: str = "Dupont", email: Optional[str] = None):
    collaborator = models.Collaborator(
        first_name=first_name,
        last_name=last_name,
        email=email or f"{first_name}.{last_name}@example.com".lower().replace(" ", ""),
    )
    session.add(collaborator)
    session.commit()
    return collaborator


def add_customer(session: Session, name: str = "ACME Corp", address: str = "1 rue de la Paix\n75002 Paris"):
    customer = models.Customer(name=name, address=address)
    session.add(customer)
    session.commit()
    return customer


def add_mission(session: Session, collaborator, customer, start: dt.date, end: dt.date, name: str = "Refonte SI"):
    mission = models.Mission(name=name, start_date=start, end_date=end, customer=customer, collaborator=collaborator)
    session.add(mission)
    session.commit()
    return mission


def add_society(session: Session, name: str = "Staff Conseil"):
    society = models.Society(name=name, address="10 avenue Foch\n69006 Lyon", vat_number="FR12345678901")
    session.add(society)
    session.commit()
    return society


def add_activity(
    session: Session,
    day: dt.date,
    hours: int,
    category: ActivityCategory,
    collaborator=None,
    mission=None,
    comment: Optional[str] = None,
):
    activity = models.Activity(
        date=day,
        quantity=hours,
        category=category,
        comment=comment,
        collaborator=collaborator,
        mission=mission,
    )
    session.add(activity)
    session.commit()
    return activity
