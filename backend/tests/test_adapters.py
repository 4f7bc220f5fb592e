from __future__ import annotations

from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from staffmanager.errors import IntegrationFailure
from staffmanager.reports import ReportLabRenderer, clear_temp_directory
from staffmanager.storage import S3Storage


class FakeS3Client:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.put_calls: List[Dict[str, Any]] = []
        self.delete_calls: List[Dict[str, Any]] = []

    def put_object(self, **kwargs: Any) -> dict:
        if self.error:
            raise self.error
        self.put_calls.append(kwargs)
        return {"ETag": '"abc"'}

    def delete_object(self, **kwargs: Any) -> dict:
        if self.error:
            raise self.error
        self.delete_calls.append(kwargs)
        return {}


def _rows() -> list[dict]:
    return [
        {"category": "JOUR_TRAVAILLE", "quantity": Decimal("1.000"), "unit_price": Decimal("100"), "amount": Decimal("100")},
        {"category": "HEURE_SUPPLEMENTAIRE", "quantity": Decimal("0.000"), "unit_price": Decimal("150"), "amount": Decimal("0")},
        {"category": "ASTREINTE", "quantity": Decimal("0.000"), "unit_price": Decimal("80"), "amount": Decimal("0")},
    ]


def test_reportlab_renderer_writes_pdf(tmp_path: Path) -> None:
    renderer = ReportLabRenderer(tmp_path / "temp")
    params = {
        "totalHT": Decimal("100"),
        "tva": Decimal("20"),
        "totalTTC": Decimal("120"),
        "customer-name": "ACME Corp",
        "customer-adress": "1 rue de la Paix\n75002 Paris",
        "society-name": "Staff Conseil",
        "society-address": "10 avenue Foch",
        "society-vat-number": "FR12345678901",
        "collaborator-name": "Jean Dupont",
        "mission-name": "Refonte SI",
        "period": "03/2024",
    }
    content = renderer.render("reports/customerInvoice", _rows(), params, "ACME_Corp-3-2024-Jean-Dupont")
    assert content.startswith(b"%PDF")
    assert (tmp_path / "temp" / "ACME_Corp-3-2024-Jean-Dupont.pdf").read_bytes() == content


def test_clear_temp_directory(tmp_path: Path) -> None:
    (tmp_path / "a.pdf").write_bytes(b"a")
    (tmp_path / "b.pdf").write_bytes(b"b")
    (tmp_path / "nested").mkdir()
    removed = clear_temp_directory(tmp_path)
    assert sorted(removed) == ["a.pdf", "b.pdf"]
    assert [entry.name for entry in tmp_path.iterdir()] == ["nested"]


def test_clear_temp_directory_tolerates_missing_or_empty(tmp_path: Path) -> None:
    assert clear_temp_directory(tmp_path / "missing") == []
    assert clear_temp_directory(tmp_path) == []


def test_s3_upload_puts_pdf() -> None:
    client = FakeS3Client()
    S3Storage(client).upload(b"%PDF", "factures", "ACME-3-2024-Jean-Dupont.pdf")
    assert client.put_calls == [
        {
            "Bucket": "factures",
            "Key": "ACME-3-2024-Jean-Dupont.pdf",
            "Body": b"%PDF",
            "ContentType": "application/pdf",
        }
    ]


def test_s3_client_error_becomes_integration_failure() -> None:
    error = ClientError({"Error": {"Code": "NoSuchBucket", "Message": "missing"}}, "PutObject")
    with pytest.raises(IntegrationFailure, match="ACME.pdf"):
        S3Storage(FakeS3Client(error)).upload(b"%PDF", "factures", "ACME.pdf")


def test_s3_connection_error_becomes_integration_failure() -> None:
    error = EndpointConnectionError(endpoint_url="http://localhost:9000")
    with pytest.raises(IntegrationFailure):
        S3Storage(FakeS3Client(error)).delete("factures", "ACME.pdf")
