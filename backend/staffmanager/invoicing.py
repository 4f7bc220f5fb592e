"""Invoice line items, totals and document naming."""

from __future__ import annotations

import datetime as dt
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .categories import ActivityCategory, CategoryBucket, sum_days_by_bucket
from .config import settings


@dataclass(frozen=True)
class CustomerInvoiceLineItem:
    category: ActivityCategory
    quantity: Decimal  # days
    unit_price: Decimal

    @property
    def amount(self) -> Decimal:
        return self.quantity * self.unit_price

    def as_row(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "amount": self.amount,
        }


@dataclass(frozen=True)
class InvoiceTotals:
    total_ht: Decimal
    vat: Decimal
    total_ttc: Decimal


# Invoiced category -> (bucket providing the quantity, settings attribute holding the price)
INVOICED_BUCKETS: tuple[tuple[ActivityCategory, CategoryBucket, str], ...] = (
    (ActivityCategory.JOUR_TRAVAILLE, CategoryBucket.BILLED, "unit_price_worked_day"),
    (ActivityCategory.HEURE_SUPPLEMENTAIRE, CategoryBucket.EXTRA_HOURS, "unit_price_overtime"),
    (ActivityCategory.ASTREINTE, CategoryBucket.ON_CALL, "unit_price_on_call"),
)


def unit_prices() -> Dict[ActivityCategory, Decimal]:
    return {category: getattr(settings, attribute) for category, _bucket, attribute in INVOICED_BUCKETS}


def build_line_items(
    activities: Iterable,
    prices: Optional[Mapping[ActivityCategory, Decimal]] = None,
) -> List[CustomerInvoiceLineItem]:
    """Return the worked day, overtime and on-call lines for one mission's activities.

    The three lines are always present, with a zero quantity when the mission
    has no activity of that kind.
    """
    activities = list(activities)
    prices = prices or unit_prices()
    return [
        CustomerInvoiceLineItem(
            category=category,
            quantity=sum_days_by_bucket(activities, bucket),
            unit_price=prices[category],
        )
        for category, bucket, _attribute in INVOICED_BUCKETS
    ]


def compute_totals(items: Iterable[CustomerInvoiceLineItem], vat_rate: Optional[Decimal] = None) -> InvoiceTotals:
    rate = settings.vat_rate if vat_rate is None else vat_rate
    total_ht = sum((item.amount for item in items), Decimal("0"))
    vat = total_ht * rate
    return InvoiceTotals(total_ht=total_ht, vat=vat, total_ttc=total_ht + vat)


def _underscored(value: str) -> str:
    return re.sub(r"\s", "_", value)


def invoice_base_name(customer_name: str, month: dt.date, first_name: str, last_name: str) -> str:
    parts = [
        _underscored(customer_name),
        str(month.month),
        str(month.year),
        _underscored(first_name),
        _underscored(last_name),
    ]
    return "-".join(parts)


def invoice_document_name(customer_name: str, month: dt.date, first_name: str, last_name: str) -> str:
    return f"{invoice_base_name(customer_name, month, first_name, last_name)}.pdf"


def build_report_params(
    totals: InvoiceTotals,
    mission,
    collaborator,
    society,
    month: dt.date,
) -> Dict[str, Any]:
    return {
        "totalHT": totals.total_ht,
        "tva": totals.vat,
        "totalTTC": totals.total_ttc,
        "customer-name": mission.customer.name,
        "customer-adress": mission.customer.address or "",
        "society-name": society.name,
        "society-address": society.address or "",
        "society-vat-number": society.vat_number or "",
        "collaborator-name": collaborator.full_name,
        "mission-name": mission.name,
        "period": month.strftime("%m/%Y"),
    }
