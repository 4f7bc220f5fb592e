from __future__ import annotations

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .categories import ActivityCategory


class ActivityCreateRequest(BaseModel):
    date: dt.date
    quantity: int = Field(ge=0, description="Hours")
    category: ActivityCategory
    comment: Optional[str] = None


class ActivityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    date: dt.date
    quantity: int
    category: ActivityCategory
    comment: Optional[str]
    collaborator_id: Optional[int]
    mission_id: Optional[int]


class CompteRenduActiviteResponse(BaseModel):
    collaborator_id: int
    collaborator_first_name: str
    collaborator_last_name: str
    declared_days: Decimal
    billed_days: Decimal
    rtt_redemption: Decimal
    absence_days: Decimal
    extra_hours_in_days: Decimal
    on_call_hours_in_days: Decimal


class MissionInvoiceResultResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    mission_id: int
    mission_name: str
    document_name: str
    total_ht: Decimal
    vat: Decimal
    total_ttc: Decimal
    object_key: Optional[str]
    invoice_id: Optional[int]
    ok: bool
    error: Optional[str]
    error_kind: Optional[str]


class InvoiceRunResponse(BaseModel):
    collaborator_id: int
    month: dt.date
    results: List[MissionInvoiceResultResponse]


class InvoiceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    created_at: dt.date
    month_year: dt.date
    customer_id: int
    collaborator_id: int
    mission_id: Optional[int]
    bucket: str
    object_key: str


class CollaboratorCreateRequest(BaseModel):
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")


class CollaboratorResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    first_name: str
    last_name: str
    email: str


class CustomerCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: Optional[str] = None


class CustomerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    address: Optional[str]


class MissionCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    start_date: dt.date
    end_date: dt.date
    customer_id: int
    collaborator_id: int

    @model_validator(mode="after")
    def _check_dates(self) -> "MissionCreateRequest":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class MissionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    start_date: dt.date
    end_date: dt.date
    customer_id: int
    collaborator_id: int


class SocietyCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    address: Optional[str] = None
    vat_number: Optional[str] = None
    siret: Optional[str] = None


class SocietyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)
    id: int
    name: str
    address: Optional[str]
    vat_number: Optional[str]
    siret: Optional[str]
