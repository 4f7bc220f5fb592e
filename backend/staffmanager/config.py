from __future__ import annotations

import os
from decimal import Decimal
from pathlib import Path
from typing import Literal, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)
    """Application runtime configuration."""

    app_name: str = "StaffManager"
    environment: str = "development"
    host: str = os.getenv("SM_HOST", "127.0.0.1")
    port: int = int(os.getenv("SM_PORT", "8080"))

    sqlite_path: Path = Path(os.getenv("SM_SQLITE_PATH", "./data/staffmanager.db"))

    hours_per_day: int = int(os.getenv("SM_HOURS_PER_DAY", "8"))
    unit_price_worked_day: Decimal = Decimal(os.getenv("SM_UNIT_PRICE_WORKED_DAY", "100"))
    unit_price_overtime: Decimal = Decimal(os.getenv("SM_UNIT_PRICE_OVERTIME", "150"))
    unit_price_on_call: Decimal = Decimal(os.getenv("SM_UNIT_PRICE_ON_CALL", "80"))
    vat_rate: Decimal = Decimal(os.getenv("SM_VAT_RATE", "0.20"))

    invoice_bucket: str = os.getenv("SM_INVOICE_BUCKET", "factures")
    invoice_failure_policy: Literal["collect", "fail_fast"] = os.getenv(  # type: ignore[assignment]
        "SM_INVOICE_FAILURE_POLICY", "collect"
    )
    report_template: str = os.getenv("SM_REPORT_TEMPLATE", "reports/customerInvoice")
    report_temp_dir: Path = Path(os.getenv("SM_REPORT_TEMP_DIR", "./data/reports/temp"))

    s3_region: Optional[str] = os.getenv("SM_S3_REGION")
    s3_endpoint_url: Optional[str] = os.getenv("SM_S3_ENDPOINT_URL")
    s3_connect_timeout: float = float(os.getenv("SM_S3_CONNECT_TIMEOUT", "5"))
    s3_read_timeout: float = float(os.getenv("SM_S3_READ_TIMEOUT", "30"))

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = os.getenv(  # type: ignore[assignment]
        "SM_LOG_LEVEL", "INFO"
    )
    log_format: Literal["json", "console"] = os.getenv("SM_LOG_FORMAT", "console")  # type: ignore[assignment]

    @field_validator("hours_per_day")
    @classmethod
    def _positive_ratio(cls, value: int) -> int:
        if value <= 0:
            raise ValueError("hours_per_day must be positive")
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper() if isinstance(value, str) else value


settings = Settings()

# Ensure essential directories exist
settings.sqlite_path.parent.mkdir(parents=True, exist_ok=True)
settings.report_temp_dir.mkdir(parents=True, exist_ok=True)
