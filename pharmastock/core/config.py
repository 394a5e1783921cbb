import json
from typing import List, Literal, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "PharmaStock Backend"
    env: str = "dev"

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # STOCK ALERTS
    low_stock_threshold: int = Field(default=10, ge=1)
    low_stock_high_priority_threshold: int = Field(default=5, ge=0)
    expiring_soon_days: int = Field(default=30, ge=1, le=3650)
    expiring_high_priority_days: int = Field(default=7, ge=0)
    alert_subscriber_queue_size: int = Field(default=100, ge=1, le=10_000)

    # RECEIVING
    receiving_selling_price_policy: Literal["mean", "quantity_weighted"] = "mean"

    api_timeout_hint_ms: int = Field(default=300000, ge=1000, le=1_800_000)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    cors_origin_regex: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            if not v.strip():
                return []
            if v.startswith("["):
                parsed = json.loads(v)
                if not isinstance(parsed, list):
                    raise ValueError("CORS_ORIGINS JSON value must be a list")
                return [str(i).strip() for i in parsed if str(i).strip()]
            return [i.strip() for i in v.split(",") if i.strip()]
        if isinstance(v, list):
            return [str(i).strip() for i in v if str(i).strip()]
        raise ValueError(v)

    @field_validator("receiving_selling_price_policy", mode="before")
    @classmethod
    def normalize_price_policy(cls, value: str | None) -> str:
        if value is None:
            return "mean"
        return str(value).strip().lower().replace("-", "_") or "mean"

    @model_validator(mode="after")
    def validate_thresholds(self) -> "Settings":
        if self.low_stock_high_priority_threshold > self.low_stock_threshold:
            raise ValueError("LOW_STOCK_HIGH_PRIORITY_THRESHOLD cannot exceed LOW_STOCK_THRESHOLD")
        if self.expiring_high_priority_days > self.expiring_soon_days:
            raise ValueError("EXPIRING_HIGH_PRIORITY_DAYS cannot exceed EXPIRING_SOON_DAYS")
        return self

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        env_value = self.env.lower().strip()
        if env_value not in {"prod", "production"}:
            return self

        if "*" in self.cors_origins:
            raise ValueError("CORS_ORIGINS cannot contain '*' in production")
        if self.cors_origin_regex:
            raise ValueError("CORS_ORIGIN_REGEX cannot be set in production")
        if self.database_url.lower().startswith("sqlite"):
            raise ValueError("DATABASE_URL must point to a networked database in production")

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
