import json
from typing import List, Union
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "StockHub Backend"
    env: str = "dev"
    default_actor: str = "system"

    # CENTRAL STORE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # OUTLET LEDGERS
    central_kitchen_database_url: str
    kuwait_city_database_url: str
    mall_360_database_url: str
    vibe_complex_database_url: str
    taiba_hospital_database_url: str

    # EXTERNAL INVENTORY SYNC
    inventory_sync_provider_default: str = "stub"
    zoho_client_id: str | None = None
    zoho_client_secret: str | None = None
    zoho_refresh_token: str | None = None
    zoho_organization_id: str | None = None
    zoho_accounts_url: str = "https://accounts.zoho.com"
    zoho_api_base_url: str = "https://www.zohoapis.com"
    zoho_timeout_seconds: float = Field(default=30, gt=0, le=300)
    zoho_default_customer_id: str | None = None
    zoho_auto_push_transfer_orders: bool = True

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

    @field_validator(
        "zoho_client_id",
        "zoho_client_secret",
        "zoho_refresh_token",
        "zoho_organization_id",
        "zoho_default_customer_id",
        mode="before",
    )
    @classmethod
    def normalize_optional_strings(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("inventory_sync_provider_default")
    @classmethod
    def normalize_provider_name(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def validate_sync_credentials(self) -> "Settings":
        if self.inventory_sync_provider_default != "zoho":
            return self
        missing = [
            name
            for name in (
                "zoho_client_id",
                "zoho_client_secret",
                "zoho_refresh_token",
                "zoho_organization_id",
            )
            if not getattr(self, name)
        ]
        if missing:
            raise ValueError(
                "Zoho sync provider requires: " + ", ".join(name.upper() for name in missing)
            )
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
            raise ValueError("DATABASE_URL cannot point at SQLite in production")

        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
