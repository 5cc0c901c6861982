from __future__ import annotations

import json
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic_settings import NoDecode

from caseledger.models.enums import DateOrder, StoreBackend


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_name: str = "CaseLedger"
    environment: str = Field(default="development")  # development | production

    # Backing store for the case documents.
    store_backend: StoreBackend = Field(default=StoreBackend.SQL)
    cases_collection: str = Field(default="cases")

    database_url: str = Field(default="sqlite:///./caseledger.db")

    @field_validator("database_url", mode="before")
    @classmethod
    def _normalize_postgres_url(cls, v: str | None) -> str | None:
        # Hosted Postgres hands out postgresql://... which makes SQLAlchemy pick psycopg2.
        if v and v.startswith("postgresql://") and "+" not in v.split("?")[0]:
            return "postgresql+psycopg://" + v[len("postgresql://") :]
        return v

    # Firebase Realtime Database (store_backend=rtdb)
    rtdb_url: str | None = Field(default=None)  # e.g. https://<project>-default-rtdb.firebaseio.com
    rtdb_auth_token: str | None = Field(default=None)
    rtdb_timeout_seconds: float = Field(default=15.0)

    # Calendar used for bucketing and for dates stored without an offset.
    timezone: str = Field(default="UTC")
    # How "a-b-c" / "a/b/c" dates that are not ISO are read.
    date_order: DateOrder = Field(default=DateOrder.DMY)

    # Accepts a single URL, comma-separated URLs or a JSON list.
    # NoDecode prevents pydantic-settings from attempting JSON parsing before validators run.
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["http://localhost:3000"],
        validation_alias="CORS_ORIGINS",
    )

    @field_validator("rtdb_url", mode="after")
    @classmethod
    def _strip_rtdb_url(cls, v: str | None) -> str | None:
        if v is None:
            return v
        return v.strip().rstrip("/") or None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):  # noqa: ANN001
        """
        Accept: string, comma-separated, or JSON list.
        """
        if v is None:
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    parsed = json.loads(s)
                except ValueError:
                    parsed = None
                if isinstance(parsed, list):
                    return [str(x).strip() for x in parsed if str(x).strip()]
            return [p.strip() for p in s.split(",") if p.strip()]
        if isinstance(v, (list, tuple, set)):
            return [str(x).strip() for x in v if str(x).strip()]
        return v

    @field_validator("cors_origins", mode="after")
    @classmethod
    def _ensure_cors_origins(cls, v: list[str] | None) -> list[str]:
        result = [x for x in v if x] if isinstance(v, list) else []
        if not result:
            result = ["http://localhost:3000"]
        return result


settings = Settings()
