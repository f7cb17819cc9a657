# bookstore_requests/core/config.py
from typing import List, Literal, Union
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # === MongoDB ===
    mongo_url: str = "mongodb://localhost:27017"
    db_name: str = "request_management"
    mongo_tls: bool = False

    # === Storage ===
    store_backend: Literal["mongo", "memory"] = "mongo"
    store_timeout_seconds: float = 10.0
    audit_log_dir: str = "logs"

    # === Validation ===
    isbn_policy: Literal["strict", "permissive"] = "strict"

    # === Security / JWT (tokens issued to the chat bridge) ===
    secret_key: str = "change-me"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 30

    # === Intake ===
    intake_rate_limit: str = "30/minute"

    # === CORS ===
    # Accepts JSON (["http://a","https://b"]) or a comma separated list ("http://a,https://b")
    cors_origins: Union[str, List[str]] = ""

    # === Pagination ===
    max_page_size: int = 50

    log_level: str = "INFO"

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _parse_cors_origins(cls, v):
        if v is None:
            return []
        if isinstance(v, list):
            return v
        if isinstance(v, str):
            s = v.strip()
            if not s:
                return []
            if s.startswith("["):
                try:
                    data = json.loads(s)
                    if isinstance(data, list):
                        return [str(x).strip() for x in data if str(x).strip()]
                except ValueError:
                    # looks like JSON but isn't; fall back to comma split
                    pass
            return [item.strip() for item in s.split(",") if item.strip()]
        return [str(v).strip()] if str(v).strip() else []


# Global instance used by main.py and the API dependencies
settings = Settings()
