from __future__ import annotations

import os

from pydantic import BaseModel


def _flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    STORE_BACKEND: str = os.getenv("STORE_BACKEND", "memory")
    MONGO_URL: str = os.getenv("MONGO_URL", "mongodb://mongo:27017")
    MONGO_DB: str = os.getenv("MONGO_DB", "doc_intake")

    BLOB_ROOT: str = os.getenv("BLOB_ROOT", "/data/pages")
    MAX_UPLOAD_MB: int = int(os.getenv("MAX_UPLOAD_MB", "25"))
    ALLOWED_FORMATS: set[str] = {"jpeg", "pdf"}

    MESSAGE_PROVIDER_URL: str = os.getenv("MESSAGE_PROVIDER_URL", "")
    MESSAGE_PROVIDER_KEY: str = os.getenv("MESSAGE_PROVIDER_KEY", "")
    MESSAGE_FROM_NAME: str = os.getenv("MESSAGE_FROM_NAME", "Document Intake")
    MESSAGE_TIMEOUT_S: float = float(os.getenv("MESSAGE_TIMEOUT_S", "10"))

    # intake policy: failed system checks go straight back to the applicant
    AUTO_REJECT_SYSTEM_FAILURES: bool = _flag("AUTO_REJECT_SYSTEM_FAILURES")
    WRITE_RETRIES: int = int(os.getenv("WRITE_RETRIES", "5"))

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    CORS_ALLOW_ORIGINS: list[str] = os.getenv("CORS_ALLOW_ORIGINS", "http://localhost:8080").split(
        ","
    )


settings = Settings()
