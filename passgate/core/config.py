# passgate/core/config.py
import os
from pydantic import BaseModel, Field

def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}

def _default_database_url() -> str:
    data_dir = os.path.abspath(os.getenv("DATA_DIR", "./data"))
    os.makedirs(data_dir, exist_ok=True)
    return os.getenv("DATABASE_URL", f"sqlite:///{os.path.join(data_dir, 'passgate.db')}")

class Settings(BaseModel):
    # banco / tokens de sessão
    DATABASE_URL: str = Field(default_factory=_default_database_url)
    SECRET_KEY: str = Field(default_factory=lambda: os.getenv("SECRET_KEY", "CHANGE_ME_SUPER_SECRET"))
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default_factory=lambda: int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30")))

    # chave simétrica do QR (derivada via scrypt)
    QR_SECRET_KEY: str = Field(default_factory=lambda: os.getenv("QR_SECRET_KEY", "CHANGE_ME_QR_SECRET"))
    QR_KEY_SALT: str = Field(default_factory=lambda: os.getenv("QR_KEY_SALT", "passgate-qr"))

    # passcodes
    PASSCODE_LENGTH: int = Field(default_factory=lambda: int(os.getenv("PASSCODE_LENGTH", "12")))
    WINDOW_MINUTES: int = Field(default_factory=lambda: int(os.getenv("WINDOW_MINUTES", "5")))
    ISSUE_MAX_ATTEMPTS: int = Field(default_factory=lambda: int(os.getenv("ISSUE_MAX_ATTEMPTS", "8")))

    # limites na borda
    MAX_CODE_LENGTH: int = Field(default_factory=lambda: int(os.getenv("MAX_CODE_LENGTH", "64")))
    MAX_QR_TOKEN_LENGTH: int = Field(default_factory=lambda: int(os.getenv("MAX_QR_TOKEN_LENGTH", "2048")))
    MAX_BODY_BYTES: int = Field(default_factory=lambda: int(os.getenv("MAX_BODY_BYTES", "8192")))

    LOG_LEVEL: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(default_factory=lambda: _env_bool("RUN_MIGRATIONS_ON_STARTUP", "true"))

settings = Settings()
