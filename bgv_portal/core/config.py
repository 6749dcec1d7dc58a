import os
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

from bgv_portal.core.paths import resolve_repo_path


def _env_files() -> list[str]:
    base = resolve_repo_path(".env")
    env = os.getenv("BGV_ENVIRONMENT", "").strip().lower()
    files = [str(base)]
    if env and env != "development":
        files.append(str(resolve_repo_path(f".env.{env}")))
    else:
        files.append(str(resolve_repo_path(".env.local")))
    return files


class Settings(BaseSettings):
    app_name: str = "BGV Portal"
    environment: str = "development"

    database_url: str = "sqlite+aiosqlite:///./bgv_portal.db"

    auth_mode: Literal["dev", "strict"] = "dev"

    public_app_origin: str = ""
    public_app_base_path: str = ""

    address_link_ttl_hours: int = 24
    document_link_ttl_days: int = 30

    max_upload_bytes: int = 5 * 1024 * 1024

    storage_backend: Literal["s3", "local"] = "local"
    s3_bucket: str = ""
    s3_region: str = "ap-south-1"
    s3_prefix: str = "bgv"
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_url_expiry_seconds: int = 7 * 24 * 60 * 60
    local_storage_dir: str = "local_uploads/bgv"

    model_config = SettingsConfigDict(env_prefix="BGV_", env_file=_env_files(), extra="ignore")


settings = Settings()
