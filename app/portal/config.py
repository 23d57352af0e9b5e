import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Settings:
    secret_key: str
    env: str
    database_url: str

    jwt_secret: str
    jwt_algorithm: str
    access_token_expire_minutes: int
    cors_origin: str

    storage_backend: str
    upload_dir: str
    s3_endpoint: str
    s3_region: str
    s3_bucket: str
    s3_access_key_id: str
    s3_secret_access_key: str


def _getenv(name: str, default: str = "") -> str:
    return (os.environ.get(name) or default).strip()


def _getenv_int(name: str, default: int) -> int:
    raw = _getenv(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def load_settings() -> Settings:
    secret_key = _getenv("SECRET_KEY", "change-me")
    return Settings(
        secret_key=secret_key,
        env=_getenv("ENV", "development"),
        database_url=_getenv("DATABASE_URL", "sqlite:///portal.db"),
        # Tokens fall back to SECRET_KEY so a single secret is enough for small deploys.
        jwt_secret=_getenv("JWT_SECRET", secret_key),
        jwt_algorithm=_getenv("JWT_ALGORITHM", "HS256"),
        access_token_expire_minutes=_getenv_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60),
        cors_origin=_getenv("CORS_ORIGIN", "http://localhost:5173"),
        storage_backend=_getenv("STORAGE_BACKEND", "local"),
        upload_dir=_getenv("UPLOAD_DIR", ""),
        s3_endpoint=_getenv("S3_ENDPOINT", ""),
        s3_region=_getenv("S3_REGION", "nyc3"),
        s3_bucket=_getenv("S3_BUCKET", ""),
        s3_access_key_id=_getenv("S3_ACCESS_KEY_ID", ""),
        s3_secret_access_key=_getenv("S3_SECRET_ACCESS_KEY", ""),
    )


def load_config() -> dict:
    s = load_settings()
    return {
        "SECRET_KEY": s.secret_key,
        "ENV": s.env,
        "DATABASE_URL": s.database_url,
        "JWT_SECRET": s.jwt_secret,
        "JWT_ALGORITHM": s.jwt_algorithm,
        "ACCESS_TOKEN_EXPIRE_MINUTES": s.access_token_expire_minutes,
        "CORS_ORIGIN": s.cors_origin,
        "STORAGE_BACKEND": s.storage_backend,
        "UPLOAD_DIR": s.upload_dir,
        "S3_ENDPOINT": s.s3_endpoint,
        "S3_REGION": s.s3_region,
        "S3_BUCKET": s.s3_bucket,
        "S3_ACCESS_KEY_ID": s.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": s.s3_secret_access_key,
        # file upload limits (50MB)
        "MAX_CONTENT_LENGTH": 50 * 1024 * 1024,
    }
