import os
from dataclasses import dataclass
from typing import List
from urllib.parse import quote_plus

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    mysql_host: str
    mysql_port: int
    mysql_user: str
    mysql_password: str
    mysql_database: str
    database_url: str
    data_dir: str
    upload_dir: str
    max_upload_bytes: int
    min_question_count: int
    max_question_count: int
    llm_provider: str
    llm_base_url: str
    llm_model: str
    llm_timeout: float
    llm_max_tokens: int
    deepseek_api_key: str
    quiz_generation_timeout: float
    auth_provider: str
    firebase_project_id: str
    firebase_service_account_json: str
    storage_provider: str
    firebase_storage_bucket: str
    cors_origins: List[str]
    log_level: str
    auto_create_tables: bool


def _build_database_url(
    mysql_host: str,
    mysql_port: int,
    mysql_user: str,
    mysql_password: str,
    mysql_database: str,
) -> str:
    password = quote_plus(mysql_password)
    return (
        "mysql+pymysql://"
        f"{mysql_user}:{password}@{mysql_host}:{mysql_port}/{mysql_database}"
        "?charset=utf8mb4"
    )


def _load_cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "")
    if raw:
        return [item.strip() for item in raw.split(",") if item.strip()]
    return ["http://localhost:3000", "http://127.0.0.1:3000"]


def load_settings() -> Settings:
    mysql_host = os.getenv("MYSQL_HOST", "localhost")
    mysql_port = int(os.getenv("MYSQL_PORT", "3306"))
    mysql_user = os.getenv("MYSQL_USER", "app_user")
    mysql_password = os.getenv("MYSQL_PASSWORD", "app_pass")
    mysql_database = os.getenv("MYSQL_DATABASE", "app_db")
    data_dir = os.getenv("DATA_DIR", "data")

    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        database_url = _build_database_url(
            mysql_host=mysql_host,
            mysql_port=mysql_port,
            mysql_user=mysql_user,
            mysql_password=mysql_password,
            mysql_database=mysql_database,
        )

    upload_dir = os.path.join(data_dir, "quizzes_pdfs")
    max_upload_bytes = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    min_question_count = int(os.getenv("MIN_QUESTION_COUNT", "1"))
    max_question_count = int(os.getenv("MAX_QUESTION_COUNT", "50"))
    llm_provider = os.getenv("LLM_PROVIDER", "deepseek")
    llm_base_url = os.getenv("LLM_BASE_URL", "https://api.deepseek.com")
    llm_model = os.getenv("LLM_MODEL", "deepseek-chat")
    llm_timeout = float(os.getenv("LLM_TIMEOUT", "30"))
    llm_max_tokens = int(os.getenv("LLM_MAX_TOKENS", "4096"))
    deepseek_api_key = os.getenv("DEEPSEEK_API_KEY", "")
    quiz_generation_timeout = float(os.getenv("QUIZ_GENERATION_TIMEOUT", "120"))
    auth_provider = os.getenv("AUTH_PROVIDER", "firebase")
    firebase_project_id = os.getenv("FIREBASE_PROJECT_ID", "")
    firebase_service_account_json = os.getenv("FIREBASE_ADMIN_SERVICE_ACCOUNT_JSON", "")
    storage_provider = os.getenv("STORAGE_PROVIDER", "local")
    firebase_storage_bucket = os.getenv("FIREBASE_STORAGE_BUCKET", "")
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"
    auto_create_tables = os.getenv("AUTO_CREATE_TABLES", "0").strip().lower() in _TRUTHY

    return Settings(
        mysql_host=mysql_host,
        mysql_port=mysql_port,
        mysql_user=mysql_user,
        mysql_password=mysql_password,
        mysql_database=mysql_database,
        database_url=database_url,
        data_dir=data_dir,
        upload_dir=upload_dir,
        max_upload_bytes=max_upload_bytes,
        min_question_count=min_question_count,
        max_question_count=max_question_count,
        llm_provider=llm_provider,
        llm_base_url=llm_base_url,
        llm_model=llm_model,
        llm_timeout=llm_timeout,
        llm_max_tokens=llm_max_tokens,
        deepseek_api_key=deepseek_api_key,
        quiz_generation_timeout=quiz_generation_timeout,
        auth_provider=auth_provider,
        firebase_project_id=firebase_project_id,
        firebase_service_account_json=firebase_service_account_json,
        storage_provider=storage_provider,
        firebase_storage_bucket=firebase_storage_bucket,
        cors_origins=_load_cors_origins(),
        log_level=log_level,
        auto_create_tables=auto_create_tables,
    )
