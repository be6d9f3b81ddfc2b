import logging

from quizify.core.config import Settings
from quizify.services.auth_service import (
    FirebaseIdentityProvider,
    HeaderIdentityProvider,
    IdentityProvider,
    get_firebase_app,
)
from quizify.services.llm.mock import MockLLM
from quizify.services.llm.real import RealLLMClient, normalize_base_url
from quizify.services.storage_service import BlobStore, FirebaseBlobStore, LocalBlobStore

logger = logging.getLogger(__name__)


def build_llm_client(settings: Settings):
    provider = (settings.llm_provider or "").strip().lower() or "mock"
    api_key = (settings.deepseek_api_key or "").strip()
    base_url = normalize_base_url(settings.llm_base_url)
    if provider in {"deepseek", "openai", "openai-compatible", "auto", "real"}:
        if not api_key:
            logger.warning(
                "LLM_PROVIDER=%s but DEEPSEEK_API_KEY is missing. Falling back to MockLLM.",
                provider,
            )
            return MockLLM()
        if not base_url:
            logger.warning(
                "LLM_PROVIDER=%s but LLM_BASE_URL is missing. Falling back to MockLLM.",
                provider,
            )
            return MockLLM()
        return RealLLMClient(
            base_url=base_url,
            api_key=api_key,
            model=settings.llm_model,
            timeout=settings.llm_timeout,
            max_tokens=settings.llm_max_tokens,
        )

    if provider in {"mock", "offline"}:
        return MockLLM()

    logger.warning("Unknown LLM_PROVIDER=%s. Falling back to MockLLM.", provider)
    return MockLLM()


def build_identity_provider(settings: Settings) -> IdentityProvider:
    provider = (settings.auth_provider or "").strip().lower() or "firebase"
    if provider == "header":
        logger.warning("AUTH_PROVIDER=header trusts bearer values as user ids. Do not use in production.")
        return HeaderIdentityProvider()
    if provider != "firebase":
        logger.warning("Unknown AUTH_PROVIDER=%s. Using Firebase token verification.", provider)
    app = get_firebase_app(
        service_account_json=settings.firebase_service_account_json,
        project_id=settings.firebase_project_id,
        bucket=settings.firebase_storage_bucket,
    )
    return FirebaseIdentityProvider(app)


def build_blob_store(settings: Settings) -> BlobStore:
    provider = (settings.storage_provider or "").strip().lower() or "local"
    if provider == "firebase":
        if not settings.firebase_storage_bucket:
            logger.warning(
                "STORAGE_PROVIDER=firebase but FIREBASE_STORAGE_BUCKET is missing. Using local storage.",
            )
            return LocalBlobStore(settings.upload_dir)
        app = get_firebase_app(
            service_account_json=settings.firebase_service_account_json,
            project_id=settings.firebase_project_id,
            bucket=settings.firebase_storage_bucket,
        )
        return FirebaseBlobStore(app, settings.firebase_storage_bucket)

    if provider != "local":
        logger.warning("Unknown STORAGE_PROVIDER=%s. Using local storage.", provider)
    return LocalBlobStore(settings.upload_dir)
