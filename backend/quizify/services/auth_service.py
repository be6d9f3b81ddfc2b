import json
import logging
from typing import Optional, Protocol

import firebase_admin
from firebase_admin import auth as firebase_auth
from firebase_admin import credentials

logger = logging.getLogger(__name__)


class IdentityProvider(Protocol):
    def verify(self, token: str) -> Optional[str]:
        """Return the verified owner id for ``token`` or None."""
        ...


def get_firebase_app(service_account_json: str = "", project_id: str = "", bucket: str = "") -> firebase_admin.App:
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    options = {}
    if project_id:
        options["projectId"] = project_id
    if bucket:
        options["storageBucket"] = bucket

    raw = (service_account_json or "").strip()
    if raw and raw != "undefined":
        credential = credentials.Certificate(json.loads(raw))
        account_project = credential.project_id
        if project_id and account_project and account_project != project_id:
            logger.warning(
                "Service account project %s does not match FIREBASE_PROJECT_ID %s; token checks may fail.",
                account_project,
                project_id,
            )
        return firebase_admin.initialize_app(credential, options or None)

    logger.warning("FIREBASE_ADMIN_SERVICE_ACCOUNT_JSON is not set. Using application default credentials.")
    return firebase_admin.initialize_app(options=options or None)


class FirebaseIdentityProvider:
    def __init__(self, app: firebase_admin.App):
        self.app = app

    def verify(self, token: str) -> Optional[str]:
        if not token:
            return None
        try:
            decoded = firebase_auth.verify_id_token(token, app=self.app)
        except (ValueError, firebase_auth.InvalidIdTokenError, firebase_auth.ExpiredIdTokenError,
                firebase_auth.RevokedIdTokenError, firebase_auth.CertificateFetchError) as exc:
            logger.warning("ID token verification failed: %s", exc)
            return None
        uid = decoded.get("uid") if isinstance(decoded, dict) else None
        return uid or None


class HeaderIdentityProvider:
    """Development provider: the bearer value is taken as the user id."""

    def __init__(self, max_length: int = 128):
        self.max_length = max_length

    def verify(self, token: str) -> Optional[str]:
        value = (token or "").strip()
        if not value or len(value) > self.max_length:
            return None
        return value


def parse_bearer_token(authorization: Optional[str]) -> str:
    value = (authorization or "").strip()
    if not value:
        return ""
    scheme, _, token = value.partition(" ")
    if scheme.lower() != "bearer":
        return ""
    return token.strip()
