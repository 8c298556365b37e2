"""
Firebase Admin SDK initialization and token verification.
Initialized once at application startup; resolves request principals from ID tokens.
"""
import json
import os
import logging
from typing import Optional
import firebase_admin
from firebase_admin import credentials, auth, exceptions
from app.config import settings

logger = logging.getLogger(__name__)


# Global Firebase app instance
_firebase_app: Optional[firebase_admin.App] = None


def _load_credentials(value: Optional[str]) -> credentials.Base:
    """
    Build Firebase credentials from FIREBASE_CREDENTIALS_JSON.

    The value may be a file path (absolute, or relative to backend/) or an
    inline JSON document. Without it, application default credentials are used.
    """
    if not value:
        return credentials.ApplicationDefault()

    backend_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
    candidates = [value] if os.path.isabs(value) else [value, os.path.join(backend_dir, value)]

    for path in candidates:
        if os.path.exists(path):
            logger.info(f"Loaded Firebase credentials from file: {path}")
            return credentials.Certificate(path)

    try:
        cred_dict = json.loads(value)
    except json.JSONDecodeError:
        raise ValueError(
            "FIREBASE_CREDENTIALS_JSON must be a valid file path or JSON string. "
            f"Tried: {', '.join(candidates)}"
        )
    logger.info("Loaded Firebase credentials from JSON string")
    return credentials.Certificate(cred_dict)


def initialize_firebase() -> None:
    """
    Initialize Firebase Admin SDK.

    Raises:
        ValueError: FIREBASE_PROJECT_ID missing or credentials unreadable
    """
    global _firebase_app

    if _firebase_app is not None:
        return

    if not settings.firebase_project_id:
        raise ValueError("FIREBASE_PROJECT_ID must be set")

    _firebase_app = firebase_admin.initialize_app(
        _load_credentials(settings.firebase_credentials_json),
        {"projectId": settings.firebase_project_id}
    )


def verify_firebase_token(token: str) -> dict:
    """
    Verify Firebase ID token and return decoded token claims.

    Args:
        token: Firebase JWT ID token string

    Returns:
        Decoded token claims dict with uid, email, etc.

    Raises:
        ValueError: If authentication is not configured, or the token is
            invalid, expired, or revoked
    """
    if _firebase_app is None:
        raise ValueError("Authentication is not configured")

    try:
        return auth.verify_id_token(token)
    except ValueError:
        raise
    except exceptions.FirebaseError as e:
        raise ValueError(f"Token verification failed: {str(e)}")
