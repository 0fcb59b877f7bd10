"""
firebase_admin application bootstrap shared by the Firestore, Storage and Auth clients.
"""

from __future__ import annotations

import firebase_admin
from firebase_admin import credentials

from backend.config import Settings

_app: firebase_admin.App | None = None


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    """Initialize the default firebase_admin app once and return it."""
    global _app
    if _app:
        return _app

    if settings.firebase_credentials_path:
        credential = credentials.Certificate(settings.firebase_credentials_path)
    else:
        credential = credentials.ApplicationDefault()

    options = {}
    if settings.firebase_project_id:
        options["projectId"] = settings.firebase_project_id
    if settings.firebase_storage_bucket:
        options["storageBucket"] = settings.firebase_storage_bucket
    _app = firebase_admin.initialize_app(credential, options)
    return _app


def firebase_configured(settings: Settings) -> bool:
    return bool(settings.firebase_project_id or settings.firebase_credentials_path)
