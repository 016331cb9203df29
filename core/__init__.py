from .database import get_db_context, SessionLocal, Base, init_engine, make_session_factory
from .config import Settings, load_settings
from .errors import (
    ClinicError,
    AuthorizationDenied,
    AuthenticationRequired,
    ValidationFailed,
    NotFound,
    UpstreamFailure,
    StorageUploadError,
    SignedUrlError,
    OfflineQueued,
)

# session_manager and sidebar import streamlit; import them directly from pages

__all__ = [
    "get_db_context",
    "SessionLocal",
    "Base",
    "init_engine",
    "make_session_factory",
    "Settings",
    "load_settings",
    "ClinicError",
    "AuthorizationDenied",
    "AuthenticationRequired",
    "ValidationFailed",
    "NotFound",
    "UpstreamFailure",
    "StorageUploadError",
    "SignedUrlError",
    "OfflineQueued",
]
