"""
Logging setup with PHI/PII redaction.

Loggers are plain `logging.getLogger(__name__)`; this module only installs
a root handler whose formatter masks sensitive values passed via `extra=`.
"""
import logging

# Fields that should never reach a log line in clear text
SENSITIVE_FIELDS = {
    "password",
    "password_hash",
    "token",
    "access_token",
    "api_key",
    "secret",
    "phone",
    "email",
    "address",
    "notes",
    "note",
    "allergies",
}

_STANDARD_ATTRS = set(vars(logging.makeLogRecord({})).keys()) | {"message", "asctime"}


class RedactingFormatter(logging.Formatter):
    """Formatter that appends `extra=` fields, masking sensitive ones."""

    def format(self, record):
        base = super().format(record)
        extras = []
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            if key.lower() in SENSITIVE_FIELDS:
                value = "[REDACTED]"
            extras.append(f"{key}={value}")
        if extras:
            return f"{base} | {' '.join(extras)}"
        return base


def redact(values):
    """Return a copy of a dict with sensitive keys masked."""
    if not isinstance(values, dict):
        return values
    return {
        key: ("[REDACTED]" if key.lower() in SENSITIVE_FIELDS else value)
        for key, value in values.items()
    }


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    if any(isinstance(h.formatter, RedactingFormatter) for h in root.handlers):
        root.setLevel(level.upper())
        return

    handler = logging.StreamHandler()
    handler.setFormatter(
        RedactingFormatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
    )
    root.addHandler(handler)
    root.setLevel(level.upper())
