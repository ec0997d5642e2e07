from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
