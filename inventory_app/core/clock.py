from datetime import datetime, timezone

# Fixed-width UTC timestamps sort lexicographically, so they are safe in sort keys
TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    return utc_now().strftime(TIMESTAMP_FORMAT)
