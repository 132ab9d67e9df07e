from datetime import UTC, datetime, timedelta


def now() -> datetime:
    return datetime.now(UTC)


def expires_in(seconds: int) -> datetime:
    return now() + timedelta(seconds=seconds)
