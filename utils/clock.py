from datetime import datetime, timezone

from flask import current_app


class Clock:
    """Source of "now" for TTLs and reconciliation. Naive UTC, like the DB columns."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc).replace(tzinfo=None)


def get_clock() -> Clock:
    return current_app.extensions["clock"]
