import uuid
from datetime import datetime, timezone

import shortuuid

_REFERENCE_ALPHABET = "0123456789ABCDEFGHJKLMNPQRSTUVWXYZ"


def generate_id() -> str:
    return str(uuid.uuid4())


def generate_short_token(length: int = 6) -> str:
    return shortuuid.ShortUUID(alphabet=_REFERENCE_ALPHABET).random(length=length)


def generate_reference_number(prefix: str, *, now: datetime | None = None) -> str:
    stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%d")
    return f"{prefix}-{stamp}-{generate_short_token()}"
