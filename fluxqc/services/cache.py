"""Redis caching helpers for parsed version tables."""

import io

import redis
import pandas as pd

from fluxqc.config import settings

_client = redis.Redis.from_url(settings.REDIS_URL, decode_responses=True)


def _key(version_id: int) -> str:
    return f"parsed_table:{version_id}"


def cache_table(version_id: int, df: pd.DataFrame) -> None:
    """Store the raw string table; versions are immutable so only the TTL expires it."""
    _client.setex(_key(version_id), settings.TABLE_CACHE_TTL, df.to_json(orient="split", index=False))


def get_cached_table(version_id: int) -> pd.DataFrame | None:
    """Return cached table or None if missing / expired."""
    raw = _client.get(_key(version_id))
    if raw is None:
        return None
    return pd.read_json(
        io.StringIO(raw),
        orient="split",
        dtype=False,
        convert_axes=False,
        convert_dates=False,
    )
