"""
Tabular parse collaborator.

Turns a dataset version file (CSV or Excel, local or S3) into a table of raw
strings plus missing-value statistics. Parsing runs on a small bounded thread
pool so a pathological file cannot hold a request thread forever.
"""

import io
import logging
import os
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

import numpy as np
import pandas as pd
import redis

from fluxqc.config import settings
from fluxqc.services.cache import cache_table, get_cached_table
from fluxqc.services.errors import DataError, EmptyDataError
from fluxqc.services.storage import storage_service

logger = logging.getLogger(__name__)

EXCEL_EXTENSIONS = (".xlsx", ".xls")

_executor = ThreadPoolExecutor(max_workers=settings.PARSE_WORKERS, thread_name_prefix="table-parse")


@dataclass
class ParsedTable:
    columns: List[str]
    rows: pd.DataFrame                      # raw strings; missing tokens are NaN
    total_rows: int
    missing_value_stats: Dict[str, int] = field(default_factory=dict)
    column_missing_status: Dict[str, bool] = field(default_factory=dict)

    def numeric(self, column: str) -> pd.Series:
        """
        Column coerced to float. Blanks, text, missing tokens and non-finite
        spellings ("inf", "-Infinity", ...) all become NaN.
        """
        values = pd.to_numeric(self.rows[column], errors="coerce").astype(float)
        return values.replace([np.inf, -np.inf], np.nan)

    def time_points(self, time_column: Optional[str]) -> Optional[List[Optional[str]]]:
        if not time_column or time_column not in self.rows.columns:
            return None
        return [None if pd.isna(v) else str(v) for v in self.rows[time_column]]

    def missing_columns(self, names: Iterable[str]) -> List[str]:
        present = set(self.columns)
        return [name for name in names if name not in present]


def build_table(df: pd.DataFrame) -> ParsedTable:
    df.columns = [str(c).strip() for c in df.columns]
    blank = df.isna() | df.apply(lambda col: col.astype(str).str.strip() == "")
    missing = {col: int(blank[col].sum()) for col in df.columns}
    return ParsedTable(
        columns=list(df.columns),
        rows=df.reset_index(drop=True),
        total_rows=len(df),
        missing_value_stats=missing,
        column_missing_status={col: count > 0 for col, count in missing.items()},
    )


def _extension(file_path: str) -> str:
    return os.path.splitext(file_path.split("?", 1)[0])[1].lower()


def _parse(file_path: str, missing_value_types: List[str]) -> pd.DataFrame:
    raw = storage_service.read_bytes(file_path)
    if not raw.strip():
        raise EmptyDataError(f"File is empty: {file_path}")

    options = dict(dtype=str, keep_default_na=False, na_values=missing_value_types)
    try:
        if _extension(file_path) in EXCEL_EXTENSIONS:
            df = pd.read_excel(io.BytesIO(raw), sheet_name=0, **options)
        else:
            df = pd.read_csv(io.BytesIO(raw), skipinitialspace=True, **options)
    except pd.errors.EmptyDataError:
        raise EmptyDataError(f"File is empty: {file_path}")
    except (pd.errors.ParserError, UnicodeDecodeError, ValueError) as e:
        raise DataError(f"Could not parse {file_path}: {e}")

    if df.empty:
        raise EmptyDataError(f"File has a header but no data rows: {file_path}")
    return df


def read_table(file_path: str, missing_value_types: Optional[List[str]] = None,
               version_id: Optional[int] = None) -> ParsedTable:
    """
    Parse a version file. When ``version_id`` is given and table caching is on,
    the raw table is served from / stored into Redis.
    """
    use_cache = version_id is not None and settings.CACHE_PARSED_TABLES
    if use_cache:
        try:
            cached = get_cached_table(version_id)
        except redis.RedisError as e:
            logger.warning("Table cache read failed for version %s: %s", version_id, e)
            cached = None
        if cached is not None:
            return build_table(cached)

    future = _executor.submit(_parse, file_path, list(missing_value_types or []))
    try:
        df = future.result(timeout=settings.PARSE_TIMEOUT_SECONDS)
    except FuturesTimeout:
        if not future.cancel():
            # a started parse cannot be interrupted; it keeps its worker until it returns
            logger.warning("Parse of %s still running on a worker thread after %ss timeout",
                           file_path, settings.PARSE_TIMEOUT_SECONDS)
        raise DataError(f"Parsing {file_path} timed out after {settings.PARSE_TIMEOUT_SECONDS}s")

    if use_cache:
        try:
            cache_table(version_id, df)
        except redis.RedisError as e:
            logger.warning("Table cache write failed for version %s: %s", version_id, e)

    return build_table(df)
