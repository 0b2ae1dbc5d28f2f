"""DuckDB query backend for partitioned address data."""
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence

import duckdb
import pandas as pd

from geosdk.core.config import DUCKDB_PATH
from geosdk.core.errors import BackendUnavailable
from geosdk.core.query import AddressRequest, merge_rows, render_request
from geosdk.core.security import quote_identifier, quote_literal, sanitize_columns
from geosdk.utils.logging import log_structured

REMOTE_PREFIXES = ("http://", "https://", "s3://", "gs://", "hf://")


def is_remote(source: str) -> bool:
    return source.lower().startswith(REMOTE_PREFIXES)


@dataclass
class FetchResult:
    """Rows of a request and which of its sources actually answered."""
    rows: List[Dict[str, Any]]
    sources: List[str]
    failed_sources: List[str] = field(default_factory=list)


@dataclass
class Deadline:
    """Handle for a running deadline; ``cursor`` is interrupted when it expires."""
    cursor: Any
    seconds: float
    expired: bool = False


class DuckDBStore:
    """DuckDB-backed reader for remote Parquet partitions.

    One database per store. Every call runs on its own cursor, which lets
    independent threads query concurrently without sharing a connection.
    """

    def __init__(self, db_path: Optional[str] = None):
        """
        Initialize DuckDB connection.

        Args:
            db_path: Path to a DuckDB database file, or ":memory:"
        """
        self.db_path = db_path or DUCKDB_PATH
        self.conn = duckdb.connect(str(self.db_path))
        self._remote_ready = False
        self._closed = False

    # ------------------------------------------------------------------
    # Extensions
    # ------------------------------------------------------------------

    def enable_remote_access(self, cursor=None):
        """Load httpfs so read_parquet can issue HTTP range requests.

        Extensions are database-wide, so loading them on any cursor of the
        store (e.g. an init deadline cursor) makes them available to all.
        Raises duckdb.Error if the extension cannot be installed or loaded.
        """
        if self._remote_ready:
            return
        target = cursor if cursor is not None else self.conn
        target.execute("INSTALL httpfs")
        target.execute("LOAD httpfs")
        self._remote_ready = True
        log_structured("debug", "httpfs extension loaded")

    def probe_full_text_search(self, cursor=None) -> bool:
        """
        Check whether the fts extension can be installed and loaded.

        Args:
            cursor: Cursor to run on; the store connection when omitted

        Returns:
            True if BM25 search is usable on this database
        """
        target = cursor if cursor is not None else self.conn
        try:
            target.execute("INSTALL fts")
            target.execute("LOAD fts")
        except duckdb.Error as e:
            log_structured("warning", "fts extension unavailable", error=str(e))
            return False
        return True

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @contextmanager
    def cursor(self) -> Iterator[duckdb.DuckDBPyConnection]:
        cursor = self.conn.cursor()
        try:
            yield cursor
        finally:
            cursor.close()

    @staticmethod
    def _rows(cursor) -> List[Dict[str, Any]]:
        columns = [d[0] for d in cursor.description]
        return [dict(zip(columns, row)) for row in cursor.fetchall()]

    def execute(self, sql: str, params: Optional[Sequence[Any]] = None, cursor=None) -> List[Dict[str, Any]]:
        """
        Run a statement and return its rows as dicts.

        Args:
            sql: SQL text with ? placeholders
            params: Bound values
            cursor: Cursor to run on; a fresh one is used when omitted

        Returns:
            List of rows keyed by column name
        """
        if cursor is not None:
            cursor.execute(sql, list(params or []))
            return self._rows(cursor)
        with self.cursor() as cur:
            cur.execute(sql, list(params or []))
            return self._rows(cur)

    def read_table(self, source: str, columns: Optional[Sequence[str]] = None, cursor=None) -> pd.DataFrame:
        """
        Read a whole Parquet file (indices, boundary layers) into a DataFrame.

        Args:
            source: File path or URL
            columns: Optional column subset (plain identifiers)
            cursor: Cursor to run on; a fresh one is used when omitted
        """
        select = ", ".join(quote_identifier(c) for c in columns) if columns else "*"
        sql = f"SELECT {select} FROM read_parquet({quote_literal(source)})"
        if cursor is not None:
            return cursor.execute(sql).df()
        with self.cursor() as cur:
            return cur.execute(sql).df()

    def fetch(self, request: AddressRequest) -> FetchResult:
        """
        Execute a request over all of its sources.

        The request is first issued once over every source. If that fails,
        each source is queried on its own, failing sources are skipped and
        the surviving rows are merged with the request's ordering and limit.

        Raises:
            BackendUnavailable: No source returned data
        """
        sources = list(request.sources)
        try:
            sql, params = render_request(request)
            return FetchResult(rows=self.execute(sql, params), sources=sources)
        except duckdb.Error as e:
            if len(sources) == 1:
                raise BackendUnavailable(sources, e) from e
            log_structured(
                "warning",
                "Combined partition request failed, retrying per partition",
                partitions=len(sources),
                error=str(e)
            )

        batches, answered, failed = [], [], []
        last_error: Optional[BaseException] = None
        for source in sources:
            try:
                sql, params = render_request(request.for_source(source))
                batches.append(self.execute(sql, params))
                answered.append(source)
            except duckdb.Error as e:
                last_error = e
                failed.append(source)
                log_structured("warning", "Skipping unreadable partition", source=source, error=str(e))

        if not answered:
            raise BackendUnavailable(sources, last_error)
        return FetchResult(
            rows=merge_rows(batches, request.order_by, request.limit),
            sources=answered,
            failed_sources=failed
        )

    # ------------------------------------------------------------------
    # Ephemeral full-text tables
    # ------------------------------------------------------------------

    def materialize(self, cursor, table: str, request: AddressRequest):
        """Create ``table`` from the rows a request selects."""
        sql, params = render_request(request)
        cursor.execute(f"CREATE TABLE {quote_identifier(table)} AS {sql}", params)

    def create_fts_index(self, cursor, table: str, field_name: str, stemmer: str):
        sanitize_columns([field_name])
        cursor.execute(
            f"PRAGMA create_fts_index({quote_literal(table)}, 'addr_id', {quote_literal(field_name)}, "
            f"stemmer = {quote_literal(stemmer)}, stopwords = 'none', overwrite = 1)"
        )

    def bm25_search(
        self,
        cursor,
        table: str,
        query: str,
        field_name: str,
        columns: Sequence[str],
        limit: int
    ) -> List[Dict[str, Any]]:
        """
        Rank rows of an indexed table by BM25 score, best first.

        Rows without any matching term are excluded.
        """
        quote_identifier(table)
        select = ", ".join(quote_identifier(c) for c in sanitize_columns(columns))
        sql = (
            f"SELECT * FROM ("
            f"SELECT {select}, fts_main_{table}.match_bm25(addr_id, ?, fields := {quote_literal(field_name)}) "
            f"AS similarity FROM {quote_identifier(table)}"
            f") WHERE similarity IS NOT NULL ORDER BY similarity DESC, addr_id ASC LIMIT ?"
        )
        return self.execute(sql, [query, int(limit)], cursor=cursor)

    def drop_table(self, cursor, table: str, fts: bool = False):
        """Drop an ephemeral table and, if requested, its full-text index."""
        if fts:
            try:
                cursor.execute(f"PRAGMA drop_fts_index({quote_literal(table)})")
            except duckdb.Error as e:
                # Index creation itself may have failed
                log_structured("debug", "No full-text index to drop", table=table, error=str(e))
        cursor.execute(f"DROP TABLE IF EXISTS {quote_identifier(table)}")

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @contextmanager
    def deadline(self, seconds: Optional[float]) -> Iterator[Deadline]:
        """
        Run a block on a dedicated cursor that is interrupted after ``seconds``.

        A query in flight when the deadline expires fails with a duckdb
        error; callers check ``expired`` to tell that apart from other failures.
        """
        handle = Deadline(cursor=self.conn.cursor(), seconds=seconds or 0)
        timer = None
        if seconds and seconds > 0:
            def expire():
                handle.expired = True
                handle.cursor.interrupt()

            timer = threading.Timer(seconds, expire)
            timer.daemon = True
            timer.start()
        try:
            yield handle
        finally:
            if timer is not None:
                timer.cancel()
            handle.cursor.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self):
        """Close database connection."""
        if not self._closed:
            self.conn.close()
            self._closed = True
