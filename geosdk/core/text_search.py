"""Free-text address search over a set of partitions.

Two strategies share one contract. ``RankedSearch`` builds a throwaway BM25
index with the DuckDB fts extension; ``FallbackSearch`` gates rows on query
terms with substring tests and ranks them by token-set overlap. Which one
runs is decided once per SDK instance by probing the extension, and a ranked
query that fails at run time is answered by the fallback instead.
"""
import uuid
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple

import duckdb

from geosdk.core.columns import SEARCH_COLUMNS
from geosdk.core.duckdb_store import DuckDBStore
from geosdk.core.errors import BackendUnavailable, CapabilityUnavailable
from geosdk.core.normalization import fold_case, is_arabic, search_terms, tokenize
from geosdk.core.query import (
    AddressRequest,
    ComputedColumn,
    Contains,
    IsNotNull,
    OrderKey,
    all_of,
    any_of,
)
from geosdk.utils.logging import log_error, log_structured

RANKED_MODE = "fts-bm25"
FALLBACK_MODE = "jaccard"

# Address tokens are runs of anything but whitespace and (Arabic) commas
TOKEN_PATTERN = r"[^\s,،]+"


def address_field(query: str) -> str:
    """Arabic queries search the Arabic address, everything else the English one."""
    return "full_address_ar" if is_arabic(query) else "full_address_en"


def similarity_sql(field_name: str) -> str:
    """
    Token-set intersection over union between a bound token list and a column.

    Binds the (upper-cased, distinct) query tokens twice.
    """
    tokens = f"list_distinct(regexp_extract_all(upper(coalesce(\"{field_name}\", '')), '{TOKEN_PATTERN}'))"
    return (
        f"CAST(len(list_intersect({tokens}, ?::VARCHAR[])) AS DOUBLE) / "
        f"nullif(len(list_distinct(list_concat({tokens}, ?::VARCHAR[]))), 0)"
    )


def query_tokens(query: str) -> List[str]:
    """Distinct case-folded tokens of the cleaned query, in order."""
    seen: Dict[str, None] = {}
    for token in tokenize(fold_case(query)):
        seen.setdefault(token, None)
    return list(seen)


@dataclass
class SearchOutcome:
    """Rows of a search, or the error that prevented it."""
    rows: List[Dict[str, Any]] = field(default_factory=list)
    sources: List[str] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class TextSearchStrategy(ABC):
    """One way of answering a free-text query over partition sources."""

    mode: str = ""

    def __init__(self, store: DuckDBStore):
        self.store = store

    @abstractmethod
    def search(self, sources: Sequence[str], query: str, limit: int) -> SearchOutcome:
        """
        Search the given partition files.

        Args:
            sources: Partition file locations
            query: Cleaned query text
            limit: Maximum rows to return

        Returns:
            SearchOutcome; failures are reported in ``error``, never raised
        """
        pass


class FallbackSearch(TextSearchStrategy):
    """Substring gate plus token-overlap ranking, using only core DuckDB functions."""

    mode = FALLBACK_MODE

    def build_request(self, sources: Sequence[str], query: str, limit: int) -> AddressRequest:
        field_name = address_field(query)
        tokens = query_tokens(query)
        gate = any_of(
            Contains(field_name, term, case_insensitive=True)
            for term in search_terms(query)
        )
        if tokens:
            similarity = ComputedColumn("similarity", similarity_sql(field_name), (tokens, tokens))
        else:
            # Nothing to overlap with; rows tie and fall back to addr_id order
            similarity = ComputedColumn("similarity", "CAST(0 AS DOUBLE)")
        return AddressRequest(
            sources=list(sources),
            columns=SEARCH_COLUMNS,
            where=all_of(IsNotNull(field_name), gate),
            computed=[similarity],
            order_by=[OrderKey("similarity", descending=True), OrderKey("addr_id")],
            limit=limit,
        )

    def search(self, sources: Sequence[str], query: str, limit: int) -> SearchOutcome:
        try:
            result = self.store.fetch(self.build_request(sources, query, limit))
        except BackendUnavailable as e:
            return SearchOutcome(error=e)
        return SearchOutcome(rows=result.rows, sources=result.sources)


class RankedSearch(TextSearchStrategy):
    """BM25 ranking over an index built per query and dropped afterwards."""

    mode = RANKED_MODE

    @contextmanager
    def build_ephemeral_index(self, sources: Sequence[str], field_name: str, stemmer: str) -> Iterator[Tuple[Any, str]]:
        """
        Materialize the candidate rows and index ``field_name`` for BM25.

        Yields (cursor, table). The table and its index are dropped on exit,
        whether or not the body raised. Table names are unique per call so
        concurrent searches never collide.
        """
        table = f"fts_addresses_{uuid.uuid4().hex}"
        with self.store.cursor() as cursor:
            try:
                self.store.materialize(
                    cursor,
                    table,
                    AddressRequest(sources=list(sources), columns=SEARCH_COLUMNS, where=IsNotNull(field_name)),
                )
                self.store.create_fts_index(cursor, table, field_name, stemmer)
                yield cursor, table
            finally:
                self.store.drop_table(cursor, table, fts=True)

    def search(self, sources: Sequence[str], query: str, limit: int) -> SearchOutcome:
        field_name = address_field(query)
        stemmer = "arabic" if field_name == "full_address_ar" else "porter"
        try:
            with self.build_ephemeral_index(sources, field_name, stemmer) as (cursor, table):
                rows = self.store.bm25_search(cursor, table, query, field_name, SEARCH_COLUMNS, limit)
        except duckdb.Error as e:
            return SearchOutcome(error=CapabilityUnavailable("fts", e))
        return SearchOutcome(rows=rows, sources=list(sources))


class TextSearch:
    """Chooses the search strategy once and applies the per-query fallback."""

    def __init__(self, store: DuckDBStore, enable_ranked: bool = True):
        self.store = store
        self.enable_ranked = enable_ranked
        self.fallback = FallbackSearch(store)
        self.ranked: Optional[RankedSearch] = None
        self._probed = False

    def probe(self, cursor=None) -> bool:
        """
        Decide between ranked and fallback search. Runs at most once.

        Args:
            cursor: Cursor for loading the extension, e.g. an init deadline cursor

        Returns:
            True if ranked search will be used
        """
        if self._probed:
            return self.ranked is not None
        self._probed = True
        if self.enable_ranked and self.store.probe_full_text_search(cursor):
            self.ranked = RankedSearch(self.store)
        log_structured("info", "Text search mode selected", search_mode=self.mode)
        return self.ranked is not None

    @property
    def mode(self) -> str:
        return RANKED_MODE if self.ranked is not None else FALLBACK_MODE

    def is_ranked_available(self) -> bool:
        return self.ranked is not None

    def search(self, sources: Sequence[str], query: str, limit: int) -> SearchOutcome:
        """
        Run a query with the selected strategy.

        A ranked outcome carrying an error is logged and the query is re-run
        with the fallback strategy. Queries without any search term (empty,
        or only one-character tokens) have nothing for BM25 to match and go
        straight to the fallback, where the gate passes every row and the
        overlap score alone orders them. Fallback failures raise.

        Raises:
            BackendUnavailable: No partition could be read
        """
        if self.ranked is not None and search_terms(query):
            outcome = self.ranked.search(sources, query, limit)
            if outcome.ok:
                return outcome
            log_error(outcome.error, {"operation": "ranked_search", "partitions": len(sources)})
            log_structured("warning", "Ranked search failed, using fallback", partitions=len(sources))

        outcome = self.fallback.search(sources, query, limit)
        if not outcome.ok:
            raise outcome.error
        return outcome
