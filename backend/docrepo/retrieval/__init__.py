"""Full-text retrieval components."""

from .query_parser import ParsedQuery, QueryTerm, parse_web_query
from .search import SearchHit, SearchService

__all__ = [
    "ParsedQuery",
    "QueryTerm",
    "parse_web_query",
    "SearchHit",
    "SearchService",
]
