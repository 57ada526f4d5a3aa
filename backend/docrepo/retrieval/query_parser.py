"""Web-style query parsing into FTS5 MATCH expressions.

Supported syntax mirrors a search box: bare words are ANDed, ``"quoted text"``
is a phrase, ``or`` between terms is a disjunction and ``-word`` excludes a
term. Every term is emitted as a double-quoted FTS5 string, so user input can
never inject FTS5 operators.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from docrepo.utils.text import normalize

_TOKEN_RE = re.compile(r'(-?)"([^"]*)"?|(\S+)')
_WORD_RE = re.compile(r"\w")


@dataclass(slots=True, frozen=True)
class QueryTerm:
    text: str
    negated: bool = False
    phrase: bool = False

    def fts(self) -> str:
        return '"' + self.text.replace('"', '""') + '"'


@dataclass(slots=True, frozen=True)
class ParsedQuery:
    """Disjunction of conjunctive groups, e.g. ``a b or c`` -> ``(a AND b) OR (c)``."""

    groups: tuple[tuple[QueryTerm, ...], ...] = ()

    @property
    def positive_terms(self) -> list[QueryTerm]:
        return [term for group in self.groups for term in group if not term.negated]

    @property
    def is_empty(self) -> bool:
        return not self.positive_terms

    def match_expression(self) -> str:
        clauses: list[str] = []
        for group in self.groups:
            positives = [term.fts() for term in group if not term.negated]
            if not positives:
                continue
            clause = " AND ".join(positives)
            for term in group:
                if term.negated:
                    clause = f"({clause}) NOT {term.fts()}"
            clauses.append(f"({clause})")
        return " OR ".join(clauses)

    def column_expression(self, column: str) -> str:
        """Match any positive term inside one column; used to report where a hit matched."""
        return " OR ".join(f"{column} : {term.fts()}" for term in self.positive_terms)


def parse_web_query(raw: str | None) -> ParsedQuery:
    if raw is None or not raw.strip():
        return ParsedQuery()

    groups: list[list[QueryTerm]] = [[]]
    pending_or = False
    for match in _TOKEN_RE.finditer(raw):
        negated_phrase, phrase_text, word = match.groups()
        if word is not None:
            if word.lower() == "or":
                pending_or = bool(groups[-1])
                continue
            negated = word.startswith("-")
            text = word.lstrip("-") if negated else word
            term = QueryTerm(text=text, negated=negated)
        else:
            text = normalize(phrase_text)
            term = QueryTerm(text=text, negated=bool(negated_phrase), phrase=True)

        if not _WORD_RE.search(term.text):
            continue
        if pending_or:
            groups.append([])
            pending_or = False
        groups[-1].append(term)

    return ParsedQuery(groups=tuple(tuple(group) for group in groups if group))


__all__ = ["QueryTerm", "ParsedQuery", "parse_web_query"]
