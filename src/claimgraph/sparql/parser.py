"""
Claim query parser.

A lightweight parser for the SPARQL-like claim query language. The query
structure (query form, projection, WHERE block, LIMIT/OFFSET) is picked
apart with regular expressions; individual terms are classified with a
small pyparsing grammar. The grammar can grow toward full SPARQL later.

Parsing never fails. Fragments that cannot be used are dropped and noted
in ``ParsedQuery.warnings``; malformed queries surface as executor
validation errors or empty results.
"""

from typing import Optional
import logging
import re

import pyparsing as pp
from pyparsing import Combine, Literal as Lit, Opt, Regex, Word, alphas, alphanums

from claimgraph.sparql.ast import (
    Namespace,
    ParsedQuery,
    QueryType,
    Term,
    TriplePattern,
)

logger = logging.getLogger(__name__)


class ClaimQueryParser:
    """
    Parser for claim queries.

    Supports:
    - SELECT with an explicit variable list or ``*``
    - a single WHERE block of ``subject predicate object`` statements
      separated by ``.``
    - LIMIT and OFFSET (recorded, not enforced)

    The WHERE block ends at the first ``}``; nested braces are not supported.
    """

    QUERY_TYPE_RE = re.compile(r"^\s*(SELECT|CONSTRUCT|ASK|DESCRIBE)\s", re.IGNORECASE)
    SELECT_VARS_RE = re.compile(r"SELECT\s+(.+?)\s+WHERE\s*\{", re.IGNORECASE | re.DOTALL)
    WHERE_BLOCK_RE = re.compile(r"WHERE\s*\{(.+?)\}", re.IGNORECASE | re.DOTALL)
    LIMIT_RE = re.compile(r"LIMIT\s+(\d+)", re.IGNORECASE)
    OFFSET_RE = re.compile(r"OFFSET\s+(\d+)", re.IGNORECASE)
    QUOTED_RE = re.compile(r"^['\"](.*)['\"]$")

    def __init__(self):
        self._build_term_grammar()

    def _build_term_grammar(self):
        """Build the pyparsing grammar for a single term."""

        # Variable: ?name
        def make_variable(tokens):
            return Term(raw=tokens[0], namespace=Namespace.VARIABLE, value=tokens[0])

        # Any non-space text, including non-ASCII letters (?año)
        local_text = Regex(r"\S+")

        variable = Combine(Lit("?") + Opt(local_text)).set_parse_action(make_variable)

        # Prefixed name: prop:P31, value:, item:Q5
        def make_prefixed_name(tokens):
            prefix, _, local = tokens[0].partition(":")
            return Term(raw=tokens[0], namespace=Namespace.from_prefix(prefix), value=local)

        prefixed_name = Combine(
            Word(alphas, alphanums + "_-") + Lit(":") + Opt(local_text)
        ).set_parse_action(make_prefixed_name)

        self.term = variable | prefixed_name

    def classify(self, text: str) -> Term:
        """Classify a token; anything unrecognised is a literal."""
        try:
            return self.term.parse_string(text, parse_all=True)[0]
        except pp.ParseBaseException:
            return Term(raw=text, namespace=Namespace.LITERAL, value=text)

    def parse(self, query_string: Optional[str]) -> ParsedQuery:
        """
        Parse a claim query string.

        Args:
            query_string: The raw query text

        Returns:
            ParsedQuery with every field present (possibly empty or None)
        """
        raw = query_string or ""
        parsed = ParsedQuery()

        parsed.type = self._extract_query_type(raw, parsed.warnings)
        if parsed.type is QueryType.SELECT:
            parsed.variables = self._extract_select_variables(raw)
        parsed.where_pattern = self._extract_where_patterns(raw, parsed.warnings)

        limit_match = self.LIMIT_RE.search(raw)
        if limit_match:
            parsed.limit = int(limit_match.group(1))

        offset_match = self.OFFSET_RE.search(raw)
        if offset_match:
            parsed.offset = int(offset_match.group(1))

        logger.debug(f"Parsed query: {parsed.to_dict()}")
        return parsed

    def _extract_query_type(self, raw: str, warnings: list[str]) -> QueryType:
        match = self.QUERY_TYPE_RE.match(raw)
        if not match:
            warnings.append("Unrecognised query type; expected SELECT, CONSTRUCT, ASK or DESCRIBE")
            return QueryType.UNKNOWN
        return QueryType(match.group(1).upper())

    def _extract_select_variables(self, raw: str) -> list[str]:
        # Everything between SELECT and WHERE {
        match = self.SELECT_VARS_RE.search(raw)
        if not match:
            return []

        var_string = match.group(1).strip()
        if var_string == "*":
            return ["*"]
        return [v for v in var_string.split() if v.startswith("?")]

    def _extract_where_patterns(self, raw: str, warnings: list[str]) -> list[TriplePattern]:
        match = self.WHERE_BLOCK_RE.search(raw)
        if not match:
            warnings.append("No WHERE block found")
            return []

        fragments = [s.strip() for s in match.group(1).strip().split(".")]
        patterns = []
        for fragment in fragments:
            if not fragment:
                continue
            pattern = self._build_pattern(fragment)
            if pattern is None:
                warnings.append(f"Dropped fragment {fragment!r}: expected subject, predicate and object")
                continue
            patterns.append(pattern)
        return patterns

    def _build_pattern(self, fragment: str) -> Optional[TriplePattern]:
        tokens = fragment.split()
        if len(tokens) < 3:
            return None

        # The object may be a multi-word quoted literal
        object_text = " ".join(tokens[2:])
        quoted = self.QUOTED_RE.match(object_text)
        if quoted:
            text = quoted.group(1)
            obj = Term(raw=text, namespace=Namespace.LITERAL, value=text)
        else:
            obj = self.classify(object_text)

        return TriplePattern(
            subject=self.classify(tokens[0]),
            predicate=self.classify(tokens[1]),
            object=obj,
        )


# Module-level parser instance for convenience
_parser: Optional[ClaimQueryParser] = None


def parse_query(query_string: Optional[str]) -> ParsedQuery:
    """
    Parse a claim query string using a cached parser instance.

    Args:
        query_string: The raw query text

    Returns:
        ParsedQuery (never raises)
    """
    global _parser
    if _parser is None:
        _parser = ClaimQueryParser()
    return _parser.parse(query_string)
