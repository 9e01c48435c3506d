from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Set

import sqlglot
from sqlglot import exp
from sqlglot.errors import OptimizeError, ParseError, TokenError
from sqlglot.optimizer.scope import Scope, traverse_scope
from sqlglot.tokens import Token, TokenType


BLOCKED_KEYWORDS: List[str] = [
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "ALTER",
    "TRUNCATE",
    "CREATE",
    "GRANT",
    "REVOKE",
    "COPY",
    "EXECUTE",
]

# Every literal flavour the tokenizer knows ('..', E'..', $$..$$, B'..', ...).
# Payload keys such as row_data->>'Last Update' live here and must not trip
# the keyword blocklist.
STRING_TOKEN_TYPES: Set[TokenType] = {
    t for t in TokenType if t.name == "STRING" or t.name.endswith("_STRING")
}

READ_PREFIXES = ("SELECT", "WITH")
STATEMENT_SEPARATOR = ";"
MAX_ROWS = 200

# The only physical relation agent SQL may read from.
ROW_TABLE = "uploaded_rows"
ALLOWED_TABLES: Set[str] = {ROW_TABLE}


@dataclass
class ValidatedSQL:
    sql: str
    limit_added: bool = False


class UnsafeQueryError(ValueError):
    pass


def _tokenize(sql: str) -> List[Token]:
    return sqlglot.tokenize(sql, read="postgres")


def _ensure_read_query(sql: str) -> None:
    if not sql.upper().startswith(READ_PREFIXES):
        raise UnsafeQueryError("Only SELECT queries are allowed (not a read query).")


def _ensure_single_statement(sql: str) -> None:
    if STATEMENT_SEPARATOR in sql:
        raise UnsafeQueryError("Multi-statement queries are not allowed.")


def _ensure_no_blocked_keywords(sql: str) -> None:
    try:
        tokens = _tokenize(sql)
    except TokenError as exc:
        raise UnsafeQueryError(f"Could not tokenize query: {exc}") from exc

    for tok in tokens:
        if tok.token_type in STRING_TOKEN_TYPES:
            continue
        word = tok.text.upper()
        if word in BLOCKED_KEYWORDS:
            raise UnsafeQueryError(f"Blocked SQL keyword: {word}")


def validate_sql(sql: str) -> str:
    """Apply the read-only rules in order; returns the trimmed statement."""
    trimmed = (sql or "").strip()
    _ensure_read_query(trimmed)
    _ensure_single_statement(trimmed)
    _ensure_no_blocked_keywords(trimmed)
    return trimmed


def has_limit_clause(sql: str) -> bool:
    """True when the statement carries a LIMIT keyword outside string literals."""
    try:
        tokens = _tokenize(sql)
    except TokenError:
        return False
    return any(tok.token_type == TokenType.LIMIT for tok in tokens)


def enforce_limit_cap(sql: str, max_rows: int = MAX_ROWS) -> str:
    if has_limit_clause(sql):
        return sql
    return f"{sql.rstrip()} LIMIT {int(max_rows)}"


def validate_and_patch_sql(sql: str, max_rows: int = MAX_ROWS) -> ValidatedSQL:
    """
    Validate agent SQL and cap its row count.

    Args:
        sql: Statement produced by the SQL agent
        max_rows: LIMIT appended when the statement has none

    Returns:
        ValidatedSQL with the (possibly) patched statement

    Raises:
        UnsafeQueryError if any rule rejects the statement
    """
    trimmed = validate_sql(sql)
    patched = enforce_limit_cap(trimmed, max_rows=max_rows)
    return ValidatedSQL(sql=patched, limit_added=patched != trimmed)


# =============================================================================
# TENANCY SCOPING
# =============================================================================


def _cte_references(parsed: exp.Expression) -> Set[int]:
    """
    Table nodes that resolve to a CTE in their own scope.

    A name only resolves to a CTE after that CTE is defined, so a self
    reference inside a non-recursive CTE body (or a forward reference)
    still reads the physical relation and is not included here.
    """
    try:
        scopes = traverse_scope(parsed)
    except OptimizeError as exc:
        raise UnsafeQueryError(f"Could not resolve query scopes: {exc}") from exc

    refs: Set[int] = set()
    for scope in scopes:
        for table in scope.tables:
            if table.db:
                continue
            if isinstance(scope.sources.get(table.alias_or_name), Scope):
                refs.add(id(table))
    return refs


def _scoped_rows(file_ids: List[str], alias: str) -> exp.Expression:
    inner = (
        exp.select("*")
        .from_(exp.table_(ROW_TABLE, db="public"))
        .where(exp.column("file_id").isin(*[exp.Literal.string(fid) for fid in file_ids]))
    )
    return inner.subquery(alias)


def scope_to_files(sql: str, file_ids: Iterable[str]) -> str:
    """
    Rewrite every read of uploaded_rows into a subquery restricted to file_ids.

    Tables other than uploaded_rows (and the statement's own CTEs) are rejected,
    so agent SQL can never see rows outside the caller's visible files.
    """
    ids = [str(fid) for fid in file_ids]
    if not ids:
        raise UnsafeQueryError("No files are visible to this query.")

    try:
        parsed = sqlglot.parse_one(sql, read="postgres")
    except (ParseError, TokenError) as exc:
        raise UnsafeQueryError(f"Could not parse query: {exc}") from exc
    if parsed is None:
        raise UnsafeQueryError("Empty SQL.")

    cte_refs = _cte_references(parsed)
    targets: List[exp.Table] = []
    for table in parsed.find_all(exp.Table):
        if id(table) in cte_refs:
            continue
        name = (table.name or "").lower()
        if name not in ALLOWED_TABLES:
            raise UnsafeQueryError(f"Query references a non-allowed table: {table.name}")
        if table.db and table.db.lower() != "public":
            raise UnsafeQueryError(f"Query references a non-allowed schema: {table.db}")
        targets.append(table)

    for table in targets:
        table.replace(_scoped_rows(ids, table.alias or ROW_TABLE))

    return parsed.sql(dialect="postgres")
