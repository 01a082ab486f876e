"""Natural-language-to-SQL engine with a static safety gate.

Per request:
    schema context → generation prompt → model → extract candidate
    → validate → (execute when not read-only) → explanation

Validation runs before any execution and never consults the database.
The gate is a substring policy, not a SQL parser:
  1. In read-only mode any of DROP, DELETE, INSERT, UPDATE, TRUNCATE, ALTER
     rejects. The remaining sensitive keywords are flagged and logged only.
  2. The candidate must contain SELECT somewhere.
  3. More than one ``;`` split point rejects (a single trailing ``;`` is fine).
"""

from __future__ import annotations

import enum
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Any

from docquery.errors import (
    DatabaseNotConnected,
    ExecutionFailed,
    GenerationFailed,
    ValidationRejected,
)
from docquery.rag.llm_client import ChatModel
from docquery.sql.executor import SqlExecutor
from docquery.sql.schema_context import TableSchema, generate_context

logger = logging.getLogger(__name__)

SENSITIVE_KEYWORDS: tuple[str, ...] = (
    "DROP",
    "DELETE",
    "INSERT",
    "UPDATE",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "EXEC",
    "EXECUTE",
    "UNION",
    "SCRIPT",
    "JAVASCRIPT",
)
READ_ONLY_BLOCKED: frozenset[str] = frozenset(
    {"DROP", "DELETE", "INSERT", "UPDATE", "TRUNCATE", "ALTER"}
)

_FENCE_OPEN_RE = re.compile(r"```(?:[A-Za-z]*[ \t]*\n)?\s*")
_FENCE_CLOSE_RE = re.compile(r"```\s*$")
_COMMENT_PREFIXES = ("--", "#", "/*")


class SQLStage(enum.Enum):
    IDLE = "idle"
    SCHEMA_CONTEXT_BUILT = "schema_context_built"
    PROMPT_COMPOSED = "prompt_composed"
    MODEL_INVOKED = "model_invoked"
    CANDIDATE_EXTRACTED = "candidate_extracted"
    VALIDATED = "validated"
    EXECUTED = "executed"
    REJECTED = "rejected"


@dataclass
class ValidationResult:
    is_valid: bool
    error: str | None = None
    flagged_keywords: list[str] = field(default_factory=list)


@dataclass
class SQLCandidate:
    raw_model_output: str
    normalized_sql: str
    is_valid: bool = False
    rejection_reason: str | None = None


@dataclass
class ExecutionResult:
    rows: list[dict[str, Any]]
    duration_ms: int


@dataclass
class SQLResult:
    question: str
    candidate: SQLCandidate
    explanation: str
    read_only: bool
    selected_tables: list[str]
    execution: ExecutionResult | None = None

    @property
    def sql(self) -> str:
        return self.candidate.normalized_sql


# ------------------------------------------------------------------
# Prompts
# ------------------------------------------------------------------


def build_generation_prompt(
    question: str,
    schema_context: str,
    read_only: bool,
    max_rows: int,
    dialect: str = "MySQL",
) -> str:
    read_only_clause = (
        "IMPORTANT: Only generate SELECT queries. Do not generate INSERT, UPDATE, "
        "DELETE, DROP, or any other modifying queries."
        if read_only
        else ""
    )
    return f"""You are a SQL expert. Convert the following natural language query to SQL using the provided database schema.

{read_only_clause}

Database Schema:
{schema_context}

Natural Language Query: "{question}"

Requirements:
1. Generate only valid {dialect} SQL syntax
2. Use proper table and column names from the schema
3. Include appropriate JOINs when querying multiple tables
4. Limit results to {max_rows} rows maximum
5. Use clear, readable SQL formatting
6. Add comments to explain complex parts of the query

Generate the SQL query:"""


def build_explanation_prompt(question: str, sql: str, schema_context: str) -> str:
    return f"""Explain the following SQL query in simple terms.

Natural Language Query: "{question}"

Generated SQL:
{sql}

Database Schema Context:
{schema_context}

Please provide a clear explanation of:
1. What the query does
2. Which tables and columns are involved
3. Any joins or relationships used
4. The expected results

Explanation:"""


# ------------------------------------------------------------------
# Extraction + validation
# ------------------------------------------------------------------


def extract_sql(response: str) -> str:
    """Strip code fences, blank lines and comment-only lines; keep line breaks."""
    sql = _FENCE_CLOSE_RE.sub("", _FENCE_OPEN_RE.sub("", response)).strip()
    kept = [
        line
        for line in sql.split("\n")
        if line.strip() and not line.strip().startswith(_COMMENT_PREFIXES)
    ]
    return "\n".join(kept)


def validate_sql(sql: str, read_only: bool) -> ValidationResult:
    upper = sql.upper()

    flagged: list[str] = []
    for keyword in SENSITIVE_KEYWORDS:
        if keyword not in upper:
            continue
        if read_only and keyword in READ_ONLY_BLOCKED:
            return ValidationResult(
                is_valid=False,
                error=f"Query contains forbidden keyword: {keyword}. Read-only mode is enabled.",
                flagged_keywords=[*flagged, keyword],
            )
        flagged.append(keyword)

    if "SELECT" not in upper:
        return ValidationResult(
            is_valid=False, error="Query must start with SELECT", flagged_keywords=flagged
        )

    if ";" in upper and len(upper.split(";")) > 2:
        return ValidationResult(
            is_valid=False,
            error="Multiple SQL statements not allowed",
            flagged_keywords=flagged,
        )

    if flagged:
        logger.warning("SQL contains sensitive keywords %s; allowed", ", ".join(flagged))
    return ValidationResult(is_valid=True, flagged_keywords=flagged)


# ------------------------------------------------------------------
# Engine
# ------------------------------------------------------------------


class SQLEngine:
    """Generate, validate, optionally execute and explain one SQL query.

    Args:
        model: Chat model for the generation and explanation calls.
        executor: Executor for validated statements; must be connected.
        dialect: SQL dialect named in the generation prompt.
    """

    def __init__(self, model: ChatModel, executor: SqlExecutor, dialect: str = "MySQL") -> None:
        self._model = model
        self._executor = executor
        self._dialect = dialect
        self.stage = SQLStage.IDLE

    async def generate(
        self,
        question: str,
        schema: list[TableSchema],
        selected_tables: list[str],
        read_only: bool = True,
        max_rows: int = 1000,
    ) -> SQLResult:
        """Run one request through the pipeline.

        Raises:
            DatabaseNotConnected: The executor has no open connection.
            GenerationFailed: The generation or explanation call failed.
            ValidationRejected: The candidate failed the safety policy.
            ExecutionFailed: The executor raised on a validated statement.
        """
        self.stage = SQLStage.IDLE
        if not self._executor.is_connected():
            raise DatabaseNotConnected()

        schema_context = generate_context(schema, selected_tables)
        self.stage = SQLStage.SCHEMA_CONTEXT_BUILT

        prompt = build_generation_prompt(
            question, schema_context, read_only, max_rows, self._dialect
        )
        self.stage = SQLStage.PROMPT_COMPOSED

        raw = await self._invoke(prompt, "sql")
        self.stage = SQLStage.MODEL_INVOKED

        candidate = SQLCandidate(raw_model_output=raw, normalized_sql=extract_sql(raw))
        self.stage = SQLStage.CANDIDATE_EXTRACTED

        result = validate_sql(candidate.normalized_sql, read_only)
        candidate.is_valid = result.is_valid
        candidate.rejection_reason = result.error
        if not result.is_valid:
            self.stage = SQLStage.REJECTED
            logger.warning("Rejected generated SQL: %s", result.error)
            raise ValidationRejected(result.error or "invalid query", candidate.normalized_sql)
        self.stage = SQLStage.VALIDATED

        execution: ExecutionResult | None = None
        if not read_only:
            execution = await self._execute(candidate.normalized_sql)
            self.stage = SQLStage.EXECUTED

        explanation = await self._invoke(
            build_explanation_prompt(question, candidate.normalized_sql, schema_context),
            "explanation",
        )

        return SQLResult(
            question=question,
            candidate=candidate,
            explanation=explanation,
            read_only=read_only,
            selected_tables=list(selected_tables),
            execution=execution,
        )

    async def _invoke(self, prompt: str, stage: str) -> str:
        try:
            response = await self._model.invoke(prompt)
        except Exception as exc:
            logger.error("SQL %s call failed: %s", stage, exc, exc_info=exc)
            raise GenerationFailed(stage) from exc
        return response.content

    async def _execute(self, sql: str) -> ExecutionResult:
        start = time.perf_counter()
        try:
            rows = await self._executor.execute(sql)
        except Exception as exc:
            logger.error("Query execution failed: %s", exc, exc_info=exc)
            raise ExecutionFailed(str(exc), sql) from exc
        duration_ms = int((time.perf_counter() - start) * 1000)
        return ExecutionResult(rows=rows, duration_ms=duration_ms)
