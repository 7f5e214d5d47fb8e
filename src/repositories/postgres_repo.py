"""PostgreSQL candidate source using SQLAlchemy Core."""

from __future__ import annotations

import json
from typing import Iterable, Iterator, List, Optional

import boto3
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool

from models.knowledge import KBStats, KnowledgeRecord
from repositories.candidate_source import DEFAULT_LIMIT, CandidateSource, records_from_rows
from utils.error_handling import RetrievalError
from utils.logging_config import get_logger
from utils.text import normalize_text

logger = get_logger(__name__)

_COLUMNS = "id, questions, answer, category, keywords, embedding::text AS embedding"


def build_engine(
    database_url: str = "", secret_arn: str = "", statement_timeout_ms: int = 0
) -> Optional[Engine]:
    """
    Create a pooled engine from a URL or an RDS secret; None when unconfigured.

    A positive ``statement_timeout_ms`` is set on every connection so a slow
    query is cancelled server-side instead of outliving its match stage.
    """
    db_url = database_url or (secret_to_db_url(secret_arn) if secret_arn else None)
    if not db_url:
        logger.warning("DATABASE_URL not set; Postgres backend unavailable")
        return None
    return create_engine(
        db_url,
        poolclass=QueuePool,
        pool_size=1,
        max_overflow=2,
        pool_pre_ping=True,
        pool_recycle=300,
        connect_args=_connect_args(statement_timeout_ms),
    )


def _connect_args(statement_timeout_ms: int) -> dict:
    args = {"connect_timeout": 5}
    if statement_timeout_ms > 0:
        args["options"] = f"-c statement_timeout={statement_timeout_ms}"
    return args


def secret_to_db_url(secret_arn: str) -> Optional[str]:
    """Build a SQLAlchemy URL from an RDS secret."""
    try:
        sm = boto3.client("secretsmanager")
        secret = json.loads(sm.get_secret_value(SecretId=secret_arn)["SecretString"])
        host = secret.get("host")
        port = secret.get("port", 5432)
        username = secret.get("username")
        password = secret.get("password")
        dbname = secret.get("dbname", "postgres")
        if not (host and username and password):
            return None
        return f"postgresql+psycopg2://{username}:{password}@{host}:{port}/{dbname}"
    except Exception as exc:
        logger.warning("Failed to load DB secret", extra={"error": str(exc)})
        return None


class PostgresCandidateSource(CandidateSource):
    """
    Reads the ``documents`` table over one connection owned by the caller.

    Expected columns: ``id``, ``questions text[]``, ``answer``, ``category``,
    ``keywords text[]`` and a pgvector ``embedding``.
    """

    backend = "postgres"

    def __init__(self, conn: Connection, table: str = "documents"):
        self.conn = conn
        self.table = table

    def _select(self, where: str, params: dict) -> List[KnowledgeRecord]:
        stmt = text(f"SELECT {_COLUMNS} FROM {self.table} {where}")
        try:
            rows = self.conn.execute(stmt, params)
            return records_from_rows(dict(row._mapping) for row in rows)
        except SQLAlchemyError as exc:
            raise RetrievalError(f"Postgres query failed: {exc}") from exc

    def fetch_all(self, limit: int = DEFAULT_LIMIT) -> List[KnowledgeRecord]:
        return self._select("ORDER BY id LIMIT :limit", {"limit": limit})

    def fetch_by_keywords(
        self, tokens: Iterable[str], limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        wanted = sorted({normalize_text(token) for token in tokens if token})
        if not wanted:
            return []
        return self._select(
            "WHERE keywords && CAST(:tokens AS text[]) ORDER BY id LIMIT :limit",
            {"tokens": wanted, "limit": limit},
        )

    def fetch_by_category(
        self, category: str, limit: int = DEFAULT_LIMIT
    ) -> List[KnowledgeRecord]:
        return self._select(
            "WHERE category = :category ORDER BY id LIMIT :limit",
            {"category": category, "limit": limit},
        )

    def iter_pages(self, page_size: int = 100) -> Iterator[List[KnowledgeRecord]]:
        """Keyset pagination on ``id`` so pages stay stable without OFFSET scans."""
        cursor = None
        while True:
            if cursor is None:
                page = self._select("ORDER BY id LIMIT :limit", {"limit": page_size})
            else:
                page = self._select(
                    "WHERE id > :cursor ORDER BY id LIMIT :limit",
                    {"cursor": cursor, "limit": page_size},
                )
            if not page:
                return
            yield page
            if len(page) < page_size:
                return
            last_id = page[-1].record_id
            cursor = int(last_id) if last_id.isdigit() else last_id

    def stats(self) -> KBStats:
        """Counts used by the knowledge base check script."""
        try:
            total = self.conn.execute(text(f"SELECT COUNT(*) FROM {self.table}")).scalar()
            embedded = self.conn.execute(
                text(f"SELECT COUNT(*) FROM {self.table} WHERE embedding IS NOT NULL")
            ).scalar()
        except SQLAlchemyError as exc:
            raise RetrievalError(f"Postgres stats failed: {exc}") from exc
        return KBStats(
            total_records=total or 0,
            records_with_embeddings=embedded or 0,
            backend=self.backend,
        )

    def self_similarity(self) -> Optional[float]:
        """pgvector sanity check: a vector's cosine similarity with itself."""
        row = self.conn.execute(
            text(
                f"SELECT 1 - (embedding <=> embedding) AS self_similarity "
                f"FROM {self.table} WHERE embedding IS NOT NULL LIMIT 1"
            )
        ).fetchone()
        return float(row.self_similarity) if row else None
