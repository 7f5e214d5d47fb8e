#!/usr/bin/env python3
"""Check that the configured knowledge base is reachable and has embeddings."""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent / "src"))

from repositories.postgres_repo import PostgresCandidateSource, build_engine  # noqa: E402
from services.chatbot_service import build_source_factory  # noqa: E402
from utils.settings import MatchSettings  # noqa: E402


def _print_samples(records) -> None:
    print("\nSample records:")
    for idx, record in enumerate(records, start=1):
        first_question = record.questions[0] if record.questions else ""
        print(f"{idx}. ID: {record.record_id}")
        print(f"   Question: \"{first_question[:60]}\"")
        print(f"   Category: {record.category}")
        print(f"   Has Embedding: {'Yes' if record.embedding else 'No'}\n")


def main() -> None:
    settings = MatchSettings.from_environment()
    print(f"Checking {settings.candidate_backend} knowledge base...")

    try:
        if settings.candidate_backend == "postgres":
            engine = build_engine(settings.database_url, settings.db_secret_arn)
            if engine is None:
                print("No database configured (DATABASE_URL / DB_SECRET_ARN)")
                sys.exit(1)
            with engine.connect() as conn:
                source = PostgresCandidateSource(conn)
                stats = source.stats()
                samples = source.fetch_all(limit=5)
                self_similarity = source.self_similarity()
        else:
            with build_source_factory(settings)() as source:
                stats = source.stats()
                samples = source.fetch_all(limit=5)
                self_similarity = None
    except Exception as exc:
        print(f"Knowledge base check failed: {exc}")
        sys.exit(1)

    print(f"Total records: {stats.total_records}")
    print(f"Records with embeddings: {stats.records_with_embeddings}")
    _print_samples(samples)

    if self_similarity is not None:
        print(f"pgvector working! Self-similarity: {self_similarity}")

    print("Knowledge base is ready.")


if __name__ == "__main__":
    main()
