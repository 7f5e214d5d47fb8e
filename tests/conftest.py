"""
Pytest configuration to ensure paths are set up correctly for tests.

This allows imports like `from handlers import chatbot` to work
when running tests, simulating the Lambda environment where code
is deployed from the src/ directory. Shared fakes for the external
collaborators (candidate store, embedding provider, analytics) live here.
"""

import os
import sys
from contextlib import contextmanager
from pathlib import Path

import boto3
import pytest


def _ensure_paths_on_sys_path() -> None:
    """Add repository root AND src/ to sys.path if missing."""
    repo_root = Path(__file__).resolve().parents[1]
    src_root = repo_root / "src"

    # Add repo root first (for imports like infrastructure.*)
    root_str = str(repo_root)
    if root_str not in sys.path:
        sys.path.insert(0, root_str)

    # Add src/ for Lambda-style imports (from handlers import ...)
    src_str = str(src_root)
    if src_str not in sys.path:
        sys.path.insert(0, src_str)


_ensure_paths_on_sys_path()

# Offline-friendly AWS defaults so tests never need real credentials.
os.environ.setdefault("AWS_REGION", "eu-west-2")
os.environ.setdefault("AWS_DEFAULT_REGION", "eu-west-2")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test")
os.environ.setdefault("AWS_SESSION_TOKEN", "test")
os.environ.setdefault("ENVIRONMENT", "dev")
os.environ.setdefault("BEDROCK_REGION", "eu-west-2")
os.environ.setdefault("CANDIDATE_BACKEND", "memory")
os.environ.setdefault("EMBEDDINGS_ENABLED", "false")

boto3.setup_default_session(region_name="eu-west-2")

from models.knowledge import KnowledgeRecord  # noqa: E402
from repositories.candidate_source import InMemoryCandidateSource  # noqa: E402
from utils.error_handling import EmbeddingError  # noqa: E402


class FakeEmbedder:
    """Returns a fixed vector per text (or a default) and counts calls."""

    def __init__(self, default=None, vectors=None, fail=False):
        self.default = default or [1.0, 0.0]
        self.vectors = vectors or {}
        self.fail = fail
        self.calls = []

    def embed(self, text):
        self.calls.append(text)
        if self.fail:
            raise EmbeddingError("quota exceeded")
        return self.vectors.get(text, self.default)


class RecordingQueryLogger:
    """Query logger that remembers every call."""

    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def log(self, message, result, user_id, response_time_ms=0):
        self.calls.append((message, result, user_id))
        if self.fail:
            raise RuntimeError("analytics table unavailable")


class CountingSource(InMemoryCandidateSource):
    """In-memory source that counts every retrieval call and page yielded."""

    def __init__(self, records):
        super().__init__(records)
        self.fetch_calls = []
        self.pages_yielded = 0

    def fetch_all(self, limit=1000):
        self.fetch_calls.append(("all", limit))
        return super().fetch_all(limit)

    def fetch_by_keywords(self, tokens, limit=1000):
        self.fetch_calls.append(("keywords", tuple(tokens)))
        return super().fetch_by_keywords(tokens, limit)

    def fetch_by_category(self, category, limit=1000):
        self.fetch_calls.append(("category", category))
        return super().fetch_by_category(category, limit)

    def iter_pages(self, page_size=100):
        for page in super().iter_pages(page_size):
            self.pages_yielded += 1
            yield page


def make_record(record_id, questions, answer="Answer", category="general", **extra):
    return KnowledgeRecord(
        record_id=record_id, questions=questions, answer=answer, category=category, **extra
    )


def source_factory_for(source):
    @contextmanager
    def _open():
        yield source

    return _open


@pytest.fixture
def fake_embedder():
    return FakeEmbedder()


@pytest.fixture
def query_logger():
    return RecordingQueryLogger()
