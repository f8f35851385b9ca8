"""Shared fakes for the workflow seams: metafield store, resource gateway, audit DB, optimizer."""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db.base import Base
import app.db.model  # registers every table on Base.metadata
from app.infrastructure.locks import LocalResourceLocker
from app.services.content_optimizer import ContentOptimizer, OptimizationResult
from app.services.draft_workflow import DraftWorkflow, WorkflowOptions
from app.services.errors import NotFoundError
from app.services.metafield_store import Metafield, MetafieldStore, ResourceRef, WriteResult
from app.services.rollback_engine import RollbackEngine
from app.services.usage_limiter import UsageLimiter


class InMemoryMetafieldStore(MetafieldStore):
    """
    {gid: {key: Metafield}}
    fail_keys: key -> how many more writes/deletes of that key should fail
    """

    def __init__(self, namespace: str = "asb"):
        super().__init__(namespace)
        self.data: Dict[str, Dict[str, Metafield]] = {}
        self.fail_keys: Dict[str, int] = {}
        self.calls: List[tuple] = []

    def _should_fail(self, key: str) -> bool:
        left = self.fail_keys.get(key, 0)
        if left > 0:
            self.fail_keys[key] = left - 1
            return True
        return False

    def get(self, ref: ResourceRef, namespace: Optional[str] = None) -> Dict[str, str]:
        self.calls.append(("get", ref.gid))
        return {k: m.value for k, m in self.data.get(ref.gid, {}).items()}

    def set_many(self, ref: ResourceRef, metafields: Sequence[Metafield], namespace: Optional[str] = None) -> WriteResult:
        self.calls.append(("set_many", ref.gid, [m.key for m in metafields]))
        out = WriteResult()
        bucket = self.data.setdefault(ref.gid, {})
        for m in metafields:
            if self._should_fail(m.key):
                out.failed[m.key] = "simulated failure"
            else:
                bucket[m.key] = m
                out.written.append(m.key)
        return out

    def delete_many(self, ref: ResourceRef, keys: Iterable[str], namespace: Optional[str] = None) -> WriteResult:
        keys = list(keys)
        self.calls.append(("delete_many", ref.gid, keys))
        out = WriteResult()
        bucket = self.data.setdefault(ref.gid, {})
        for k in keys:
            if self._should_fail(k):
                out.failed[k] = "simulated failure"
            else:
                bucket.pop(k, None)
                out.written.append(k)
        return out

    def writes(self) -> List[tuple]:
        return [c for c in self.calls if c[0] in ("set_many", "delete_many")]


class FakeResources:
    """Stand-in for ShopifyResourceGateway; keeps title/body per GID."""

    def __init__(self):
        self.contents: Dict[str, Dict[str, Any]] = {}
        self.updates: List[tuple] = []
        self.fail_update: Optional[Exception] = None

    def add(self, ref: ResourceRef, title: str, body: str = "", **extra: Any) -> None:
        self.contents[ref.gid] = {"title": title, "body": body, "description": body, "tags": [], **extra}

    def get_content(self, ref: ResourceRef) -> Dict[str, Any]:
        if ref.gid not in self.contents:
            raise NotFoundError(f"{ref.resource_type} {ref.resource_id} not found")
        return dict(self.contents[ref.gid])

    def update_content(self, ref: ResourceRef, *, title: Optional[str] = None, body: Optional[str] = None) -> None:
        if self.fail_update is not None:
            raise self.fail_update
        self.updates.append((ref.gid, title, body))
        row = self.contents.setdefault(ref.gid, {"title": "", "body": ""})
        if title is not None:
            row["title"] = title
        if body is not None:
            row["body"] = body
            row["description"] = body


class FixedOptimizer(ContentOptimizer):
    """Always returns the given payload (camelCase keys), tagged as a provider result."""

    def __init__(self, payload: Mapping[str, Any]):
        super().__init__(None, mock_mode=False)
        self.payload = dict(payload)

    def optimize(self, content, resource_type, settings=None) -> OptimizationResult:
        result = OptimizationResult.model_validate(self.payload)
        result.source = "provider:fixed"
        return result


RISKY_PAYLOAD = {
    "optimizedTitle": "Revolutionary Widget",
    "optimizedDescription": "The best on the market, award-winning and industry-leading luxury.",
    "summary": "A game-changing, top-rated and exclusive product with unparalleled quality.",
    "content": "Premium quality you will love.",
    "faqs": [{"question": "Is it guaranteed?", "answer": "We guarantee satisfaction."}],
    "jsonLd": {"@type": "Product"},
    "llmDescription": "Perfect for everyone.",
}


@pytest.fixture
def session_factory():
    """In-memory SQLite shared across threads/sessions for the rollback audit log."""
    engine = create_engine(
        "sqlite://",
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield TestingSessionLocal
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    with session_factory() as session:
        yield session


@pytest.fixture
def store() -> InMemoryMetafieldStore:
    return InMemoryMetafieldStore()


@pytest.fixture
def resources() -> FakeResources:
    return FakeResources()


@pytest.fixture
def rollback_engine(session_factory) -> RollbackEngine:
    return RollbackEngine(session_factory, threshold=0.7)


@pytest.fixture
def usage_limiter(session_factory) -> UsageLimiter:
    return UsageLimiter(session_factory, plan="Pro")


@pytest.fixture
def product_ref(resources) -> ResourceRef:
    ref = ResourceRef.of("product", "101")
    resources.add(ref, "Widget", "<p>A sturdy steel widget for workshop use.</p>")
    return ref


@pytest.fixture
def make_workflow(store, resources, rollback_engine, usage_limiter):
    def _make(
        optimizer: Optional[ContentOptimizer] = None,
        usage: Optional[UsageLimiter] = None,
        **options: Any,
    ) -> DraftWorkflow:
        return DraftWorkflow(
            store,
            resources,
            optimizer or ContentOptimizer(None, mock_mode=True),
            rollback_engine,
            LocalResourceLocker("test:lock", wait_sec=0.2),
            shop="test-shop.myshopify.com",
            options=WorkflowOptions(**options),
            usage=usage or usage_limiter,
        )
    return _make


@pytest.fixture
def workflow(make_workflow) -> DraftWorkflow:
    return make_workflow()
