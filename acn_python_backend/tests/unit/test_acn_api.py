import uuid

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from acn_python_backend.db_session import get_async_session, get_session_factory
from acn_python_backend.interaction_api import router as interaction_router
from acn_python_backend.ledger_api import router as ledger_router
from acn_python_backend.services.embedding_service import get_embedding_service
from acn_python_backend.services.reasoning_client import get_reasoning_client
from acn_python_backend.tests.fixtures.fakes import (
    FakeEmbeddingService,
    FakeReasoningClient,
    base_vector,
    vector_with_similarity,
)


def _build_app(session_factory, embedding_service, reasoning_client):
    async def override_get_async_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = FastAPI()
    app.include_router(interaction_router)
    app.include_router(ledger_router)
    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_embedding_service] = lambda: embedding_service
    app.dependency_overrides[get_reasoning_client] = lambda: reasoning_client
    return app


@pytest_asyncio.fixture
async def client(session_factory, embedding_service, reasoning_client):
    app = _build_app(session_factory, embedding_service, reasoning_client)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


@pytest_asyncio.fixture
async def offline_client(session_factory, failing_embedding_service, reasoning_client):
    app = _build_app(session_factory, failing_embedding_service, reasoning_client)
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http_client:
        yield http_client


# ============================================================================
# Interactions
# ============================================================================

@pytest.mark.asyncio
async def test_submit_interaction_returns_immediately_and_processes_in_background(client):
    response = await client.post("/api/acn/interactions", json={
        "content": "@RiseAI Transit investment pays off because it reduces congestion.",
        "content_id": "post-1",
        "author_id": "user-1",
        "reply_id": "reply-1",
    })

    assert response.status_code == 202
    accepted = response.json()
    assert accepted["status"] == "pending"

    detail = await client.get(f"/api/acn/interactions/{accepted['interaction_id']}")
    assert detail.status_code == 200
    payload = detail.json()
    assert payload["status"] == "completed"
    assert payload["target_content"] == "Transit investment pays off because it reduces congestion."
    assert payload["trigger_reply_id"] == "reply-1"
    assert payload["analysis_result"]["logical_validity"] == pytest.approx(0.8)
    assert payload["response_content"].startswith("**Stability Assessment:**")

    arguments = (await client.get("/api/acn/content/post-1/arguments")).json()
    assert arguments["count"] == 1


@pytest.mark.asyncio
async def test_submit_interaction_validates_body(client):
    response = await client.post("/api/acn/interactions", json={"content": "", "content_id": "p", "author_id": "u"})

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_interaction_errors(client):
    assert (await client.get("/api/acn/interactions/not-a-uuid")).status_code == 400
    assert (await client.get(f"/api/acn/interactions/{uuid.uuid4()}")).status_code == 404


@pytest.mark.asyncio
async def test_author_interaction_history(client):
    for content_id, author_id in [("post-1", "user-1"), ("post-2", "user-2")]:
        response = await client.post("/api/acn/interactions", json={
            "content": "Bike lanes make streets safer.",
            "content_id": content_id,
            "author_id": author_id,
        })
        assert response.status_code == 202

    history = await client.get("/api/acn/authors/user-1/interactions", params={"limit": 5})

    assert history.status_code == 200
    payload = history.json()
    assert payload["count"] == 1
    assert payload["interactions"][0]["trigger_content_id"] == "post-1"
    assert payload["interactions"][0]["status"] == "completed"

    assert (await client.get("/api/acn/authors/user-1/interactions", params={"limit": 0})).status_code == 422


# ============================================================================
# Arguments
# ============================================================================

@pytest.mark.asyncio
async def test_support_and_refute_endpoints(client, make_argument):
    argument = await make_argument("Engaged.", confidence=0.5)
    argument_id = str(argument.id)

    supported = await client.post(f"/api/acn/arguments/{argument_id}/support", json={"actor_id": "u1"})
    assert supported.status_code == 200
    assert supported.json()["new_confidence"] == pytest.approx(0.52)

    refuted = await client.post(f"/api/acn/arguments/{argument_id}/refute", json={"actor_id": "u2"})
    assert refuted.json()["new_confidence"] == pytest.approx(0.5)

    detail = (await client.get(f"/api/acn/arguments/{argument_id}")).json()
    assert detail["support_count"] == 1
    assert detail["refute_count"] == 1
    assert len(detail["confidence_updates"]) == 2
    assert detail["fact_links"] == []


@pytest.mark.asyncio
async def test_argument_errors_map_to_status_codes(client):
    missing = await client.post(f"/api/acn/arguments/{uuid.uuid4()}/support", json={"actor_id": "u1"})
    malformed = await client.get("/api/acn/arguments/not-a-uuid")

    assert missing.status_code == 404
    assert malformed.status_code == 400


@pytest.mark.asyncio
async def test_direct_confidence_update_reports_propagation(client, make_argument):
    origin = await make_argument("Origin.", embedding=base_vector(), confidence=0.5)
    neighbour = await make_argument("Neighbour.", embedding=vector_with_similarity(0.9), confidence=0.5)
    origin_id, neighbour_id = str(origin.id), str(neighbour.id)

    response = await client.put(
        f"/api/acn/arguments/{origin_id}/confidence",
        json={"confidence": 0.9, "reason": "new study"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["old_confidence"] == 0.5
    assert body["new_confidence"] == 0.9
    assert body["propagated_to"] == [neighbour_id]


@pytest.mark.asyncio
async def test_top_arguments_listing(client, make_argument):
    await make_argument("Low.", confidence=0.1)
    await make_argument("High.", confidence=0.9)

    body = (await client.get("/api/acn/arguments", params={"limit": 1})).json()

    assert body["count"] == 1
    assert body["arguments"][0]["content"] == "High."


@pytest.mark.asyncio
async def test_merge_cluster_errors(client, make_argument):
    cluster_id = uuid.uuid4()
    await make_argument("Member.", cluster_id=cluster_id, is_cluster_head=True)

    same = await client.post("/api/acn/clusters/merge", json={
        "source_cluster_id": str(cluster_id),
        "target_cluster_id": str(cluster_id),
    })
    missing = await client.post("/api/acn/clusters/merge", json={
        "source_cluster_id": str(uuid.uuid4()),
        "target_cluster_id": str(cluster_id),
    })

    assert same.status_code == 400
    assert missing.status_code == 404


# ============================================================================
# Facts
# ============================================================================

@pytest.mark.asyncio
async def test_fact_lifecycle(client, make_argument):
    argument = await make_argument("Depends on ridership.", confidence=0.8)
    argument_id = str(argument.id)

    created = await client.post("/api/acn/facts", json={"claim": "Ridership rose 12%.", "initial_confidence": 1.0})
    assert created.status_code == 201
    fact_id = created.json()["id"]

    linked = await client.post(
        f"/api/acn/arguments/{argument_id}/facts",
        json={"fact_id": fact_id, "dependency_strength": 0.5},
    )
    assert linked.status_code == 200
    assert linked.json()["effective_confidence"] == pytest.approx(0.8)

    challenged = await client.post(f"/api/acn/facts/{fact_id}/challenge", json={"reason": "stale data"})
    assert challenged.status_code == 200
    assert challenged.json()["new_confidence"] == pytest.approx(0.95)
    assert challenged.json()["affected_arguments"] == [argument_id]

    cited = await client.post(f"/api/acn/facts/{fact_id}/cite", json={"context_content_id": "post-5"})
    assert cited.json()["new_confidence"] == pytest.approx(0.97)

    fact = (await client.get(f"/api/acn/facts/{fact_id}")).json()
    assert fact["dependent_arguments"] == [argument_id]
    assert fact["challenge_count"] == 1
    assert fact["citation_count"] == 1

    searched = (await client.get("/api/acn/facts", params={"query": "ridership"})).json()
    assert searched["count"] == 1

    effective = await client.post(f"/api/acn/arguments/{argument_id}/effective-confidence")
    assert effective.json()["effective_confidence"] == pytest.approx(0.8 * (0.5 + 0.5 * 0.97))


@pytest.mark.asyncio
async def test_fact_creation_without_embeddings_is_unavailable(offline_client):
    response = await offline_client.post("/api/acn/facts", json={"claim": "Unembeddable."})

    assert response.status_code == 503


@pytest.mark.asyncio
async def test_unknown_fact(client):
    assert (await client.get(f"/api/acn/facts/{uuid.uuid4()}")).status_code == 404
    challenged = await client.post(f"/api/acn/facts/{uuid.uuid4()}/challenge", json={"reason": "x"})
    assert challenged.status_code == 404


@pytest.mark.asyncio
async def test_fact_confidence_bands(client, make_fact):
    await make_fact("Weak.", confidence=0.1)
    await make_fact("Strong.", confidence=0.9)

    low = (await client.get("/api/acn/facts/low-confidence")).json()
    established = (await client.get("/api/acn/facts/established")).json()

    assert [f["claim"] for f in low["facts"]] == ["Weak."]
    assert [f["claim"] for f in established["facts"]] == ["Strong."]


def test_app_mounts_both_routers_and_health():
    from acn_python_backend.backend import acn_app

    paths = {route.path for route in acn_app.routes}

    assert "/api/acn/health" in paths
    assert "/api/acn/interactions" in paths
    assert "/api/acn/arguments/{argument_id}/support" in paths
    assert "/api/acn/facts/{fact_id}/challenge" in paths
