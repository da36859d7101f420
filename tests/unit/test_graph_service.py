"""Unit tests for GraphService operations."""

from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from knowledge_graph_service.config import DecaySettings
from knowledge_graph_service.errors import (
    ConflictError,
    InvalidArgumentError,
    NotFoundError,
    RateLimitExceededError,
    StoreUnavailableError,
)
from knowledge_graph_service.models.responses import to_wire
from knowledge_graph_service.services.graph_service import GraphService
from knowledge_graph_service.storage.document import GraphDocumentStore
from knowledge_graph_service.utils.timestamps import to_iso

CALLER = "10.0.0.1"


async def seed(service, *entities):
    for name, entity_type, observations in entities:
        await service.create_entity(
            {"name": name, "entityType": entity_type, "observations": observations}, identity=CALLER
        )


class TestCreateEntity:
    @pytest.mark.asyncio
    async def test_create_returns_name_type_and_limits(self, graph_service):
        result = await graph_service.create_entity(
            {"name": "Aineko", "entityType": "agent", "observations": ["Built OpenClaw"]}, identity=CALLER
        )
        assert to_wire(result.value) == {"created": "Aineko", "entityType": "agent"}
        assert result.rate_limit.limit == 10
        assert result.rate_limit.remaining == 9

    @pytest.mark.asyncio
    async def test_observations_normalized(self, graph_service, documents, clock):
        await graph_service.create_entity(
            {
                "name": "Aineko",
                "entityType": "agent",
                "observations": ["Built OpenClaw", {"text": "Older", "observed_at": "2026-01-01T00:00:00Z"}],
            },
            identity=CALLER,
        )
        doc, _ = await documents.load()
        first, second = doc.entities[0].observations
        assert first.observed_at == clock()
        assert first.access_count == 0
        assert first.relevance == 1.0
        assert to_iso(second.observed_at) == "2026-01-01T00:00:00.000Z"
        assert doc.entities[0].created == doc.entities[0].updated == clock()

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, graph_service):
        await seed(graph_service, ("Aineko", "agent", []))
        with pytest.raises(ConflictError):
            await seed(graph_service, ("Aineko", "tool", []))

    @pytest.mark.asyncio
    async def test_names_are_case_sensitive(self, graph_service):
        await seed(graph_service, ("Aineko", "agent", []), ("aineko", "agent", []))
        doc, _ = await graph_service.documents.load()
        assert len(doc.entities) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"name": "X"}, {"entityType": "agent"}, {"name": "", "entityType": "agent"}])
    async def test_missing_fields_invalid(self, graph_service, body):
        with pytest.raises(InvalidArgumentError):
            await graph_service.create_entity(body, identity=CALLER)

    @pytest.mark.asyncio
    async def test_non_object_body_invalid(self, graph_service):
        with pytest.raises(InvalidArgumentError):
            await graph_service.create_entity(["Aineko"], identity=CALLER)

    @pytest.mark.asyncio
    async def test_eleventh_create_rate_limited(self, graph_service):
        for i in range(10):
            await seed(graph_service, (f"E{i}", "agent", []))
        with pytest.raises(RateLimitExceededError):
            await seed(graph_service, ("E10", "agent", []))

        doc, _ = await graph_service.documents.load()
        assert len(doc.entities) == 10


class TestAddObservation:
    @pytest.mark.asyncio
    async def test_appends_and_touches_updated(self, graph_service, clock):
        await seed(graph_service, ("Orac", "agent", []))
        clock.advance(hours=1)

        result = await graph_service.add_observation({"name": "Orac", "observation": "Joined"}, identity=CALLER)

        assert to_wire(result.value) == {"added": "Joined", "to": "Orac"}
        assert result.rate_limit.limit == 50
        doc, _ = await graph_service.documents.load()
        entity = doc.find_entity("Orac")
        assert entity.observations[-1].observed_at == clock()
        assert entity.updated == clock()
        assert entity.created == clock() - timedelta(hours=1)

    @pytest.mark.asyncio
    async def test_echoes_expiry(self, graph_service):
        await seed(graph_service, ("Orac", "agent", []))
        result = await graph_service.add_observation(
            {"name": "Orac", "observation": "Down", "expires_at": "2026-03-02T00:00:00Z"}, identity=CALLER
        )
        assert to_wire(result.value)["expires_at"] == "2026-03-02T00:00:00.000Z"

    @pytest.mark.asyncio
    async def test_empty_expiry_means_never_expires(self, graph_service, clock):
        await seed(graph_service, ("Orac", "agent", [{"text": "Joined", "observed_at": ""}]))
        result = await graph_service.add_observation(
            {"name": "Orac", "observation": "Online", "expires_at": ""}, identity=CALLER
        )
        assert to_wire(result.value) == {"added": "Online", "to": "Orac"}

        doc, _ = await graph_service.documents.load()
        first, second = doc.find_entity("Orac").observations
        assert first.observed_at == clock()
        assert second.expires_at is None

    @pytest.mark.asyncio
    async def test_unknown_entity(self, graph_service):
        with pytest.raises(NotFoundError):
            await graph_service.add_observation({"name": "Ghost", "observation": "x"}, identity=CALLER)

    @pytest.mark.asyncio
    async def test_missing_text(self, graph_service):
        await seed(graph_service, ("Orac", "agent", []))
        with pytest.raises(InvalidArgumentError):
            await graph_service.add_observation({"name": "Orac"}, identity=CALLER)


class TestCreateRelation:
    @pytest.mark.asyncio
    async def test_duplicate_triple_conflicts(self, graph_service):
        await seed(graph_service, ("Aineko", "agent", []), ("OpenClaw", "platform", []))
        body = {"source": "Aineko", "relation": "built", "target": "OpenClaw"}

        result = await graph_service.create_relation(body, identity=CALLER)
        assert to_wire(result.value) == {"created": "Aineko --[built]--> OpenClaw"}

        with pytest.raises(ConflictError):
            await graph_service.create_relation(body, identity=CALLER)

    @pytest.mark.asyncio
    async def test_same_endpoints_different_label_allowed(self, graph_service):
        await seed(graph_service, ("Aineko", "agent", []), ("OpenClaw", "platform", []))
        await graph_service.create_relation(
            {"source": "Aineko", "relation": "built", "target": "OpenClaw"}, identity=CALLER
        )
        await graph_service.create_relation(
            {"source": "Aineko", "relation": "uses", "target": "OpenClaw"}, identity=CALLER
        )
        doc, _ = await graph_service.documents.load()
        assert len(doc.relations) == 2

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "source,target",
        [("Ghost", "OpenClaw"), ("Aineko", "Ghost")],
    )
    async def test_missing_endpoint(self, graph_service, source, target):
        await seed(graph_service, ("Aineko", "agent", []), ("OpenClaw", "platform", []))
        with pytest.raises(NotFoundError):
            await graph_service.create_relation(
                {"source": source, "relation": "built", "target": target}, identity=CALLER
            )

    @pytest.mark.asyncio
    async def test_missing_label(self, graph_service):
        with pytest.raises(InvalidArgumentError):
            await graph_service.create_relation({"source": "a", "target": "b"}, identity=CALLER)


class TestGetEntity:
    @pytest.mark.asyncio
    async def test_expired_observation_hidden_by_default(self, graph_service, clock):
        await seed(graph_service, ("Aineko", "agent", ["Built OpenClaw"]))
        await graph_service.add_observation(
            {
                "name": "Aineko",
                "observation": "Shipped v2",
                "expires_at": to_iso(clock() - timedelta(seconds=1)),
            },
            identity=CALLER,
        )

        view = (await graph_service.get_entity({"name": "Aineko"}, identity=CALLER)).value
        assert [o.text for o in view.observations] == ["Built OpenClaw"]

        everything = (
            await graph_service.get_entity({"name": "Aineko", "include_expired": True}, identity=CALLER)
        ).value
        assert [o.text for o in everything.observations] == ["Built OpenClaw", "Shipped v2"]
        assert everything.observations[1].expired is True
        assert everything.observations[0].expired is None

    @pytest.mark.asyncio
    async def test_view_shape(self, graph_service, clock):
        await seed(graph_service, ("Aineko", "agent", ["Built OpenClaw"]), ("OpenClaw", "platform", []))
        await graph_service.create_relation(
            {"source": "Aineko", "relation": "built", "target": "OpenClaw"}, identity=CALLER
        )
        clock.advance(days=30)

        wire = to_wire((await graph_service.get_entity({"name": "OpenClaw"}, identity=CALLER)).value)
        assert wire["relations"] == [{"direction": "incoming", "relation": "built", "entity": "Aineko"}]

        wire = to_wire((await graph_service.get_entity({"name": "Aineko"}, identity=CALLER)).value)
        assert wire["type"] == "agent"
        assert wire["observations"] == [
            {"text": "Built OpenClaw", "score": 0.5, "observed_at": "2026-03-01T12:00:00.000Z"}
        ]
        assert wire["relations"] == [{"direction": "outgoing", "relation": "built", "entity": "OpenClaw"}]

    @pytest.mark.asyncio
    async def test_expired_relations_hidden(self, graph_service, clock):
        await seed(graph_service, ("A", "agent", []), ("B", "agent", []))
        await graph_service.create_relation(
            {"source": "A", "relation": "contacted", "target": "B", "expires_at": to_iso(clock() + timedelta(days=1))},
            identity=CALLER,
        )
        assert len((await graph_service.get_entity({"name": "A"}, identity=CALLER)).value.relations) == 1

        clock.advance(days=2)
        assert (await graph_service.get_entity({"name": "A"}, identity=CALLER)).value.relations == []

    @pytest.mark.asyncio
    async def test_scores_fall_as_time_advances(self, graph_service, clock):
        await seed(graph_service, ("Orac", "agent", ["fact"]))
        first = (await graph_service.get_entity({"name": "Orac"}, identity=CALLER)).value.observations[0].score
        again = (await graph_service.get_entity({"name": "Orac"}, identity=CALLER)).value.observations[0].score
        clock.advance(days=3)
        later = (await graph_service.get_entity({"name": "Orac"}, identity=CALLER)).value.observations[0].score

        assert first == again == 1.0
        assert later < first

    @pytest.mark.asyncio
    async def test_unknown_entity(self, graph_service):
        with pytest.raises(NotFoundError):
            await graph_service.get_entity({"name": "Ghost"}, identity=CALLER)

    @pytest.mark.asyncio
    async def test_reads_do_not_write(self, graph_service, kv):
        await seed(graph_service, ("Orac", "agent", ["fact"]))
        before = await kv.get("test_graph")
        await graph_service.get_entity({"name": "Orac"}, identity=CALLER)
        await graph_service.search({"query": "orac"}, identity=CALLER)
        assert await kv.get("test_graph") == before


class TestSearch:
    @pytest.mark.asyncio
    async def test_case_insensitive_substring(self, graph_service):
        await seed(
            graph_service,
            ("Orac", "agent", ["Explores memory architecture"]),
            ("Moltbook", "platform", []),
            ("x402", "protocol", ["Micropayments"]),
        )
        result = (await graph_service.search({"query": "MEMORY"}, identity=CALLER)).value
        assert [r.name for r in result.results] == ["Orac"]

        result = (await graph_service.search({"query": "plat"}, identity=CALLER)).value
        assert [r.name for r in result.results] == ["Moltbook"]

    @pytest.mark.asyncio
    async def test_expired_text_does_not_match(self, graph_service, clock):
        await seed(graph_service, ("Pith", "agent", []))
        await graph_service.add_observation(
            {"name": "Pith", "observation": "suspended until Feb", "expires_at": to_iso(clock() + timedelta(hours=1))},
            identity=CALLER,
        )
        assert (await graph_service.search({"query": "suspended"}, identity=CALLER)).value.count == 1

        clock.advance(hours=2)
        assert (await graph_service.search({"query": "suspended"}, identity=CALLER)).value.count == 0
        assert (await graph_service.search({"query": "pith"}, identity=CALLER)).value.count == 1
        assert (await graph_service.search({"query": "agent"}, identity=CALLER)).value.count == 1

    @pytest.mark.asyncio
    async def test_ranked_by_mean_score(self, graph_service, clock):
        await seed(
            graph_service,
            ("Old", "agent", [{"text": "a", "observed_at": to_iso(clock() - timedelta(days=60))}]),
            ("Empty", "agent", []),
            ("Fresh", "agent", ["a"]),
        )
        result = (await graph_service.search({"query": "agent"}, identity=CALLER)).value

        assert [r.name for r in result.results] == ["Fresh", "Old", "Empty"]
        assert [r.score for r in result.results] == [1.0, 0.25, 0.0]
        assert result.count == 3
        assert result.query == "agent"

    @pytest.mark.asyncio
    async def test_ties_keep_document_order(self, graph_service):
        await seed(graph_service, ("B", "tool", ["x"]), ("A", "tool", ["x"]), ("C", "tool", ["x"]))
        result = (await graph_service.search({"query": "tool"}, identity=CALLER)).value
        assert [r.name for r in result.results] == ["B", "A", "C"]

    @pytest.mark.asyncio
    async def test_empty_query_invalid(self, graph_service):
        with pytest.raises(InvalidArgumentError):
            await graph_service.search({"query": ""}, identity=CALLER)


class TestStatsAndGraph:
    @pytest.mark.asyncio
    async def test_stats(self, graph_service, clock):
        await seed(graph_service, ("Orac", "agent", ["a", "b"]), ("NanoClaw", "platform", []))
        await graph_service.add_observation(
            {"name": "NanoClaw", "observation": "outage", "expires_at": to_iso(clock())}, identity=CALLER
        )
        await graph_service.create_relation(
            {"source": "Orac", "relation": "runs_on", "target": "NanoClaw"}, identity=CALLER
        )
        await graph_service.create_relation(
            {"source": "NanoClaw", "relation": "hosts", "target": "Orac", "expires_at": to_iso(clock())},
            identity=CALLER,
        )

        stats = to_wire(await graph_service.stats())
        assert stats == {
            "entities": 2,
            "relations": 1,
            "observations": {"active": 2, "expired": 1},
            "decay": {"avg_score": 1.0, "half_life_days": 30},
            "types": {"agent": 1, "platform": 1},
        }

    @pytest.mark.asyncio
    async def test_stats_on_empty_graph(self, graph_service):
        stats = await graph_service.stats()
        assert stats.entities == 0
        assert stats.decay.avg_score == 0.0

    @pytest.mark.asyncio
    async def test_fractional_half_life_stays_fractional(self, documents, clock):
        service = GraphService(documents, decay=DecaySettings(half_life_days=7.5), clock=clock)
        stats = to_wire(await service.stats())
        assert stats["decay"]["half_life_days"] == 7.5

    @pytest.mark.asyncio
    async def test_whole_half_life_renders_as_integer(self, graph_service):
        half_life = to_wire(await graph_service.stats())["decay"]["half_life_days"]
        assert half_life == 30
        assert isinstance(half_life, int)

    @pytest.mark.asyncio
    async def test_read_graph_lists_active_relations(self, graph_service, clock):
        await seed(graph_service, ("A", "agent", ["x"]), ("B", "agent", []))
        await graph_service.create_relation({"source": "A", "relation": "uses", "target": "B"}, identity=CALLER)
        await graph_service.create_relation(
            {"source": "B", "relation": "uses", "target": "A", "expires_at": to_iso(clock())}, identity=CALLER
        )

        graph = to_wire(await graph_service.read_graph())
        assert [e["name"] for e in graph["entities"]] == ["A", "B"]
        assert graph["relations"] == [{"source": "A", "relation": "uses", "target": "B"}]


class TestFailurePolicy:
    @pytest.mark.asyncio
    async def test_store_failure_surfaces(self, rate_limiter, clock):
        kv = AsyncMock()
        kv.get.side_effect = StoreUnavailableError("Store get failed")
        service = GraphService(GraphDocumentStore(kv), rate_limiter=None, clock=clock)

        with pytest.raises(StoreUnavailableError):
            await service.search({"query": "x"}, identity=CALLER)

    @pytest.mark.asyncio
    async def test_failed_mutation_writes_nothing(self, graph_service, kv):
        await seed(graph_service, ("Aineko", "agent", []))
        before = await kv.get("test_graph")

        with pytest.raises(NotFoundError):
            await graph_service.create_relation(
                {"source": "Aineko", "relation": "built", "target": "Ghost"}, identity=CALLER
            )
        assert await kv.get("test_graph") == before

    @pytest.mark.asyncio
    async def test_without_rate_limiter_no_limit_info(self, documents, clock):
        service = GraphService(documents, rate_limiter=None, clock=clock)
        result = await service.create_entity({"name": "X", "entityType": "t"}, identity=CALLER)
        assert result.rate_limit is None
