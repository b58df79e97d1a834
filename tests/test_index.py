from __future__ import annotations

import asyncio
from urllib.parse import parse_qs

import pytest

from conftest import make_settings
from adapters.client import IndexClient
from core.domain.errors import InvalidResponseError, TransportError
from core.domain.models import IndexQuery, MultipleQueriesStrategy, Query
from core.interfaces.transport import HttpMethod

SEARCH_PATH = "1/indexes/products/query"
QUERIES_PATH = "1/indexes/*/queries"


def test_search_posts_params_to_read_hosts(client, transport):
    transport.add(HttpMethod.POST, SEARCH_PATH, {"hits": [{"objectID": "1"}], "nbHits": 1})
    index = client.get_index("products")

    async def main():
        return await index.search(Query(query="shoe", hits_per_page=5))

    content = asyncio.run(main())

    assert content["nbHits"] == 1
    (call,) = transport.calls
    assert call.is_search_query is True
    assert call.hosts == client.read_hosts
    assert parse_qs(call.body["params"]) == {"hitsPerPage": ["5"], "query": ["shoe"]}


def test_cached_search_skips_the_transport_but_still_delivers_later(client, transport):
    transport.add(HttpMethod.POST, SEARCH_PATH, {"hits": [], "nbHits": 0})
    index = client.get_index("products")
    index.enable_search_cache(60)
    delivered = []

    async def main():
        first = await index.search(Query(query="shoe"))
        op = index.search(Query(query="shoe"), lambda r, e: delivered.append((r, e)))
        assert delivered == []
        second = await op
        return first, second

    first, second = asyncio.run(main())

    assert first == second == {"hits": [], "nbHits": 0}
    assert delivered == [(first, None)]
    assert len(transport.calls) == 1


def test_failed_searches_are_not_cached(client, transport):
    transport.add(
        HttpMethod.POST,
        SEARCH_PATH,
        TransportError("unavailable", status_code=503),
        {"hits": [], "nbHits": 0},
    )
    index = client.get_index("products")
    index.enable_search_cache()

    async def main():
        with pytest.raises(TransportError):
            await index.search(Query(query="x"))
        return await index.search(Query(query="x"))

    assert asyncio.run(main()) == {"hits": [], "nbHits": 0}
    assert len(transport.calls) == 2


def test_clear_and_disable_search_cache(client, transport):
    transport.add(HttpMethod.POST, SEARCH_PATH, {"n": 1}, {"n": 2}, {"n": 3})
    index = client.get_index("products")
    index.enable_search_cache(60)
    assert index.search_cache is not None
    assert index.search_cache.ttl == 60

    async def main():
        results = [await index.search(Query(query="q"))]
        index.clear_search_cache()
        results.append(await index.search(Query(query="q")))
        index.disable_search_cache()
        results.append(await index.search(Query(query="q")))
        return results

    assert asyncio.run(main()) == [{"n": 1}, {"n": 2}, {"n": 3}]
    assert index.search_cache is None


def test_default_cache_ttl_comes_from_settings(transport):
    client = IndexClient(make_settings(search_cache_ttl_seconds=30), transport=transport)
    index = client.get_index("products")

    index.enable_search_cache()

    assert index.search_cache.ttl == 30


def test_disjunctive_faceting_fans_out_in_one_batch(client, transport):
    transport.add(
        HttpMethod.POST,
        QUERIES_PATH,
        {
            "results": [
                {"hits": [{"objectID": "1"}], "nbHits": 1, "exhaustiveFacetsCount": True},
                {"hits": [], "facets": {"color": {"red": 3}}, "exhaustiveFacetsCount": False},
            ]
        },
    )
    index = client.get_index("products")

    async def main():
        return await index.search_disjunctive_faceting(
            Query(query="shoe"),
            ["color"],
            {"color": ["red", "blue"], "brand": ["acme"]},
        )

    result = asyncio.run(main())

    assert result.disjunctive_facets == {"color": {"red": 3, "blue": 0}}
    assert result.exhaustive_facets_count is False
    (call,) = transport.calls
    assert call.is_search_query is True
    requests = call.body["requests"]
    assert [r["indexName"] for r in requests] == ["products", "products"]
    facet_params = parse_qs(requests[1]["params"])
    assert facet_params["hitsPerPage"] == ["0"]
    assert facet_params["analytics"] == ["false"]
    assert facet_params["facetFilters"] == ['["brand:acme"]']
    assert "strategy" not in call.body


def test_disjunctive_faceting_cancelled_before_the_response(client, transport):
    transport.add(HttpMethod.POST, QUERIES_PATH, {"results": [{"hits": []}, {"facets": {}}]})
    index = client.get_index("products")
    delivered = []

    async def main():
        op = index.search_disjunctive_faceting(
            Query(), ["color"], {}, lambda r, e: delivered.append((r, e))
        )
        op.cancel()
        await asyncio.sleep(0.01)
        return op

    op = asyncio.run(main())

    assert op.is_cancelled
    assert delivered == []
    assert transport.calls == []


def test_multiple_queries_returns_raw_results_and_sends_strategy(client, transport):
    transport.add(HttpMethod.POST, QUERIES_PATH, {"results": [{"nbHits": 1}, {"nbHits": 2}]})
    index = client.get_index("products")

    async def main():
        return await index.multiple_queries(
            [Query(query="a"), Query(query="b")],
            MultipleQueriesStrategy.STOP_IF_ENOUGH_MATCHES,
        )

    results = asyncio.run(main())

    assert results == [{"nbHits": 1}, {"nbHits": 2}]
    assert transport.calls[0].body["strategy"] == "stopIfEnoughMatches"


def test_multiple_queries_across_indices_requires_results(client, transport):
    transport.add(HttpMethod.POST, QUERIES_PATH, {"message": "no results"})

    async def main():
        return await client.multiple_queries(
            [IndexQuery(index_name="a"), IndexQuery(index_name="b")],
            "none",
        )

    with pytest.raises(InvalidResponseError):
        asyncio.run(main())
    assert [r["indexName"] for r in transport.calls[0].body["requests"]] == ["a", "b"]


def test_wait_task_polls_the_write_hosts(client, transport):
    path = "1/indexes/products/task/99"
    transport.add(HttpMethod.GET, path, {"status": "notPublished"}, {"status": "published"})
    index = client.get_index("products")

    async def main():
        return await index.wait_task(99)

    status = asyncio.run(main())

    assert status.is_published
    assert [c.hosts for c in transport.calls] == [client.write_hosts, client.write_hosts]


def test_delete_by_query_end_to_end(client, transport):
    browse_path = "1/indexes/products/browse"
    transport.add(
        HttpMethod.POST,
        browse_path,
        {"hits": [{"objectID": "a"}, {"objectID": "b"}], "cursor": "c1"},
        {"hits": []},
    )
    transport.add(HttpMethod.POST, "1/indexes/products/batch", {"taskID": 5})
    transport.add(HttpMethod.GET, "1/indexes/products/task/5", {"status": "published"})
    index = client.get_index("products")
    delivered = []

    async def main():
        await index.delete_by_query(Query(filters="stock = 0"), lambda r, e: delivered.append((r, e)))

    asyncio.run(main())

    assert delivered == [(None, None)]
    assert [(c.method, c.path) for c in transport.calls] == [
        (HttpMethod.POST, browse_path),
        (HttpMethod.POST, "1/indexes/products/batch"),
        (HttpMethod.GET, "1/indexes/products/task/5"),
        (HttpMethod.POST, browse_path),
    ]
    params = parse_qs(transport.calls[0].body["params"])
    assert params["attributesToRetrieve"] == ['["objectID"]']
    assert params["filters"] == ["stock = 0"]
    assert transport.calls[1].body == {
        "requests": [
            {"action": "deleteObject", "objectID": "a"},
            {"action": "deleteObject", "objectID": "b"},
        ]
    }


def test_browse_from_cursor_uses_get(client, transport):
    transport.add(HttpMethod.GET, "1/indexes/products/browse", {"hits": []})
    index = client.get_index("products")

    async def main():
        return await index.browse_from("abc/=")

    asyncio.run(main())

    assert transport.calls[0].path == "1/indexes/products/browse?cursor=abc%2F%3D"
    assert transport.calls[0].body is None


def test_object_paths_are_url_encoded(client, transport):
    transport.add(HttpMethod.PUT, "1/indexes/my%20index/obj%2F1", {"updatedAt": "now"})
    index = client.get_index("my index")

    async def main():
        return await index.add_object({"name": "x"}, object_id="obj/1")

    asyncio.run(main())

    assert transport.calls[0].hosts == client.write_hosts


def test_batch_helpers_build_requests(client, transport):
    transport.add(HttpMethod.POST, "1/indexes/products/batch", {"taskID": 1}, {"taskID": 2}, {"taskID": 3})
    index = client.get_index("products")

    async def main():
        await index.add_objects([{"name": "a"}])
        await index.save_objects([{"objectID": "1", "name": "b"}])
        await index.partial_update_objects([{"objectID": "2", "stock": 0}])

    asyncio.run(main())

    actions = [c.body["requests"][0]["action"] for c in transport.calls]
    assert actions == ["addObject", "updateObject", "partialUpdateObject"]
    assert transport.calls[1].body["requests"][0]["objectID"] == "1"


def test_save_object_requires_object_id(client):
    index = client.get_index("products")

    with pytest.raises(ValueError):
        index.save_object({"name": "no id"})


def test_get_objects_and_settings_use_read_hosts(client, transport):
    transport.add(HttpMethod.POST, "1/indexes/*/objects", {"results": []})
    transport.add(HttpMethod.GET, "1/indexes/products/settings", {"hitsPerPage": 20})
    transport.add(HttpMethod.PUT, "1/indexes/products/settings", {"taskID": 3})
    index = client.get_index("products")

    async def main():
        await index.get_objects(["1", "2"], attributes_to_retrieve=["name", "price"])
        await index.get_settings()
        await index.set_settings({"hitsPerPage": 10}, forward_to_replicas=True)

    asyncio.run(main())

    objects_call, get_settings_call, set_settings_call = transport.calls
    assert objects_call.hosts == client.read_hosts
    assert objects_call.body["requests"][0] == {
        "indexName": "products",
        "objectID": "1",
        "attributesToRetrieve": "name,price",
    }
    assert get_settings_call.hosts == client.read_hosts
    assert set_settings_call.path == "1/indexes/products/settings?forwardToReplicas=true"
    assert set_settings_call.hosts == client.write_hosts


def test_editing_a_search_result_does_not_leak_into_cache_hits(client, transport):
    transport.add(HttpMethod.POST, SEARCH_PATH, {"hits": [{"objectID": "1"}], "nbHits": 1})
    index = client.get_index("products")
    index.enable_search_cache(60)

    async def main():
        first = await index.search(Query(query="shoe"))
        first["hits"].clear()
        first["nbHits"] = 999
        second = await index.search(Query(query="shoe"))
        second["hits"].append({"objectID": "2"})
        third = await index.search(Query(query="shoe"))
        return second, third

    second, third = asyncio.run(main())

    assert third == {"hits": [{"objectID": "1"}], "nbHits": 1}
    assert second is not third
    assert len(transport.calls) == 1


def test_disjunctive_faceting_cancelled_while_the_batch_is_in_flight(client, transport):
    transport.add(
        HttpMethod.POST,
        QUERIES_PATH,
        {"results": [{"hits": []}, {"facets": {"color": {"red": 1}}}]},
    )
    index = client.get_index("products")
    delivered = []

    async def main():
        op = index.search_disjunctive_faceting(
            Query(), ["color"], {"color": ["red"]}, lambda r, e: delivered.append((r, e))
        )
        while not transport.calls:
            await asyncio.sleep(0)
        op.cancel()
        await asyncio.sleep(0.01)
        with pytest.raises(asyncio.CancelledError):
            await op
        return op

    op = asyncio.run(main())

    assert op.is_cancelled
    assert delivered == []
    assert len(transport.calls) == 1


def test_delete_by_query_cancelled_while_waiting_for_the_task(client, transport):
    browse_path = "1/indexes/products/browse"
    task_path = "1/indexes/products/task/5"
    transport.add(HttpMethod.POST, browse_path, {"hits": [{"objectID": "a"}], "cursor": "c1"})
    transport.add(HttpMethod.POST, "1/indexes/products/batch", {"taskID": 5})
    transport.add(HttpMethod.GET, task_path, *({"status": "notPublished"} for _ in range(50)))
    index = client.get_index("products")
    delivered = []

    async def main():
        op = index.delete_by_query(Query(filters="stock = 0"), lambda r, e: delivered.append((r, e)))
        while not transport.calls_to(HttpMethod.GET, task_path):
            await asyncio.sleep(0)
        op.cancel()
        await asyncio.sleep(0.05)
        return op

    op = asyncio.run(main())

    assert op.is_cancelled
    assert delivered == []
    assert len(transport.calls_to(HttpMethod.POST, browse_path)) == 1
    assert len(transport.calls_to(HttpMethod.POST, "1/indexes/products/batch")) == 1
    polls = len(transport.calls_to(HttpMethod.GET, task_path))
    assert 1 <= polls < 50
