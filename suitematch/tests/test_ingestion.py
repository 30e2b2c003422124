"""
Tests for the ingestion orchestrator.
The upstream client is replaced with an in-process fake.
"""
import threading
import time

import pytest

from suitematch.client.datafiniti import DatafinitiClient, UpstreamCallError
from suitematch.config import DatafinitiConfig, IngestionConfig, NormalizationConfig
from suitematch.models.ingestion import CallSpec, IngestionStatus
from suitematch.models.listing import Listing, SearchResponse
from suitematch.pipeline.ingestion import (
    IngestionOrchestrator,
    ListingCache,
    deduplicate_listings,
)
from suitematch.pipeline.normalizer import RecordNormalizer


CITY_COORDS = {
    "San Francisco": (37.7749, -122.4194),
    "Berkeley": (37.8715, -122.2730),
    "Palo Alto": (37.4419, -122.1430),
    "San Jose": (37.3382, -121.8863),
}


def make_record(record_id: str, city: str, price: int = 2000) -> dict:
    lat, lon = CITY_COORDS[city]
    return {
        "id": record_id,
        "address": f"{record_id} Main St",
        "city": city,
        "province": "CA",
        "latitude": lat,
        "longitude": lon,
        "prices": [{"amount": price, "type": "Rent"}],
    }


def city_of(query: str) -> str:
    return query.split('city:"')[1].split('"')[0]


class FakeClient(DatafinitiClient):
    """Records every query and answers through a responder function."""

    def __init__(self, responder, api_key: str = "test-key"):
        super().__init__(DatafinitiConfig(api_key=api_key))
        self.responder = responder
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def search(self, query: str, num_records: int = 1) -> SearchResponse:
        with self._lock:
            self.calls.append(query)
        return self.responder(query)


def one_record_per_city(query: str) -> SearchResponse:
    city = city_of(query)
    slug = city.replace(" ", "").lower()
    return SearchResponse(records=[make_record(f"{slug}-1", city)])


def make_orchestrator(client: DatafinitiClient, cache: ListingCache = None) -> IngestionOrchestrator:
    return IngestionOrchestrator(
        client,
        normalizer=RecordNormalizer(NormalizationConfig()),
        cache=cache,
        config=IngestionConfig(),
    )


class TestPlan:
    """Tests for the call partition."""

    def test_partition_has_ten_calls(self):
        orchestrator = make_orchestrator(FakeClient(one_record_per_city))
        plan = orchestrator.plan()

        assert len(plan) == 10
        localities = [spec.locality for spec in plan]
        assert localities[:4] == ["San Francisco"] * 4
        assert localities.count("Berkeley") == 2
        assert localities.count("Palo Alto") == 2
        assert localities.count("San Jose") == 2
        assert [spec.ordinal for spec in plan[:4]] == [1, 2, 3, 4]

    def test_user_query_in_every_call(self):
        orchestrator = make_orchestrator(FakeClient(one_record_per_city))
        plan = orchestrator.plan("numBedroom:2")
        assert all(spec.query.endswith("AND (numBedroom:2)") for spec in plan)

    def test_cache_keys_are_per_call(self):
        orchestrator = make_orchestrator(FakeClient(one_record_per_city))
        keys = [spec.cache_key for spec in orchestrator.plan()]
        assert len(set(keys)) == 10
        assert keys[0] == 'sanfrancisco1_province:CA AND city:"San Francisco"'

    def test_call_label(self):
        spec = CallSpec(locality="Palo Alto", ordinal=2, query="q")
        assert spec.label == "Palo Alto (Call 2)"


class TestRunCycle:
    """Tests for IngestionOrchestrator.run_cycle."""

    def test_success_deduplicates(self):
        client = FakeClient(one_record_per_city)
        result = make_orchestrator(client).run_cycle()

        assert result.status == IngestionStatus.SUCCEEDED
        assert len(client.calls) == 10
        # Every call in a locality returns the same record id
        assert [l.listing_id for l in result.listings] == [
            "sanfrancisco-1",
            "berkeley-1",
            "paloalto-1",
            "sanjose-1",
        ]

    def test_first_seen_occurrence_kept(self):
        def responder(query):
            city = city_of(query)
            price = 1500 if city == "San Francisco" else 3000
            return SearchResponse(records=[make_record("shared", "San Francisco", price)])

        result = make_orchestrator(FakeClient(responder)).run_cycle()
        assert len(result.listings) == 1
        assert result.listings[0].price == 1500

    def test_partial_failure_keeps_other_calls(self):
        def responder(query):
            if city_of(query) == "Berkeley":
                raise UpstreamCallError("Datafiniti API error: 500", status_code=500)
            return one_record_per_city(query)

        result = make_orchestrator(FakeClient(responder)).run_cycle()

        assert result.status == IngestionStatus.PARTIALLY_FAILED
        assert len(result.failed_calls) == 2
        assert len(result.succeeded_calls) == 8
        assert {l.city for l in result.listings} == {"San Francisco", "Palo Alto", "San Jose"}

    def test_unexpected_exception_is_contained(self):
        def responder(query):
            if city_of(query) == "San Jose":
                raise RuntimeError("boom")
            return one_record_per_city(query)

        result = make_orchestrator(FakeClient(responder)).run_cycle()
        assert result.status == IngestionStatus.PARTIALLY_FAILED
        assert len(result.failed_calls) == 2
        assert len(result.listings) == 3

    def test_all_calls_failing(self):
        def responder(query):
            raise UpstreamCallError("Request failed")

        result = make_orchestrator(FakeClient(responder)).run_cycle()
        assert result.status == IngestionStatus.PARTIALLY_FAILED
        assert result.listings == []

    def test_empty_records_are_not_failures(self):
        result = make_orchestrator(FakeClient(lambda q: SearchResponse())).run_cycle()
        assert result.status == IngestionStatus.SUCCEEDED
        assert result.listings == []

    def test_invalid_records_dropped(self):
        def responder(query):
            city = city_of(query)
            bad = make_record("bad", city, price=60000)
            return SearchResponse(records=[bad, make_record(f"{city}-ok", city)])

        result = make_orchestrator(FakeClient(responder)).run_cycle()
        assert "bad" not in {l.listing_id for l in result.listings}
        assert len(result.listings) == 4

    def test_missing_key_issues_no_calls(self):
        client = FakeClient(one_record_per_city, api_key="")
        orchestrator = make_orchestrator(client)
        result = orchestrator.run_cycle()

        assert result.status == IngestionStatus.NOT_CONFIGURED
        assert result.listings == []
        assert client.calls == []
        assert orchestrator.state == IngestionStatus.NOT_CONFIGURED


class TestConcurrentFanOut:
    """Tests that the calls of one cycle run side by side."""

    def test_all_calls_in_flight_together(self):
        # Every call blocks until all ten have arrived; a serial fan-out
        # would break the barrier and fail the calls.
        barrier = threading.Barrier(10, timeout=5)

        def responder(query):
            barrier.wait()
            return one_record_per_city(query)

        client = FakeClient(responder)
        result = make_orchestrator(client).run_cycle()

        assert len(client.calls) == 10
        assert result.failed_calls == []
        assert result.status == IngestionStatus.SUCCEEDED
        assert len(result.listings) == 4

    def test_slow_and_failing_calls_do_not_block_siblings(self):
        def responder(query):
            city = city_of(query)
            if city == "Palo Alto":
                time.sleep(0.2)
            if city == "San Jose":
                raise UpstreamCallError("Datafiniti API error: 503", status_code=503)
            return one_record_per_city(query)

        result = make_orchestrator(FakeClient(responder)).run_cycle()

        assert result.status == IngestionStatus.PARTIALLY_FAILED
        assert len(result.outcomes) == 10
        assert {o.spec.locality for o in result.failed_calls} == {"San Jose"}
        assert len(result.succeeded_calls) == 8
        assert {l.city for l in result.listings} == {"San Francisco", "Berkeley", "Palo Alto"}


class TestCaching:
    """Tests for per-call caching."""

    def test_second_cycle_served_from_cache(self):
        client = FakeClient(one_record_per_city)
        orchestrator = make_orchestrator(client)

        first = orchestrator.run_cycle()
        second = orchestrator.run_cycle()

        assert len(client.calls) == 10
        assert second.status == IngestionStatus.CACHED
        assert second.listings == first.listings
        assert all(o.from_cache for o in second.outcomes)

    def test_second_cycle_retries_only_failed_calls(self):
        failing = {"Berkeley"}

        def responder(query):
            if city_of(query) in failing:
                raise UpstreamCallError("Request failed")
            return one_record_per_city(query)

        client = FakeClient(responder)
        orchestrator = make_orchestrator(client)

        first = orchestrator.run_cycle()
        assert first.status == IngestionStatus.PARTIALLY_FAILED

        failing.clear()
        client.calls.clear()
        second = orchestrator.run_cycle()

        assert sorted(city_of(q) for q in client.calls) == ["Berkeley", "Berkeley"]
        assert second.status == IngestionStatus.SUCCEEDED
        assert len(second.listings) == 4

    def test_different_query_is_not_cached(self):
        client = FakeClient(one_record_per_city)
        orchestrator = make_orchestrator(client)

        orchestrator.run_cycle()
        orchestrator.run_cycle("numBedroom:2")
        assert len(client.calls) == 20

    def test_clear_cache_forces_full_refetch(self):
        client = FakeClient(one_record_per_city)
        orchestrator = make_orchestrator(client)

        orchestrator.run_cycle()
        orchestrator.clear_cache()
        result = orchestrator.run_cycle()

        assert len(client.calls) == 20
        assert result.status == IngestionStatus.SUCCEEDED

    def test_injected_cache_is_used(self):
        cache = ListingCache()
        orchestrator = make_orchestrator(FakeClient(one_record_per_city), cache=cache)
        orchestrator.run_cycle()
        assert len(cache) == 10

    def test_fetch_listings(self):
        listings = make_orchestrator(FakeClient(one_record_per_city)).fetch_listings()
        assert len(listings) == 4


class TestListingCache:
    """Tests for ListingCache."""

    @pytest.fixture
    def listing(self) -> Listing:
        return Listing(
            listing_id="L1",
            address="1 Main St",
            city="Berkeley",
            state="CA",
            latitude=37.87,
            longitude=-122.27,
            price=2000,
        )

    def test_get_set_clear(self, listing):
        cache = ListingCache()
        assert cache.get("k") is None

        cache.set("k", [listing])
        assert "k" in cache
        assert cache.get("k") == [listing]
        assert cache.keys() == ["k"]

        cache.clear()
        assert len(cache) == 0

    def test_empty_list_is_a_hit(self):
        cache = ListingCache()
        cache.set("k", [])
        assert cache.get("k") == []

    def test_returns_copies(self, listing):
        cache = ListingCache()
        cache.set("k", [listing])
        cache.get("k").clear()
        assert cache.get("k") == [listing]


class TestDeduplicate:
    """Tests for deduplicate_listings."""

    def test_keeps_first_and_order(self):
        def make(listing_id, price):
            return Listing(
                listing_id=listing_id,
                address="a",
                city="Berkeley",
                state="CA",
                latitude=37.87,
                longitude=-122.27,
                price=price,
            )

        result = deduplicate_listings([make("a", 1), make("b", 2), make("a", 3)])
        assert [(l.listing_id, l.price) for l in result] == [("a", 1), ("b", 2)]
