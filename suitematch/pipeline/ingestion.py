"""
Ingestion orchestrator - fan out the partitioned search calls, normalize,
cache per call and merge.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Iterable, Optional

import requests
from pydantic import ValidationError

from ..client.datafiniti import ConfigurationError, DatafinitiClient, UpstreamCallError
from ..config import IngestionConfig, get_config
from ..models.ingestion import CallOutcome, CallSpec, IngestionResult, IngestionStatus
from ..models.listing import Listing
from .normalizer import RecordNormalizer


logger = logging.getLogger(__name__)


class ListingCache:
    """
    Per-call listing cache keyed by CallSpec.cache_key.
    Entries live until clear() is called.
    """

    def __init__(self):
        self._entries: dict[str, list[Listing]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[list[Listing]]:
        with self._lock:
            entry = self._entries.get(key)
            return list(entry) if entry is not None else None

    def set(self, key: str, listings: list[Listing]) -> None:
        with self._lock:
            self._entries[key] = list(listings)

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._entries)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def deduplicate_listings(listings: Iterable[Listing]) -> list[Listing]:
    """Drop repeated listing ids, keeping the first occurrence and input order."""
    seen: dict[str, Listing] = {}
    for listing in listings:
        if listing.listing_id in seen:
            logger.info(f"Duplicate listing {listing.listing_id}, keeping first occurrence")
            continue
        seen[listing.listing_id] = listing
    return list(seen.values())


class IngestionOrchestrator:
    """
    Runs ingestion cycles against the property search API.

    A cycle issues one call per planned slot, all at once, and waits for every
    call to settle. A failed call only loses its own records. Successful calls
    are cached individually, so the next cycle with the same query re-issues
    only the calls that failed.
    """

    def __init__(
        self,
        client: DatafinitiClient,
        normalizer: Optional[RecordNormalizer] = None,
        cache: Optional[ListingCache] = None,
        config: Optional[IngestionConfig] = None,
        jurisdiction: Optional[str] = None,
    ):
        self.client = client
        self.normalizer = normalizer or RecordNormalizer()
        self.cache = cache if cache is not None else ListingCache()
        self.config = config or get_config().ingestion
        self.jurisdiction = jurisdiction or self.normalizer.config.jurisdiction
        self.state = IngestionStatus.IDLE

    def plan(self, user_query: str = "") -> list[CallSpec]:
        """The fixed call partition, primary locality first."""
        specs = []
        for locality, calls in self.config.partition.items():
            query = self.client.build_query(locality, user_query, self.jurisdiction)
            for ordinal in range(1, calls + 1):
                specs.append(CallSpec(locality=locality, ordinal=ordinal, query=query))
        return specs

    def fetch_listings(self, user_query: str = "") -> list[Listing]:
        """Run a cycle and return only the merged listings."""
        return self.run_cycle(user_query).listings

    def clear_cache(self) -> None:
        """Forget every cached call so the next cycle re-fetches everything."""
        logger.info(f"Clearing ingestion cache ({len(self.cache)} entries)")
        self.cache.clear()

    def run_cycle(self, user_query: str = "") -> IngestionResult:
        """
        Run one ingestion cycle.

        Args:
            user_query: Optional free-text filter added to every locality query

        Returns:
            IngestionResult with deduplicated listings in plan order
        """
        if not self.client.is_available():
            logger.error("Missing Datafiniti API key, skipping ingestion")
            self.state = IngestionStatus.NOT_CONFIGURED
            return IngestionResult(status=self.state)

        specs = self.plan(user_query)
        cached = {spec.cache_key: self.cache.get(spec.cache_key) for spec in specs}

        if all(entry is not None for entry in cached.values()):
            logger.info(f"Using cached listings for all {len(specs)} calls")
            outcomes = [
                CallOutcome(spec=spec, succeeded=True, listings=cached[spec.cache_key], from_cache=True)
                for spec in specs
            ]
            self.state = IngestionStatus.CACHED
            return IngestionResult(
                status=self.state,
                listings=self._merge(outcomes),
                outcomes=outcomes,
            )

        pending = [spec for spec in specs if cached[spec.cache_key] is None]
        logger.info(
            f"Starting ingestion: {len(pending)} of {len(specs)} calls to issue, "
            f"{len(specs) - len(pending)} served from cache"
        )
        self.state = IngestionStatus.FETCHING
        fetched = self._fetch_all(pending)

        outcomes = []
        for spec in specs:
            entry = cached[spec.cache_key]
            if entry is not None:
                outcomes.append(CallOutcome(spec=spec, succeeded=True, listings=entry, from_cache=True))
                continue
            outcome = fetched[spec.cache_key]
            if outcome.succeeded:
                self.cache.set(spec.cache_key, outcome.listings)
            outcomes.append(outcome)

        failed = [o.spec.label for o in outcomes if not o.succeeded]
        self.state = IngestionStatus.PARTIALLY_FAILED if failed else IngestionStatus.SUCCEEDED
        listings = self._merge(outcomes)

        logger.info(f"Ingestion finished with {len(listings)} listings ({self.state.value})")
        if failed:
            logger.warning(f"Some calls failed: {', '.join(failed)}")
        return IngestionResult(status=self.state, listings=listings, outcomes=outcomes)

    def _fetch_all(self, specs: list[CallSpec]) -> dict[str, CallOutcome]:
        """Issue every call concurrently and wait until all of them settle."""
        if not specs:
            return {}
        workers = self.config.max_workers or len(specs)
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self._execute_call, spec): spec for spec in specs}
            wait(futures)

        results = {}
        for future, spec in futures.items():
            try:
                results[spec.cache_key] = future.result()
            except Exception as e:
                logger.error(f"{spec.label} crashed: {e}")
                results[spec.cache_key] = CallOutcome(spec=spec, succeeded=False, error=str(e))
        return results

    def _execute_call(self, spec: CallSpec) -> CallOutcome:
        """Run one call and capture its outcome without raising."""
        try:
            response = self.client.search(spec.query, num_records=self.config.records_per_call)
        except ConfigurationError as e:
            return CallOutcome(spec=spec, succeeded=False, error=str(e))
        except (UpstreamCallError, requests.RequestException, ValidationError) as e:
            logger.warning(f"{spec.label} failed: {e}")
            return CallOutcome(spec=spec, succeeded=False, error=str(e))

        records = response.record_list
        if not records:
            logger.warning(f"{spec.label} returned no records")
        listings = self.normalizer.normalize_batch(records)
        logger.info(f"{spec.label} succeeded: {len(listings)}/{len(records)} records usable")
        return CallOutcome(
            spec=spec,
            succeeded=True,
            listings=listings,
            records_received=len(records),
        )

    @staticmethod
    def _merge(outcomes: list[CallOutcome]) -> list[Listing]:
        merged = []
        for outcome in outcomes:
            merged.extend(outcome.listings)
        return deduplicate_listings(merged)
