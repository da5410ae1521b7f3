"""Batched audio-features fetching.

Splits any number of track ids into provider-sized batches and fetches them
one after another. A failing batch is recorded and skipped; only a lost
session stops the whole fetch.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from genius.api.errors import RateLimitedError, SessionExpiredError, SpotifyAPIError
from genius.api.gateway import SpotifyGateway
from genius.api.models import AudioFeatures

logger = logging.getLogger(__name__)

# Maximum ids the /audio-features endpoint accepts per request
MAX_BATCH_SIZE = 100
BATCH_DELAY_SECONDS = 0.2
MAX_RETRY_AFTER_SECONDS = 5.0


@dataclass(frozen=True)
class BatchSuccess:
    """Features returned for one batch of track ids."""

    index: int
    requested: int
    features: list[AudioFeatures]


@dataclass(frozen=True)
class BatchFailure:
    """A batch that failed and was skipped."""

    index: int
    requested: int
    reason: str


BatchResult = BatchSuccess | BatchFailure


@dataclass
class FeatureFetchOutcome:
    """Aggregate of a batched fetch.

    Failed batches contribute no features but still count as requested, so
    ``succeeded_count < requested_count`` signals partial success.
    """

    succeeded: list[AudioFeatures] = field(default_factory=list)
    requested_count: int = 0
    elapsed_ms: float = 0.0
    batches: list[BatchResult] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return len(self.succeeded)

    @property
    def failed_batches(self) -> list[BatchFailure]:
        return [batch for batch in self.batches if isinstance(batch, BatchFailure)]

    @property
    def success_ratio(self) -> float:
        if not self.requested_count:
            return 0.0
        return self.succeeded_count / self.requested_count

    def to_dict(self) -> dict[str, Any]:
        return {
            "succeeded": [feature.model_dump() for feature in self.succeeded],
            "succeeded_count": self.succeeded_count,
            "requested_count": self.requested_count,
            "elapsed_ms": round(self.elapsed_ms, 1),
            "failed_batches": len(self.failed_batches),
        }


def clean_track_ids(track_ids: Iterable[Any]) -> list[str]:
    """Keep non-empty string ids, stripped of surrounding whitespace."""
    return [
        track_id.strip()
        for track_id in track_ids
        if isinstance(track_id, str) and track_id.strip()
    ]


def partition(items: list[str], size: int) -> list[list[str]]:
    return [items[i : i + size] for i in range(0, len(items), size)]


class AudioFeatureFetcher:
    """Fetches audio features for many tracks through the gateway.

    Batches run strictly in sequence with a fixed pause between them, to
    stay under the provider's rate limit.
    """

    def __init__(
        self,
        gateway: SpotifyGateway,
        batch_size: int = MAX_BATCH_SIZE,
        batch_delay: float = BATCH_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not 1 <= batch_size <= MAX_BATCH_SIZE:
            raise ValueError(f"batch_size must be between 1 and {MAX_BATCH_SIZE}")
        self.gateway = gateway
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep

    async def fetch_features(self, track_ids: Iterable[Any]) -> FeatureFetchOutcome:
        """Fetch audio features for every well-formed id.

        Raises:
            SessionExpiredError: The session was lost; remaining batches are
                not attempted
        """
        started = time.perf_counter()
        valid_ids = clean_track_ids(track_ids)
        outcome = FeatureFetchOutcome(requested_count=len(valid_ids))
        if not valid_ids:
            logger.debug("No valid track ids, skipping audio features fetch")
            return outcome

        batches = partition(valid_ids, self.batch_size)
        logger.info(
            f"Fetching audio features for {len(valid_ids)} tracks "
            f"in {len(batches)} batches"
        )

        for index, batch in enumerate(batches):
            if index > 0:
                await self._sleep(self.batch_delay)

            result = await self._fetch_batch(index, batch)
            outcome.batches.append(result)
            if isinstance(result, BatchSuccess):
                outcome.succeeded.extend(result.features)
                logger.debug(
                    f"Batch {index + 1}/{len(batches)}: "
                    f"{len(result.features)}/{len(batch)} tracks"
                )
            else:
                logger.warning(
                    f"Batch {index + 1}/{len(batches)} failed "
                    f"({len(batch)} tracks skipped): {result.reason}"
                )

        outcome.elapsed_ms = (time.perf_counter() - started) * 1000
        logger.info(
            f"Audio features fetched for {outcome.succeeded_count}/"
            f"{outcome.requested_count} tracks in {outcome.elapsed_ms:.0f}ms"
        )
        return outcome

    async def _fetch_batch(self, index: int, batch: list[str]) -> BatchResult:
        params = {"ids": ",".join(batch)}
        try:
            try:
                body = await self.gateway.get("/audio-features", params=params)
            except RateLimitedError as e:
                wait = min(e.retry_after or self.batch_delay, MAX_RETRY_AFTER_SECONDS)
                logger.info(f"Batch {index + 1} rate limited, retrying in {wait}s")
                await self._sleep(wait)
                body = await self.gateway.get("/audio-features", params=params)
        except SessionExpiredError:
            raise
        except SpotifyAPIError as e:
            return BatchFailure(index, len(batch), str(e))
        except ValueError as e:
            # Undecodable JSON body
            return BatchFailure(index, len(batch), f"invalid response body: {e}")

        records = body.get("audio_features") if isinstance(body, dict) else None
        if not isinstance(records, list):
            return BatchFailure(index, len(batch), "response missing audio_features")

        return BatchSuccess(index, len(batch), _parse_features(records))


def _parse_features(records: list[Any]) -> list[AudioFeatures]:
    # The provider returns null for ids it cannot resolve
    features = []
    for record in records:
        if record is None:
            continue
        try:
            features.append(AudioFeatures.model_validate(record))
        except ValidationError as e:
            logger.debug(f"Skipping malformed audio features record: {e}")
    return features
