"""
Batch progress aggregation.

Folds ProgressEvents for one batch of variants into a BatchSummary and
signals completion exactly once, when every variant is terminal.
"""

import asyncio
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Union
from uuid import UUID

from shared.config import settings
from shared.errors import RetryableError, ValidationError
from shared.logging import get_logger
from shared.models import BatchSummary, ProgressEvent, Variant, VariantStatus, VariantSummary
from shared.repository import PipelineRepository
from shared.storage import StorageClient
from modules.progress_aggregator.channel import VariantProgressSubscription

logger = get_logger("progress_aggregator")

SubscriptionFactory = Callable[[List[UUID]], VariantProgressSubscription]
CompletionCallback = Callable[[BatchSummary], Awaitable[None]]


def is_newer(current: Optional[ProgressEvent], incoming: ProgressEvent) -> bool:
    """
    Whether ``incoming`` may replace ``current``.

    Terminal statuses are final, statuses never move backwards and the
    percent never decreases within a status.
    """
    if current is None:
        return True
    if current.status.is_terminal:
        return False
    if incoming.status.rank < current.status.rank:
        return False
    if incoming.status == current.status and incoming.percent < current.percent:
        return False
    return True


async def resolve_output_urls(
    storage: StorageClient,
    event: ProgressEvent
) -> VariantSummary:
    """Summary row for one variant, with signed URLs when it completed."""
    row = VariantSummary(
        status=event.status,
        percent=event.percent,
        message=event.message,
        error=event.error,
    )
    if event.status != VariantStatus.COMPLETED:
        return row

    if event.video_path:
        row.video_url = await storage.get_signed_url(settings.renders_bucket, event.video_path)
    if event.srt_path:
        try:
            row.subtitle_url = await storage.get_signed_url(settings.renders_bucket, event.srt_path)
        except RetryableError as e:
            # Subtitles are optional output
            logger.warning(
                "Failed to sign subtitle URL",
                extra={"variant_id": str(event.variant_id), "error": str(e)}
            )
    return row


async def summarize(
    events: Iterable[ProgressEvent],
    storage: Optional[StorageClient] = None
) -> BatchSummary:
    """Build a BatchSummary. Output URLs are resolved only when storage is given."""
    events = list(events)
    jobs: Dict[str, VariantSummary] = {}
    for event in events:
        if storage is not None:
            jobs[str(event.variant_id)] = await resolve_output_urls(storage, event)
        else:
            jobs[str(event.variant_id)] = VariantSummary(
                status=event.status,
                percent=event.percent,
                message=event.message,
                error=event.error,
            )
    all_done = bool(events) and all(event.status.is_terminal for event in events)
    return BatchSummary(jobs=jobs, all_done=all_done)


class ProgressAggregator:
    """Tracks one batch of variants until every one of them is terminal."""

    def __init__(
        self,
        variant_ids: Iterable[Union[UUID, str]],
        repository: PipelineRepository,
        storage: StorageClient,
        subscription_factory: Optional[SubscriptionFactory] = None,
        on_batch_complete: Optional[CompletionCallback] = None,
        max_reconnects: Optional[int] = None,
        reconnect_delay: float = 1.0
    ):
        self.variant_ids: List[UUID] = [v if isinstance(v, UUID) else UUID(str(v)) for v in variant_ids]
        if not self.variant_ids:
            raise ValidationError("Cannot aggregate progress for an empty batch")
        self._id_set = set(self.variant_ids)
        self.repository = repository
        self.storage = storage
        self.subscription_factory = subscription_factory or VariantProgressSubscription
        self.on_batch_complete = on_batch_complete
        self.max_reconnects = settings.progress_max_reconnects if max_reconnects is None else max_reconnects
        self.reconnect_delay = reconnect_delay

        self._latest: Dict[UUID, ProgressEvent] = {
            variant_id: ProgressEvent(variant_id=variant_id, status=VariantStatus.QUEUED, percent=0)
            for variant_id in self.variant_ids
        }
        self._summary: Optional[BatchSummary] = None
        self._completed = asyncio.Event()
        self._stopped = False
        self._subscription: Optional[VariantProgressSubscription] = None

    @property
    def all_done(self) -> bool:
        return all(event.status.is_terminal for event in self._latest.values())

    @property
    def is_complete(self) -> bool:
        return self._completed.is_set()

    def apply(self, event: ProgressEvent) -> bool:
        """
        Fold one event into the batch state.

        Returns:
            True if the event changed the stored state
        """
        if event.variant_id not in self._id_set:
            logger.debug("Ignoring event for variant outside this batch", extra={"variant_id": str(event.variant_id)})
            return False
        if not is_newer(self._latest.get(event.variant_id), event):
            return False
        self._latest[event.variant_id] = event
        return True

    async def catch_up(self) -> None:
        """Re-read every non-terminal variant from the store."""
        outstanding = [vid for vid, event in self._latest.items() if not event.status.is_terminal]
        if not outstanding:
            return
        variants: List[Variant] = await self.repository.get_variants(outstanding)
        for variant in variants:
            self.apply(ProgressEvent.from_variant(variant))
        logger.info(
            "Progress catch-up done",
            extra={"outstanding": len(outstanding), "fetched": len(variants)}
        )

    async def _maybe_complete(self) -> None:
        if self.is_complete or not self.all_done:
            return
        summary = await summarize(self._latest.values(), self.storage)
        self._summary = summary
        self._completed.set()
        logger.info(
            "Batch complete",
            extra={"total": summary.total, "completed": summary.completed, "failed": summary.failed}
        )
        if self.on_batch_complete is not None:
            await self.on_batch_complete(summary)

    async def snapshot(self) -> BatchSummary:
        """Current summary. Completed batches carry resolved output URLs."""
        if self._summary is not None:
            return self._summary
        return await summarize(self._latest.values())

    async def run(self) -> BatchSummary:
        """
        Listen until the batch completes or stop() is called.

        Every (re)subscription is followed by a catch-up read so events
        published before or between subscriptions are not lost.

        Raises:
            RetryableError: If the channel keeps dropping past max_reconnects
        """
        reconnects = 0
        while not self.is_complete and not self._stopped:
            subscription = self.subscription_factory(self.variant_ids)
            self._subscription = subscription
            try:
                await subscription.connect()
                await self.catch_up()
                await self._maybe_complete()
                if self.is_complete:
                    break

                async for event in subscription.events():
                    if self.apply(event):
                        await self._maybe_complete()
                    if self.is_complete or self._stopped:
                        break
                else:
                    if not self._stopped:
                        raise RetryableError("Progress stream ended unexpectedly")
            except RetryableError as e:
                reconnects += 1
                if reconnects > self.max_reconnects:
                    logger.error(
                        "Progress channel reconnects exhausted",
                        extra={"reconnects": reconnects - 1, "error": str(e)}
                    )
                    raise RetryableError(
                        f"Lost progress channel after {self.max_reconnects} reconnects: {str(e)}"
                    ) from e
                logger.warning(
                    f"Progress channel dropped, reconnecting ({reconnects}/{self.max_reconnects})",
                    extra={"error": str(e), "attempt": reconnects}
                )
                await asyncio.sleep(self.reconnect_delay)
            finally:
                await subscription.close()
                self._subscription = None

        return await self.snapshot()

    async def wait(self) -> BatchSummary:
        await self._completed.wait()
        return self._summary

    async def stop(self) -> None:
        """Stop listening. Render jobs keep running."""
        self._stopped = True
        if self._subscription is not None:
            await self._subscription.close()
        logger.info("Progress aggregation stopped", extra={"variant_count": len(self.variant_ids)})
