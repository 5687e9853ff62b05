"""
Ingestion loop for one user's integration: window and cap the fetched items, skip
already-stored items, run each through the feedback pipeline and persist accepted feedback.
Items whose classifier call fails are deferred, not stored, so the next sync retries them.
"""

from typing import List, Optional, Iterable
from datetime import datetime, timedelta, timezone
import logging
import argparse
import json

from src.config.settings import Settings
from src.data_access.feedback_store import FeedbackStore
from src.agents.llm_agent import FeedbackAnalyzer
from src.exceptions import ClassifierFailure, InvalidInputError
from src.filtering.acceptance import AcceptancePolicy
from src.filtering.heuristics import KeywordClassifier
from src.filtering.normalize import resolve_datetime
from src.models.schemas import RawItem, Platform, ItemOutcome, ItemStatus
from src.pipelines.feedback_pipeline import FeedbackPipeline, Classifier
from src.sources.gmail import parse_gmail_message
from src.sources.manual import manual_item
from src.sources.twitter import parse_tweet


logger = logging.getLogger(__name__)


class IngestionPipeline:
    """Pipeline for ingesting one user's inbound items into the feedback store."""

    def __init__(
        self,
        config: Settings,
        classifier: Optional[Classifier] = None,
        store: Optional[FeedbackStore] = None,
        policy: AcceptancePolicy = AcceptancePolicy.STRICT,
        dry_run: bool = False
    ):
        """
        Initialize the ingestion pipeline.

        Args:
            config: Application settings
            classifier: Classifier collaborator. If None, uses the OpenAI FeedbackAnalyzer.
            store: Storage collaborator. If None, a FeedbackStore is built from config.
            policy: Acceptance policy (strict for unattended runs)
            dry_run: If True, nothing is read from or written to storage
        """
        self.config = config
        self.classifier = classifier or FeedbackAnalyzer(config)
        self.store = None if dry_run else (store or FeedbackStore(config))
        self.pipeline = FeedbackPipeline(self.classifier, policy)

    def select_items(
        self,
        items: List[RawItem],
        now: datetime,
        limit: Optional[int] = None,
        apply_window: bool = True
    ) -> List[RawItem]:
        """
        Restrict items to the recent sync window and cap their number.

        Args:
            items: Fetched items, newest first
            now: Current run time
            limit: Maximum items to process (default from config)
            apply_window: If False, ignore the sync window

        Returns:
            Items to process this run
        """
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        if limit is None:
            limit = self.config.max_items_per_sync

        if apply_window:
            window_start = now - timedelta(minutes=self.config.sync_window_minutes)
            items = [
                item for item in items
                if resolve_datetime(item.date_header, item.internal_date, now) >= window_start
            ]

        return items[:limit]

    def run(
        self,
        user_id: str,
        items: List[RawItem],
        platform: Platform,
        now: Optional[datetime] = None,
        limit: Optional[int] = None,
        apply_window: bool = True
    ) -> dict:
        """
        Execute the ingestion pipeline for one user.

        Args:
            user_id: Owning user of the integration
            items: Items fetched from the platform
            platform: Platform being synced
            now: Run time (defaults to the current UTC time)
            limit: Maximum number of items to process (default from config)
            apply_window: If False, process items regardless of age

        Returns:
            Dictionary with processing statistics
        """
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        platform = Platform(platform)

        selected = self.select_items(items, now, limit=limit, apply_window=apply_window)
        skipped = len(items) - len(selected)
        logger.info(
            f"Starting {platform.value} ingestion for user {user_id}: "
            f"{len(selected)} items selected, {skipped} outside window or over cap"
        )

        outcomes: List[ItemOutcome] = []

        try:
            if self.store is not None:
                self.store.connect()

            for item in selected:
                outcomes.append(self._process_item(user_id, item, now))

            if self.store is not None:
                self.store.update_last_sync(user_id, platform.value, now)

        finally:
            if self.store is not None:
                self.store.close()

        counts = {status: 0 for status in ItemStatus}
        for outcome in outcomes:
            counts[outcome.status] += 1

        logger.info(
            f"Ingestion complete for user {user_id}: {counts[ItemStatus.ACCEPTED]} accepted, "
            f"{counts[ItemStatus.REJECTED]} rejected, {counts[ItemStatus.DEFERRED]} deferred, "
            f"{counts[ItemStatus.DUPLICATE]} duplicates"
        )

        return {
            "user_id": user_id,
            "platform": platform.value,
            "total_items": len(items),
            "processed": len(selected),
            "skipped": skipped,
            "accepted": counts[ItemStatus.ACCEPTED],
            "rejected": counts[ItemStatus.REJECTED],
            "deferred": counts[ItemStatus.DEFERRED],
            "duplicates": counts[ItemStatus.DUPLICATE],
            "outcomes": outcomes,
            "synced_at": now.isoformat()
        }

    def _process_item(self, user_id: str, item: RawItem, now: datetime) -> ItemOutcome:
        """Process one item; classifier failures defer the item instead of failing the run."""
        platform = item.platform.value

        if self.store is not None and self.store.exists(user_id, platform, item.source_id):
            return ItemOutcome(source_id=item.source_id, status=ItemStatus.DUPLICATE)

        try:
            decision = self.pipeline.evaluate(item, now=now)
        except ClassifierFailure as e:
            logger.warning(f"Deferring {platform} item {item.source_id}: {e}")
            return ItemOutcome(source_id=item.source_id, status=ItemStatus.DEFERRED, error=str(e))

        if not decision.accepted:
            logger.info(f"Rejected {platform} item {item.source_id}: {decision.rejection_reason.value}")
            return ItemOutcome(source_id=item.source_id, status=ItemStatus.REJECTED, decision=decision)

        if self.store is not None:
            inserted = self.store.insert_feedback(user_id, platform, item.source_id, decision.normalized_record)
            if not inserted:
                return ItemOutcome(source_id=item.source_id, status=ItemStatus.DUPLICATE, decision=decision)

        logger.info(
            f"Accepted {platform} item {item.source_id} as {decision.normalized_record.category} "
            f"({decision.normalized_record.priority})"
        )
        return ItemOutcome(source_id=item.source_id, status=ItemStatus.ACCEPTED, decision=decision)


def parse_payload(payload: dict, platform: Platform) -> RawItem:
    """Convert one exported platform payload into a RawItem."""
    if platform == Platform.GMAIL:
        return parse_gmail_message(payload)
    if platform == Platform.TWITTER:
        return parse_tweet(payload)
    return manual_item(
        payload.get("content"),
        subject=payload.get("subject"),
        sender=payload.get("from"),
        source_id=payload.get("source_id")
    )


def load_items(lines: Iterable[str], platform: Platform) -> List[RawItem]:
    """Parse JSONL lines of platform payloads, failing on the first malformed line."""
    items = []
    for line_number, line in enumerate(lines, 1):
        if not line.strip():
            continue
        try:
            payload = json.loads(line)
        except json.JSONDecodeError as e:
            raise InvalidInputError(f"Line {line_number}: invalid JSON: {e}") from e
        if not isinstance(payload, dict):
            raise InvalidInputError(f"Line {line_number}: expected a JSON object")
        try:
            items.append(parse_payload(payload, platform))
        except InvalidInputError as e:
            raise InvalidInputError(f"Line {line_number}: {e}") from e
    return items


def main():
    """Main entry point for running the ingestion pipeline with CLI arguments."""
    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    # Parse command-line arguments
    parser = argparse.ArgumentParser(
        description='Filter and classify exported platform items into the feedback store.'
    )
    parser.add_argument(
        '--input',
        required=True,
        help='Path to a JSONL file of platform payloads (Gmail messages, tweets, or manual submissions)'
    )
    parser.add_argument(
        '--platform',
        choices=[p.value for p in Platform],
        default=Platform.GMAIL.value,
        help='Platform the payloads came from'
    )
    parser.add_argument(
        '--user-id',
        required=True,
        help='Owning user of the integration'
    )
    parser.add_argument(
        '--policy',
        choices=[p.value for p in AcceptancePolicy],
        default=AcceptancePolicy.STRICT.value,
        help='Acceptance policy: strict for unattended sync, lenient for manual submissions'
    )
    parser.add_argument(
        '--classifier',
        choices=['openai', 'keyword'],
        default='openai',
        help='Classifier to use (keyword needs no API key)'
    )
    parser.add_argument(
        '--limit',
        type=int,
        help='Maximum number of items to process (default from config)'
    )
    parser.add_argument(
        '--no-window',
        action='store_true',
        help='Process items regardless of age'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Evaluate items without touching the database'
    )

    args = parser.parse_args()

    if args.limit is not None and args.limit <= 0:
        parser.error("--limit must be a positive integer")

    platform = Platform(args.platform)

    with open(args.input, encoding='utf-8') as f:
        items = load_items(f, platform)

    # Load configuration
    config = Settings()

    if args.classifier == 'keyword':
        classifier = KeywordClassifier()
    else:
        if not config.openai_api_key:
            parser.error("OPENAI_API_KEY is not configured; use --classifier keyword for offline runs")
        classifier = FeedbackAnalyzer(config)

    # Run ingestion pipeline
    pipeline = IngestionPipeline(
        config,
        classifier=classifier,
        policy=AcceptancePolicy(args.policy),
        dry_run=args.dry_run
    )
    stats = pipeline.run(
        args.user_id,
        items,
        platform,
        limit=args.limit,
        apply_window=not args.no_window
    )

    # Print results
    print("\n" + "="*60)
    print("INGESTION PIPELINE RESULTS")
    print("="*60)
    print(f"User: {stats['user_id']} ({stats['platform']}, {args.policy} policy)")
    print(f"Total items received: {stats['total_items']}")
    print(f"Items processed: {stats['processed']} ({stats['skipped']} skipped)")
    print(f"Accepted as feedback: {stats['accepted']}")
    print(f"Rejected: {stats['rejected']}")
    print(f"Deferred for retry: {stats['deferred']}")
    print(f"Already stored: {stats['duplicates']}")
    if args.dry_run:
        print("Dry run: nothing was written")
    print("="*60)


if __name__ == "__main__":
    main()
