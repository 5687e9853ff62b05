"""
Clustering pipeline for a user's stored feedback over any date range.
Groups accepted feedback by category, labels each group through the chat model,
and caches the result until the set of feedback changes or the cache expires.
"""

from typing import Optional, List, Dict, Any
from datetime import datetime, timedelta, timezone
import logging
import argparse

import pandas as pd

from src.config.settings import Settings
from src.agents.llm_agent import ChatAgent
from src.data_access.feedback_store import FeedbackStore
from src.models.schemas import StoredFeedback, FeedbackCluster

logger = logging.getLogger(__name__)


PRIORITY_RANK = {"low": 0, "medium": 1, "high": 2, "urgent": 3}


def _to_frame(records: List[StoredFeedback]) -> pd.DataFrame:
    return pd.DataFrame([r.model_dump() for r in records], columns=list(StoredFeedback.model_fields))


def _distribution(df: pd.DataFrame, column: str) -> Dict[str, int]:
    return {str(k): int(v) for k, v in df[column].value_counts().items()}


def group_by_category(records: List[StoredFeedback]) -> Dict[str, List[StoredFeedback]]:
    """Group records by category, largest group first (ties by category name)."""
    if not records:
        return {}

    df = _to_frame(records)
    df["position"] = range(len(df))
    groups = df.groupby("category")["position"].apply(list).to_dict()

    ordered = sorted(groups.items(), key=lambda kv: (-len(kv[1]), kv[0]))
    return {category: [records[i] for i in positions] for category, positions in ordered}


def summarize_insights(records: List[StoredFeedback]) -> Dict[str, Any]:
    """Distribution metrics across a set of stored feedback."""
    df = _to_frame(records)
    return {
        "total_feedback": len(df),
        "sentiment_distribution": _distribution(df, "sentiment"),
        "priority_distribution": _distribution(df, "priority"),
        "platform_distribution": _distribution(df, "platform"),
        "category_distribution": _distribution(df, "category"),
    }


class ClusteringPipeline:
    """
    Pipeline for clustering a user's stored feedback over a date range
    and labelling each cluster.
    """

    def __init__(self, config: Settings, agent: Optional[ChatAgent] = None, store: Optional[FeedbackStore] = None):
        self.config = config
        self.agent = agent or ChatAgent(config)
        self.store = store or FeedbackStore(config)

    def build_clusters(self, records: List[StoredFeedback]) -> List[FeedbackCluster]:
        """Group records and label each group."""
        clusters = []
        for index, (category, members) in enumerate(group_by_category(records).items(), 1):
            samples = [m.content for m in members[:self.config.cluster_sample_size]]
            label = self.agent.label_cluster(samples, category=category) or category.title()

            clusters.append(FeedbackCluster(
                cluster_id=f"cluster_{index}",
                label=label,
                category=category,
                feedback_ids=[m.id for m in members],
                item_count=len(members),
                priority=max((m.priority for m in members), key=lambda p: PRIORITY_RANK.get(p, 1)),
                platforms=sorted({m.platform for m in members}),
                sentiment_distribution=_distribution(_to_frame(members), "sentiment")
            ))
            logger.info(f"Labelled {clusters[-1].cluster_id} ({category}, {len(members)} items): {label}")
        return clusters

    def run(
        self,
        user_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        days_back: Optional[int] = None,
        limit: Optional[int] = None,
        use_cache: bool = True,
        now: Optional[datetime] = None
    ) -> dict:
        """
        Execute the clustering pipeline.

        Args:
            user_id: Owning user of the feedback
            start_date: Filter feedback on or after this date (inclusive)
            end_date: Filter feedback on or before this date (inclusive)
            days_back: Look-back window in days from now (alternative to start_date/end_date)
            limit: Max records to cluster
            use_cache: If False, always recompute and refresh the cache
            now: Run time (defaults to the current UTC time)

        Returns:
            Dictionary of clustering stats/results
        """
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("httpcore").setLevel(logging.WARNING)

        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        if days_back is not None:
            end_date = now
            start_date = end_date - timedelta(days=days_back)
            logger.info(f"Using look-back window: last {days_back} days")

        result = {
            "user_id": user_id,
            "start_date": start_date.isoformat() if start_date else None,
            "end_date": end_date.isoformat() if end_date else None,
            "cached": False,
        }

        try:
            self.store.connect()
            records = self.store.get_feedback(user_id, start_date=start_date, end_date=end_date, limit=limit)
            logger.info(f"Fetched {len(records)} feedback records for clustering")

            if len(records) < self.config.cluster_min_items:
                logger.info("Not enough records to cluster.")
                result.update({
                    "total_records": len(records),
                    "n_clusters": 0,
                    "clusters": [],
                    "insights": summarize_insights(records),
                    "message": f"Need at least {self.config.cluster_min_items} feedback items for clustering",
                })
                return result

            feedback_ids = [r.id for r in records]

            if use_cache:
                cached = self.store.get_cached_clusters(user_id, feedback_ids, now)
                if cached is not None:
                    logger.info(f"Using cached clusters for user {user_id}")
                    result.update(cached)
                    result["cached"] = True
                    return result

            clusters = self.build_clusters(records)
            cluster_data = {
                "total_records": len(records),
                "n_clusters": len(clusters),
                "clusters": [c.model_dump() for c in clusters],
                "insights": summarize_insights(records),
            }
            self.store.save_clusters(user_id, cluster_data, feedback_ids, now, self.config.cluster_cache_hours)

        finally:
            self.store.close()

        logger.info(f"Clustering complete ({len(clusters)} clusters found)")
        result.update(cluster_data)
        return result


def _parse_date(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def main():
    """Main entry point for running the clustering pipeline with CLI arguments."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description="Group and label a user's stored feedback.")
    parser.add_argument("--user-id", required=True, help="Owning user of the feedback.")
    parser.add_argument("--lookback", type=int, help="Number of days to look back.")
    parser.add_argument("--start-date", type=str, help="Start date (YYYY-MM-DD).")
    parser.add_argument("--end-date", type=str, help="End date (YYYY-MM-DD).")
    parser.add_argument("--limit", type=int, default=None, help="Max records to cluster.")
    parser.add_argument("--no-cache", action="store_true", help="Recompute even if cached clusters exist.")

    args = parser.parse_args()

    try:
        start_date = _parse_date(args.start_date)
        end_date = _parse_date(args.end_date)
    except ValueError as e:
        parser.error(f"Invalid date: {e}")

    config = Settings()
    if not config.openai_api_key:
        parser.error("OPENAI_API_KEY is not configured")

    pipeline = ClusteringPipeline(config)
    result = pipeline.run(
        args.user_id,
        start_date=start_date,
        end_date=end_date,
        days_back=args.lookback,
        limit=args.limit,
        use_cache=not args.no_cache,
    )

    print("\n" + "="*60)
    print("CLUSTERING PIPELINE RESULTS")
    print("="*60)
    print(f"User: {result['user_id']}{' (cached)' if result['cached'] else ''}")
    print(f"Total records: {result['total_records']}")
    print(f"Clusters: {result['n_clusters']}")
    for cluster in result["clusters"]:
        print(f"  - {cluster['label']} [{cluster['category']}, {cluster['priority']}]: {cluster['item_count']} items")
    if result.get("message"):
        print(result["message"])
    print("="*60)


if __name__ == "__main__":
    main()
