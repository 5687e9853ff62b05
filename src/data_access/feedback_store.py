# src/data_access/feedback_store.py
"""
PostgreSQL (Supabase) client for accepted feedback, sync bookkeeping and cached clusters.
"""

import psycopg2
from psycopg2.extras import Json
from typing import List, Optional, Dict, Any
from datetime import datetime, timedelta
from src.config.settings import Settings
from src.models.schemas import NormalizedRecord, StoredFeedback


class FeedbackStore:
    """PostgreSQL client for the raw_feedback table."""

    def __init__(self, config: Settings):
        self.config = config
        self.conn = None

    def connect(self) -> None:
        """Establish database connection."""
        self.conn = psycopg2.connect(
            host=self.config.postgres_host,
            port=self.config.postgres_port,
            database=self.config.postgres_database,
            user=self.config.postgres_username,
            password=self.config.postgres_password,
            sslmode=self.config.postgres_sslmode
        )

    def close(self) -> None:
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None

    def initialize_schema(self) -> None:
        """Create tables and indexes if they don't exist."""
        if not self.conn:
            self.connect()

        schema_sql = """
        CREATE TABLE IF NOT EXISTS raw_feedback (
            id BIGSERIAL PRIMARY KEY,
            user_id TEXT NOT NULL,
            platform VARCHAR(50) NOT NULL,
            source_id TEXT NOT NULL,
            content TEXT NOT NULL,
            category VARCHAR(50),
            priority VARCHAR(20),
            sentiment VARCHAR(20),
            ai_analysis JSONB,
            metadata JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );

        CREATE UNIQUE INDEX IF NOT EXISTS idx_raw_feedback_unique_source
        ON raw_feedback (user_id, platform, source_id);

        CREATE TABLE IF NOT EXISTS sync_state (
            user_id TEXT NOT NULL,
            platform VARCHAR(50) NOT NULL,
            last_sync TIMESTAMPTZ NOT NULL,
            PRIMARY KEY (user_id, platform)
        );

        CREATE TABLE IF NOT EXISTS feedback_clusters (
            id BIGSERIAL PRIMARY KEY,
            user_id TEXT NOT NULL,
            cluster_data JSONB NOT NULL,
            feedback_ids TEXT[] NOT NULL DEFAULT '{}',
            total_feedback_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ DEFAULT NOW(),
            expires_at TIMESTAMPTZ NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_feedback_clusters_user_count
        ON feedback_clusters (user_id, total_feedback_count);
        """

        with self.conn.cursor() as cursor:
            cursor.execute(schema_sql)
            self.conn.commit()

    def exists(self, user_id: str, platform: str, source_id: str) -> bool:
        """Check whether an item was already stored for this user."""
        if not self.conn:
            self.connect()

        query = """
            SELECT 1 FROM raw_feedback
            WHERE user_id = %s AND platform = %s AND source_id = %s
            LIMIT 1
        """

        with self.conn.cursor() as cursor:
            cursor.execute(query, (user_id, platform, source_id))
            return cursor.fetchone() is not None

    def insert_feedback(self, user_id: str, platform: str, source_id: str, record: NormalizedRecord) -> bool:
        """
        Insert an accepted feedback record.

        Args:
            user_id: Owning user
            platform: Source platform
            source_id: Platform-specific item id
            record: Normalized record from the acceptance gate

        Returns:
            True if a row was inserted, False if it already existed
        """
        if not self.conn:
            self.connect()

        query = """
            INSERT INTO raw_feedback
                (user_id, platform, source_id, content, category, priority, sentiment, ai_analysis, metadata)
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
            ON CONFLICT (user_id, platform, source_id) DO NOTHING
        """

        with self.conn.cursor() as cursor:
            cursor.execute(
                query,
                (user_id, platform, source_id, record.content, record.category,
                 record.priority, record.sentiment, Json(record.ai_analysis),
                 Json(record.metadata.model_dump(by_alias=True)))
            )
            inserted = cursor.rowcount == 1
            self.conn.commit()
        return inserted

    def update_last_sync(self, user_id: str, platform: str, synced_at: datetime) -> None:
        """Record when a user's platform was last synced."""
        if not self.conn:
            self.connect()

        query = """
            INSERT INTO sync_state (user_id, platform, last_sync)
            VALUES (%s, %s, %s)
            ON CONFLICT (user_id, platform) DO UPDATE
            SET last_sync = EXCLUDED.last_sync
        """

        with self.conn.cursor() as cursor:
            cursor.execute(query, (user_id, platform, synced_at))
            self.conn.commit()

    def get_feedback(
        self,
        user_id: str,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: Optional[int] = None
    ) -> List[StoredFeedback]:
        """
        Fetch a user's stored feedback, newest first.

        Args:
            user_id: Owning user
            start_date: Only feedback created on or after this time
            end_date: Only feedback created on or before this time
            limit: Maximum number of rows

        Returns:
            List of StoredFeedback
        """
        if not self.conn:
            self.connect()

        query = """
            SELECT id, platform, content, category, priority, sentiment, ai_analysis, created_at
            FROM raw_feedback
            WHERE user_id = %s
        """
        params: List[Any] = [user_id]

        if start_date:
            query += " AND created_at >= %s"
            params.append(start_date)
        if end_date:
            query += " AND created_at <= %s"
            params.append(end_date)

        query += " ORDER BY created_at DESC"

        if limit:
            query += " LIMIT %s"
            params.append(limit)

        with self.conn.cursor() as cursor:
            cursor.execute(query, tuple(params))
            rows = cursor.fetchall()

        return [
            StoredFeedback(
                id=str(row[0]),
                platform=row[1],
                content=row[2],
                category=row[3] or "general",
                priority=row[4] or "medium",
                sentiment=row[5] or "neutral",
                ai_analysis=row[6] or {},
                created_at=row[7]
            )
            for row in rows
        ]

    def get_cached_clusters(self, user_id: str, feedback_ids: List[str], now: datetime) -> Optional[Dict[str, Any]]:
        """Return unexpired cluster data computed over exactly these feedback ids, if any."""
        if not self.conn:
            self.connect()

        query = """
            SELECT cluster_data FROM feedback_clusters
            WHERE user_id = %s AND total_feedback_count = %s AND feedback_ids = %s AND expires_at > %s
            ORDER BY created_at DESC
            LIMIT 1
        """

        with self.conn.cursor() as cursor:
            cursor.execute(query, (user_id, len(feedback_ids), sorted(feedback_ids), now))
            row = cursor.fetchone()
        return row[0] if row else None

    def save_clusters(
        self,
        user_id: str,
        cluster_data: Dict[str, Any],
        feedback_ids: List[str],
        now: datetime,
        ttl_hours: int
    ) -> None:
        """Cache cluster data for a user, dropping their expired entries."""
        if not self.conn:
            self.connect()

        with self.conn.cursor() as cursor:
            cursor.execute(
                "DELETE FROM feedback_clusters WHERE user_id = %s AND expires_at <= %s",
                (user_id, now)
            )
            cursor.execute(
                """
                INSERT INTO feedback_clusters
                    (user_id, cluster_data, feedback_ids, total_feedback_count, expires_at)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (user_id, Json(cluster_data), sorted(feedback_ids), len(feedback_ids),
                 now + timedelta(hours=ttl_hours))
            )
            self.conn.commit()
