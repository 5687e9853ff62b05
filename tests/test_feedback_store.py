"""Unit tests for the FeedbackStore client."""
import pytest
from unittest.mock import Mock, MagicMock, patch
from datetime import datetime, timezone
from src.config.settings import Settings
from src.data_access.feedback_store import FeedbackStore
from src.models.schemas import NormalizedRecord, FeedbackMetadata


@pytest.fixture
def config():
    """Create a configuration that does not read the environment."""
    return Settings(
        _env_file=None,
        postgres_host="db.example.supabase.co",
        postgres_database="postgres",
        postgres_username="postgres",
        postgres_password="secret"
    )


@pytest.fixture
def sample_record():
    return NormalizedRecord(
        content="The login button does nothing when clicked.",
        category="bug",
        priority="high",
        sentiment="negative",
        metadata=FeedbackMetadata(
            subject="Bug report: Login broken",
            sender="user@example.com",
            date="2024-03-01T11:00:00.000Z",
            processed_at="2024-03-01T12:00:00.000Z",
            auto_processed=True
        ),
        ai_analysis={"category": "bug", "confidence": 0.92}
    )


def _create_mock_connection():
    """Helper to create mock connection."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value.__enter__ = Mock(return_value=cursor)
    conn.cursor.return_value.__exit__ = Mock(return_value=False)
    return conn, cursor


class TestFeedbackStore:
    """Test FeedbackStore methods."""

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_connect_uses_config(self, mock_connect, config):
        store = FeedbackStore(config)
        store.connect()

        mock_connect.assert_called_once_with(
            host="db.example.supabase.co",
            port=5432,
            database="postgres",
            user="postgres",
            password="secret",
            sslmode="require"
        )

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_initialize_schema(self, mock_connect, config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn

        FeedbackStore(config).initialize_schema()

        sql = cursor.execute.call_args[0][0]
        assert "CREATE TABLE IF NOT EXISTS raw_feedback" in sql
        assert "ON raw_feedback (user_id, platform, source_id)" in sql
        assert "CREATE TABLE IF NOT EXISTS sync_state" in sql
        conn.commit.assert_called_once()

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_exists(self, mock_connect, config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn

        store = FeedbackStore(config)

        cursor.fetchone.return_value = (1,)
        assert store.exists("user-1", "gmail", "msg-1") is True
        assert cursor.execute.call_args[0][1] == ("user-1", "gmail", "msg-1")

        cursor.fetchone.return_value = None
        assert store.exists("user-1", "gmail", "msg-2") is False

    @patch('src.data_access.feedback_store.Json')
    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_insert_feedback(self, mock_connect, mock_json, config, sample_record):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        mock_json.side_effect = lambda value: value
        cursor.rowcount = 1

        inserted = FeedbackStore(config).insert_feedback("user-1", "gmail", "msg-1", sample_record)

        assert inserted is True
        sql, values = cursor.execute.call_args[0]
        assert "ON CONFLICT (user_id, platform, source_id) DO NOTHING" in sql
        assert values[:7] == (
            "user-1", "gmail", "msg-1", "The login button does nothing when clicked.",
            "bug", "high", "negative"
        )
        assert values[7] == {"category": "bug", "confidence": 0.92}
        metadata = values[8]
        assert metadata["from"] == "user@example.com"
        assert metadata["subject"] == "Bug report: Login broken"
        assert metadata["auto_processed"] is True
        conn.commit.assert_called_once()

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_insert_feedback_conflict(self, mock_connect, config, sample_record):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        cursor.rowcount = 0

        assert FeedbackStore(config).insert_feedback("user-1", "gmail", "msg-1", sample_record) is False

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_update_last_sync(self, mock_connect, config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        synced_at = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

        FeedbackStore(config).update_last_sync("user-1", "gmail", synced_at)

        sql, values = cursor.execute.call_args[0]
        assert "INSERT INTO sync_state" in sql
        assert values == ("user-1", "gmail", synced_at)
        conn.commit.assert_called_once()

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_close(self, mock_connect, config):
        conn, _ = _create_mock_connection()
        mock_connect.return_value = conn

        store = FeedbackStore(config)
        store.connect()
        store.close()

        conn.close.assert_called_once()
        assert store.conn is None

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_get_feedback(self, mock_connect, config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        created = datetime(2024, 3, 1, 11, 0, 0, tzinfo=timezone.utc)
        cursor.fetchall.return_value = [
            (7, "gmail", "Login fails", "bug", "high", "negative", {"confidence": 0.9}, created),
            (8, "manual", "Add export", None, None, None, None, created),
        ]
        start = datetime(2024, 2, 1, tzinfo=timezone.utc)

        records = FeedbackStore(config).get_feedback("user-1", start_date=start, limit=50)

        sql, values = cursor.execute.call_args[0]
        assert "created_at >= %s" in sql
        assert "created_at <= %s" not in sql
        assert "LIMIT %s" in sql
        assert values == ("user-1", start, 50)

        assert records[0].id == "7"
        assert records[0].category == "bug"
        assert records[0].ai_analysis == {"confidence": 0.9}
        assert records[1].category == "general"
        assert records[1].priority == "medium"
        assert records[1].sentiment == "neutral"

    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_get_cached_clusters(self, mock_connect, config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        now = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)
        store = FeedbackStore(config)

        cursor.fetchone.return_value = ({"n_clusters": 2},)
        assert store.get_cached_clusters("user-1", ["3", "1"], now) == {"n_clusters": 2}
        assert cursor.execute.call_args[0][1] == ("user-1", 2, ["1", "3"], now)

        cursor.fetchone.return_value = None
        assert store.get_cached_clusters("user-1", ["3", "1"], now) is None

    @patch('src.data_access.feedback_store.Json')
    @patch('src.data_access.feedback_store.psycopg2.connect')
    def test_save_clusters(self, mock_connect, mock_json, config):
        conn, cursor = _create_mock_connection()
        mock_connect.return_value = conn
        mock_json.side_effect = lambda value: value
        now = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)

        FeedbackStore(config).save_clusters("user-1", {"n_clusters": 1}, ["2", "1"], now, 24)

        delete_call, insert_call = cursor.execute.call_args_list
        assert "DELETE FROM feedback_clusters" in delete_call[0][0]
        assert delete_call[0][1] == ("user-1", now)
        assert "INSERT INTO feedback_clusters" in insert_call[0][0]
        assert insert_call[0][1] == (
            "user-1", {"n_clusters": 1}, ["1", "2"], 2, datetime(2024, 3, 2, 12, 0, 0, tzinfo=timezone.utc)
        )
        conn.commit.assert_called_once()
