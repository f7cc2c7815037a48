"""SQLite metadata database for branchkv.

Holds the mutable part of a repository: branch references, the HEAD
pointer naming the active branch, and an index of commit objects. Blobs,
trees and commits themselves live in the object store and commits/
directory; the commit index can be rebuilt from those files.
"""

import logging
import sqlite3
from pathlib import Path
from typing import Any, Dict, List, Optional

from branchkv.constants import DB_SCHEMA_VERSION, METADATA_DB
from branchkv.errors import BackendIOError

logger = logging.getLogger(__name__)


class DatabaseError(BackendIOError):
    """Base exception for database errors."""

    pass


class MetadataDB:
    """SQLite database manager for branchkv metadata.

    Schema Tables:
        - metadata: Schema version and the HEAD pointer
        - branches: Branch name -> head commit hash (NULL before first commit)
        - commits: Commit index with hash, parent, tree, timestamp, message

    Every write runs in its own transaction, so a branch pointer either
    moves completely or not at all.

    Attributes:
        db_path: Path to the SQLite database file
        conn: Active database connection (if open)

    Example:
        >>> db = MetadataDB(Path("data.kv"))
        >>> db.open()
        >>> db.init_schema()
        >>> db.create_branch("master", None)
    """

    def __init__(self, repo_dir: Path) -> None:
        """Initialize database manager.

        Args:
            repo_dir: Path to the repository directory
        """
        self.repo_dir = Path(repo_dir)
        self.db_path = self.repo_dir / METADATA_DB
        self.conn: Optional[sqlite3.Connection] = None

    def open(self) -> None:
        """Open database connection.

        Raises:
            DatabaseError: If connection fails
        """
        if self.conn is not None:
            return  # Already open

        try:
            self.conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,  # Wait up to 30s for locks
            )
            self.conn.row_factory = sqlite3.Row  # Access columns by name
            self.conn.execute("PRAGMA foreign_keys=ON")

        except sqlite3.Error as e:
            self.close()
            raise DatabaseError(f"Failed to open database: {e}") from e

    def close(self) -> None:
        """Close database connection."""
        if self.conn is not None:
            self.conn.close()
            self.conn = None

    def __enter__(self) -> "MetadataDB":
        """Context manager entry."""
        self.open()
        return self

    def __exit__(self, *args: Any) -> None:
        """Context manager exit."""
        self.close()

    def _require_conn(self) -> sqlite3.Connection:
        if self.conn is None:
            raise DatabaseError("Database not open")
        return self.conn

    def init_schema(self) -> None:
        """Initialize database schema.

        Safe to call on an existing database (uses IF NOT EXISTS).

        Raises:
            DatabaseError: If schema creation fails
        """
        conn = self._require_conn()

        try:
            cursor = conn.cursor()

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS branches (
                    name TEXT PRIMARY KEY,
                    head_hash TEXT
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS commits (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    commit_hash TEXT UNIQUE NOT NULL,
                    parent_hash TEXT,
                    tree_hash TEXT NOT NULL,
                    timestamp TEXT NOT NULL,
                    author TEXT NOT NULL,
                    message TEXT NOT NULL,
                    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_commits_parent
                ON commits(parent_hash)
            """)

            cursor.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                ("schema_version", str(DB_SCHEMA_VERSION)),
            )

            conn.commit()

        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to initialize schema: {e}") from e

    def get_schema_version(self) -> int:
        """Get the database schema version (0 if unset)."""
        value = self._get_metadata("schema_version")
        return int(value) if value is not None else 0

    # HEAD

    def get_head(self) -> Optional[str]:
        """Return the name of the active branch, or None if unset."""
        return self._get_metadata("HEAD")

    def set_head(self, branch: str) -> None:
        """Point HEAD at a branch."""
        conn = self._require_conn()
        try:
            conn.execute(
                "INSERT OR REPLACE INTO metadata (key, value) VALUES (?, ?)",
                ("HEAD", branch),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to set HEAD: {e}") from e

    def _get_metadata(self, key: str) -> Optional[str]:
        conn = self._require_conn()
        try:
            row = conn.execute(
                "SELECT value FROM metadata WHERE key = ?", (key,)
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read metadata {key}: {e}") from e
        return None if row is None else row[0]

    # Branch references

    def list_branches(self) -> List[str]:
        """Return all branch names in lexicographic order."""
        conn = self._require_conn()
        try:
            rows = conn.execute("SELECT name FROM branches ORDER BY name").fetchall()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to list branches: {e}") from e
        return [row["name"] for row in rows]

    def get_branch(self, name: str) -> Optional[Dict[str, Any]]:
        """Retrieve a branch record.

        Returns:
            Dictionary with ``name`` and ``head_hash`` (None when the branch
            has no commits), or None if the branch doesn't exist
        """
        conn = self._require_conn()
        try:
            row = conn.execute(
                "SELECT name, head_hash FROM branches WHERE name = ?", (name,)
            ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to read branch {name}: {e}") from e
        return None if row is None else dict(row)

    def create_branch(self, name: str, head_hash: Optional[str]) -> None:
        """Insert a new branch reference.

        Raises:
            DatabaseError: If the branch exists or the insert fails
        """
        conn = self._require_conn()
        try:
            conn.execute(
                "INSERT INTO branches (name, head_hash) VALUES (?, ?)",
                (name, head_hash),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            conn.rollback()
            raise DatabaseError(f"Branch already exists: {name}") from e
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to create branch {name}: {e}") from e

    def update_branch(self, name: str, head_hash: Optional[str]) -> None:
        """Move a branch reference to another commit in one transaction.

        Raises:
            DatabaseError: If the branch doesn't exist or the update fails
        """
        conn = self._require_conn()
        try:
            cursor = conn.execute(
                "UPDATE branches SET head_hash = ? WHERE name = ?",
                (head_hash, name),
            )
            if cursor.rowcount != 1:
                conn.rollback()
                raise DatabaseError(f"Branch not found: {name}")
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to update branch {name}: {e}") from e
        logger.debug("Branch %s -> %s", name, head_hash[:8] if head_hash else None)

    def delete_branch(self, name: str) -> None:
        """Delete a branch reference. Commit objects are left in place."""
        conn = self._require_conn()
        try:
            conn.execute("DELETE FROM branches WHERE name = ?", (name,))
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to delete branch {name}: {e}") from e

    # Commit index

    def insert_commit(
        self,
        commit_hash: str,
        parent_hash: Optional[str],
        tree_hash: str,
        timestamp: str,
        author: str,
        message: str,
    ) -> None:
        """Index a commit record.

        Commits are content-addressed, so indexing the same commit twice
        is a no-op.

        Raises:
            DatabaseError: If the insert fails
        """
        conn = self._require_conn()
        try:
            conn.execute(
                """
                INSERT OR IGNORE INTO commits
                    (commit_hash, parent_hash, tree_hash, timestamp, author, message)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (commit_hash, parent_hash, tree_hash, timestamp, author, message),
            )
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            raise DatabaseError(f"Failed to insert commit: {e}") from e

    def get_commit_by_hash(self, commit_hash: str) -> Optional[Dict[str, Any]]:
        """Retrieve an indexed commit by full or short (prefix) hash.

        Returns:
            Dictionary with commit data, or None if not found
        """
        conn = self._require_conn()
        try:
            if len(commit_hash) < 64:
                row = conn.execute(
                    "SELECT * FROM commits WHERE commit_hash LIKE ? || '%' LIMIT 1",
                    (commit_hash,),
                ).fetchone()
            else:
                row = conn.execute(
                    "SELECT * FROM commits WHERE commit_hash = ?",
                    (commit_hash,),
                ).fetchone()
        except sqlite3.Error as e:
            raise DatabaseError(f"Failed to query commit: {e}") from e
        return None if row is None else dict(row)
