"""Document-collection storage backed by SQLite.

Each record is a JSON body addressed by `(collection, id)`. Listing returns
records in insertion order. There are no cross-document transactions: every
call commits on its own, which is the contract the reconciliation services
are written against.
"""

from __future__ import annotations

import json
import random
import sqlite3
from pathlib import Path
from typing import Any, Mapping, Optional
from uuid import uuid4

from portal.utils.config import Settings, get_settings
from portal.utils.logger import get_logger


logger = get_logger(__name__)

TRAINEES = "trainees"
ROOMS = "rooms"
TAGS = "tagNumbers"


class StoreError(Exception):
    """Raised when the backing store rejects or fails an operation."""


class RecordNotFoundError(StoreError):
    """Raised when a record id does not exist in the collection."""


class DocumentStore:
    """Encapsulates SQLite access so services stay storage-agnostic."""

    def __init__(self, settings: Optional[Settings] = None) -> None:
        self._settings = settings or get_settings()
        self._db_path = Path(self._settings.database_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)

    def _connect(self) -> sqlite3.Connection:
        connection = sqlite3.connect(self._db_path)
        connection.row_factory = sqlite3.Row
        return connection

    def initialize_database(self) -> None:
        """Create the documents table before API startup."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    """
                    CREATE TABLE IF NOT EXISTS Documents (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        collection TEXT NOT NULL,
                        id TEXT NOT NULL,
                        body TEXT NOT NULL,
                        created_at DATETIME DEFAULT CURRENT_TIMESTAMP,
                        UNIQUE (collection, id)
                    );
                    """
                )
                cursor.execute(
                    """
                    CREATE INDEX IF NOT EXISTS idx_documents_collection
                    ON Documents(collection, seq);
                    """
                )
                conn.commit()
            logger.info("Document store initialized at %s", self._db_path)
        except sqlite3.Error as exc:
            raise StoreError(f"Document store initialization failed: {exc}") from exc

    def list_all(self, collection: str) -> list[dict[str, Any]]:
        """Return every record of a collection with its `id` merged in."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT id, body FROM Documents WHERE collection = ? ORDER BY seq ASC;",
                    (collection,),
                )
                return [
                    {**json.loads(row["body"]), "id": str(row["id"])}
                    for row in cursor.fetchall()
                ]
        except sqlite3.Error as exc:
            raise StoreError(f"Listing {collection} failed: {exc}") from exc

    def get_record(self, collection: str, record_id: str) -> dict[str, Any]:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT id, body FROM Documents WHERE collection = ? AND id = ?;",
                    (collection, record_id),
                )
                row = cursor.fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Reading {collection}/{record_id} failed: {exc}") from exc
        if row is None:
            raise RecordNotFoundError(f"{collection}/{record_id} does not exist")
        return {**json.loads(row["body"]), "id": str(row["id"])}

    def patch(self, collection: str, record_id: str, fields: Mapping[str, Any]) -> None:
        """Merge `fields` into an existing record."""
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT body FROM Documents WHERE collection = ? AND id = ?;",
                    (collection, record_id),
                )
                row = cursor.fetchone()
                if row is None:
                    raise RecordNotFoundError(f"{collection}/{record_id} does not exist")
                body = json.loads(row["body"])
                body.update(fields)
                body.pop("id", None)
                cursor.execute(
                    "UPDATE Documents SET body = ? WHERE collection = ? AND id = ?;",
                    (json.dumps(body), collection, record_id),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Updating {collection}/{record_id} failed: {exc}") from exc

    def create_record(self, collection: str, fields: Mapping[str, Any]) -> str:
        """Insert a record and return its store-assigned id."""
        record_id = uuid4().hex
        body = {key: value for key, value in fields.items() if key != "id"}
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "INSERT INTO Documents (collection, id, body) VALUES (?, ?, ?);",
                    (collection, record_id, json.dumps(body)),
                )
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Creating record in {collection} failed: {exc}") from exc
        return record_id

    def delete_record(self, collection: str, record_id: str) -> None:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "DELETE FROM Documents WHERE collection = ? AND id = ?;",
                    (collection, record_id),
                )
                deleted = cursor.rowcount
                conn.commit()
        except sqlite3.Error as exc:
            raise StoreError(f"Deleting {collection}/{record_id} failed: {exc}") from exc
        if deleted == 0:
            raise RecordNotFoundError(f"{collection}/{record_id} does not exist")

    def count(self, collection: str) -> int:
        try:
            with self._connect() as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT COUNT(*) AS count FROM Documents WHERE collection = ?;",
                    (collection,),
                )
                return int(cursor.fetchone()["count"])
        except sqlite3.Error as exc:
            raise StoreError(f"Counting {collection} failed: {exc}") from exc

    def seed_demo_data_if_empty(self) -> int:
        """Seed deterministic rooms, tags and pending trainees on an empty store.

        Returns the number of records created (0 when data already exists).
        """
        if self.count(ROOMS) > 0 or self.count(TAGS) > 0 or self.count(TRAINEES) > 0:
            logger.info("Demo data already present; skipping seed")
            return 0

        rng = random.Random(self._settings.demo_random_seed)
        bed_space_labels = ("single", "double", "2", "3")
        created = 0

        blocks = (*self._settings.male_blocks, *self._settings.female_blocks)
        for block_index, block in enumerate(blocks, start=1):
            for offset in range(1, self._settings.demo_rooms_per_block + 1):
                self.create_record(
                    ROOMS,
                    {
                        "roomNumber": f"{block_index}{offset:02d}",
                        "block": block,
                        "bedSpace": rng.choice(bed_space_labels),
                        "status": "available",
                    },
                )
                created += 1

        for tag_index in range(1, self._settings.demo_tag_count + 1):
            self.create_record(TAGS, {"tagNo": f"T{tag_index:03d}", "status": "available"})
            created += 1

        for trainee_index in range(1, self._settings.demo_trainee_count + 1):
            self.create_record(
                TRAINEES,
                {
                    "firstName": f"Trainee {trainee_index}",
                    "gender": rng.choice(("male", "female")),
                    "tagNumber": "pending",
                    "roomNumber": "pending",
                    "roomBlock": "pending",
                    "bedSpace": "pending",
                    "allocationStatus": "pending",
                },
            )
            created += 1

        logger.info("Demo seed completed with %s records", created)
        return created
