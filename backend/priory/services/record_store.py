"""
JSON Record Store

Persists records as one JSON document per id, grouped by collection.
Handles insert, lookup, partial updates and listing.
"""

import json
import logging
import secrets
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)

ID_ALPHABET = "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"


def generate_id(size: int = 21) -> str:
    """Generate a URL-safe random identifier of the given length."""
    return "".join(secrets.choice(ID_ALPHABET) for _ in range(size))


class JsonRecordStore:
    """
    Stores records as {base_path}/{collection}/{record_id}.json.

    Record ids are opaque strings restricted to the URL-safe id alphabet so
    they can never traverse outside the collection directory.
    """

    def __init__(self, base_path: str, collection: str):
        self.collection = collection
        self.path = Path(base_path) / collection

    def _record_path(self, record_id: str) -> Optional[Path]:
        if not record_id or any(ch not in ID_ALPHABET for ch in record_id):
            return None
        return self.path / f"{record_id}.json"

    def insert(self, record_id: str, data: dict) -> dict:
        """
        Create a new record.

        Raises:
            ValueError: If record_id is not a valid id
            FileExistsError: If a record with this id already exists
        """
        record_path = self._record_path(record_id)
        if record_path is None:
            raise ValueError(f"Invalid record id: {record_id!r}")

        self.path.mkdir(parents=True, exist_ok=True)
        record = {**data, "id": record_id}

        with open(record_path, "x") as f:
            json.dump(record, f, indent=2)

        logger.info(f"Inserted {self.collection} record {record_id}")
        return record

    def get(self, record_id: str) -> Optional[dict]:
        """
        Load a record.

        Returns:
            dict: Record if it exists and parses, None otherwise
        """
        record_path = self._record_path(record_id)
        if record_path is None or not record_path.exists():
            return None

        try:
            with open(record_path, "r") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error(f"Failed to read {self.collection} record {record_id}: {e}")
            return None

    def update(self, record_id: str, **updates) -> Optional[dict]:
        """Merge updates into a record. Returns the new record, or None if missing."""
        record = self.get(record_id)
        if record is None:
            logger.warning(f"Cannot update missing {self.collection} record {record_id}")
            return None

        record.update(updates)
        with open(self._record_path(record_id), "w") as f:
            json.dump(record, f, indent=2)
        return record

    def delete(self, record_id: str) -> bool:
        record_path = self._record_path(record_id)
        if record_path is None or not record_path.exists():
            return False

        record_path.unlink()
        logger.info(f"Deleted {self.collection} record {record_id}")
        return True

    def list(self, sort_key: str = "createdAt", reverse: bool = True) -> List[dict]:
        """Load every readable record, sorted by sort_key (newest first by default)."""
        if not self.path.exists():
            return []

        records = []
        for record_path in self.path.glob("*.json"):
            record = self.get(record_path.stem)
            if record is not None:
                records.append(record)

        records.sort(key=lambda r: r.get(sort_key) or "", reverse=reverse)
        return records
