"""
SQLite store backend: persistent entries and links.

Entries are immutable once written, so records are cached (least recently read evicted) without
invalidation. Values and link tags are stored as msgpack blobs.

Schema:
    entries(address PK, author, timestamp, data)
    links(id PK, source, target, tag, author, timestamp)
"""

import sqlite3
from contextlib import closing
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union
from collections import OrderedDict
from threading import RLock
import logging
import time

import msgpack

from profiledir.core.addressing import Address, decode_value, encode_value
from profiledir.core.errors import StoreError
from profiledir.core.store import AddressableStore, Link, Record
from profiledir.core.tags import LinkTag, decode_tag, encode_tag

logger = logging.getLogger(__name__)


class RecordCache:
    """
    Bounded cache of immutable records, evicting the least recently read.

    Works on batches so one get_many touches the lock once.
    """

    def __init__(self, capacity: int = 1000):
        self.capacity = capacity
        self._records: "OrderedDict[Address, Record]" = OrderedDict()
        self._lock = RLock()

    def lookup(self, addresses: Sequence[Address]) -> Tuple[Dict[Address, Record], List[Address]]:
        """Split addresses into cached records and the addresses still to fetch."""
        found: Dict[Address, Record] = {}
        missing = []
        with self._lock:
            for address in addresses:
                record = self._records.get(address)
                if record is None:
                    missing.append(address)
                else:
                    self._records.move_to_end(address)
                    found[address] = record
        return found, missing

    def add(self, records: Sequence[Record]) -> None:
        with self._lock:
            for record in records:
                self._records[record.address] = record
                self._records.move_to_end(record.address)
            while len(self._records) > self.capacity:
                self._records.popitem(last=False)

    def stats(self) -> Dict[str, int]:
        with self._lock:
            return {"size": len(self._records), "capacity": self.capacity}


class SqliteBackend(AddressableStore):
    """
    Persistent content-addressable store using SQLite.

    Batched reads (get_many, links_from_many) are served with a single
    query each.
    """

    def __init__(
        self,
        db_path: Union[str, Path] = "profiledir.db",
        cache_size: int = 1000,
        enable_wal: bool = True,
        hash_algorithm: str = "sha256",
    ):
        """
        Initialize SQLite backend.

        Args:
            db_path: Path to SQLite database file
            cache_size: Number of entries to cache in memory
            enable_wal: Enable Write-Ahead Logging for better concurrency
            hash_algorithm: Hash algorithm for addresses
        """
        super().__init__(hash_algorithm)
        self.db_path = str(db_path)
        self.cache = RecordCache(capacity=cache_size)
        self._lock = RLock()

        self._init_db(enable_wal)
        logger.info(f"Initialized SQLite store backend at {self.db_path}")

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self, enable_wal: bool) -> None:
        """Initialize SQLite database with schema."""
        with self._lock, closing(self._connect()) as conn:
            cursor = conn.cursor()

            if enable_wal:
                cursor.execute("PRAGMA journal_mode=WAL")

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS entries (
                    address TEXT PRIMARY KEY,
                    author TEXT NOT NULL,
                    timestamp REAL NOT NULL,
                    data BLOB NOT NULL
                )
            """)
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS links (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    source TEXT NOT NULL,
                    target TEXT NOT NULL,
                    tag BLOB NOT NULL,
                    author TEXT NOT NULL,
                    timestamp REAL NOT NULL
                )
            """)
            cursor.execute("""
                CREATE INDEX IF NOT EXISTS idx_links_source
                ON links(source, tag)
            """)

            conn.commit()

    def _address(self, hex_value: str) -> Address:
        return Address.from_hex(hex_value, self.addressing.hash_algorithm)

    def _row_to_record(self, row) -> Record:
        address, author, timestamp, data = row
        try:
            value = decode_value(data)
        except (ValueError, TypeError, msgpack.UnpackException) as e:
            raise StoreError(f"Malformed entry {address[:8]}...") from e
        return Record(
            address=self._address(address),
            value=value,
            author=author,
            timestamp=timestamp,
        )

    def _row_to_link(self, row) -> Link:
        source, target, tag, author, timestamp = row
        return Link(
            source=self._address(source),
            target=self._address(target),
            tag=decode_tag(tag),
            author=author,
            timestamp=timestamp,
        )

    def put(self, value: Any, author: str) -> Address:
        try:
            data = encode_value(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value is not serializable: {e}") from e

        address = self.address_of(value)
        with self._lock:
            try:
                with closing(self._connect()) as conn:
                    conn.execute(
                        """
                        INSERT OR IGNORE INTO entries (address, author, timestamp, data)
                        VALUES (?, ?, ?, ?)
                        """,
                        (address.hex, author, time.time(), data),
                    )
                    conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to store entry {address.hex[:8]}...: {e}")
                raise StoreError(f"Failed to store entry: {e}") from e

        logger.debug(f"Stored entry {address.hex[:8]}... by {author[:12]}")
        return address

    def get(self, address: Address) -> Optional[Record]:
        return self.get_many([address])[0]

    def get_many(self, addresses: Sequence[Address]) -> List[Optional[Record]]:
        found, missing = self.cache.lookup(addresses)

        if missing:
            placeholders = ",".join("?" for _ in missing)
            with self._lock:
                try:
                    with closing(self._connect()) as conn:
                        rows = conn.execute(
                            f"SELECT address, author, timestamp, data FROM entries "
                            f"WHERE address IN ({placeholders})",
                            [address.hex for address in missing],
                        ).fetchall()
                except sqlite3.Error as e:
                    logger.error(f"Failed to fetch {len(missing)} entries: {e}")
                    raise StoreError(f"Failed to fetch entries: {e}") from e

            fetched = [self._row_to_record(row) for row in rows]
            self.cache.add(fetched)
            found.update((record.address, record) for record in fetched)

        return [found.get(address) for address in addresses]

    def link(self, source: Address, target: Address, tag: LinkTag, author: str) -> None:
        with self._lock:
            try:
                with closing(self._connect()) as conn:
                    conn.execute(
                        """
                        INSERT INTO links (source, target, tag, author, timestamp)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (source.hex, target.hex, encode_tag(tag), author, time.time()),
                    )
                    conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to link {source.hex[:8]}... -> {target.hex[:8]}...: {e}")
                raise StoreError(f"Failed to create link: {e}") from e

    def links_from(self, source: Address, tag: Optional[LinkTag] = None) -> List[Link]:
        return self.links_from_many([source], tag)[0]

    def links_from_many(
        self,
        sources: Sequence[Address],
        tag: Optional[LinkTag] = None,
    ) -> List[List[Link]]:
        if not sources:
            return []

        placeholders = ",".join("?" for _ in sources)
        query = (
            f"SELECT source, target, tag, author, timestamp FROM links "
            f"WHERE source IN ({placeholders})"
        )
        params: List[Any] = [source.hex for source in sources]
        if tag is not None:
            query += " AND tag = ?"
            params.append(encode_tag(tag))
        query += " ORDER BY id"

        with self._lock:
            try:
                with closing(self._connect()) as conn:
                    rows = conn.execute(query, params).fetchall()
            except sqlite3.Error as e:
                logger.error(f"Failed to query links from {len(sources)} source(s): {e}")
                raise StoreError(f"Failed to query links: {e}") from e

        by_source: Dict[Address, List[Link]] = {}
        for row in rows:
            link = self._row_to_link(row)
            by_source.setdefault(link.source, []).append(link)
        return [list(by_source.get(source, [])) for source in sources]

    def unlink(self, link: Link) -> None:
        with self._lock:
            try:
                with closing(self._connect()) as conn:
                    conn.execute(
                        """
                        DELETE FROM links WHERE id = (
                            SELECT id FROM links
                            WHERE source = ? AND target = ? AND tag = ?
                              AND author = ? AND timestamp = ?
                            LIMIT 1
                        )
                        """,
                        (
                            link.source.hex,
                            link.target.hex,
                            encode_tag(link.tag),
                            link.author,
                            link.timestamp,
                        ),
                    )
                    conn.commit()
            except sqlite3.Error as e:
                logger.error(f"Failed to unlink {link.source.hex[:8]}... -> {link.target.hex[:8]}...: {e}")
                raise StoreError(f"Failed to remove link: {e}") from e

    def stats(self) -> Dict[str, Any]:
        """Entry and link counts plus cache usage."""
        with self._lock, closing(self._connect()) as conn:
            entries = conn.execute("SELECT COUNT(*) FROM entries").fetchone()[0]
            links = conn.execute("SELECT COUNT(*) FROM links").fetchone()[0]
        return {"entries": entries, "links": links, "cache": self.cache.stats()}
