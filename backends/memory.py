"""
In-memory store backend.

Keeps entries and links in process memory. Values are round-tripped through
their canonical encoding on write, so readers never share mutable state with
writers. Useful for tests and for single-process directories.
"""

from typing import Any, Dict, List, Optional, Sequence
from threading import RLock
import logging
import time

from profiledir.core.addressing import Address, decode_value, encode_value
from profiledir.core.errors import StoreError
from profiledir.core.store import AddressableStore, Link, Record
from profiledir.core.tags import LinkTag

logger = logging.getLogger(__name__)


class MemoryBackend(AddressableStore):
    """
    Thread-safe in-memory content-addressable store.

    Entries: address -> Record (first write wins)
    Links:   source address -> [Link, ...] in creation order
    """

    def __init__(self, hash_algorithm: str = "sha256"):
        super().__init__(hash_algorithm)
        self.entries: Dict[Address, Record] = {}
        self.links: Dict[Address, List[Link]] = {}
        self._lock = RLock()

        logger.info("Initialized in-memory store backend")

    def put(self, value: Any, author: str) -> Address:
        try:
            encoded = encode_value(value)
        except (TypeError, ValueError) as e:
            raise StoreError(f"Value is not serializable: {e}") from e

        address = self.address_of(value)
        with self._lock:
            if address not in self.entries:
                self.entries[address] = Record(
                    address=address,
                    value=decode_value(encoded),
                    author=author,
                    timestamp=time.time(),
                )
                logger.debug(f"Stored entry {address.hex[:8]}... by {author[:12]}")
        return address

    def get(self, address: Address) -> Optional[Record]:
        with self._lock:
            return self.entries.get(address)

    def get_many(self, addresses: Sequence[Address]) -> List[Optional[Record]]:
        with self._lock:
            return [self.entries.get(address) for address in addresses]

    def link(self, source: Address, target: Address, tag: LinkTag, author: str) -> None:
        new_link = Link(source=source, target=target, tag=tag, author=author, timestamp=time.time())
        with self._lock:
            self.links.setdefault(source, []).append(new_link)

    def links_from(self, source: Address, tag: Optional[LinkTag] = None) -> List[Link]:
        with self._lock:
            return self._matching(source, tag)

    def links_from_many(
        self,
        sources: Sequence[Address],
        tag: Optional[LinkTag] = None,
    ) -> List[List[Link]]:
        with self._lock:
            return [self._matching(source, tag) for source in sources]

    def _matching(self, source: Address, tag: Optional[LinkTag]) -> List[Link]:
        return [
            link for link in self.links.get(source, [])
            if tag is None or link.tag == tag
        ]

    def unlink(self, link: Link) -> None:
        with self._lock:
            existing = self.links.get(link.source, [])
            if link in existing:
                existing.remove(link)

    def stats(self) -> Dict[str, int]:
        """Entry and link counts."""
        with self._lock:
            return {
                "entries": len(self.entries),
                "links": sum(len(links) for links in self.links.values()),
            }
