"""
AddressableStore facade.

The directory is built on exactly two primitives of the host store:
content-addressed entries and typed, directional links between addresses.
This module defines that contract. Concrete stores live in ``backends/``.

Store calls are blocking round trips. Failures surface as ``StoreError`` and
are never retried here; retry and timeout policy belongs to the store.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from .addressing import Address, AddressingEngine
from .tags import LinkTag


@dataclass(frozen=True)
class Record:
    """
    A stored entry plus its write metadata.

    Attributes:
        address: Content address of the value
        value: Decoded value
        author: Identity that first wrote the entry
        timestamp: Unix timestamp of that first write
    """
    address: Address
    value: Any
    author: str
    timestamp: float


@dataclass(frozen=True)
class Link:
    """Directed, tagged edge between two addresses."""
    source: Address
    target: Address
    tag: LinkTag
    author: str
    timestamp: float


class AddressableStore(ABC):
    """
    Contract consumed from the host content-addressable store.

    Subclasses implement the primitive reads and writes. Batched reads
    (``get_many``, ``links_from_many``) default to one call per item and
    should be overridden by stores that can serve them in one round trip.
    """

    def __init__(self, hash_algorithm: str = "sha256"):
        self.addressing = AddressingEngine(hash_algorithm)

    def address_of(self, value: Any) -> Address:
        """Address a value would be stored under. No side effect."""
        return self.addressing.address_of(value)

    @abstractmethod
    def put(self, value: Any, author: str) -> Address:
        """Store a value and return its address. Idempotent per content."""

    @abstractmethod
    def get(self, address: Address) -> Optional[Record]:
        """Fetch a record by address, or None if absent."""

    def get_many(self, addresses: Sequence[Address]) -> List[Optional[Record]]:
        """Fetch several records; result is positionally aligned with input."""
        return [self.get(address) for address in addresses]

    @abstractmethod
    def link(self, source: Address, target: Address, tag: LinkTag, author: str) -> None:
        """Create a tagged link from source to target."""

    @abstractmethod
    def links_from(self, source: Address, tag: Optional[LinkTag] = None) -> List[Link]:
        """Links leaving source, optionally restricted to one tag, in creation order."""

    def links_from_many(
        self,
        sources: Sequence[Address],
        tag: Optional[LinkTag] = None,
    ) -> List[List[Link]]:
        """Batched ``links_from``; result is positionally aligned with input."""
        return [self.links_from(source, tag) for source in sources]

    @abstractmethod
    def unlink(self, link: Link) -> None:
        """Remove a link. Only used by the overwrite republish policy."""
