"""
Path index: deterministic nickname buckets.

Layout (dot-separated path segments):

    all_profiles
        all_profiles.ali
        all_profiles.bob
        ...

A bucket key is the lower-cased first 3 characters of a nickname. Each node
is a content-addressed ``{"type": "path", "path": ...}`` value, so its
address is a pure function of its path and any peer can compute the root
without shared state. Buckets are created lazily and linked from the root
with ``BucketTag(key)``.
"""

from typing import List
import logging

from .addressing import Address
from .config import BUCKET_WIDTH
from .errors import InvalidNickname
from .store import AddressableStore, Link
from .tags import BucketTag

logger = logging.getLogger(__name__)

PATH_TYPE = "path"


def bucket_of(nickname: str) -> str:
    """
    Bucket key for a nickname.

    Raises:
        InvalidNickname: nickname shorter than the bucket width
    """
    if len(nickname) < BUCKET_WIDTH:
        raise InvalidNickname(
            f"Nickname {nickname!r} is shorter than {BUCKET_WIDTH} characters"
        )
    return nickname.lower()[:BUCKET_WIDTH]


class PathIndex:
    """Materializes bucket nodes below the directory root."""

    def __init__(self, store: AddressableStore, author: str, root_path: str = "all_profiles"):
        """
        Args:
            store: Store the nodes live in
            author: Identity recorded on node writes
            root_path: Root path segment
        """
        self.store = store
        self.author = author
        self.root_path = root_path

    bucket_of = staticmethod(bucket_of)

    def node_path(self, key: str) -> str:
        return f"{self.root_path}.{key}"

    def root_address(self) -> Address:
        """Well-known root address. Pure; nothing is written."""
        return self.store.address_of({"type": PATH_TYPE, "path": self.root_path})

    def node_address(self, key: str) -> Address:
        """Address of a bucket node. Pure; nothing is written."""
        return self.store.address_of({"type": PATH_TYPE, "path": self.node_path(key)})

    def ensure_node(self, key: str) -> Address:
        """
        Make sure the bucket node for ``key`` exists and is linked from the root.

        Calling again with the same key writes nothing and returns the same
        address.

        Args:
            key: Bucket key (see bucket_of)

        Returns:
            Address of the bucket node
        """
        root = self.root_address()
        tag = BucketTag(key)

        if self.store.links_from(root, tag):
            return self.node_address(key)

        self.store.put({"type": PATH_TYPE, "path": self.root_path}, self.author)
        node = self.store.put({"type": PATH_TYPE, "path": self.node_path(key)}, self.author)
        self.store.link(root, node, tag, self.author)

        logger.debug(f"Created bucket node {self.node_path(key)} ({node.hex[:8]}...)")
        return node

    def children_of(self, address: Address) -> List[Link]:
        """
        Child links below a node, one per distinct target.

        Concurrent ``ensure_node`` calls from different peers can both link
        the same bucket; duplicates collapse here.
        """
        seen = set()
        children = []
        for link in self.store.links_from(address):
            if link.target in seen:
                continue
            seen.add(link.target)
            children.append(link)
        return children
