"""
Link index: the two edges that make a profile discoverable.

For every published profile:

    bucket node --BucketTag(prefix)--> profile entry
    identity    --ProfileTag-------->  profile entry

The two links are written independently. There is no transaction spanning
them, so a failure between the writes leaves the profile reachable from only
one side (see DirectoryService.verify_index).
"""

from typing import List, Optional, Sequence, Tuple
import logging

from .addressing import Address
from .models import agent_value
from .store import AddressableStore, Link
from .tags import BucketTag, PROFILE_TAG

logger = logging.getLogger(__name__)


class LinkIndex:
    """Creates and resolves profile index links."""

    def __init__(self, store: AddressableStore):
        self.store = store

    def identity_address(self, identity: str) -> Address:
        return self.store.address_of(agent_value(identity))

    def index_profile(
        self,
        bucket_addr: Address,
        identity: str,
        profile_addr: Address,
        prefix: str,
    ) -> None:
        """
        Link a profile from its bucket and from its publisher.

        Args:
            bucket_addr: Bucket node address
            identity: Publishing identity (also the link author)
            profile_addr: Profile entry address
            prefix: Bucket key, used as the bucket link tag
        """
        self.store.link(bucket_addr, profile_addr, BucketTag(prefix), identity)
        self.store.link(self.identity_address(identity), profile_addr, PROFILE_TAG, identity)

        logger.debug(
            f"Indexed profile {profile_addr.hex[:8]}... "
            f"under bucket {prefix!r} and identity {identity[:12]}"
        )

    def profiles_under(self, node_addr: Address) -> List[Address]:
        """Distinct link targets below a node, in link order."""
        seen = set()
        targets = []
        for link in self.store.links_from(node_addr):
            if link.target not in seen:
                seen.add(link.target)
                targets.append(link.target)
        return targets

    def profile_links_under(self, node_addr: Address) -> List[Link]:
        """
        Links below a node, one per (profile, publisher) pair.

        Identical content published by two identities is one entry with two
        bucket links; both are kept so each publisher is listed.
        """
        seen = set()
        links = []
        for link in self.store.links_from(node_addr):
            key = (link.target, link.author)
            if key not in seen:
                seen.add(key)
                links.append(link)
        return links

    def identity_links(self, identity: str) -> List[Link]:
        """All profile links an identity has accumulated."""
        return self.store.links_from(self.identity_address(identity), PROFILE_TAG)

    def profile_for_identity(self, identity: str) -> Optional[Address]:
        """First profile linked from an identity, or None."""
        links = self.identity_links(identity)
        if not links:
            return None
        return links[0].target

    def profiles_for_identities(self, identities: Sequence[str]) -> List[Tuple[str, Address]]:
        """
        Resolve the first profile link of many identities in one batched query.

        Identities without a profile link are dropped.
        """
        sources = [self.identity_address(identity) for identity in identities]
        resolved = []
        for identity, links in zip(identities, self.store.links_from_many(sources, PROFILE_TAG)):
            if links:
                resolved.append((identity, links[0].target))
        return resolved

    def unindex_profile(self, identity: str, profile_addr: Address, bucket_addr: Address) -> None:
        """
        Remove an identity's links to one profile.

        Drops the identity -> profile links and the bucket -> profile links
        the identity authored. Links authored by other identities that point
        at the same content are left alone.
        """
        for link in self.identity_links(identity):
            if link.target == profile_addr:
                self.store.unlink(link)
        for link in self.store.links_from(bucket_addr):
            if link.target == profile_addr and link.author == identity:
                self.store.unlink(link)

        logger.debug(f"Unindexed profile {profile_addr.hex[:8]}... for {identity[:12]}")
