"""
Directory service: the public operation set.

Composes the path index, the link index and the store into publish,
lookup-by-identity, prefix search and full listing. Every operation is one
self-contained traversal of the store; the service keeps no state between
calls beyond its collaborators.

Consistency notes:
- Two concurrent publishes may see each other's links in any order, or not
  at all for a while. Search and listing are best-effort reads of the links
  currently visible, not snapshots.
- publish writes the entry first, then two independent links. A failure in
  between is not rolled back; the profile stays reachable from one side
  only. Callers should treat a failed publish as "maybe partially applied".
"""

from typing import Dict, List, Optional, Sequence, Tuple
import logging

from .addressing import Address
from .config import BUCKET_WIDTH, DirectoryConfig, RepublishPolicy
from .errors import PrefixTooShort
from .link_index import LinkIndex
from .models import AnnotatedProfile, Profile
from .path_index import PathIndex, bucket_of
from .store import AddressableStore, Link, Record

logger = logging.getLogger(__name__)


class DirectoryService:
    """
    Profile directory for one participant.

    Usage:
        directory = DirectoryService(store, identity="uhCAk...")
        directory.publish(Profile(nickname="Alice"))
        directory.search("ali")
    """

    def __init__(
        self,
        store: AddressableStore,
        identity: str,
        config: Optional[DirectoryConfig] = None,
    ):
        """
        Args:
            store: Shared content-addressable store
            identity: Public key of the calling participant
            config: Directory settings (defaults if omitted)
        """
        self.store = store
        self.identity = identity
        self.config = config or DirectoryConfig()
        self.paths = PathIndex(store, identity, self.config.root_path)
        self.links = LinkIndex(store)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def publish(self, profile: Profile) -> AnnotatedProfile:
        """
        Publish a profile for the calling identity.

        Stores the entry, ensures its bucket node, then links it from the
        bucket and from the caller's identity. A nickname shorter than the
        bucket width fails with InvalidNickname after the entry is stored,
        leaving it unindexed.

        Raises:
            InvalidNickname: nickname too short to bucket
            StoreError: store failure (possibly after a partial write)
        """
        profile_addr = self.store.put(profile.to_value(), self.identity)

        key = self.paths.bucket_of(profile.nickname)
        bucket_addr = self.paths.ensure_node(key)

        overwrite = self.config.republish_policy is RepublishPolicy.OVERWRITE
        if overwrite:
            previous = self._links_before_publish(bucket_addr, profile_addr)

        self.links.index_profile(bucket_addr, self.identity, profile_addr, key)

        # Old links go only once the new ones are in place
        if overwrite:
            self._unindex_previous(previous, profile_addr)

        logger.info(
            f"Published profile {profile.nickname!r} ({profile_addr.hex[:8]}...) "
            f"in bucket {key!r}"
        )
        return AnnotatedProfile(identity=self.identity, profile=profile)

    def _links_before_publish(self, bucket_addr: Address, profile_addr: Address) -> List[Link]:
        """The caller's identity links, plus its bucket links to profile_addr."""
        links = self.links.identity_links(self.identity)
        links.extend(
            link for link in self.store.links_from(bucket_addr)
            if link.target == profile_addr and link.author == self.identity
        )
        return links

    def _unindex_previous(self, previous: List[Link], current: Address) -> None:
        """
        Remove links that predate the current publish (overwrite policy).

        Earlier links to ``current`` itself are dropped one by one, so a
        republish of identical content keeps just the pair written now.
        """
        for link in previous:
            if link.target == current:
                self.store.unlink(link)

        old_targets = list(dict.fromkeys(link.target for link in previous if link.target != current))
        if not old_targets:
            return

        for target, record in zip(old_targets, self.store.get_many(old_targets)):
            if record is None:
                # Dangling link: no entry to locate a bucket from
                for link in previous:
                    if link.target == target:
                        self.store.unlink(link)
                continue
            old_profile = Profile.from_value(record.value)
            bucket_addr = self.paths.node_address(bucket_of(old_profile.nickname))
            self.links.unindex_profile(self.identity, target, bucket_addr)

        logger.debug(f"Overwrite policy: unindexed {len(old_targets)} previous profile(s)")

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_by_identity(self, identity: str) -> Optional[AnnotatedProfile]:
        """
        Profile published by an identity, or None.

        With several profiles linked (accumulate policy) the first link
        discovered wins; it is not necessarily the latest publish.
        """
        profile_addr = self.links.profile_for_identity(identity)
        if profile_addr is None:
            return None

        record = self.store.get(profile_addr)
        if record is None:
            logger.warning(f"Profile link of {identity[:12]} points at missing entry {profile_addr.hex[:8]}...")
            return None

        return AnnotatedProfile(identity=identity, profile=Profile.from_value(record.value))

    def get_my_profile(self) -> Optional[AnnotatedProfile]:
        """Profile published by the calling identity, or None."""
        return self.get_by_identity(self.identity)

    def get_many_by_identity(self, identities: Sequence[str]) -> List[AnnotatedProfile]:
        """
        Profiles of several identities in two round trips.

        One batched link query, one batched entry fetch. Identities without
        a profile are dropped; result order is not guaranteed.
        """
        resolved = self.links.profiles_for_identities(list(identities))
        if not resolved:
            return []

        records = self.store.get_many([addr for _, addr in resolved])

        results = []
        for (identity, _), record in zip(resolved, records):
            if record is None:
                continue
            results.append(AnnotatedProfile(identity=identity, profile=Profile.from_value(record.value)))
        return results

    def search(self, nickname_prefix: str) -> List[AnnotatedProfile]:
        """
        Profiles in the bucket of ``nickname_prefix``.

        Only the first 3 characters of the prefix matter; the whole bucket is
        returned. Checked before any store access.

        Raises:
            PrefixTooShort: prefix shorter than 3 characters
        """
        if len(nickname_prefix) < BUCKET_WIDTH:
            raise PrefixTooShort(
                f"Cannot search with a prefix less than {BUCKET_WIDTH} characters"
            )

        key = nickname_prefix.lower()[:BUCKET_WIDTH]
        profiles = self._profiles_for_node(self.paths.node_address(key))

        logger.debug(f"Search {nickname_prefix!r} -> bucket {key!r}: {len(profiles)} profile(s)")
        return profiles

    def list_all(self) -> List[AnnotatedProfile]:
        """
        Every indexed profile: root -> buckets -> profiles.

        One batched fetch per bucket. Cost grows with the whole directory;
        meant for small to moderate directories.
        """
        buckets = self.paths.children_of(self.paths.root_address())

        profiles = []
        for link in buckets:
            profiles.extend(self._profiles_for_node(link.target))

        logger.debug(f"Listed {len(profiles)} profile(s) across {len(buckets)} bucket(s)")
        return profiles

    def _profiles_for_node(self, node_addr: Address) -> List[AnnotatedProfile]:
        links = self.links.profile_links_under(node_addr)
        if not links:
            return []

        targets = list(dict.fromkeys(link.target for link in links))
        records = dict(zip(targets, self.store.get_many(targets)))
        return [
            self._annotate(link, records[link.target])
            for link in links
            if records[link.target] is not None
        ]

    @staticmethod
    def _annotate(link: Link, record: Record) -> AnnotatedProfile:
        """Pair an entry with the identity that linked it into the bucket."""
        return AnnotatedProfile(identity=link.author, profile=Profile.from_value(record.value))

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------

    def verify_index(self, identities: Optional[Sequence[str]] = None) -> Tuple[bool, List[str]]:
        """
        Look for profiles indexed on only one side.

        Checks:
        1. Every identity -> profile link has a matching bucket -> profile link
        2. Every bucket -> profile link has a matching identity -> profile link
           from the link's author (only when scanning the whole directory)

        Read-only: nothing is repaired.

        Args:
            identities: Identities to check; None scans the whole directory

        Returns:
            (is_valid, error_messages)
        """
        errors = []
        bucket_targets: Dict[Address, set] = {}

        if identities is None:
            linked_by_author: Dict[str, set] = {}
            for bucket in self.paths.children_of(self.paths.root_address()):
                for link in self.store.links_from(bucket.target):
                    bucket_targets.setdefault(bucket.target, set()).add(link.target)
                    if link.author not in linked_by_author:
                        linked_by_author[link.author] = {
                            identity_link.target
                            for identity_link in self.links.identity_links(link.author)
                        }
                    if link.target not in linked_by_author[link.author]:
                        errors.append(
                            f"Profile {link.target.hex[:8]}... is in a bucket but not "
                            f"linked from identity {link.author[:12]}"
                        )
            identities = list(linked_by_author)

        for identity in identities:
            targets = [link.target for link in self.links.identity_links(identity)]
            for target, record in zip(targets, self.store.get_many(targets)):
                if record is None:
                    errors.append(f"Identity {identity[:12]} links missing entry {target.hex[:8]}...")
                    continue
                nickname = Profile.from_value(record.value).nickname
                bucket_addr = self.paths.node_address(bucket_of(nickname))
                if bucket_addr not in bucket_targets:
                    bucket_targets[bucket_addr] = set(self.links.profiles_under(bucket_addr))
                if target not in bucket_targets[bucket_addr]:
                    errors.append(
                        f"Profile {target.hex[:8]}... of identity {identity[:12]} "
                        f"is missing from bucket {bucket_of(nickname)!r}"
                    )

        is_valid = len(errors) == 0
        if is_valid:
            logger.info(f"Directory index verified: {len(identities)} identities OK")
        else:
            logger.error(f"Directory index check failed: {len(errors)} errors")
            for error in errors[:10]:
                logger.error(f"  - {error}")

        return is_valid, errors
