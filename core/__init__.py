"""
Profile Directory Core Module

- Content addressing (canonical msgpack + SHA-256)
- Store facade (entries and typed links)
- Path index (3-character nickname buckets)
- Link index (bucket and identity edges)
- Directory service (publish, lookup, search, listing)
"""

from profiledir.core.addressing import Address, AddressingEngine
from profiledir.core.config import BUCKET_WIDTH, DirectoryConfig, RepublishPolicy
from profiledir.core.directory import DirectoryService
from profiledir.core.errors import InvalidNickname, PrefixTooShort, ProfileDirectoryError, StoreError
from profiledir.core.link_index import LinkIndex
from profiledir.core.models import AnnotatedProfile, Profile
from profiledir.core.path_index import PathIndex, bucket_of
from profiledir.core.profiles_store import ProfilesStore
from profiledir.core.store import AddressableStore, Link, Record
from profiledir.core.tags import BucketTag, ProfileTag, PROFILE_TAG

__all__ = [
    "Address",
    "AddressingEngine",
    "AddressableStore",
    "AnnotatedProfile",
    "BUCKET_WIDTH",
    "BucketTag",
    "DirectoryConfig",
    "DirectoryService",
    "InvalidNickname",
    "Link",
    "LinkIndex",
    "PathIndex",
    "PrefixTooShort",
    "Profile",
    "ProfileDirectoryError",
    "ProfileTag",
    "PROFILE_TAG",
    "ProfilesStore",
    "Record",
    "RepublishPolicy",
    "StoreError",
    "bucket_of",
]
