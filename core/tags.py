"""
Link tags.

Links carry one of two tag kinds:

- ``BucketTag(prefix)``: the literal 3-character prefix, used on
  ``root -> bucket`` and ``bucket -> profile`` links.
- ``ProfileTag``: fixed tag used on ``identity -> profile`` links.

Tags travel as msgpack-encoded ``[kind, payload]`` pairs; decoding only ever
produces one of the two kinds.
"""

from dataclasses import dataclass
from typing import Union

import msgpack

from .errors import StoreError

BUCKET_KIND = "bucket"
PROFILE_KIND = "profile"


@dataclass(frozen=True)
class BucketTag:
    """Tag carrying the bucket prefix."""
    prefix: str


@dataclass(frozen=True)
class ProfileTag:
    """Tag marking an identity's profile link."""


LinkTag = Union[BucketTag, ProfileTag]

PROFILE_TAG = ProfileTag()


def encode_tag(tag: LinkTag) -> bytes:
    """Encode a tag to its wire bytes."""
    if isinstance(tag, BucketTag):
        return msgpack.packb([BUCKET_KIND, tag.prefix], use_bin_type=True)
    if isinstance(tag, ProfileTag):
        return msgpack.packb([PROFILE_KIND, None], use_bin_type=True)
    raise TypeError(f"Unknown link tag: {tag!r}")


def decode_tag(data: bytes) -> LinkTag:
    """Decode wire bytes back to a tag."""
    try:
        kind, payload = msgpack.unpackb(data, raw=False)
    except (ValueError, TypeError, msgpack.UnpackException) as e:
        raise StoreError(f"Malformed link tag: {data!r}") from e

    if kind == BUCKET_KIND and isinstance(payload, str):
        return BucketTag(payload)
    if kind == PROFILE_KIND:
        return PROFILE_TAG
    raise StoreError(f"Unknown link tag kind: {kind!r}")
