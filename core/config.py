"""
Directory configuration.

Defaults match the persisted layout every peer agrees on: one root node
``all_profiles`` and 3-character buckets below it. Changing ``root_path`` or
``hash_algorithm`` produces a directory that is invisible to peers using the
defaults.
"""

import os
from dataclasses import dataclass
from enum import Enum

# Width of a bucket key. Fixed: peers must agree on it.
BUCKET_WIDTH = 3


class RepublishPolicy(Enum):
    """What publishing again from the same identity does."""
    ACCUMULATE = "accumulate"  # Keep old links; get_by_identity returns the first
    OVERWRITE = "overwrite"    # Remove the caller's old links before linking the new profile


@dataclass
class DirectoryConfig:
    """Profile directory settings."""
    root_path: str = "all_profiles"
    hash_algorithm: str = "sha256"
    republish_policy: RepublishPolicy = RepublishPolicy.ACCUMULATE

    @classmethod
    def from_env(cls) -> "DirectoryConfig":
        """
        Build config from environment variables.

        Reads PROFILEDIR_ROOT_PATH, PROFILEDIR_HASH_ALGORITHM and
        PROFILEDIR_REPUBLISH_POLICY; unset variables keep the defaults.
        """
        policy = os.getenv("PROFILEDIR_REPUBLISH_POLICY", RepublishPolicy.ACCUMULATE.value)
        return cls(
            root_path=os.getenv("PROFILEDIR_ROOT_PATH", "all_profiles"),
            hash_algorithm=os.getenv("PROFILEDIR_HASH_ALGORITHM", "sha256"),
            republish_policy=RepublishPolicy(policy.lower()),
        )
