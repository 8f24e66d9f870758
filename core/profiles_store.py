"""
Caller-side cache of known profiles.

Wraps a DirectoryService and remembers every profile it has seen, keyed by
identity, so that repeated lookups (avatars, mentions, member lists) do not
go back to the store.
"""

from typing import Dict, List, Optional, Sequence
from threading import RLock
import logging

from .config import BUCKET_WIDTH
from .directory import DirectoryService
from .errors import InvalidNickname
from .models import AnnotatedProfile, Profile

logger = logging.getLogger(__name__)


class ProfilesStore:
    """
    Profile cache in front of a directory service.

    Usage:
        profiles = ProfilesStore(directory)
        profiles.fetch_all_profiles()
        profiles.profile_of(identity)
    """

    def __init__(self, directory: DirectoryService, min_nickname_length: int = BUCKET_WIDTH):
        """
        Args:
            directory: Directory service acting for the local participant
            min_nickname_length: Shortest nickname create_profile accepts
        """
        if min_nickname_length < BUCKET_WIDTH:
            raise ValueError(f"min_nickname_length must be at least {BUCKET_WIDTH}")

        self.directory = directory
        self.min_nickname_length = min_nickname_length
        self.profiles: Dict[str, Profile] = {}
        self._lock = RLock()

    @property
    def my_identity(self) -> str:
        return self.directory.identity

    @property
    def my_profile(self) -> Optional[Profile]:
        with self._lock:
            return self.profiles.get(self.my_identity)

    @property
    def known_profiles(self) -> List[AnnotatedProfile]:
        with self._lock:
            return [
                AnnotatedProfile(identity=identity, profile=profile)
                for identity, profile in self.profiles.items()
            ]

    def profile_of(self, identity: str) -> Optional[Profile]:
        """Cached profile of an identity, without touching the store."""
        with self._lock:
            return self.profiles.get(identity)

    def _remember(self, agent_profiles: Sequence[AnnotatedProfile]) -> None:
        with self._lock:
            for agent_profile in agent_profiles:
                self.profiles[agent_profile.identity] = agent_profile.profile

    def fetch_all_profiles(self) -> List[AnnotatedProfile]:
        all_profiles = self.directory.list_all()
        self._remember(all_profiles)
        return all_profiles

    def fetch_my_profile(self) -> Optional[Profile]:
        my_profile = self.directory.get_my_profile()
        if my_profile is not None:
            self._remember([my_profile])
            return my_profile.profile
        return None

    def fetch_agent_profile(self, identity: str) -> Optional[Profile]:
        """Cached profile of an identity, fetched from the store on a miss."""
        cached = self.profile_of(identity)
        if cached is not None:
            return cached

        agent_profile = self.directory.get_by_identity(identity)
        if agent_profile is None:
            return None
        self._remember([agent_profile])
        return agent_profile.profile

    def fetch_agents_profiles(self, identities: Sequence[str]) -> Dict[str, Profile]:
        """
        Profiles of several identities; only cache misses hit the store, in
        one batched call.
        """
        with self._lock:
            missing = [identity for identity in identities if identity not in self.profiles]

        if missing:
            self._remember(self.directory.get_many_by_identity(missing))
            logger.debug(f"Fetched {len(missing)} uncached profile(s)")

        with self._lock:
            return {
                identity: self.profiles[identity]
                for identity in identities
                if identity in self.profiles
            }

    def search_profiles(self, nickname_prefix: str) -> List[AnnotatedProfile]:
        found = self.directory.search(nickname_prefix)
        self._remember(found)
        return found

    def nickname_taken(self, nickname: str) -> bool:
        """Whether a published profile already uses exactly this nickname."""
        if len(nickname) < BUCKET_WIDTH:
            return False
        return any(agent_profile.profile.nickname == nickname for agent_profile in self.search_profiles(nickname))

    def create_profile(self, profile: Profile) -> AnnotatedProfile:
        """
        Publish the local participant's profile and cache it.

        Raises:
            InvalidNickname: nickname shorter than min_nickname_length
        """
        if len(profile.nickname) < self.min_nickname_length:
            raise InvalidNickname(
                f"Nickname is too short (minimum {self.min_nickname_length} characters)"
            )

        published = self.directory.publish(profile)
        self._remember([published])
        return published
