"""Matching of crawled profiles that describe the same person."""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional

import structlog

from relcrawl.quality.similarity import phonetic_code, set_similarity_ratio, string_similarity_ratio
from relcrawl.storage.models import Profile

LOGGER = structlog.get_logger(__name__)


class ProfileMatcher:
    """Keeps track of seen profiles and finds likely duplicates."""

    def __init__(self, *, name_threshold: float = 0.2, overlap_threshold: float = 0.5) -> None:
        self.name_threshold = name_threshold
        self.overlap_threshold = overlap_threshold
        self._by_id: Dict[int, Profile] = {}
        self._by_key: Dict[str, List[Profile]] = defaultdict(list)

    def __len__(self) -> int:
        return len(self._by_id)

    def key_for(self, profile: Profile) -> str:
        """Bucket key: the phonetic code of the profile's display name."""
        return phonetic_code(profile.display_name)

    def find_match(self, profile: Profile) -> Optional[Profile]:
        """Return a remembered profile that likely describes the same user."""
        known = self._by_id.get(profile.user_id)
        if known is not None:
            return known
        for candidate in self._by_key.get(self.key_for(profile), ()):
            name_ratio = string_similarity_ratio(
                candidate.display_name.lower(), profile.display_name.lower()
            )
            if name_ratio <= self.name_threshold:
                return candidate
            overlap = set_similarity_ratio(candidate.followers, profile.followers)
            if overlap >= self.overlap_threshold:
                return candidate
        return None

    def is_duplicate(self, profile: Profile) -> bool:
        match = self.find_match(profile)
        if match is None:
            return False
        LOGGER.info("profile_duplicate", user_id=profile.user_id, matched_id=match.user_id)
        return True

    def remember(self, profile: Profile) -> None:
        if profile.user_id in self._by_id:
            return
        self._by_id[profile.user_id] = profile
        self._by_key[self.key_for(profile)].append(profile)
