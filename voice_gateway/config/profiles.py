"""
Catalog of synthesis voices an assistant session can speak with.

Each session picks one profile when the upstream channel opens; the profile's
voice id configures the realtime session and the greeting, and its display
name is how the assistant introduces itself.
"""

import random
from typing import FrozenSet, List, Literal, Optional

from pydantic import BaseModel, ConfigDict

Gender = Literal["male", "female"]


class VoiceProfile(BaseModel):
    """An immutable voice profile."""

    model_config = ConfigDict(frozen=True)

    name: str
    gender: Gender
    display_name: str
    emotions: FrozenSet[str] = frozenset({"neutral"})
    description: Optional[str] = None

    def supports(self, emotion: str) -> bool:
        return emotion in self.emotions


VOICE_PROFILES: List[VoiceProfile] = [
    # Female voices
    VoiceProfile(name="marina", gender="female", display_name="Марина",
                 emotions=frozenset({"neutral", "whisper", "friendly"}),
                 description="Марина - женский голос"),
    VoiceProfile(name="jane", gender="female", display_name="Джейн",
                 emotions=frozenset({"neutral", "good", "evil"}),
                 description="Джейн - женский голос"),
    VoiceProfile(name="oksana", gender="female", display_name="Оксана",
                 description="Оксана - женский голос"),
    VoiceProfile(name="omazh", gender="female", display_name="Омаж",
                 emotions=frozenset({"neutral", "evil"}),
                 description="Омаж - женский голос"),
    VoiceProfile(name="alena", gender="female", display_name="Алена",
                 emotions=frozenset({"neutral", "good"}),
                 description="Алена - женский голос"),
    # Male voices
    VoiceProfile(name="filipp", gender="male", display_name="Филипп",
                 description="Филипп - мужской голос"),
    VoiceProfile(name="ermil", gender="male", display_name="Ермил",
                 emotions=frozenset({"neutral", "good"}),
                 description="Ермил - мужской голос"),
    VoiceProfile(name="madirus", gender="male", display_name="Мадирус",
                 description="Мадирус - мужской голос"),
    VoiceProfile(name="anton", gender="male", display_name="Антон",
                 emotions=frozenset({"neutral", "good"}),
                 description="Антон - мужской голос"),
]


def get_random_profile() -> VoiceProfile:
    """Pick a random profile for a new session."""
    return random.choice(VOICE_PROFILES)


def get_random_profile_by_gender(gender: Gender) -> VoiceProfile:
    candidates = [profile for profile in VOICE_PROFILES if profile.gender == gender]
    if not candidates:
        raise ValueError(f"No voice profiles for gender: {gender}")
    return random.choice(candidates)


def get_profile_by_name(name: str) -> Optional[VoiceProfile]:
    return next((profile for profile in VOICE_PROFILES if profile.name == name), None)
