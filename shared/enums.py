from __future__ import annotations

from enum import Enum


class InsightKind(str, Enum):
    GATE_FAIL = "GATE_FAIL"
    POSITIVE_HOOK = "POSITIVE_HOOK"
    NEGATIVE_PATTERN = "NEGATIVE_PATTERN"
    GENERAL_TIP = "GENERAL_TIP"
    MOOD = "MOOD"
    SYNERGY = "SYNERGY"
    ANALYZER_PARAGRAPH = "ANALYZER_PARAGRAPH"


class InsightSource(str, Enum):
    GATES = "GATES"
    HOOKS = "HOOKS"
    PATTERNS = "PATTERNS"
    GENERAL = "GENERAL"
    MOOD = "MOOD"
    SYNERGY = "SYNERGY"
    ANALYZER = "ANALYZER"


class RotationSurface(str, Enum):
    MISSION_END = "MISSION_END"
    ADVANCED_TAB = "ADVANCED_TAB"
    ANALYZER = "ANALYZER"
    SYNERGY_MAP = "SYNERGY_MAP"
    MOOD_TIMELINE = "MOOD_TIMELINE"


class MoodState(str, Enum):
    COLD = "COLD"
    NEUTRAL = "NEUTRAL"
    WARM = "WARM"
    TENSE = "TENSE"
    FLOW = "FLOW"


class ArcType(str, Enum):
    RISING_WARMTH = "RISING_WARMTH"
    COOL_DOWN = "COOL_DOWN"
    TESTING_SPIKE = "TESTING_SPIKE"
    RECOVERY_ARC = "RECOVERY_ARC"
    TENSION_BUILD = "TENSION_BUILD"
    STABLE_ARC = "STABLE_ARC"


class SessionStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    SUCCESS = "SUCCESS"
    FAIL = "FAIL"
    ABORTED = "ABORTED"


class MessageRole(str, Enum):
    USER = "USER"
    AI = "AI"
    SYSTEM = "SYSTEM"


class HookType(str, Enum):
    POSITIVE = "POSITIVE"
    NEUTRAL = "NEUTRAL"
    NEGATIVE = "NEGATIVE"


class TraitKey(str, Enum):
    CONFIDENCE = "confidence"
    CLARITY = "clarity"
    HUMOR = "humor"
    TENSION_CONTROL = "tension_control"
    EMOTIONAL_WARMTH = "emotional_warmth"
    DOMINANCE = "dominance"


class DocumentKind(str, Enum):
    DEEP_INSIGHTS = "deep_insights"
    MOOD_TIMELINE = "mood_timeline"
    SYNERGY = "synergy"
    ROTATION_PACK = "rotation_pack"


TRAIT_KEYS: tuple[str, ...] = tuple(trait.value for trait in TraitKey)

FINALIZED_STATUSES = frozenset({SessionStatus.SUCCESS, SessionStatus.FAIL, SessionStatus.ABORTED})
