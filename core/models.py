from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.enums import (
    FINALIZED_STATUSES,
    ArcType,
    HookType,
    InsightKind,
    InsightSource,
    MessageRole,
    MoodState,
    RotationSurface,
    SessionStatus,
)


def _utc(value: datetime) -> datetime:
    return value.astimezone(UTC) if value.tzinfo else value.replace(tzinfo=UTC)


class SessionMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    turn_index: int = Field(ge=0)
    role: MessageRole
    content: str = ""
    score: int | None = Field(default=None, ge=0, le=100)
    traits: dict[str, float] = Field(default_factory=dict)
    flags: list[str] = Field(default_factory=list)
    hooks: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)


class GateOutcome(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gate_key: str = Field(min_length=1)
    passed: bool
    reason_code: str | None = None


class HookTrigger(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hook_key: str = Field(min_length=1)
    hook_type: HookType
    turn_index: int | None = None


class SessionSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str = Field(min_length=1, max_length=128)
    user_id: str = Field(min_length=1, max_length=128)
    template_id: str | None = None
    status: SessionStatus
    created_at: datetime
    ended_at: datetime | None = None
    messages: list[SessionMessage] = Field(default_factory=list)
    gate_outcomes: list[GateOutcome] | None = None
    hook_triggers: list[HookTrigger] | None = None
    enable_arc_detection: bool = True

    @field_validator("created_at", "ended_at")
    @classmethod
    def normalize_ts(cls, value: datetime | None) -> datetime | None:
        return None if value is None else _utc(value)

    @field_validator("messages")
    @classmethod
    def order_messages(cls, value: list[SessionMessage]) -> list[SessionMessage]:
        return sorted(value, key=lambda message: message.turn_index)

    @property
    def is_finalized(self) -> bool:
        return self.status in FINALIZED_STATUSES

    @property
    def anchor_ts(self) -> datetime:
        return self.ended_at or self.created_at

    @property
    def user_messages(self) -> list[SessionMessage]:
        return [message for message in self.messages if message.role == MessageRole.USER]


# Signals


class FailedGate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gate_key: str
    reason_code: str | None = None


class PositiveHookSignal(BaseModel):
    model_config = ConfigDict(extra="forbid")

    hook_key: str
    strength: float = Field(ge=0, le=1)
    turn_index: int | None = None


class NegativePatternSignal(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pattern_key: str
    severity: float = Field(ge=0, le=1)
    turn_index: int | None = None


class ScoredMessage(BaseModel):
    model_config = ConfigDict(extra="forbid")

    turn_index: int
    score: int


class InsightSignals(BaseModel):
    model_config = ConfigDict(extra="forbid")

    failed_gates: list[FailedGate] = Field(default_factory=list)
    positive_hooks: list[PositiveHookSignal] = Field(default_factory=list)
    negative_patterns: list[NegativePatternSignal] = Field(default_factory=list)
    trait_snapshot: dict[str, int] = Field(default_factory=dict)
    top_messages: list[ScoredMessage] = Field(default_factory=list)
    bottom_messages: list[ScoredMessage] = Field(default_factory=list)


# Catalog and candidates


class TriggerRequirement(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    gate_key: str | None = None
    hook_key: str | None = None
    pattern_key: str | None = None


class InsightTemplate(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str = Field(min_length=1)
    kind: InsightKind
    category: str
    weight: int
    cooldown_missions: int = Field(default=5, ge=0)
    title: str
    body: str
    requires: TriggerRequirement | None = None


class CandidateInsight(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    kind: InsightKind
    source: InsightSource
    category: str
    priority: int
    weight: int
    evidence: dict[str, Any] = Field(default_factory=dict)
    is_premium: bool = False
    surfaces: list[RotationSurface] = Field(default_factory=list)
    title: str | None = None
    body: str | None = None
    related_turn_index: int | None = None


class InsightCard(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    kind: InsightKind
    category: str
    title: str
    body: str
    related_turn_index: int | None = None
    is_premium: bool = False


# Deep insights


class DeepInsightsMeta(BaseModel):
    model_config = ConfigDict(extra="forbid")

    seed: str = ""
    excluded_ids: list[str] = Field(default_factory=list)
    picked_ids: list[str] = Field(default_factory=list)
    picked_paragraph_ids: list[str] = Field(default_factory=list)
    version: Literal["v2"] = "v2"


class DeepInsightsPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal["v2"] = "v2"
    gate_insights: list[InsightCard] = Field(default_factory=list)
    positive_insights: list[InsightCard] = Field(default_factory=list)
    negative_insights: list[InsightCard] = Field(default_factory=list)
    trait_deltas: dict[str, float] = Field(default_factory=dict)
    meta: DeepInsightsMeta = Field(default_factory=DeepInsightsMeta)

    def all_cards(self) -> list[InsightCard]:
        return [*self.gate_insights, *self.positive_insights, *self.negative_insights]


class MessageBreakdown(BaseModel):
    model_config = ConfigDict(extra="forbid")

    turn_index: int | None = None
    score: int = 0
    traits: dict[str, int] = Field(default_factory=dict)
    hooks: list[str] = Field(default_factory=list)
    patterns: list[str] = Field(default_factory=list)


class DeepParagraph(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    title: str
    body: str
    category: str | None = None


class DeepInsightsRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal["v2"] = "v2"
    session_id: str = ""
    user_id: str = ""
    insights_v2: DeepInsightsPayload = Field(default_factory=DeepInsightsPayload)
    analyzer_paragraphs: list[DeepParagraph] = Field(default_factory=list)


# Mood


class MoodSnapshot(BaseModel):
    model_config = ConfigDict(extra="forbid")

    turn_index: int
    raw_score: int = Field(ge=0, le=100)
    smoothed_mood_score: int = Field(ge=0, le=100)
    mood_state: MoodState
    tension: int = Field(ge=0, le=100)
    warmth: int = Field(ge=0, le=100)
    vibe: int = Field(ge=0, le=100)
    flow: int = Field(ge=0, le=100)


class MoodArc(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: ArcType
    start_index: int
    end_index: int
    start_turn_index: int
    end_turn_index: int
    score_change: int
    tension_change: int
    summary: str


class MoodCurrent(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mood_state: MoodState = MoodState.NEUTRAL
    mood_percent: int = 50


class MoodInsight(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    title: str
    body: str
    category: str
    evidence: str
    priority_score: int


class MoodInsightsBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")

    picked_ids: list[str] = Field(default_factory=list)
    insights: list[MoodInsight] = Field(default_factory=list)


class MoodTimelinePayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal[1] = 1
    snapshots: list[MoodSnapshot] = Field(default_factory=list)
    current: MoodCurrent = Field(default_factory=MoodCurrent)
    arcs: list[MoodArc] = Field(default_factory=list)
    mood_insights: MoodInsightsBlock | None = None


# Synergy


class GraphNode(BaseModel):
    model_config = ConfigDict(extra="forbid")

    id: str
    label: str
    x: float
    y: float


class GraphEdge(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: str
    target: str
    weight: float = Field(ge=-1, le=1)


class GraphData(BaseModel):
    model_config = ConfigDict(extra="forbid")

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)


class CandidateDriver(BaseModel):
    model_config = ConfigDict(extra="forbid")

    trait_key: str
    reason: str


class EmotionLinks(BaseModel):
    model_config = ConfigDict(extra="forbid")

    mood_state_at_end: MoodState | None = None
    tension_trend_hint: Literal["RISING", "FALLING", "FLAT"] | None = None
    candidate_drivers: list[CandidateDriver] = Field(default_factory=list)


class SynergyInsightsBlock(BaseModel):
    model_config = ConfigDict(extra="forbid")

    picked_ids: list[str] = Field(default_factory=list)


class SynergyPayload(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    sessions_used: int = 0
    correlation_matrix: dict[str, dict[str, float]] = Field(default_factory=dict)
    graph_data: GraphData = Field(default_factory=GraphData)
    emotion_links: EmotionLinks = Field(default_factory=EmotionLinks)
    synergy_insights: SynergyInsightsBlock = Field(default_factory=SynergyInsightsBlock)


# Rotation


class InsightHistory(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    insight_ids: tuple[str, ...] = ()
    mood_ids: tuple[str, ...] = ()
    paragraph_ids: tuple[str, ...] = ()
    synergy_ids: tuple[str, ...] = ()

    def all_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for group in (self.insight_ids, self.mood_ids, self.paragraph_ids, self.synergy_ids):
            for item in group:
                seen.setdefault(item, None)
        return list(seen)


class RotationQuotas(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    gate: int = Field(default=0, ge=0)
    hook: int = Field(default=0, ge=0)
    pattern: int = Field(default=0, ge=0)
    tip: int = Field(default=0, ge=0)
    mood: int = Field(default=0, ge=0)
    synergy: int = Field(default=0, ge=0)
    analyzer: int = Field(default=0, ge=0)


class RotationMeta(BaseModel):
    model_config = ConfigDict(extra="forbid")

    seed: str = ""
    excluded_ids: list[str] = Field(default_factory=list)
    picked_ids: list[str] = Field(default_factory=list)
    quotas: RotationQuotas = Field(default_factory=RotationQuotas)
    version: Literal["v1"] = "v1"
    total_available: int = 0
    filtered_because_premium: int = 0
    is_premium_user: bool = False
    premium_insight_ids: list[str] = Field(default_factory=list)


class RotationPack(BaseModel):
    model_config = ConfigDict(extra="forbid")

    version: Literal["v1"] = "v1"
    session_id: str = ""
    surface: str
    selected_insights: list[InsightCard] = Field(default_factory=list)
    selected_paragraphs: list[DeepParagraph] = Field(default_factory=list)
    meta: RotationMeta = Field(default_factory=RotationMeta)


class MessageAnalysis(BaseModel):
    model_config = ConfigDict(extra="forbid")

    session_id: str
    breakdown: MessageBreakdown
    paragraphs: list[DeepParagraph] = Field(default_factory=list)
