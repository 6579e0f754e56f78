from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from core.models import CandidateInsight, DeepParagraph, MessageBreakdown, SessionMessage
from core.numeric import round_half_up
from shared.enums import TRAIT_KEYS, InsightKind, InsightSource, RotationSurface

PARAGRAPH_PRIORITY = 50
MIN_PARAGRAPHS = 2
MAX_PARAGRAPHS = 3
STRONG_TRAIT = 70
PATTERN_TEMPLATE_MARKERS = ("filler", "overexplain", "confidence")


@dataclass(frozen=True, slots=True)
class ParagraphTemplate:
    id: str
    category: str
    title: str
    render: Callable[[MessageBreakdown], str]

    def paragraph(self, breakdown: MessageBreakdown) -> DeepParagraph:
        return DeepParagraph(id=self.id, title=self.title, body=self.render(breakdown), category=self.category)


def _trait_combination(breakdown: MessageBreakdown) -> str:
    strong = [key.replace("_", " ") for key, value in breakdown.traits.items() if value >= STRONG_TRAIT][:2]
    if len(strong) >= 2:
        return (
            f"Your combination of strong {strong[0]} and {strong[1]} creates a powerful communication style. "
            "When these traits work together, they amplify each other's impact. "
            "This is a signature strength you can lean on in future conversations."
        )
    return (
        "Your trait profile shows room to grow. Develop one or two key traits to a high level, "
        "then let them support the others. Strong traits create a foundation for overall improvement."
    )


PARAGRAPH_TEMPLATES: tuple[ParagraphTemplate, ...] = (
    ParagraphTemplate(
        "deep_high_score_confidence",
        "strengths",
        "Confidence That Resonates",
        lambda b: (
            f"Your message shows exceptional confidence ({b.traits.get('confidence', 0)}/100), which creates "
            "a strong presence. That assertiveness helps your ideas land and makes others take notice."
        ),
    ),
    ParagraphTemplate(
        "deep_high_score_warmth",
        "strengths",
        "Emotional Connection",
        lambda b: (
            f"Your emotional warmth ({b.traits.get('emotional_warmth', 0)}/100) shines through in this message. "
            "You are building real connection by showing empathy and understanding."
        ),
    ),
    ParagraphTemplate(
        "deep_high_score_clarity",
        "strengths",
        "Crystal Clear Communication",
        lambda b: (
            f"Your clarity ({b.traits.get('clarity', 0)}/100) makes this message easy to understand. "
            "Clear communication reduces misunderstandings and builds trust."
        ),
    ),
    ParagraphTemplate(
        "deep_high_score_humor",
        "strengths",
        "Humor That Connects",
        lambda b: (
            f"Your humor ({b.traits.get('humor', 0)}/100) adds lightness to this message. "
            "Well-judged humor breaks down barriers and builds rapport."
        ),
    ),
    ParagraphTemplate(
        "deep_high_score_mastery",
        "strengths",
        "Masterful Communication",
        lambda b: (
            f"With a score of {b.score}/100, this message shows real command of the conversation. "
            "Your balance across several traits shows you can adapt your style to the moment."
        ),
    ),
    ParagraphTemplate(
        "deep_medium_insight_balance",
        "insights",
        "Finding Your Balance",
        lambda b: (
            f"Your message shows a solid foundation (score: {b.score}/100) with room to grow. "
            "The key is balancing assertiveness with approachability while you strengthen weaker traits."
        ),
    ),
    ParagraphTemplate(
        "deep_medium_insight_adaptation",
        "insights",
        "Adaptive Communication",
        lambda b: (
            f"This message reflects a developing style. A score of {b.score}/100 says you are on the right track. "
            "Focus on reading your audience and adjusting your approach."
        ),
    ),
    ParagraphTemplate(
        "deep_low_score_foundation",
        "improvement",
        "Building Strong Foundations",
        lambda b: (
            f"With a score of {b.score}/100, this message has clear room for improvement. "
            "Start with clarity and confidence. They support everything else."
        ),
    ),
    ParagraphTemplate(
        "deep_low_score_engagement",
        "improvement",
        "Increasing Engagement",
        lambda b: (
            f"A score of {b.score}/100 suggests you are holding back. "
            "Show more enthusiasm, ask questions and take a genuine interest in the other person."
        ),
    ),
    ParagraphTemplate(
        "deep_pattern_filler_words",
        "patterns",
        "Reducing Filler Words",
        lambda b: (
            "Filler words weaken your message. Pause instead of filling silence. "
            "It makes you sound more confident and thoughtful."
        ),
    ),
    ParagraphTemplate(
        "deep_pattern_overexplaining",
        "patterns",
        "Avoiding Over-Explanation",
        lambda b: (
            "You are giving more detail than the moment needs. Get to the point faster "
            "and trust the other person to ask if they want more."
        ),
    ),
    ParagraphTemplate(
        "deep_pattern_confidence_issue",
        "patterns",
        "Building Assertiveness",
        lambda b: (
            "Your message shows some hesitation. State your opinions and needs more directly. "
            "Start with small assertions and build from there."
        ),
    ),
    ParagraphTemplate(
        "deep_hook_positive_patterns",
        "strengths",
        "Positive Patterns in Action",
        lambda b: (
            f"Your message uses effective patterns: {', '.join(b.hooks[:3])}. "
            "Keep leaning on these strengths. They are working for you."
        ),
    ),
    ParagraphTemplate(
        "deep_trait_combination_power",
        "insights",
        "The Power of Trait Combinations",
        _trait_combination,
    ),
)


def build_breakdown(message: SessionMessage) -> MessageBreakdown:
    return MessageBreakdown(
        turn_index=message.turn_index,
        score=message.score if message.score is not None else 0,
        traits={trait: round_half_up(message.traits.get(trait, 0)) for trait in TRAIT_KEYS},
        hooks=list(message.hooks),
        patterns=list(message.patterns),
    )


def best_message(messages: Sequence[SessionMessage]) -> SessionMessage | None:
    best: SessionMessage | None = None
    for message in messages:
        score = message.score if message.score is not None else 0
        if best is None or score > (best.score if best.score is not None else 0):
            best = message
    return best


def _first(
    candidates: Sequence[ParagraphTemplate],
    chosen: set[str],
    predicate: Callable[[ParagraphTemplate], bool],
) -> ParagraphTemplate | None:
    for template in candidates:
        if template.id not in chosen and predicate(template):
            return template
    return None


def select_deep_paragraphs(
    breakdown: MessageBreakdown,
    excluded_ids: Iterable[str] = (),
    templates: Sequence[ParagraphTemplate] = PARAGRAPH_TEMPLATES,
) -> list[DeepParagraph]:
    excluded = set(excluded_ids)
    candidates = [template for template in templates if template.id not in excluded]
    if not candidates:
        candidates = list(templates)

    picked: list[ParagraphTemplate] = []
    chosen: set[str] = set()

    def take(template: ParagraphTemplate | None) -> None:
        if template is not None:
            picked.append(template)
            chosen.add(template.id)

    if breakdown.score >= 80:
        band = "strengths"
    elif breakdown.score < 60:
        band = "improvement"
    else:
        band = "insights"
    take(_first(candidates, chosen, lambda t: t.category == band))

    if len(picked) < MIN_PARAGRAPHS and breakdown.patterns:
        take(
            _first(
                candidates,
                chosen,
                lambda t: t.category == "patterns" and any(marker in t.id for marker in PATTERN_TEMPLATE_MARKERS),
            )
        )

    if len(picked) < MIN_PARAGRAPHS and breakdown.hooks:
        take(_first(candidates, chosen, lambda t: t.category == "strengths" and "hook" in t.id))

    while len(picked) < MIN_PARAGRAPHS:
        template = _first(candidates, chosen, lambda t: True)
        if template is None:
            break
        take(template)

    return [template.paragraph(breakdown) for template in picked[:MAX_PARAGRAPHS]]


def paragraph_candidates(paragraphs: Iterable[DeepParagraph]) -> list[CandidateInsight]:
    return [
        CandidateInsight(
            id=paragraph.id,
            kind=InsightKind.ANALYZER_PARAGRAPH,
            source=InsightSource.ANALYZER,
            category=paragraph.category or "analysis",
            priority=PARAGRAPH_PRIORITY,
            weight=PARAGRAPH_PRIORITY,
            is_premium=False,
            surfaces=[RotationSurface.ANALYZER],
            title=paragraph.title,
            body=paragraph.body,
        )
        for paragraph in paragraphs
    ]
