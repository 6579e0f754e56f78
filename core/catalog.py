from __future__ import annotations

from collections.abc import Iterable

from core.errors import CatalogError
from core.models import InsightTemplate, TriggerRequirement
from shared.enums import InsightKind

GATE_KEYS = (
    "GATE_MIN_MESSAGES",
    "GATE_SUCCESS_THRESHOLD",
    "GATE_FAIL_FLOOR",
    "GATE_DISQUALIFIED",
    "GATE_OBJECTIVE_PROGRESS",
)
HOOK_KEYS = ("HIGH_CONFIDENCE", "HIGH_CLARITY", "GOOD_HUMOR", "HIGH_WARMTH", "BALANCED_TENSION")
PATTERN_KEYS = ("neediness", "overexplaining", "excessive_apologizing", "validation_seeking", "defensiveness")


class InsightCatalog:
    """Read-only template registry, built once and passed to callers."""

    def __init__(self, templates: Iterable[InsightTemplate]) -> None:
        ordered: dict[str, InsightTemplate] = {}
        for template in templates:
            if template.id in ordered:
                raise CatalogError(f"duplicate insight template id: {template.id}")
            ordered[template.id] = template
        self._templates = ordered

    def __len__(self) -> int:
        return len(self._templates)

    def __contains__(self, template_id: object) -> bool:
        return template_id in self._templates

    def get(self, template_id: str) -> InsightTemplate | None:
        return self._templates.get(template_id)

    def all(self) -> list[InsightTemplate]:
        return list(self._templates.values())

    def by_kind(self, kind: InsightKind) -> list[InsightTemplate]:
        return [item for item in self._templates.values() if item.kind == kind]

    def by_category(self, category: str) -> list[InsightTemplate]:
        return [item for item in self._templates.values() if item.category == category]

    def gate_insights(self, gate_key: str) -> list[InsightTemplate]:
        return [
            item
            for item in self.by_kind(InsightKind.GATE_FAIL)
            if item.requires is not None and item.requires.gate_key == gate_key
        ]

    def hook_insights(self, category: str | None = None, hook_key: str | None = None) -> list[InsightTemplate]:
        return [
            item
            for item in self.by_kind(InsightKind.POSITIVE_HOOK)
            if (category is None or item.category == category)
            and (hook_key is None or (item.requires is not None and item.requires.hook_key == hook_key))
        ]

    def pattern_insights(self, category: str | None = None, pattern_key: str | None = None) -> list[InsightTemplate]:
        return [
            item
            for item in self.by_kind(InsightKind.NEGATIVE_PATTERN)
            if (category is None or item.category == category)
            and (pattern_key is None or (item.requires is not None and item.requires.pattern_key == pattern_key))
        ]

    def general_tips(self) -> list[InsightTemplate]:
        return self.by_kind(InsightKind.GENERAL_TIP)


def _gate(template_id: str, gate_key: str, category: str, weight: int, title: str, body: str) -> InsightTemplate:
    return InsightTemplate(
        id=template_id,
        kind=InsightKind.GATE_FAIL,
        category=category,
        weight=weight,
        cooldown_missions=5 if weight >= 100 else 4,
        title=title,
        body=body,
        requires=TriggerRequirement(gate_key=gate_key),
    )


def _hook(template_id: str, hook_key: str | None, category: str, weight: int, title: str, body: str) -> InsightTemplate:
    return InsightTemplate(
        id=template_id,
        kind=InsightKind.POSITIVE_HOOK,
        category=category,
        weight=weight,
        cooldown_missions=3,
        title=title,
        body=body,
        requires=TriggerRequirement(hook_key=hook_key) if hook_key else None,
    )


def _pattern(template_id: str, pattern_key: str, category: str, weight: int, title: str, body: str) -> InsightTemplate:
    return InsightTemplate(
        id=template_id,
        kind=InsightKind.NEGATIVE_PATTERN,
        category=category,
        weight=weight,
        cooldown_missions=4,
        title=title,
        body=body,
        requires=TriggerRequirement(pattern_key=pattern_key),
    )


def _tip(template_id: str, category: str, weight: int, title: str, body: str) -> InsightTemplate:
    return InsightTemplate(
        id=template_id,
        kind=InsightKind.GENERAL_TIP,
        category=category,
        weight=weight,
        cooldown_missions=3,
        title=title,
        body=body,
    )


def default_templates() -> list[InsightTemplate]:
    gates = [
        _gate("gate_min_messages_too_short", "GATE_MIN_MESSAGES", "engagement", 100,
              "Keep the Conversation Going",
              "You didn't send enough messages to complete this mission. Engage more deeply and ask follow-up questions."),
        _gate("gate_min_messages_engagement", "GATE_MIN_MESSAGES", "engagement", 80,
              "Build Momentum",
              "Longer conversations give you more practice. Aim for at least three or four substantial messages."),
        _gate("gate_min_messages_follow_up", "GATE_MIN_MESSAGES", "engagement", 70,
              "Follow the Thread",
              "When a reply opens a door, walk through it. One follow-up question per answer keeps things moving."),
        _gate("gate_success_threshold_below", "GATE_SUCCESS_THRESHOLD", "performance", 100,
              "Raise Your Average Score",
              "Your average message score was below the success threshold. Focus on clarity and warmth."),
        _gate("gate_success_threshold_practice", "GATE_SUCCESS_THRESHOLD", "performance", 90,
              "Keep Practicing",
              "You have the basics down. Regular practice is what turns good messages into consistent ones."),
        _gate("gate_success_threshold_close", "GATE_SUCCESS_THRESHOLD", "performance", 75,
              "Almost There",
              "A couple of stronger messages would have carried you over the line. Finish as strong as you start."),
        _gate("gate_fail_floor_too_low", "GATE_FAIL_FLOOR", "performance", 100,
              "Avoid the Low Points",
              "One or more messages scored very low and pulled the session down. Slow down before you hit send."),
        _gate("gate_fail_floor_recover", "GATE_FAIL_FLOOR", "performance", 85,
              "Recover Quickly",
              "A weak message is recoverable. Acknowledge it lightly and steer back with a clear, warm reply."),
        _gate("gate_fail_floor_pause", "GATE_FAIL_FLOOR", "performance", 70,
              "Pause Before Reacting",
              "Your lowest messages came right after tense moments. A short pause helps you answer instead of react."),
        _gate("gate_disqualified_violation", "GATE_DISQUALIFIED", "conduct", 100,
              "Stay Within the Lines",
              "This mission ended early because a message crossed a conduct boundary. Keep it respectful."),
        _gate("gate_disqualified_tone", "GATE_DISQUALIFIED", "conduct", 85,
              "Mind the Tone",
              "Pushy or dismissive phrasing ends conversations fast. Keep your tone curious rather than demanding."),
        _gate("gate_disqualified_reset", "GATE_DISQUALIFIED", "conduct", 70,
              "Fresh Start",
              "Every mission is a reset. Take what went wrong here and try a lighter approach next time."),
        _gate("gate_objective_progress_insufficient", "GATE_OBJECTIVE_PROGRESS", "objectives", 90,
              "Move Toward the Goal",
              "The conversation stayed friendly but didn't progress the mission objective. Steer it there sooner."),
        _gate("gate_objective_progress_direct", "GATE_OBJECTIVE_PROGRESS", "objectives", 80,
              "Be a Little More Direct",
              "You circled the objective without naming it. A clear, relaxed ask is usually welcomed."),
        _gate("gate_objective_progress_plan", "GATE_OBJECTIVE_PROGRESS", "objectives", 70,
              "Plan Your Path",
              "Before you start, decide which two or three moves lead to the goal. It keeps you on track."),
    ]

    hooks = [
        _hook("hook_confidence_strong", "HIGH_CONFIDENCE", "confidence", 80,
              "Confidence That Lands",
              "You spoke with conviction. Statements that own your point of view make people lean in."),
        _hook("hook_confidence_assured", "HIGH_CONFIDENCE", "confidence", 75,
              "Calm Assurance",
              "You sounded sure of yourself without pushing. That kind of ease is magnetic."),
        _hook("hook_confidence_decisive", "HIGH_CONFIDENCE", "confidence", 70,
              "Decisive Moves",
              "You made suggestions instead of asking for permission. Decisiveness reads as leadership."),
        _hook("hook_confidence_grounded", "HIGH_CONFIDENCE", "confidence", 65,
              "Grounded Presence",
              "Even when the reply was lukewarm you stayed steady. Not needing approval is a real strength."),
        _hook("hook_confidence_playful", "HIGH_CONFIDENCE", "confidence", 60,
              "Playful Confidence",
              "You teased lightly and owned it. Confidence with a smile is the best kind."),
        _hook("hook_clarity_crystal_clear", "HIGH_CLARITY", "clarity", 85,
              "Crystal Clear",
              "Your messages were easy to follow. Clarity makes it effortless for the other person to respond."),
        _hook("hook_clarity_articulate", "HIGH_CLARITY", "clarity", 80,
              "Articulate Expression",
              "You chose precise words and kept sentences tight. That precision reads as thoughtfulness."),
        _hook("hook_clarity_structured", "HIGH_CLARITY", "clarity", 75,
              "Well Structured",
              "You made one point at a time. Structure keeps the conversation from getting tangled."),
        _hook("hook_clarity_concise", "HIGH_CLARITY", "clarity", 70,
              "Short and Sharp",
              "You said a lot in few words. Brevity leaves room for the other person to shine."),
        _hook("hook_clarity_specific", "HIGH_CLARITY", "clarity", 65,
              "Specific Details",
              "Concrete details made your stories vivid. Specifics are more memorable than generalities."),
        _hook("hook_humor_well_placed", "GOOD_HUMOR", "humor", 90,
              "Well-Placed Humor",
              "Your jokes landed at the right moments and lifted the mood without derailing it."),
        _hook("hook_humor_lighthearted", "GOOD_HUMOR", "humor", 85,
              "Lighthearted Touch",
              "You kept things light. A relaxed tone makes people comfortable opening up."),
        _hook("hook_humor_self_aware", "GOOD_HUMOR", "humor", 75,
              "Self-Aware Wit",
              "You laughed at yourself without putting yourself down. That balance is disarming."),
        _hook("hook_humor_callback", "GOOD_HUMOR", "humor", 70,
              "Callback Humor",
              "Referring back to an earlier joke built a sense of shared history. Nicely done."),
        _hook("hook_humor_timing", "GOOD_HUMOR", "humor", 65,
              "Good Timing",
              "You read the room before joking. Timing matters more than the joke itself."),
        _hook("hook_warmth_genuine", "HIGH_WARMTH", "emotional_warmth", 90,
              "Genuine Warmth",
              "Your warmth came through clearly. People remember how you made them feel."),
        _hook("hook_warmth_empathy", "HIGH_WARMTH", "emotional_warmth", 85,
              "Empathetic Listening",
              "You reflected feelings back instead of jumping to advice. That is what being heard feels like."),
        _hook("hook_warmth_curiosity", "HIGH_WARMTH", "emotional_warmth", 75,
              "Warm Curiosity",
              "Your questions showed real interest in the answers. Curiosity is a form of care."),
        _hook("hook_warmth_appreciation", "HIGH_WARMTH", "emotional_warmth", 70,
              "Showing Appreciation",
              "You noticed and named something you liked. Specific appreciation builds connection fast."),
        _hook("hook_warmth_inclusive", "HIGH_WARMTH", "emotional_warmth", 65,
              "Inclusive Tone",
              "You used 'we' language that made the conversation feel shared rather than one-sided."),
        _hook("hook_tension_balanced", "BALANCED_TENSION", "tension_control", 85,
              "Balanced Tension",
              "You kept a little intrigue in the conversation without letting it turn awkward."),
        _hook("hook_tension_composed", "BALANCED_TENSION", "tension_control", 80,
              "Composed Under Pressure",
              "When things got testing you stayed composed. Composure signals security."),
        _hook("hook_tension_patient", "BALANCED_TENSION", "tension_control", 75,
              "Patient Pacing",
              "You didn't rush to fill silences. Letting moments breathe builds anticipation."),
        _hook("hook_tension_boundaries", "BALANCED_TENSION", "tension_control", 70,
              "Healthy Boundaries",
              "You held your position politely when challenged. Boundaries earn respect."),
        _hook("hook_tension_reframe", "BALANCED_TENSION", "tension_control", 65,
              "Smart Reframing",
              "You turned an awkward moment into a light one. Reframing is a high-level skill."),
        _hook("hook_general_engaged", None, "engagement", 70,
              "Fully Engaged",
              "You stayed present throughout the conversation. Engagement is contagious."),
        _hook("hook_general_responsive", None, "engagement", 65,
              "Responsive Replies",
              "You built on what the other person said instead of changing the subject."),
        _hook("hook_general_energy", None, "engagement", 60,
              "Good Energy",
              "Your messages carried consistent energy from start to finish."),
        _hook("hook_general_questions", None, "engagement", 55,
              "Great Questions",
              "Open questions gave the other person room to talk about what matters to them."),
        _hook("hook_general_authentic", None, "engagement", 50,
              "Authentic Voice",
              "You sounded like yourself. Authenticity is more attractive than any script."),
    ]

    patterns = [
        _pattern("pattern_neediness_detected", "neediness", "confidence", 90,
                 "Ease Off the Need",
                 "Some messages leaned on the other person for reassurance. Let interest flow both ways."),
        _pattern("pattern_neediness_improve", "neediness", "confidence", 85,
                 "Lead With Your Own Value",
                 "Share what you enjoy instead of asking whether they like you. Confidence is quiet."),
        _pattern("pattern_neediness_space", "neediness", "confidence", 75,
                 "Give It Space",
                 "Double messages and quick follow-ups can feel like pressure. Let replies come at their own pace."),
        _pattern("pattern_neediness_outcome", "neediness", "confidence", 70,
                 "Detach From the Outcome",
                 "Enjoy the conversation for its own sake. Outcome-focus shows up in your wording."),
        _pattern("pattern_overexplaining_detected", "overexplaining", "clarity", 85,
                 "Say Less",
                 "Several replies explained more than needed. Extra detail can bury your main point."),
        _pattern("pattern_overexplaining_conciseness", "overexplaining", "clarity", 80,
                 "Trim the Extras",
                 "Try cutting your next message in half before sending. You'll keep the important part."),
        _pattern("pattern_overexplaining_trust", "overexplaining", "clarity", 75,
                 "Trust Your Point",
                 "You don't have to pre-empt every objection. If they want more they'll ask."),
        _pattern("pattern_overexplaining_questions", "overexplaining", "clarity", 70,
                 "Ask, Don't Lecture",
                 "Swap one explanation for a question. It turns a monologue back into a dialogue."),
        _pattern("pattern_apologizing_excessive", "excessive_apologizing", "confidence", 90,
                 "Fewer Apologies",
                 "You apologized where no apology was needed. Save 'sorry' for when it really counts."),
        _pattern("pattern_apologizing_replace", "excessive_apologizing", "confidence", 80,
                 "Thank Instead of Sorry",
                 "Replace 'sorry for the long message' with 'thanks for reading'. Same politeness, more confidence."),
        _pattern("pattern_apologizing_own_it", "excessive_apologizing", "confidence", 75,
                 "Own Your Opinions",
                 "Softening every opinion with an apology undercuts it. State it kindly and let it stand."),
        _pattern("pattern_apologizing_mistakes", "excessive_apologizing", "confidence", 65,
                 "Small Slips Are Fine",
                 "A typo or a weak joke doesn't need an apology. Move on and the other person will too."),
        _pattern("pattern_validation_seeking", "validation_seeking", "confidence", 85,
                 "Stop Asking for Approval",
                 "Phrases like 'is that okay?' hand the frame to the other person. Make statements instead."),
        _pattern("pattern_validation_self_trust", "validation_seeking", "confidence", 80,
                 "Trust Your Judgment",
                 "You checked in on whether your messages were acceptable. They were. Trust yourself."),
        _pattern("pattern_validation_opinions", "validation_seeking", "confidence", 75,
                 "Share First",
                 "Give your own view before asking theirs. It makes the exchange feel balanced."),
        _pattern("pattern_validation_compliments", "validation_seeking", "confidence", 65,
                 "Compliments Without Hooks",
                 "Give compliments without fishing for one back. It keeps them sincere."),
        _pattern("pattern_defensive_response", "defensiveness", "tension_control", 85,
                 "Lower the Shield",
                 "When challenged you defended rather than engaged. Curiosity defuses tension better."),
        _pattern("pattern_defensive_humor", "defensiveness", "tension_control", 80,
                 "Laugh It Off",
                 "A light, playful answer to teasing shows security. Defensiveness shows the opposite."),
        _pattern("pattern_defensive_listen", "defensiveness", "tension_control", 75,
                 "Hear Them Out",
                 "Let the other person finish their point before answering. You'll respond to what they meant."),
        _pattern("pattern_defensive_agree", "defensiveness", "tension_control", 65,
                 "Agree and Amplify",
                 "Agreeing playfully with a tease takes the sting out of it and keeps things fun."),
    ]

    tips = [
        _tip("tip_listen_more", "engagement", 60,
             "Listen More Than You Talk",
             "Great conversations are built on listening. Ask questions and let the other person share."),
        _tip("tip_authenticity", "engagement", 65,
             "Be Yourself",
             "Authenticity beats performance. Let your real interests and personality show."),
        _tip("tip_storytelling", "clarity", 60,
             "Tell Better Stories",
             "A short story with a clear point is more engaging than a list of facts."),
        _tip("tip_confidence_practice", "confidence", 65,
             "Practice Confidence",
             "Confidence grows with repetition. Each mission is a safe place to try something bolder."),
        _tip("tip_balance", "tension_control", 60,
             "Find the Balance",
             "Mix warmth with a little challenge. Too much of either flattens the conversation."),
        _tip("tip_open_questions", "engagement", 55,
             "Ask Open Questions",
             "Questions that start with 'what' or 'how' invite richer answers than yes-or-no ones."),
        _tip("tip_mirror_energy", "emotional_warmth", 55,
             "Match Their Energy",
             "Mirror the other person's pace and tone. It creates a sense of rapport without words."),
        _tip("tip_end_on_high", "engagement", 50,
             "End on a High Note",
             "Close the conversation while it's going well. People remember the ending most."),
        _tip("tip_use_names", "emotional_warmth", 50,
             "Use Their Name",
             "Using someone's name once or twice makes the exchange feel personal."),
        _tip("tip_reflect_after", "clarity", 45,
             "Reflect Afterwards",
             "After each mission, pick one message you'd rewrite. Small edits compound over time."),
    ]

    return [*gates, *hooks, *patterns, *tips]


def build_default_catalog() -> InsightCatalog:
    return InsightCatalog(default_templates())
