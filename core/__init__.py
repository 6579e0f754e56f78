"""Pure insight rotation and analytics engine."""

from core.catalog import InsightCatalog, build_default_catalog
from core.mood import build_mood_timeline
from core.prng import SeededSequence, generate_seed
from core.rotation import premium_view, select_base_pack
from core.selector import select_deep_insights
from core.signals import extract_signals
from core.synergy import compute_synergy

__all__ = [
    "InsightCatalog",
    "SeededSequence",
    "build_default_catalog",
    "build_mood_timeline",
    "compute_synergy",
    "extract_signals",
    "generate_seed",
    "premium_view",
    "select_base_pack",
    "select_deep_insights",
]
