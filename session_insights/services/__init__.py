"""Services for deep insights, mood, synergy, analyzer paragraphs, and rotation."""

from .analyzer_service import AnalyzerService
from .insights_service import InsightsService
from .mood_service import MoodService
from .rotation_service import RotationService
from .synergy_service import SynergyService

__all__ = ["InsightsService", "MoodService", "SynergyService", "AnalyzerService", "RotationService"]
