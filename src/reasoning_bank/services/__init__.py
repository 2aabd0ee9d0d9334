from .pattern_service import PatternAnalyticsService

__all__ = ["PatternAnalyticsService"]
