from .feedback_service import FEEDBACK_KEY, FeedbackService

__all__ = ["FEEDBACK_KEY", "FeedbackService"]
