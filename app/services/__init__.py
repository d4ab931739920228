"""
Services package for business logic.

Service classes orchestrate Agent calls and implement business logic
that doesn't belong in API endpoints.
"""
from .evaluation_service import EvaluationService

__all__ = [
    "EvaluationService",
]
