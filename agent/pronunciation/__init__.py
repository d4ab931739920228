"""
Pronunciation Assessment Agent Module
"""
from agent.pronunciation.pronunciation_agent import (
    AssessmentConfiguration,
    AssessmentScores,
    OutcomeKind,
    PronunciationAssessmentAgent,
    RecognitionOutcome,
)
from agent.pronunciation.result_normalizer import ResultNormalizer

__all__ = [
    "AssessmentConfiguration",
    "AssessmentScores",
    "OutcomeKind",
    "PronunciationAssessmentAgent",
    "RecognitionOutcome",
    "ResultNormalizer",
]
