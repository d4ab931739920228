"""
Pronunciation Assessment 결과 정규화

Azure Speech의 상세 JSON 결과(SpeechServiceResponse_JsonResult)에서
단어별 정확도/오류 유형을 추출합니다.

JSON 구조 (필요한 부분만):
    {
        "NBest": [
            {
                "Words": [
                    {
                        "Word": "hello",
                        "PronunciationAssessment": {
                            "AccuracyScore": 92.0,
                            "ErrorType": "None"
                        }
                    }
                ]
            }
        ]
    }

단어 상세가 없으면 참조 문장으로 대체 결과를 만듭니다. 대체 결과는
엔진의 실제 판정이 아닌 추정값(degraded mode)입니다.
"""
import json
import logging
import math
import random
import re
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from app.core.exceptions import RecognitionError
from app.schemas.evaluation import WordResult

logger = logging.getLogger(__name__)

FALLBACK_MIN_SCORE = 50
FALLBACK_JITTER = 10

_PUNCTUATION = re.compile(r"[.,!?]")


class WordPronunciationAssessment(BaseModel):
    accuracy_score: Optional[float] = Field(default=None, alias="AccuracyScore")
    error_type: Optional[str] = Field(default=None, alias="ErrorType")


class WordDetail(BaseModel):
    word: str = Field(default="", alias="Word")
    pronunciation_assessment: Optional[WordPronunciationAssessment] = Field(
        default=None,
        alias="PronunciationAssessment"
    )


class NBestCandidate(BaseModel):
    words: List[WordDetail] = Field(default_factory=list, alias="Words")


class DetailedRecognitionPayload(BaseModel):
    n_best: List[NBestCandidate] = Field(default_factory=list, alias="NBest")


def round_score(value: Optional[float], default: float = 0) -> int:
    """Round half-up to an integer in 0-100. ``None`` becomes ``default``."""
    if value is None:
        value = default
    return max(0, min(100, int(math.floor(value + 0.5))))


def parse_payload(raw_payload: Optional[str]) -> Optional[DetailedRecognitionPayload]:
    """
    Parse the engine's JSON result. Returns None when absent or malformed.
    """
    if not raw_payload:
        return None

    try:
        return DetailedRecognitionPayload.model_validate(json.loads(raw_payload))
    except (json.JSONDecodeError, TypeError, ValidationError) as e:
        logger.warning(f"Unparseable pronunciation assessment payload, ignoring word detail: {str(e)}")
        return None


def extract_word_results(raw_payload: Optional[str]) -> List[WordResult]:
    """
    NBest[0]의 단어별 평가를 WordResult로 변환 (엔진 보고 순서 유지)

    Args:
        raw_payload: SpeechServiceResponse_JsonResult 문자열

    Returns:
        List[WordResult]: 단어 상세가 없으면 빈 리스트
    """
    payload = parse_payload(raw_payload)
    if payload is None or not payload.n_best:
        return []

    words = []
    for detail in payload.n_best[0].words:
        assessment = detail.pronunciation_assessment or WordPronunciationAssessment()
        words.append(
            WordResult(
                word=detail.word,
                accuracy_score=round_score(assessment.accuracy_score),
                error_type=assessment.error_type or None
            )
        )
    return words


def synthesize_fallback_words(
    reference_text: str,
    overall_accuracy: float,
    rng: Optional[random.Random] = None
) -> List[WordResult]:
    """
    참조 문장의 단어마다 전체 정확도 ±10 범위의 추정 점수를 생성 (최소 50)

    엔진 측정값이 아님. 점수는 반올림하지 않음.
    """
    rng = rng or random.Random()
    words = []
    for token in reference_text.split():
        jitter = rng.uniform(-FALLBACK_JITTER, FALLBACK_JITTER)
        words.append(
            WordResult(
                word=_PUNCTUATION.sub("", token),
                accuracy_score=min(100, max(FALLBACK_MIN_SCORE, overall_accuracy + jitter)),
                error_type=None
            )
        )
    return words


class ResultNormalizer:
    """
    Turns the engine payload into an ordered list of WordResult.

    Example:
        >>> normalizer = ResultNormalizer()
        >>> words = normalizer.normalize(raw_json, "I like cats.", overall_accuracy=88)
    """

    def __init__(self, strict: bool = False, rng: Optional[random.Random] = None):
        """
        Args:
            strict: True면 단어 상세가 없을 때 대체 결과 대신 RecognitionError
            rng: 대체 점수용 난수 생성기 (테스트에서 고정 가능)
        """
        self.strict = strict
        self.rng = rng

    def normalize(
        self,
        raw_payload: Optional[str],
        reference_text: str,
        overall_accuracy: float
    ) -> List[WordResult]:
        words = extract_word_results(raw_payload)
        if words:
            return words

        if self.strict:
            raise RecognitionError("Word-level assessment detail missing from recognition result")

        logger.info("No word-level detail in recognition result, synthesizing fallback word scores")
        return synthesize_fallback_words(reference_text, overall_accuracy, rng=self.rng)
