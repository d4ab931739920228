"""
Azure Pronunciation Assessment Agent

Azure Speech Service의 Pronunciation Assessment 기능으로
아이들이 읽은 문장의 정확도, 유창성, 완성도, 운율을 평가하는 Agent입니다.

Features:
- 단어(Word) 단위 발음 평가 (100점 만점, miscue 감지)
- 요청당 단 한 번의 recognize_once 호출 (연속 인식/재시도 없음)
- 모든 종료 경로에서 Recognizer 해제
- 선택적 타임아웃 (기본값: 없음)
"""
import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import azure.cognitiveservices.speech as speechsdk

from agent.base_azure_agent import BaseAzureAgent
from agent.pronunciation.result_normalizer import ResultNormalizer, round_score
from app.config import Settings, validate_azure_config
from app.core.audio_format import AudioInputHandle
from app.core.exceptions import RecognitionError
from app.schemas.evaluation import EvaluationResult

logger = logging.getLogger(__name__)

# 엔진이 운율 점수를 주지 않을 때 사용하는 고정값
DEFAULT_PROSODY_SCORE = 85

NO_SPEECH_MESSAGE = "No speech could be recognized from the audio"


@dataclass(frozen=True)
class AssessmentConfiguration:
    """Per-request pronunciation assessment settings. Never shared across requests."""

    reference_text: str
    language: str = "en-US"
    grading_system: str = "HundredMark"
    granularity: str = "Word"
    enable_miscue: bool = True
    enable_prosody: bool = False

    @classmethod
    def for_request(cls, reference_text: str, settings: Settings) -> "AssessmentConfiguration":
        return cls(
            reference_text=reference_text,
            language=settings.AZURE_SPEECH_LANGUAGE,
            enable_prosody=settings.ENABLE_PROSODY_ASSESSMENT
        )


@dataclass(frozen=True)
class AssessmentScores:
    accuracy: Optional[float] = None
    fluency: Optional[float] = None
    completeness: Optional[float] = None
    prosody: Optional[float] = None


class OutcomeKind(Enum):
    RECOGNIZED = "recognized"
    NO_MATCH = "no_match"
    FAILED = "failed"


@dataclass(frozen=True)
class RecognitionOutcome:
    """Result of the single recognition attempt."""

    kind: OutcomeKind
    text: str = ""
    raw_payload: Optional[str] = None
    scores: AssessmentScores = AssessmentScores()
    detail: str = ""

    @classmethod
    def recognized(
        cls,
        text: str,
        raw_payload: Optional[str],
        scores: AssessmentScores
    ) -> "RecognitionOutcome":
        return cls(kind=OutcomeKind.RECOGNIZED, text=text, raw_payload=raw_payload, scores=scores)

    @classmethod
    def no_match(cls) -> "RecognitionOutcome":
        return cls(kind=OutcomeKind.NO_MATCH, detail=NO_SPEECH_MESSAGE)

    @classmethod
    def failed(cls, detail: str) -> "RecognitionOutcome":
        return cls(kind=OutcomeKind.FAILED, detail=detail)


class PronunciationAssessmentAgent(BaseAzureAgent):
    """
    Azure Speech Pronunciation Assessment Agent

    Holds configuration only; every SpeechRecognizer it creates belongs to one call.

    Example:
        >>> agent = PronunciationAssessmentAgent(settings)
        >>> config = AssessmentConfiguration.for_request("I like cats.", settings)
        >>> with AudioFormatResolver().resolve(audio_bytes, "audio/wav") as handle:
        ...     result = await agent.assess(handle, config)
        >>> print(f"Accuracy: {result.accuracy_score}")
    """

    def __init__(self, settings: Settings, normalizer: Optional[ResultNormalizer] = None):
        self.settings = settings
        self.normalizer = normalizer or ResultNormalizer(
            strict=settings.WORD_FALLBACK_POLICY.lower() == "strict"
        )

    async def process(self, audio: AudioInputHandle, config: AssessmentConfiguration) -> EvaluationResult:
        return await self.assess(audio, config)

    async def assess(self, audio: AudioInputHandle, config: AssessmentConfiguration) -> EvaluationResult:
        """
        발음 평가 수행

        Args:
            audio: AudioFormatResolver가 만든 오디오 입력
            config: 요청별 평가 설정

        Returns:
            EvaluationResult: 반올림된 전체 점수와 단어별 결과

        Raises:
            ConfigurationError: Azure 자격 증명이 없을 때 (SDK 호출 전)
            RecognitionError: 음성 미인식(no_match=True) 또는 엔진 실패
        """
        validate_azure_config(self.settings)

        logger.info(
            f"Starting pronunciation assessment: "
            f"language={config.language}, "
            f"granularity={config.granularity}, "
            f"reference_text='{config.reference_text[:50]}'"
        )

        outcome = await self.recognize_once(audio, config)

        if outcome.kind is OutcomeKind.NO_MATCH:
            logger.warning("No speech recognized in audio for pronunciation assessment")
            raise RecognitionError(outcome.detail, no_match=True)

        if outcome.kind is OutcomeKind.FAILED:
            logger.error(f"Pronunciation assessment failed: {outcome.detail}")
            raise RecognitionError(outcome.detail)

        result = self._build_result(outcome, config)

        logger.info(
            f"Pronunciation assessment success: "
            f"accuracy={result.accuracy_score}, "
            f"fluency={result.fluency_score}, "
            f"completeness={result.completeness_score}, "
            f"prosody={result.prosody_score}, "
            f"words={len(result.words)}"
        )
        return result

    async def recognize_once(
        self,
        audio: AudioInputHandle,
        config: AssessmentConfiguration
    ) -> RecognitionOutcome:
        """
        Recognizer를 만들고 recognize_once를 한 번 실행해 결과를 분류

        Recognizer는 성공/미인식/실패/예외 모든 경로에서 해제됩니다.
        """
        recognizer = None
        try:
            speech_config = speechsdk.SpeechConfig(
                subscription=self.settings.AZURE_SUBSCRIPTION_KEY,
                region=self.settings.AZURE_SERVICE_REGION
            )
            speech_config.speech_recognition_language = config.language

            pronunciation_config = speechsdk.PronunciationAssessmentConfig(
                reference_text=config.reference_text,
                grading_system=getattr(
                    speechsdk.PronunciationAssessmentGradingSystem,
                    config.grading_system
                ),
                granularity=getattr(
                    speechsdk.PronunciationAssessmentGranularity,
                    config.granularity
                ),
                enable_miscue=config.enable_miscue
            )
            if config.enable_prosody:
                pronunciation_config.enable_prosody_assessment()

            recognizer = speechsdk.SpeechRecognizer(
                speech_config=speech_config,
                audio_config=audio.audio_config
            )
            pronunciation_config.apply_to(recognizer)

            result = await self._await_recognition(recognizer)
            return self._classify(result)

        except RecognitionError:
            raise
        except Exception as e:
            logger.error(f"Recognition error: {str(e)}", exc_info=True)
            raise RecognitionError(f"Speech recognition error: {str(e)}")
        finally:
            if recognizer is not None:
                self._release(recognizer)

    async def _await_recognition(self, recognizer: speechsdk.SpeechRecognizer):
        # SDK 호출은 블로킹이므로 워커 스레드에서 실행
        call = asyncio.to_thread(recognizer.recognize_once)

        timeout = self.settings.RECOGNITION_TIMEOUT_SECONDS
        if timeout is None:
            return await call

        # 타임아웃 시 워커 스레드는 계속 실행되며 해제 이후 SDK 오류를 로그에 남길 수 있음
        try:
            return await asyncio.wait_for(call, timeout=timeout)
        except asyncio.TimeoutError:
            raise RecognitionError(f"Speech recognition timed out after {timeout}s")

    def _classify(self, result) -> RecognitionOutcome:
        if result.reason == speechsdk.ResultReason.RecognizedSpeech:
            logger.info(f"Recognition result: {result.text}")
            raw_payload = result.properties.get(
                speechsdk.PropertyId.SpeechServiceResponse_JsonResult
            )
            return RecognitionOutcome.recognized(
                text=result.text,
                raw_payload=raw_payload,
                scores=self._extract_scores(result)
            )

        if result.reason == speechsdk.ResultReason.NoMatch:
            return RecognitionOutcome.no_match()

        if result.reason == speechsdk.ResultReason.Canceled:
            cancellation = result.cancellation_details
            return RecognitionOutcome.failed(
                f"Speech recognition failed: {cancellation.reason}, {cancellation.error_details}"
            )

        return RecognitionOutcome.failed(
            f"Speech recognition failed: unexpected result reason {result.reason}"
        )

    @staticmethod
    def _extract_scores(result) -> AssessmentScores:
        try:
            pronunciation_result = speechsdk.PronunciationAssessmentResult(result)
        except Exception as e:
            # 점수 파싱 실패 시 기본값으로 진행 (단어 결과는 대체 경로 사용)
            logger.warning(f"Pronunciation assessment scores unavailable: {str(e)}")
            return AssessmentScores()

        return AssessmentScores(
            accuracy=pronunciation_result.accuracy_score,
            fluency=pronunciation_result.fluency_score,
            completeness=pronunciation_result.completeness_score,
            prosody=getattr(pronunciation_result, "prosody_score", None)
        )

    @staticmethod
    def _release(recognizer: speechsdk.SpeechRecognizer) -> None:
        try:
            speechsdk.Connection.from_recognizer(recognizer).close()
        except Exception as e:
            logger.warning(f"Failed to release speech recognizer: {str(e)}")

    def _build_result(
        self,
        outcome: RecognitionOutcome,
        config: AssessmentConfiguration
    ) -> EvaluationResult:
        scores = outcome.scores
        accuracy = round_score(scores.accuracy)

        words = self.normalizer.normalize(
            outcome.raw_payload,
            config.reference_text,
            overall_accuracy=accuracy
        )

        return EvaluationResult(
            recognized_text=outcome.text,
            accuracy_score=accuracy,
            fluency_score=round_score(scores.fluency),
            completeness_score=round_score(scores.completeness),
            prosody_score=round_score(scores.prosody, default=DEFAULT_PROSODY_SCORE),
            words=words
        )
