"""
PronunciationAssessmentAgent 테스트

Azure Speech SDK를 mock하여 단일 인식 호출, 결과 분류, 점수 반올림,
Recognizer 해제를 검증합니다.
"""
import asyncio
import json
import time
from unittest.mock import MagicMock, patch

import pytest

from agent.pronunciation.pronunciation_agent import (
    DEFAULT_PROSODY_SCORE,
    AssessmentConfiguration,
    OutcomeKind,
    PronunciationAssessmentAgent,
)
from agent.pronunciation.result_normalizer import FALLBACK_MIN_SCORE
from app.core.audio_format import AudioInputHandle
from app.core.exceptions import ConfigurationError, RecognitionError
from conftest import make_payload, make_settings


@pytest.fixture
def mock_sdk():
    with patch("agent.pronunciation.pronunciation_agent.speechsdk") as sdk:
        yield sdk


@pytest.fixture
def audio_handle():
    return AudioInputHandle(audio_config=MagicMock(name="audio_config"), source="push_stream_pcm")


def configure_result(
    mock_sdk,
    reason_name="RecognizedSpeech",
    text="I like cats",
    payload=None,
    accuracy=91.6,
    fluency=85.2,
    completeness=100.0,
    prosody=None
):
    """recognize_once가 돌려줄 결과와 PronunciationAssessmentResult를 설정"""
    result = MagicMock(name="recognition_result")
    result.reason = getattr(mock_sdk.ResultReason, reason_name)
    result.text = text
    result.properties.get.return_value = payload

    mock_sdk.PronunciationAssessmentResult.return_value = MagicMock(
        accuracy_score=accuracy,
        fluency_score=fluency,
        completeness_score=completeness,
        prosody_score=prosody
    )

    recognizer = mock_sdk.SpeechRecognizer.return_value
    recognizer.recognize_once.return_value = result
    return result


class TestPronunciationAssessmentAgent:
    """PronunciationAssessmentAgent 테스트 클래스"""

    @pytest.fixture
    def agent(self, settings):
        return PronunciationAssessmentAgent(settings)

    @pytest.fixture
    def config(self, settings):
        return AssessmentConfiguration.for_request("I like cats.", settings)

    @pytest.mark.asyncio
    async def test_recognized_speech_scores_are_rounded(self, agent, config, audio_handle, mock_sdk, sample_words):
        configure_result(mock_sdk, payload=make_payload(sample_words))

        result = await agent.assess(audio_handle, config)

        assert result.recognized_text == "I like cats"
        assert result.accuracy_score == 92
        assert result.fluency_score == 85
        assert result.completeness_score == 100
        assert [w.word for w in result.words] == ["I", "like", "cats"]
        assert [w.accuracy_score for w in result.words] == [98, 72, 88]

    @pytest.mark.asyncio
    async def test_missing_prosody_defaults_to_85(self, agent, config, audio_handle, mock_sdk, sample_words):
        configure_result(mock_sdk, payload=make_payload(sample_words), prosody=None)

        result = await agent.assess(audio_handle, config)

        assert result.prosody_score == DEFAULT_PROSODY_SCORE == 85

    @pytest.mark.asyncio
    async def test_reported_prosody_is_rounded(self, agent, config, audio_handle, mock_sdk, sample_words):
        configure_result(mock_sdk, payload=make_payload(sample_words), prosody=77.4)

        result = await agent.assess(audio_handle, config)

        assert result.prosody_score == 77

    @pytest.mark.asyncio
    async def test_assessment_configuration_applied(self, agent, config, audio_handle, mock_sdk, sample_words):
        configure_result(mock_sdk, payload=make_payload(sample_words))

        await agent.assess(audio_handle, config)

        mock_sdk.SpeechConfig.assert_called_once_with(subscription="test-subscription-key", region="eastus")
        assert mock_sdk.SpeechConfig.return_value.speech_recognition_language == "en-US"
        mock_sdk.PronunciationAssessmentConfig.assert_called_once_with(
            reference_text="I like cats.",
            grading_system=mock_sdk.PronunciationAssessmentGradingSystem.HundredMark,
            granularity=mock_sdk.PronunciationAssessmentGranularity.Word,
            enable_miscue=True
        )
        mock_sdk.SpeechRecognizer.assert_called_once_with(
            speech_config=mock_sdk.SpeechConfig.return_value,
            audio_config=audio_handle.audio_config
        )
        pronunciation_config = mock_sdk.PronunciationAssessmentConfig.return_value
        pronunciation_config.apply_to.assert_called_once_with(mock_sdk.SpeechRecognizer.return_value)
        pronunciation_config.enable_prosody_assessment.assert_not_called()

    @pytest.mark.asyncio
    async def test_single_recognition_call(self, agent, config, audio_handle, mock_sdk, sample_words):
        configure_result(mock_sdk, payload=make_payload(sample_words))

        await agent.assess(audio_handle, config)

        recognizer = mock_sdk.SpeechRecognizer.return_value
        recognizer.recognize_once.assert_called_once_with()
        recognizer.start_continuous_recognition.assert_not_called()

    @pytest.mark.asyncio
    async def test_prosody_assessment_enabled_by_setting(self, audio_handle, mock_sdk, sample_words):
        settings = make_settings(ENABLE_PROSODY_ASSESSMENT=True)
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("I like cats.", settings)
        configure_result(mock_sdk, payload=make_payload(sample_words), prosody=90.0)

        result = await agent.assess(audio_handle, config)

        mock_sdk.PronunciationAssessmentConfig.return_value.enable_prosody_assessment.assert_called_once()
        assert result.prosody_score == 90

    @pytest.mark.asyncio
    async def test_recognizer_released_on_success(self, agent, config, audio_handle, mock_sdk, sample_words):
        configure_result(mock_sdk, payload=make_payload(sample_words))

        await agent.assess(audio_handle, config)

        mock_sdk.Connection.from_recognizer.assert_called_once_with(mock_sdk.SpeechRecognizer.return_value)
        mock_sdk.Connection.from_recognizer.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_no_match_raises_recognition_error(self, agent, config, audio_handle, mock_sdk):
        configure_result(mock_sdk, reason_name="NoMatch")

        with pytest.raises(RecognitionError) as exc_info:
            await agent.assess(audio_handle, config)

        assert exc_info.value.no_match is True
        assert exc_info.value.status_code == 400
        assert "No speech could be recognized" in str(exc_info.value)
        mock_sdk.Connection.from_recognizer.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_canceled_raises_engine_failure(self, agent, config, audio_handle, mock_sdk):
        result = configure_result(mock_sdk, reason_name="Canceled")
        result.cancellation_details.reason = "CancellationReason.Error"
        result.cancellation_details.error_details = "Authentication failed (401)"

        with pytest.raises(RecognitionError) as exc_info:
            await agent.assess(audio_handle, config)

        assert exc_info.value.no_match is False
        assert exc_info.value.status_code == 500
        assert "Authentication failed (401)" in str(exc_info.value)
        mock_sdk.Connection.from_recognizer.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_sdk_exception_is_wrapped_and_released(self, agent, config, audio_handle, mock_sdk):
        recognizer = mock_sdk.SpeechRecognizer.return_value
        recognizer.recognize_once.side_effect = RuntimeError("connection reset")

        with pytest.raises(RecognitionError) as exc_info:
            await agent.assess(audio_handle, config)

        assert "Speech recognition error: connection reset" in str(exc_info.value)
        mock_sdk.Connection.from_recognizer.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_release_failure_does_not_mask_result(self, agent, config, audio_handle, mock_sdk, sample_words):
        configure_result(mock_sdk, payload=make_payload(sample_words))
        mock_sdk.Connection.from_recognizer.side_effect = RuntimeError("already closed")

        result = await agent.assess(audio_handle, config)

        assert result.accuracy_score == 92

    @pytest.mark.asyncio
    async def test_missing_credentials_fail_before_sdk(self, audio_handle, mock_sdk):
        settings = make_settings(AZURE_SUBSCRIPTION_KEY="", AZURE_SERVICE_REGION="")
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("I like cats.", settings)

        with pytest.raises(ConfigurationError):
            await agent.assess(audio_handle, config)

        mock_sdk.SpeechConfig.assert_not_called()
        mock_sdk.SpeechRecognizer.assert_not_called()

    @pytest.mark.asyncio
    async def test_timeout_when_configured(self, audio_handle, mock_sdk):
        settings = make_settings(RECOGNITION_TIMEOUT_SECONDS=0.05)
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("I like cats.", settings)
        recognizer = mock_sdk.SpeechRecognizer.return_value
        recognizer.recognize_once.side_effect = lambda: time.sleep(0.3)

        with pytest.raises(RecognitionError) as exc_info:
            await agent.assess(audio_handle, config)

        assert "timed out" in str(exc_info.value)
        mock_sdk.Connection.from_recognizer.return_value.close.assert_called_once()

    @pytest.mark.asyncio
    async def test_late_sdk_error_after_timeout_stays_in_worker(self, audio_handle, mock_sdk):
        settings = make_settings(RECOGNITION_TIMEOUT_SECONDS=0.05)
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("I like cats.", settings)
        released = mock_sdk.Connection.from_recognizer.return_value.close

        def slow_then_fail():
            time.sleep(0.2)
            raise RuntimeError("recognizer already disposed")

        mock_sdk.SpeechRecognizer.return_value.recognize_once.side_effect = slow_then_fail

        with pytest.raises(RecognitionError) as exc_info:
            await agent.assess(audio_handle, config)

        # 해제는 워커 종료를 기다리지 않음
        released.assert_called_once()
        await asyncio.sleep(0.3)

        assert "timed out" in str(exc_info.value)
        released.assert_called_once()


class TestWordFallback:
    """단어 상세가 없을 때의 대체 경로"""

    @pytest.mark.asyncio
    async def test_fallback_words_from_reference_text(self, audio_handle, mock_sdk):
        settings = make_settings()
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("Look, a big red ball!", settings)
        configure_result(mock_sdk, payload=json.dumps({"NBest": [{"Words": []}]}), accuracy=64.0)

        result = await agent.assess(audio_handle, config)

        assert [w.word for w in result.words] == ["Look", "a", "big", "red", "ball"]
        assert all(w.accuracy_score >= FALLBACK_MIN_SCORE for w in result.words)
        assert all(w.error_type is None for w in result.words)
        assert result.accuracy_score == 64

    @pytest.mark.asyncio
    async def test_unparseable_scores_degrade_gracefully(self, audio_handle, mock_sdk):
        settings = make_settings()
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("test", settings)
        configure_result(mock_sdk, payload="{broken json")
        mock_sdk.PronunciationAssessmentResult.side_effect = KeyError("NBest")

        result = await agent.assess(audio_handle, config)

        assert result.accuracy_score == 0
        assert result.prosody_score == DEFAULT_PROSODY_SCORE
        assert [w.word for w in result.words] == ["test"]
        assert result.words[0].accuracy_score == FALLBACK_MIN_SCORE

    @pytest.mark.asyncio
    async def test_strict_policy_fails_request(self, audio_handle, mock_sdk):
        settings = make_settings(WORD_FALLBACK_POLICY="strict")
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("I like cats.", settings)
        configure_result(mock_sdk, payload=None)

        with pytest.raises(RecognitionError):
            await agent.assess(audio_handle, config)

    @pytest.mark.asyncio
    async def test_overall_scores_are_deterministic(self, audio_handle, mock_sdk):
        settings = make_settings()
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("The quick brown fox.", settings)
        configure_result(mock_sdk, payload=None, accuracy=80.2, fluency=70.7, completeness=90.0)

        first = await agent.assess(audio_handle, config)
        second = await agent.assess(audio_handle, config)

        overall = lambda r: (r.accuracy_score, r.fluency_score, r.completeness_score, r.prosody_score)
        assert overall(first) == overall(second) == (80, 71, 90, 85)


class TestRecognitionOutcome:

    @pytest.mark.asyncio
    async def test_recognize_once_returns_tagged_outcome(self, settings, audio_handle, mock_sdk, sample_words):
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("I like cats.", settings)
        payload = make_payload(sample_words)
        configure_result(mock_sdk, payload=payload)

        outcome = await agent.recognize_once(audio_handle, config)

        assert outcome.kind is OutcomeKind.RECOGNIZED
        assert outcome.raw_payload == payload
        assert outcome.scores.accuracy == 91.6

    @pytest.mark.asyncio
    async def test_no_match_outcome(self, settings, audio_handle, mock_sdk):
        agent = PronunciationAssessmentAgent(settings)
        config = AssessmentConfiguration.for_request("I like cats.", settings)
        configure_result(mock_sdk, reason_name="NoMatch")

        outcome = await agent.recognize_once(audio_handle, config)

        assert outcome.kind is OutcomeKind.NO_MATCH
