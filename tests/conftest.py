"""
공통 테스트 fixture
"""
import io
import json
import wave

import pytest

from app.config import Settings


def make_settings(**overrides) -> Settings:
    """환경 변수와 무관한 테스트용 Settings"""
    values = {
        "AZURE_SUBSCRIPTION_KEY": "test-subscription-key",
        "AZURE_SERVICE_REGION": "eastus",
        "ENVIRONMENT": "production",
        "RECOGNITION_TIMEOUT_SECONDS": None,
        "ENABLE_PROSODY_ASSESSMENT": False,
        "TRANSCODE_COMPRESSED_AUDIO": False,
        "WORD_FALLBACK_POLICY": "synthesize",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_payload(words) -> str:
    """Azure 상세 JSON 결과 형태의 payload 생성"""
    return json.dumps({
        "RecognitionStatus": "Success",
        "NBest": [
            {
                "Display": " ".join(w["Word"] for w in words),
                "Words": words
            }
        ]
    })


def make_silent_wav(seconds: float = 1.0, sample_rate: int = 16000) -> bytes:
    """16kHz, 16-bit, mono 무음 WAV"""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(b"\x00\x00" * int(seconds * sample_rate))
    return buffer.getvalue()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def sample_words():
    return [
        {"Word": "I", "PronunciationAssessment": {"AccuracyScore": 98.4, "ErrorType": "None"}},
        {"Word": "like", "PronunciationAssessment": {"AccuracyScore": 71.5, "ErrorType": "Mispronunciation"}},
        {"Word": "cats", "PronunciationAssessment": {"AccuracyScore": 88.0, "ErrorType": "None"}},
    ]
