"""
발음 평가 서비스

업로드된 오디오를 Agent로 전달하고 응답 봉투(result + metadata)를 만듭니다.
아키텍처: API → Service → Agent
"""
import logging
from datetime import datetime, timezone
from typing import Optional

from agent.pronunciation.pronunciation_agent import (
    AssessmentConfiguration,
    PronunciationAssessmentAgent,
)
from app.config import Settings, validate_azure_config
from app.core.audio_format import AudioFormatResolver
from app.schemas.evaluation import EvaluationMetadata, EvaluationResponse

logger = logging.getLogger(__name__)


def utc_timestamp() -> str:
    """Current UTC time as ISO-8601 with millisecond precision (``...Z``)."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class EvaluationService:
    """
    발음 평가 비즈니스 로직 처리 서비스

    요청마다 새로 생성되며 요청 간에 공유되는 상태가 없습니다.

    역할:
    - 기준 문장 기본값 적용
    - 자격 증명 확인 (SDK 호출 전)
    - 오디오 입력 구성 → Agent 호출 → 응답 구성
    """

    def __init__(
        self,
        settings: Settings,
        agent: Optional[PronunciationAssessmentAgent] = None,
        resolver: Optional[AudioFormatResolver] = None
    ):
        self.settings = settings
        self.agent = agent or PronunciationAssessmentAgent(settings)
        self.resolver = resolver or AudioFormatResolver(
            transcode_compressed=settings.TRANSCODE_COMPRESSED_AUDIO
        )

    def resolve_reference_text(self, reference_text: Optional[str]) -> str:
        # 비어 있거나 없을 때만 기본 문장 사용 (공백 문자열은 그대로 전달)
        if reference_text:
            return reference_text
        return self.settings.DEFAULT_REFERENCE_TEXT

    async def evaluate(
        self,
        audio_data: bytes,
        mime_type: str,
        reference_text: Optional[str] = None
    ) -> EvaluationResponse:
        """
        오디오 발음 평가

        Args:
            audio_data: 검증된 오디오 바이트 (크기/타입 검증은 API 계층에서 완료)
            mime_type: 업로드 MIME 타입
            reference_text: 기준 문장 (없으면 기본 문장)

        Returns:
            EvaluationResponse: success, result, metadata

        Raises:
            ConfigurationError, AudioFormatError, RecognitionError
        """
        reference_text = self.resolve_reference_text(reference_text)

        logger.info(f"Reference text: {reference_text}")
        logger.info(f"Audio file size: {len(audio_data)} bytes, type: {mime_type}")

        validate_azure_config(self.settings)

        config = AssessmentConfiguration.for_request(reference_text, self.settings)

        with self.resolver.resolve(audio_data, mime_type) as audio:
            result = await self.agent.assess(audio, config)

        logger.info(
            f"Assessment completed: accuracy={result.accuracy_score}, "
            f"fluency={result.fluency_score}, words={len(result.words)}"
        )

        return EvaluationResponse(
            success=True,
            result=result,
            metadata=EvaluationMetadata(
                audio_size=len(audio_data),
                audio_type=mime_type,
                reference_text=reference_text,
                timestamp=utc_timestamp()
            )
        )
