"""
Speech Evaluation API 엔드포인트

Azure Speech Service를 사용한 아이들 발음 평가 API
아키텍처: API → Service → Agent
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile
from fastapi.responses import JSONResponse

from app.config import Settings, get_settings
from app.core.exceptions import UploadValidationError
from app.schemas.evaluation import EvaluationResponse, HealthResponse
from app.services.evaluation_service import EvaluationService, utc_timestamp

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Speech Evaluation"])

READ_CHUNK_SIZE = 1024 * 1024


def get_evaluation_service(settings: Settings = Depends(get_settings)) -> EvaluationService:
    """요청마다 새 EvaluationService 반환 (요청 간 공유 상태 없음)"""
    return EvaluationService(settings)


async def read_audio_upload(audio: Optional[UploadFile], max_bytes: int) -> bytes:
    """
    업로드 검증 후 오디오 바이트 반환

    크기 제한은 선언된 크기로 먼저 확인하고, 읽는 동안에도 청크 단위로 확인합니다.

    Raises:
        UploadValidationError: 파일 없음, 오디오가 아님, 크기 초과
    """
    if audio is None:
        raise UploadValidationError.missing_file()

    content_type = audio.content_type or ""
    if not content_type.startswith("audio/"):
        raise UploadValidationError.invalid_type(content_type)

    if audio.size is not None and audio.size > max_bytes:
        raise UploadValidationError.too_large(max_bytes)

    buffer = bytearray()
    while True:
        chunk = await audio.read(READ_CHUNK_SIZE)
        if not chunk:
            break
        buffer.extend(chunk)
        if len(buffer) > max_bytes:
            raise UploadValidationError.too_large(max_bytes)

    return bytes(buffer)


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check"
)
async def health_check():
    """Health check endpoint."""
    return HealthResponse(
        status="OK",
        message="Speech Evaluation Backend is running",
        timestamp=utc_timestamp()
    )


@router.post(
    "/evaluate",
    response_model=EvaluationResponse,
    summary="발음 평가",
    description="""
    아이가 읽은 문장의 음성을 평가합니다.

    - 전체 정확도 / 유창성 / 완성도 / 운율 점수 (0-100 정수)
    - 단어별 정확도 및 오류 유형
    - 지원 형식: audio/* (WebM, OGG, WAV)
    - 최대 파일 크기: 10MB

    단어 상세가 엔진 결과에 없으면 기준 문장 기반 추정값이 반환됩니다.
    """
)
async def evaluate_speech(
    audio: Optional[UploadFile] = File(default=None, description="음성 파일 (audio/*)"),
    reference_text: Optional[str] = Form(default=None, alias="referenceText", description="기준 문장"),
    settings: Settings = Depends(get_settings),
    service: EvaluationService = Depends(get_evaluation_service)
):
    """
    발음 평가 수행

    Returns:
        {
            "success": true,
            "result": {
                "recognizedText": "...",
                "accuracyScore": 92,
                "fluencyScore": 88,
                "completenessScore": 100,
                "prosodyScore": 85,
                "words": [{"word": "The", "accuracyScore": 100, "errorType": "None"}]
            },
            "metadata": {"audioSize": 48213, "audioType": "audio/webm", "referenceText": "...", "timestamp": "..."}
        }
    """
    logger.info("Received evaluation request")

    audio_data = await read_audio_upload(audio, settings.MAX_UPLOAD_BYTES)

    response = await service.evaluate(
        audio_data=audio_data,
        mime_type=audio.content_type,
        reference_text=reference_text
    )

    return JSONResponse(content=response.model_dump(by_alias=True, mode="json"))
