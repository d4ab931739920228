"""
Speech Evaluation API 스키마

발음 평가 요청/응답을 위한 Pydantic 모델 (JSON 필드는 camelCase)
"""
from pydantic import BaseModel, Field
from typing import List, Optional, Union


class WordResult(BaseModel):
    """단어 단위 평가 결과"""
    word: str = Field(..., description="평가된 단어")
    accuracy_score: Union[int, float] = Field(
        ...,
        alias="accuracyScore",
        description="정확도 점수 (0-100). 대체 결과는 반올림하지 않은 추정값",
        ge=0,
        le=100
    )
    error_type: Optional[str] = Field(
        default=None,
        alias="errorType",
        description="오류 유형 (None/Mispronunciation/Omission/Insertion), 없으면 null"
    )

    class Config:
        populate_by_name = True


class EvaluationResult(BaseModel):
    """발음 평가 결과"""
    recognized_text: str = Field(..., alias="recognizedText", description="실제 인식된 텍스트")
    accuracy_score: int = Field(..., alias="accuracyScore", ge=0, le=100)
    fluency_score: int = Field(..., alias="fluencyScore", ge=0, le=100)
    completeness_score: int = Field(..., alias="completenessScore", ge=0, le=100)
    prosody_score: int = Field(
        ...,
        alias="prosodyScore",
        description="운율 점수 (엔진이 제공하지 않으면 85)",
        ge=0,
        le=100
    )
    words: List[WordResult] = Field(default_factory=list, description="단어별 상세 평가")

    class Config:
        populate_by_name = True
        json_schema_extra = {
            "example": {
                "recognizedText": "The quick brown fox jumps over the lazy dog.",
                "accuracyScore": 92,
                "fluencyScore": 88,
                "completenessScore": 100,
                "prosodyScore": 85,
                "words": [
                    {"word": "The", "accuracyScore": 100, "errorType": "None"},
                    {"word": "quick", "accuracyScore": 76, "errorType": "Mispronunciation"}
                ]
            }
        }


class EvaluationMetadata(BaseModel):
    audio_size: int = Field(..., alias="audioSize", description="업로드된 오디오 크기 (bytes)")
    audio_type: str = Field(..., alias="audioType", description="업로드된 오디오 MIME 타입")
    reference_text: str = Field(..., alias="referenceText")
    timestamp: str = Field(..., description="ISO-8601 처리 시각")

    class Config:
        populate_by_name = True


class EvaluationResponse(BaseModel):
    """발음 평가 응답"""
    success: bool = True
    result: EvaluationResult
    metadata: EvaluationMetadata


class ErrorResponse(BaseModel):
    """에러 응답"""
    error: str = Field(..., description="에러 분류")
    message: str = Field(..., description="사용자용 메시지")
    details: Optional[str] = Field(default=None, description="상세 내용 (개발 모드 또는 안전한 경우만)")


class HealthResponse(BaseModel):
    status: str = "OK"
    message: str
    timestamp: str
