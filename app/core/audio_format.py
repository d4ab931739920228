"""
오디오 입력 구성 유틸리티

업로드된 오디오의 MIME 타입을 보고 Azure Speech SDK가 읽을 수 있는
AudioConfig를 만듭니다.

- WebM/OGG: 16kHz, 16-bit, mono PCM 포맷 힌트를 준 PushAudioInputStream
  (코덱을 실제로 트랜스코딩하지 않음, SDK 디코더가 컨테이너를 해석한다고 가정)
- WAV 등: 자기 기술적(self-describing) 파일로 보고 그대로 전달
- 실패 시: 포맷 힌트 없는 PushAudioInputStream으로 한 번만 재시도
"""
import io
import logging
import os
import tempfile
from dataclasses import dataclass
from typing import Optional

import azure.cognitiveservices.speech as speechsdk
from pydub import AudioSegment

from app.core.exceptions import AudioFormatError

logger = logging.getLogger(__name__)

# Azure Speech 권장 PCM 포맷
PCM_SAMPLE_RATE = 16000
PCM_BITS_PER_SAMPLE = 16
PCM_CHANNELS = 1

COMPRESSED_CONTAINERS = ("webm", "ogg")


@dataclass
class AudioInputHandle:
    """
    AudioConfig plus whatever backs it.

    Owned by a single request. ``close()`` deletes the spooled WAV file, if any.
    """

    audio_config: speechsdk.audio.AudioConfig
    source: str
    temp_path: Optional[str] = None

    def close(self) -> None:
        if self.temp_path and os.path.exists(self.temp_path):
            try:
                os.unlink(self.temp_path)
            except OSError as e:
                logger.warning(f"Failed to remove temporary audio file {self.temp_path}: {e}")
        self.temp_path = None

    def __enter__(self) -> "AudioInputHandle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def is_compressed_container(mime_type: str) -> bool:
    """True for streaming containers (WebM/OGG) that carry a compressed codec."""
    mime_type = (mime_type or "").lower()
    return any(container in mime_type for container in COMPRESSED_CONTAINERS)


def convert_to_wav(audio_data: bytes, source_format: str) -> bytes:
    """
    오디오 데이터를 WAV 형식으로 변환 (ffmpeg 필요)

    Args:
        audio_data: 원본 오디오 데이터
        source_format: 원본 형식 (webm, ogg 등)

    Returns:
        bytes: WAV 형식의 오디오 데이터 (16kHz, mono, 16-bit PCM)
    """
    audio = AudioSegment.from_file(io.BytesIO(audio_data), format=source_format)

    audio = audio.set_frame_rate(PCM_SAMPLE_RATE)
    audio = audio.set_channels(PCM_CHANNELS)
    audio = audio.set_sample_width(PCM_BITS_PER_SAMPLE // 8)

    output = io.BytesIO()
    audio.export(output, format="wav")
    wav_data = output.getvalue()

    logger.info(f"Audio conversion successful: {len(audio_data)} bytes -> {len(wav_data)} bytes")
    return wav_data


class AudioFormatResolver:
    """
    Builds the recognizer's audio input from an uploaded buffer.

    Example:
        >>> resolver = AudioFormatResolver()
        >>> with resolver.resolve(audio_bytes, "audio/webm") as handle:
        ...     recognizer = speechsdk.SpeechRecognizer(speech_config, handle.audio_config)
    """

    def __init__(self, transcode_compressed: bool = False):
        """
        Args:
            transcode_compressed: WebM/OGG를 pydub으로 WAV 변환한 뒤 WAV 경로로 처리
        """
        self.transcode_compressed = transcode_compressed

    def resolve(self, audio_data: bytes, mime_type: str) -> AudioInputHandle:
        """
        Create an AudioInputHandle for ``audio_data``.

        Args:
            audio_data: Raw uploaded bytes
            mime_type: Declared MIME type of the upload

        Returns:
            AudioInputHandle: Caller must close it (or use it as a context manager)

        Raises:
            AudioFormatError: If both the primary and the fallback path fail
        """
        logger.info(f"Processing audio: {mime_type}, size: {len(audio_data)} bytes")

        try:
            return self._primary(audio_data, mime_type)
        except Exception as e:
            logger.error(f"Audio config creation error: {str(e)}", exc_info=True)

            try:
                logger.info("Trying fallback push stream without format specification")
                return self._push_stream(audio_data, stream_format=None, source="push_stream_fallback")
            except Exception as fallback_error:
                logger.error(f"Fallback also failed: {str(fallback_error)}")
                raise AudioFormatError(f"Unable to create audio config: {str(e)}")

    def _primary(self, audio_data: bytes, mime_type: str) -> AudioInputHandle:
        if is_compressed_container(mime_type):
            if self.transcode_compressed:
                wav_data = self._transcode(audio_data, mime_type)
                if wav_data is not None:
                    return self._wav_file(wav_data)

            logger.info("Using push stream for WebM/OGG audio with format specification")
            stream_format = speechsdk.audio.AudioStreamFormat(
                samples_per_second=PCM_SAMPLE_RATE,
                bits_per_sample=PCM_BITS_PER_SAMPLE,
                channels=PCM_CHANNELS
            )
            return self._push_stream(audio_data, stream_format=stream_format, source="push_stream_pcm")

        logger.info("Using WAV file input for audio")
        return self._wav_file(audio_data)

    def _transcode(self, audio_data: bytes, mime_type: str) -> Optional[bytes]:
        source_format = "ogg" if "ogg" in mime_type.lower() else "webm"
        try:
            return convert_to_wav(audio_data, source_format)
        except Exception as e:
            logger.warning(f"Audio transcoding from {source_format} failed, using push stream: {str(e)}")
            return None

    @staticmethod
    def _push_stream(
        audio_data: bytes,
        stream_format: Optional[speechsdk.audio.AudioStreamFormat],
        source: str
    ) -> AudioInputHandle:
        if stream_format is not None:
            push_stream = speechsdk.audio.PushAudioInputStream(stream_format=stream_format)
        else:
            push_stream = speechsdk.audio.PushAudioInputStream()

        # 전체 버퍼를 쓰고 스트림을 닫음 (추가 쓰기 없음)
        push_stream.write(audio_data)
        push_stream.close()

        audio_config = speechsdk.audio.AudioConfig(stream=push_stream)
        return AudioInputHandle(audio_config=audio_config, source=source)

    @staticmethod
    def _wav_file(audio_data: bytes) -> AudioInputHandle:
        # AudioConfig(filename=...)는 헤더를 검사하지 않으므로 여기서 먼저 파싱 (잘못된 WAV는 fallback으로)
        AudioSegment.from_wav(io.BytesIO(audio_data))

        # Python SDK는 WAV를 파일 경로로만 받음
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as wav_file:
            wav_file.write(audio_data)
            temp_path = wav_file.name

        try:
            audio_config = speechsdk.audio.AudioConfig(filename=temp_path)
        except Exception:
            os.unlink(temp_path)
            raise

        return AudioInputHandle(audio_config=audio_config, source="wav_file", temp_path=temp_path)
