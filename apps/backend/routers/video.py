"""
Video Assistant Router
======================
Voice-over scripts, narration audio and word-timed transcripts.

Endpoints:
- POST /api/video-generator/script      - Write a voice-over script
- POST /api/video-generator/voice       - Synthesize a script to MP3
- POST /api/video-generator/scenes      - Split a script into timed scenes with background videos
- POST /api/video-generator/transcribe  - Word timings for raw audio
- GET  /api/video-generator/transcribe  - Usage message
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from dependencies import get_audio_factory, get_registry, get_scene_planner, get_scriptwriter, get_transcriber
from logging_config import get_logger
from schemas import ScenesRequest, ScriptRequest, TranscriptionResponse, VoiceRequest
from services.audio_factory import AudioFactory
from services.providers import ProviderRegistry
from services.scene_planner import ScenePlan, ScenePlanner
from services.scriptwriter import ScriptwriterAgent, VideoScript
from services.transcription import DeepgramTranscriber

logger = get_logger(__name__)

router = APIRouter()


def _error(message: str, status_code: int, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message, **extra})


@router.post("/script", response_model=VideoScript)
async def generate_script(
    request: ScriptRequest,
    registry: ProviderRegistry = Depends(get_registry),
    scriptwriter: ScriptwriterAgent = Depends(get_scriptwriter),
):
    if not request.prompt:
        return _error("Prompt is required", 400)

    try:
        return await scriptwriter.generate_video_script(
            prompt=request.prompt,
            models=registry,
            video_type=request.videoType,
            duration=request.duration,
        )
    except Exception as e:
        logger.error("Script generation error", error=str(e))
        return _error("Failed to generate script", 500)


@router.post("/voice")
async def generate_voice(
    request: VoiceRequest,
    audio: AudioFactory = Depends(get_audio_factory),
):
    """
    Narrate ``script`` with VoiceRSS.

    Returns the MP3 as a ``data:audio/mp3;base64,`` URL with voice metadata.
    """
    if not request.script:
        return _error("Script is required", 400)

    voice_settings = request.voiceSettings.model_dump(exclude_none=True) if request.voiceSettings else None
    try:
        async with audio:
            return await audio.synthesize_voice_over(request.script, voice_settings)
    except Exception as e:
        logger.error("Voice generation error", error=str(e))
        return _error("Failed to generate voice-over", 500)


@router.post("/scenes", response_model=ScenePlan)
async def generate_scenes(
    request: ScenesRequest,
    registry: ProviderRegistry = Depends(get_registry),
    planner: ScenePlanner = Depends(get_scene_planner),
):
    if not request.script or not request.videoType or not request.duration:
        return _error("Script, videoType, and duration are required", 400)

    try:
        duration = int(float(request.duration))
    except (TypeError, ValueError):
        duration = 0
    if duration < 1:
        return _error("Duration must be a positive number of seconds", 400)

    try:
        return await planner.plan_scenes(request.script, request.videoType, duration, models=registry)
    except Exception as e:
        logger.error("Scenes generation error", error=str(e))
        return _error("Failed to generate scenes", 500)


@router.post("/transcribe", response_model=TranscriptionResponse)
async def transcribe_audio(
    request: Request,
    transcriber: DeepgramTranscriber = Depends(get_transcriber),
):
    """Transcribe the raw request body with word-level timings."""
    audio = await request.body()
    if not audio:
        return _error("Audio data is required", 400)

    content_type = request.headers.get("content-type") or "audio/mp3"
    try:
        words = await transcriber.transcribe(audio, content_type=content_type)
    except Exception as e:
        logger.error("Transcription error", error=str(e))
        return _error("Failed to transcribe audio", 500, details=getattr(e, "message", None) or str(e) or "Unknown error")

    return TranscriptionResponse(
        words=[word.model_dump() for word in words],
        wordCount=len(words),
    )


@router.get("/transcribe")
async def transcription_info():
    return {"message": "Transcription API endpoint. Use POST with audio data."}
