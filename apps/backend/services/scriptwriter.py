"""
Optima AI - Scriptwriter
========================
Voice-over script generation for the video assistant.
"""

from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field

from config import Settings, get_settings
from logging_config import get_logger
from services.providers import ProviderRegistry

logger = get_logger(__name__)

SCRIPT_MODEL = "llama-4-scout-17b-16e-instruct-cerebras"
SCRIPT_MAX_TOKENS = 1000
SCRIPT_TEMPERATURE = 0.7
WORDS_PER_SECOND = 2.5


# =============================================================================
# Script Data Models
# =============================================================================

class ScriptMetadata(BaseModel):
    """Metadata returned alongside a generated script."""

    videoType: Optional[Any] = None
    duration: Optional[Any] = None
    wordCount: int
    estimatedSpeakingTime: int = Field(..., description="Seconds at ~2.5 words per second")
    generatedAt: str


class VideoScript(BaseModel):
    script: str
    metadata: ScriptMetadata


EXAMPLE_SCRIPT = """"Feeling a bit down? Need a quick pick-me-up? In just 60 seconds, we've got 10 heartwarming moments that'll brighten your day!

From kindness to kindness, let's celebrate the best in people.

A stranger surprises a homeless man with new shoes.
A cancer survivor crosses the marathon finish line.
A coach buys the whole team a free lunch.

Which moment lifted your spirits the most? Comment below, we'd love to hear!
Like and subscribe for more feel-good stories.
Thanks for watching, and see you in the next video!\""""


def count_words(script: str) -> int:
    """Words separated by single spaces (empty runs count)."""
    return len(script.split(" "))


def estimate_speaking_time(script: str) -> int:
    return round(count_words(script) / WORDS_PER_SECOND)


# =============================================================================
# Scriptwriter Agent
# =============================================================================

class ScriptwriterAgent:
    """
    Agent that writes clean voice-over scripts.

    Example:
        ```python
        scriptwriter = ScriptwriterAgent()
        script = await scriptwriter.generate_video_script(
            prompt="10 feel-good moments",
            video_type="youtube-shorts",
            duration=60,
            models=registry,
        )
        ```
    """

    def __init__(self, settings: Optional[Settings] = None):
        """Initialize scriptwriter."""
        self.settings = settings or get_settings()

    async def generate_video_script(
        self,
        prompt: str,
        models: ProviderRegistry,
        video_type: Optional[Any] = None,
        duration: Optional[Any] = None,
    ) -> VideoScript:
        """
        Generate a voice-over script.

        Args:
            prompt: What the video is about
            models: Provider registry used to reach the script model
            video_type: e.g. ``youtube-shorts``; shapes the structure
            duration: Target length in seconds

        Returns:
            VideoScript with the trimmed script and metadata
        """
        script_prompt = self._build_script_prompt(prompt, video_type, duration)

        async with models.language_model(SCRIPT_MODEL) as llm:
            text, _ = await llm.generate(
                prompt=script_prompt,
                max_tokens=SCRIPT_MAX_TOKENS,
                temperature=SCRIPT_TEMPERATURE,
            )

        script = text.strip()
        result = VideoScript(
            script=script,
            metadata=ScriptMetadata(
                videoType=video_type,
                duration=duration,
                wordCount=count_words(script),
                estimatedSpeakingTime=estimate_speaking_time(script),
                generatedAt=datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            ),
        )

        logger.info(
            "Video script generated",
            video_type=video_type,
            word_count=result.metadata.wordCount,
            estimated_speaking_time=result.metadata.estimatedSpeakingTime,
        )
        return result

    def _build_script_prompt(
        self,
        prompt: str,
        video_type: Optional[Any],
        duration: Optional[Any],
    ) -> str:
        """Build the prompt for script generation."""
        if video_type == "youtube-shorts":
            structure = "For YouTube Shorts: Start with a hook, deliver quick value, end with engagement request"
        else:
            structure = "For longer content: Include introduction, main content with clear points, and conclusion"

        prompt_parts = [
            f"You are an expert video script writer. Create a professional voice-over script for {video_type} content.",
            "",
            f'User Prompt: "{prompt}"',
            f"Video Type: {video_type}",
            f"Duration: {duration} seconds",
            "",
            "CRITICAL REQUIREMENTS:",
            "1. Write ONLY the voice-over text (what the narrator will say)",
            "2. Make it clean, conversational, and engaging",
            "3. NO stage directions, NO [brackets], NO technical notes",
            f"4. Structure it for {duration} seconds of speaking time",
            "5. Include natural transitions between ideas",
            "6. End with a clear call-to-action",
            "",
            structure,
            "",
            "Example format (clean voice-over only):",
            EXAMPLE_SCRIPT,
            "",
            "Write the voice-over script now:",
        ]

        return "\n".join(prompt_parts)
