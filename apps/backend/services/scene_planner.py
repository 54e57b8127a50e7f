"""
Optima AI - Scene Planner
=========================
Splits a voice-over script into timed scenes and finds a Pexels background
video for each one.
"""

import asyncio
import json
import math
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from config import Settings, get_settings
from logging_config import get_logger
from services.prompts import SCENES_PROMPT
from services.providers import ProviderRegistry
from services.scriptwriter import SCRIPT_MODEL
import metrics as app_metrics

logger = get_logger(__name__)

SCENE_MAX_TOKENS = 1500
SCENE_TEMPERATURE = 0.5
MIN_SCENES = 2
MAX_SCENES = 6
MIN_SCENE_SECONDS = 5
PLACEHOLDER_VIDEO = "/api/placeholder/video/1920/1080"
DEFAULT_KEYWORDS = "nature background"
TRANSITIONS = ("fade", "slide", "zoom", "cut")


# =============================================================================
# Scene Data Models
# =============================================================================

class SceneMetadata(BaseModel):
    visualDescription: Optional[str] = None
    videoSource: str
    searchQuery: str


class Scene(BaseModel):
    id: str
    duration: int
    voiceText: str
    onScreenText: str
    backgroundVideo: str
    transition: str
    metadata: SceneMetadata


class ScenePlanMetadata(BaseModel):
    videoType: Any = None
    totalDuration: int
    sceneDurations: List[int]
    sceneCount: int
    generatedAt: str


class ScenePlan(BaseModel):
    scenes: List[Scene]
    metadata: ScenePlanMetadata


class BackgroundVideo(BaseModel):
    url: str
    source: str
    query: str


# =============================================================================
# Timing and Text Helpers
# =============================================================================

def get_scene_durations(video_type: Any, total_duration: int) -> List[int]:
    """
    Seconds per scene: 2-6 scenes of at most 15s (shorts) or 30s, remainder
    spread over the first scenes, none shorter than 5s.
    """
    max_scene = 15 if video_type == "youtube-shorts" else 30
    count = max(MIN_SCENES, min(math.ceil(total_duration / max_scene), MAX_SCENES))

    base, remainder = divmod(total_duration, count)
    durations = [base + 1 if i < remainder else base for i in range(count)]
    return [max(d, MIN_SCENE_SECONDS) for d in durations]


def get_transition(index: int, total_scenes: int) -> str:
    if index == 0 or index == total_scenes - 1:
        return "fade"
    return TRANSITIONS[index % len(TRANSITIONS)]


def extract_keywords(description: str) -> str:
    """First three words longer than three letters, for the video search."""
    cleaned = re.sub(r"[^\w\s]", "", description.lower(), flags=re.ASCII)
    words = [word for word in cleaned.split() if len(word) > 3]
    return " ".join(words[:3]) or DEFAULT_KEYWORDS


def fallback_scene_split(script: str, scene_count: int) -> List[Dict[str, str]]:
    """Sentence-based split used when the model's answer is not a JSON array."""
    sentences = [s for s in re.split(r"[.!?]+", script) if s.strip()]
    per_scene = math.ceil(len(sentences) / scene_count)

    scenes = []
    for i in range(scene_count):
        chunk = sentences[i * per_scene:(i + 1) * per_scene]
        scenes.append({
            "voiceText": ". ".join(chunk).strip(),
            "onScreenText": f"Scene {i + 1}",
            "visualDescription": f"Scene {i + 1} visuals",
        })
    return scenes


def parse_scene_array(text: str) -> Optional[List[Dict[str, Any]]]:
    """The first ``[...]`` span of ``text`` as a list of scene objects, or None."""
    match = re.search(r"\[[\s\S]*\]", text)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, list):
        return None
    return [item if isinstance(item, dict) else {} for item in data]


# =============================================================================
# Scene Planner
# =============================================================================

class ScenePlanner:
    """
    Builds a scene plan for a voice-over script.

    Example:
        ```python
        planner = ScenePlanner()
        plan = await planner.plan_scenes(script, "youtube-shorts", 30, models=registry)
        ```
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def plan_scenes(
        self,
        script: str,
        video_type: Any,
        duration: int,
        models: ProviderRegistry,
    ) -> ScenePlan:
        """
        Raises:
            ProviderError: The scene model failed
        """
        durations = get_scene_durations(video_type, duration)
        prompt = SCENES_PROMPT.format(
            scene_count=len(durations),
            script=script,
            durations=", ".join(f"Scene {i + 1}: {d} seconds" for i, d in enumerate(durations)),
        )

        async with models.language_model(SCRIPT_MODEL) as llm:
            text, _ = await llm.generate(prompt=prompt, max_tokens=SCENE_MAX_TOKENS, temperature=SCENE_TEMPERATURE)

        scene_data = parse_scene_array(text)
        if scene_data is None:
            logger.warning("Scene model did not return a JSON array, splitting by sentence")
            scene_data = fallback_scene_split(script, len(durations))
        scene_data = scene_data[:len(durations)]

        async with httpx.AsyncClient(timeout=httpx.Timeout(15.0, connect=5.0), transport=self._transport) as client:
            videos = await asyncio.gather(*(
                self.find_background_video(client, data.get("visualDescription") or script)
                for data in scene_data
            ))

        scenes = [
            Scene(
                id=f"scene-{index + 1}",
                duration=durations[index],
                voiceText=data.get("voiceText") or f"Scene {index + 1} content",
                onScreenText=data.get("onScreenText") or f"Scene {index + 1}",
                backgroundVideo=video.url,
                transition=get_transition(index, len(durations)),
                metadata=SceneMetadata(
                    visualDescription=data.get("visualDescription"),
                    videoSource=video.source,
                    searchQuery=video.query,
                ),
            )
            for index, (data, video) in enumerate(zip(scene_data, videos))
        ]

        logger.info("Scenes planned", video_type=video_type, scene_count=len(scenes), total_duration=duration)
        return ScenePlan(
            scenes=scenes,
            metadata=ScenePlanMetadata(
                videoType=video_type,
                totalDuration=duration,
                sceneDurations=durations,
                sceneCount=len(scenes),
                generatedAt=datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z"),
            ),
        )

    async def find_background_video(self, client: httpx.AsyncClient, visual_description: str) -> BackgroundVideo:
        """First Pexels video for the description's keywords; placeholder otherwise. Never raises."""
        query = extract_keywords(visual_description)
        api_key = self.settings.pexels_api_key
        if not api_key:
            return BackgroundVideo(url=PLACEHOLDER_VIDEO, source="Placeholder", query=query)

        try:
            response = await client.get(
                self.settings.pexels_video_url,
                params={"query": query, "per_page": 10},
                headers={"Authorization": api_key},
            )
            if response.status_code < 400:
                videos = response.json().get("videos") or []
                if videos:
                    files = videos[0].get("video_files") or []
                    link = files[0].get("link") if files else None
                    return BackgroundVideo(url=link or "", source="Pexels", query=query)
        except (httpx.HTTPError, ValueError, AttributeError) as e:
            app_metrics.external_service_failures_total.labels(service="pexels").inc()
            logger.warning("Pexels video search failed", query=query, error=str(e))
            return BackgroundVideo(url=PLACEHOLDER_VIDEO, source="Fallback", query=visual_description)

        return BackgroundVideo(url=PLACEHOLDER_VIDEO, source="Placeholder", query=query)
