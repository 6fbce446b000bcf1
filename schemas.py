"""
Pydantic models for data validation in the Product Video Ad Generator.
Fields are snake_case in Python and camelCase on the wire.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from config import DEFAULT_ASPECT_RATIO, DEFAULT_TEMPLATE, MIN_TITLE_LENGTH, TTS_VOICE, TTS_VOICES


Voice = Literal[TTS_VOICES]
AspectRatio = Literal["9:16", "16:9"]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ProductData(CamelModel):
    """Scraped facts about one product."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True, str_strip_whitespace=True)

    url: str
    title: str = Field(min_length=MIN_TITLE_LENGTH)
    description: str = ""
    price: Optional[str] = None
    images: List[str] = Field(default_factory=list, max_length=5)
    features: List[str] = Field(default_factory=list, max_length=5)
    category: Optional[str] = None


class VoiceoverConfig(CamelModel):
    enabled: bool = True
    voice: Voice = TTS_VOICE
    speed: float = Field(1.0, ge=0.25, le=4.0)
    text: str = ""


class AdScript(CamelModel):
    """Generated ad copy, never mutated after creation."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    hook: str = ""
    problem: str = ""
    solution: str = ""
    benefits: List[str] = Field(default_factory=list)
    call_to_action: str = ""
    duration: int = 30
    voiceover: Optional[VoiceoverConfig] = None

    def is_complete(self) -> bool:
        return bool(self.hook.strip() and self.solution.strip() and self.call_to_action.strip())


class ScrapeRequest(CamelModel):
    url: str = ""


class GenerateVideoRequest(CamelModel):
    """Request body for POST /generate-video. Either product_data or url is required."""
    product_data: Optional[ProductData] = None
    url: Optional[str] = None
    ad_script: Optional[AdScript] = None
    aspect_ratio: AspectRatio = DEFAULT_ASPECT_RATIO
    template: str = DEFAULT_TEMPLATE
    voiceover_enabled: bool = True
    voice: Optional[Voice] = None
    speed: Optional[float] = Field(None, ge=0.25, le=4.0)


class VideoResponse(CamelModel):
    """Job view returned by the API; video_url is set only for completed jobs."""
    id: str
    status: Literal["processing", "completed", "failed"]
    video_url: Optional[str] = None
    error: Optional[str] = None
    created_at: datetime


class MessageResponse(CamelModel):
    message: str
