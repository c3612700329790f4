"""Gemini clients for camera scene analysis and design generation."""

from __future__ import annotations

import base64
import binascii
import logging
import re
from datetime import datetime

from google import genai
from google.genai import types
from pydantic import BaseModel, Field

from fliza.chat.models import utcnow
from fliza.errors import DesignFailed, VisionFailed

logger = logging.getLogger(__name__)

FLIZA_VISION_PROMPT = """You are Fliza, a digital navigator from the Metaverse with Persona 5 style.
You are scanning the environment through a camera feed.

Analyze this image and respond as if you're a stylish AI companion observing the scene.
Be brief (1-2 sentences max), cool, and occasionally use Persona 5 references.

Examples of your style:
- "Scanning complete. I detect a workspace ready for action, Leader!"
- "Target acquired: looks like a cozy room. Perfect hideout for a Phantom Thief."
- "Hmm, your environment looks clear. No Shadows detected... for now."

Now analyze what you see:"""

DEFAULT_DESIGN_PROMPT = (
    "Create a stylized design based on this image. "
    "Make it visually appealing and creative."
)

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,")


class VisionAnalysis(BaseModel):
    analysis: str
    timestamp: datetime = Field(default_factory=utcnow)


class DesignResult(BaseModel):
    image: str  # data URL
    text: str | None = None


def strip_data_url(image: str) -> str:
    """Remove a ``data:image/...;base64,`` prefix if present."""
    return _DATA_URL_PREFIX.sub("", image.strip())


def image_mime_type(image: str) -> str:
    return "image/png" if "image/png" in image[:64] else "image/jpeg"


def decode_image(image: str) -> bytes:
    """Decode a base64 image (raw or data URL) to bytes.

    Raises:
        ValueError: The payload is empty or not valid base64.
    """
    payload = strip_data_url(image)
    if not payload:
        raise ValueError("empty image payload")
    try:
        return base64.b64decode(payload, validate=True)
    except binascii.Error as e:
        raise ValueError(f"invalid base64 image: {e}") from e


class _GeminiClient:
    def __init__(self, client: genai.Client | None = None, api_key: str | None = None, model: str = ""):
        if client is None:
            client = genai.Client(api_key=api_key) if api_key else genai.Client()
        self.client = client
        self.model = model


class VisionClient(_GeminiClient):
    """Describes a still camera frame in Fliza's voice."""

    def __init__(
        self,
        client: genai.Client | None = None,
        api_key: str | None = None,
        model: str = "gemini-2.0-flash",
        prompt: str = FLIZA_VISION_PROMPT,
    ):
        super().__init__(client=client, api_key=api_key, model=model)
        self.prompt = prompt

    @classmethod
    def from_settings(cls, settings) -> VisionClient:
        return cls(api_key=settings.google_api_key, model=settings.vision_model)

    async def analyze(self, image: str) -> VisionAnalysis:
        """Analyze a base64 JPEG frame.

        Raises:
            VisionFailed: Bad image data, model error, or empty analysis.
        """
        try:
            data = decode_image(image)
        except ValueError as e:
            raise VisionFailed("Vision analysis failed", details=str(e)) from e

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    self.prompt,
                    types.Part.from_bytes(data=data, mime_type="image/jpeg"),
                ],
            )
        except Exception as e:
            logger.error("Vision API error: %s", e, exc_info=True)
            raise VisionFailed("Vision analysis failed", details=str(e)) from e

        text = (response.text or "").strip()
        if not text:
            raise VisionFailed("Vision analysis failed", details="empty analysis")
        return VisionAnalysis(analysis=text)


class DesignClient(_GeminiClient):
    """Generates a new image from a camera frame and a prompt."""

    def __init__(
        self,
        client: genai.Client | None = None,
        api_key: str | None = None,
        model: str = "gemini-3-pro-image-preview",
    ):
        super().__init__(client=client, api_key=api_key, model=model)

    @classmethod
    def from_settings(cls, settings) -> DesignClient:
        return cls(api_key=settings.google_api_key, model=settings.design_model)

    async def generate(self, image: str, prompt: str | None = None) -> DesignResult:
        """Generate a design from an image.

        Raises:
            DesignFailed: Bad image data, model error, or no image in the response.
        """
        try:
            data = decode_image(image)
        except ValueError as e:
            raise DesignFailed("Failed to generate design", details=str(e)) from e

        try:
            response = await self.client.aio.models.generate_content(
                model=self.model,
                contents=[
                    prompt or DEFAULT_DESIGN_PROMPT,
                    types.Part.from_bytes(data=data, mime_type=image_mime_type(image)),
                ],
            )
        except Exception as e:
            logger.error("Design API error: %s", e, exc_info=True)
            raise DesignFailed("Failed to generate design", details=str(e)) from e

        candidates = response.candidates or []
        if not candidates:
            raise DesignFailed("No response from image generation")

        content = candidates[0].content
        generated: str | None = None
        text: str | None = None
        for part in (content.parts if content else None) or []:
            if part.inline_data and part.inline_data.data:
                encoded = base64.b64encode(part.inline_data.data).decode("ascii")
                generated = f"data:{part.inline_data.mime_type};base64,{encoded}"
            if part.text:
                text = part.text

        if not generated:
            raise DesignFailed("No image generated", details=text)
        return DesignResult(image=generated, text=text)
