"""Tests for the Gemini vision and design clients."""

from __future__ import annotations

import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from fliza.errors import DesignFailed, VisionFailed
from fliza.vision import (
    DEFAULT_DESIGN_PROMPT,
    DesignClient,
    VisionClient,
    decode_image,
    strip_data_url,
)
from fliza.vision.client import FLIZA_VISION_PROMPT, image_mime_type

JPEG_BYTES = b"\xff\xd8\xff\xe0fake-jpeg"
FRAME = "data:image/jpeg;base64," + base64.b64encode(JPEG_BYTES).decode()


def genai_client(response=None, error=None) -> MagicMock:
    client = MagicMock()
    client.aio.models.generate_content = AsyncMock(return_value=response, side_effect=error)
    return client


def design_response(*parts) -> SimpleNamespace:
    return SimpleNamespace(
        candidates=[SimpleNamespace(content=SimpleNamespace(parts=list(parts)))]
    )


def image_part(data: bytes, mime_type: str = "image/png") -> SimpleNamespace:
    return SimpleNamespace(
        inline_data=SimpleNamespace(data=data, mime_type=mime_type), text=None
    )


def text_part(text: str) -> SimpleNamespace:
    return SimpleNamespace(inline_data=None, text=text)


class TestImageHelpers:
    """Tests for data URL handling."""

    def test_strip_data_url(self):
        assert strip_data_url("data:image/png;base64,QUJD") == "QUJD"
        assert strip_data_url("QUJD") == "QUJD"

    def test_decode_image(self):
        assert decode_image(FRAME) == JPEG_BYTES

    @pytest.mark.parametrize("bad", ["", "data:image/jpeg;base64,", "not base64!!"])
    def test_decode_invalid(self, bad):
        with pytest.raises(ValueError):
            decode_image(bad)

    def test_mime_type(self):
        assert image_mime_type("data:image/png;base64,QUJD") == "image/png"
        assert image_mime_type(FRAME) == "image/jpeg"
        assert image_mime_type("QUJD") == "image/jpeg"


class TestVisionClient:
    """Tests for VisionClient.analyze()."""

    @pytest.mark.asyncio
    async def test_analyze(self):
        client = genai_client(SimpleNamespace(text="  Target acquired: a cozy room.  "))
        vision = VisionClient(client=client, model="vision-model")

        result = await vision.analyze(FRAME)

        assert result.analysis == "Target acquired: a cozy room."
        assert result.timestamp.tzinfo is not None
        kwargs = client.aio.models.generate_content.await_args.kwargs
        assert kwargs["model"] == "vision-model"
        assert kwargs["contents"][0] == FLIZA_VISION_PROMPT

    @pytest.mark.asyncio
    async def test_model_error(self):
        vision = VisionClient(client=genai_client(error=RuntimeError("quota exceeded")))
        with pytest.raises(VisionFailed) as exc_info:
            await vision.analyze(FRAME)
        assert exc_info.value.details == "quota exceeded"

    @pytest.mark.asyncio
    async def test_empty_analysis(self):
        vision = VisionClient(client=genai_client(SimpleNamespace(text=None)))
        with pytest.raises(VisionFailed):
            await vision.analyze(FRAME)

    @pytest.mark.asyncio
    async def test_bad_image_skips_model(self):
        client = genai_client(SimpleNamespace(text="x"))
        with pytest.raises(VisionFailed):
            await VisionClient(client=client).analyze("")
        client.aio.models.generate_content.assert_not_awaited()


class TestDesignClient:
    """Tests for DesignClient.generate()."""

    @pytest.mark.asyncio
    async def test_generate(self):
        client = genai_client(design_response(text_part("Here you go"), image_part(b"PNGDATA")))
        design = DesignClient(client=client)

        result = await design.generate(FRAME, "poster of this")

        assert result.image == "data:image/png;base64," + base64.b64encode(b"PNGDATA").decode()
        assert result.text == "Here you go"
        assert client.aio.models.generate_content.await_args.kwargs["contents"][0] == "poster of this"

    @pytest.mark.asyncio
    async def test_default_prompt(self):
        client = genai_client(design_response(image_part(b"PNGDATA")))
        await DesignClient(client=client).generate(FRAME)
        contents = client.aio.models.generate_content.await_args.kwargs["contents"]
        assert contents[0] == DEFAULT_DESIGN_PROMPT

    @pytest.mark.asyncio
    async def test_no_image_in_response(self):
        client = genai_client(design_response(text_part("I can only describe it.")))
        with pytest.raises(DesignFailed) as exc_info:
            await DesignClient(client=client).generate(FRAME)
        assert exc_info.value.message == "No image generated"
        assert exc_info.value.details == "I can only describe it."

    @pytest.mark.asyncio
    async def test_no_candidates(self):
        client = genai_client(SimpleNamespace(candidates=[]))
        with pytest.raises(DesignFailed):
            await DesignClient(client=client).generate(FRAME)

    @pytest.mark.asyncio
    async def test_model_error(self):
        client = genai_client(error=RuntimeError("boom"))
        with pytest.raises(DesignFailed):
            await DesignClient(client=client).generate(FRAME)
