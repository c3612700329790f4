"""Camera scene analysis and design generation."""

from .client import (
    DEFAULT_DESIGN_PROMPT,
    DesignClient,
    DesignResult,
    VisionAnalysis,
    VisionClient,
    decode_image,
    strip_data_url,
)

__all__ = [
    "DEFAULT_DESIGN_PROMPT",
    "DesignClient",
    "DesignResult",
    "VisionAnalysis",
    "VisionClient",
    "decode_image",
    "strip_data_url",
]
