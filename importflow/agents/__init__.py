"""
ImportFlow extraction agents.

- screenshot_extractor: read order fields from shopping screenshots with Gemini
"""

from importflow.agents.screenshot_extractor import (
    ScreenshotExtractor,
    merge_extractions,
)

__all__ = [
    "ScreenshotExtractor",
    "merge_extractions",
]
