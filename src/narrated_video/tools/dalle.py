"""DALL-E 3 image generation: one landscape image per script segment."""

from __future__ import annotations

from pathlib import Path

import httpx
import structlog
from openai import AsyncOpenAI

from narrated_video.config import Settings, settings as default_settings

logger = structlog.get_logger()

# Visual style -> prompt prefix
STYLE_PREFIXES: dict[str, str] = {
    "modern": "Modern, clean design",
    "illustrated": "Illustrated style, clean vector art",
    "photographic": "Photographic style, high quality photo",
    "minimalist": "Minimalist design, simple and clean",
}
DEFAULT_STYLE = "modern"


def styled_prompt(prompt: str, style: str = DEFAULT_STYLE) -> str:
    prefix = STYLE_PREFIXES.get(style, STYLE_PREFIXES[DEFAULT_STYLE])
    return f"{prefix}: {prompt}. No text, no letters, no words visible in the image."


async def generate_image(prompt: str, style: str = DEFAULT_STYLE, config: Settings | None = None) -> str:
    """Generate an image for *prompt* and return its (temporary) URL.

    Raises:
        RuntimeError: The API returned no URL.
    """
    config = config or default_settings
    logger.info("dalle_generate.start", prompt_len=len(prompt), style=style)

    client = AsyncOpenAI(api_key=config.openai_api_key)
    response = await client.images.generate(
        model=config.image_model,
        prompt=styled_prompt(prompt, style),
        size="1792x1024",  # 16:9, letterboxed to 1920x1080 later
        quality="standard",
        n=1,
        response_format="url",
    )

    image_url = response.data[0].url if response.data else None
    if not image_url:
        raise RuntimeError("DALL-E returned no image URL")
    return image_url


async def download_image(url: str, output_path: str) -> str:
    async with httpx.AsyncClient(timeout=60) as http:
        resp = await http.get(url)
        resp.raise_for_status()

    Path(output_path).write_bytes(resp.content)
    logger.info("dalle_generate.downloaded", output_path=output_path, bytes_written=len(resp.content))
    return output_path


async def dalle_generate(
    prompt: str,
    output_path: str,
    style: str = DEFAULT_STYLE,
    config: Settings | None = None,
) -> str:
    """Generate an image and download it to *output_path*; returns the path."""
    url = await generate_image(prompt, style, config)
    return await download_image(url, output_path)
