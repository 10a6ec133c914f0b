"""Headless-browser backend: captions rendered as HTML components.

Each caption line is laid out by Chromium (web fonts, strokes, rounded
boxes) and captured as a transparent PNG; ffmpeg then composites the cards
over the animated slideshow at their time windows. Needs playwright and an
installed Chromium (``playwright install chromium``).
"""

from __future__ import annotations

import html
from pathlib import Path
from typing import Sequence

import structlog

from narrated_video.errors import DependencyUnavailableError
from narrated_video.render.backends.base import RenderBackend, RenderRequest, require_executable
from narrated_video.render.filters import encode_args, visual_graph
from narrated_video.render.overlay import OverlayInstruction
from narrated_video.render.timeline import crossfade_padding
from narrated_video.tools.process import run_tool

logger = structlog.get_logger()

CARD_HEIGHT = 220
CARD_MARGIN_BOTTOM = 60

_CARD_TEMPLATE = """\
<!doctype html>
<html><head><meta charset="utf-8"><style>
@font-face {{ font-family: "CaptionFont"; src: url("{font_url}"); }}
html, body {{ margin: 0; background: transparent; }}
.card {{
  width: {width}px; height: {height}px;
  display: flex; align-items: center; justify-content: center;
}}
.line {{
  font-family: "CaptionFont", sans-serif; font-size: {font_size}px; font-weight: bold;
  color: {color}; -webkit-text-stroke: 2px black;
  text-shadow: 3px 3px 4px rgba(0, 0, 0, 0.9);
  background: rgba(0, 0, 0, 0.45); border-radius: 14px; padding: 10px 28px;
  max-width: {max_width}px; text-align: center;
}}
</style></head>
<body><div class="card"><div class="line">{text}</div></div></body></html>
"""


def _load_playwright():
    try:
        from playwright.async_api import async_playwright
    except ImportError as exc:
        raise DependencyUnavailableError(
            "playwright is not installed. Run: pip install playwright && playwright install chromium"
        ) from exc
    return async_playwright


class BrowserBackend(RenderBackend):
    name = "browser"

    async def ensure_available(self) -> None:
        require_executable(self.config.ffmpeg_path)
        async_playwright = _load_playwright()
        from playwright.async_api import Error as PlaywrightError

        try:
            async with async_playwright() as p:
                browser = await p.chromium.launch(headless=True)
                await browser.close()
        except PlaywrightError as exc:
            raise DependencyUnavailableError(f"Headless Chromium is unavailable: {exc}") from exc

    def card_html(self, instruction: OverlayInstruction) -> str:
        width = self.config.video_width
        return _CARD_TEMPLATE.format(
            font_url=Path(instruction.font_path).as_uri(),
            width=width,
            height=CARD_HEIGHT,
            font_size=self.config.caption_font_size,
            color=instruction.color,
            max_width=width - 160,
            text=html.escape(instruction.text),
        )

    async def render_cards(self, request: RenderRequest) -> list[str]:
        async_playwright = _load_playwright()
        workspace = request.workspace
        paths: list[str] = []
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                page = await browser.new_page(
                    viewport={"width": self.config.video_width, "height": CARD_HEIGHT}
                )
                for i, instruction in enumerate(request.overlays):
                    card_path = workspace.path(f"caption_card_{i}.png")
                    await page.set_content(self.card_html(instruction), wait_until="load")
                    await page.screenshot(path=card_path, omit_background=True)
                    paths.append(card_path)
            finally:
                await browser.close()
        logger.info("browser.cards_rendered", job_id=request.job_id, cards=len(paths))
        return paths

    def build_args(self, request: RenderRequest, card_paths: Sequence[str]) -> list[str]:
        config = self.config
        padding = crossfade_padding(request.slots, config.crossfade_sec)
        input_args, chains, current = visual_graph(request.slots, padding, config)
        audio_index = len(request.slots)

        y = config.video_height - CARD_HEIGHT - CARD_MARGIN_BOTTOM
        card_inputs: list[str] = []
        for k, (card, instruction) in enumerate(zip(card_paths, request.overlays)):
            card_inputs += ["-i", card]
            out = "[vout]" if k == len(card_paths) - 1 else f"[o{k}]"
            chains.append(
                f"{current}[{audio_index + 1 + k}:v]overlay=x=0:y={y}"
                f":enable='gte(t,{instruction.start:.3f})*lt(t,{instruction.end:.3f})'{out}"
            )
            current = out
        if not card_paths:
            chains.append(f"{current}null[vout]")

        return [
            config.ffmpeg_path, "-y",
            *input_args,
            "-i", request.audio_path,
            *card_inputs,
            "-filter_complex", ";".join(chains),
            "-map", "[vout]",
            "-map", f"{audio_index}:a",
            *encode_args(config, request.total_duration),
            request.output_path,
        ]

    async def render(self, request: RenderRequest) -> str:
        card_paths = await self.render_cards(request) if request.overlays else []
        await run_tool(self.build_args(request, card_paths), stage="render_browser")
        request.workspace.remove_files(card_paths)
        logger.info("browser.render.done", job_id=request.job_id, output_path=request.output_path)
        return request.output_path
