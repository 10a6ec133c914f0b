"""Scriptwriter node: generates the segmented explainer script."""

from __future__ import annotations

import openai
import structlog
from langchain_core.runnables import RunnableConfig
from langchain_openai import ChatOpenAI

from narrated_video.config import Settings, settings as default_settings
from narrated_video.errors import ErrorKind, JobFailure
from narrated_video.graph.context import job_store_from, settings_from
from narrated_video.graph.state import PipelineState
from narrated_video.models.job import ExternalStatus
from narrated_video.models.script import ScriptGenerationResult, ScriptSegment
from narrated_video.tools.fallback_script import generate_fallback_script

logger = structlog.get_logger()

WORDS_PER_MINUTE = 150
SECONDS_PER_SEGMENT = 15
MIN_SEGMENTS = 3

# ---------------------------------------------------------------------------
# Prompt templates
# ---------------------------------------------------------------------------

SCRIPT_SYSTEM_PROMPT = """\
You are an expert script writer for explainer videos. Create engaging, \
informative scripts with detailed visual descriptions. Write the narration \
in {language}. Always write image prompts in English, regardless of the \
narration language."""

SCRIPT_USER_PROMPT = """\
Create a script for an explainer video about "{topic}" that is exactly \
{duration} seconds long (approximately {target_words} words).

Requirements:
- Break the script into {segment_count} segments
- Each segment should be engaging and informative
- Include an image prompt describing the visual for each segment (in English)
- Make it suitable for text-to-speech narration
- Ensure smooth transitions between segments
- Jump straight into the content: no "Welcome to..." or "In this video..."
- Start with a surprising fact or an intriguing question

Keep each segment concise and punchy, at most 2 sentences, since the text is \
also displayed as captions."""


def segment_count_for(duration_sec: float) -> int:
    return max(MIN_SEGMENTS, int(duration_sec // SECONDS_PER_SEGMENT))


def is_quota_error(exc: BaseException) -> bool:
    """True for rate-limit or exhausted-quota responses from the LLM provider."""
    if isinstance(exc, openai.RateLimitError):
        return True
    text = str(exc).lower()
    return "quota" in text or "rate limit" in text


async def generate_script(
    topic: str,
    duration_sec: float,
    language: str = "english",
    config: Settings | None = None,
) -> list[ScriptSegment]:
    config = config or default_settings
    llm = ChatOpenAI(
        model=config.script_model,
        api_key=config.openai_api_key,
        temperature=0.7,
    )
    script_llm = llm.with_structured_output(ScriptGenerationResult)

    result: ScriptGenerationResult = await script_llm.ainvoke(
        [
            {"role": "system", "content": SCRIPT_SYSTEM_PROMPT.format(language=language)},
            {
                "role": "user",
                "content": SCRIPT_USER_PROMPT.format(
                    topic=topic,
                    duration=int(duration_sec),
                    target_words=int(duration_sec / 60 * WORDS_PER_MINUTE),
                    segment_count=segment_count_for(duration_sec),
                ),
            },
        ]
    )
    return result.to_segments()


async def scriptwriter(state: PipelineState, config: RunnableConfig) -> dict:
    """Generate the script; quota or rate-limit errors switch to the offline generator."""
    job_id = state["job_id"]
    store = job_store_from(config)
    await store.set_status(job_id, ExternalStatus.GENERATING, stage="scriptwriter")
    logger.info("scriptwriter.start", job_id=job_id, topic=state["topic"])

    try:
        segments = await generate_script(
            state["topic"], state["duration_sec"], state["language"], config=settings_from(config)
        )
        source = "llm"
    except Exception as exc:
        if not is_quota_error(exc):
            logger.exception("scriptwriter.error", job_id=job_id)
            failure = JobFailure(kind=ErrorKind.INTERNAL, message=f"Script generation failed: {exc}", retryable=False)
            await store.set_status(job_id, ExternalStatus.FAILED, stage="scriptwriter", failure=failure)
            return {"error": failure.message, "error_kind": failure.kind.value}
        logger.warning("scriptwriter.fallback", job_id=job_id, error=str(exc)[:200])
        segments = generate_fallback_script(state["topic"], state["duration_sec"], state["language"])
        source = "fallback"

    logger.info("scriptwriter.done", job_id=job_id, segments=len(segments), source=source)
    return {
        "segments": [s.model_dump() for s in segments],
        "script_source": source,
    }
