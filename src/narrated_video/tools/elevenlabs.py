"""ElevenLabs text-to-speech: one narration clip per script segment."""

from __future__ import annotations

from pathlib import Path

import structlog
from elevenlabs import AsyncElevenLabs, VoiceSettings

from narrated_video.config import Settings, settings as default_settings

logger = structlog.get_logger()

# ---------------------------------------------------------------------------
# Voice style -> VoiceSettings mapping
# ---------------------------------------------------------------------------

VOICE_STYLES = ("professional", "casual", "enthusiastic", "educational")
DEFAULT_VOICE_STYLE = "professional"

_STYLE_SETTINGS: dict[str, VoiceSettings] = {
    "professional": VoiceSettings(stability=0.65, similarity_boost=0.80, style=0.10, speed=1.0),
    "casual": VoiceSettings(stability=0.45, similarity_boost=0.80, style=0.40, speed=1.0),
    "enthusiastic": VoiceSettings(stability=0.30, similarity_boost=0.80, style=0.55, speed=1.05),
    "educational": VoiceSettings(stability=0.60, similarity_boost=0.75, style=0.20, speed=0.95),
}


def voice_id_for(voice_style: str, config: Settings) -> str:
    style = voice_style if voice_style in VOICE_STYLES else DEFAULT_VOICE_STYLE
    return getattr(config, f"voice_id_{style}")


async def synthesize(
    text: str,
    voice_style: str,
    output_path: str,
    language: str = "english",
    config: Settings | None = None,
) -> str:
    """Generate speech for *text* and write it as MP3 to *output_path*.

    The multilingual model handles *language* from the text itself; it is
    only logged here. Unknown voice styles use the professional voice.

    Raises:
        RuntimeError: If the API returns empty audio data.
    """
    config = config or default_settings
    voice_id = voice_id_for(voice_style, config)
    voice_settings = _STYLE_SETTINGS.get(voice_style, _STYLE_SETTINGS[DEFAULT_VOICE_STYLE])

    logger.info(
        "elevenlabs_tts.start",
        voice_id=voice_id,
        voice_style=voice_style,
        language=language,
        text_len=len(text),
    )

    client = AsyncElevenLabs(api_key=config.elevenlabs_api_key)
    audio_iter = client.text_to_speech.convert(
        voice_id=voice_id,
        text=text,
        model_id="eleven_multilingual_v2",
        voice_settings=voice_settings,
    )

    chunks: list[bytes] = []
    async for chunk in audio_iter:
        chunks.append(chunk)

    audio_data = b"".join(chunks)
    if not audio_data:
        raise RuntimeError(f"ElevenLabs returned empty audio for voice_id={voice_id}")

    Path(output_path).write_bytes(audio_data)
    logger.info("elevenlabs_tts.done", output_path=output_path, bytes_written=len(audio_data))
    return output_path
