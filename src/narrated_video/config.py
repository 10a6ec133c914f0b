"""Application configuration loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    # External tools
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # Workspace
    temp_base_dir: str = "./temp"
    output_base_dir: str = "./output"

    # Job
    job_timeout_sec: float = 600.0
    title_card_sec: float = 0.0

    # Rendering
    render_backend: str = "filtergraph"
    render_fallbacks: list[str] = ["segments"]
    video_width: int = 1920
    video_height: int = 1080
    video_fps: int = 25
    crossfade_sec: float = 0.5
    video_effects: bool = True  # Ken Burns motion on stills; off renders them static
    video_crf: int = 23
    video_preset: str = "fast"
    audio_bitrate: str = "128k"

    # Captions
    caption_line_chars: int = 55
    caption_font_size: int = 52
    default_font: str = "dejavu-sans-bold"
    default_color: str = "yellow"

    # Canonical narration format (pcm_s16le)
    audio_sample_rate: int = 44100
    audio_channels: int = 1

    # Script / image generation
    openai_api_key: str = ""
    script_model: str = "gpt-4o"
    image_model: str = "dall-e-3"

    # Text-to-speech (defaults are ElevenLabs premade voices)
    elevenlabs_api_key: str = ""
    voice_id_professional: str = "pNInz6obpgDQGcFmaJgB"
    voice_id_casual: str = "21m00Tcm4TlvDq8ikWAM"
    voice_id_enthusiastic: str = "EXAVITQu4vr4xnAjxHFB"
    voice_id_educational: str = "ErXwobaYiN019PkySvjV"
    tts_concurrency: int = 2

    # API
    allowed_origins: str = ""  # comma-separated, added to the localhost defaults
    starting_credits: int = 100
    image_regeneration_cost: int = 5

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


settings = Settings()


# ---------------------------------------------------------------------------
# Text styling tables
# ---------------------------------------------------------------------------

_DEJAVU_DIR = "/usr/share/fonts/truetype/dejavu"

FONTS: dict[str, str] = {
    "dejavu-sans-bold": f"{_DEJAVU_DIR}/DejaVuSans-Bold.ttf",
    "dejavu-sans": f"{_DEJAVU_DIR}/DejaVuSans.ttf",
    "dejavu-serif-bold": f"{_DEJAVU_DIR}/DejaVuSerif-Bold.ttf",
    "dejavu-serif": f"{_DEJAVU_DIR}/DejaVuSerif.ttf",
    "dejavu-impact": f"{_DEJAVU_DIR}/DejaVuSans-Bold.ttf",
    "dejavu-bubbly": f"{_DEJAVU_DIR}/DejaVuSans.ttf",
    "dejavu-scary": f"{_DEJAVU_DIR}/DejaVuSerif.ttf",
    "dejavu-elegant": f"{_DEJAVU_DIR}/DejaVuSerif-Bold.ttf",
    "dejavu-mono-bold": f"{_DEJAVU_DIR}/DejaVuSansMono-Bold.ttf",
    "dejavu-mono": f"{_DEJAVU_DIR}/DejaVuSansMono.ttf",
}

COLORS: dict[str, str] = {
    "yellow": "#FFFF00",
    "white": "#FFFFFF",
    "red": "#FF0000",
    "cyan": "#00FFFF",
    "lime": "#00FF00",
    "orange": "#FFA500",
    "gold": "#FFD700",
    "hotpink": "#FF69B4",
    "purple": "#800080",
    "silver": "#C0C0C0",
}

DEFAULT_FONT = "dejavu-sans-bold"
DEFAULT_COLOR = "yellow"
