"""Backend lookup by name and fallback-chain resolution."""

from __future__ import annotations

from narrated_video.config import Settings, settings as default_settings
from narrated_video.render.backends.base import RenderBackend
from narrated_video.render.backends.browser import BrowserBackend
from narrated_video.render.backends.filtergraph import FilterGraphBackend
from narrated_video.render.backends.scene import SceneBackend
from narrated_video.render.backends.segments import SegmentsBackend

BACKENDS: dict[str, type[RenderBackend]] = {
    FilterGraphBackend.name: FilterGraphBackend,
    SegmentsBackend.name: SegmentsBackend,
    BrowserBackend.name: BrowserBackend,
    SceneBackend.name: SceneBackend,
}


def get_backend(name: str, config: Settings | None = None) -> RenderBackend:
    try:
        cls = BACKENDS[name]
    except KeyError:
        raise ValueError(f"Unknown render backend {name!r}; choose from {sorted(BACKENDS)}") from None
    return cls(config)


def resolve_chain(config: Settings | None = None) -> list[RenderBackend]:
    """Primary backend followed by the configured fallbacks, without repeats."""
    config = config or default_settings
    names: list[str] = []
    for name in [config.render_backend, *config.render_fallbacks]:
        if name not in names:
            names.append(name)
    return [get_backend(name, config) for name in names]
