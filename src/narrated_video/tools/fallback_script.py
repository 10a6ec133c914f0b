"""Deterministic offline script generator, used when the LLM is unavailable.

Output has the same shape as the LLM scriptwriter: a list of
``ScriptSegment``. The same topic and duration always give the same script.
"""

from __future__ import annotations

import structlog

from narrated_video.models.script import ScriptSegment

logger = structlog.get_logger()

SECONDS_PER_SEGMENT = 15

_TEMPLATES: dict[str, list[tuple[str, str]]] = {
    "photosynthesis": [
        (
            "Photosynthesis is the amazing process plants use to make their own food using sunlight, water, and carbon dioxide.",
            "Green plants with sunlight rays, showing leaves absorbing light energy",
        ),
        (
            "Chloroplasts in plant leaves contain chlorophyll, the green pigment that captures light energy from the sun.",
            "Microscopic view of plant cells showing green chloroplasts inside leaf structure",
        ),
        (
            "Plants take in carbon dioxide through their leaves and water through their roots to create glucose and oxygen.",
            "Plant diagram showing CO2 entering leaves and water entering through roots",
        ),
        (
            "The oxygen we breathe is actually a byproduct of photosynthesis, making plants essential for all life on Earth.",
            "Forest scene with oxygen molecules being released from trees into the atmosphere",
        ),
    ],
    "water": [
        (
            "The water cycle is nature's way of recycling water, moving it continuously between oceans, atmosphere, and land.",
            "Diagram of the water cycle showing evaporation, condensation, and precipitation",
        ),
        (
            "Evaporation occurs when the sun heats water in oceans, lakes, and rivers, turning it into invisible water vapor.",
            "Sunny day over ocean with water vapor rising invisibly from the surface",
        ),
        (
            "Water vapor rises into the atmosphere where it cools and condenses into tiny droplets, forming clouds.",
            "White fluffy clouds forming in blue sky from condensed water vapor",
        ),
        (
            "When clouds become heavy with water, precipitation falls as rain or snow, returning water to Earth's surface.",
            "Rain falling from dark clouds onto landscape with rivers and lakes",
        ),
    ],
    "plants": [
        (
            "Plants grow through an amazing process that starts with a tiny seed containing all the genetic information needed.",
            "Cross-section of a seed showing the embryo and stored nutrients inside",
        ),
        (
            "When seeds get the right amount of water, warmth, and oxygen, they begin to germinate and sprout.",
            "Seed sprouting in soil with tiny green shoot emerging and roots growing downward",
        ),
        (
            "Roots grow downward to absorb water and nutrients while the stem grows upward toward sunlight.",
            "Young plant with visible root system underground and green stem reaching for sunlight",
        ),
        (
            "Through photosynthesis and cellular growth, plants develop leaves, flowers, and eventually produce new seeds.",
            "Mature plant with full leaves, colorful flowers, and seeds ready for dispersal",
        ),
    ],
}

_KEYWORDS: list[tuple[str, tuple[str, ...]]] = [
    ("photosynthesis", ("photosynthesis", "plant food", "chlorophyll")),
    ("water", ("water cycle", "evaporation", "precipitation")),
    ("plants", ("plant", "grow", "seed")),
]


def _generic_template(topic: str) -> list[tuple[str, str]]:
    return [
        (
            f"Let's explore the fascinating topic of {topic} and understand its key concepts.",
            f"Educational illustration about {topic}, clean and informative style",
        ),
        (
            f"Understanding {topic} requires looking at its fundamental principles and how they work together.",
            f"Diagram or visual representation of {topic} concepts, modern educational style",
        ),
        (
            f"The practical applications of {topic} can be seen in many aspects of our daily lives.",
            f"Real-world examples of {topic} in action, professional illustration",
        ),
        (
            f"In conclusion, {topic} demonstrates the incredible complexity and beauty of the world around us.",
            f"Summary visual of {topic} showing its importance and connections, inspiring illustration",
        ),
    ]


def select_template(topic: str) -> list[tuple[str, str]]:
    topic_lower = topic.lower()
    for name, keywords in _KEYWORDS:
        if any(k in topic_lower for k in keywords):
            return _TEMPLATES[name]
    return _generic_template(topic)


def generate_fallback_script(topic: str, duration_sec: float, language: str = "english") -> list[ScriptSegment]:
    """Build a script of ``max(2, duration // 15)`` segments (at most four).

    Templates are English only; *language* is accepted for interface parity
    with the LLM scriptwriter.
    """
    if duration_sec <= 0:
        raise ValueError(f"duration_sec must be positive, got {duration_sec}")

    count = max(2, int(duration_sec // SECONDS_PER_SEGMENT))
    per_segment = duration_sec / count
    template = select_template(topic)[:count]

    logger.info(
        "fallback_script.generated",
        topic=topic,
        language=language,
        segments=len(template),
        per_segment_sec=per_segment,
    )
    return [
        ScriptSegment(text=text, image_prompt=prompt, planned_duration=per_segment)
        for text, prompt in template
    ]
