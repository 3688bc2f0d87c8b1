"""Voice style profiles for provider submissions.

Responsibilities:
- Represent voice reference samples and emotion tuning per narration style.
- Decouple orchestration from provider-specific parameter naming.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace

_VOICE_BUCKET = "https://pub-b436254f85684e9e95bebad4567b11ff.r2.dev/voice"

DEFAULT_EMOTION_VECTOR: tuple[float, ...] = (0.8, 0.0, 0.0, 0.0, 0.0, 0.0, 0.6, 0.0)


@dataclass(frozen=True, slots=True)
class VoiceStyle:
    """Declarative voice style used to build provider submissions.

    Attributes:
        name: Registry key of the style.
        voice_sample_url: Public URL of the reference voice recording.
        emotion_weight: Blend weight of the emotion controls, in `[0, 1]`.
        emotion_vector: Eight emotion intensities in provider order
            (happy, angry, sad, afraid, disgusted, melancholic, surprised, calm).
        emotion_sample_url: Optional reference recording for emotion transfer.
        description: Human-readable label.
    """

    name: str
    voice_sample_url: str
    emotion_weight: float = 0.9
    emotion_vector: tuple[float, ...] = field(default=DEFAULT_EMOTION_VECTOR)
    emotion_sample_url: str | None = None
    description: str = ""

    def __post_init__(self) -> None:
        if len(self.emotion_vector) != 8:
            raise ValueError("`emotion_vector` must contain exactly 8 values.")
        if not 0.0 <= self.emotion_weight <= 1.0:
            raise ValueError("`emotion_weight` must be between 0 and 1.")

    def with_voice_sample(self, voice_sample_url: str | None) -> VoiceStyle:
        """Return a copy using `voice_sample_url` when one is given."""

        if not voice_sample_url:
            return self
        return replace(self, voice_sample_url=voice_sample_url)


_STYLES: dict[str, VoiceStyle] = {
    "news-anchor": VoiceStyle(
        name="news-anchor",
        voice_sample_url=f"{_VOICE_BUCKET}/kaluoling.mp3",
        emotion_weight=0.3,
        emotion_vector=(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.9),
        description="Professional news delivery",
    ),
    "guo-de-gang": VoiceStyle(
        name="guo-de-gang",
        voice_sample_url=f"{_VOICE_BUCKET}/guodegang.mp3",
        emotion_weight=0.9,
        emotion_vector=(0.8, 0.0, 0.0, 0.0, 0.0, 0.0, 0.6, 0.0),
        description="Crosstalk comedy delivery",
    ),
}


def available_styles() -> list[str]:
    """Return registered style names in sorted order."""

    return sorted(_STYLES)


def resolve_style(name: str, voice_sample_url: str | None = None) -> VoiceStyle:
    """Return the registered style, optionally overriding its voice sample.

    Raises:
        ValueError: If `name` is not registered.
    """

    normalized = name.strip().lower()
    style = _STYLES.get(normalized)
    if style is None:
        raise ValueError(
            f"Unknown voice style `{name}`. Available styles: {', '.join(available_styles())}."
        )
    return style.with_voice_sample(voice_sample_url)
