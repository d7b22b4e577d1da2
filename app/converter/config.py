from dataclasses import dataclass, field

from .errors import InvalidInputError

PDF_MIME_TYPE = "application/pdf"

IMAGE_FORMATS = ("png", "jpeg", "webp")
FORMAT_ALIASES = {"jpg": "jpeg"}
FORMAT_EXTENSIONS = {"png": "png", "jpeg": "jpg", "webp": "webp"}
FORMAT_MEDIA_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}


def _default_qualities() -> tuple[float, ...]:
    return (0.6, 0.7, 0.8, 0.9, 1.0)


def _default_scales() -> tuple[float, ...]:
    return (1.0, 1.5, 2.0, 3.0)


@dataclass(frozen=True)
class Settings:
    api_host: str = "0.0.0.0"
    api_port: int = 3001

    ui_host: str = "0.0.0.0"
    ui_port: int = 8081

    max_file_size_mb: int = 50

    default_format: str = "jpeg"
    default_quality: float = 0.9
    default_scale: float = 1.5
    max_render_scale: float = 5.0
    quality_choices: tuple[float, ...] = field(default_factory=_default_qualities)
    scale_choices: tuple[float, ...] = field(default_factory=_default_scales)


settings = Settings()


def normalize_format(image_format: str) -> str:
    """Map a user-facing format name to one of IMAGE_FORMATS."""
    fmt = (image_format or "").strip().lower()
    fmt = FORMAT_ALIASES.get(fmt, fmt)
    if fmt not in IMAGE_FORMATS:
        raise InvalidInputError(f"Unsupported image format: {image_format!r}")
    return fmt


@dataclass(frozen=True)
class ConversionConfig:
    """Snapshot of the user's options, taken once per conversion run."""

    image_format: str = settings.default_format
    image_quality: float = settings.default_quality
    render_scale: float = settings.default_scale

    def __post_init__(self):
        # frozen dataclass: normalized values go through object.__setattr__
        object.__setattr__(self, "image_format", normalize_format(self.image_format))

        quality = float(self.image_quality)
        if not 0.0 <= quality <= 1.0:
            raise InvalidInputError(f"Image quality must be between 0.0 and 1.0, got {quality}")
        object.__setattr__(self, "image_quality", quality)

        scale = float(self.render_scale)
        if not 0 < scale <= settings.max_render_scale:
            raise InvalidInputError(
                f"Render scale must be in (0, {settings.max_render_scale}], got {scale}"
            )
        object.__setattr__(self, "render_scale", scale)

    @property
    def is_lossless(self) -> bool:
        return self.image_format == "png"
