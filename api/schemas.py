"""Pydantic schemas for the certificate rendering pipeline.

Template and context models double as API request bodies: the JSON field
names follow the camelCase spelling used by the template editor
(``namePosition``, ``includeQRCode``), while Python code uses snake_case.
"""

from datetime import date, datetime, time
from enum import StrEnum
from typing import Annotated, Literal, Self

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

HEX_COLOR_PATTERN = r"^#[0-9A-Fa-f]{6}$"

DEFAULT_BODY_TEXT = (
    "Certificamos que {userName} participou do evento {eventName}, "
    "realizado em {eventDate} das {eventTime}."
)


class _CamelModel(BaseModel):
    """Frozen model accepting both camelCase and snake_case keys."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class TemplateStyle(StrEnum):
    MODERN = "modern"
    CLASSIC = "classic"
    ELEGANT = "elegant"
    MINIMALIST = "minimalist"
    BLANK = "blank"


class Orientation(StrEnum):
    LANDSCAPE = "landscape"
    PORTRAIT = "portrait"


class FontFamily(StrEnum):
    HELVETICA = "helvetica"
    TIMES = "times"
    COURIER = "courier"
    DEJAVU_SANS = "dejavu_sans"


class PageSize(StrEnum):
    A4 = "A4"
    A3 = "A3"
    A5 = "A5"
    LETTER = "Letter"
    LEGAL = "Legal"


class PageMargin(StrEnum):
    NARROW = "narrow"
    NORMAL = "normal"
    WIDE = "wide"


class Position(_CamelModel):
    """Element center as percentages of the canvas."""

    x: float = Field(ge=0, le=100)
    y: float = Field(ge=0, le=100)


class CanvasSize(_CamelModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)

    def swapped(self) -> "CanvasSize":
        return CanvasSize(width=self.height, height=self.width)


class Point(_CamelModel):
    """Absolute coordinates on a canvas, origin top-left."""

    x: float
    y: float


class TemplateConfig(_CamelModel):
    """User-authored certificate appearance.

    Read-only for the duration of a render; every backend receives the same
    instance and none of them may change it.
    """

    id: str | None = None
    event_id: str | None = None

    template: TemplateStyle = TemplateStyle.MODERN
    orientation: Orientation = Orientation.LANDSCAPE
    page_size: PageSize = PageSize.A4
    page_margin: PageMargin = PageMargin.NORMAL

    primary_color: str = Field(default="#2563eb", pattern=HEX_COLOR_PATTERN)
    secondary_color: str = Field(default="#64748b", pattern=HEX_COLOR_PATTERN)
    background_color: str = Field(default="#ffffff", pattern=HEX_COLOR_PATTERN)
    border_color: str = Field(default="#e2e8f0", pattern=HEX_COLOR_PATTERN)

    font_family: FontFamily = FontFamily.HELVETICA
    title_font_size: float = Field(default=24, gt=0)
    name_font_size: float = Field(default=18, gt=0)
    body_font_size: float = Field(default=12, gt=0)

    title: str = Field(default="", max_length=100)
    subtitle: str | None = Field(default=None, max_length=200)
    body_text: str = Field(default=DEFAULT_BODY_TEXT, max_length=500)
    footer: str | None = Field(default=None, max_length=200)

    title_position: Position = Position(x=50, y=25)
    name_position: Position = Position(x=50, y=45)
    body_position: Position = Position(x=50, y=65)
    logo_position: Position | None = None
    qr_code_position: Position | None = None

    show_border: bool = True
    border_width: float = Field(default=2, ge=0, le=50)
    show_watermark: bool = False
    watermark_text: str = Field(default="CERTIFICADO", max_length=50)
    watermark_opacity: float = Field(default=0.1, ge=0, le=1)

    logo_url: str | None = None
    logo_size: float = Field(default=80, gt=0, le=400)

    include_qr_code: bool = Field(default=False, alias="includeQRCode")
    qr_code_text: str | None = Field(default=None, max_length=200)

    @field_validator("logo_url")
    @classmethod
    def validate_logo_url(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if not v:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError("logoUrl must be an http(s) URL")
        return v

    @model_validator(mode="after")
    def validate_optional_elements(self) -> Self:
        if self.logo_url and self.logo_position is None:
            raise ValueError("logoPosition is required when logoUrl is set")
        if self.include_qr_code and self.qr_code_position is None:
            raise ValueError("qrCodePosition is required when includeQRCode is set")
        return self


class RenderContext(_CamelModel):
    """Per-participant values used to fill template placeholders."""

    user_name: str = ""
    event_name: str = ""
    event_date: datetime | None = None
    event_start_time: datetime | None = None
    event_end_time: datetime | None = None

    @field_validator(
        "event_date", "event_start_time", "event_end_time", mode="before"
    )
    @classmethod
    def promote_dates(cls, v: object) -> object:
        if isinstance(v, date) and not isinstance(v, datetime):
            return datetime.combine(v, time())
        return v


# =============================================================================
# Render attempts and results
# =============================================================================


class AttemptStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"


class FailureKind(StrEnum):
    TIMEOUT = "timeout"
    ERROR = "error"
    INVALID_OUTPUT = "invalid_output"


class RenderAttempt(BaseModel):
    """One backend's turn in a fallback chain."""

    model_config = ConfigDict(frozen=True)

    backend: str
    status: AttemptStatus
    failure: FailureKind | None = None
    detail: str | None = None
    duration_ms: float = 0.0


class RenderedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["rendered"] = "rendered"
    content: bytes = Field(repr=False)
    mime_type: str
    backend: str
    attempts: tuple[RenderAttempt, ...]


class ExhaustedResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["exhausted"] = "exhausted"
    attempts: tuple[RenderAttempt, ...]


RenderResult = Annotated[
    RenderedResult | ExhaustedResult, Field(discriminator="status")
]


# =============================================================================
# Batch results
# =============================================================================


class BatchFailureReason(StrEnum):
    CONFIG_INVALID = "config_invalid"
    CHAIN_EXHAUSTED = "chain_exhausted"
    UNEXPECTED = "unexpected"


class BatchSuccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int
    item_id: str | None = None
    result: RenderedResult


class BatchItemFailed(BaseModel):
    """A batch item that produced no artifact; never aborts the batch."""

    model_config = ConfigDict(frozen=True)

    index: int
    item_id: str | None = None
    reason: BatchFailureReason
    message: str
    attempts: tuple[RenderAttempt, ...] = ()


class BatchResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    succeeded: tuple[BatchSuccess, ...]
    failed: tuple[BatchItemFailed, ...]


# =============================================================================
# API request / response schemas
# =============================================================================


class RenderRequest(BaseModel):
    """Render one certificate through the fallback chain."""

    config: TemplateConfig
    context: RenderContext
    backends: list[str] | None = Field(default=None, min_length=1)


class CombinedDocumentRequest(BaseModel):
    """Render every participant into a single paginated document."""

    config: TemplateConfig
    participants: list[RenderContext] = Field(min_length=1, max_length=1000)


class BatchItemRequest(BaseModel):
    item_id: str | None = None
    # Validated per item so one bad config is reported, not rejected wholesale
    config: dict
    context: RenderContext


class BatchRenderRequest(BaseModel):
    items: list[BatchItemRequest] = Field(min_length=1, max_length=1000)
    backends: list[str] | None = Field(default=None, min_length=1)


class BatchItemSummary(BaseModel):
    index: int
    item_id: str | None = None
    backend: str
    mime_type: str
    size_bytes: int


class BatchSummaryResponse(BaseModel):
    succeeded: list[BatchItemSummary]
    failed: list[BatchItemFailed]


class ExhaustedResponse(BaseModel):
    detail: str
    attempts: list[RenderAttempt]


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    service: str


class ReadyResponse(BaseModel):
    status: str
    backends: list[str]
