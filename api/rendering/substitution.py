"""Placeholder substitution for certificate text.

Template authors write text such as ``"Certificamos que {userName} participou
de {eventName}"``.  Every backend receives text that has already been through
this module, so dates and times are formatted exactly once, with one
timezone/locale policy, regardless of which backend ends up drawing them.

Substitution is best effort: unknown tokens are left as typed and missing
context values become empty strings.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import get_settings
from schemas import RenderContext, TemplateConfig

_TOKEN_RE = re.compile(r"\{(\w+)\}")

_MONTHS = {
    "pt-BR": (
        "janeiro",
        "fevereiro",
        "março",
        "abril",
        "maio",
        "junho",
        "julho",
        "agosto",
        "setembro",
        "outubro",
        "novembro",
        "dezembro",
    ),
    "en-US": (
        "January",
        "February",
        "March",
        "April",
        "May",
        "June",
        "July",
        "August",
        "September",
        "October",
        "November",
        "December",
    ),
}

_RANGE_JOINERS = {"pt-BR": "às", "en-US": "to"}


@dataclass(frozen=True)
class DateFormatPolicy:
    """How date/time tokens are rendered.

    Aware datetimes are converted into ``timezone``.  Naive datetimes are
    taken as wall-clock values already expressed in that timezone, so a bare
    ``2025-03-05`` never drifts to the previous day.
    """

    timezone: str = "America/Sao_Paulo"
    locale: str = "pt-BR"

    def _localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value
        try:
            return value.astimezone(ZoneInfo(self.timezone))
        except (ZoneInfoNotFoundError, OverflowError, ValueError):
            # Out-of-range instants and bad zone names keep their own offset
            return value

    def format_date(self, value: datetime | None) -> str:
        if value is None:
            return ""
        local = self._localize(value)
        months = _MONTHS.get(self.locale, _MONTHS["pt-BR"])
        month = months[local.month - 1]
        if self.locale == "en-US":
            return f"{month} {local.day:02d}, {local.year}"
        return f"{local.day:02d} de {month} de {local.year}"

    def format_time(self, value: datetime | None) -> str:
        if value is None:
            return ""
        return self._localize(value).strftime("%H:%M")

    def format_time_range(self, start: datetime | None, end: datetime | None) -> str:
        start_text = self.format_time(start)
        end_text = self.format_time(end)
        if start_text and end_text:
            joiner = _RANGE_JOINERS.get(self.locale, _RANGE_JOINERS["pt-BR"])
            return f"{start_text} {joiner} {end_text}"
        return start_text or end_text


@lru_cache(maxsize=1)
def default_policy() -> DateFormatPolicy:
    settings = get_settings()
    return DateFormatPolicy(
        timezone=settings.display_timezone,
        locale=settings.display_locale,
    )


def token_values(
    context: RenderContext, policy: DateFormatPolicy | None = None
) -> dict[str, str]:
    """Resolve every recognized token for a context."""
    policy = policy or default_policy()
    return {
        "userName": context.user_name or "",
        "eventName": context.event_name or "",
        "eventDate": policy.format_date(context.event_date),
        "eventTime": policy.format_time_range(
            context.event_start_time, context.event_end_time
        ),
        "eventStartTime": policy.format_time(context.event_start_time),
        "eventEndTime": policy.format_time(context.event_end_time),
    }


def substitute(
    text: str | None,
    context: RenderContext,
    policy: DateFormatPolicy | None = None,
) -> str:
    """Replace recognized ``{token}`` placeholders in ``text``.

    Example:
        >>> substitute("Hello {userName}", RenderContext(user_name="Ana"))
        'Hello Ana'
    """
    if not text:
        return ""
    values = token_values(context, policy)

    def _replace(match: re.Match[str]) -> str:
        return values.get(match.group(1), match.group(0))

    return _TOKEN_RE.sub(_replace, text)


@dataclass(frozen=True)
class SubstitutedText:
    """Final strings for every text element of a certificate."""

    title: str
    subtitle: str
    name: str
    body: str
    footer: str
    watermark: str
    qr_payload: str


def substitute_all(
    config: TemplateConfig,
    context: RenderContext,
    policy: DateFormatPolicy | None = None,
) -> SubstitutedText:
    policy = policy or default_policy()
    qr_source = config.qr_code_text or "{userName} - {eventName} - {eventDate}"
    return SubstitutedText(
        title=substitute(config.title, context, policy),
        subtitle=substitute(config.subtitle, context, policy),
        name=context.user_name or "",
        body=substitute(config.body_text, context, policy),
        footer=substitute(config.footer, context, policy),
        watermark=substitute(config.watermark_text, context, policy),
        qr_payload=substitute(qr_source, context, policy),
    )
