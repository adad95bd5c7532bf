"""Tests for placeholder substitution and the date/time policy."""

from datetime import UTC, datetime

import pytest
from hypothesis import given
from hypothesis import strategies as st

from rendering.substitution import (
    DateFormatPolicy,
    default_policy,
    substitute,
    substitute_all,
    token_values,
)
from schemas import RenderContext, TemplateConfig

pytestmark = pytest.mark.unit

PT_BR = DateFormatPolicy(timezone="America/Sao_Paulo", locale="pt-BR")
EN_US = DateFormatPolicy(timezone="America/Sao_Paulo", locale="en-US")


class TestSubstitute:
    """Tests for substitute()."""

    def test_replaces_user_name(self):
        context = RenderContext(user_name="Ana")
        assert substitute("Hello {userName}", context, PT_BR) == "Hello Ana"

    def test_replaces_every_occurrence(self):
        context = RenderContext(user_name="Ana", event_name="PyCon")
        result = substitute("{userName} @ {eventName}, {userName}", context, PT_BR)
        assert result == "Ana @ PyCon, Ana"

    def test_unknown_tokens_are_kept(self):
        context = RenderContext(user_name="Ana")
        assert substitute("{foo} {userName}", context, PT_BR) == "{foo} Ana"

    def test_missing_values_become_empty(self):
        result = substitute("[{eventName}] [{eventDate}]", RenderContext(), PT_BR)
        assert result == "[] []"

    def test_none_and_empty_text(self):
        assert substitute(None, RenderContext(), PT_BR) == ""
        assert substitute("", RenderContext(), PT_BR) == ""

    def test_braces_without_token_are_untouched(self):
        assert substitute("{ } {} {user-name}", RenderContext(), PT_BR) == (
            "{ } {} {user-name}"
        )

    def test_uses_default_policy_when_omitted(self, context):
        assert substitute("{eventDate}", context) == "05 de março de 2025"


class TestDateFormatPolicy:
    """Tests for date and time formatting."""

    def test_pt_br_date(self):
        assert PT_BR.format_date(datetime(2025, 3, 5)) == "05 de março de 2025"

    def test_en_us_date(self):
        assert EN_US.format_date(datetime(2025, 3, 5)) == "March 05, 2025"

    def test_naive_datetime_is_wall_clock(self):
        """A bare date never drifts to the previous day."""
        assert PT_BR.format_date(datetime(2025, 1, 1, 0, 0)) == (
            "01 de janeiro de 2025"
        )

    def test_aware_datetime_converted_to_display_timezone(self):
        instant = datetime(2025, 3, 5, 2, 0, tzinfo=UTC)
        assert PT_BR.format_date(instant) == "04 de março de 2025"
        assert PT_BR.format_time(instant) == "23:00"

    def test_time_range(self):
        start = datetime(2025, 3, 5, 9, 0)
        end = datetime(2025, 3, 5, 17, 30)
        assert PT_BR.format_time_range(start, end) == "09:00 às 17:30"
        assert EN_US.format_time_range(start, end) == "09:00 to 17:30"

    def test_time_range_with_one_side(self):
        start = datetime(2025, 3, 5, 9, 0)
        assert PT_BR.format_time_range(start, None) == "09:00"
        assert PT_BR.format_time_range(None, start) == "09:00"
        assert PT_BR.format_time_range(None, None) == ""

    def test_none_formats_as_empty(self):
        assert PT_BR.format_date(None) == ""
        assert PT_BR.format_time(None) == ""

    def test_default_policy_follows_settings(self, monkeypatch):
        monkeypatch.setenv("DISPLAY_LOCALE", "en-US")
        monkeypatch.setenv("DISPLAY_TIMEZONE", "UTC")
        from core.config import clear_settings_cache

        clear_settings_cache()
        default_policy.cache_clear()

        assert default_policy() == DateFormatPolicy(timezone="UTC", locale="en-US")


class TestTokenValues:
    def test_resolves_all_tokens(self, context):
        values = token_values(context, PT_BR)
        assert values == {
            "userName": "Ana Souza",
            "eventName": "PyCon",
            "eventDate": "05 de março de 2025",
            "eventTime": "09:00 às 17:30",
            "eventStartTime": "09:00",
            "eventEndTime": "17:30",
        }

    def test_plain_date_is_accepted(self):
        context = RenderContext.model_validate({"eventDate": "2025-03-05"})
        assert token_values(context, PT_BR)["eventDate"] == "05 de março de 2025"


class TestSubstituteAll:
    def test_substitutes_every_text_element(self, context):
        config = TemplateConfig(
            title="{eventName}",
            subtitle="Edição {eventDate}",
            body_text="{userName} esteve aqui",
            footer="{eventTime}",
            watermark_text="{eventName}",
        )
        text = substitute_all(config, context, PT_BR)

        assert text.title == "PyCon"
        assert text.subtitle == "Edição 05 de março de 2025"
        assert text.name == "Ana Souza"
        assert text.body == "Ana Souza esteve aqui"
        assert text.footer == "09:00 às 17:30"
        assert text.watermark == "PyCon"

    def test_name_is_never_substituted(self):
        context = RenderContext(user_name="{eventName}", event_name="PyCon")
        text = substitute_all(TemplateConfig(), context, PT_BR)
        assert text.name == "{eventName}"

    def test_qr_payload_defaults_to_participant_summary(self, context):
        text = substitute_all(TemplateConfig(), context, PT_BR)
        assert text.qr_payload == "Ana Souza - PyCon - 05 de março de 2025"

    def test_qr_payload_uses_configured_text(self, context):
        config = TemplateConfig(qr_code_text="https://example.com/{userName}")
        text = substitute_all(config, context, PT_BR)
        assert text.qr_payload == "https://example.com/Ana Souza"

    def test_missing_optional_elements_are_empty(self):
        text = substitute_all(TemplateConfig(), RenderContext(), PT_BR)
        assert text.subtitle == ""
        assert text.footer == ""


class TestSubstitutionProperties:
    @given(
        text=st.text(max_size=200),
        name=st.text(max_size=50),
        event=st.text(max_size=50),
    )
    def test_never_raises(self, text, name, event):
        context = RenderContext(user_name=name, event_name=event)
        assert isinstance(substitute(text, context, PT_BR), str)

    @given(text=st.text(alphabet=st.characters(exclude_characters="{}")))
    def test_text_without_braces_is_unchanged(self, text):
        assert substitute(text, RenderContext(user_name="Ana"), PT_BR) == text

    @given(
        instant=st.datetimes(
            min_value=datetime(1900, 1, 2), max_value=datetime(2200, 12, 30)
        )
    )
    def test_naive_dates_keep_their_calendar_day(self, instant):
        formatted = PT_BR.format_date(instant)
        assert formatted.startswith(f"{instant.day:02d} de ")
        assert formatted.endswith(str(instant.year))
