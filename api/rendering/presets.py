"""Starting templates offered by the certificate editor.

Each preset is a complete ``TemplateConfig`` minus the event binding.
``preset_config`` copies one for an event and applies caller overrides, so
editors start from a consistent design instead of an empty form.
"""

from typing import Any

from schemas import Position, TemplateConfig, TemplateStyle

PRESETS: dict[TemplateStyle, dict[str, Any]] = {
    TemplateStyle.MODERN: {
        "template": TemplateStyle.MODERN,
        "primary_color": "#2563eb",
        "secondary_color": "#64748b",
        "background_color": "#ffffff",
        "border_color": "#e2e8f0",
        "title_font_size": 28,
        "name_font_size": 20,
        "body_font_size": 14,
        "font_family": "helvetica",
        "title": "Certificado de Participação",
        "body_text": (
            "Certificamos que {userName} participou com êxito do evento "
            "{eventName}, realizado em {eventDate} das {eventTime}."
        ),
        "title_position": Position(x=50, y=20),
        "name_position": Position(x=50, y=40),
        "body_position": Position(x=50, y=60),
        "logo_size": 80,
        "logo_position": Position(x=10, y=15),
        "show_border": False,
        "border_width": 2,
        "watermark_text": "CERTIFICADO",
        "watermark_opacity": 0.1,
        "qr_code_position": Position(x=90, y=90),
    },
    TemplateStyle.CLASSIC: {
        "template": TemplateStyle.CLASSIC,
        "primary_color": "#7c2d12",
        "secondary_color": "#a3a3a3",
        "background_color": "#fefbf3",
        "border_color": "#d4af37",
        "title_font_size": 26,
        "name_font_size": 18,
        "body_font_size": 12,
        "font_family": "times",
        "title": "Certificado de Participação",
        "subtitle": "Curso de Capacitação Profissional",
        "body_text": (
            "Certificamos que {userName} participou com aproveitamento do "
            "evento {eventName}, com carga horária total, realizado em "
            "{eventDate} das {eventTime}."
        ),
        "footer": "Válido em todo território nacional",
        "title_position": Position(x=50, y=25),
        "name_position": Position(x=50, y=45),
        "body_position": Position(x=50, y=65),
        "logo_size": 70,
        "logo_position": Position(x=15, y=15),
        "show_border": True,
        "border_width": 3,
        "show_watermark": True,
        "watermark_text": "CERTIFICADO",
        "watermark_opacity": 0.1,
        "include_qr_code": True,
        "qr_code_text": "Válido digitalmente",
        "qr_code_position": Position(x=85, y=15),
    },
    TemplateStyle.ELEGANT: {
        "template": TemplateStyle.ELEGANT,
        "primary_color": "#7c3aed",
        "secondary_color": "#6b7280",
        "background_color": "#ffffff",
        "border_color": "#c4b5fd",
        "title_font_size": 24,
        "name_font_size": 18,
        "body_font_size": 12,
        "font_family": "times",
        "title": "Certificado de Excelência",
        "subtitle": "Reconhecimento de Participação",
        "body_text": (
            "Por meio deste, certificamos que {userName} participou com "
            "distinção do evento {eventName}, demonstrando dedicação e "
            "comprometimento, realizado em {eventDate} das {eventTime}."
        ),
        "footer": "Organização Certificada",
        "title_position": Position(x=50, y=22),
        "name_position": Position(x=50, y=42),
        "body_position": Position(x=50, y=62),
        "logo_size": 75,
        "logo_position": Position(x=12, y=18),
        "show_border": True,
        "border_width": 2,
        "watermark_text": "ELEGANTE",
        "watermark_opacity": 0.08,
        "include_qr_code": True,
        "qr_code_text": "Validação digital",
        "qr_code_position": Position(x=88, y=18),
    },
    TemplateStyle.MINIMALIST: {
        "template": TemplateStyle.MINIMALIST,
        "primary_color": "#111827",
        "secondary_color": "#6b7280",
        "background_color": "#ffffff",
        "border_color": "#e5e7eb",
        "title_font_size": 22,
        "name_font_size": 16,
        "body_font_size": 11,
        "font_family": "helvetica",
        "title": "Certificado",
        "body_text": (
            "{userName} participou do evento {eventName} em {eventDate} "
            "das {eventTime}."
        ),
        "title_position": Position(x=50, y=30),
        "name_position": Position(x=50, y=50),
        "body_position": Position(x=50, y=70),
        "logo_size": 60,
        "logo_position": Position(x=20, y=20),
        "show_border": True,
        "border_width": 1,
        "watermark_text": "MINIMAL",
        "watermark_opacity": 0.05,
    },
}


def preset_config(
    style: TemplateStyle | str,
    event_id: str | None = None,
    **overrides: Any,
) -> TemplateConfig:
    """Build a validated config from a preset.

    Args:
        style: Preset name. ``blank`` gives the plain model defaults.
        event_id: Event the template is bound to.
        **overrides: Field values (snake_case) that replace preset values.

    Raises:
        pydantic.ValidationError: If the merged values are invalid.
    """
    style = TemplateStyle(style)
    values: dict[str, Any] = dict(PRESETS.get(style, {"template": style}))
    values.update(overrides)
    return TemplateConfig(event_id=event_id, **values)
