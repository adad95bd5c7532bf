"""Backend contract shared by every rendering strategy.

A backend turns ``(TemplateConfig, RenderContext)`` into the bytes of one
artifact.  Backends are stateless apart from resource limits: they never
keep assets between calls, and they never modify the config they receive.
"""

import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod

from schemas import CanvasSize, RenderContext, TemplateConfig

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
PDF_SIGNATURE = b"%PDF-"


class RenderError(Exception):
    """A backend could not produce an artifact."""


class InvalidOutputError(RenderError):
    """A backend returned bytes that are not a valid artifact."""


class RenderBackend(ABC):
    name: str
    mime_type: str

    @abstractmethod
    async def render(
        self,
        config: TemplateConfig,
        context: RenderContext,
        canvas: CanvasSize,
    ) -> bytes:
        """Render one certificate.

        Raises:
            RenderError: If the artifact cannot be produced.
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


def validate_output(content: bytes, mime_type: str) -> None:
    """Check that ``content`` is a well-formed artifact of ``mime_type``.

    Raises:
        InvalidOutputError: On empty output or a wrong format signature.
    """
    if not content:
        raise InvalidOutputError("backend returned no bytes")

    if mime_type == "image/png":
        if not content.startswith(PNG_SIGNATURE):
            raise InvalidOutputError("output is not a PNG image")
    elif mime_type == "application/pdf":
        if not content.lstrip().startswith(PDF_SIGNATURE):
            raise InvalidOutputError("output is not a PDF document")
    elif mime_type == "image/svg+xml":
        try:
            root = ET.fromstring(content)
        except ET.ParseError as e:
            raise InvalidOutputError(f"output is not well-formed SVG: {e}") from e
        if not root.tag.endswith("svg"):
            raise InvalidOutputError(f"unexpected SVG root element {root.tag!r}")
