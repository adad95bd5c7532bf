"""Rendering backends and the name -> backend registry.

Which backends run, and in what order, is configuration
(``RENDER_BACKENDS``); nothing here inspects the host environment.
"""

from collections.abc import Callable, Sequence

from core.config import Settings, get_settings
from rendering.backends.base import (
    InvalidOutputError,
    RenderBackend,
    RenderError,
    validate_output,
)
from rendering.backends.browser import BrowserBackend
from rendering.backends.paginated import PaginatedBackend
from rendering.backends.remote import RemoteBackend
from rendering.backends.vector import VectorBackend

BACKEND_FACTORIES: dict[str, Callable[[Settings], RenderBackend]] = {
    "browser": lambda settings: BrowserBackend(),
    "vector": lambda settings: VectorBackend(output=settings.vector_output),
    "remote": lambda settings: RemoteBackend(),
    "pdf": lambda settings: PaginatedBackend(),
}


def build_backends(
    names: Sequence[str] | None = None, settings: Settings | None = None
) -> list[RenderBackend]:
    """Instantiate backends in priority order.

    Args:
        names: Backend names; defaults to the configured chain.
        settings: Settings to read backend options from.

    Raises:
        ValueError: If a name is unknown or the list is empty.
    """
    settings = settings or get_settings()
    names = list(names) if names is not None else settings.backend_names
    if not names:
        raise ValueError("At least one render backend is required")

    backends = []
    for name in names:
        factory = BACKEND_FACTORIES.get(name.strip().lower())
        if factory is None:
            raise ValueError(
                f"Unknown render backend: {name!r}. "
                f"Choose from: {', '.join(BACKEND_FACTORIES)}."
            )
        backends.append(factory(settings))
    return backends


__all__ = [
    "BACKEND_FACTORIES",
    "BrowserBackend",
    "InvalidOutputError",
    "PaginatedBackend",
    "RemoteBackend",
    "RenderBackend",
    "RenderError",
    "VectorBackend",
    "build_backends",
    "validate_output",
]
