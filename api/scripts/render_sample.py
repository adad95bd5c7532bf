"""Render every preset locally for a visual check (no network, no browser).

Run from the api/ directory:
    python scripts/render_sample.py

Outputs, per preset:
    scripts/samples/<preset>.svg
    scripts/samples/<preset>.pdf
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

# Ensure the api package is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from rendering.backends import PaginatedBackend, VectorBackend
from rendering.layout import canvas_for
from rendering.presets import PRESETS, preset_config
from schemas import RenderContext

OUTPUT_DIR = Path(__file__).resolve().parent / "samples"

SAMPLE_CONTEXT = RenderContext(
    user_name="Gwyneth Test",
    event_name="Workshop de Python",
    event_date=datetime(2025, 3, 5),
    event_start_time=datetime(2025, 3, 5, 14, 0),
    event_end_time=datetime(2025, 3, 5, 18, 0),
)


async def main() -> None:
    OUTPUT_DIR.mkdir(exist_ok=True)
    vector = VectorBackend(output="svg")
    paginated = PaginatedBackend()

    for style in PRESETS:
        config = preset_config(style, event_id="sample")
        canvas = canvas_for(config.orientation)

        svg_path = OUTPUT_DIR / f"{style.value}.svg"
        svg_path.write_bytes(await vector.render(config, SAMPLE_CONTEXT, canvas))
        print(f"SVG saved to {svg_path}")

        pdf_path = OUTPUT_DIR / f"{style.value}.pdf"
        pdf_path.write_bytes(await paginated.render(config, SAMPLE_CONTEXT, canvas))
        print(f"PDF saved to {pdf_path}")


if __name__ == "__main__":
    asyncio.run(main())
