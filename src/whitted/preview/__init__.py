"""Preview module for output.

Components:
    tonemap: Tone mapping (Reinhard, exposure) and gamma encoding
    export: 8-bit image export through Pillow

Example:
    >>> from src.whitted.preview import save_png
    >>> save_png(canvas, "output.png", gamma=2.2)
"""

from src.whitted.preview.export import (
    compute_rmse,
    image_to_uint8,
    save_png,
    save_png_from_array,
)
from src.whitted.preview.tonemap import (
    ToneMapMethod,
    apply_gamma,
    process_image_for_display,
    tone_map_exposure,
    tone_map_reinhard,
)

__all__ = [
    # Tone mapping
    "tone_map_reinhard",
    "tone_map_exposure",
    "apply_gamma",
    "process_image_for_display",
    "ToneMapMethod",
    # Export functions
    "save_png",
    "save_png_from_array",
    "image_to_uint8",
    "compute_rmse",
]
