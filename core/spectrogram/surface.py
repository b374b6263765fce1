"""
core/spectrogram/surface.py — Move-only drawable surface.

A DrawSurface wraps a Pillow RGBA image. Ownership is transferred exactly
once, to the draw task: ``transfer()`` returns the new owning handle and
invalidates the original, so the sender can no longer read or write pixels.

Pixels leave the surface only through its presenter callback (for example
a PNG writer), which receives a copy on every ``present()``.
"""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from PIL import Image

from core.spectrogram.errors import DrawSurfaceUnavailable

Presenter = Callable[[Image.Image], None]

TRANSPARENT = (0, 0, 0, 0)


class DrawSurface:
    """Owned RGBA pixel surface.

    Args:
        width: Initial width in device pixels.
        height: Initial height in device pixels.
        presenter: Receives a copy of the pixels on ``present()``.
    """

    def __init__(self, width: int = 1, height: int = 1, *, presenter: Presenter | None = None) -> None:
        if width <= 0 or height <= 0:
            raise DrawSurfaceUnavailable(f"Cannot create a {width}x{height} surface")
        self._image: Image.Image | None = Image.new("RGBA", (width, height), TRANSPARENT)
        self._presenter = presenter
        self._detached = False

    @property
    def detached(self) -> bool:
        """True once ownership has been transferred away from this handle."""
        return self._detached

    def _owned_image(self) -> Image.Image:
        if self._detached or self._image is None:
            raise DrawSurfaceUnavailable(
                "Surface handle was transferred and can no longer be used"
            )
        return self._image

    def transfer(self) -> DrawSurface:
        """Move ownership to a new handle and invalidate this one."""
        image = self._owned_image()
        owner = DrawSurface.__new__(DrawSurface)
        owner._image = image
        owner._presenter = self._presenter
        owner._detached = False

        self._image = None
        self._presenter = None
        self._detached = True
        return owner

    @property
    def size(self) -> tuple[int, int]:
        return self._owned_image().size

    @property
    def image(self) -> Image.Image:
        """The live image. Only the owner draws into it."""
        return self._owned_image()

    def resize(self, width: int, height: int) -> None:
        """Replace the pixels with a cleared image of the given size."""
        self._owned_image()
        if width <= 0 or height <= 0:
            raise DrawSurfaceUnavailable(f"Cannot resize surface to {width}x{height}")
        self._image = Image.new("RGBA", (width, height), TRANSPARENT)

    def blit(self, layer: Image.Image) -> None:
        """Composite ``layer`` over the current pixels (source-over)."""
        image = self._owned_image()
        self._image = Image.alpha_composite(image, layer)

    def present(self) -> None:
        """Hand a copy of the current pixels to the presenter, if any."""
        image = self._owned_image()
        if self._presenter is not None:
            self._presenter(image.copy())


def png_presenter(path: str | Path) -> Presenter:
    """Presenter that writes every presented frame to ``path`` as PNG."""
    target = Path(path)

    def _write(image: Image.Image) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        image.save(target, format="PNG")

    return _write
