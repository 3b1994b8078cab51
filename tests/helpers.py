"""Test helpers shared across modules."""
import asyncio

from PIL import Image


def gradient_image(width: int, height: int) -> Image.Image:
    """RGB image where every pixel has a distinct, position-derived color."""
    image = Image.new("RGB", (width, height))
    for x in range(width):
        for y in range(height):
            image.putpixel((x, y), ((x * 37) % 256, (y * 53) % 256, (x * 7 + y * 11) % 256))
    return image


class Gate:
    """Upload sink that blocks until released."""

    def __init__(self, error=None):
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.error = error
        self.calls = []

    async def __call__(self, files):
        self.calls.append(list(files))
        self.started.set()
        await self.release.wait()
        if self.error:
            raise self.error
