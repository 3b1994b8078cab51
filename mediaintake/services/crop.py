"""
Crop Transform Engine - Single Responsibility: crop/zoom/rotate an image.

A CropSession holds the interactive state (rectangle, zoom, rotation) for
one decoded source image. Committing renders it with a rotation-safe
two-pass raster:

1. the source is drawn centered on a square "safe area" canvas big enough
   to hold it at any angle, and the canvas is rotated about its center
   (translate -> rotate -> translate back);
2. the rotated raster is pasted into an output canvas the size of the crop
   rectangle, offset so the rectangle (given in pre-rotation source
   coordinates) lands in the output frame.

The result is encoded as JPEG and returned as a new SourceFile.
"""
import asyncio
import io
import logging
import math
import time
from typing import Callable, Optional, Tuple

from PIL import Image, ImageOps

from ..exceptions import CropFailed, DecodeError
from ..models import CropArea, CropState, SourceFile

logger = logging.getLogger(__name__)

MIN_ZOOM = 1.0
MAX_ZOOM = 3.0
DEFAULT_QUALITY = 95

Matrix = Tuple[Tuple[float, float, float], Tuple[float, float, float], Tuple[float, float, float]]


def safe_area_for(width: int, height: int) -> int:
    """Side of a square that contains a width x height image at any rotation."""
    return 2 * math.ceil((max(width, height) / 2) * math.sqrt(2))


def normalize_rotation(degrees: float) -> float:
    """Map any angle into [0, 360)."""
    value = float(degrees) % 360.0
    return 0.0 if value >= 360.0 else value


# -- affine helpers ---------------------------------------------------------

def _translate(tx: float, ty: float) -> Matrix:
    return ((1.0, 0.0, tx), (0.0, 1.0, ty), (0.0, 0.0, 1.0))


def _rotate(degrees: float) -> Matrix:
    # Clockwise on a y-down raster. Rounded so right angles map exactly.
    rad = math.radians(degrees)
    cos_t = round(math.cos(rad), 12)
    sin_t = round(math.sin(rad), 12)
    return ((cos_t, -sin_t, 0.0), (sin_t, cos_t, 0.0), (0.0, 0.0, 1.0))


def _matmul(a: Matrix, b: Matrix) -> Matrix:
    return tuple(
        tuple(sum(a[i][k] * b[k][j] for k in range(3)) for j in range(3))
        for i in range(3)
    )


def rotation_about(degrees: float, cx: float, cy: float) -> Matrix:
    """Forward matrix rotating about (cx, cy): T(c) . R . T(-c)."""
    return _matmul(_matmul(_translate(cx, cy), _rotate(degrees)), _translate(-cx, -cy))


def pillow_affine(forward: Matrix) -> Tuple[float, float, float, float, float, float]:
    """
    Pillow's AFFINE transform maps output pixels back to input pixels, so it
    needs the inverse of the forward matrix.
    """
    (a, b, c), (d, e, f), _ = forward
    det = a * e - b * d
    if det == 0:
        raise ValueError("Affine matrix is not invertible")
    ia, ib = e / det, -b / det
    id_, ie = -d / det, a / det
    ic = -(ia * c + ib * f)
    if_ = -(id_ * c + ie * f)
    return (ia, ib, ic, id_, ie, if_)


# -- session ----------------------------------------------------------------

class CropSession:
    """
    Interactive crop state bound to one decoded image.

    Until set_crop_area() is called the crop rectangle follows zoom, pan and
    rotation: it is the largest rectangle of the session's aspect ratio that
    fits the rotated image, shrunk by the zoom factor.
    """

    def __init__(self, image: Image.Image, aspect_ratio: float = 1.0, entry_id: Optional[str] = None):
        if aspect_ratio <= 0:
            raise ValueError("aspect_ratio must be positive")
        self._image = image
        self._aspect_ratio = float(aspect_ratio)
        self.entry_id = entry_id
        self._zoom = MIN_ZOOM
        self._rotation = 0.0
        self._pan = (0.0, 0.0)
        self._area: Optional[CropArea] = None
        self._closed = False

    @property
    def image(self) -> Image.Image:
        self._ensure_open()
        return self._image

    @property
    def source_size(self) -> Tuple[int, int]:
        return self._image.size

    @property
    def safe_area(self) -> int:
        return safe_area_for(*self.source_size)

    @property
    def placement(self) -> Tuple[int, int]:
        """Top-left of the source inside the safe-area canvas."""
        width, height = self.source_size
        safe = self.safe_area
        return (safe - width) // 2, (safe - height) // 2

    @property
    def aspect_ratio(self) -> float:
        return self._aspect_ratio

    @property
    def zoom(self) -> float:
        return self._zoom

    @property
    def rotation(self) -> float:
        return self._rotation

    @property
    def closed(self) -> bool:
        return self._closed

    def _ensure_open(self) -> None:
        if self._closed:
            raise CropFailed("Crop session is closed")

    def set_zoom(self, zoom: float) -> float:
        self._zoom = min(max(float(zoom), MIN_ZOOM), MAX_ZOOM)
        return self._zoom

    def set_rotation(self, degrees: float) -> float:
        self._rotation = normalize_rotation(degrees)
        return self._rotation

    def rotate_by(self, degrees: float) -> float:
        return self.set_rotation(self._rotation + degrees)

    def set_pan(self, dx: float, dy: float) -> None:
        """Offset of the crop center from the image center, in source pixels."""
        self._pan = (float(dx), float(dy))

    def fit_crop_area(self) -> CropArea:
        width, height = self.source_size
        rad = math.radians(self._rotation)
        cos_t, sin_t = abs(math.cos(rad)), abs(math.sin(rad))
        bound_w = width * cos_t + height * sin_t
        bound_h = width * sin_t + height * cos_t

        if bound_w / bound_h > self._aspect_ratio:
            crop_h = bound_h
            crop_w = crop_h * self._aspect_ratio
        else:
            crop_w = bound_w
            crop_h = crop_w / self._aspect_ratio
        crop_w = max(1, round(crop_w / self._zoom))
        crop_h = max(1, round(crop_h / self._zoom))

        cx = width / 2 + self._pan[0]
        cy = height / 2 + self._pan[1]
        return self._contain(round(cx - crop_w / 2), round(cy - crop_h / 2), crop_w, crop_h)

    def _contain(self, x: int, y: int, width: int, height: int) -> CropArea:
        """Clamp the rectangle into the safe-area canvas (source coordinates)."""
        safe = self.safe_area
        if width > safe or height > safe:
            raise ValueError(f"Crop {width}x{height} does not fit the {safe}px safe area")
        px, py = self.placement
        x = min(max(x, -px), safe - px - width)
        y = min(max(y, -py), safe - py - height)
        return CropArea(int(x), int(y), int(width), int(height))

    def set_crop_area(self, x: int, y: int, width: int, height: int) -> CropArea:
        """Pin the crop rectangle in pixel space; it no longer follows zoom/pan."""
        width, height = int(round(width)), int(round(height))
        if width < 1 or height < 1:
            raise ValueError(f"Crop area must be at least 1x1, got {width}x{height}")
        self._area = self._contain(int(round(x)), int(round(y)), width, height)
        return self._area

    def reset_crop_area(self) -> None:
        self._area = None

    @property
    def area(self) -> CropArea:
        return self._area if self._area is not None else self.fit_crop_area()

    def snapshot(self) -> CropState:
        return CropState(
            source_size=self.source_size,
            area=self.area,
            zoom=self._zoom,
            rotation=self._rotation,
            aspect_ratio=self._aspect_ratio,
        )

    def cancel(self) -> None:
        """Discard the session; nothing is written anywhere."""
        if self._closed:
            return
        self._closed = True
        self._image.close()


# -- engine -----------------------------------------------------------------

class CropTransformEngine:
    """Opens crop sessions and renders/encodes them."""

    def __init__(
        self,
        aspect_ratio: float = 1.0,
        quality: int = DEFAULT_QUALITY,
        clock: Callable[[], float] = time.time,
    ):
        self._aspect_ratio = aspect_ratio
        self._quality = quality
        self._clock = clock

    @staticmethod
    def decode(data: bytes) -> Image.Image:
        """Decode bytes into an upright, fully loaded image."""
        try:
            with Image.open(io.BytesIO(data)) as im:
                im.load()
                return ImageOps.exif_transpose(im)
        except (OSError, ValueError, Image.DecompressionBombError) as e:
            raise DecodeError(f"Could not decode image: {e}") from e

    async def open(self, file: SourceFile, entry_id: Optional[str] = None) -> CropSession:
        """Decode the file off the event loop and start a session on it."""
        loop = asyncio.get_event_loop()
        image = await loop.run_in_executor(None, self.decode, file.data)
        logger.debug("Opened crop session for %s (%dx%d)", file.name, *image.size)
        return CropSession(image, aspect_ratio=self._aspect_ratio, entry_id=entry_id)

    def render(self, session: CropSession) -> Image.Image:
        """Rotate on the safe-area canvas and cut the crop rectangle out of it."""
        source = session.image.convert("RGBA")
        safe = session.safe_area
        px, py = session.placement

        canvas = Image.new("RGBA", (safe, safe), (0, 0, 0, 0))
        canvas.paste(source, (px, py))

        rotation = session.rotation
        if rotation:
            forward = rotation_about(rotation, safe / 2, safe / 2)
            resample = Image.Resampling.NEAREST if rotation % 90 == 0 else Image.Resampling.BICUBIC
            canvas = canvas.transform(
                (safe, safe),
                Image.Transform.AFFINE,
                pillow_affine(forward),
                resample=resample,
            )

        area = session.area
        output = Image.new("RGBA", area.size, (0, 0, 0, 0))
        output.paste(canvas, (-px - area.x, -py - area.y))
        return output

    def encode(self, image: Image.Image) -> bytes:
        try:
            buffer = io.BytesIO()
            image.convert("RGB").save(buffer, format="JPEG", quality=self._quality)
        except (OSError, ValueError, SystemError) as e:
            raise CropFailed(f"Could not encode cropped image: {e}") from e
        data = buffer.getvalue()
        if not data:
            raise CropFailed("Cropped image is empty")
        return data

    def cropped_name(self) -> str:
        return f"cropped-{int(self._clock() * 1000)}.jpg"

    def _commit_sync(self, session: CropSession) -> SourceFile:
        data = self.encode(self.render(session))
        return SourceFile(name=self.cropped_name(), data=data, mime_type="image/jpeg")

    async def commit(self, session: CropSession) -> SourceFile:
        """Render and encode the session; closes it on success."""
        loop = asyncio.get_event_loop()
        cropped = await loop.run_in_executor(None, self._commit_sync, session)
        logger.info(
            "Cropped %dx%d at %.0f deg -> %s (%d bytes)",
            session.area.width, session.area.height, session.rotation, cropped.name, cropped.size,
        )
        session.cancel()
        return cropped
