"""Tests for the crop transform engine."""
import io
from unittest.mock import MagicMock

import pytest
from PIL import Image

from mediaintake.exceptions import CropFailed, DecodeError
from mediaintake.models import CropArea, SourceFile
from mediaintake.services.crop import (
    CropSession,
    CropTransformEngine,
    normalize_rotation,
    pillow_affine,
    rotation_about,
    safe_area_for,
)

from helpers import gradient_image


def _session(width=4, height=2, aspect_ratio=1.0):
    return CropSession(gradient_image(width, height), aspect_ratio=aspect_ratio)


class TestGeometry:
    @pytest.mark.parametrize("size,expected", [
        ((4, 2), 6),
        ((100, 50), 142),
        ((50, 100), 142),
        ((1, 1), 2),
    ])
    def test_safe_area(self, size, expected):
        assert safe_area_for(*size) == expected

    def test_safe_area_holds_the_diagonal(self):
        for w, h in [(3, 7), (640, 480), (1920, 1080)]:
            assert safe_area_for(w, h) >= (w ** 2 + h ** 2) ** 0.5

    @pytest.mark.parametrize("angle,expected", [
        (0, 0.0), (90, 90.0), (360, 0.0), (450, 90.0), (-90, 270.0), (-360, 0.0), (359.5, 359.5),
    ])
    def test_normalize_rotation(self, angle, expected):
        assert normalize_rotation(angle) == expected
        assert 0 <= normalize_rotation(angle) < 360

    def test_rotation_about_center_keeps_center(self):
        forward = rotation_about(37, 10, 20)
        (a, b, c), (d, e, f), _ = forward
        assert a * 10 + b * 20 + c == pytest.approx(10)
        assert d * 10 + e * 20 + f == pytest.approx(20)

    def test_pillow_affine_is_inverse(self):
        forward = rotation_about(90, 3, 3)
        ia, ib, ic, id_, ie, if_ = pillow_affine(forward)
        (a, b, c), (d, e, f), _ = forward
        x, y = 1.0, 2.0
        fx, fy = a * x + b * y + c, d * x + e * y + f
        assert ia * fx + ib * fy + ic == pytest.approx(x)
        assert id_ * fx + ie * fy + if_ == pytest.approx(y)


class TestCropSession:
    def test_zoom_is_clamped(self):
        session = _session()
        assert session.set_zoom(5) == 3.0
        assert session.set_zoom(0.2) == 1.0
        assert session.set_zoom(2.5) == 2.5

    def test_rotation_is_normalized(self):
        session = _session()
        assert session.set_rotation(-90) == 270.0
        assert session.rotate_by(180) == 90.0
        assert session.rotation == 90.0

    def test_fit_crop_area_landscape(self):
        session = CropSession(Image.new("RGB", (200, 100)), aspect_ratio=1.0)
        assert session.area == CropArea(50, 0, 100, 100)

    def test_fit_crop_area_follows_zoom(self):
        session = CropSession(Image.new("RGB", (200, 100)), aspect_ratio=1.0)
        session.set_zoom(2)
        assert session.area == CropArea(75, 25, 50, 50)

    def test_fit_crop_area_follows_rotation(self):
        session = CropSession(Image.new("RGB", (200, 100)), aspect_ratio=2.0)
        assert session.area == CropArea(0, 0, 200, 100)
        session.set_rotation(90)
        # rotated bounds are 100x200; widest 2:1 rect is 100x50
        assert session.area == CropArea(50, 25, 100, 50)

    def test_fit_crop_area_follows_pan(self):
        session = CropSession(Image.new("RGB", (200, 100)), aspect_ratio=1.0)
        session.set_pan(30, 0)
        assert session.area == CropArea(80, 0, 100, 100)

    def test_pinned_area(self):
        session = CropSession(Image.new("RGB", (200, 100)))
        area = session.set_crop_area(10, 20, 30, 40)
        session.set_zoom(3)
        assert session.area == area == CropArea(10, 20, 30, 40)
        session.reset_crop_area()
        assert session.area != area

    def test_area_is_kept_inside_safe_canvas(self):
        session = CropSession(Image.new("RGB", (200, 100)))
        safe = session.safe_area
        px, py = session.placement
        area = session.set_crop_area(-500, 900, 10, 10)
        assert area.x == -px
        assert area.y == safe - py - 10

    def test_area_larger_than_safe_canvas(self):
        session = CropSession(Image.new("RGB", (200, 100)))
        with pytest.raises(ValueError):
            session.set_crop_area(0, 0, session.safe_area + 1, 10)

    def test_empty_area(self):
        with pytest.raises(ValueError):
            _session().set_crop_area(0, 0, 0, 5)

    def test_snapshot(self):
        session = _session()
        session.set_rotation(45)
        session.set_zoom(1.5)
        state = session.snapshot()
        assert state.source_size == (4, 2)
        assert state.rotation == 45
        assert state.zoom == 1.5
        assert state.area == session.area

    def test_cancel_is_idempotent(self):
        session = _session()
        session.cancel()
        session.cancel()
        assert session.closed
        with pytest.raises(CropFailed):
            session.image


class TestRender:
    def test_zero_rotation_full_crop_is_identity(self):
        source = gradient_image(7, 5)
        session = CropSession(source.copy())
        session.set_crop_area(0, 0, 7, 5)

        output = CropTransformEngine().render(session)

        assert output.size == (7, 5)
        assert output.convert("RGB").tobytes() == source.tobytes()
        assert output.getextrema()[3] == (255, 255)

    def test_zero_rotation_partial_crop(self):
        source = gradient_image(10, 8)
        session = CropSession(source.copy())
        session.set_crop_area(2, 3, 4, 2)

        output = CropTransformEngine().render(session)

        assert output.convert("RGB").tobytes() == source.crop((2, 3, 6, 5)).tobytes()

    def test_crop_outside_image_is_transparent(self):
        session = CropSession(gradient_image(4, 2))
        session.set_crop_area(-1, 0, 2, 2)
        output = CropTransformEngine().render(session)
        assert output.getpixel((0, 0))[3] == 0
        assert output.getpixel((1, 0))[3] == 255

    def test_quarter_turn_is_clockwise(self):
        source = gradient_image(4, 2)
        session = CropSession(source.copy())
        session.set_rotation(90)
        session.set_crop_area(0, 0, 4, 2)

        output = CropTransformEngine().render(session)

        assert output.size == (4, 2)
        # On the 6x6 safe canvas the source sits at (1, 2); a clockwise quarter
        # turn about (3, 3) sends source pixel (sx, sy) to output (2 - sy, sx - 1).
        for sx, sy in [(1, 0), (2, 0), (1, 1), (2, 1)]:
            assert output.getpixel((2 - sy, sx - 1)) == source.getpixel((sx, sy)) + (255,)
        assert output.getpixel((0, 0))[3] == 0
        assert output.getpixel((3, 1))[3] == 0

    def test_full_turn_matches_source(self):
        source = gradient_image(6, 4)
        session = CropSession(source.copy())
        session.set_rotation(180)
        session.rotate_by(180)
        session.set_crop_area(0, 0, 6, 4)
        output = CropTransformEngine().render(session)
        assert output.convert("RGB").tobytes() == source.tobytes()

    def test_arbitrary_angle_keeps_output_size(self):
        session = CropSession(gradient_image(30, 20))
        session.set_rotation(33)
        session.set_crop_area(5, 5, 12, 9)
        assert CropTransformEngine().render(session).size == (12, 9)

    def test_rgba_source(self):
        session = CropSession(Image.new("RGBA", (5, 5), (10, 20, 30, 128)))
        session.set_crop_area(0, 0, 5, 5)
        assert CropTransformEngine().render(session).getpixel((2, 2)) == (10, 20, 30, 128)


class TestEncodeAndCommit:
    def test_encode_jpeg(self):
        data = CropTransformEngine().encode(Image.new("RGBA", (8, 8), (255, 0, 0, 255)))
        with Image.open(io.BytesIO(data)) as im:
            assert im.format == "JPEG"
            assert im.size == (8, 8)

    def test_encode_error_is_crop_failed(self):
        image = MagicMock()
        image.convert.return_value.save.side_effect = OSError("encoder exploded")
        with pytest.raises(CropFailed, match="encoder exploded"):
            CropTransformEngine().encode(image)

    def test_encode_empty_output_is_crop_failed(self):
        image = MagicMock()
        with pytest.raises(CropFailed, match="empty"):
            CropTransformEngine().encode(image)

    def test_cropped_name_uses_milliseconds(self):
        engine = CropTransformEngine(clock=lambda: 1700000000.5)
        assert engine.cropped_name() == "cropped-1700000000500.jpg"

    @pytest.mark.asyncio
    async def test_open_and_commit(self, make_image):
        engine = CropTransformEngine(clock=lambda: 1700000000.5)
        session = await engine.open(make_image(width=40, height=20), entry_id="e1")
        assert session.entry_id == "e1"
        assert session.source_size == (40, 20)

        session.set_crop_area(0, 0, 20, 20)
        cropped = await engine.commit(session)

        assert cropped.name == "cropped-1700000000500.jpg"
        assert cropped.mime_type == "image/jpeg"
        with Image.open(io.BytesIO(cropped.data)) as im:
            assert im.size == (20, 20)
        assert session.closed

    @pytest.mark.asyncio
    async def test_open_undecodable(self):
        engine = CropTransformEngine()
        with pytest.raises(DecodeError):
            await engine.open(SourceFile("broken.png", b"not an image", "image/png"))

    @pytest.mark.asyncio
    async def test_commit_closed_session(self, make_image):
        engine = CropTransformEngine()
        session = await engine.open(make_image())
        session.cancel()
        with pytest.raises(CropFailed):
            await engine.commit(session)

    def test_decode_applies_exif_orientation(self):
        image = gradient_image(4, 2)
        exif = Image.Exif()
        exif[0x0112] = 6  # rotate 90 CW on display
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", exif=exif.tobytes())
        decoded = CropTransformEngine.decode(buffer.getvalue())
        assert decoded.size == (2, 4)
