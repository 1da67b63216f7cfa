"""Tests for PNG decoding and size normalization."""

import io

import numpy as np
import pytest
from PIL import Image

from src.errors import DecodeError, FilesystemError
from src.imaging.normalizer import decode_png, normalize, resample
from src.models.visual import RasterImage


class TestDecodePng:
    """Tests for decode_png."""

    def test_decodes_rgba(self, tmp_path, solid_pixels, write_png):
        pixels = solid_pixels(6, 4, (10, 20, 30, 200))
        path = write_png(tmp_path / "a.png", pixels)

        raster = decode_png(path.read_bytes())

        assert raster.size == (6, 4)
        np.testing.assert_array_equal(raster.to_array(), pixels)

    def test_rgb_png_gets_opaque_alpha(self):
        buffer = io.BytesIO()
        Image.new("RGB", (3, 2), (255, 0, 0)).save(buffer, format="PNG")

        raster = decode_png(buffer.getvalue())

        assert raster.to_array()[0, 0].tolist() == [255, 0, 0, 255]

    def test_garbage_raises_decode_error(self):
        with pytest.raises(DecodeError):
            decode_png(b"definitely not an image")

    def test_truncated_png_raises_decode_error(self, tmp_path, write_png):
        gradient = (np.arange(64 * 64 * 4) % 251).astype(np.uint8).reshape(64, 64, 4)
        data = write_png(tmp_path / "a.png", gradient).read_bytes()
        with pytest.raises(DecodeError):
            decode_png(data[: len(data) // 2])

    def test_jpeg_rejected(self):
        buffer = io.BytesIO()
        Image.new("RGB", (3, 2), (0, 0, 255)).save(buffer, format="JPEG")
        with pytest.raises(DecodeError) as exc:
            decode_png(buffer.getvalue())
        assert "JPEG" in str(exc.value)


class TestResample:
    """Tests for high-quality resizing."""

    def test_exact_target_size(self):
        image = Image.new("RGBA", (80, 40), (1, 2, 3, 255))
        raster = resample(image, 40, 20)
        assert raster.size == (40, 20)

    def test_uniform_colour_survives(self):
        image = Image.new("RGBA", (80, 40), (90, 120, 150, 255))
        raster = resample(image, 33, 17)
        drift = np.abs(raster.to_array().astype(int) - np.array([90, 120, 150, 255]))
        assert drift.max() <= 1

    def test_one_pixel_stripes_blend_to_gray(self, solid_pixels):
        pixels = solid_pixels(80, 20, (0, 0, 0, 255))
        pixels[:, 1::2] = (255, 255, 255, 255)

        halved = resample(Image.fromarray(pixels), 40, 10).to_array()

        # Picking single source columns would leave pure black or white.
        interior = halved[:, 4:-4, :3].astype(int)
        assert interior.min() >= 120
        assert interior.max() <= 136
        assert np.all(halved[..., 3] == 255)

    def test_thin_stroke_spread_over_neighbours(self, solid_pixels):
        pixels = solid_pixels(40, 10, (255, 255, 255, 255))
        pixels[:, 20] = (0, 0, 0, 255)

        row = resample(Image.fromarray(pixels), 20, 10).to_array()[5, :, 0].astype(int)

        assert 100 <= row[10] <= 155
        assert row[10] < row[9] < 255
        assert row[11] == 255


@pytest.mark.asyncio
class TestNormalize:
    """Tests for normalize against an expected raster."""

    async def test_same_size_returned_unchanged(self, store, temp_dir, two_tone_pixels, write_png):
        pixels = two_tone_pixels(40, 20)
        path = write_png(temp_dir / "actual.png", pixels)
        expected = RasterImage.from_array(pixels)

        actual = await normalize(path, expected, store)

        assert actual == expected

    async def test_larger_screenshot_resized_to_baseline(self, store, temp_dir, solid_pixels, write_png):
        path = write_png(temp_dir / "actual.png", solid_pixels(80, 40))
        expected = RasterImage.from_array(solid_pixels(40, 20))

        actual = await normalize(path, expected, store)

        assert actual.size == expected.size

    async def test_smaller_screenshot_resized_to_baseline(self, store, temp_dir, solid_pixels, write_png):
        path = write_png(temp_dir / "actual.png", solid_pixels(13, 7))
        expected = RasterImage.from_array(solid_pixels(40, 20))

        actual = await normalize(path, expected, store)

        assert actual.size == (40, 20)

    async def test_missing_file(self, store, temp_dir, gray_raster):
        with pytest.raises(FilesystemError):
            await normalize(temp_dir / "gone.png", gray_raster, store)

    async def test_corrupt_file(self, store, temp_dir, gray_raster):
        path = temp_dir / "corrupt.png"
        path.write_bytes(b"\x89PNG\r\n\x1a\nbroken")
        with pytest.raises(DecodeError):
            await normalize(path, gray_raster, store)
