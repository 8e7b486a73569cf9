"""Tests for Pillow helpers and the architectural edge map."""

from __future__ import annotations

import io

import pytest
from PIL import Image

from tests.helpers import make_mpo_bytes, make_photo_bytes
from visualizer.models.contracts import GeneratedImage, ReferenceImage, VisualizationConfig
from visualizer.utils.edges import MAX_EDGE_SIZE, attach_edge_map, edge_map, extract_edges
from visualizer.utils.image import (
    detect_aspect_ratio,
    detect_mime_type,
    normalize_photo,
    open_image,
    to_png_bytes,
)


class TestOpenImage:
    def test_decodes_valid_bytes(self) -> None:
        img = open_image(make_photo_bytes())
        assert img.size == (160, 120)

    def test_rejects_garbage(self) -> None:
        with pytest.raises(ValueError, match="Could not decode image"):
            open_image(b"not an image")

    def test_rejects_truncated(self) -> None:
        data = make_photo_bytes(fmt="PNG")
        with pytest.raises(ValueError):
            open_image(data[: len(data) // 2])


class TestDetectMimeType:
    def test_jpeg(self) -> None:
        assert detect_mime_type(make_photo_bytes(fmt="JPEG")) == "image/jpeg"

    def test_png(self) -> None:
        assert detect_mime_type(make_photo_bytes(fmt="PNG")) == "image/png"

    def test_webp(self) -> None:
        assert detect_mime_type(make_photo_bytes(fmt="WEBP")) == "image/webp"

    def test_unknown_uses_default(self) -> None:
        assert detect_mime_type(b"garbage", default="image/png") == "image/png"

    def test_mpo_reads_as_jpeg(self) -> None:
        data = make_mpo_bytes()
        assert Image.open(io.BytesIO(data)).format == "MPO"
        assert detect_mime_type(data) == "image/jpeg"

    def test_unsupported_format_uses_default(self) -> None:
        assert detect_mime_type(make_photo_bytes(fmt="BMP"), default="image/png") == "image/png"


class TestNormalizePhoto:
    def test_mpo_kept_as_jpeg(self) -> None:
        data = make_mpo_bytes()
        photo = normalize_photo(data)
        assert photo.data == data
        assert photo.mime_type == "image/jpeg"

    def test_bmp_reencoded_as_png(self) -> None:
        photo = normalize_photo(make_photo_bytes(fmt="BMP"))
        assert photo.mime_type == "image/png"
        assert Image.open(io.BytesIO(photo.data)).format == "PNG"

    def test_cmyk_tiff_reencoded_as_png(self) -> None:
        buf = io.BytesIO()
        Image.new("CMYK", (32, 24)).save(buf, format="TIFF")
        photo = normalize_photo(buf.getvalue())
        assert photo.mime_type == "image/png"
        assert Image.open(io.BytesIO(photo.data)).mode == "RGB"

    def test_rejects_garbage(self) -> None:
        with pytest.raises(ValueError):
            normalize_photo(b"not an image")


class TestDetectAspectRatio:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            ((1024, 1024), "1:1"),
            ((4032, 3024), "4:3"),
            ((3024, 4032), "3:4"),
            ((1920, 1080), "16:9"),
            ((1080, 1920), "9:16"),
            ((3000, 1000), "16:9"),
        ],
    )
    def test_snaps_to_supported(self, size: tuple[int, int], expected: str) -> None:
        assert detect_aspect_ratio(Image.new("RGB", size)) == expected


class TestEdgeMap:
    def test_binary_output(self) -> None:
        edges = edge_map(open_image(make_photo_bytes()))
        assert edges.mode == "L"
        assert set(edges.getdata()) <= {0, 255}

    def test_finds_edges_of_drawn_shapes(self) -> None:
        edges = edge_map(open_image(make_photo_bytes()))
        assert 255 in set(edges.getdata())

    def test_flat_image_has_no_edges(self) -> None:
        edges = edge_map(Image.new("RGB", (64, 64), color=(128, 128, 128)))
        assert set(edges.getdata()) == {0}

    def test_large_image_is_downscaled(self) -> None:
        edges = edge_map(Image.new("RGB", (2048, 1536), color=(128, 128, 128)))
        assert max(edges.size) == MAX_EDGE_SIZE
        assert edges.size == (1024, 768)


class TestExtractEdges:
    def test_returns_png_reference(self, room_photo: GeneratedImage) -> None:
        ref = extract_edges(room_photo)
        assert ref is not None
        assert ref.role == "edges"
        assert ref.mime_type == "image/png"
        assert Image.open(io.BytesIO(ref.data)).format == "PNG"

    def test_undecodable_photo_returns_none(self) -> None:
        assert extract_edges(GeneratedImage(data=b"nope", mime_type="image/jpeg")) is None


class TestAttachEdgeMap:
    def test_adds_reference_and_flag(self, room_photo: GeneratedImage) -> None:
        config = VisualizationConfig(room_type="kitchen", style="modern")
        updated = attach_edge_map(config, room_photo)
        assert updated.has_edge_map is True
        assert [ref.role for ref in updated.reference_images] == ["edges"]
        assert config.reference_images == []

    def test_existing_edges_not_duplicated(self, room_photo: GeneratedImage) -> None:
        existing = ReferenceImage(data=b"edges", role="edges")
        config = VisualizationConfig(
            room_type="kitchen", style="modern", reference_images=[existing]
        )
        updated = attach_edge_map(config, room_photo)
        assert updated.reference_images == [existing]
        assert updated.has_edge_map is True

    def test_undecodable_photo_leaves_config(self) -> None:
        config = VisualizationConfig(room_type="kitchen", style="modern")
        photo = GeneratedImage(data=b"nope", mime_type="image/jpeg")
        assert attach_edge_map(config, photo) is config


class TestToPngBytes:
    def test_round_trips_size(self) -> None:
        data = to_png_bytes(Image.new("L", (10, 20)))
        assert Image.open(io.BytesIO(data)).size == (10, 20)
