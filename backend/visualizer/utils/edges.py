"""Architectural edge map for structural conditioning.

Grayscale -> Gaussian blur -> fit inside 1024px -> Sobel gradient -> threshold.
The result is white edges on black, sent to the image model next to the
source photo so walls, counters and openings stay put.
"""

from __future__ import annotations

import math

import structlog
from PIL import Image, ImageChops, ImageDraw, ImageFilter

from visualizer.models.contracts import GeneratedImage, ReferenceImage, VisualizationConfig
from visualizer.utils.image import open_image, to_png_bytes

logger = structlog.get_logger()

MAX_EDGE_SIZE = 1024
BLUR_RADIUS = 1.5
EDGE_THRESHOLD = 50

_SOBEL_X = [-1, 0, 1, -2, 0, 2, -1, 0, 1]
_SOBEL_Y = [-1, -2, -1, 0, 0, 0, 1, 2, 1]


def _abs_gradient(gray: Image.Image, kernel: list[int]) -> Image.Image:
    # Kernel output clips at 0, so the mirrored kernel recovers the negative half.
    positive = gray.filter(ImageFilter.Kernel((3, 3), kernel, scale=1))
    negative = gray.filter(ImageFilter.Kernel((3, 3), [-k for k in kernel], scale=1))
    return ImageChops.lighter(positive, negative)


def edge_map(img: Image.Image) -> Image.Image:
    """Binary Sobel edge image ("L" mode) no larger than MAX_EDGE_SIZE on either side."""
    gray = img.convert("L").filter(ImageFilter.GaussianBlur(BLUR_RADIUS))
    gray.thumbnail((MAX_EDGE_SIZE, MAX_EDGE_SIZE), Image.LANCZOS)

    gx = _abs_gradient(gray, _SOBEL_X)
    gy = _abs_gradient(gray, _SOBEL_Y)

    edges = Image.new("L", gray.size)
    edges.putdata(
        [
            255 if math.hypot(x, y) > EDGE_THRESHOLD else 0
            for x, y in zip(gx.getdata(), gy.getdata(), strict=True)
        ]
    )
    # Kernel filters pass the outermost pixels through unfiltered
    ImageDraw.Draw(edges).rectangle([0, 0, edges.width - 1, edges.height - 1], outline=0)
    return edges


def extract_edges(photo: GeneratedImage) -> ReferenceImage | None:
    """Edge map reference image for ``photo``, or None when the photo can't be decoded."""
    try:
        img = open_image(photo.data)
    except ValueError:
        logger.warning("edge_detection_decode_failed", size_bytes=len(photo.data))
        return None

    edges = edge_map(img)
    logger.info("edge_map_extracted", width=edges.width, height=edges.height)
    return ReferenceImage(data=to_png_bytes(edges), mime_type="image/png", role="edges")


def attach_edge_map(config: VisualizationConfig, photo: GeneratedImage) -> VisualizationConfig:
    """Config with an edge-map reference added, unless one is already present."""
    if any(ref.role == "edges" for ref in config.reference_images):
        return config if config.has_edge_map else config.model_copy(update={"has_edge_map": True})
    edges = extract_edges(photo)
    if edges is None:
        return config
    return config.model_copy(
        update={"reference_images": [*config.reference_images, edges], "has_edge_map": True}
    )
