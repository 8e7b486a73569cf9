"""Metric depth estimation through the Replicate predictions API.

The hosted Depth Anything model returns a grayscale depth map (lighter is
closer) and, when it can, the scene's metric depth range. Depth is optional
conditioning: every failure mode here logs and returns None so generation
goes ahead with whatever conditioning it already has.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx
import structlog

from visualizer.models.contracts import (
    DepthEstimate,
    DepthRange,
    GeneratedImage,
    ReferenceImage,
    VisualizationConfig,
)
from visualizer.utils.image import normalize_photo

logger = structlog.get_logger()

REPLICATE_BASE_URL = "https://api.replicate.com/v1"
DEFAULT_MIN_DEPTH_M = 0.1
DEFAULT_MAX_DEPTH_M = 10.0
POLL_INTERVAL_SECONDS = 1.0

_TERMINAL_STATUSES = ("succeeded", "failed", "canceled")


def _depth_map_url(output: Any) -> str | None:
    """The output is a bare URL, a dict with ``depth_map`` or a list of URLs."""
    if isinstance(output, str):
        return output or None
    if isinstance(output, dict):
        url = output.get("depth_map")
        return url if isinstance(url, str) and url else None
    if isinstance(output, list) and output and isinstance(output[0], str):
        return output[0]
    return None


def _depth_range(output: Any) -> DepthRange:
    if not isinstance(output, dict):
        return DepthRange(min_m=DEFAULT_MIN_DEPTH_M, max_m=DEFAULT_MAX_DEPTH_M)
    low = output.get("min_depth")
    high = output.get("max_depth")
    return DepthRange(
        min_m=float(low) if isinstance(low, int | float) else DEFAULT_MIN_DEPTH_M,
        max_m=float(high) if isinstance(high, int | float) else DEFAULT_MAX_DEPTH_M,
    )


class ReplicateDepthEstimator:
    """Depth estimator backed by a Replicate-hosted model.

    ``http_client`` is optional; without one each call opens its own
    ``httpx.AsyncClient``. The whole exchange (create, poll, download)
    shares one ``timeout`` budget.
    """

    def __init__(
        self,
        api_token: str,
        model: str,
        timeout: float,
        http_client: httpx.AsyncClient | None = None,
        poll_interval: float = POLL_INTERVAL_SECONDS,
    ) -> None:
        self._api_token = api_token
        self._model = model
        self._timeout = timeout
        self._http_client = http_client
        self._poll_interval = poll_interval

    async def estimate(self, photo: GeneratedImage) -> DepthEstimate | None:
        if not self._api_token:
            logger.info("depth_estimation_skipped", reason="REPLICATE_API_TOKEN not set")
            return None
        try:
            async with asyncio.timeout(self._timeout):
                if self._http_client is not None:
                    return await self._run(self._http_client, photo)
                async with httpx.AsyncClient() as client:
                    return await self._run(client, photo)
        except TimeoutError:
            logger.warning("depth_estimation_timeout", timeout_s=self._timeout)
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "depth_estimation_http_error",
                status=exc.response.status_code,
                url=str(exc.request.url)[:100],
            )
        except httpx.HTTPError as exc:
            logger.warning("depth_estimation_request_failed", error=type(exc).__name__)
        except ValueError as exc:
            # Malformed JSON or an undecodable depth image
            logger.warning("depth_estimation_bad_output", error=str(exc)[:200])
        return None

    async def _run(self, client: httpx.AsyncClient, photo: GeneratedImage) -> DepthEstimate | None:
        headers = {"Authorization": f"Bearer {self._api_token}"}
        resp = await client.post(
            f"{REPLICATE_BASE_URL}/models/{self._model}/predictions",
            headers={**headers, "Prefer": "wait"},
            json={"input": {"image": photo.to_data_url()}},
            timeout=self._timeout,
        )
        resp.raise_for_status()
        prediction: dict[str, Any] = resp.json()

        while prediction.get("status") not in _TERMINAL_STATUSES:
            poll_url = (prediction.get("urls") or {}).get("get")
            if not poll_url:
                logger.warning("depth_estimation_no_poll_url", status=prediction.get("status"))
                return None
            await asyncio.sleep(self._poll_interval)
            poll = await client.get(poll_url, headers=headers, timeout=self._timeout)
            poll.raise_for_status()
            prediction = poll.json()

        if prediction["status"] != "succeeded":
            logger.warning(
                "depth_estimation_prediction_failed",
                status=prediction["status"],
                error=str(prediction.get("error"))[:200],
            )
            return None

        output = prediction.get("output")
        url = _depth_map_url(output)
        if url is None:
            logger.warning("depth_estimation_no_output")
            return None

        image_resp = await client.get(url, timeout=self._timeout)
        image_resp.raise_for_status()
        depth_image = normalize_photo(image_resp.content)
        depth_range = _depth_range(output)
        logger.info(
            "depth_map_estimated",
            size_bytes=len(depth_image.data),
            min_m=depth_range.min_m,
            max_m=depth_range.max_m,
        )
        return DepthEstimate(
            depth_map=ReferenceImage(
                data=depth_image.data, mime_type=depth_image.mime_type, role="depth"
            ),
            depth_range=depth_range,
        )


def attach_depth_map(
    config: VisualizationConfig, estimate: DepthEstimate | None
) -> VisualizationConfig:
    """Config with the depth map added as a reference image, plus its metric range."""
    if estimate is None:
        return config
    references = [ref for ref in config.reference_images if ref.role != "depth"]
    return config.model_copy(
        update={
            "reference_images": [estimate.depth_map, *references],
            "has_depth_map": True,
            "depth_range": estimate.depth_range,
        }
    )
