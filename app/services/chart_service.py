"""
Chart generation through the Plotly REST API.

Builds a figure dict for a line, bar or scatter chart and posts it to
``{PLOTLY_BASE_URL}/plots``; the response carries the public chart URL.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Union

import httpx

from app.config import settings

logger = logging.getLogger(__name__)

CHART_TYPES = ("line", "bar", "scatter")

Value = Union[int, float, str]


class ChartServiceError(RuntimeError):
    """Plotly rejected the figure or could not be reached."""


@dataclass
class ChartResult:
    url: str
    filename: str
    message: str = ""


def build_figure(
    chart_type: str,
    x: Sequence[Value],
    y: Sequence[float],
    title: str = "",
    x_label: str = "X Axis",
    y_label: str = "Y Axis",
) -> Dict[str, Any]:
    """
    Plotly figure dict for one data series.

    Raises:
        ValueError: Unknown chart type, empty series or mismatched lengths.
    """
    if chart_type not in CHART_TYPES:
        raise ValueError(f"Unsupported chart type {chart_type!r}; expected one of {CHART_TYPES}")
    if not x or not y:
        raise ValueError("Chart data must not be empty")
    if len(x) != len(y):
        raise ValueError(f"x and y must have the same length ({len(x)} != {len(y)})")

    trace: Dict[str, Any] = {"x": list(x), "y": list(y), "name": "Data Series"}
    if chart_type == "bar":
        trace["type"] = "bar"
    else:
        trace["type"] = "scatter"
        trace["mode"] = "lines+markers" if chart_type == "line" else "markers"

    return {
        "data": [trace],
        "layout": {
            "title": title or f"{chart_type.title()} Chart",
            "xaxis": {"title": x_label},
            "yaxis": {"title": y_label},
        },
    }


def _filename_for(title: str) -> str:
    return re.sub(r"\s+", "_", title.strip().lower()) or "chart"


async def create_chart(
    chart_type: str,
    x: List[Value],
    y: List[float],
    title: str = "",
    x_label: str = "X Axis",
    y_label: str = "Y Axis",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ChartResult:
    """Validate, build and upload a chart; returns its Plotly URL."""
    figure = build_figure(chart_type, x, y, title, x_label, y_label)
    if not settings.PLOTLY_API_KEY:
        raise ChartServiceError("Plotly API key not configured")

    filename = _filename_for(figure["layout"]["title"])
    payload = {
        "figure": figure,
        "filename": filename,
        "fileopt": "overwrite",
        "sharing": "public",
        "world_readable": True,
    }
    auth = (settings.PLOTLY_USERNAME, settings.PLOTLY_API_KEY) if settings.PLOTLY_USERNAME else None
    headers = {"Plotly-Client-Platform": "python"}
    if auth is None:
        headers["Authorization"] = f"Bearer {settings.PLOTLY_API_KEY}"

    try:
        async with httpx.AsyncClient(timeout=30.0, transport=transport, auth=auth) as client:
            resp = await client.post(f"{settings.PLOTLY_BASE_URL}/plots", headers=headers, json=payload)
    except httpx.HTTPError as exc:
        raise ChartServiceError(f"Failed to generate chart: {exc}") from exc

    try:
        body = resp.json()
    except ValueError:
        body = {}

    if resp.status_code >= 400:
        error = body.get("error")
        message = error.get("message") if isinstance(error, dict) else error
        raise ChartServiceError(
            f"Failed to generate chart: Plotly API error: {message or resp.reason_phrase}"
        )

    url = body.get("url") or (body.get("file") or {}).get("web_url", "")
    if not url:
        raise ChartServiceError("Failed to generate chart: no URL in Plotly response")

    logger.info("Chart %r uploaded to %s", filename, url)
    return ChartResult(url=url, filename=body.get("filename", filename), message=body.get("message", ""))
