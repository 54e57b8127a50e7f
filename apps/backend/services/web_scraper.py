"""
Optima AI - Web Scraper
=======================
anyapi.io scrape tool with optional CSS selector and attribute.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from config import Settings, get_settings
from logging_config import get_logger
import metrics as app_metrics

logger = get_logger(__name__)

INSTRUCTIONS_FOR_AI = (
    "The data below was scraped from the specified website using the provided CSS selector. "
    "Analyze and summarize this content for the user."
)

WEB_SCRAPER_TOOL = {
    "type": "function",
    "function": {
        "name": "webScraper",
        "description": "Scrape content from a website with optional CSS selectors",
        "parameters": {
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The URL of the website to scrape. Must be a valid URL with http:// or https:// prefix.",
                },
                "selector": {
                    "type": "string",
                    "description": 'Optional CSS selector to target specific elements on the page (e.g., "h1", ".content", "#main-article").',
                },
                "attribute": {
                    "type": "string",
                    "description": 'Optional attribute to extract from the selected elements (e.g., "href", "src"). If not provided, will return text content.',
                },
            },
            "required": ["url"],
        },
    },
}


def _now_iso() -> str:
    return datetime.now(tz=timezone.utc).isoformat().replace("+00:00", "Z")


class WebScraper:
    """
    Client for the anyapi.io scrape endpoint.

    ``scrape`` never raises; failures come back as an error object so the
    chat model can report them.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings or get_settings()
        self._transport = transport

    async def scrape(
        self,
        url: str,
        selector: Optional[str] = None,
        attribute: Optional[str] = None,
    ) -> Dict[str, Any]:
        logger.info("Scraping website", url=url, selector=selector)

        params = {"url": url, "apiKey": self.settings.anyapi_key or ""}
        if selector:
            params["selector"] = selector
            if attribute:
                params["attribute"] = attribute

        try:
            if not url.startswith(("http://", "https://")):
                raise ValueError("URL must start with http:// or https://")

            async with httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0), transport=self._transport) as client:
                response = await client.get(self.settings.anyapi_url, params=params)

            if response.status_code >= 400:
                raise ValueError(f"Scraping failed with status: {response.status_code}")

            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            app_metrics.external_service_failures_total.labels(service="anyapi").inc()
            logger.error("Web scraper failed", url=url, error=str(e))
            return {
                "error": "Failed to scrape website content",
                "message": str(e),
                "timestamp": _now_iso(),
                "url": url,
            }

        results = (data.get("results") or []) if isinstance(data, dict) else []
        return {
            "result": {
                "url": url,
                "timestamp": _now_iso(),
                "selector": selector,
                "attribute": attribute or "textContent",
                "results": results,
                "count": len(results),
                "instructionsForAI": INSTRUCTIONS_FOR_AI,
            }
        }
