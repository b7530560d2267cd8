import logging
from typing import Optional

import requests

from studio.config.settings import Settings
from studio.utils.errors import TemplateApiError

logger = logging.getLogger(__name__)


class TemplatesApi:
    """
    Client for the shared-template API. One round trip per call, no retry;
    every non-2xx answer becomes a TemplateApiError.
    """

    def __init__(self, base_url: str, session=None, api_key: Optional[str] = None, timeout: float = 30):
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        self.api_key = api_key
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings, session=None) -> "TemplatesApi":
        return cls(settings.templates_api_url, session=session)

    def _headers(self) -> dict:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    def _request(self, method: str, fallback: str, params=None, json=None) -> dict:
        try:
            response = self.session.request(
                method,
                self.base_url,
                params=params,
                json=json,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Templates API] {method} failed: {e}")
            raise TemplateApiError(fallback) from e

        if not 200 <= response.status_code < 300:
            message = fallback
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("error"):
                    message = body["error"]
            except ValueError:
                pass
            raise TemplateApiError(message, response.status_code)

        try:
            return response.json()
        except ValueError as e:
            logger.error(f"[Templates API] {method} returned a non-JSON body")
            raise TemplateApiError(fallback, response.status_code) from e

    def get(self, template_id: str) -> dict:
        return self._request("GET", "Failed to fetch template", params={"id": template_id})

    def create(self, template_data: dict) -> dict:
        return self._request("POST", "Failed to create template", json={"template_data": template_data})

    def update(self, template_id: str, template_data: dict) -> dict:
        return self._request(
            "PUT",
            "Failed to update template",
            params={"id": template_id},
            json={"template_data": template_data},
        )

    def delete(self, template_id: str) -> dict:
        return self._request("DELETE", "Failed to delete template", params={"id": template_id})
