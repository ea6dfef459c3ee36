"""
Client for OpenAI-compatible custom providers
"""
from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel

from promptvc.core.config import get_settings
from promptvc.core.exceptions import ProviderClientError
from promptvc.core.logging_config import LoggingConfig

logger = LoggingConfig.get_logger(__name__)


class FetchedModel(BaseModel):
    """Model entry as listed by a provider"""
    name: str
    display_name: Optional[str] = None


class ProviderClient:
    """Lists the models served by an OpenAI-compatible API (``GET {base_url}/models``)"""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout if timeout is not None else get_settings().provider_request_timeout_seconds
        self._transport = transport

    def _client(self) -> httpx.Client:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return httpx.Client(
            base_url=self.base_url,
            headers=headers,
            timeout=self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _parse_models(data: Any) -> List[FetchedModel]:
        # OpenAI shape {"data": [{"id": ...}]}; some servers return a bare list
        if isinstance(data, dict):
            entries = data.get("data", data.get("models", []))
        else:
            entries = data
        if not isinstance(entries, list):
            raise ProviderClientError("Unexpected model listing format")

        models: List[FetchedModel] = []
        for entry in entries:
            if isinstance(entry, str):
                name, display_name = entry, None
            elif isinstance(entry, dict):
                name = entry.get("id") or entry.get("name")
                display_name = entry.get("display_name") or entry.get("displayName")
            else:
                continue
            if not name:
                continue
            models.append(FetchedModel(name=str(name), display_name=display_name))
        return models

    def list_models(self) -> List[FetchedModel]:
        """Fetch the provider's model listing"""
        try:
            with self._client() as client:
                response = client.get("/models")
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout listing models at {self.base_url}")
            raise ProviderClientError(f"Provider timed out: {self.base_url}") from e
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning(f"Provider {self.base_url} answered {status} to model listing")
            raise ProviderClientError(f"Provider returned HTTP {status}", status_code=status) from e
        except httpx.HTTPError as e:
            logger.warning(f"Cannot reach provider {self.base_url}: {e}")
            raise ProviderClientError(f"Cannot reach provider: {e}") from e
        except ValueError as e:
            raise ProviderClientError("Provider returned invalid JSON") from e

        models = self._parse_models(data)
        logger.info(
            f"Provider {self.base_url} lists {len(models)} models",
            extra={"base_url": self.base_url, "model_count": len(models)}
        )
        return models

    def test_connection(self) -> Dict[str, Any]:
        """Check that the provider answers the model listing"""
        try:
            models = self.list_models()
        except ProviderClientError as e:
            return {"ok": False, "error": str(e), "status_code": e.status_code}
        return {"ok": True, "model_count": len(models)}
