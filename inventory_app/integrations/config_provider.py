"""
Externally managed configuration: the JSON app config blob and the WFM access
token. Both are read-only here; the token is rotated by an external process,
so callers re-read it instead of refreshing it themselves.
"""
import asyncio
import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from inventory_app.core.config import APP_CONFIG_PARAM_NAME, AWS_REGION, WFM_CONFIG_PARAM_NAME
from inventory_app.core.errors import ConfigurationError

log = logging.getLogger(__name__)


def parse_token_value(raw: str) -> str:
    """The token parameter holds either the bare token or a JSON object with ``access_token``."""
    raw = (raw or "").strip()
    if raw.startswith("{"):
        try:
            token = json.loads(raw).get("access_token")
        except ValueError as exc:
            raise ConfigurationError("WFM token parameter holds malformed JSON") from exc
        if not token:
            raise ConfigurationError("WFM token parameter has no access_token")
        return token
    if not raw:
        raise ConfigurationError("WFM token parameter is empty")
    return raw


class ConfigProvider(ABC):
    @abstractmethod
    async def get_app_config(self) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def get_access_token(self) -> str:
        """Current token value as stored right now."""
        ...


class StaticConfigProvider(ConfigProvider):
    """In-process provider for local runs and tests. ``rotate`` mimics the external refresh."""

    def __init__(self, app_config: Optional[Dict[str, Any]] = None, token: str = ""):
        self.app_config = dict(app_config or {})
        self.token = token
        self.token_reads = 0

    def rotate(self, token: str) -> None:
        self.token = token

    async def get_app_config(self) -> Dict[str, Any]:
        return dict(self.app_config)

    async def get_access_token(self) -> str:
        self.token_reads += 1
        if not self.token:
            raise ConfigurationError("No WFM access token configured")
        return self.token


class SsmConfigProvider(ConfigProvider):
    """Reads both values from SSM Parameter Store."""

    def __init__(
        self,
        app_config_param: str = APP_CONFIG_PARAM_NAME,
        token_param: str = WFM_CONFIG_PARAM_NAME,
        region: str = AWS_REGION,
        client=None,
    ):
        self.app_config_param = app_config_param
        self.token_param = token_param
        self.region = region
        self._client = client
        self._app_config: Optional[Dict[str, Any]] = None

    @property
    def client(self):
        if self._client is None:
            self._client = boto3.client("ssm", region_name=self.region)
        return self._client

    async def _read_parameter(self, name: str) -> str:
        try:
            response = await asyncio.to_thread(self.client.get_parameter, Name=name, WithDecryption=True)
        except (ClientError, BotoCoreError) as exc:
            log.error(f"Failed to read parameter {name}: {exc}")
            raise ConfigurationError(f"Could not read parameter {name}") from exc
        return response["Parameter"]["Value"]

    async def get_app_config(self) -> Dict[str, Any]:
        # The config blob only changes on redeploy, so one read per process is enough
        if self._app_config is None:
            raw = await self._read_parameter(self.app_config_param)
            try:
                self._app_config = json.loads(raw)
            except ValueError as exc:
                raise ConfigurationError(f"Parameter {self.app_config_param} is not valid JSON") from exc
        return dict(self._app_config)

    async def get_access_token(self) -> str:
        return parse_token_value(await self._read_parameter(self.token_param))
