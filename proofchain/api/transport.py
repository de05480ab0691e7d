# proofchain/api/transport.py
"""
JSON-over-HTTPS transport for the identity service.

Every command lives at <base>/<command>.json and answers with

    {"status": {"code": 0, "name": "OK"}, ...fields}

Anything other than code 0 / name "OK" is raised as RemoteError; network
trouble, timeouts and undecodable bodies are raised as TransportError.
"""
import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from proofchain.common.config import ClientConfig
from proofchain.common.errors import RemoteError, TransportError
from proofchain.common.protocol import Status

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


class Transport:
    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        http_client: Optional[httpx.Client] = None,
    ):
        self.config = config or ClientConfig()
        self._owns_client = http_client is None
        self._client = http_client or httpx.Client(
            timeout=self.config.timeout,
            verify=self.config.verify_tls,
        )

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def get(
        self,
        command: str,
        params: Dict[str, Any],
        model: Type[M],
        timeout: Optional[float] = None,
    ) -> M:
        return self._request("GET", command, model, timeout, params=params)

    def post(
        self,
        command: str,
        form: Dict[str, Any],
        model: Type[M],
        timeout: Optional[float] = None,
    ) -> M:
        return self._request("POST", command, model, timeout, data=form)

    def _request(
        self,
        method: str,
        command: str,
        model: Type[M],
        timeout: Optional[float],
        **kwargs,
    ) -> M:
        url = self.config.command_url(command)
        logger.debug("%s %s", method, command)
        try:
            response = self._client.request(
                method,
                url,
                timeout=timeout if timeout is not None else self.config.timeout,
                **kwargs,
            )
        except httpx.TimeoutException as e:
            raise TransportError(f"{command}: timed out", timed_out=True) from e
        except httpx.HTTPError as e:
            raise TransportError(f"{command}: request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise TransportError(
                f"{command}: undecodable response (HTTP {response.status_code})"
            ) from e
        if not isinstance(payload, dict) or "status" not in payload:
            raise TransportError(f"{command}: response carries no status")

        try:
            status = Status.model_validate(payload["status"])
        except ValidationError as e:
            raise TransportError(f"{command}: malformed status") from e
        if not status.success():
            logger.warning("%s failed: %s (%d)", command, status.name, status.code)
            raise RemoteError(status.code, status.name, status.desc)

        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise TransportError(f"{command}: unexpected response shape") from e
