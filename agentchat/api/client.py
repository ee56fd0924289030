"""Anthropic Messages API client over httpx.

Owns the httpx.AsyncClient (auth headers, timeouts, connection limits)
and turns one /v1/messages call into an ApiResponse. Every failure is
raised as UpstreamError; by default nothing is retried.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Protocol

import httpx

from agentchat.api.models import ApiResponse, Usage
from agentchat.config import Settings
from agentchat.errors import UpstreamError

logger = logging.getLogger(__name__)

# Anthropic API version header
_API_VERSION = "2023-06-01"

_RETRYABLE_STATUS = frozenset({429, 500, 529})
_MAX_RETRY_AFTER = 30.0  # seconds


class ModelClient(Protocol):
    """What the agent loop needs from a model provider."""

    async def create_message(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ApiResponse: ...


def build_headers(settings: Settings) -> dict[str, str]:
    """Select auth headers for the configured credential.

    OAT tokens (sk-ant-oat*) require Bearer auth plus beta headers;
    regular API keys use x-api-key. An explicit auth token always wins.
    """
    headers: dict[str, str] = {
        "anthropic-version": _API_VERSION,
        "content-type": "application/json",
    }
    api_key = settings.anthropic_api_key or ""
    auth_token = settings.anthropic_auth_token or ""

    if auth_token:
        headers["authorization"] = f"Bearer {auth_token}"
        if "sk-ant-oat" in auth_token:
            headers["anthropic-beta"] = "oauth-2025-04-20"
    elif api_key:
        if "sk-ant-oat" in api_key:
            headers["authorization"] = f"Bearer {api_key}"
            headers["anthropic-beta"] = "oauth-2025-04-20"
        else:
            headers["x-api-key"] = api_key
    else:
        logger.warning(
            "Neither ANTHROPIC_API_KEY nor ANTHROPIC_AUTH_TOKEN is set -- "
            "API calls will fail"
        )
    return headers


class AnthropicClient:
    """Thin async client for POST /v1/messages."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self._settings = settings
        self._transport = transport
        self._http: httpx.AsyncClient | None = None

    async def start(self) -> None:
        """Initialize the httpx client with auth and timeout settings."""
        settings = self._settings
        timeout = httpx.Timeout(
            connect=settings.api_timeout_connect,
            read=settings.api_timeout_read,
            write=10.0,
            pool=10.0,
        )
        limits = httpx.Limits(
            max_connections=10,
            max_keepalive_connections=5,
        )
        self._http = httpx.AsyncClient(
            base_url=settings.api_base_url,
            headers=build_headers(settings),
            timeout=timeout,
            limits=limits,
            transport=self._transport,
        )
        logger.info("httpx client initialized (base_url: %s)", settings.api_base_url)

    async def close(self) -> None:
        """Clean up httpx client."""
        if self._http:
            await self._http.aclose()
            self._http = None

    def build_payload(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Build Anthropic Messages API request payload."""
        payload: dict[str, Any] = {
            "model": self._settings.model,
            "max_tokens": self._settings.max_tokens,
            "system": system_prompt,
            "messages": messages,
        }
        if tools:
            payload["tools"] = tools
        return payload

    async def create_message(
        self,
        system_prompt: str,
        messages: list[dict[str, Any]],
        tools: list[dict[str, Any]] | None = None,
    ) -> ApiResponse:
        """Call the Messages API once (plus api_max_retries retries).

        Returns parsed ApiResponse with content blocks, stop_reason and usage.
        Raises UpstreamError on any transport or provider failure.
        """
        if not self._http:
            raise UpstreamError("httpx client not initialized -- call start() first")

        payload = self.build_payload(system_prompt, messages, tools)
        attempts = 1 + self._settings.api_max_retries

        last_error: UpstreamError | None = None
        for attempt in range(attempts):
            can_retry = attempt + 1 < attempts
            try:
                response = await self._http.post("/v1/messages", json=payload)
            except httpx.TimeoutException as e:
                last_error = UpstreamError(f"API request timed out: {e}", error_type="timeout")
                if can_retry:
                    logger.warning("API timeout, retrying: %s", e)
                    await asyncio.sleep(1)
                    continue
                break
            except httpx.HTTPError as e:
                last_error = UpstreamError(f"HTTP error: {e}", error_type="transport")
                break  # Don't retry connection errors

            if response.status_code == 200:
                return self._parse_response(response)

            error_type, error_msg = self._parse_error(response)
            last_error = UpstreamError(
                f"Anthropic API error ({response.status_code}): {error_type} - {error_msg}",
                status_code=response.status_code,
                error_type=error_type,
            )
            if response.status_code in _RETRYABLE_STATUS and can_retry:
                retry_after = self._retry_after(response)
                logger.warning(
                    "API error %d (%s), retrying in %.1fs: %s",
                    response.status_code,
                    error_type,
                    retry_after,
                    error_msg,
                )
                await asyncio.sleep(retry_after)
                continue
            break

        raise last_error or UpstreamError("API call failed with unknown error")

    @staticmethod
    def _parse_response(response: httpx.Response) -> ApiResponse:
        try:
            data = response.json()
            return ApiResponse(
                content=list(data["content"]),
                stop_reason=data.get("stop_reason") or "",
                usage=Usage.from_api(data.get("usage")),
            )
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamError(f"Malformed API response: {e}", status_code=200) from e

    @staticmethod
    def _parse_error(response: httpx.Response) -> tuple[str, str]:
        try:
            error_data = response.json()
            error = error_data.get("error", {})
            return error.get("type", "unknown"), error.get("message", "unknown error")
        except (ValueError, AttributeError):
            return "http_error", f"HTTP {response.status_code}: {response.text[:500]}"

    @staticmethod
    def _retry_after(response: httpx.Response) -> float:
        try:
            retry_after = float(response.headers.get("retry-after", "1"))
        except ValueError:
            retry_after = 1.0
        return min(retry_after, _MAX_RETRY_AFTER)
