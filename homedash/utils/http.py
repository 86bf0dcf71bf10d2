"""Outbound HTTP client wrapper for upstream service calls.

Every integration talks to its upstream through an ``UpstreamClient``. The
client owns the base URL, auth headers and timeout, and turns transport
failures into ``UpstreamError`` values tagged with an ``ErrorKind`` so the
handler boundary never has to inspect exception messages.
"""

from enum import Enum
from typing import Any, Dict, Optional, Sequence, Type, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .logging import log_structured

DEFAULT_TIMEOUT = 10.0

ModelT = TypeVar("ModelT", bound="UpstreamModel")


class ErrorKind(str, Enum):
    """Classification of a failed upstream interaction."""

    CONFIG_MISSING = "config_missing"
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    BAD_STATUS = "bad_status"
    PARSE_ERROR = "parse_error"


class UpstreamError(Exception):
    """Raised when an upstream service cannot provide a usable answer.

    Attributes:
        kind: The failure classification.
        message: Human readable message shown on the dashboard widget.
        status_code: HTTP status for BAD_STATUS failures.
    """

    def __init__(
        self, kind: ErrorKind, message: str, status_code: Optional[int] = None
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class UpstreamModel(BaseModel):
    """Base for upstream response models.

    Unknown fields are ignored and explicit nulls fall back to the field
    default, so partial or version-skewed payloads still decode.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    @model_validator(mode="before")
    @classmethod
    def drop_nulls(cls, data: Any) -> Any:
        if isinstance(data, dict):
            return {k: v for k, v in data.items() if v is not None}
        return data


def config_missing(message: str) -> UpstreamError:
    """Builds the error used when a service's URL or credentials are unset."""
    return UpstreamError(ErrorKind.CONFIG_MISSING, message)


def decode_model(
    model: Type[ModelT], data: Any, source: str = "upstream", lenient: bool = False
) -> ModelT:
    """Leniently decodes an upstream JSON object into a response model.

    Unknown fields are ignored by the models themselves; a payload that is not
    an object yields an all-default model.

    Args:
        model: The pydantic model class to build.
        data: Decoded JSON value.
        source: Service name used in the error message.
        lenient: For best-effort payloads. Fields that cannot be coerced are
            dropped and fall back to their defaults instead of raising.

    Returns:
        The populated model.

    Raises:
        UpstreamError: PARSE_ERROR when a field cannot be coerced and
            ``lenient`` is not set.
    """
    if not isinstance(data, dict):
        return model()
    try:
        return model.model_validate(data)
    except ValidationError as err:
        if not lenient:
            raise UpstreamError(
                ErrorKind.PARSE_ERROR, f"Unexpected response format from {source}"
            ) from err
        invalid = {e["loc"][0] for e in err.errors() if e["loc"]}
        log_structured(
            "DEBUG",
            f"{source}: ignoring malformed fields {sorted(map(str, invalid))}",
            "SERVICES",
        )
    try:
        return model.model_validate({k: v for k, v in data.items() if k not in invalid})
    except ValidationError:
        return model()


class UpstreamClient:
    """Async HTTP client bound to a single upstream service.

    Use as an async context manager so the underlying connection pool is
    closed when the handler finishes.
    """

    def __init__(
        self,
        name: str,
        base_url: str,
        headers: Optional[Dict[str, str]] = None,
        timeout: float = DEFAULT_TIMEOUT,
        verify: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            verify=verify,
            transport=transport,
            follow_redirects=True,
        )

    async def __aenter__(self) -> "UpstreamClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def request(
        self, method: str, path: str, timeout: Optional[float] = None, **kwargs
    ) -> httpx.Response:
        """Issues one request, classifying transport failures.

        Args:
            method: HTTP method.
            path: Path relative to the base URL, or an absolute URL.
            timeout: Per-call timeout overriding the client default.
            **kwargs: Forwarded to ``httpx.AsyncClient.request``.

        Returns:
            The upstream response, whatever its status code.

        Raises:
            UpstreamError: TIMEOUT or UNREACHABLE.
        """
        if timeout is not None:
            kwargs["timeout"] = timeout
        target = self.base_url or path
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as err:
            raise UpstreamError(
                ErrorKind.TIMEOUT,
                f"Timeout connecting to {target}. Check if {self.name} is running.",
            ) from err
        except httpx.TransportError as err:
            raise UpstreamError(
                ErrorKind.UNREACHABLE,
                f"Cannot reach {target}. Check URL and ensure {self.name} is accessible.",
            ) from err

    def raise_for_status(self, response: httpx.Response, error: Optional[str] = None):
        """Raises BAD_STATUS for a non-2xx response.

        Args:
            response: The response to check.
            error: Message template; ``{status}`` is replaced by the code.
        """
        if response.is_success:
            return
        template = error or "{name} API returned {status}"
        raise UpstreamError(
            ErrorKind.BAD_STATUS,
            template.format(name=self.name, status=response.status_code),
            status_code=response.status_code,
        )

    def decode(self, response: httpx.Response) -> Any:
        """Parses a JSON body, raising PARSE_ERROR on malformed content."""
        try:
            return response.json()
        except ValueError as err:
            raise UpstreamError(
                ErrorKind.PARSE_ERROR, f"Invalid JSON response from {self.name}"
            ) from err

    async def get_json(self, path: str, error: Optional[str] = None, **kwargs) -> Any:
        """Performs the primary status call of a handler.

        Args:
            path: Endpoint path.
            error: Message template for non-2xx responses.
            **kwargs: Forwarded to ``request``.

        Returns:
            The decoded JSON body.
        """
        response = await self.request("GET", path, **kwargs)
        self.raise_for_status(response, error)
        return self.decode(response)

    async def get_with_fallback(self, paths: Sequence[str], **kwargs) -> httpx.Response:
        """Probes endpoint paths in order, moving on only when one returns 404.

        Args:
            paths: Candidate paths, preferred first.
            **kwargs: Forwarded to ``request``.

        Returns:
            The first non-404 response, or the last response if all were 404.
        """
        response = None
        for path in paths:
            response = await self.request("GET", path, **kwargs)
            if response.status_code != 404:
                return response
            log_structured(
                "DEBUG", f"{self.name}: {path} returned 404, trying next", "SERVICES"
            )
        return response

    async def try_json(
        self, path: str, default: Any = None, method: str = "GET", **kwargs
    ) -> Any:
        """Best-effort secondary call; any failure yields ``default``."""
        try:
            response = await self.request(method, path, **kwargs)
            if not response.is_success:
                return default
            return self.decode(response)
        except UpstreamError as err:
            log_structured(
                "DEBUG", f"{self.name}: optional call {path} failed: {err}", "SERVICES"
            )
            return default

    async def try_json_with_fallback(
        self, paths: Sequence[str], default: Any = None, **kwargs
    ) -> Any:
        """Best-effort variant of ``get_with_fallback``."""
        try:
            response = await self.get_with_fallback(paths, **kwargs)
            if not response.is_success:
                return default
            return self.decode(response)
        except UpstreamError as err:
            log_structured(
                "DEBUG", f"{self.name}: optional call {paths[0]} failed: {err}", "SERVICES"
            )
            return default
