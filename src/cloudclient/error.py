"""Error types for the cloud client.

Every error raised by this package derives from ``CloudClientError``.
Validation errors also derive from the matching builtin (``ValueError`` or
``TypeError``) so callers can catch them without importing this module.
"""

from __future__ import annotations

from collections.abc import Mapping
from http import HTTPStatus
from typing import Any, Callable

HTTPErrorFactory = Callable[[int, "str | None", "Mapping[str, str] | None"], "HTTPError"]


class CloudClientError(Exception):
    """Base class for all cloud client errors."""


class InvalidNameError(CloudClientError, ValueError):
    """Raised when a descriptor member or type name is not usable."""

    def __init__(self, name: Any, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"{reason}: {name!r}")


class DescriptorError(CloudClientError, ValueError):
    """Raised when a remote descriptor is missing required structure."""


class ConfigurationError(CloudClientError):
    """Raised when long polling cannot be started for an instance."""


class ArgumentTypeError(CloudClientError, TypeError):
    """Raised when the entry point gets neither a descriptor nor a URL."""


class TransientPollError(CloudClientError):
    """A failed long-poll cycle.

    These are logged by the poller and never propagated.
    """

    def __init__(self, url: str, cause: BaseException) -> None:
        self.url = url
        self.cause = cause
        super().__init__(f"Long poll of {url} failed: {cause!r}")


def _reason_phrase(code: int) -> str:
    try:
        return HTTPStatus(code).phrase
    except ValueError:
        return "Unknown"


class HTTPError(CloudClientError):
    """Non-success HTTP status.

    The constructor accepts any subset of ``(code, message, headers)`` in
    any order, told apart by type: an ``int`` is the status code, a ``str``
    the message and a mapping the response headers.

    Attributes:
        code: HTTP status code (default 500)
        message: Error message (default ``"<code> <reason phrase>"``)
        headers: Response headers
        body: Parsed response body, when the transport had one
    """

    _factories: dict[int, HTTPErrorFactory] = {}

    def __init__(self, *args: Any, body: Any = None) -> None:
        code: int | None = None
        message: str | None = None
        headers: Mapping[str, str] | None = None
        for arg in args:
            if isinstance(arg, Mapping):
                headers = arg
            elif isinstance(arg, str):
                message = arg
            elif isinstance(arg, int) and not isinstance(arg, bool):
                code = arg

        self.code = code or 500
        self.message = message or f"{self.code} {_reason_phrase(self.code)}"
        self.headers = dict(headers or {})
        self.body = body
        super().__init__(self.message)

    @property
    def is_not_modified(self) -> bool:
        return self.code == HTTPStatus.NOT_MODIFIED

    def with_body(self, body: Any) -> HTTPError:
        """Attach the parsed response body and return the error."""
        self.body = body
        return self

    @classmethod
    def register(cls, code: int) -> Callable[[HTTPErrorFactory], HTTPErrorFactory]:
        """Register a factory used by ``create()`` for one status code.

        Example:
            ```python
            class NotFound(HTTPError):
                pass

            @HTTPError.register(404)
            def _not_found(code, message, headers):
                return NotFound(code, message, headers)
            ```
        """

        def decorator(factory: HTTPErrorFactory) -> HTTPErrorFactory:
            cls._factories[code] = factory
            return factory

        return decorator

    @classmethod
    def unregister(cls, code: int) -> None:
        cls._factories.pop(code, None)

    @classmethod
    def create(
        cls,
        code: int,
        message: str | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> HTTPError:
        """Create the error for ``code``, using a registered factory if any."""
        factory = cls._factories.get(code)
        if factory is not None:
            return factory(code, message, headers)
        args: list[Any] = [code]
        if message is not None:
            args.append(message)
        if headers is not None:
            args.append(headers)
        return cls(*args)

    def __repr__(self) -> str:
        return f"HTTPError(code={self.code}, message={self.message!r})"
