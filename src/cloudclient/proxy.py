"""Proxy types and instances built from schema descriptors.

A schema descriptor turns into a ``ProxyType``: a callable that constructs
``ProxyInstance`` objects. Inheritance expressed by ``$type`` (most-derived
first) is kept as an explicit chain of ``ProxyType`` objects linked through
``base``; only the most-derived level has methods and a setup routine, the
ancestor levels are inert markers used for is-a queries.

Example:
    ```python
    schema = classify_descriptor(body)
    Type = create_proxy_type(schema, transport.post, setup)
    instance = Type({"foo": "bar"})
    instance.type_name()       # "Foo"
    instance.is_a("Base")      # True
    await instance.send(1, 2)  # POST {$ref}/send {"args": [1, 2]}
    ```
"""

from __future__ import annotations

import copy
import functools
from collections.abc import Iterator, Mapping
from typing import Any, Awaitable, Callable

from cloudclient.config import LongPollingConfig
from cloudclient.descriptor import Schema, classify_descriptor, parse_payload
from cloudclient.names import assert_valid_class_name
from cloudclient.polling import StopHandle, start_long_polling

PostRequestFunc = Callable[[str, Any], Awaitable[Any]]
GetRequestFunc = Callable[..., Awaitable[Any]]
SetupFunc = Callable[["ProxyInstance", Any], StopHandle]


def _no_op() -> None:
    pass


def join_method_url(base_url: str | None, name: str) -> str:
    """Join a method name onto the schema's ``$ref`` with one slash."""
    base_url = base_url or ""
    if base_url.endswith("/"):
        return base_url + name
    return f"{base_url}/{name}"


class RemoteMethod:
    """Callable stub for one remote method.

    Calling it POSTs ``{"args": [...]}`` to the method URL and returns the
    parsed payload of the response.
    """

    __slots__ = ("name", "url", "_post_request")

    def __init__(self, name: str, url: str, post_request: PostRequestFunc) -> None:
        self.name = name
        self.url = url
        self._post_request = post_request

    async def __call__(self, *args: Any, **kwargs: Any) -> Any:
        if kwargs:
            msg = "Keyword arguments not yet supported in remote calls"
            raise NotImplementedError(msg)
        result = await self._post_request(self.url, {"args": list(args)})
        return parse_payload(result)

    def __repr__(self) -> str:
        return f"RemoteMethod({self.name!r}, {self.url!r})"


class ProxyType:
    """A constructible proxy type.

    Attributes:
        name: Type name, or ``None`` for an anonymous type
        base: The next less-derived level of the chain, if any
        methods: Remote method stubs by name (most-derived level only)
    """

    __slots__ = ("name", "base", "methods", "_setup")

    def __init__(
        self,
        name: str | None,
        base: ProxyType | None = None,
        methods: Mapping[str, RemoteMethod] | None = None,
        setup: SetupFunc | None = None,
    ) -> None:
        self.name = name
        self.base = base
        self.methods: dict[str, RemoteMethod] = dict(methods or {})
        self._setup = setup

    def __call__(self, data: Any = None) -> ProxyInstance:
        """Construct an instance, running the setup routine once."""
        instance = ProxyInstance(self)
        if self._setup is not None:
            object.__setattr__(instance, "_stop", self._setup(instance, data))
        return instance

    def type_names(self) -> list[str]:
        """Names along the chain, most-derived first."""
        names: list[str] = []
        level: ProxyType | None = self
        while level is not None:
            if level.name is not None:
                names.append(level.name)
            level = level.base
        return names

    def is_subtype_of(self, name: str) -> bool:
        return name in self.type_names()

    def __repr__(self) -> str:
        chain = " -> ".join(self.type_names()) or "<anonymous>"
        return f"ProxyType({chain})"


class ProxyInstance:
    """Local stand-in for one remote object.

    Properties are readable as attributes or items (``inst.foo``,
    ``inst["$id"]``); remote methods are attributes returning coroutines.
    Properties shadow methods of the same name.
    """

    __slots__ = ("_type", "_data", "_stop")

    def __init__(self, proxy_type: ProxyType) -> None:
        object.__setattr__(self, "_type", proxy_type)
        object.__setattr__(self, "_data", {})
        object.__setattr__(self, "_stop", _no_op)

    def __getattr__(self, name: str) -> Any:
        if name in ProxyInstance.__slots__ or name.startswith("__"):
            msg = f"'{type(self).__name__}' object has no attribute '{name}'"
            raise AttributeError(msg)
        data = self._data
        if name in data:
            return data[name]
        method = self._type.methods.get(name)
        if method is not None:
            return method
        msg = f"'{self.type_name() or 'ProxyInstance'}' object has no attribute '{name}'"
        raise AttributeError(msg)

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ProxyInstance.__slots__:
            object.__setattr__(self, name, value)
        else:
            self._data[name] = value

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        self._data[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __dir__(self) -> list[str]:
        names = set(super().__dir__())
        names.update(k for k in self._data if k.isidentifier())
        names.update(self._type.methods)
        return sorted(names)

    @property
    def proxy_type(self) -> ProxyType:
        return self._type

    def type_name(self) -> str | None:
        return self._type.name

    def type_names(self) -> list[str]:
        return self._type.type_names()

    def is_a(self, name: str) -> bool:
        return self._type.is_subtype_of(name)

    def to_dict(self) -> dict[str, Any]:
        """Shallow copy of the instance's properties."""
        return dict(self._data)

    def stop_polling(self) -> None:
        """Stop long polling for this instance, if it was started."""
        self._stop()

    def __repr__(self) -> str:
        name = self.type_name() or "ProxyInstance"
        ident = self._data.get("$id")
        return f"<{name} {ident}>" if ident else f"<{name}>"


def create_proxy_type(
    schema: Schema,
    post_request: PostRequestFunc,
    setup: SetupFunc,
) -> ProxyType:
    """Build the ``ProxyType`` chain for a classified schema.

    Raises:
        InvalidNameError: If a type name is not a valid class name
    """
    methods = {
        name: RemoteMethod(name, join_method_url(schema.ref, name), post_request)
        for name in schema.methods
    }

    type_names = schema.type_names
    if not type_names:
        return ProxyType(None, methods=methods, setup=setup)

    for name in type_names:
        assert_valid_class_name(name)

    # Right to left: ancestors are inert, the first name gets the behavior
    base: ProxyType | None = None
    for name in reversed(type_names[1:]):
        base = ProxyType(name, base=base)
    return ProxyType(type_names[0], base=base, methods=methods, setup=setup)


def setup_static_data(
    instance: ProxyInstance,
    schema: Schema,
    data: Any,
    start_polling: Callable[[ProxyInstance], StopHandle] | None = None,
) -> StopHandle:
    """Install schema properties and constructor data onto ``instance``.

    Schema properties are copied first (except ``$``/``_``-prefixed names),
    then constructor data (except ``_``-prefixed keys and ``$prototype``),
    so constructor data wins. Values are deep-copied.

    Returns:
        The long-polling stop handle, or a no-op when not polling
    """
    for key in schema.properties:
        if key.startswith(("$", "_")):
            continue
        instance[key] = copy.deepcopy(schema.body[key])

    if isinstance(data, Mapping):
        for key, value in data.items():
            if key.startswith("_") or key == "$prototype":
                continue
            instance[key] = copy.deepcopy(value)

    if start_polling is not None:
        return start_polling(instance)
    return _no_op


def build_cloud_class(
    body: Any,
    get_request: GetRequestFunc,
    post_request: PostRequestFunc,
    *,
    enable_long_polling: bool = False,
    long_polling: LongPollingConfig | None = None,
) -> ProxyType:
    """Classify a schema descriptor and build its proxy type."""
    schema = classify_descriptor(body)

    start_polling = None
    if enable_long_polling:
        start_polling = functools.partial(
            start_long_polling, get_request=get_request, config=long_polling
        )

    def setup(instance: ProxyInstance, data: Any) -> StopHandle:
        return setup_static_data(instance, schema, data, start_polling)

    return create_proxy_type(schema, post_request, setup)
