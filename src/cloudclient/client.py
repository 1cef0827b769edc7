"""Entry points: resolve remote descriptors into proxy types and instances.

Example:
    ```python
    from cloudclient import cloud_client

    instance = await cloud_client("http://localhost:3000")
    date = await instance.getDate()
    echoed = await instance.echo("foobar")
    ```
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from cloudclient.auth import authorize_transport
from cloudclient.cache import TypeCache, default_cache
from cloudclient.config import DEFAULT_LONG_POLLING, ResolveOptions
from cloudclient.descriptor import is_url, is_uuid, parse_type_to_array
from cloudclient.error import ArgumentTypeError, DescriptorError
from cloudclient.proxy import ProxyInstance, ProxyType, build_cloud_class
from cloudclient.transport import HttpTransport, Transport

logger = logging.getLogger(__name__)

OptionsArg = ResolveOptions | Mapping[str, Any] | None


def _resolve_options(options: OptionsArg) -> ResolveOptions:
    if options is None:
        return ResolveOptions()
    if isinstance(options, ResolveOptions):
        return options
    return ResolveOptions.model_validate(dict(options))


def _resolve_transport(transport: Transport | None) -> Transport:
    return transport if transport is not None else HttpTransport()


def _require_prototype(body: Any, source: str) -> Mapping[str, Any]:
    if not isinstance(body, Mapping):
        raise DescriptorError(f"Expected a descriptor object from {source}, got {type(body).__name__}")
    prototype = body.get("$prototype")
    if not isinstance(prototype, Mapping):
        raise DescriptorError(f"Descriptor from {source} has no $prototype")
    return prototype


def _cache_key(schema: Mapping[str, Any]) -> tuple[str, str]:
    instance_id = schema.get("$id")
    if not is_uuid(instance_id):
        raise DescriptorError(f"Schema $id is not a UUID: {instance_id!r}")
    raw_type = schema.get("$type")
    if not isinstance(raw_type, (str, list, tuple)):
        raise DescriptorError(f"Schema $type must be a string or a list, got {type(raw_type).__name__}")
    type_names = parse_type_to_array(raw_type)
    type_name = type_names[0] if type_names else ""
    if not isinstance(type_name, str):
        raise DescriptorError(f"Schema $type entries must be strings: {raw_type!r}")
    return type_name, instance_id


async def class_from_object(
    schema: Any,
    transport: Transport | None = None,
    options: OptionsArg = None,
) -> ProxyType:
    """Get the proxy type for a schema descriptor, from cache or freshly built.

    Transport and options only shape a freshly built type. A cache hit
    returns the type as first built, long polling setting included.

    Args:
        schema: The schema descriptor (an instance descriptor's ``$prototype``)
        transport: Transport used by method calls and long polling
        options: ``ResolveOptions`` or a mapping of its fields

    Raises:
        DescriptorError: If ``$id`` is not a UUID or ``$type`` is malformed
        InvalidNameError: If a member or type name is invalid or reserved
    """
    if not isinstance(schema, Mapping):
        raise DescriptorError(f"Schema must be an object, got {type(schema).__name__}")
    opts = _resolve_options(options)
    transport = _resolve_transport(transport)
    cache: TypeCache = opts.cache if opts.cache is not None else default_cache
    type_name, instance_id = _cache_key(schema)

    built = False

    def build() -> ProxyType:
        nonlocal built
        built = True
        return build_cloud_class(
            schema,
            transport.get,
            transport.post,
            enable_long_polling=opts.enable_long_polling,
            long_polling=opts.long_polling or DEFAULT_LONG_POLLING,
        )

    proxy_type = cache.lookup(type_name, instance_id, build)
    if not built and opts.enable_long_polling:
        logger.debug(
            "Reusing cached type %s %s; its transport and long polling "
            "settings come from the build that cached it",
            type_name or "<anonymous>",
            instance_id,
        )
    return proxy_type


async def class_from_url(
    url: str,
    transport: Transport | None = None,
    options: OptionsArg = None,
) -> ProxyType:
    """Fetch an instance descriptor and return the proxy type of its ``$prototype``."""
    transport = _resolve_transport(transport)
    logger.debug("Fetching class descriptor from %s", url)
    body = await transport.get(url)
    prototype = _require_prototype(body, url)
    return await class_from_object(prototype, authorize_transport(transport, url), options)


async def instance_from_object(
    descriptor: Any,
    transport: Transport | None = None,
    options: OptionsArg = None,
) -> ProxyInstance:
    """Build a proxy instance from an instance descriptor."""
    prototype = _require_prototype(descriptor, "object")
    proxy_type = await class_from_object(prototype, transport, options)
    return proxy_type(descriptor)


async def instance_from_url(
    url: str,
    transport: Transport | None = None,
    options: OptionsArg = None,
) -> ProxyInstance:
    """Fetch an instance descriptor from ``url`` and build its proxy instance.

    Credentials embedded in ``url`` are reused for every same-host request
    the instance makes.
    """
    transport = authorize_transport(_resolve_transport(transport), url)
    logger.debug("Fetching instance descriptor from %s", url)
    body = await transport.get(url)
    return await instance_from_object(body, transport, options)


async def cloud_client(
    arg: Any,
    transport: Transport | None = None,
    options: OptionsArg = None,
) -> ProxyInstance:
    """Get a proxy instance for a descriptor object or a descriptor URL.

    Raises:
        ArgumentTypeError: If ``arg`` is neither a mapping nor an
            ``http``/``https``/``ftp`` URL
    """
    if isinstance(arg, Mapping):
        return await instance_from_object(arg, transport, options)
    if is_url(arg):
        return await instance_from_url(arg, transport, options)
    raise ArgumentTypeError(
        f"Argument passed to cloud_client() is unsupported type: {type(arg).__name__}"
    )
