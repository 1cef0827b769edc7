"""Cloud Client - typed proxies for remote objects described over HTTP.

A server describes an object as JSON: its identity (``$id``, ``$hash``,
``$ref``), its type chain (``$type``), its schema (``$prototype``) and its
current field values. This package turns that description into a local
proxy whose properties mirror server state and whose methods issue remote
calls, optionally kept in sync through long polling.
"""

from cloudclient.auth import AuthorizedTransport, authorize_transport, fix_authorization
from cloudclient.cache import CacheEntry, TypeCache, default_cache
from cloudclient.client import (
    class_from_object,
    class_from_url,
    cloud_client,
    instance_from_object,
    instance_from_url,
)
from cloudclient.config import (
    DEFAULT_LONG_POLLING,
    LongPollingConfig,
    ResolveOptions,
    TransportConfig,
)
from cloudclient.descriptor import (
    Schema,
    classify_descriptor,
    is_url,
    parse_payload,
    parse_type_to_array,
)
from cloudclient.error import (
    ArgumentTypeError,
    CloudClientError,
    ConfigurationError,
    DescriptorError,
    HTTPError,
    InvalidNameError,
    TransientPollError,
)
from cloudclient.names import (
    assert_valid_class_name,
    assert_valid_name,
    is_reserved_word,
    is_valid_class_name,
    is_valid_name,
)
from cloudclient.polling import LongPoller, PollContext, start_long_polling, update_data
from cloudclient.proxy import (
    ProxyInstance,
    ProxyType,
    RemoteMethod,
    build_cloud_class,
    create_proxy_type,
    setup_static_data,
)
from cloudclient.transport import HttpTransport, Transport

__version__ = "0.1.0"

__all__ = [
    # Entry points
    "cloud_client",
    "class_from_object",
    "class_from_url",
    "instance_from_object",
    "instance_from_url",
    # Proxies
    "ProxyType",
    "ProxyInstance",
    "RemoteMethod",
    "build_cloud_class",
    "create_proxy_type",
    "setup_static_data",
    # Descriptors
    "Schema",
    "classify_descriptor",
    "parse_type_to_array",
    "parse_payload",
    "is_url",
    # Names
    "is_valid_name",
    "is_valid_class_name",
    "is_reserved_word",
    "assert_valid_name",
    "assert_valid_class_name",
    # Long polling
    "LongPoller",
    "PollContext",
    "start_long_polling",
    "update_data",
    # Cache
    "TypeCache",
    "CacheEntry",
    "default_cache",
    # Transport
    "Transport",
    "HttpTransport",
    "AuthorizedTransport",
    "authorize_transport",
    "fix_authorization",
    # Configuration (Pydantic models)
    "LongPollingConfig",
    "TransportConfig",
    "ResolveOptions",
    "DEFAULT_LONG_POLLING",
    # Errors
    "CloudClientError",
    "InvalidNameError",
    "DescriptorError",
    "HTTPError",
    "ConfigurationError",
    "TransientPollError",
    "ArgumentTypeError",
]
