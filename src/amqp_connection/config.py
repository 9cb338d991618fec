"""Connection descriptor model and connection string resolution for amqp-connection."""

import logging
import os
import ssl
import typing as t
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Optional
from urllib.parse import urlsplit

import pika

from amqp_connection import settings
from amqp_connection.environment import EnvironmentFacts, ProcessEnvironmentFacts
from amqp_connection.utils import (
    format_file_version,
    parse_bool,
    parse_duration,
    parse_key_value_string,
    parse_port,
    parse_uint16,
    uri_decode,
    uri_path_segments,
)

logger = logging.getLogger(__name__)

T = t.TypeVar("T")


class InvalidConfigurationError(ValueError):
    """Raised when a connection string cannot be resolved.

    The message lists every problem found, one per line; ``errors`` holds
    the same messages as a tuple, in the order they were detected.
    """

    def __init__(self, errors: t.Sequence[str]):
        self.errors = tuple(errors)
        super().__init__("\n".join(self.errors).rstrip("\r\n"))


class ClientProperties(t.Mapping[str, str]):
    """Read-only, ordered client properties that survive pickling and deep copies."""

    def __init__(self, properties: t.Mapping[str, str] | t.Iterable[tuple[str, str]] = ()):
        self._properties = dict(properties)

    def __getitem__(self, key: str) -> str:
        return self._properties[key]

    def __iter__(self) -> t.Iterator[str]:
        return iter(self._properties)

    def __len__(self) -> int:
        return len(self._properties)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._properties!r})"


@dataclass(frozen=True)
class ConnectionDescriptor:
    """Validated settings needed to open a connection to a broker."""
    # Non-default fields first
    host: str
    port: int
    # Default fields last
    virtual_host: str = settings.DEFAULT_VIRTUAL_HOST
    user_name: str = settings.DEFAULT_USER_NAME
    password: str = field(default=settings.DEFAULT_PASSWORD, repr=False)
    requested_heartbeat: int = settings.DEFAULT_REQUESTED_HEARTBEAT # Seconds, 0..65535
    retry_delay: timedelta = settings.DEFAULT_RETRY_DELAY
    use_tls: bool = settings.DEFAULT_USE_TLS
    cert_path: str = settings.DEFAULT_CERT_PATH
    cert_passphrase: Optional[str] = field(default=settings.DEFAULT_CERT_PASSPHRASE, repr=False)
    client_properties: t.Mapping[str, str] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        # Read-only copy of whatever mapping was passed in
        object.__setattr__(self, "client_properties", ClientProperties(self.client_properties))

    def as_dict(self, include_secrets: bool = False) -> dict[str, t.Any]:
        """Returns a JSON-friendly dict, with the password and passphrase redacted unless asked for."""
        def secret(value: Optional[str]) -> Optional[str]:
            return value if include_secrets or value is None else settings.REDACTED

        return {
            "host": self.host,
            "port": self.port,
            "virtual_host": self.virtual_host,
            "user_name": self.user_name,
            "password": secret(self.password),
            "requested_heartbeat": self.requested_heartbeat,
            "retry_delay": self.retry_delay.total_seconds(),
            "use_tls": self.use_tls,
            "cert_path": self.cert_path,
            "cert_passphrase": secret(self.cert_passphrase),
            "client_properties": dict(self.client_properties),
        }


def resolve_connection_descriptor(
    connection_string: str,
    endpoint_name: str,
    environment: EnvironmentFacts | None = None,
) -> ConnectionDescriptor:
    """Resolves a connection string into a ConnectionDescriptor.

    Strings starting with ``amqp`` (any case, so ``amqps`` too) are read as
    ``amqp[s]://[user[:password]@]host[:port][/vhost]`` URIs. Anything else
    is read as ``key=value`` pairs separated by ``;``, where ``host`` is
    required.

    Every problem in the string is collected before failing, so a single
    InvalidConfigurationError reports all of them at once.

    Args:
        connection_string: The URI or key/value connection string.
        endpoint_name: Logical name of the endpoint, reported to the broker.
        environment: Source of process facts for the client properties.
            Defaults to the current process.

    Returns:
        The resolved descriptor.

    Raises:
        InvalidConfigurationError: If anything in the string is invalid.
    """
    errors: list[str] = []

    if connection_string.lower().startswith(settings.URI_SCHEME_PREFIX):
        logger.debug("Parsing connection string as an AMQP URI.")
        host, options = _parse_uri(connection_string, errors)
    else:
        logger.debug("Parsing connection string as key/value pairs.")
        host, options = _parse_key_value_pairs(connection_string, errors)

    use_tls = _get_value(options, settings.OPTION_USE_TLS, parse_bool, settings.DEFAULT_USE_TLS, "boolean", errors)
    default_port = settings.DEFAULT_TLS_PORT if use_tls else settings.DEFAULT_PORT
    port = _get_value(options, settings.OPTION_PORT, parse_port, default_port, "port number", errors)
    virtual_host = _get_string(options, settings.OPTION_VIRTUAL_HOST, settings.DEFAULT_VIRTUAL_HOST)
    user_name = _get_string(options, settings.OPTION_USER_NAME, settings.DEFAULT_USER_NAME)
    password = _get_string(options, settings.OPTION_PASSWORD, settings.DEFAULT_PASSWORD)
    requested_heartbeat = _get_value(
        options,
        settings.OPTION_REQUESTED_HEARTBEAT,
        parse_uint16,
        settings.DEFAULT_REQUESTED_HEARTBEAT,
        "unsigned 16-bit integer",
        errors,
    )
    retry_delay = _get_value(
        options, settings.OPTION_RETRY_DELAY, parse_duration, settings.DEFAULT_RETRY_DELAY, "duration", errors
    )
    cert_path = _get_string(options, settings.OPTION_CERT_PATH, settings.DEFAULT_CERT_PATH)
    cert_passphrase = _get_string(options, settings.OPTION_CERT_PASSPHRASE, settings.DEFAULT_CERT_PASSPHRASE)

    if errors:
        logger.debug(f"Connection string has {len(errors)} problem(s).")
        raise InvalidConfigurationError(errors)

    if environment is None:
        environment = ProcessEnvironmentFacts()

    descriptor = ConnectionDescriptor(
        host=host,
        port=port,
        virtual_host=virtual_host,
        user_name=user_name,
        password=password,
        requested_heartbeat=requested_heartbeat,
        retry_delay=retry_delay,
        use_tls=use_tls,
        cert_path=cert_path,
        cert_passphrase=cert_passphrase,
        client_properties=_build_client_properties(environment, user_name, endpoint_name),
    )
    logger.info(f"Resolved AMQP connection for endpoint '{endpoint_name}': {host}:{port} vhost '{virtual_host}' (TLS: {use_tls})")
    return descriptor


# --- Grammars ---

def _parse_uri(connection_string: str, errors: list[str]) -> tuple[str | None, dict[str, str]]:
    options: dict[str, str] = {}
    try:
        parsed = urlsplit(connection_string)
    except ValueError as e:
        _add_error(errors, f"Invalid AMQP URI: {e}")
        return None, options

    options[_key(settings.OPTION_USE_TLS)] = "true" if parsed.scheme.lower() == settings.TLS_URI_SCHEME else "false"

    host = parsed.hostname
    if not host:
        _add_error(errors, "Empty host name in AMQP URI.")
    elif ":" in host:
        # IPv6 literal, keep it bracketed like the URI wrote it
        host = f"[{host}]"

    try:
        port = parsed.port
    except ValueError as e:
        _add_error(errors, f"Invalid port in AMQP URI: {e}")
    else:
        if port is not None:
            options[_key(settings.OPTION_PORT)] = str(port)

    user_info, _, _ = parsed.netloc.rpartition("@")
    if user_info:
        user_and_password = user_info.split(":")
        if len(user_and_password) > 2:
            # Never echo the user info, it holds the password
            _add_error(errors, "Bad user info in AMQP URI: expected 'user[:password]' with ':' in either part percent-encoded.")
        else:
            options[_key(settings.OPTION_USER_NAME)] = uri_decode(user_and_password[0])
            if len(user_and_password) == 2:
                options[_key(settings.OPTION_PASSWORD)] = uri_decode(user_and_password[1])

    segments = uri_path_segments(parsed.path)
    if len(segments) > 2:
        _add_error(errors, f"Multiple segments in path of AMQP URI: {', '.join(segments)}")
    elif len(segments) == 2:
        options[_key(settings.OPTION_VIRTUAL_HOST)] = uri_decode(segments[1])

    return host, options


def _parse_key_value_pairs(connection_string: str, errors: list[str]) -> tuple[str | None, dict[str, str]]:
    options, format_errors = parse_key_value_string(connection_string)
    for message in format_errors:
        _add_error(errors, message)

    for removed_option, message in settings.REMOVED_OPTIONS.items():
        if removed_option in options:
            _add_error(errors, message)

    port_key = _key(settings.OPTION_PORT)
    if port_key in options:
        try:
            parse_port(options[port_key])
        except ValueError:
            _add_error(errors, _invalid_value_message(options[port_key], "port number", settings.OPTION_PORT))

    host = None
    value = options.get(_key(settings.OPTION_HOST))
    if value is None:
        _add_error(errors, "Invalid connection string. 'host' value must be supplied. e.g: \"host=myServer\"")
        return host, options

    hosts_and_ports = value.split(",")
    if len(hosts_and_ports) > 1:
        _add_error(
            errors,
            "Multiple hosts are no longer supported. If using RabbitMQ in a cluster, "
            "consider using a load balancer to represent the nodes as a single host.",
        )

    parts = hosts_and_ports[0].split(":")
    host = parts[0].strip()
    if not host:
        _add_error(errors, "Empty host name in 'host' connection string option.")

    if len(parts) > 1:
        try:
            inline_port = parse_port(parts[1])
        except ValueError:
            _add_error(errors, f"'{parts[1]}' is not a valid port number for the port in the 'host' connection string option.")
        else:
            # "host=name:port" wins over a separate "port" option
            options[port_key] = str(inline_port)

    return host, options


# --- Option lookup ---

def _key(option: str) -> str:
    return option.lower()


def _get_string(options: dict[str, str], option: str, default: T) -> str | T:
    return options.get(_key(option), default)


def _get_value(
    options: dict[str, str],
    option: str,
    parse: t.Callable[[str], T],
    default: T,
    type_name: str,
    errors: list[str],
) -> T:
    """Converts an option with ``parse``, recording an error and returning ``default`` if that fails."""
    value = options.get(_key(option))
    if value is None:
        return default
    try:
        return parse(value)
    except ValueError:
        _add_error(errors, _invalid_value_message(value, type_name, option))
        return default


def _invalid_value_message(value: str, type_name: str, option: str) -> str:
    return f"'{value}' is not a valid {type_name} for the '{option}' connection string option."


def _add_error(errors: list[str], message: str) -> None:
    # The same problem can be found by more than one pass; report it once
    if message not in errors:
        errors.append(message)


# --- Client properties ---

def _build_client_properties(environment: EnvironmentFacts, user_name: str, endpoint_name: str) -> dict[str, str]:
    application_path = environment.application_path
    return {
        settings.PROPERTY_CLIENT_API: settings.CLIENT_API_NAME,
        settings.PROPERTY_FRAMEWORK_VERSION: format_file_version(environment.framework_version),
        settings.PROPERTY_TRANSPORT_VERSION: format_file_version(environment.transport_version),
        settings.PROPERTY_APPLICATION: os.path.basename(application_path),
        settings.PROPERTY_APPLICATION_LOCATION: os.path.dirname(application_path),
        settings.PROPERTY_MACHINE_NAME: environment.machine_name,
        settings.PROPERTY_USER: user_name,
        settings.PROPERTY_ENDPOINT_NAME: endpoint_name,
    }


# --- Client parameters ---

def create_connection_parameters(descriptor: ConnectionDescriptor) -> pika.ConnectionParameters:
    """Creates pika connection parameters from a descriptor. Does not connect."""
    # Sockets and TLS want the bare IPv6 address
    host = descriptor.host.strip("[]")
    ssl_options = None
    if descriptor.use_tls:
        logger.debug("Configuring TLS for AMQP connection.")
        tls_context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        tls_context.load_default_certs(ssl.Purpose.SERVER_AUTH)
        if descriptor.cert_path:
            try:
                tls_context.load_cert_chain(descriptor.cert_path, password=descriptor.cert_passphrase)
            except OSError as e:
                raise InvalidConfigurationError(
                    [f"Could not load the client certificate from '{descriptor.cert_path}': {e}"]
                ) from e
            logger.debug(f"Loaded client cert from: {descriptor.cert_path}")
        ssl_options = pika.SSLOptions(tls_context, server_hostname=host)

    logger.info(f"Creating pika connection parameters for {descriptor.host}:{descriptor.port} (TLS: {descriptor.use_tls})")
    return pika.ConnectionParameters(
        host=host,
        port=descriptor.port,
        virtual_host=descriptor.virtual_host,
        credentials=pika.PlainCredentials(descriptor.user_name, descriptor.password),
        heartbeat=descriptor.requested_heartbeat,
        retry_delay=descriptor.retry_delay.total_seconds(),
        ssl_options=ssl_options,
        client_properties=dict(descriptor.client_properties),
    )
