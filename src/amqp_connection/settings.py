"""Defaults and option names for amqp-connection."""

from datetime import timedelta

# --- Defaults ---

DEFAULT_USE_TLS = False
DEFAULT_PORT = 5672
DEFAULT_TLS_PORT = 5671
DEFAULT_VIRTUAL_HOST = "/"
DEFAULT_USER_NAME = "guest"
DEFAULT_PASSWORD = "guest"
DEFAULT_REQUESTED_HEARTBEAT = 60 # Seconds
DEFAULT_RETRY_DELAY = timedelta(seconds=10)
DEFAULT_CERT_PATH = ""
DEFAULT_CERT_PASSPHRASE = None

MIN_PORT = 1
MAX_PORT = 65535

# --- Grammar ---

URI_SCHEME_PREFIX = "amqp" # Also matches "amqps"
TLS_URI_SCHEME = "amqps"

# --- Option names (as written by users; lookups are case-insensitive) ---

OPTION_HOST = "host"
OPTION_PORT = "port"
OPTION_USE_TLS = "useTls"
OPTION_VIRTUAL_HOST = "virtualHost"
OPTION_USER_NAME = "userName"
OPTION_PASSWORD = "password"
OPTION_REQUESTED_HEARTBEAT = "requestedHeartbeat"
OPTION_RETRY_DELAY = "retryDelay"
OPTION_CERT_PATH = "certPath"
OPTION_CERT_PASSPHRASE = "certPassphrase"

# Options that used to be accepted in the connection string, with the
# guidance shown when one of them is still present.
REMOVED_OPTIONS = {
    "dequeuetimeout": (
        "The 'DequeueTimeout' connection string option has been removed. "
        "Consult the documentation for further information."
    ),
    "maxwaittimeforconfirms": (
        "The 'MaxWaitTimeForConfirms' connection string option has been removed. "
        "Consult the documentation for further information."
    ),
    "prefetchcount": (
        "The 'PrefetchCount' connection string option has been removed. "
        "Configure the prefetch count on the transport settings instead."
    ),
    "usepublisherconfirms": (
        "The 'UsePublisherConfirms' connection string option has been removed. "
        "Configure publisher confirms on the transport settings instead."
    ),
}

# --- Client properties sent to the broker ---

CLIENT_API_NAME = "amqp-connection"
TRANSPORT_DISTRIBUTION = "amqp-connection" # This package
UNKNOWN_VERSION = "0.0.0"

PROPERTY_CLIENT_API = "client_api"
PROPERTY_FRAMEWORK_VERSION = "framework_version"
PROPERTY_TRANSPORT_VERSION = "transport_version"
PROPERTY_APPLICATION = "application"
PROPERTY_APPLICATION_LOCATION = "application_location"
PROPERTY_MACHINE_NAME = "machine_name"
PROPERTY_USER = "user"
PROPERTY_ENDPOINT_NAME = "endpoint_name"

# --- CLI ---

CONNECTION_STRING_ENV_VAR = "AMQP_CONNECTION_STRING"
ENDPOINT_NAME_ENV_VAR = "AMQP_ENDPOINT_NAME"
DEFAULT_ENDPOINT_NAME = "amqp-connection"
REDACTED = "***"
