"""IMS OData client utilities."""
from .client import (
    DEFAULT_PREFER,
    ImsClient,
    ImsClientConfig,
    ImsClientError,
    ImsGateway,
    ImsHttpError,
    ImsPayloadError,
    ImsResponse,
)

__all__ = [
    "DEFAULT_PREFER",
    "ImsClient",
    "ImsClientConfig",
    "ImsClientError",
    "ImsGateway",
    "ImsHttpError",
    "ImsPayloadError",
    "ImsResponse",
]
