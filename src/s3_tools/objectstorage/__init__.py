"""Object storage access: provider protocol, locator and value types."""

from .locator import ResourceLocation, format_uri, parse_uri, resolve_resource
from .models import CommonPrefix, ObjectBody, ObjectDescriptor
from .provider import MAX_DELETE_KEYS, MAX_PAGE_SIZE, StorageProvider

__all__ = [
    "CommonPrefix",
    "MAX_DELETE_KEYS",
    "MAX_PAGE_SIZE",
    "ObjectBody",
    "ObjectDescriptor",
    "ResourceLocation",
    "StorageProvider",
    "format_uri",
    "parse_uri",
    "resolve_resource",
]
