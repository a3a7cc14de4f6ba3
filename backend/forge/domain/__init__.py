"""Domain models describing cluster metadata and template packages."""

from .models import (
    AttributeDefinition,
    ClusterDefinition,
    CommandDefinition,
    MetadataManifest,
    TemplateDefinition,
    TemplateManifest,
)

__all__ = [
    "AttributeDefinition",
    "ClusterDefinition",
    "CommandDefinition",
    "MetadataManifest",
    "TemplateDefinition",
    "TemplateManifest",
]
