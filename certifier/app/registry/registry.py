"""
Certificate template registry.

This module builds the closed mapping from ``DocumentTypeKey`` to
``TemplateEntry``. It is built once, at import time, from the static
catalogue and is read-only thereafter.

Construction enforces two invariants:

- injectivity: no two catalogue entries share a key
- totality: every ``DocumentTypeKey`` member is mapped

Either violation is a programming error and fails the import.

Lookups of unknown keys raise ``TemplateNotFoundError``. There is no
default or fallback template: issuing the wrong document silently is
worse than refusing.
"""

import logging
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Tuple, Union

from certifier.app.registry.catalogue import CATALOGUE
from certifier.app.registry.template import TemplateEntry
from certifier.app.schemas.document_types import DocumentTypeKey

logger = logging.getLogger(__name__)


class RegistryIntegrityError(RuntimeError):
    """Raised when the template catalogue is not a total, injective mapping."""


class TemplateNotFoundError(RuntimeError):
    """Raised when a key does not name a registered template."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(
            f"Template '{key}' not found. "
            f"Registered keys: {sorted(k.value for k in DocumentTypeKey)}"
        )


def build_registry(
    entries: Iterable[TemplateEntry],
) -> Mapping[DocumentTypeKey, TemplateEntry]:
    registry: Dict[DocumentTypeKey, TemplateEntry] = {}

    for entry in entries:
        if entry.key in registry:
            raise RegistryIntegrityError(
                f"Duplicate template key '{entry.key.value}'"
            )
        registry[entry.key] = entry

    missing = [key.value for key in DocumentTypeKey if key not in registry]
    if missing:
        raise RegistryIntegrityError(
            f"Document types without a template: {sorted(missing)}"
        )

    return MappingProxyType(registry)


TEMPLATE_REGISTRY: Mapping[DocumentTypeKey, TemplateEntry] = build_registry(CATALOGUE)


def resolve(key: Union[str, DocumentTypeKey]) -> TemplateEntry:
    """
    Return the template registered for ``key``.

    Raises:
        TemplateNotFoundError: if ``key`` is not a registered document type.
    """
    try:
        type_key = DocumentTypeKey(key)
    except ValueError:
        logger.error("Unknown document type key requested: %r", key)
        raise TemplateNotFoundError(str(key)) from None

    return TEMPLATE_REGISTRY[type_key]


def registered_keys() -> Tuple[DocumentTypeKey, ...]:
    return tuple(TEMPLATE_REGISTRY)
