"""
Data Layer Protocol Definitions

This module defines typing.Protocol interfaces for the storage collaborators
the posting core consumes. These protocols enable dependency injection,
making services testable without a real disk, keychain or image library.

Protocols defined:
- ObjectStore: Generic insert/get/delete/query store for model objects
- SecureStore: Key-value store for secrets (the OAuth credential blob)
- ImageProcessor: Turns raw image bytes into full-size + thumbnail buffers
"""

from typing import Any, Callable, List, Optional, Protocol, Type, TypeVar

from data.models import ProcessedImage

T = TypeVar("T")


class ObjectStore(Protocol):
    """Protocol defining the interface for model object storage.

    Objects are identified by their type and their ``id`` attribute.
    The store knows nothing about ownership; cascading deletes are the
    caller's job (see DraftRepository).
    """

    def insert(self, obj: Any) -> None:
        """Insert or replace an object.

        Args:
            obj: Any model instance with an ``id`` attribute.
        """
        ...

    def get(self, kind: Type[T], obj_id: str) -> Optional[T]:
        """Retrieve an object by type and id.

        Args:
            kind: The model class.
            obj_id: The object's id.

        Returns:
            The object, or None if not found.
        """
        ...

    def delete(self, obj: Any) -> None:
        """Remove an object. Removing an absent object is not an error.

        Args:
            obj: The instance to remove.
        """
        ...

    def query(self, kind: Type[T], predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        """List objects of a type, optionally filtered.

        Args:
            kind: The model class.
            predicate: Optional filter applied to each object.

        Returns:
            Matching objects in insertion order.
        """
        ...


class SecureStore(Protocol):
    """Protocol defining the interface for secret storage.

    Implementations should provide:
    - save: overwrite the value under a key
    - load: return the value, raising NotFoundError if absent
    - delete: remove the value; absence is not an error
    - exists: report presence without raising
    """

    def save(self, key: str, data: bytes) -> None:
        ...

    def load(self, key: str) -> bytes:
        ...

    def delete(self, key: str) -> None:
        ...

    def exists(self, key: str) -> bool:
        ...


class ImageProcessor(Protocol):
    """Protocol for the image resizing/thumbnailing collaborator."""

    def process(self, raw: bytes) -> ProcessedImage:
        """Produce upload-ready full-size and thumbnail buffers.

        Args:
            raw: Image bytes in any supported format.

        Returns:
            ProcessedImage with both buffers.
        """
        ...
