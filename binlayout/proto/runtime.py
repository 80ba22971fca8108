"""Envelope dispatch support for generated codecs."""

from collections.abc import Mapping
from typing import Any, ClassVar

from structlog import get_logger

from .serialization import Struct, UnknownDiscriminantError

logger = get_logger()


class EnvelopeDispatcher:
    """Base class for generated envelope dispatchers.

    An envelope is a header struct shared by a family of concrete entities.
    The dispatcher decodes the header, reads its discriminant fields and
    decodes the whole payload again with the matching concrete entity.

    Generated subclasses define:
        header_type: ClassVar[type[Struct]]  # the family header
        discriminants: ClassVar[tuple[str, ...]]  # header fields forming the key
        _message_types: ClassVar[dict[tuple[Any, ...], type[Struct]]]  # key -> type

    Example:
        dispatcher = TransactionDispatcher()
        transaction, consumed = dispatcher.deserialize(payload)

        # Replace the table, e.g. to add a custom transaction
        dispatcher = TransactionDispatcher(decoders={(CUSTOM, 1): CustomTransaction})
    """

    header_type: ClassVar[type[Struct]]
    discriminants: ClassVar[tuple[str, ...]]
    _message_types: ClassVar[dict[tuple[Any, ...], type[Struct]]]

    def __init__(
        self,
        *,
        decoders: Mapping[tuple[Any, ...], type[Struct]] | None = None,
        strict: bool = False,
    ) -> None:
        self._decoders = dict(self._message_types if decoders is None else decoders)
        self._strict = strict
        self.log = logger.new(header=self.header_type.__name__)

    @property
    def decoders(self) -> Mapping[tuple[Any, ...], type[Struct]]:
        return self._decoders

    def discriminant(self, header: Struct) -> tuple[Any, ...]:
        """Return the dispatch key of a decoded header."""
        return tuple(getattr(header, name) for name in self.discriminants)

    def deserialize(self, data: bytes | memoryview, offset: int = 0) -> tuple[Struct, int]:
        """Decode the concrete entity at offset.

        Returns:
            Tuple of (value, bytes_consumed). The value is the header itself
            when no decoder matches and the dispatcher is not strict.
        """
        header, consumed = self.header_type.deserialize(data, offset)
        key = self.discriminant(header)

        decoder = self._decoders.get(key)
        if decoder is None:
            if self._strict:
                raise UnknownDiscriminantError(f"no {self.header_type.__name__} decoder for {key}")
            self.log.debug("unknown discriminant, returning header", discriminant=key)
            return header, consumed

        return decoder.deserialize(data, offset)
