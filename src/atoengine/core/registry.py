"""Control-family handler registries."""

from __future__ import annotations

import logging
from typing import Generic, Iterator, TypeVar

from .catalog import DEFAULT_HANDLER

logger = logging.getLogger(__name__)

H = TypeVar("H")


class HandlerRegistry(Generic[H]):
    """Maps control-family codes to handlers, with a mandatory Default entry.

    Built once when the engine is constructed. Lookups never fail: unknown
    families resolve to the Default handler.
    """

    def __init__(self, handlers: dict[str, H], kind: str = "handler"):
        if DEFAULT_HANDLER not in handlers:
            raise ValueError(f"{kind} registry requires a '{DEFAULT_HANDLER}' entry")
        self.kind = kind
        self._handlers = dict(handlers)

    def resolve(self, family: str) -> H:
        handler = self._handlers.get(family)
        if handler is None:
            logger.warning("Unknown control family %s, using Default %s", family, self.kind)
            return self._handlers[DEFAULT_HANDLER]
        return handler

    @property
    def default(self) -> H:
        return self._handlers[DEFAULT_HANDLER]

    def specialized(self) -> list[H]:
        """Every registered handler except Default, in registration order."""
        return [h for key, h in self._handlers.items() if key != DEFAULT_HANDLER]

    def families(self) -> list[str]:
        return [key for key in self._handlers if key != DEFAULT_HANDLER]

    def __contains__(self, family: object) -> bool:
        return family in self._handlers

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)
