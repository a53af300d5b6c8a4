"""Explicit registry of the custom resource types this operator serves."""
from dataclasses import dataclass
from typing import Dict, Type

from .crd import GROUP, KIND, PLURAL, VERSION
from .models import MarketAuctionJob


@dataclass(frozen=True)
class ResourceType:
    group: str
    version: str
    kind: str
    plural: str
    model: Type[MarketAuctionJob]

    @property
    def api_version(self) -> str:
        return f"{self.group}/{self.version}"


class ResourceRegistry:
    """Maps a kind to its API coordinates; built once by the composition root."""

    def __init__(self):
        self._types: Dict[str, ResourceType] = {}

    def register(self, resource: ResourceType) -> None:
        if resource.kind in self._types:
            raise ValueError(f"kind {resource.kind!r} is already registered")
        self._types[resource.kind] = resource

    def get(self, kind: str) -> ResourceType:
        try:
            return self._types[kind]
        except KeyError:
            raise LookupError(f"kind {kind!r} is not registered") from None

    def __contains__(self, kind: str) -> bool:
        return kind in self._types


def register_types(registry: ResourceRegistry) -> ResourceRegistry:
    registry.register(ResourceType(GROUP, VERSION, KIND, PLURAL, MarketAuctionJob))
    return registry
