# Copyright 2026 Kezie Iwueke
# SPDX-License-Identifier: Apache-2.0

# src/sriovfec/daemon/predicates.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Sequence

from sriovfec.resources.models import ResourceKey

log = logging.getLogger("sriovfec")


class EventType(str, Enum):
    CREATE = "ADDED"
    UPDATE = "MODIFIED"
    DELETE = "DELETED"


@dataclass(frozen=True)
class WatchEvent:
    type: EventType
    namespace: str
    name: str
    generation: int
    old_generation: Optional[int] = None    # only set on updates

    @property
    def key(self) -> ResourceKey:
        return ResourceKey(self.namespace, self.name)


class Predicate(Protocol):
    def admits(self, event: WatchEvent) -> bool: ...


class ResourceNamePredicate:
    """Only this node's SriovFecNodeConfig is ours to reconcile."""

    def __init__(self, required_name: str):
        self.required_name = required_name

    def admits(self, event: WatchEvent) -> bool:
        if event.name != self.required_name:
            log.debug(
                "CR %s intended for another node - ignoring (expected name=%s)",
                event.name, self.required_name,
            )
            return False
        return True


class GenerationChangedPredicate:
    """
    Drops updates that leave metadata.generation untouched.

    Status writes never bump the generation, so without this every status
    write made by the reconciler would trigger another reconciliation.
    """

    def admits(self, event: WatchEvent) -> bool:
        if event.type is not EventType.UPDATE:
            return True
        if event.old_generation is None:
            return True
        return event.old_generation != event.generation


class AllOf:
    def __init__(self, *predicates: Predicate):
        self.predicates: Sequence[Predicate] = predicates

    def admits(self, event: WatchEvent) -> bool:
        return all(p.admits(event) for p in self.predicates)


def node_event_filter(node_name: str) -> AllOf:
    return AllOf(ResourceNamePredicate(node_name), GenerationChangedPredicate())
