"""
Object Model Store - owns every mirrored entity, keyed by remote index.

Axes live in a fixed slot array (the remote axis array is fixed-capacity).
Tools, spindles, beds and chambers live in index-sorted collections with
create-on-demand and ranged removal.
"""

from __future__ import annotations

from bisect import bisect_left
from typing import Callable, Generic, Iterator, List, Optional, TypeVar

from core.logger import log_model
from .machine import MachineState
from .entities import (
    Axis,
    BedOrChamber,
    MAX_TOTAL_AXES,
    NO_REFERENCE,
    Spindle,
    Tool,
)


T = TypeVar("T")


class IndexedCollection(Generic[T]):
    """
    Entities sorted by their `index` attribute.

    Insertion keeps existing entries in place; an index appears at most once.
    """

    def __init__(self, name: str, factory: Callable[[int], T]):
        self.name = name
        self._factory = factory
        self._items: List[T] = []

    def _position(self, index: int) -> int:
        return bisect_left([item.index for item in self._items], index)

    def get(self, index: int) -> Optional[T]:
        """Lookup without creation."""
        return self.get_or_create(index, create=False)

    def get_or_create(self, index: int, create: bool = True) -> Optional[T]:
        """
        Return the entity with this index.

        Creates and inserts it at its sorted position if missing and `create`
        is set; returns None on a miss otherwise.
        """
        pos = self._position(index)
        if pos < len(self._items) and self._items[pos].index == index:
            return self._items[pos]
        if not create:
            return None

        item = self._factory(index)
        self._items.insert(pos, item)
        log_model(f"Created {self.name}", {"index": index})
        return item

    def remove(self, index: int, all_following: bool = False) -> None:
        """
        Remove the entity at `index`, and with `all_following` every entity
        with a larger index as well. A missing index is a no-op either way.
        """
        pos = self._position(index)
        if pos == len(self._items) or self._items[pos].index != index:
            return

        end = len(self._items) if all_following else pos + 1
        removed = [item.index for item in self._items[pos:end]]
        del self._items[pos:end]
        log_model(f"Removed {self.name}", {"indices": removed})

    def find(self, predicate: Callable[[T], bool]) -> Optional[T]:
        for item in self._items:
            if predicate(item):
                return item
        return None

    def indices(self) -> List[int]:
        return [item.index for item in self._items]

    def clear(self) -> None:
        self._items.clear()

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, index: int) -> bool:
        return self.get(index) is not None


class ObjectModelStore:
    """Single owner of the mirrored object model."""

    def __init__(self):
        self._axes: List[Optional[Axis]] = [None] * MAX_TOTAL_AXES
        self.tools: IndexedCollection[Tool] = IndexedCollection("tool", Tool)
        self.spindles: IndexedCollection[Spindle] = IndexedCollection("spindle", Spindle)
        self.beds: IndexedCollection[BedOrChamber] = IndexedCollection("bed", BedOrChamber)
        self.chambers: IndexedCollection[BedOrChamber] = IndexedCollection("chamber", BedOrChamber)
        self.machine = MachineState()

    # =========================================================================
    # Axes
    # =========================================================================

    def get_axis(self, index: int) -> Optional[Axis]:
        if 0 <= index < MAX_TOTAL_AXES:
            return self._axes[index]
        return None

    def get_or_create_axis(self, index: int) -> Optional[Axis]:
        """None for indices outside the fixed axis array."""
        if not 0 <= index < MAX_TOTAL_AXES:
            return None
        axis = self._axes[index]
        if axis is None:
            axis = Axis(index)
            self._axes[index] = axis
            log_model("Created axis", {"index": index})
        return axis

    def hide_axes_from(self, index: int) -> None:
        """Axes are never removed; everything from `index` on is hidden."""
        for axis in self._axes[max(index, 0):]:
            if axis is not None:
                axis.visible = False

    @property
    def axes(self) -> List[Axis]:
        return [axis for axis in self._axes if axis is not None]

    def visible_axes(self) -> List[Axis]:
        return [axis for axis in self.axes if axis.visible]

    def all_visible_axes_homed(self) -> bool:
        return all(axis.homed for axis in self.visible_axes())

    # =========================================================================
    # Cross references
    # =========================================================================

    def tool_for_heater(self, heater: int) -> Optional[Tool]:
        return self.tools.find(lambda tool: tool.heater == heater)

    def tool_for_extruder(self, extruder: int) -> Optional[Tool]:
        return self.tools.find(lambda tool: tool.extruder == extruder)

    def bed_for_heater(self, heater: int) -> Optional[BedOrChamber]:
        return self.beds.find(lambda bed: bed.heater == heater)

    def chamber_for_heater(self, heater: int) -> Optional[BedOrChamber]:
        return self.chambers.find(lambda chamber: chamber.heater == heater)

    def heater_in_use(self, heater: int) -> bool:
        """True if any tool, bed or chamber references this heater."""
        if heater < 0:
            return False
        return (
            self.tool_for_heater(heater) is not None
            or self.bed_for_heater(heater) is not None
            or self.chamber_for_heater(heater) is not None
        )

    def spindle_for_tool(self, tool: int) -> Optional[Spindle]:
        return self.spindles.find(lambda spindle: spindle.tool == tool)

    def set_spindle_tool(self, spindle_index: int, tool_index: int) -> List[int]:
        """
        Point a spindle at a tool and the tool back at the spindle.

        Tools still pointing at this spindle are detached first, so both
        sides agree afterwards. tool_index -1 only detaches.
        Returns the indices of the detached tools.
        """
        spindle = self.spindles.get_or_create(spindle_index)
        spindle.tool = tool_index

        detached = []
        for tool in self.tools:
            if tool.spindle == spindle_index and tool.index != tool_index:
                tool.spindle = NO_REFERENCE
                detached.append(tool.index)

        if tool_index != NO_REFERENCE:
            self.tools.get_or_create(tool_index).spindle = spindle_index
        return detached

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def clear(self) -> None:
        """Drop everything, as if freshly connected."""
        self._axes = [None] * MAX_TOTAL_AXES
        self.tools.clear()
        self.spindles.clear()
        self.beds.clear()
        self.chambers.clear()
        self.machine = MachineState()
        log_model("Object model cleared")

    def to_dict(self) -> dict:
        """Export the whole model (for API)."""
        return {
            "axes": [axis.to_dict() for axis in self.axes],
            "tools": [tool.to_dict() for tool in self.tools],
            "spindles": [spindle.to_dict() for spindle in self.spindles],
            "beds": [bed.to_dict() for bed in self.beds],
            "chambers": [chamber.to_dict() for chamber in self.chambers],
            "machine": self.machine.to_dict(),
        }
