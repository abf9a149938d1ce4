"""Object model layer - mirrored entities and their store"""

from .entities import Axis, Tool, Spindle, BedOrChamber, NO_REFERENCE, MAX_TOTAL_AXES, MIN_AXES
from .machine import MachineState
from .store import ObjectModelStore, IndexedCollection

__all__ = [
    'Axis', 'Tool', 'Spindle', 'BedOrChamber',
    'NO_REFERENCE', 'MAX_TOTAL_AXES', 'MIN_AXES',
    'MachineState', 'ObjectModelStore', 'IndexedCollection',
]
