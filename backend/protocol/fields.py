"""
Field tables - wire paths and the symbolic codes they resolve to.

The tables are declared in reading order; the dispatcher sorts them once.
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Dict, Optional, Tuple

from core.types import Subsystem


class FieldCode(Enum):
    UNKNOWN = auto()

    # Keyed response envelope
    KEY = auto()
    FLAGS = auto()

    # Push messages
    PUSH_MESSAGE = auto()
    PUSH_RESPONSE = auto()
    PUSH_SEQ = auto()
    PUSH_BEEP_DURATION = auto()
    PUSH_BEEP_FREQUENCY = auto()

    # Live values (summary and detail)
    FANS_ACTUAL_VALUE = auto()
    HEATERS_ACTIVE = auto()
    HEATERS_CURRENT = auto()
    HEATERS_STANDBY = auto()
    HEATERS_STATE = auto()
    JOB_FILE_POSITION = auto()
    JOB_TIMES_LEFT_FILAMENT = auto()
    JOB_TIMES_LEFT_FILE = auto()
    JOB_TIMES_LEFT_LAYER = auto()
    AXES_HOMED = auto()
    AXES_MACHINE_POSITION = auto()
    AXES_USER_POSITION = auto()
    SENSORS_PROBE_VALUE = auto()
    SPINDLES_CURRENT = auto()
    STATE_CURRENT_TOOL = auto()
    STATE_STATUS = auto()
    STATE_UPTIME = auto()
    TOOLS_STATE = auto()

    # Sequence numbers
    SEQS_BOARDS = auto()
    SEQS_DIRECTORIES = auto()
    SEQS_FANS = auto()
    SEQS_HEAT = auto()
    SEQS_INPUTS = auto()
    SEQS_JOB = auto()
    SEQS_MOVE = auto()
    SEQS_NETWORK = auto()
    SEQS_REPLY = auto()
    SEQS_SCANNER = auto()
    SEQS_SENSORS = auto()
    SEQS_SPINDLES = auto()
    SEQS_STATE = auto()
    SEQS_TOOLS = auto()
    SEQS_VOLUMES = auto()

    # Detail responses
    BOARDS_FIRMWARE_NAME = auto()
    HEAT_BED_HEATERS = auto()
    HEAT_CHAMBER_HEATERS = auto()
    JOB_FILE_NAME = auto()
    JOB_FILE_SIZE = auto()
    AXES_BABYSTEP = auto()
    AXES_LETTER = auto()
    AXES_VISIBLE = auto()
    AXES_WORKPLACE_OFFSETS = auto()
    EXTRUDERS_FACTOR = auto()
    KINEMATICS_NAME = auto()
    SPEED_FACTOR = auto()
    WORKPLACE_NUMBER = auto()
    NETWORK_NAME = auto()
    NETWORK_INTERFACES_ACTUAL_IP = auto()
    SPINDLES_ACTIVE = auto()
    SPINDLES_MAX = auto()
    SPINDLES_TOOL = auto()
    MESSAGE_BOX = auto()
    MESSAGE_BOX_AXIS_CONTROLS = auto()
    MESSAGE_BOX_MESSAGE = auto()
    MESSAGE_BOX_MODE = auto()
    MESSAGE_BOX_SEQ = auto()
    MESSAGE_BOX_TIMEOUT = auto()
    MESSAGE_BOX_TITLE = auto()
    TOOLS_EXTRUDERS = auto()
    TOOLS_HEATERS = auto()
    TOOLS_NUMBER = auto()
    TOOLS_OFFSETS = auto()
    VOLUMES_MOUNTED = auto()

    # Array ends handled by the message session
    AXES_ARRAY = auto()
    TOOLS_ARRAY = auto()
    SPINDLES_ARRAY = auto()
    BED_HEATERS_ARRAY = auto()
    CHAMBER_HEATERS_ARRAY = auto()
    TOOLS_EXTRUDERS_ARRAY = auto()
    TOOLS_HEATERS_ARRAY = auto()
    VOLUMES_ARRAY = auto()


FIELD_TABLE: Tuple[Tuple[str, FieldCode], ...] = (
    ("key", FieldCode.KEY),
    ("flags", FieldCode.FLAGS),

    ("fans^:actualValue", FieldCode.FANS_ACTUAL_VALUE),
    ("heat:heaters^:active", FieldCode.HEATERS_ACTIVE),
    ("heat:heaters^:current", FieldCode.HEATERS_CURRENT),
    ("heat:heaters^:standby", FieldCode.HEATERS_STANDBY),
    ("heat:heaters^:state", FieldCode.HEATERS_STATE),
    ("job:filePosition", FieldCode.JOB_FILE_POSITION),
    ("job:timesLeft:filament", FieldCode.JOB_TIMES_LEFT_FILAMENT),
    ("job:timesLeft:file", FieldCode.JOB_TIMES_LEFT_FILE),
    ("job:timesLeft:layer", FieldCode.JOB_TIMES_LEFT_LAYER),
    ("move:axes^:machinePosition", FieldCode.AXES_MACHINE_POSITION),
    ("move:axes^:userPosition", FieldCode.AXES_USER_POSITION),
    ("sensors:probes^:value^", FieldCode.SENSORS_PROBE_VALUE),

    ("seqs:boards", FieldCode.SEQS_BOARDS),
    ("seqs:directories", FieldCode.SEQS_DIRECTORIES),
    ("seqs:fans", FieldCode.SEQS_FANS),
    ("seqs:heat", FieldCode.SEQS_HEAT),
    ("seqs:inputs", FieldCode.SEQS_INPUTS),
    ("seqs:job", FieldCode.SEQS_JOB),
    ("seqs:move", FieldCode.SEQS_MOVE),
    ("seqs:network", FieldCode.SEQS_NETWORK),
    ("seqs:reply", FieldCode.SEQS_REPLY),
    ("seqs:scanner", FieldCode.SEQS_SCANNER),
    ("seqs:sensors", FieldCode.SEQS_SENSORS),
    ("seqs:spindles", FieldCode.SEQS_SPINDLES),
    ("seqs:state", FieldCode.SEQS_STATE),
    ("seqs:tools", FieldCode.SEQS_TOOLS),
    ("seqs:volumes", FieldCode.SEQS_VOLUMES),

    ("spindles^:current", FieldCode.SPINDLES_CURRENT),
    ("state:currentTool", FieldCode.STATE_CURRENT_TOOL),
    ("state:status", FieldCode.STATE_STATUS),
    ("state:upTime", FieldCode.STATE_UPTIME),
    ("tools^:state", FieldCode.TOOLS_STATE),

    # M409 K"boards"
    ("boards^:firmwareName", FieldCode.BOARDS_FIRMWARE_NAME),

    # M409 K"heat"
    ("heat:bedHeaters^", FieldCode.HEAT_BED_HEATERS),
    ("heat:chamberHeaters^", FieldCode.HEAT_CHAMBER_HEATERS),

    # M409 K"job"
    ("job:file:fileName", FieldCode.JOB_FILE_NAME),
    ("job:file:size", FieldCode.JOB_FILE_SIZE),

    # M409 K"move"
    ("move:axes^:babystep", FieldCode.AXES_BABYSTEP),
    ("move:axes^:homed", FieldCode.AXES_HOMED),
    ("move:axes^:letter", FieldCode.AXES_LETTER),
    ("move:axes^:visible", FieldCode.AXES_VISIBLE),
    ("move:axes^:workplaceOffsets^", FieldCode.AXES_WORKPLACE_OFFSETS),
    ("move:extruders^:factor", FieldCode.EXTRUDERS_FACTOR),
    ("move:kinematics:name", FieldCode.KINEMATICS_NAME),
    ("move:speedFactor", FieldCode.SPEED_FACTOR),
    ("move:workplaceNumber", FieldCode.WORKPLACE_NUMBER),

    # M409 K"network"
    ("network:name", FieldCode.NETWORK_NAME),
    ("network:interfaces^:actualIP", FieldCode.NETWORK_INTERFACES_ACTUAL_IP),

    # M409 K"spindles"
    ("spindles^:active", FieldCode.SPINDLES_ACTIVE),
    ("spindles^:max", FieldCode.SPINDLES_MAX),
    ("spindles^:tool", FieldCode.SPINDLES_TOOL),

    # M409 K"state"
    ("state:messageBox", FieldCode.MESSAGE_BOX),
    ("state:messageBox:axisControls", FieldCode.MESSAGE_BOX_AXIS_CONTROLS),
    ("state:messageBox:message", FieldCode.MESSAGE_BOX_MESSAGE),
    ("state:messageBox:mode", FieldCode.MESSAGE_BOX_MODE),
    ("state:messageBox:seq", FieldCode.MESSAGE_BOX_SEQ),
    ("state:messageBox:timeout", FieldCode.MESSAGE_BOX_TIMEOUT),
    ("state:messageBox:title", FieldCode.MESSAGE_BOX_TITLE),

    # M409 K"tools"
    ("tools^:extruders^", FieldCode.TOOLS_EXTRUDERS),
    ("tools^:heaters^", FieldCode.TOOLS_HEATERS),
    ("tools^:number", FieldCode.TOOLS_NUMBER),
    ("tools^:offsets^", FieldCode.TOOLS_OFFSETS),

    # M409 K"volumes"
    ("volumes^:mounted", FieldCode.VOLUMES_MOUNTED),

    # Push messages
    ("message", FieldCode.PUSH_MESSAGE),
    ("resp", FieldCode.PUSH_RESPONSE),
    ("seq", FieldCode.PUSH_SEQ),
    ("beep_length", FieldCode.PUSH_BEEP_DURATION),
    ("beep_freq", FieldCode.PUSH_BEEP_FREQUENCY),
)


# Array paths whose end the message session acts on
ARRAY_END_TABLE: Tuple[Tuple[str, FieldCode], ...] = (
    ("move:axes^", FieldCode.AXES_ARRAY),
    ("tools^", FieldCode.TOOLS_ARRAY),
    ("spindles^", FieldCode.SPINDLES_ARRAY),
    ("heat:bedHeaters^", FieldCode.BED_HEATERS_ARRAY),
    ("heat:chamberHeaters^", FieldCode.CHAMBER_HEATERS_ARRAY),
    ("tools^:extruders^", FieldCode.TOOLS_EXTRUDERS_ARRAY),
    ("tools^:heaters^", FieldCode.TOOLS_HEATERS_ARRAY),
    ("volumes^", FieldCode.VOLUMES_ARRAY),
)


SEQ_FIELDS: Dict[FieldCode, Subsystem] = {
    FieldCode.SEQS_BOARDS: Subsystem.BOARDS,
    FieldCode.SEQS_DIRECTORIES: Subsystem.DIRECTORIES,
    FieldCode.SEQS_FANS: Subsystem.FANS,
    FieldCode.SEQS_HEAT: Subsystem.HEAT,
    FieldCode.SEQS_INPUTS: Subsystem.INPUTS,
    FieldCode.SEQS_JOB: Subsystem.JOB,
    FieldCode.SEQS_MOVE: Subsystem.MOVE,
    FieldCode.SEQS_NETWORK: Subsystem.NETWORK,
    FieldCode.SEQS_SCANNER: Subsystem.SCANNER,
    FieldCode.SEQS_SENSORS: Subsystem.SENSORS,
    FieldCode.SEQS_SPINDLES: Subsystem.SPINDLES,
    FieldCode.SEQS_STATE: Subsystem.STATE,
    FieldCode.SEQS_TOOLS: Subsystem.TOOLS,
    FieldCode.SEQS_VOLUMES: Subsystem.VOLUMES,
}


class KeyCode(Enum):
    """Value of the `key` field of a keyed response."""
    UNKNOWN = auto()
    NO_KEY = auto()
    BOARDS = auto()
    DIRECTORIES = auto()
    FANS = auto()
    HEAT = auto()
    INPUTS = auto()
    JOB = auto()
    LIMITS = auto()
    MOVE = auto()
    NETWORK = auto()
    REPLY = auto()
    SCANNER = auto()
    SENSORS = auto()
    SEQS = auto()
    SPINDLES = auto()
    STATE = auto()
    TOOLS = auto()
    VOLUMES = auto()

    @property
    def subsystem(self) -> Optional[Subsystem]:
        """The pollable subsystem this key answers, if any."""
        try:
            return Subsystem(self.name.lower())
        except ValueError:
            return None


KEY_TABLE: Tuple[Tuple[str, KeyCode], ...] = (
    ("", KeyCode.NO_KEY),
    ("boards", KeyCode.BOARDS),
    ("directories", KeyCode.DIRECTORIES),
    ("fans", KeyCode.FANS),
    ("heat", KeyCode.HEAT),
    ("inputs", KeyCode.INPUTS),
    ("job", KeyCode.JOB),
    ("limits", KeyCode.LIMITS),
    ("move", KeyCode.MOVE),
    ("network", KeyCode.NETWORK),
    ("reply", KeyCode.REPLY),
    ("scanner", KeyCode.SCANNER),
    ("sensors", KeyCode.SENSORS),
    ("seqs", KeyCode.SEQS),
    ("spindles", KeyCode.SPINDLES),
    ("state", KeyCode.STATE),
    ("tools", KeyCode.TOOLS),
    ("volumes", KeyCode.VOLUMES),
)
