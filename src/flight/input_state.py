"""
Per-tick input commands.

An InputState is an immutable snapshot of which named commands are held
during one tick. It is passed explicitly into every update call.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Iterable, Mapping, Optional


class Command(Enum):
    """Named input commands understood by the simulation."""
    FORWARD = "forward"
    BACK = "back"
    LEFT = "left"
    RIGHT = "right"
    ASCEND = "ascend"
    DESCEND = "descend"
    YAW_LEFT = "yaw_left"
    YAW_RIGHT = "yaw_right"
    RESET = "reset"
    TOGGLE_FORMATION = "toggle_formation"
    CYCLE_PATTERN = "cycle_pattern"
    TOGGLE_AUTONOMOUS = "toggle_autonomous"
    SELECT_1 = "select_1"
    SELECT_2 = "select_2"
    SELECT_3 = "select_3"
    SELECT_4 = "select_4"
    SELECT_5 = "select_5"
    SELECT_6 = "select_6"
    SELECT_7 = "select_7"
    SELECT_8 = "select_8"
    SELECT_9 = "select_9"


SELECT_COMMANDS = (
    Command.SELECT_1, Command.SELECT_2, Command.SELECT_3,
    Command.SELECT_4, Command.SELECT_5, Command.SELECT_6,
    Command.SELECT_7, Command.SELECT_8, Command.SELECT_9,
)


@dataclass(frozen=True)
class InputState:
    """Set of commands held during one tick."""
    held: FrozenSet[Command] = field(default_factory=frozenset)

    @classmethod
    def from_mapping(cls, commands: Optional[Mapping[str, bool]]) -> "InputState":
        """
        Build from a name -> bool map, e.g. {"forward": True, "ascend": False}.

        Unknown names are ignored.
        """
        if not commands:
            return cls()
        known = {command.value: command for command in Command}
        return cls(frozenset(known[name] for name, held in commands.items()
                             if held and name in known))

    @classmethod
    def of(cls, *commands: Command) -> "InputState":
        return cls(frozenset(commands))

    def is_held(self, command: Command) -> bool:
        return command in self.held

    def any_held(self, commands: Iterable[Command]) -> bool:
        return any(command in self.held for command in commands)

    def pressed_since(self, previous: "InputState", command: Command) -> bool:
        """True on the tick a command goes from released to held."""
        return command in self.held and command not in previous.held


NO_INPUT = InputState()
