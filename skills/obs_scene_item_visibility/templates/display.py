import sys
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, TextIO

NO_SOURCE_LABEL = "No Source Selected!"


class Indicator(Enum):
    NO_SELECTION = "no_selection"
    VISIBLE = "visible"
    HIDDEN = "hidden"
    UNKNOWN = "unknown"


# glyph, module class
_INDICATOR_STYLES = {
    Indicator.NO_SELECTION: ("casthub", "module"),
    Indicator.VISIBLE: ("visibility_on", "module visible"),
    Indicator.HIDDEN: ("visibility_off", "module hidden"),
    Indicator.UNKNOWN: ("casthub", "module"),
}


@dataclass(frozen=True)
class DisplayState:
    label: str
    indicator: Indicator

    @property
    def glyph(self) -> str:
        return _INDICATOR_STYLES[self.indicator][0]

    @property
    def css_class(self) -> str:
        return _INDICATOR_STYLES[self.indicator][1]


class DisplaySink(Protocol):
    def render(self, state: DisplayState) -> None:
        ...


class ConsoleDisplay:
    """Print one line per render: glyph, module class and label."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream if stream is not None else sys.stdout

    def render(self, state: DisplayState) -> None:
        print(f"[{state.glyph}] ({state.css_class}) {state.label}", file=self.stream, flush=True)
