"""State enums for the worker and controller contexts."""

from enum import Enum


class WorkerState(str, Enum):
    """Top-level state of the worker context."""

    LOADING_DICT = "LoadingDict"
    READY = "Ready"
    ERROR = "Error"


class MainState(str, Enum):
    """State of the controller context."""

    INIT = "Init"
    AWAITING_DICT = "AwaitingDict"
    READY = "Ready"
    SEARCHING = "Searching"
    ERROR = "Error"
