"""Two-context protocol: the dictionary worker and the controller that drives it."""

from .controller import ControllerStatus, MainController, SearchOutcome
from .messages import decode_main_message, decode_worker_message, encode_message
from .states import MainState, WorkerState
from .worker import DictWorker

__all__ = [
    "ControllerStatus",
    "DictWorker",
    "MainController",
    "MainState",
    "SearchOutcome",
    "WorkerState",
    "decode_main_message",
    "decode_worker_message",
    "encode_message",
]
