"""Messages exchanged between the controller and the worker.

Messages cross between the two contexts only as plain dicts produced by
``encode_message``; the receiving side rebuilds its own objects with the
``decode_*`` functions, so nothing is shared between the contexts.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from ..core.dictionary import DictionaryStats
from ..exceptions import MessageDecodeError
from .states import WorkerState


# Worker -> controller

class WorkerStatusMessage(BaseModel):
    """Current worker state and dictionary statistics."""

    type: Literal["worker-status"] = "worker-status"
    state: WorkerState
    stats: DictionaryStats = Field(default_factory=DictionaryStats)
    error: Optional[str] = None


class DictProgressMessage(BaseModel):
    type: Literal["dict-prog"] = "dict-prog"
    percent: float = Field(..., ge=0.0, le=100.0)


class SearchProgressMessage(BaseModel):
    type: Literal["search-prog"] = "search-prog"
    percent: float = Field(..., ge=0.0, le=100.0)


class DictUpdateMessage(BaseModel):
    """Lifecycle of a background dictionary update."""

    type: Literal["dict-upd"] = "dict-upd"
    status: Literal["loading", "done", "error"]
    stats: DictionaryStats = Field(default_factory=DictionaryStats)


class ResultsMessage(BaseModel):
    type: Literal["results"] = "results"
    query: str
    pattern: str
    matches: List[str]
    suggestions: List[str] = Field(default_factory=list)


class RandomLineMessage(BaseModel):
    type: Literal["rand-line"] = "rand-line"
    line: str


# Controller -> worker

class StatusRequestMessage(BaseModel):
    type: Literal["status-req"] = "status-req"


class SearchRequestMessage(BaseModel):
    type: Literal["search"] = "search"
    query: str


class RandomRequestMessage(BaseModel):
    type: Literal["get-rand"] = "get-rand"


WorkerMessage = Annotated[
    Union[
        WorkerStatusMessage,
        DictProgressMessage,
        SearchProgressMessage,
        DictUpdateMessage,
        ResultsMessage,
        RandomLineMessage,
    ],
    Field(discriminator="type"),
]

MainMessage = Annotated[
    Union[StatusRequestMessage, SearchRequestMessage, RandomRequestMessage],
    Field(discriminator="type"),
]

_worker_adapter = TypeAdapter(WorkerMessage)
_main_adapter = TypeAdapter(MainMessage)


def encode_message(message: BaseModel) -> Dict[str, Any]:
    """Serialize a message into a fresh plain dict."""
    return message.model_dump(mode="json")


def _decode(adapter: TypeAdapter, data: Any, direction: str):
    if not isinstance(data, dict) or "type" not in data:
        raise MessageDecodeError(f"Not a {direction} message: {data!r}")
    try:
        return adapter.validate_python(data)
    except ValidationError as e:
        raise MessageDecodeError(f"Invalid {direction} message of type {data.get('type')!r}: {e}") from e


def decode_worker_message(data: Any) -> WorkerMessage:
    """
    Decode a message sent by the worker.

    Raises:
        MessageDecodeError: If the tag is unknown or the payload invalid
    """
    return _decode(_worker_adapter, data, "worker")


def decode_main_message(data: Any) -> MainMessage:
    """
    Decode a message sent by the controller.

    Raises:
        MessageDecodeError: If the tag is unknown or the payload invalid
    """
    return _decode(_main_adapter, data, "controller")
