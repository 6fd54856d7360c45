"""Shared FastAPI dependencies."""

from fastapi import Request

from ..exceptions import ControllerNotReadyError
from ..protocol.controller import MainController
from ..runtime import DictionaryRuntime


def get_runtime(request: Request) -> DictionaryRuntime:
    """The runtime started by the application lifespan."""
    return request.app.state.runtime


def get_controller(request: Request) -> MainController:
    """The current controller; raises if the runtime is stopped."""
    controller = get_runtime(request).controller
    if controller is None:
        raise ControllerNotReadyError("Stopped")
    return controller
