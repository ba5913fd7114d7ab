"""Viewer state owned by the application entry point.

Nothing here is global: the controller, the render loop and the loader all
receive the same ``ViewerState`` instance, so independent viewers (and tests)
can coexist in one process.
"""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .camera import CameraPose
from .config import ViewerConfig
from .scene import Scene
from .scheduler import ScheduledTask

LOADING_MESSAGE = "Loading terrain..."
ERROR_MESSAGE = "Error loading terrain data"


@dataclass
class InputState:
    """Transient per-gesture input state."""
    is_rotating: bool = False
    previous_pointer: Tuple[float, float] = (0.0, 0.0)
    active_control: Optional[str] = None

    def reset(self):
        self.is_rotating = False
        self.previous_pointer = (0.0, 0.0)
        self.active_control = None


@dataclass
class ViewerState:
    """Camera, input and scene state of one viewer instance.

    Attributes
    ----------
    config : ViewerConfig
        Speeds, intervals and default pose.
    camera : CameraPose
        Mutated by the controller, read by the render loop.
    input : InputState
        Gesture state owned by the controller.
    scene : Scene or None
        Set once the terrain has loaded.
    move_task : ScheduledTask or None
        The repeating movement step while a directional control is held.
    status : str or None
        Loading/error message; None once the scene is ready.
    """
    config: ViewerConfig = field(default_factory=ViewerConfig)
    camera: Optional[CameraPose] = None
    input: InputState = field(default_factory=InputState)
    scene: Optional[Scene] = None
    move_task: Optional[ScheduledTask] = None
    status: Optional[str] = LOADING_MESSAGE

    def __post_init__(self):
        if self.camera is None:
            self.camera = CameraPose(
                position=self.config.default_position,
                fov=self.config.fov,
                aspect=self.config.width / self.config.height,
                near=self.config.near,
                far=self.config.far,
            )

    def cancel_move(self):
        """Cancel the repeating movement step, if any. Idempotent."""
        if self.move_task is not None:
            self.move_task.cancel()
            self.move_task = None
        self.input.active_control = None
