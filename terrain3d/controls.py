"""Camera controller: input events to camera pose changes.

Input arrives as plain event objects. They can be applied immediately with
``handle()`` or queued with ``submit()`` and drained once per frame with
``process_events()``. Neither path depends on a GUI toolkit.

States
------
``IDLE``
    Nothing held.
``ROTATING``
    A pointer drag started outside the control panel; each move orbits the
    camera by the pointer delta.
``PANNING``
    A directional control is held; one step is applied immediately and then
    repeated every ``move_interval`` seconds until release.

Wheel zoom and the center/reset control act instantly in any state.
"""

import enum
from collections import deque
from dataclasses import dataclass

from .state import ViewerState

DIRECTION_CONTROLS = {
    'up': 'forward',
    'down': 'backward',
    'left': 'left',
    'right': 'right',
}
CENTER_CONTROL = 'center'
CONTROLS = tuple(DIRECTION_CONTROLS) + (CENTER_CONTROL,)


class ControlState(enum.Enum):
    IDLE = 'idle'
    ROTATING = 'rotating'
    PANNING = 'panning'


@dataclass(frozen=True)
class PointerDown:
    x: float
    y: float
    source: str = 'mouse'
    over_controls: bool = False


@dataclass(frozen=True)
class PointerMove:
    x: float
    y: float
    source: str = 'mouse'


@dataclass(frozen=True)
class PointerUp:
    source: str = 'mouse'


@dataclass(frozen=True)
class PointerLeave:
    pass


@dataclass(frozen=True)
class Wheel:
    delta_y: float


@dataclass(frozen=True)
class ControlPress:
    control: str


@dataclass(frozen=True)
class ControlRelease:
    control: str


@dataclass(frozen=True)
class ControlLeave:
    control: str


class CameraController:
    """State machine mapping input events onto the camera of a ViewerState.

    Parameters
    ----------
    state : ViewerState
        Viewer state whose camera and input state are mutated.
    scheduler : SimulatedScheduler or CanvasTimerScheduler
        Provides ``call_every(interval, callback)`` for held controls.

    Examples
    --------
    >>> from terrain3d.scheduler import SimulatedScheduler
    >>> state = ViewerState()
    >>> controller = CameraController(state, SimulatedScheduler())
    >>> controller.handle(Wheel(delta_y=100))
    >>> round(state.camera.distance() / 50 / 2 ** 0.5, 4)
    1.01
    """

    def __init__(self, state: ViewerState, scheduler):
        self.state = state
        self.scheduler = scheduler
        self._queue = deque()

    @property
    def camera(self):
        return self.state.camera

    @property
    def control_state(self):
        if self.state.move_task is not None:
            return ControlState.PANNING
        if self.state.input.is_rotating:
            return ControlState.ROTATING
        return ControlState.IDLE

    # ------------------------------------------------------------------
    # Event channel
    # ------------------------------------------------------------------

    def submit(self, event):
        """Queue an event for the next ``process_events()`` call."""
        self._queue.append(event)

    @property
    def pending(self):
        return len(self._queue)

    def process_events(self):
        """Apply every queued event in arrival order.

        Returns
        -------
        int
            Number of events processed.
        """
        count = 0
        while self._queue:
            self.handle(self._queue.popleft())
            count += 1
        return count

    def handle(self, event):
        """Apply a single event immediately."""
        if isinstance(event, PointerDown):
            self._start_rotation(event)
        elif isinstance(event, PointerMove):
            self._continue_rotation(event)
        elif isinstance(event, PointerUp):
            self._stop_rotation()
        elif isinstance(event, PointerLeave):
            self._stop_rotation()
            self.stop_move()
        elif isinstance(event, Wheel):
            self.camera.zoom(event.delta_y, zoom_speed=self.state.config.zoom_speed)
        elif isinstance(event, ControlPress):
            self._press_control(event.control)
        elif isinstance(event, (ControlRelease, ControlLeave)):
            self.stop_move()
        else:
            raise TypeError(f"Unsupported input event: {event!r}")

    # ------------------------------------------------------------------
    # Rotation
    # ------------------------------------------------------------------

    def _start_rotation(self, event):
        if event.over_controls:
            return
        self.state.input.is_rotating = True
        self.state.input.previous_pointer = (event.x, event.y)

    def _continue_rotation(self, event):
        inp = self.state.input
        if not inp.is_rotating:
            return
        px, py = inp.previous_pointer
        self.camera.rotate(event.x - px, event.y - py,
                           speed=self.state.config.rotation_speed)
        inp.previous_pointer = (event.x, event.y)

    def _stop_rotation(self):
        self.state.input.is_rotating = False

    # ------------------------------------------------------------------
    # Directional movement
    # ------------------------------------------------------------------

    def _press_control(self, control):
        if control == CENTER_CONTROL:
            self.reset()
            return
        if control not in DIRECTION_CONTROLS:
            raise ValueError(
                f"Unknown control {control!r}; use one of {CONTROLS}"
            )
        self.start_move(DIRECTION_CONTROLS[control], control=control)

    def step(self, direction):
        """Apply a single movement step."""
        self.camera.move(direction, speed=self.state.config.move_speed)

    def start_move(self, direction, control=None):
        """Move once now, then repeatedly until ``stop_move()``.

        Any running movement is cancelled first, so at most one repeating
        step exists.
        """
        self.stop_move()
        self.step(direction)
        self.state.move_task = self.scheduler.call_every(
            self.state.config.move_interval, lambda: self.step(direction)
        )
        self.state.input.active_control = control or direction

    def stop_move(self):
        """Cancel the repeating movement step. Idempotent."""
        self.state.cancel_move()

    def reset(self):
        """Stop any movement and restore the default camera pose."""
        self.stop_move()
        self.camera.reset()
