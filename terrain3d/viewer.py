"""Interactive terrain viewer using matplotlib for display.

Mouse drag orbits the camera, the scroll wheel zooms, and a five-button
panel (or the arrow keys, ``c`` and ``home``) moves and recenters it.
Input handlers only queue events; a frame timer drains the queue into the
``CameraController`` and re-renders when the camera moved.
"""

from typing import Optional

import numpy as np

from .config import ViewerConfig
from .controls import (
    CameraController, ControlLeave, ControlPress, ControlRelease, PointerDown,
    PointerLeave, PointerMove, PointerUp, Wheel,
)
from .errors import TerrainError
from .mesh import build_mesh
from .raster import load_rasters
from .render import render
from .scene import assemble_scene
from .scheduler import CanvasTimerScheduler
from .state import ERROR_MESSAGE, LOADING_MESSAGE, ViewerState
from .texture import build_texture, expand_to_rgba

# Button label and (x, y) panel offset in button units
CONTROL_LAYOUT = {
    'up': ('▲', (0, 1)),
    'down': ('▼', (0, -1)),
    'left': ('◀', (-1, 0)),
    'right': ('▶', (1, 0)),
    'center': ('●', (0, 0)),
}

KEY_CONTROLS = {
    'up': 'up',
    'down': 'down',
    'left': 'left',
    'right': 'right',
    'c': 'center',
    'home': 'center',
}

# Browser-style wheel delta for one scroll notch
WHEEL_NOTCH = 100.0


def load_terrain(state: ViewerState, dem, ortho, base_url: Optional[str] = None,
                 parallel: bool = False, timeout: float = 30.0):
    """Load a DEM and an orthophoto and assemble the scene into *state*.

    Any failure along the way leaves ``state.scene`` unset and sets
    ``state.status`` to the error message. Nothing is retried.

    Parameters
    ----------
    state : ViewerState
        Receives the scene (or the error status).
    dem, ortho : str or Path
        Identifiers of the elevation and orthophoto rasters.
    base_url : str, optional
        Base URL for relative identifiers, e.g. ``http://localhost:3000/``.
    parallel : bool
        Fetch both rasters concurrently.
    timeout : float
        Request timeout in seconds.

    Returns
    -------
    Scene or None
    """
    config = state.config
    state.status = LOADING_MESSAGE
    try:
        dem_grid, ortho_grid = load_rasters(
            [dem, ortho], all_bands=[False, True], base_url=base_url,
            timeout=timeout, parallel=parallel,
        )
        if config.subsample > 1:
            dem_grid = dem_grid.subsample(config.subsample)
        mesh = build_mesh(dem_grid, extent=config.terrain_extent,
                          height_scale=config.height_scale)
        if ortho_grid.band_count in (1, 3):
            ortho_grid = expand_to_rgba(ortho_grid)
        texture = build_texture(ortho_grid)
    except TerrainError as e:
        print(f"Error loading terrain: {e}")
        state.scene = None
        state.status = ERROR_MESSAGE
        return None

    state.scene = assemble_scene(mesh, texture)
    state.status = None
    print(f"Terrain ready: {mesh.width}x{mesh.height} vertices, "
          f"{mesh.triangles.shape[0]} triangles")
    return state.scene


class InteractiveViewer:
    """
    Interactive terrain viewer using matplotlib.

    Parameters
    ----------
    state : ViewerState
        Shared viewer state. The scene may be loaded before or after the
        window is built.
    """

    def __init__(self, state: ViewerState):
        self.state = state
        self.fig = None
        self.ax = None
        self.im = None
        self.status_text = None
        self.controller = None
        self.control_axes = {}
        self.frame_count = 0
        self._frame_timer = None
        self._held_keys = set()
        self._mouse_control = None
        self._last_pose = None
        self._last_status = None

    @property
    def width(self):
        return self.state.config.width

    @property
    def height(self):
        return self.state.config.height

    def build(self):
        """Create the figure, the control panel and the event handlers."""
        import matplotlib.pyplot as plt

        # Clear default keymaps that conflict with the controls
        for param in list(plt.rcParams.keys()):
            if param.startswith('keymap.'):
                plt.rcParams[param] = []

        old_toolbar = plt.rcParams.get('toolbar', 'toolbar2')
        plt.rcParams['toolbar'] = 'None'
        self.fig = plt.figure(figsize=(self.width / 100, self.height / 100), dpi=100)
        plt.rcParams['toolbar'] = old_toolbar
        self.fig.patch.set_facecolor('black')

        self.ax = self.fig.add_axes([0, 0, 1, 1])
        self.ax.axis('off')
        self.im = self.ax.imshow(np.zeros((self.height, self.width, 3)), aspect='auto')
        self.status_text = self.ax.text(
            0.5, 0.5, '', transform=self.ax.transAxes, color='white',
            fontsize=14, ha='center', va='center',
        )
        self._create_controls()

        self.controller = CameraController(
            self.state, CanvasTimerScheduler(self.fig.canvas)
        )

        canvas = self.fig.canvas
        canvas.mpl_connect('button_press_event', self._handle_mouse_press)
        canvas.mpl_connect('button_release_event', self._handle_mouse_release)
        canvas.mpl_connect('motion_notify_event', self._handle_mouse_motion)
        canvas.mpl_connect('figure_leave_event', self._handle_figure_leave)
        canvas.mpl_connect('axes_leave_event', self._handle_axes_leave)
        canvas.mpl_connect('scroll_event', self._handle_scroll)
        canvas.mpl_connect('key_press_event', self._handle_key_press)
        canvas.mpl_connect('key_release_event', self._handle_key_release)
        return self

    def _create_controls(self):
        size = 0.06
        cx, cy = 0.88, 0.14
        aspect = self.width / self.height
        for control, (label, (dx, dy)) in CONTROL_LAYOUT.items():
            w = size
            h = size * aspect
            ax = self.fig.add_axes([cx + dx * w - w / 2, cy + dy * h - h / 2, w, h])
            ax.set_facecolor((1.0, 1.0, 1.0, 0.3))
            ax.set_xticks([])
            ax.set_yticks([])
            ax.text(0.5, 0.5, label, ha='center', va='center',
                    color='white', fontsize=12, transform=ax.transAxes)
            self.control_axes[control] = ax

    def _control_at(self, axes):
        for control, ax in self.control_axes.items():
            if ax is axes:
                return control
        return None

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _pointer_xy(self, event):
        # matplotlib measures y from the bottom edge
        return float(event.x), float(self.fig.bbox.height - event.y)

    def _handle_mouse_press(self, event):
        if event.x is None or event.y is None:
            return
        control = self._control_at(event.inaxes)
        x, y = self._pointer_xy(event)
        self.controller.submit(PointerDown(x, y, over_controls=control is not None))
        if control is not None:
            self._mouse_control = control
            self.controller.submit(ControlPress(control))

    def _handle_mouse_release(self, event):
        if self._mouse_control is not None:
            self.controller.submit(ControlRelease(self._mouse_control))
            self._mouse_control = None
        self.controller.submit(PointerUp())

    def _handle_mouse_motion(self, event):
        if event.x is None or event.y is None:
            return
        x, y = self._pointer_xy(event)
        self.controller.submit(PointerMove(x, y))

    def _handle_figure_leave(self, event):
        self.controller.submit(PointerLeave())

    def _handle_axes_leave(self, event):
        control = self._control_at(event.inaxes)
        if control is not None and control == self._mouse_control:
            self._mouse_control = None
            self.controller.submit(ControlLeave(control))

    def _handle_scroll(self, event):
        # Scrolling up zooms in, like a negative browser wheel delta
        self.controller.submit(Wheel(delta_y=-WHEEL_NOTCH * event.step))

    def _handle_key_press(self, event):
        key = (event.key or '').lower()
        if key not in KEY_CONTROLS:
            return
        # Auto-repeat sends repeated presses; the held control already repeats
        if key in self._held_keys:
            return
        self._held_keys.add(key)
        self.controller.submit(ControlPress(KEY_CONTROLS[key]))

    def _handle_key_release(self, event):
        key = (event.key or '').lower()
        if key not in self._held_keys:
            return
        self._held_keys.discard(key)
        self.controller.submit(ControlRelease(KEY_CONTROLS[key]))

    # ------------------------------------------------------------------
    # Frame loop
    # ------------------------------------------------------------------

    def _pose_key(self):
        camera = self.state.camera
        return tuple(np.round(camera.position, 9)) + tuple(np.round(camera.target, 9))

    def tick(self):
        """Drain queued input and redraw if the view changed.

        Returns
        -------
        bool
            True if a new frame was drawn.
        """
        self.controller.process_events()
        pose = self._pose_key()
        changed = (pose != self._last_pose
                   or self.state.status != self._last_status
                   or self.frame_count == 0)
        if changed:
            self.update_frame()
        return changed

    def _on_frame(self):
        # Timer callbacks returning 0 or False are unregistered.
        self.tick()

    def update_frame(self):
        """Render the current view into the image axes."""
        img = render(self.state.scene, self.state.camera,
                     width=self.width, height=self.height)
        self.im.set_data(img)
        self.status_text.set_text(self.state.status or '')
        self._last_pose = self._pose_key()
        self._last_status = self.state.status
        self.frame_count += 1
        self.fig.canvas.draw_idle()

    def run(self, block: bool = True):
        """Show the window and start the frame timer."""
        import matplotlib.pyplot as plt

        if self.fig is None:
            self.build()

        interval = max(1, int(self.state.config.frame_interval * 1000))
        self._frame_timer = self.fig.canvas.new_timer(interval=interval)
        self._frame_timer.add_callback(self._on_frame)
        self._frame_timer.start()

        print("\nInteractive Viewer Started")
        print(f"  Window: {self.width}x{self.height}")
        print("  Drag to orbit, scroll to zoom, arrows/buttons to move, C to recenter\n")

        self.update_frame()
        plt.show(block=block)

        if block:
            self.close()

    def close(self):
        """Stop timers and any held movement."""
        if self._frame_timer is not None:
            self._frame_timer.stop()
            self._frame_timer = None
        self.state.cancel_move()
        print(f"Viewer closed after {self.frame_count} frames")


def explore(dem, ortho, config: Optional[ViewerConfig] = None,
            base_url: Optional[str] = None, parallel: bool = False,
            timeout: float = 30.0, block: bool = True):
    """
    Launch an interactive terrain viewer.

    Parameters
    ----------
    dem : str or Path
        Elevation raster (local path or URL).
    ortho : str or Path
        Orthophoto raster with 3 or 4 byte bands.
    config : ViewerConfig, optional
        Viewer settings. Defaults are used if omitted.
    base_url : str, optional
        Base URL for relative identifiers.
    parallel : bool
        Fetch both rasters concurrently.
    timeout : float
        Request timeout in seconds.
    block : bool
        Block until the window is closed.

    Returns
    -------
    InteractiveViewer

    Examples
    --------
    >>> explore('dem.tiff', 'orthophoto.tiff', base_url='http://localhost:3000/')
    """
    state = ViewerState(config=config or ViewerConfig())
    viewer = InteractiveViewer(state).build()
    viewer.update_frame()
    load_terrain(state, dem, ortho, base_url=base_url, parallel=parallel,
                 timeout=timeout)
    viewer.run(block=block)
    return viewer
