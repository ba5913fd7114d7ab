from .errors import TerrainError, FetchError, DecodeError, InvalidGridError
from .raster import (
    RasterGrid,
    fetch_bytes,
    decode_raster,
    load_raster,
    load_rasters,
)
from .mesh import TerrainMesh, build_mesh
from .texture import SurfaceTexture, build_texture, expand_to_rgba
from .scene import (
    Scene,
    Material,
    DirectionalLight,
    AmbientLight,
    TerrainObject,
    assemble_scene,
)
from .camera import CameraPose
from .controls import (
    CameraController,
    ControlState,
    PointerDown,
    PointerMove,
    PointerUp,
    PointerLeave,
    Wheel,
    ControlPress,
    ControlRelease,
    ControlLeave,
)
from .scheduler import ScheduledTask, SimulatedScheduler, CanvasTimerScheduler
from .state import InputState, ViewerState
from .config import (
    Terrain3DConfig,
    ViewerConfig,
    ServerConfig,
    TileConfig,
    load_config,
)
from .render import render
from .viewer import InteractiveViewer, load_terrain, explore

__version__ = "0.1.0"
