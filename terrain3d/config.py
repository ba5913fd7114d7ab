"""Configuration settings for the viewer, asset server and tile downloader.

Settings are plain dataclasses that load from YAML or JSON files. Every field
has a default, so a config file only needs the values it overrides.
"""

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Optional, Tuple, Union


@dataclass
class ViewerConfig:
    """Viewer, camera and terrain settings.

    Attributes
    ----------
    move_speed : float
        World units per directional movement step.
    zoom_speed : float
        Wheel zoom sensitivity.
    rotation_speed : float
        Radians of orbit per pointer pixel.
    move_interval : float
        Seconds between repeated steps while a control is held.
    default_position : tuple of float
        Camera position restored by the center control.
    fov : float
        Vertical field of view in degrees.
    near : float
        Near clipping distance.
    far : float
        Far clipping distance.
    terrain_extent : float
        Side length of the terrain footprint in world units.
    height_scale : float
        World height of the highest elevation sample.
    width : int
        Window width in pixels.
    height : int
        Window height in pixels.
    subsample : int
        Keep every n-th DEM row/column when building the mesh.
    frame_interval : float
        Seconds between render-loop ticks.
    """
    move_speed: float = 2.0
    zoom_speed: float = 0.1
    rotation_speed: float = 0.01
    move_interval: float = 0.05
    default_position: Tuple[float, float, float] = (0.0, 50.0, 50.0)
    fov: float = 75.0
    near: float = 0.1
    far: float = 1000.0
    terrain_extent: float = 100.0
    height_scale: float = 20.0
    width: int = 800
    height: int = 600
    subsample: int = 1
    frame_interval: float = 0.04


@dataclass
class ServerConfig:
    """Static asset server settings.

    Attributes
    ----------
    root : str
        Directory served as the site root.
    host : str
        Bind address.
    port : int
        TCP port.
    """
    root: str = "."
    host: str = "0.0.0.0"
    port: int = 3000


@dataclass
class TileConfig:
    """WMTS tile downloader settings.

    Attributes
    ----------
    output : str
        Output directory for tiles and the VRT mosaic.
    concurrent : int
        Maximum concurrent downloads.
    timeout : float
        Request timeout in seconds.
    """
    output: str = "tiles"
    concurrent: int = 32
    timeout: float = 10.0


def _from_section(cls, data):
    """Build a section dataclass, rejecting unknown keys."""
    data = dict(data or {})
    known = {f.name for f in fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValueError(
            f"Unknown {cls.__name__} setting(s): {', '.join(sorted(unknown))}"
        )
    for f in fields(cls):
        if f.name in data and isinstance(f.default, tuple):
            data[f.name] = tuple(data[f.name])
    return cls(**data)


@dataclass
class Terrain3DConfig:
    """Top-level configuration.

    Attributes
    ----------
    viewer : ViewerConfig
        Viewer and camera settings.
    server : ServerConfig
        Asset server settings.
    tiles : TileConfig
        Tile downloader settings.
    dem_path : str, optional
        Default DEM identifier.
    ortho_path : str, optional
        Default orthophoto identifier.
    base_url : str, optional
        Base URL for relative asset identifiers.
    """
    viewer: ViewerConfig = field(default_factory=ViewerConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    tiles: TileConfig = field(default_factory=TileConfig)
    dem_path: Optional[str] = None
    ortho_path: Optional[str] = None
    base_url: Optional[str] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization."""
        def convert(obj):
            if hasattr(obj, '__dataclass_fields__'):
                return {k: convert(v) for k, v in obj.__dict__.items()}
            elif isinstance(obj, (list, tuple)):
                return [convert(v) for v in obj]
            else:
                return obj
        return convert(self)

    @classmethod
    def from_dict(cls, data: dict) -> "Terrain3DConfig":
        """Create from dictionary."""
        return cls(
            viewer=_from_section(ViewerConfig, data.get('viewer')),
            server=_from_section(ServerConfig, data.get('server')),
            tiles=_from_section(TileConfig, data.get('tiles')),
            dem_path=data.get('dem_path'),
            ortho_path=data.get('ortho_path'),
            base_url=data.get('base_url'),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "Terrain3DConfig":
        """Load configuration from YAML file."""
        yaml = _lazy_import_yaml()
        path = Path(path)
        with open(path, 'r') as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_json(cls, path: Union[str, Path]) -> "Terrain3DConfig":
        """Load configuration from JSON file."""
        path = Path(path)
        with open(path, 'r') as f:
            data = json.load(f)
        return cls.from_dict(data)

    def to_yaml(self, path: Union[str, Path]) -> None:
        """Save configuration to YAML file."""
        yaml = _lazy_import_yaml()
        path = Path(path)
        with open(path, 'w') as f:
            yaml.safe_dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

    def to_json(self, path: Union[str, Path]) -> None:
        """Save configuration to JSON file."""
        path = Path(path)
        with open(path, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)


def _lazy_import_yaml():
    """Lazily import PyYAML with helpful error message."""
    try:
        import yaml
        return yaml
    except ImportError:
        raise ImportError(
            "PyYAML is required for YAML config files. "
            "Install with: pip install pyyaml"
        )


def load_config(path: Optional[Union[str, Path]] = None) -> Terrain3DConfig:
    """Load configuration from file or return defaults.

    Supports YAML and JSON files based on extension.

    Parameters
    ----------
    path : str or Path, optional
        Path to the configuration file.

    Returns
    -------
    Terrain3DConfig
    """
    if path is None:
        return Terrain3DConfig()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    suffix = path.suffix.lower()
    if suffix in ['.yaml', '.yml']:
        return Terrain3DConfig.from_yaml(path)
    elif suffix == '.json':
        return Terrain3DConfig.from_json(path)
    else:
        raise ValueError(f"Unsupported configuration format: {suffix}")
