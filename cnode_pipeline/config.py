"""
Configuration schema for the cnode pipeline.

Defines the node identity, capture settings and MQTT publishing settings.
Loaded from YAML (optionally) and overridden from the command line, then
validated once at startup: a bad configuration never reaches the camera.
"""

from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Optional
import yaml

from cnode_mqtt.schemas import BrokerAddress, LastWill
from cnode_mqtt.schemas.request import DEFAULT_TIMEOUT, LWT_PAYLOAD, LWT_TOPIC


@dataclass(frozen=True)
class CaptureConfig:
    """Camera and still capture configuration."""

    camera_num: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    quality: int = 93
    stall_timeout: float = 5.0  # device's own deadline before a TIMEOUT event
    max_restarts: Optional[int] = None  # None: restart forever
    restart_backoff: float = 0.0
    output: Optional[Path] = None  # also write the JPEG here

    def __post_init__(self):
        """Validate capture configuration."""
        if (self.width is None) != (self.height is None):
            raise ValueError("width and height must be given together")
        if self.width is not None and (self.width <= 0 or self.height <= 0):
            raise ValueError(
                f"capture size must be positive, got {self.width}x{self.height}"
            )

        if not 1 <= self.quality <= 100:
            raise ValueError(f"quality must be in [1, 100], got {self.quality}")

        if self.stall_timeout <= 0:
            raise ValueError(f"stall_timeout must be > 0, got {self.stall_timeout}")

        if self.max_restarts is not None and self.max_restarts < 0:
            raise ValueError(f"max_restarts must be >= 0, got {self.max_restarts}")

        if self.restart_backoff < 0:
            raise ValueError(f"restart_backoff must be >= 0, got {self.restart_backoff}")

        if self.output is not None and not isinstance(self.output, Path):
            object.__setattr__(self, 'output', Path(self.output))

    @property
    def size(self):
        if self.width is None:
            return None
        return (self.width, self.height)


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration."""

    broker: str = "tcp://localhost:1883"
    client_id: str = "cnode"
    topic: str = ""
    username: Optional[str] = None
    password: Optional[str] = None
    tls_ca_certs: Optional[str] = None

    connect_timeout: float = DEFAULT_TIMEOUT
    publish_timeout: float = DEFAULT_TIMEOUT
    disconnect_timeout: float = DEFAULT_TIMEOUT

    lwt_enabled: bool = True
    lwt_topic: str = LWT_TOPIC
    lwt_payload: str = LWT_PAYLOAD

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.topic:
            raise ValueError("topic required")

        if not self.client_id:
            raise ValueError("client_id cannot be empty")

        # Raises ValueError for malformed addresses
        BrokerAddress.parse(self.broker)

        for name in ("connect_timeout", "publish_timeout", "disconnect_timeout"):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be > 0, got {value}")

        if self.lwt_enabled and not self.lwt_topic:
            raise ValueError("lwt_topic cannot be empty when lwt_enabled")

    @property
    def will(self) -> Optional[LastWill]:
        if not self.lwt_enabled:
            return None
        return LastWill(topic=self.lwt_topic, payload=self.lwt_payload)


@dataclass(frozen=True)
class NodeConfig:
    """
    Main configuration for one cnode run.

    Immutable after construction (frozen dataclass).
    """

    # Node identification
    node_id: str

    # MQTT configuration
    mqtt_config: MQTTConfig

    # Capture configuration
    capture_config: CaptureConfig = field(default_factory=CaptureConfig)

    # 0: warnings only, 1: progress, 2+: debug
    verbose: int = 1

    def __post_init__(self):
        """Validate node configuration."""
        if not self.node_id:
            raise ValueError("node_id cannot be empty")

        if self.verbose < 0:
            raise ValueError(f"verbose must be >= 0, got {self.verbose}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodeConfig":
        """
        Build configuration from a plain mapping (parsed YAML).

        Raises:
            ValueError: On unknown keys or invalid values
        """
        data = dict(data or {})

        capture_data = data.pop("capture", None) or {}
        mqtt_data = data.pop("mqtt", None) or {}

        try:
            capture_config = CaptureConfig(**capture_data)
            mqtt_config = MQTTConfig(**mqtt_data)
        except TypeError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        unknown = set(data) - {"node_id", "verbose"}
        if unknown:
            raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")

        # YAML null counts as missing
        node_id = data.get("node_id")
        verbose = data.get("verbose")
        try:
            verbose = 1 if verbose is None else int(verbose)
        except (TypeError, ValueError) as e:
            raise ValueError(f"verbose must be an integer, got {verbose!r}") from e

        return cls(
            node_id="" if node_id is None else str(node_id),
            mqtt_config=mqtt_config,
            capture_config=capture_config,
            verbose=verbose,
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "NodeConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            node_id: "1"
            verbose: 1

            capture:
              width: 2028
              height: 1520
              quality: 90
              stall_timeout: 5.0
              max_restarts: 10
              output: "/var/lib/cnode/last.jpg"

            mqtt:
              broker: "tcp://broker.local:1883"
              client_id: "cnode-1"
              topic: "events/frame"
              username: "testuser"
              password: "testpassword"
              lwt_enabled: true
        """
        return cls.from_dict(load_yaml(yaml_path))

    def to_dict(self) -> Dict[str, Any]:
        """Configuration as a mapping with secrets redacted."""
        data = asdict(self)
        if data["mqtt_config"].get("password"):
            data["mqtt_config"]["password"] = "***"
        if data["capture_config"].get("output") is not None:
            data["capture_config"]["output"] = str(data["capture_config"]["output"])
        return data


def load_yaml(yaml_path: Path) -> Dict[str, Any]:
    """
    Load a YAML mapping.

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the YAML is invalid or not a mapping
    """
    path = Path(yaml_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data
