"""
cnode Pipeline - configuration and run orchestration.

Loads the node configuration and runs capture → envelope → publish once.
"""

from .config import CaptureConfig, MQTTConfig, NodeConfig, load_yaml
from .orchestrator import EXIT_FAILURE, EXIT_SUCCESS, NodePipeline, build_controller

__all__ = [
    'CaptureConfig',
    'MQTTConfig',
    'NodeConfig',
    'load_yaml',
    'NodePipeline',
    'build_controller',
    'EXIT_SUCCESS',
    'EXIT_FAILURE',
]
