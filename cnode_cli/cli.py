"""
cnode CLI - Main entry point.

Captures one still, wraps it in a CBOR envelope and publishes it to MQTT.
Settings come from an optional YAML file; command-line flags override it.
"""

import argparse
import json
import signal
import sys
from typing import Any, Dict, List, Optional

from cnode_capture import Picamera2Device
from cnode_mqtt.logging import LogEvent, create_logger, level_for_verbosity
from cnode_pipeline import NodeConfig, NodePipeline, build_controller, load_yaml
from cnode_pipeline.orchestrator import EXIT_FAILURE

# flag dest → (section, key); section None is top level
OVERRIDES = {
    'node_id': (None, 'node_id'),
    'broker': ('mqtt', 'broker'),
    'client_id': ('mqtt', 'client_id'),
    'topic': ('mqtt', 'topic'),
    'username': ('mqtt', 'username'),
    'password': ('mqtt', 'password'),
    'tls_ca_certs': ('mqtt', 'tls_ca_certs'),
    'connect_timeout': ('mqtt', 'connect_timeout'),
    'publish_timeout': ('mqtt', 'publish_timeout'),
    'disconnect_timeout': ('mqtt', 'disconnect_timeout'),
    'camera': ('capture', 'camera_num'),
    'width': ('capture', 'width'),
    'height': ('capture', 'height'),
    'quality': ('capture', 'quality'),
    'stall_timeout': ('capture', 'stall_timeout'),
    'max_restarts': ('capture', 'max_restarts'),
    'output': ('capture', 'output'),
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cnode",
        description="Capture one still image and publish it to MQTT as a CBOR envelope",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Everything from YAML
  cnode --config /etc/cnode/cnode.yaml

  # Flags only
  cnode --node-id 1 --broker tcp://broker.local:1883 --topic events/frame

  # YAML plus overrides, debug logging
  cnode --config cnode.yaml --topic events/test -vv
"""
    )

    parser.add_argument('--config', help='Path to YAML configuration')
    parser.add_argument('--node-id', help='Node identifier written into the envelope')

    mqtt_group = parser.add_argument_group('mqtt')
    mqtt_group.add_argument('--broker', help='Broker URL (default: tcp://localhost:1883)')
    mqtt_group.add_argument('--client-id', help='MQTT client id')
    mqtt_group.add_argument('--topic', help='Topic to publish the envelope to')
    mqtt_group.add_argument('--username', help='MQTT username')
    mqtt_group.add_argument('--password', help='MQTT password')
    mqtt_group.add_argument('--tls-ca-certs', help='CA bundle for ssl:// brokers')
    mqtt_group.add_argument('--connect-timeout', type=float, help='Seconds to wait for CONNACK')
    mqtt_group.add_argument('--publish-timeout', type=float, help='Seconds to wait for PUBACK')
    mqtt_group.add_argument(
        '--disconnect-timeout', type=float,
        help='Seconds to wait for the broker to close the connection'
    )
    mqtt_group.add_argument(
        '--no-lwt',
        action='store_true',
        help='Do not register a Last Will and Testament'
    )

    capture_group = parser.add_argument_group('capture')
    capture_group.add_argument('--camera', type=int, help='Camera index')
    capture_group.add_argument('--width', type=int, help='Still width')
    capture_group.add_argument('--height', type=int, help='Still height')
    capture_group.add_argument('-q', '--quality', type=int, help='JPEG quality (1-100)')
    capture_group.add_argument('--stall-timeout', type=float, help='Seconds before a device stall')
    capture_group.add_argument('--max-restarts', type=int, help='Give up after N stall restarts')
    capture_group.add_argument('-o', '--output', help='Also write the JPEG to this file')

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=None,
        help='Increase log verbosity (-v progress, -vv debug)'
    )

    return parser


def resolve_config(args: argparse.Namespace) -> NodeConfig:
    """
    Merge YAML (if any) with command-line overrides and validate.

    Raises:
        FileNotFoundError, ValueError: On missing file or invalid settings
    """
    data: Dict[str, Any] = load_yaml(args.config) if args.config else {}
    data.setdefault('capture', {})
    data.setdefault('mqtt', {})

    for dest, (section, key) in OVERRIDES.items():
        value = getattr(args, dest)
        if value is None:
            continue
        if section is None:
            data[key] = value
        else:
            data[section] = dict(data[section] or {}, **{key: value})

    if args.no_lwt:
        data['mqtt'] = dict(data['mqtt'] or {}, lwt_enabled=False)
    if args.verbose is not None:
        data['verbose'] = args.verbose

    return NodeConfig.from_dict(data)


def main(argv: Optional[List[str]] = None):
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = resolve_config(args)
    except (FileNotFoundError, ValueError) as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    level = level_for_verbosity(config.verbose)
    logger = create_logger("pipeline", level=level)
    if config.verbose >= 2:
        logger.debug(
            event=LogEvent.CONFIG_LOADED,
            message="Effective configuration",
            metadata=json.loads(json.dumps(config.to_dict(), default=str))
        )

    capture = config.capture_config
    device = Picamera2Device(
        camera_num=capture.camera_num,
        size=capture.size,
        stall_timeout=capture.stall_timeout,
    )

    def _signal_handler(signum, frame):
        # Capture ends with QUIT; once publishing starts there is no cancellation
        device.request_quit()

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    pipeline = NodePipeline(
        config=config,
        controller=build_controller(config, create_logger("capture", level=level), device=device),
        logger=logger,
    )
    sys.exit(pipeline.run())


if __name__ == '__main__':
    main()
