"""
PnP CLI - Main entry point.

Provides command-line interface for sending commands and desired-property
writes to a thermostat device over MQTT.
"""

import argparse
import json
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from pnp_twin.schemas import RebootRequest, WritablePropertyRequest
from pnp_twin.topics import TopicLayout

from .mqtt_client import MQTTCommandClient


def load_yaml_config(config_path: str) -> Dict[str, Any]:
    """
    Load YAML configuration file.

    Args:
        config_path: Path to YAML file

    Returns:
        Dictionary with command configuration

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If YAML is invalid or not a mapping
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(path) as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in {config_path}: {e}")

    if not isinstance(config, dict):
        raise ValueError(f"{config_path} must contain a mapping")
    return config


def parse_value(text: str) -> Any:
    """Parse a command-line value as a YAML scalar ("25" -> 25, "abc" -> "abc")."""
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError:
        return text


def build_reboot_payload(at: Optional[str] = None) -> bytes:
    """Reboot request for now (UTC) or an ISO 8601 time."""
    when = datetime.fromisoformat(at) if at else datetime.now(timezone.utc)
    return RebootRequest(when_to_reboot=when).serialize()


def build_property_write(value: Any, version: int) -> bytes:
    """Single-property write payload."""
    return json.dumps({"value": value, "version": version}).encode("utf-8")


def build_patch(document: Dict[str, Any]) -> bytes:
    """
    Desired document payload.

    Raises:
        ParseError: If the document is not a valid desired document
    """
    WritablePropertyRequest.from_desired_document(document)
    return json.dumps(document).encode("utf-8")


def print_response(status: int, payload: bytes) -> None:
    body = payload.decode("utf-8", errors="replace")
    marker = "✅" if status == 200 else "❌"
    print(f"{marker} [{status}] {body}")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="PnP CLI - Send commands and property writes to a thermostat device",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reboot now or at a given time
  pnp-cli reboot
  pnp-cli reboot --at 2026-01-01T03:00:00+00:00

  # Write one property
  pnp-cli set-property thermostatComponent targetTemperature 25 --version 3

  # Write a desired document from YAML
  pnp-cli patch config/commands/patch_target.yaml

  # Generic command with a YAML request body
  pnp-cli command deviceConfig reboot config/commands/reboot.yaml
"""
    )

    # Global arguments
    parser.add_argument(
        "--device-id",
        default="thermostat-01",
        help="Target device ID (default: thermostat-01)"
    )
    parser.add_argument(
        "--topic-prefix",
        default="pnp",
        help="Topic prefix (default: pnp)"
    )
    parser.add_argument(
        "--broker",
        default="localhost",
        help="MQTT broker host (default: localhost)"
    )
    parser.add_argument(
        "--port",
        type=int,
        default=1883,
        help="MQTT broker port (default: 1883)"
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=10.0,
        help="Seconds to wait for a broker ack or command response (default: 10)"
    )

    # Subcommands
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    reboot = subparsers.add_parser('reboot', help='Reboot now or at a scheduled time')
    reboot.add_argument('--at', help='ISO 8601 reboot time (default: now)')

    set_property = subparsers.add_parser('set-property', help='Write one desired property')
    set_property.add_argument('component', help='Component name ("" for the root component)')
    set_property.add_argument('name', help='Property name')
    set_property.add_argument('value', help='Proposed value')
    set_property.add_argument('--version', type=int, required=True, help='Desired version')

    patch = subparsers.add_parser('patch', help='Write a desired document from YAML')
    patch.add_argument('config', help='Path to desired document YAML')

    command = subparsers.add_parser('command', help='Send a command with a YAML request body')
    command.add_argument('component', help='Component name')
    command.add_argument('name', help='Command name')
    command.add_argument('config', help='Path to request YAML')

    # Parse arguments
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    # Execute command
    try:
        layout = TopicLayout(prefix=args.topic_prefix, device_id=args.device_id)
        client = MQTTCommandClient(layout, broker=args.broker, port=args.port)

        if args.command == 'reboot':
            status, body = client.send_command(
                "deviceConfig", "reboot", build_reboot_payload(args.at), timeout=args.timeout
            )
            print_response(status, body)

        elif args.command == 'set-property':
            client.publish(
                layout.desired_property(args.component, args.name),
                build_property_write(parse_value(args.value), args.version),
                timeout=args.timeout,
            )
            print(f"✅ Property write sent: {args.component}/{args.name} v{args.version}")

        elif args.command == 'patch':
            document = load_yaml_config(args.config)
            client.publish(layout.desired, build_patch(document), timeout=args.timeout)
            print(f"✅ Desired document sent: $version={document.get('$version')}")

        elif args.command == 'command':
            request = load_yaml_config(args.config)
            status, body = client.send_command(
                args.component, args.name,
                json.dumps(request, default=str).encode("utf-8"),
                timeout=args.timeout,
            )
            print_response(status, body)

    except Exception as e:
        print(f"❌ Error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
