"""
Command-line Arguments shared by the Sample Programs.

Arguments are added in groups so each sample picks what it needs:
universal (help, verbosity, config file), common MQTT connection settings,
direct mutual-TLS credentials and shadow-specific options.
"""
import argparse
import logging
from typing import Any, Dict, Optional, Sequence

from iot_service_mqtt.samples.config_loader import load_config, merge_overrides

LOG_FORMAT = '%(asctime)s [%(levelname)-8s] %(name)s.%(funcName)s: %(message)s'

VERBOSITY_LEVELS = {
    'fatal': logging.CRITICAL,
    'error': logging.ERROR,
    'warn': logging.WARNING,
    'info': logging.INFO,
    'debug': logging.DEBUG,
    'trace': logging.DEBUG,
}

MQTT_OPTIONS = ('endpoint', 'port', 'ca_file', 'client_id', 'cert', 'key')
SHADOW_OPTIONS = ('thing_name', 'shadow_name', 'shadow_property', 'shadow_value')


def add_universal_arguments(parser: argparse.ArgumentParser):
    """Arguments every sample has: logging verbosity and the config file."""
    parser.add_argument('-v', '--verbosity', default='none',
                        choices=[*VERBOSITY_LEVELS, 'none'],
                        help='The amount of detail in the logging output of the sample (optional).')
    parser.add_argument('--config', default=None,
                        help='<path>: YAML file with connection and sample settings (optional).')


def add_common_mqtt_arguments(parser: argparse.ArgumentParser):
    group = parser.add_argument_group('connection')
    group.add_argument('-e', '--endpoint',
                       help='Your AWS IoT custom endpoint, not including a port.')
    group.add_argument('--port', type=int, default=None,
                       help='Port to connect to (optional, 8883 by default).')
    group.add_argument('-r', '--ca_file',
                       help='<path>: File path to a Root CA certificate file in PEM format '
                            '(optional, system trust store used by default).')
    group.add_argument('-C', '--client_id',
                       help='Client ID for MQTT connection (optional, random by default).')


def add_direct_tls_connect_arguments(parser: argparse.ArgumentParser):
    group = parser.add_argument_group('mutual TLS')
    group.add_argument('-c', '--cert',
                       help='<path>: File path to a PEM encoded certificate to use with mTLS.')
    group.add_argument('-k', '--key',
                       help='<path>: File path to a PEM encoded private key that matches cert.')


def add_shadow_arguments(parser: argparse.ArgumentParser):
    group = parser.add_argument_group('shadow')
    group.add_argument('-n', '--thing_name',
                       help='The name assigned to your IoT Thing.')
    group.add_argument('--shadow_name',
                       help='Work on this named shadow instead of the classic shadow (optional).')
    group.add_argument('-p', '--shadow_property',
                       help="Name of property in shadow to keep in sync (optional, 'color' by default).")
    group.add_argument('--shadow_value',
                       help='Desired value to publish once connected (optional).')


def build_shadow_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Keeps one property of a device shadow in sync with its desired state.")
    add_universal_arguments(parser)
    add_common_mqtt_arguments(parser)
    add_direct_tls_connect_arguments(parser)
    add_shadow_arguments(parser)
    return parser


def apply_sample_arguments(args: argparse.Namespace):
    """
    Handles the arguments relevant to all samples. With verbosity ``none``
    logging is left unconfigured.
    """
    if args.verbosity == 'none':
        return
    logging.basicConfig(level=VERBOSITY_LEVELS[args.verbosity], format=LOG_FORMAT)


def resolve_config(args: argparse.Namespace) -> Dict[str, Any]:
    """Loads ``--config`` (if given) and lets explicit flags win over file values."""
    config = load_config(args.config)
    options = vars(args)
    config = merge_overrides(config, 'mqtt', {k: options.get(k) for k in MQTT_OPTIONS})
    config = merge_overrides(config, 'shadow', {k: options.get(k) for k in SHADOW_OPTIONS})
    return config


def parse_shadow_args(argv: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    parser = build_shadow_parser()
    args = parser.parse_args(argv)
    apply_sample_arguments(args)
    config = resolve_config(args)
    if not config['mqtt'].get('endpoint'):
        parser.error("an endpoint is required (--endpoint or mqtt.endpoint in --config)")
    if not config['shadow'].get('thing_name'):
        parser.error("a thing name is required (--thing_name or shadow.thing_name in --config)")
    return config
