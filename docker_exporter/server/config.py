"""Exporter configuration.

Values are resolved in order of increasing precedence: built-in defaults,
an optional YAML config file, DOCKER_EXPORTER_* environment variables, and
finally command-line flags.
"""

import argparse
import logging
import os
import re
from dataclasses import dataclass, fields
from typing import Any, Dict, Mapping, Optional, Sequence

import yaml

from docker_exporter.metrics.exposition import OUTPUT_MINIMUM, OUTPUT_MODES
from docker_exporter.metrics.registry import DEFAULT_PREFIX
from docker_exporter.utils.errors import ConfigurationError
from docker_exporter.utils.logging_config import LOG_LEVELS

logger = logging.getLogger(__name__)

ENV_PREFIX = "DOCKER_EXPORTER_"

_DURATION_RE = re.compile(r"^\s*(?P<value>\d+(?:\.\d+)?)\s*(?P<unit>ms|s|m|h)?\s*$")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, None: 1.0}


def parse_duration(value: Any) -> float:
    """Parse ``2s``, ``500ms``, ``1m`` or bare seconds into seconds."""
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        match = _DURATION_RE.match(str(value))
        if not match:
            raise ConfigurationError(f"Invalid duration: {value!r}")
        seconds = float(match.group("value")) * _DURATION_UNITS[match.group("unit")]
    if seconds <= 0:
        raise ConfigurationError(f"Duration must be positive: {value!r}")
    return seconds


@dataclass(frozen=True)
class ExporterConfig:
    """Resolved exporter configuration."""

    host: str = "0.0.0.0"
    port: int = 9324
    endpoint: str = "metrics"
    prefix: str = DEFAULT_PREFIX
    log_level: str = "info"
    log_path: str = ""
    docker_host: str = ""
    output_mode: str = OUTPUT_MINIMUM
    timeout: float = 2.0
    max_concurrent_fetches: int = 0

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def metrics_path(self) -> str:
        return "/" + self.endpoint

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "ExporterConfig":
        """Build a normalised config from raw (string or typed) values."""
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        merged = {f.name: f.default for f in fields(cls)}
        merged.update({k: v for k, v in values.items() if v is not None})

        try:
            port = int(merged["port"])
            max_fetches = int(merged["max_concurrent_fetches"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid integer setting: {e}") from e
        if not 0 < port < 65536:
            raise ConfigurationError(f"Port out of range: {port}")
        if max_fetches < 0:
            raise ConfigurationError("max_concurrent_fetches must not be negative")

        log_level = str(merged["log_level"]).lower()
        if log_level not in LOG_LEVELS:
            logger.warning(f"Unknown log level {log_level!r}, using 'info'")
            log_level = "info"

        output_mode = str(merged["output_mode"]).lower()
        if output_mode not in OUTPUT_MODES:
            logger.warning(f"Unknown output mode {output_mode!r}, using {OUTPUT_MINIMUM!r}")
            output_mode = OUTPUT_MINIMUM

        return cls(
            host=str(merged["host"]),
            port=port,
            endpoint=str(merged["endpoint"]).strip().lstrip("/"),
            prefix=str(merged["prefix"]),
            log_level=log_level,
            log_path=str(merged["log_path"] or ""),
            docker_host=str(merged["docker_host"] or ""),
            output_mode=output_mode,
            timeout=parse_duration(merged["timeout"]),
            max_concurrent_fetches=max_fetches,
        )


# config field -> (long flag, short flag, help)
_FLAGS = (
    ("host", "--host", "-h", "Bind address"),
    ("port", "--port", "-p", "Port number"),
    ("endpoint", "--endpoint", "-e", "Metrics endpoint path"),
    ("prefix", "--prefix", "-r", "Metric name prefix"),
    ("log_level", "--log-level", "-l", "Log level: debug, info, warn, error"),
    ("log_path", "--log-path", "-o", "Log file path (default stdout only)"),
    ("docker_host", "--docker-host", "-d", "Docker daemon address (default DOCKER_HOST or local socket)"),
    ("output_mode", "--output", "-u", "Output mode: minimum (exporter metrics only) or all (include process_* and python_*)"),
    ("timeout", "--timeout", "-t", "Timeout for one scrape of the Docker API (e.g. 2s, 500ms)"),
    ("max_concurrent_fetches", "--max-concurrent-fetches", "-m", "Cap on concurrent stats requests (0 = unbounded)"),
)


def create_parser() -> argparse.ArgumentParser:
    """Create command-line argument parser."""
    # -h is the bind address, so help is long-form only
    parser = argparse.ArgumentParser(
        prog="docker-exporter",
        description="Prometheus exporter for Docker container metrics",
        add_help=False,
    )
    parser.add_argument("--help", action="help", help="Show this help message and exit")
    defaults = ExporterConfig()
    for name, long_flag, short_flag, help_text in _FLAGS:
        parser.add_argument(
            short_flag,
            long_flag,
            dest=name,
            default=None,
            help=f"{help_text} (default: {getattr(defaults, name)!r})",
        )
    parser.add_argument("-c", "--config-file", dest="config_file", default=None, help="YAML configuration file")
    parser.add_argument("-v", "--version", action="store_true", help="Show version information")
    return parser


def load_config_file(path: str) -> Dict[str, Any]:
    """Load settings from a YAML mapping; keys use config field names or flag names."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")

    aliases = {long_flag.lstrip("-").replace("-", "_"): name for name, long_flag, _, _ in _FLAGS}
    return {aliases.get(str(k).replace("-", "_"), str(k).replace("-", "_")): v for k, v in data.items()}


def load_env(environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    env = os.environ if environ is None else environ
    values = {}
    for f in fields(ExporterConfig):
        raw = env.get(ENV_PREFIX + f.name.upper())
        if raw is not None and raw != "":
            values[f.name] = raw
    # The flag is --output; accept the matching variable name as well
    if "output_mode" not in values and env.get(ENV_PREFIX + "OUTPUT"):
        values["output_mode"] = env[ENV_PREFIX + "OUTPUT"]
    return values


def parse_args(
    argv: Optional[Sequence[str]] = None,
    environ: Optional[Mapping[str, str]] = None,
):
    """Parse flags and resolve the full configuration.

    Returns:
        Tuple of (ExporterConfig, show_version flag)
    """
    env = os.environ if environ is None else environ
    args = create_parser().parse_args(argv)
    if args.version:
        return ExporterConfig(), True

    values: Dict[str, Any] = {}
    config_file = args.config_file or env.get(ENV_PREFIX + "CONFIG_FILE")
    if config_file:
        values.update(load_config_file(config_file))
    values.update(load_env(env))
    values.update({name: getattr(args, name) for name, _, _, _ in _FLAGS if getattr(args, name) is not None})

    return ExporterConfig.from_mapping(values), args.version
