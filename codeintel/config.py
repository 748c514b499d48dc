"""Configuration loading for codeintel (.codeintel.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".codeintel.yml"

DEFAULT_EXTENSIONS = [".js", ".jsx", ".ts", ".tsx", ".py", ".dart", ".java", ".c", ".cpp", ".h"]
DEFAULT_MAX_FILE_SIZE = 1024 * 1024
DEFAULT_DAMPING_FACTOR = 0.6
DEFAULT_MIN_MAX_SCORE = 10.0
DEFAULT_MAX_CIRCULAR_DEPTH = 10


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class ScanConfig:
    """File discovery settings."""

    extensions: List[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    exclude_paths: List[str] = field(default_factory=list)
    exclude_test_files: bool = True
    limit: Optional[int] = None
    max_file_size: int = DEFAULT_MAX_FILE_SIZE


@dataclass
class DetectionConfig:
    """Framework confidence normalisation constants."""

    damping_factor: float = DEFAULT_DAMPING_FACTOR
    min_max_score: float = DEFAULT_MIN_MAX_SCORE


@dataclass
class AggregationConfig:
    """Results aggregation switches."""

    include_frameworks: bool = True
    detect_circular_dependencies: bool = True
    max_circular_depth: Optional[int] = DEFAULT_MAX_CIRCULAR_DEPTH


@dataclass
class CodeIntelConfig:
    """Represents the settings defined in .codeintel.yml."""

    root: Path
    scan: ScanConfig = field(default_factory=ScanConfig)
    detection: DetectionConfig = field(default_factory=DetectionConfig)
    aggregation: AggregationConfig = field(default_factory=AggregationConfig)


def load_config(config_path: Path) -> CodeIntelConfig:
    """Load configuration from disk, falling back to defaults when absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return CodeIntelConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    scan = ScanConfig()
    scan_data = _as_dict(data.get("scan"))
    if scan_data:
        if "extensions" in scan_data:
            scan.extensions = [_normalise_extension(ext) for ext in _as_str_list(scan_data.get("extensions"))]
        scan.exclude_paths = _as_str_list(scan_data.get("exclude_paths"))
        exclude_tests = _as_bool(scan_data.get("exclude_test_files"))
        if exclude_tests is not None:
            scan.exclude_test_files = exclude_tests
        scan.limit = _as_int(scan_data.get("limit"))
        max_size = _as_int(scan_data.get("max_file_size"))
        if max_size is not None:
            if max_size <= 0:
                raise ConfigError("scan.max_file_size must be a positive integer")
            scan.max_file_size = max_size

    detection = DetectionConfig()
    detection_data = _as_dict(data.get("detection"))
    if detection_data:
        damping = _as_float(detection_data.get("damping_factor"))
        if damping is not None:
            if damping <= 0:
                raise ConfigError("detection.damping_factor must be greater than zero")
            detection.damping_factor = damping
        floor = _as_float(detection_data.get("min_max_score"))
        if floor is not None:
            if floor <= 0:
                raise ConfigError("detection.min_max_score must be greater than zero")
            detection.min_max_score = floor

    aggregation = AggregationConfig()
    aggregation_data = _as_dict(data.get("aggregation"))
    if aggregation_data:
        include = _as_bool(aggregation_data.get("include_frameworks"))
        if include is not None:
            aggregation.include_frameworks = include
        cycles = _as_bool(aggregation_data.get("detect_circular_dependencies"))
        if cycles is not None:
            aggregation.detect_circular_dependencies = cycles
        if "max_circular_depth" in aggregation_data:
            aggregation.max_circular_depth = _as_int(aggregation_data.get("max_circular_depth"))

    return CodeIntelConfig(
        root=root,
        scan=scan,
        detection=detection,
        aggregation=aggregation,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _normalise_extension(value: str) -> str:
    value = value.strip().lower()
    return value if value.startswith(".") else f".{value}"


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_bool(value: Any) -> Optional[bool]:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in {"true", "yes", "1"}:
            return True
        if lowered in {"false", "no", "0"}:
            return False
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []
