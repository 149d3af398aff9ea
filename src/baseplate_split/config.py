"""
Configuration loading, normalization and validation.

Saved configurations may use snake_case keys or the camelCase keys of the
web generator (``printerBedWidth``, ``edgeOverrides`` ...). Partial payloads
are merged over the defaults so older saves keep loading.
"""
import json
import logging
import math
import re
from dataclasses import asdict, fields
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Union

from baseplate_split.contracts import (
    PADDING_ALIGNMENTS,
    PLATE_STYLES,
    SIZING_MODES,
    BaseplateConfig,
    EdgeType,
    SegmentEdgeOverride,
    ToothPattern,
)
from baseplate_split.errors import InvalidConfiguration

logger = logging.getLogger(__name__)

DEFAULT_CONFIG = BaseplateConfig()

_FIELD_NAMES = {f.name for f in fields(BaseplateConfig)}
_OVERRIDE_FIELDS = {f.name for f in fields(SegmentEdgeOverride)}
_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def snake_case(key: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", key).lower()


def camel_case(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def normalize(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """Merge *payload* over the defaults, with keys converted to snake_case."""
    merged = asdict(DEFAULT_CONFIG)
    merged["edge_overrides"] = []
    ignored = []
    for key, value in payload.items():
        name = snake_case(key)
        if name in _FIELD_NAMES:
            merged[name] = value
        else:
            ignored.append(key)
    if ignored:
        logger.debug("Ignoring unsupported config keys: %s", ", ".join(sorted(ignored)))
    return merged


def config_from_dict(payload: Mapping[str, Any]) -> BaseplateConfig:
    """Build and validate a BaseplateConfig from a (partial) mapping."""
    merged = normalize(payload)
    merged["edge_overrides"] = tuple(_parse_overrides(merged["edge_overrides"] or []))
    config = BaseplateConfig(**merged)
    validate_config(config)
    return config


def load_config(path: Union[str, Path]) -> BaseplateConfig:
    path = Path(path)
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InvalidConfiguration(f"{path}: not valid JSON ({exc})") from exc
    if not isinstance(payload, dict):
        raise InvalidConfiguration(f"{path}: expected a JSON object")
    logger.info("Loaded config from %s", path)
    return config_from_dict(payload)


def config_to_dict(config: BaseplateConfig, camel: bool = False) -> Dict[str, Any]:
    """JSON-ready mapping; *camel* emits the web generator's key style."""
    payload = asdict(config)
    payload["edge_overrides"] = [_override_to_dict(o) for o in config.edge_overrides]
    if not camel:
        return payload
    camel_payload = {camel_case(k): v for k, v in payload.items()}
    camel_payload["edgeOverrides"] = [
        {camel_case(k): v for k, v in o.items()} for o in payload["edge_overrides"]
    ]
    return camel_payload


def save_config(config: BaseplateConfig, path: Union[str, Path], camel: bool = False) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config_to_dict(config, camel=camel), indent=2), encoding="utf-8")
    return path


def validate_config(config: BaseplateConfig) -> None:
    """Raise InvalidConfiguration listing every problem found."""
    problems = list(_problems(config))
    if problems:
        raise InvalidConfiguration("; ".join(problems))


# ─── Internal ────────────────────────────────────────────────────────────────

def _problems(config: BaseplateConfig) -> Iterable[str]:
    if config.sizing_mode not in SIZING_MODES:
        yield f"sizing_mode must be one of {SIZING_MODES}, got {config.sizing_mode!r}"
    if config.padding_alignment not in PADDING_ALIGNMENTS:
        yield (
            f"padding_alignment must be one of {PADDING_ALIGNMENTS}, "
            f"got {config.padding_alignment!r}"
        )
    if config.style not in PLATE_STYLES:
        yield f"style must be one of {PLATE_STYLES}, got {config.style!r}"
    valid_patterns = [p.value for p in ToothPattern]
    if config.edge_pattern not in valid_patterns:
        yield f"edge_pattern must be one of {valid_patterns}, got {config.edge_pattern!r}"

    keys = [(o.segment_x, o.segment_y) for o in config.edge_overrides]
    repeated = sorted({key for key in keys if keys.count(key) > 1})
    if repeated:
        yield f"edge_overrides has more than one entry for segments {[list(k) for k in repeated]}"

    positive = {
        "grid_size": config.grid_size,
        "printer_bed_width": config.printer_bed_width,
        "printer_bed_depth": config.printer_bed_depth,
        "socket_chamfer_height": config.socket_chamfer_height,
        "tooth_depth": config.tooth_depth,
        "tooth_width": config.tooth_width,
        "wineglass_aspect_ratio": config.wineglass_aspect_ratio,
    }
    if config.sizing_mode == "fill_area_mm":
        positive["target_width_mm"] = config.target_width_mm
        positive["target_depth_mm"] = config.target_depth_mm
    for name, value in positive.items():
        if not _finite(value) or value <= 0:
            yield f"{name} must be positive, got {value!r}"

    if config.sizing_mode == "grid_units":
        for name in ("width", "depth"):
            value = getattr(config, name)
            if not _finite(value) or value < 1:
                yield f"{name} must be at least 1 grid unit, got {value!r}"

    for name in ("connector_tolerance", "corner_radius", "magnet_diameter",
                 "magnet_depth", "magnet_z_offset", "magnet_top_cover", "screw_diameter"):
        value = getattr(config, name)
        if not _finite(value) or value < 0:
            yield f"{name} cannot be negative, got {value!r}"

    if not 0 < config.socket_chamfer_angle < 90:
        yield f"socket_chamfer_angle must be within (0, 90), got {config.socket_chamfer_angle!r}"

    ranges = {
        "concave_depth": (config.concave_depth, 100),
        "connector_roof_intensity": (config.connector_roof_intensity, 200),
        "connector_roof_depth": (config.connector_roof_depth, 100),
    }
    for name, (value, upper) in ranges.items():
        if not _finite(value) or not 0 <= value <= upper:
            yield f"{name} must be within 0-{upper}%, got {value!r}"


def _finite(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _parse_overrides(items: Iterable[Any]) -> List[SegmentEdgeOverride]:
    overrides = []
    seen = set()
    for item in items:
        if not isinstance(item, SegmentEdgeOverride):
            item = _parse_override(item)
        key = (item.segment_x, item.segment_y)
        if key in seen:
            raise InvalidConfiguration(f"Duplicate edge override for segment {list(key)}")
        seen.add(key)
        overrides.append(item)
    return overrides


def _parse_override(item: Any) -> SegmentEdgeOverride:
    if not isinstance(item, Mapping):
        raise InvalidConfiguration(f"Edge override must be an object, got {item!r}")
    values = {snake_case(k): v for k, v in item.items()}
    unknown = set(values) - _OVERRIDE_FIELDS
    if unknown:
        raise InvalidConfiguration(f"Unknown edge override keys: {sorted(unknown)}")
    try:
        return SegmentEdgeOverride(
            segment_x=_coordinate(values["segment_x"], "segment_x"),
            segment_y=_coordinate(values["segment_y"], "segment_y"),
            **{
                name: EdgeType(values.get(name, EdgeType.NONE.value))
                for name in ("left_edge", "right_edge", "front_edge", "back_edge")
            },
        )
    except KeyError as exc:
        raise InvalidConfiguration(f"Edge override missing {exc.args[0]}") from exc
    except (TypeError, ValueError) as exc:
        raise InvalidConfiguration(f"Invalid edge override {item!r}: {exc}") from exc


def _coordinate(value: Any, name: str) -> int:
    """Whole-number segment index; 2.0 is accepted, 1.7 and "1" are not."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidConfiguration(f"Edge override {name} must be an integer, got {value!r}")
    if isinstance(value, float) and not value.is_integer():
        raise InvalidConfiguration(f"Edge override {name} must be an integer, got {value!r}")
    return int(value)


def _override_to_dict(override: SegmentEdgeOverride) -> Dict[str, Any]:
    return {
        "segment_x": override.segment_x,
        "segment_y": override.segment_y,
        "left_edge": override.left_edge.value,
        "right_edge": override.right_edge.value,
        "front_edge": override.front_edge.value,
        "back_edge": override.back_edge.value,
    }
