"""
Parsers for the engine's line-delimited JSON listing reports.

Each parser takes the raw stdout of one listing command and returns the
entities in line order. Any line that cannot be decoded or mapped fails the
whole parse with InventoryParseError; there is no partial result.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar

from cargohold import logger
from cargohold.errors import InventoryParseError
from cargohold.schemas import (
    Container,
    ContainerImageRef,
    ContainerState,
    EntityKind,
    Image,
    Network,
    PortMapping,
    Volume,
)

T = TypeVar("T")

_SIZE_NUMBER = re.compile(r"^\s*(\d+(?:\.\d+)?)")
_SIZE_UNITS = (("GB", 1024 ** 3), ("MB", 1024 ** 2), ("KB", 1024))
_FRACTION = re.compile(r"(\.\d{1,6})\d*")
_NUMERIC_OFFSET = re.compile(r"[+-]\d{4}")
_PORT = re.compile(
    r"^(?:(?P<host_ip>.*):(?P<host_port>\d+(?:-\d+)?)->)?"
    r"(?P<container_port>\d+(?:-\d+)?)/(?P<protocol>\w+)$"
)


def parse_size(value: Any) -> int:
    """
    Converts a human-readable size ("1.5GB", "512MB", "12kB", "734") to bytes.

    Units are 1024-based and matched case-insensitively. A value without a
    recognised unit is taken as raw bytes; anything unparseable is 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return max(int(value), 0)
    text = str(value)
    match = _SIZE_NUMBER.match(text)
    if not match:
        return 0
    number = float(match.group(1))
    upper = text.upper()
    for unit, multiplier in _SIZE_UNITS:
        if unit in upper:
            return int(number * multiplier)
    return int(number)


def parse_image_ref(name: str) -> ContainerImageRef:
    """Splits "repo:tag" on the last colon unless that colon belongs to a registry host."""
    if "@" not in name:
        repository, sep, tag = name.rpartition(":")
        if sep and repository and tag and "/" not in tag:
            return ContainerImageRef(original_name=name, repository=repository, tag=tag)
    return ContainerImageRef(original_name=name, repository=name)


def image_ref_from_parts(repository: str, tag: Optional[str]) -> ContainerImageRef:
    if tag:
        return ContainerImageRef(original_name=f"{repository}:{tag}", repository=repository, tag=tag)
    return ContainerImageRef(original_name=repository, repository=repository)


def parse_timestamp(value: Any) -> datetime:
    """
    Parses the engine's CreatedAt forms into an aware datetime.

    Accepts "2024-01-15 10:30:00 +0000 UTC" (with optional nanoseconds),
    ISO-8601 and bare dates. Naive values are taken as UTC.

    Raises:
        ValueError: If the value matches none of the forms.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value or "").strip()
        if not text:
            raise ValueError("empty timestamp")
        parts = text.split(" ")
        # Trailing zone abbreviation after the offset, e.g. "UTC", "CET" or "+03".
        if len(parts) == 4 and _NUMERIC_OFFSET.fullmatch(parts[2]):
            parts = parts[:3]
        text = _FRACTION.sub(r"\1", " ".join(parts), count=1)
        parsed = None
        for fmt in ("%Y-%m-%d %H:%M:%S %z", "%Y-%m-%d %H:%M:%S.%f %z"):
            try:
                parsed = datetime.strptime(text, fmt)
                break
            except ValueError:
                continue
        if parsed is None:
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                raise ValueError(f"unrecognised timestamp '{value}'")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_labels(value: Any) -> Dict[str, str]:
    """Parses the engine's "k=v,k2=v2" label string. Mappings are passed through."""
    if not value:
        return {}
    if isinstance(value, dict):
        return {str(k): "" if v is None else str(v) for k, v in value.items()}
    labels: Dict[str, str] = {}
    for pair in str(value).split(","):
        key, _, val = pair.partition("=")
        key = key.strip()
        if key:
            labels[key] = val
    return labels


def _expand(port_range: str) -> List[int]:
    start, _, end = port_range.partition("-")
    return list(range(int(start), int(end or start) + 1))


def parse_ports(value: Any) -> Tuple[PortMapping, ...]:
    """
    Parses the engine's Ports column ("0.0.0.0:8080->80/tcp, 443/tcp").

    Fragments in an unknown shape are skipped; ranges are expanded pairwise.
    """
    if not value or not isinstance(value, str):
        return ()
    mappings: List[PortMapping] = []
    for fragment in value.split(","):
        fragment = fragment.strip()
        if not fragment:
            continue
        match = _PORT.match(fragment)
        if not match:
            logger.debug(f"Skipping unrecognised port fragment: {fragment!r}")
            continue
        container_ports = _expand(match.group("container_port"))
        host_ports: List[Optional[int]] = [None] * len(container_ports)
        if match.group("host_port"):
            expanded = _expand(match.group("host_port"))
            if len(expanded) == len(container_ports):
                host_ports = list(expanded)
        host_ip = (match.group("host_ip") or "").strip("[]") or None
        for host_port, container_port in zip(host_ports, container_ports):
            mappings.append(PortMapping(
                host_ip=host_ip if host_port is not None else None,
                host_port=host_port,
                container_port=container_port,
                protocol=match.group("protocol"),
            ))
    return tuple(mappings)


def _text(value: Any, default: str = "") -> str:
    if value is None:
        return default
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def _required(data: Dict[str, Any], key: str) -> str:
    if key not in data or data[key] is None:
        raise KeyError(key)
    return _text(data[key])


def _report_lines(kind: EntityKind, raw: str) -> Iterator[Tuple[int, str, Dict[str, Any]]]:
    for number, line in enumerate((raw or "").splitlines(), start=1):
        if not line.strip():
            continue
        try:
            data = json.loads(line)
        except json.JSONDecodeError as e:
            raise InventoryParseError(kind.value, f"invalid JSON: {e.msg}", number, line) from e
        if not isinstance(data, dict):
            raise InventoryParseError(kind.value, "expected a JSON object", number, line)
        yield number, line, data


def _parse(kind: EntityKind, raw: str, build: Callable[[Dict[str, Any]], T]) -> List[T]:
    entities: List[T] = []
    for number, line, data in _report_lines(kind, raw):
        try:
            entities.append(build(data))
        except KeyError as e:
            raise InventoryParseError(kind.value, f"missing field {e.args[0]}", number, line) from e
        except ValueError as e:
            raise InventoryParseError(kind.value, str(e), number, line) from e
    return entities


def _build_container(data: Dict[str, Any]) -> Container:
    state = _required(data, "State").strip().lower()
    try:
        container_state = ContainerState(state)
    except ValueError:
        raise ValueError(f"unknown container state '{state}'")
    networks = _text(data.get("Networks"))
    return Container(
        id=_required(data, "ID"),
        name=_required(data, "Names"),
        labels=parse_labels(data.get("Labels")),
        image=parse_image_ref(_required(data, "Image")),
        ports=parse_ports(data.get("Ports")),
        # The engine joins several networks into one field; it is kept as one token.
        networks=(networks,) if networks else (),
        created_at=parse_timestamp(_required(data, "CreatedAt")),
        state=container_state,
        status=_text(data.get("Status")),
    )


def _build_image(data: Dict[str, Any]) -> Image:
    return Image(
        id=_required(data, "ID"),
        ref=image_ref_from_parts(_required(data, "Repository"), _text(data.get("Tag")) or None),
        created_at=parse_timestamp(_required(data, "CreatedAt")),
        size_bytes=parse_size(data.get("Size")),
    )


def _build_network(data: Dict[str, Any], fetched_at: datetime) -> Network:
    created = data.get("CreatedAt")
    return Network(
        id=_required(data, "ID"),
        name=_required(data, "Name"),
        driver=_text(data.get("Driver")),
        labels=parse_labels(data.get("Labels")),
        scope=_text(data.get("Scope")),
        created_at=parse_timestamp(created) if created else fetched_at,
    )


def _build_volume(data: Dict[str, Any]) -> Volume:
    return Volume(
        name=_required(data, "Name"),
        driver=_text(data.get("Driver")),
        labels=parse_labels(data.get("Labels")),
        mountpoint=_text(data.get("Mountpoint")),
        scope=_text(data.get("Scope")) or "local",
    )


def parse_containers(raw: str) -> List[Container]:
    return _parse(EntityKind.CONTAINERS, raw, _build_container)


def parse_images(raw: str) -> List[Image]:
    return _parse(EntityKind.IMAGES, raw, _build_image)


def parse_networks(raw: str, fetched_at: Optional[datetime] = None) -> List[Network]:
    """Networks without CreatedAt get fetched_at (now, by default)."""
    fetched_at = fetched_at or datetime.now(timezone.utc)
    return _parse(EntityKind.NETWORKS, raw, lambda data: _build_network(data, fetched_at))


def parse_volumes(raw: str) -> List[Volume]:
    return _parse(EntityKind.VOLUMES, raw, _build_volume)


PARSERS: Dict[EntityKind, Callable[[str], list]] = {
    EntityKind.CONTAINERS: parse_containers,
    EntityKind.IMAGES: parse_images,
    EntityKind.NETWORKS: parse_networks,
    EntityKind.VOLUMES: parse_volumes,
}
