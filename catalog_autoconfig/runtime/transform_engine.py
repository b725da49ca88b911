"""Field extraction and value transforms for configured responses.

Paths use a small JSONPath subset: `$.field`, `$.nested.field`, `$[0]`,
`$.array[0].field`. Values are returned as strings (numbers and booleans
are stringified); anything missing resolves to None.

Example:
    >>> engine = TransformEngine()
    >>> payload = {"data": {"shows": {"edges": [{"_id": "abc", "name": "One Piece"}]}}}
    >>> engine.extract_all(
    ...     payload,
    ...     [FieldMapping(source_path="$._id", target_field="Id"),
    ...      FieldMapping(source_path="$.name", target_field="Title")],
    ...     "$.data.shows.edges",
    ... )
    [{'Id': 'abc', 'Title': 'One Piece'}]
"""

import base64
import binascii
import json
import logging
import re
from functools import lru_cache
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union
from urllib.parse import unquote_plus

from catalog_autoconfig.types.enums import TransformType
from catalog_autoconfig.types.provider_config import FieldMapping, TransformRule

logger = logging.getLogger(__name__)

HEX_PREFIXED_DECODER = "hex-prefixed"

_PATH_TOKEN = re.compile(r"(\w+)|\[(\d+)\]")

PathSegment = Union[str, int]


@lru_cache(maxsize=512)
def parse_path(path: Optional[str]) -> Tuple[PathSegment, ...]:
    """Split a path into property names (str) and list indexes (int).

    Example:
        >>> parse_path("$.data.items[0].id")
        ('data', 'items', 0, 'id')
    """
    if not path or not path.strip():
        return ()
    cleaned = path.strip().lstrip("$").lstrip(".")
    segments: List[PathSegment] = []
    for name, index in _PATH_TOKEN.findall(cleaned):
        segments.append(int(index) if index else name)
    return tuple(segments)


def resolve_path(node: Any, path: Optional[str]) -> Any:
    """Walk a decoded JSON value; None when any segment is missing."""
    current = node
    for segment in parse_path(path):
        if isinstance(segment, int):
            if isinstance(current, list) and segment < len(current):
                current = current[segment]
            else:
                return None
        elif isinstance(current, dict) and segment in current:
            current = current[segment]
        else:
            return None
    return current


def _stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return json.dumps(value, separators=(",", ":"))


def decode_hex_prefixed(value: str) -> str:
    """Decode `-<hex>` encoded URLs; other values pass through."""
    if not value.startswith("-"):
        return value
    try:
        return bytes.fromhex(value[1:]).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return value


class TransformEngine:
    """Extracts mapped fields from JSON payloads and applies transforms.

    Custom decoders are looked up by name (case-insensitive); the
    `hex-prefixed` decoder is registered by default.
    """

    def __init__(self) -> None:
        self._decoders: Dict[str, Callable[[str], str]] = {}
        self.register_decoder(HEX_PREFIXED_DECODER, decode_hex_prefixed)

    def register_decoder(self, name: str, decoder: Callable[[str], str]) -> None:
        self._decoders[name.lower()] = decoder
        logger.debug(f"Registered custom decoder '{name}'")

    def has_decoder(self, name: str) -> bool:
        return name.lower() in self._decoders

    def extract_all(
        self,
        payload: Any,
        mappings: Sequence[FieldMapping],
        array_path: Optional[str] = None,
    ) -> List[Dict[str, Optional[str]]]:
        """Apply mappings to every item under array_path.

        A non-list target is treated as a single item. Items where every
        mapping resolved to nothing are dropped.
        """
        target = resolve_path(payload, array_path) if array_path else payload
        items = target if isinstance(target, list) else [target]

        results = []
        for item in items:
            if item is None:
                continue
            extracted = self.extract_single(item, mappings)
            if any(value is not None for value in extracted.values()):
                results.append(extracted)
        return results

    def extract_single(
        self, item: Any, mappings: Sequence[FieldMapping]
    ) -> Dict[str, Optional[str]]:
        result: Dict[str, Optional[str]] = {}
        for mapping in mappings:
            raw = _stringify(resolve_path(item, mapping.source_path))
            result[mapping.target_field] = self.apply_transform(
                raw, mapping.transform, mapping.transform_params
            )
        return result

    def apply_transform(
        self,
        value: Optional[str],
        transform: TransformType,
        params: Optional[str] = None,
    ) -> Optional[str]:
        """Apply one transform. Decoding failures return the input unchanged."""
        if value is None:
            return None
        if transform == TransformType.NONE:
            return value
        if transform == TransformType.DECODE_BASE64:
            return _decode_base64(value)
        if transform == TransformType.DECODE_HEX:
            return _decode_hex(value)
        if transform == TransformType.URL_DECODE:
            return unquote_plus(value)
        if transform == TransformType.PREPEND_HOST:
            return _prepend_host(value, params)
        if transform == TransformType.REGEX_EXTRACT:
            return _regex_extract(value, params)
        if transform == TransformType.CUSTOM:
            return self.apply_decoder(value, params)
        return value

    def apply_rule(self, value: Optional[str], rule: TransformRule) -> Optional[str]:
        """Apply a named TransformRule from a provider config."""
        if value is None:
            return None
        if rule.type == TransformType.REGEX_EXTRACT and rule.pattern:
            return _regex_extract(value, rule.pattern, rule.replacement)
        if rule.type == TransformType.CUSTOM:
            return self.apply_decoder(value, rule.decoder or rule.name)
        return self.apply_transform(value, rule.type, rule.pattern)

    def apply_decoder(self, value: str, name: Optional[str]) -> str:
        if not name:
            return value
        decoder = self._decoders.get(name.lower())
        if decoder is None:
            logger.warning(f"Unknown custom decoder '{name}'", extra={"decoder": name})
            return value
        return decoder(value)


def _decode_base64(value: str) -> str:
    try:
        padded = value + "=" * (-len(value) % 4)
        return base64.b64decode(padded, validate=True).decode("utf-8")
    except (binascii.Error, ValueError, UnicodeDecodeError):
        return value


def _decode_hex(value: str) -> str:
    try:
        return bytes.fromhex(value).decode("utf-8")
    except (ValueError, UnicodeDecodeError):
        return value


def _prepend_host(value: str, host: Optional[str]) -> str:
    if not host or value.startswith(("http://", "https://", "//")):
        return value
    return host.rstrip("/") + "/" + value.lstrip("/")


def _regex_extract(value: str, pattern: Optional[str], replacement: Optional[str] = None) -> str:
    if not pattern:
        return value
    match = re.search(pattern, value)
    if match is None:
        return value
    if replacement:
        return re.sub(pattern, replacement, value)
    return match.group(1) if match.groups() else match.group(0)
