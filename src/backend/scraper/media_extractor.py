"""
Schema-tolerant media extraction from X GraphQL responses.

The walker does not know which endpoint produced a document (TweetDetail,
HomeTimeline, UserMedia, SearchTimeline, ...). It visits every container
reachable from the root exactly once and treats any mapping that looks like a
tweet with media as a record, wherever it sits in the tree.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, Mapping, Optional, Sequence, Union
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from src.backend.errors import ParseFailure
from src.backend.fs.naming import build_display_name, format_record_timestamp
from src.shared.media.models import MediaItem, MediaKind

logger = logging.getLogger(__name__)

MP4_CONTENT_TYPE = "video/mp4"

_VIDEO_KINDS = {
    "video": MediaKind.VIDEO,
    "animated_gif": MediaKind.ANIMATED_GIF,
}


@dataclass
class ExtractionContext:
    """
    Transient state of one extraction walk.

    `visited` holds container identities (not structural hashes: distinct
    records can be structurally identical). `quote_links` maps the identity
    of a quoted record node to the id of the record quoting it.
    """

    visited: set[int] = field(default_factory=set)
    quote_links: dict[int, str] = field(default_factory=dict)
    items: list[MediaItem] = field(default_factory=list)


@dataclass(frozen=True)
class _RecordView:
    record_id: str
    handle: str
    created_at: Any
    media: Sequence[Any]


def _is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple))


def _iter_children(node: Any) -> Iterator[Any]:
    values = node.values() if isinstance(node, Mapping) else node
    for value in values:
        if _is_container(value):
            yield value


def _iter_containers(root: Any, visited: Optional[set[int]] = None) -> Iterator[Any]:
    """
    Yield every container reachable from `root` once, depth-first pre-order.

    Iterative so deeply nested documents cannot exhaust the recursion limit.
    Identities are recorded in `visited`; containers already in it are skipped.
    """
    if not _is_container(root):
        return

    if visited is None:
        visited = set()
    stack = [root]
    while stack:
        node = stack.pop()
        if id(node) in visited:
            continue
        visited.add(id(node))
        yield node
        children = list(_iter_children(node))
        stack.extend(reversed(children))


def _get_path(node: Any, *keys: str) -> Any:
    current = node
    for key in keys:
        if not isinstance(current, Mapping):
            return None
        current = current.get(key)
    return current


def _non_empty_str(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _record_part(node: Mapping[str, Any], name: str) -> Any:
    """Look up `legacy` / `core` directly or under a `tweet` wrapper."""
    part = node.get(name)
    if isinstance(part, Mapping):
        return part
    return _get_path(node, "tweet", name)


def _resolve_record_id(node: Mapping[str, Any], legacy: Any) -> Optional[str]:
    record_id = _non_empty_str(_get_path(legacy, "id_str"))
    if record_id:
        return record_id
    rest_id = node.get("rest_id")
    if rest_id is None:
        rest_id = _get_path(node, "tweet", "rest_id")
    return _non_empty_str(rest_id)


def _resolve_handle(core: Any) -> Optional[str]:
    user = _get_path(core, "user_results", "result")
    # Older responses keep screen_name under legacy; newer ones under core.
    return _non_empty_str(_get_path(user, "legacy", "screen_name")) or _non_empty_str(
        _get_path(user, "core", "screen_name")
    )


def _match_record(node: Any) -> Optional[_RecordView]:
    """
    Return a view of `node` if it is a media-bearing record, else None.

    A record needs both a `legacy` part with media and an id, and a `core`
    part resolving to the author's handle.
    """
    if not isinstance(node, Mapping):
        return None

    legacy = _record_part(node, "legacy")
    if not isinstance(legacy, Mapping):
        return None

    media = _get_path(legacy, "extended_entities", "media")
    if not isinstance(media, (list, tuple)) or not media:
        return None

    record_id = _resolve_record_id(node, legacy)
    if record_id is None:
        return None

    handle = _resolve_handle(_record_part(node, "core"))
    if handle is None:
        return None

    return _RecordView(
        record_id=record_id,
        handle=handle,
        created_at=legacy.get("created_at"),
        media=media,
    )


def pick_best_mp4_url(variants: Any) -> Optional[str]:
    """
    Pick the MP4 variant with the highest bitrate.

    Missing or non-numeric bitrates count as 0; ties keep the first variant.
    """
    if not isinstance(variants, (list, tuple)):
        return None

    best_url: Optional[str] = None
    best_bitrate = -1
    for variant in variants:
        if not isinstance(variant, Mapping):
            continue
        if variant.get("content_type") != MP4_CONTENT_TYPE:
            continue
        url = _non_empty_str(variant.get("url"))
        if url is None:
            continue
        try:
            bitrate = int(variant.get("bitrate") or 0)
        except (TypeError, ValueError):
            bitrate = 0
        if bitrate > best_bitrate:
            best_bitrate = bitrate
            best_url = url
    return best_url


def original_photo_url(url: str) -> str:
    """Request the original, unscaled resolution (`name=orig`)."""
    try:
        parsed = urlparse(url)
        qs = parse_qs(parsed.query, keep_blank_values=True)
        qs["name"] = ["orig"]
        return urlunparse(parsed._replace(query=urlencode(qs, doseq=True)))
    except ValueError:
        return url


def _media_source(media: Mapping[str, Any]) -> Optional[tuple[MediaKind, str]]:
    media_type = media.get("type")
    if not isinstance(media_type, str):
        return None

    if media_type in _VIDEO_KINDS:
        url = pick_best_mp4_url(_get_path(media, "video_info", "variants"))
        if url is None:
            return None
        return _VIDEO_KINDS[media_type], url

    if media_type == "photo":
        url = _non_empty_str(media.get("media_url_https")) or _non_empty_str(media.get("media_url"))
        if url is None:
            return None
        return MediaKind.IMAGE, original_photo_url(url)

    return None


def _record_items(record: _RecordView, referenced_by: Optional[str]) -> list[MediaItem]:
    timestamp = format_record_timestamp(record.created_at)
    total = len(record.media)

    items: list[MediaItem] = []
    for idx, media in enumerate(record.media):
        if not isinstance(media, Mapping):
            continue
        source = _media_source(media)
        if source is None:
            continue
        kind, url = source
        items.append(
            MediaItem(
                kind=kind,
                source_url=url,
                display_name=build_display_name(record.handle, record.record_id, timestamp, idx, total),
                record_id=record.record_id,
                referenced_by=referenced_by,
                position=(idx + 1 if total > 1 else None),
            )
        )
    return items


def _collect_quote_links(root: Any, ctx: ExtractionContext) -> None:
    """
    Map every quoted record node to the id of the record quoting it.

    Runs as a separate pass so that a quoted node reachable before its
    quoting parent still receives the link.
    """
    for node in _iter_containers(root):
        if not isinstance(node, Mapping):
            continue
        quoted = _get_path(node, "quoted_status_result", "result")
        if not isinstance(quoted, Mapping):
            continue
        outer_id = _resolve_record_id(node, _record_part(node, "legacy"))
        if outer_id is None:
            continue
        ctx.quote_links.setdefault(id(quoted), outer_id)
        # TweetWithVisibilityResults wraps the actual tweet one level down.
        inner = quoted.get("tweet")
        if isinstance(inner, Mapping):
            ctx.quote_links.setdefault(id(inner), outer_id)


def extract(document: Any, ctx: Optional[ExtractionContext] = None) -> list[MediaItem]:
    """
    Extract media items from an arbitrary JSON value.

    Args:
        document: Decoded JSON (mapping/list tree; may share or cycle nodes).
        ctx: Optional context, mostly for inspection in tests.

    Returns:
        Items in traversal order. Not deduplicated: wrapped records are seen
        both as wrapper and as inner tweet, so callers pass the result through
        `dedupe`. A non-container root yields [].
    """
    ctx = ctx or ExtractionContext()
    if not _is_container(document):
        return []

    _collect_quote_links(document, ctx)

    for node in _iter_containers(document, ctx.visited):
        record = _match_record(node)
        if record is None:
            continue
        referenced_by = ctx.quote_links.get(id(node))
        if referenced_by is None and isinstance(node, Mapping) and isinstance(node.get("tweet"), Mapping):
            referenced_by = ctx.quote_links.get(id(node["tweet"]))
        ctx.items.extend(_record_items(record, referenced_by))

    return ctx.items


def decode_document(raw: Union[bytes, str]) -> Any:
    """
    Decode a fully buffered response body.

    Raises:
        ParseFailure: If the body is not valid UTF-8 JSON.
    """
    try:
        text = raw.decode("utf-8") if isinstance(raw, (bytes, bytearray)) else raw
        return json.loads(text)
    except (UnicodeDecodeError, ValueError) as exc:
        raise ParseFailure(f"response body is not JSON: {exc}") from exc


def extract_json(raw: Union[bytes, str]) -> list[MediaItem]:
    """Decode a raw body and extract media from it (raises ParseFailure)."""
    document = decode_document(raw)
    items = extract(document)
    logger.debug("Extracted %d media item(s) from %d byte body", len(items), len(raw))
    return items
