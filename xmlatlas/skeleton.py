"""Skeleton reduction: merge repeated siblings and fingerprint the result.

A skeleton is a nested mapping. Each level holds one entry per distinct child
element name, whose value is the union of every same-named instance at that
level, plus an optional ``@attributes`` entry listing the attribute keys seen
on any instance. ``@`` cannot start an XML name, so that key never collides
with a child bucket.

    <book id="1"><chapter n="1"/><chapter title="x"><p/></chapter></book>

reduces to

    {"@attributes": ["id"],
     "chapter": {"@attributes": ["n", "title"], "p": {}}}
"""

import hashlib
import json
from dataclasses import dataclass

from .shape import ShapeNode

ATTRIBUTES_KEY = "@attributes"


@dataclass(frozen=True)
class Skeleton:
    """Merged structural fingerprint of a whole document.

    ``merged_shape`` must not be mutated once the skeleton is built. Equality
    compares root names and canonical text; ``hash()`` is the fingerprint.
    """
    root_name: str
    merged_shape: dict
    hash: int

    def __eq__(self, other):
        if not isinstance(other, Skeleton):
            return NotImplemented
        return (
            self.hash == other.hash
            and self.root_name == other.root_name
            and self.canonical() == other.canonical()
        )

    def __hash__(self):
        return self.hash

    def canonical(self) -> str:
        return canonical_json(self.merged_shape)

    def signature(self) -> str:
        return f"{self.root_name}:{self.canonical()}"

    @property
    def hex_hash(self) -> str:
        return f"{self.hash:016x}"

    def merge(self, other: "Skeleton") -> "Skeleton":
        """Union of two skeletons sharing a root element name."""
        if other.root_name != self.root_name:
            raise ValueError(
                f"Cannot merge skeletons of <{self.root_name}> and <{other.root_name}>"
            )
        return _finish(self.root_name, merge_shapes(self.merged_shape, other.merged_shape))

    def to_dict(self) -> dict:
        return {
            "root": self.root_name,
            "skeleton": self.merged_shape,
            "hash": self.hex_hash,
        }


def reduce(node: ShapeNode) -> Skeleton:
    """Reduce a shape tree to its skeleton."""
    return _finish(node.name, _summarize(node))


def merge_shapes(a: dict, b: dict) -> dict:
    """Return the union of two merged shapes without modifying either."""
    merged = _copy_shape(a)
    _merge_into(merged, b)
    return _sorted_shape(merged)


def canonical_json(shape: dict) -> str:
    """Key-sorted, whitespace-free JSON text of a merged shape."""
    return dump_json(shape, sort_keys=True)


def fingerprint(root_name: str, shape: dict) -> int:
    """64-bit digest of the root name and canonical shape text."""
    text = f"{root_name}:{canonical_json(shape)}"
    digest = hashlib.blake2b(text.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big")


# ── Merging ───────────────────────────────────────────────────────────
#
# Shapes can be nested as deeply as the parser allows, so every walk below
# keeps its own stack instead of recursing.


def _finish(root_name: str, shape: dict) -> Skeleton:
    return Skeleton(root_name=root_name, merged_shape=shape, hash=fingerprint(root_name, shape))


def _summarize(root: ShapeNode) -> dict:
    order = []
    stack = [root]
    while stack:
        node = stack.pop()
        order.append(node)
        stack.extend(node.children)

    # reversed pre-order visits every child before its parent
    summaries: dict[int, dict] = {}
    for node in reversed(order):
        summary = {}
        if node.attribute_keys:
            summary[ATTRIBUTES_KEY] = sorted(node.attribute_keys)

        buckets: dict[str, list[dict]] = {}
        for child in node.children:
            if child.name == ATTRIBUTES_KEY:
                raise ValueError(f"{ATTRIBUTES_KEY!r} is reserved and cannot be an element name")
            buckets.setdefault(child.name, []).append(summaries[id(child)])

        for name in sorted(buckets):
            instances = buckets[name]
            if len(instances) == 1:
                summary[name] = instances[0]
                continue
            merged: dict = {}
            for instance in instances:
                _merge_into(merged, instance)
            summary[name] = _sorted_shape(merged)
        summaries[id(node)] = summary
    return summaries[id(root)]


def _merge_into(target: dict, other: dict) -> None:
    stack = [(target, other)]
    while stack:
        dst, src = stack.pop()
        for key, value in src.items():
            if key == ATTRIBUTES_KEY:
                dst[key] = sorted(set(dst.get(key, ())) | set(value))
            elif key in dst:
                stack.append((dst[key], value))
            else:
                dst[key] = _copy_shape(value)


def _copy_shape(shape: dict) -> dict:
    return _rebuild(shape, list)


def _sorted_shape(shape: dict) -> dict:
    return _rebuild(shape, sorted)


def _rebuild(shape: dict, order) -> dict:
    """Fresh copy of ``shape`` with each level's keys laid out by ``order``."""
    top: dict = {}
    stack = [(top, shape)]
    while stack:
        dst, src = stack.pop()
        for key in order(src):
            value = src[key]
            if key == ATTRIBUTES_KEY:
                dst[key] = list(value)
            else:
                dst[key] = {}
                stack.append((dst[key], value))
    return top


# ── JSON ──────────────────────────────────────────────────────────────

_END = object()


def dump_json(value, indent: int | None = None, sort_keys: bool = False) -> str:
    """``json.dumps`` for nested dicts and lists of any depth.

    Matches ``json.dumps(value, indent=indent, ensure_ascii=False)`` with
    compact separators when ``indent`` is None. Mapping keys must be strings.
    """
    key_sep = ":" if indent is None else ": "
    parts: list[str] = []
    # frames: [closing bracket, item iterator, is mapping, wrote an item]
    stack: list[list] = []
    pending = value
    while True:
        if pending is not _END:
            if isinstance(pending, dict):
                keys = sorted(pending) if sort_keys else list(pending)
                parts.append("{")
                stack.append(["}", iter([(k, pending[k]) for k in keys]), True, False])
            elif isinstance(pending, (list, tuple)):
                parts.append("[")
                stack.append(["]", iter([(None, v) for v in pending]), False, False])
            else:
                parts.append(json.dumps(pending, ensure_ascii=False))
            pending = _END

        if not stack:
            return "".join(parts)

        frame = stack[-1]
        item = next(frame[1], _END)
        if item is _END:
            stack.pop()
            if frame[3] and indent is not None:
                parts.append("\n" + " " * (indent * len(stack)))
            parts.append(frame[0])
            continue

        if frame[3]:
            parts.append(",")
        frame[3] = True
        if indent is not None:
            parts.append("\n" + " " * (indent * len(stack)))
        key, pending = item
        if frame[2]:
            parts.append(json.dumps(key, ensure_ascii=False) + key_sep)
