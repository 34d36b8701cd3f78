"""Thread-safe accumulation of documents into skeleton groups."""

import logging
import threading
from dataclasses import dataclass, field
from typing import Optional

from .shape import ShapeNode
from .skeleton import Skeleton, dump_json

logger = logging.getLogger("xmlatlas.grouping")


@dataclass
class DocumentFailure:
    """A document that was skipped because it could not be read or parsed."""
    document_id: str
    kind: str  # "parse" | "io" | "error"
    message: str
    line: Optional[int] = None
    column: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "document": self.document_id,
            "kind": self.kind,
            "message": self.message,
            "line": self.line,
            "column": self.column,
        }


@dataclass
class Group:
    """All documents sharing one skeleton."""
    skeleton: Skeleton
    files: list[str] = field(default_factory=list)
    count: int = 0
    example: Optional[ShapeNode] = None
    first_seen: int = 0
    ordinals: list[int] = field(default_factory=list, repr=False)

    @property
    def hash(self) -> int:
        return self.skeleton.hash

    def add(self, document_id: str, ordinal: int):
        self.files.append(document_id)
        self.ordinals.append(ordinal)
        self.count += 1

    def signature(self) -> str:
        return self.skeleton.signature()

    def to_dict(self, include_paths: bool = True, include_example: bool = False) -> dict:
        d = {
            "skeleton": self.skeleton.to_dict(),
            "hash": self.skeleton.hex_hash,
            "signature": self.signature(),
            "count": self.count,
        }
        if include_paths:
            d["files"] = list(self.files)
        if include_example and self.example is not None:
            d["example_structure"] = self.example.to_dict()
        return d


@dataclass
class ProcessingResult:
    """Finished grouping table for one batch."""
    total_documents: int
    groups: list[Group] = field(default_factory=list)
    failures: list[DocumentFailure] = field(default_factory=list)

    @property
    def unique_structures(self) -> int:
        return len(self.groups)

    @property
    def processed_documents(self) -> int:
        return sum(g.count for g in self.groups)

    @property
    def failed_documents(self) -> int:
        return len(self.failures)

    def to_dict(self, include_paths: bool = True, include_examples: bool = False) -> dict:
        return {
            "total_files": self.total_documents,
            "processed_files": self.processed_documents,
            "failed_files": self.failed_documents,
            "unique_structures": self.unique_structures,
            "groups": [
                g.to_dict(include_paths=include_paths, include_example=include_examples)
                for g in self.groups
            ],
            "failures": [f.to_dict() for f in self.failures],
        }

    def to_json(self, pretty: bool = True, include_paths: bool = True,
                include_examples: bool = False) -> str:
        data = self.to_dict(include_paths=include_paths, include_examples=include_examples)
        return dump_json(data, indent=2 if pretty else None)


class FingerprintGrouper:
    """Groups skeletons by hash, verifying structural equality on every hit.

    A hash bucket may hold several groups: two unequal skeletons that happen
    to share a digest are kept apart.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._buckets: dict[int, list[Group]] = {}
        self._groups: list[Group] = []
        self._offers = 0

    def offer(
        self,
        document_id: str,
        skeleton: Skeleton,
        example: Optional[ShapeNode] = None,
        ordinal: Optional[int] = None,
    ) -> None:
        """Add a document to the group of its skeleton, creating it if needed.

        ``ordinal`` is the document's submission index. When callers pass it,
        the snapshot no longer depends on the order in which workers finish.
        """
        with self._lock:
            if ordinal is None:
                ordinal = self._offers
            self._offers += 1

            bucket = self._buckets.setdefault(skeleton.hash, [])
            for group in bucket:
                if group.skeleton == skeleton:
                    group.add(document_id, ordinal)
                    if ordinal < group.first_seen:
                        group.first_seen = ordinal
                        if example is not None:
                            group.example = example
                    return

            if bucket:
                logger.warning(
                    "Hash collision on %016x: %s differs from %d existing group(s)",
                    skeleton.hash, document_id, len(bucket),
                )
            group = Group(skeleton=skeleton, example=example, first_seen=ordinal)
            group.add(document_id, ordinal)
            bucket.append(group)
            self._groups.append(group)
            logger.debug("New structure %s from %s", skeleton.hex_hash, document_id)

    @property
    def offers(self) -> int:
        with self._lock:
            return self._offers

    def snapshot(self, total_documents: Optional[int] = None,
                 failures: list[DocumentFailure] = ()) -> ProcessingResult:
        """Copy the table into a ProcessingResult sorted by count, largest first."""
        with self._lock:
            groups = [_ordered_copy(g) for g in self._groups]
            offers = self._offers

        # sorted() is stable, so creation order survives when first_seen ties
        groups.sort(key=lambda g: (-g.count, g.first_seen))
        return ProcessingResult(
            total_documents=offers + len(failures) if total_documents is None else total_documents,
            groups=groups,
            failures=list(failures),
        )


def _ordered_copy(group: Group) -> Group:
    members = sorted(zip(group.ordinals, group.files), key=lambda m: m[0])
    return Group(
        skeleton=group.skeleton,
        files=[doc for _, doc in members],
        count=group.count,
        example=group.example,
        first_seen=group.first_seen,
        ordinals=[o for o, _ in members],
    )
