"""Batch processing: parse, reduce and group documents on a worker pool."""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Iterable, Optional

from .errors import DocumentReadError, ParseError
from .grouping import DocumentFailure, FingerprintGrouper, ProcessingResult
from .shape import ShapeNode, extract, extract_file
from .skeleton import Skeleton, reduce

logger = logging.getLogger("xmlatlas.processor")


def analyze(xml_text: str | bytes) -> tuple[ShapeNode, Skeleton]:
    """Extract and reduce a single document."""
    shape = extract(xml_text)
    return shape, reduce(shape)


def process_documents(
    documents: Iterable[tuple[str, str | bytes]],
    workers: int = 0,
    progress: Optional[Callable[[], None]] = None,
    log: Optional[logging.Logger] = None,
) -> ProcessingResult:
    """Group in-memory documents given as ``(document_id, text)`` pairs."""
    return _run(
        [(doc_id, (lambda text=text: extract(text))) for doc_id, text in documents],
        workers, progress, log or logger,
    )


def process_files(
    paths: Iterable[str],
    workers: int = 0,
    progress: Optional[Callable[[], None]] = None,
    log: Optional[logging.Logger] = None,
) -> ProcessingResult:
    """Read and group XML files. Unreadable or malformed files are skipped."""
    return _run(
        [(path, (lambda path=path: extract_file(path))) for path in paths],
        workers, progress, log or logger,
    )


def write_result(
    result: ProcessingResult,
    output_path: str,
    pretty: bool = True,
    include_paths: bool = True,
    include_examples: bool = False,
):
    """Write a ProcessingResult as JSON. OS errors propagate to the caller."""
    logger.info("Writing results to: %s", output_path)
    text = result.to_json(pretty=pretty, include_paths=include_paths,
                          include_examples=include_examples)
    with open(output_path, "w", encoding="utf-8") as f:
        f.write(text)
    logger.info("Successfully wrote results to %s", output_path)


# ── Worker pool ───────────────────────────────────────────────────────


def _run(tasks, workers, progress, log) -> ProcessingResult:
    log.info("Starting to process %d XML documents", len(tasks))
    grouper = FingerprintGrouper()
    failures: dict[int, DocumentFailure] = {}

    def _work(ordinal: int, doc_id: str, load) -> Optional[DocumentFailure]:
        try:
            shape = load()
            skeleton = reduce(shape)
        except ParseError as e:
            return DocumentFailure(doc_id, "parse", e.message, e.line, e.column)
        except DocumentReadError as e:
            return DocumentFailure(doc_id, "io", str(e))
        except Exception as e:
            log.exception("Unexpected error while processing %s", doc_id)
            return DocumentFailure(doc_id, "error", f"{type(e).__name__}: {e}")
        grouper.offer(doc_id, skeleton, example=shape, ordinal=ordinal)
        return None

    with ThreadPoolExecutor(max_workers=workers or None) as pool:
        futures = {
            pool.submit(_work, ordinal, doc_id, load): (ordinal, doc_id)
            for ordinal, (doc_id, load) in enumerate(tasks)
        }
        for future in as_completed(futures):
            ordinal, doc_id = futures[future]
            failure = future.result()
            if failure is None:
                log.debug("Successfully processed: %s", doc_id)
            else:
                log.error("Failed to process %s: %s", doc_id, failure.message)
                failures[ordinal] = failure
            if progress is not None:
                progress()

    result = grouper.snapshot(
        total_documents=len(tasks),
        failures=[failures[o] for o in sorted(failures)],
    )
    log.info(
        "Processing complete: %d files, %d unique structures, %d failed",
        result.total_documents, result.unique_structures, result.failed_documents,
    )
    return result
