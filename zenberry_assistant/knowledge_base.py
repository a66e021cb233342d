import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

from fastapi.concurrency import run_in_threadpool

from .exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)

# Load order matters: documents are concatenated in this order
DOCUMENT_MANIFEST = [
    "01_basic_science_cannabinoids.md",
    "02_extraction_spectrums.md",
    "03_benefits_wellness_guide.md",
    "04_dosage_consumption_guide.md",
    "05_safety_legality_compliance.md",
    "06_about_zenberry_faq.md",
]

_HEADING = re.compile(r"^(#{1,6})\s")
_DOCUMENT_MARKER = re.compile(r"^=== .+ ===$")


class DocumentSource(Protocol):
    def read_document(self, document_id: str) -> str: ...


class DirectoryDocumentSource:
    """Reads knowledge documents from a directory on disk."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def read_document(self, document_id: str) -> str:
        path = self.directory / document_id
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise UpstreamFetchError(f"Cannot read {path}: {e}") from e


def _heading_level(line: str) -> Optional[int]:
    if _DOCUMENT_MARKER.match(line):
        return 0
    match = _HEADING.match(line)
    return len(match.group(1)) if match else None


class KnowledgeBase:
    """
    In-memory company and product background used to ground every answer.

    The whole blob is built once at startup and replaced wholesale on
    `reload()`; readers always see either the previous or the new value.
    """

    def __init__(self, source: DocumentSource, manifest: Sequence[str] = DOCUMENT_MANIFEST):
        self.source = source
        self.manifest = list(manifest)
        self._context = ""
        self._loaded_documents: List[str] = []
        self._last_load_time: Optional[datetime] = None

    async def load(self) -> None:
        parts = []
        loaded = []
        for document_id in self.manifest:
            try:
                content = await run_in_threadpool(self.source.read_document, document_id)
            except UpstreamFetchError as e:
                logger.warning("Failed to load context file %s: %s", document_id, e)
                continue
            parts.append(f"\n\n=== {document_id.upper()} ===\n{content}")
            loaded.append(document_id)

        # Swap in one assignment so concurrent readers never see a partial blob
        self._context = "\n".join(parts)
        self._loaded_documents = loaded
        self._last_load_time = datetime.now(timezone.utc)
        logger.info("Loaded %d context files, total size: %d chars", len(loaded), len(self._context))

    async def reload(self) -> None:
        logger.info("Reloading context...")
        await self.load()

    def get_context(self) -> str:
        if not self._context:
            logger.warning("Context cache is empty")
        return self._context

    def get_section(self, name: str) -> str:
        """
        Best-effort lookup of a heading containing `name` (case-insensitive).

        Returns the heading and its body, stopping at the next heading of the
        same or a higher level, or at the next document marker.
        """
        lines = self._context.split("\n")
        needle = name.lower().strip()
        start = None
        level = None
        for i, line in enumerate(lines):
            line_level = _heading_level(line)
            if line_level and needle and needle in line.lower():
                start, level = i, line_level
                break

        if start is None:
            return f'Section "{name}" not found in context.'

        section = [lines[start]]
        for line in lines[start + 1:]:
            line_level = _heading_level(line)
            if line_level is not None and line_level <= level:
                break
            section.append(line)
        return "\n".join(section).strip()

    def info(self) -> Dict[str, Any]:
        return {
            "size": len(self._context),
            "last_load_time": self._last_load_time.isoformat() if self._last_load_time else None,
            "is_empty": not self._context,
            "documents": list(self._loaded_documents),
        }
