"""Loading documents and splitting them into chunks for embedding."""

from __future__ import annotations

import hashlib
import os
from dataclasses import dataclass, field
from typing import Any

_FILE_TYPES: dict[str, str] = {
    ".md": "markdown",
    ".markdown": "markdown",
    ".txt": "text",
    ".go": "go",
    ".py": "python",
    ".js": "javascript",
    ".jsx": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".java": "java",
    ".cpp": "cpp",
    ".cc": "cpp",
    ".cxx": "cpp",
    ".c++": "cpp",
    ".c": "c",
    ".h": "header",
    ".hpp": "header",
    ".rs": "rust",
    ".rb": "ruby",
    ".php": "php",
    ".sh": "shell",
    ".bash": "shell",
    ".sql": "sql",
    ".json": "json",
    ".yaml": "yaml",
    ".yml": "yaml",
    ".xml": "xml",
    ".html": "html",
    ".htm": "html",
    ".css": "css",
}

_MARKDOWN_EXTENSIONS = (".md", ".markdown")
_WORD_BREAKS = (" ", "\n")
_BOUNDARY_LOOKBACK = 50
_PARAGRAPH_SEPARATOR = "\n\n"


@dataclass
class Document:
    """A loaded document with its identifier and metadata."""

    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class Chunk:
    """A piece of a document, ready to be embedded."""

    id: str
    content: str
    metadata: dict[str, Any] = field(default_factory=dict)


def _extension(path: str) -> str:
    """Return the suffix from the last dot of the final path element, dot included."""
    name = os.path.basename(path)
    dot = name.rfind(".")
    return name[dot:] if dot >= 0 else ""


def load_from_file(file_path: str | os.PathLike[str]) -> Document:
    """Read a UTF-8 file into a document whose id hashes its path and content.

    Raises OSError if the file cannot be read and ValueError if it is not UTF-8.
    """
    path = os.fspath(file_path)
    with open(path, "rb") as handle:
        data = handle.read()

    try:
        content = data.decode("utf-8")
    except UnicodeDecodeError as err:
        raise ValueError(f"file {path} contains invalid UTF-8") from err

    doc_id = hashlib.md5(os.fsencode(path) + data).hexdigest()
    return Document(
        id=doc_id,
        content=content,
        metadata={
            "file": path,
            "filename": os.path.basename(path),
            "extension": _extension(path),
            "size": len(data),
        },
    )


def load_from_string(content: str, metadata: dict[str, Any] | None = None) -> Document:
    """Create a document from text; its id is the MD5 of the text."""
    encoded = content.encode("utf-8")
    meta = dict(metadata) if metadata else {}
    meta["size"] = len(encoded)
    return Document(id=hashlib.md5(encoded).hexdigest(), content=content, metadata=meta)


def _chunk_metadata(doc: Document, **extra: Any) -> dict[str, Any]:
    meta = dict(doc.metadata)
    meta.update(extra)
    meta["parent_id"] = doc.id
    return meta


def chunk_document(doc: Document, chunk_size: int, overlap: int) -> list[Chunk]:
    """Split a document into chunks of at most ``chunk_size`` characters.

    Chunk ends are pulled back to a nearby space or newline where possible,
    and consecutive chunks share ``overlap`` characters.
    """
    if chunk_size < 0:
        raise ValueError("chunk size must not be negative")

    content = doc.content
    length = len(content)
    chunks: list[Chunk] = []
    start = 0

    while start < length:
        end = min(start + chunk_size, length)

        if end < length and content[end] not in _WORD_BREAKS:
            lower = max(start, end - _BOUNDARY_LOOKBACK)
            for i in range(end - 1, lower, -1):
                if content[i] in _WORD_BREAKS:
                    end = i
                    break

        text = content[start:end].strip()
        if not text:
            start = end + 1
            continue

        index = len(chunks)
        chunks.append(
            Chunk(
                id=f"{doc.id}_chunk_{index}",
                content=text,
                metadata=_chunk_metadata(
                    doc, chunk_index=index, chunk_start=start, chunk_end=end
                ),
            )
        )

        next_start = end - overlap
        if next_start <= start:
            break
        start = next_start

    return chunks


def chunk_by_lines(doc: Document, max_lines: int, overlap: int) -> list[Chunk]:
    """Split a document into windows of at most ``max_lines`` lines.

    Consecutive windows share ``overlap`` lines; splitting stops once a window
    reaches the last line or the window can no longer advance.
    """
    if max_lines <= 0:
        raise ValueError("max lines must be positive")

    lines = doc.content.split("\n")
    total = len(lines)
    chunks: list[Chunk] = []
    start = 0

    while start < total:
        end = min(start + max_lines, total)
        text = "\n".join(lines[start:end]).strip()

        if not text:
            start = end
            continue

        index = len(chunks)
        chunks.append(
            Chunk(
                id=f"{doc.id}_lines_{start + 1}-{end}",
                content=text,
                metadata=_chunk_metadata(
                    doc, chunk_index=index, line_start=start + 1, line_end=end
                ),
            )
        )

        if end >= total:
            break
        next_start = max(end - overlap, 0)
        if next_start <= start:
            break
        start = next_start

    return chunks


def get_file_type(filename: str) -> str:
    """Name the kind of file from its extension, defaulting to ``"text"``."""
    return _FILE_TYPES.get(_extension(filename).lower(), "text")


def _semantic_chunk(doc: Document, index: int, content: str, start: int, end: int) -> Chunk:
    return Chunk(
        id=f"{doc.id}_semantic_{index}",
        content=content,
        metadata=_chunk_metadata(
            doc,
            chunk_index=index,
            chunk_start=start,
            chunk_end=end,
            chunk_type="semantic",
        ),
    )


def chunk_semantic_document(doc: Document, max_chunk_size: int, overlap: int) -> list[Chunk]:
    """Group paragraphs into chunks of about ``max_chunk_size`` characters.

    When a chunk is closed, the last ``overlap`` characters of it open the next.
    """
    content = doc.content
    if not content:
        return []

    chunks: list[Chunk] = []
    current = ""
    chunk_start = 0
    offset = 0

    for raw in content.split(_PARAGRAPH_SEPARATOR):
        paragraph = raw.strip()
        if not paragraph:
            offset += 2
            continue

        if current and len(current) + len(paragraph) + 2 > max_chunk_size:
            text = current.strip()
            if text:
                chunks.append(_semantic_chunk(doc, len(chunks), text, chunk_start, offset - 1))
            if overlap > 0 and len(text) > overlap:
                current = text[-overlap:]
                chunk_start = offset - overlap
            else:
                current = ""
                chunk_start = offset

        if current:
            current += _PARAGRAPH_SEPARATOR
        current += paragraph
        offset += len(paragraph) + 2

    text = current.strip()
    if text:
        chunks.append(_semantic_chunk(doc, len(chunks), text, chunk_start, offset))

    return chunks


def _is_markdown(doc: Document) -> bool:
    extension = doc.metadata.get("extension")
    return isinstance(extension, str) and extension in _MARKDOWN_EXTENSIONS


def _split_large_section(
    doc: Document, content: str, max_chunk_size: int, base_offset: int, first_index: int
) -> list[Chunk]:
    """Split an oversized section on paragraph boundaries, numbering from ``first_index``."""
    chunks: list[Chunk] = []
    current = ""
    local_offset = 0

    def emit() -> None:
        text = current.strip()
        if text:
            end = base_offset + local_offset
            chunks.append(
                _semantic_chunk(doc, first_index + len(chunks), text, end - len(text), end)
            )

    for raw in content.split(_PARAGRAPH_SEPARATOR):
        paragraph = raw.strip()
        if not paragraph:
            local_offset += 2
            continue

        if current and len(current) + len(paragraph) + 2 > max_chunk_size:
            emit()
            current = ""

        if current:
            current += _PARAGRAPH_SEPARATOR
        current += paragraph
        local_offset += len(paragraph) + 2

    if current:
        emit()

    return chunks


def _chunk_markdown_sections(doc: Document, max_chunk_size: int) -> list[Chunk]:
    chunks: list[Chunk] = []
    section = ""
    section_start = 0
    offset = 0

    def finish(end: int) -> None:
        text = section.strip()
        if not text:
            return
        if len(text) > max_chunk_size:
            chunks.extend(
                _split_large_section(doc, text, max_chunk_size, section_start, len(chunks))
            )
        else:
            chunks.append(_semantic_chunk(doc, len(chunks), text, section_start, end))

    for line in doc.content.split("\n"):
        if line.strip().startswith("#") and section:
            finish(offset)
            section = ""
            section_start = offset

        if section:
            section += "\n"
        section += line
        offset += len(line) + 1

    if section:
        finish(offset)

    return chunks


def chunk_smart_document(doc: Document, max_chunk_size: int, overlap: int) -> list[Chunk]:
    """Chunk markdown on headers and everything else on paragraphs."""
    if not doc.content:
        return []
    if _is_markdown(doc):
        return _chunk_markdown_sections(doc, max_chunk_size)
    return chunk_semantic_document(doc, max_chunk_size, overlap)