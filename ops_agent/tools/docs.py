"""Keyword search over local runbooks and documentation."""

import asyncio
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..config import constants as c
from ..orchestration.tool_registry import Tool
from .base import to_json


def make_snippet(text: str, index: int, max_chars: int = c.DOCS_SNIPPET_CHARS) -> str:
    start = max(0, index - max_chars // 3)
    segment = text[start:start + max_chars]
    return segment.replace("\r\n", "\n").strip()


def _doc_paths(root: Path) -> List[Path]:
    paths = sorted(p for p in root.rglob("*.md") if p.is_file())
    if not paths:
        paths = sorted(p for p in root.rglob("*.txt") if p.is_file())
    return paths


def search_docs(root: Path, query: str, limit: int = c.DOCS_DEFAULT_LIMIT) -> List[Dict[str, Any]]:
    """Rank documents by how often the query occurs in them.

    The whole query is matched first (case-insensitive). If no document
    contains it, documents containing every query term are ranked by the
    total number of term occurrences.
    """
    if not root.is_dir():
        return []
    phrase = query.lower().strip()
    terms = [t for t in re.split(r"\s+", phrase) if len(t) >= 2]

    documents = []
    for path in _doc_paths(root):
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError:
            continue
        if text:
            documents.append((path, text, text.lower()))

    hits: List[Dict[str, Any]] = []
    for path, text, low in documents:
        index = low.find(phrase)
        if index >= 0:
            hits.append({"path": str(path), "score": low.count(phrase), "snippet": make_snippet(text, index)})

    if not hits and len(terms) > 1:
        for path, text, low in documents:
            if not all(t in low for t in terms):
                continue
            index = min(low.find(t) for t in terms)
            score = sum(low.count(t) for t in terms)
            hits.append({"path": str(path), "score": score, "snippet": make_snippet(text, index)})

    hits.sort(key=lambda h: -h["score"])
    return hits[:limit]


class InternalDocsTool(Tool):
    """``query_internal_docs``: search markdown runbooks under ``docs_dir``."""

    def __init__(self, docs_dir: str = c.DEFAULT_DOCS_DIR):
        self.docs_dir = docs_dir

    @property
    def name(self) -> str:
        return "query_internal_docs"

    @property
    def description(self) -> str:
        return (
            "Search internal documentation/runbooks for relevant information. Returns top "
            "matches with snippets. Use this tool before proposing operational actions."
        )

    @property
    def parameters(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "query": {"type": "string", "minLength": 1, "description": "Text to search for"},
                "limit": {"type": "integer", "minimum": 1, "maximum": 50},
            },
            "required": ["query"],
            "additionalProperties": False,
        }

    async def invoke(self, input: Dict[str, Any]) -> str:
        query = input["query"].strip()
        limit = input.get("limit") or c.DOCS_DEFAULT_LIMIT
        root = Path(self.docs_dir).expanduser()
        hits = await asyncio.to_thread(search_docs, root, query, limit)
        return to_json({"success": True, "query": query, "root": str(root), "hits": hits})
