# saikaki/clients/pinecone_client.py
"""
Pinecone client for the knowledge-base enricher.
Uses integrated-inference search (Pinecone embeds the raw query text) and
normalizes the response shapes different SDK versions return.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
import logging
from pinecone import Pinecone
from ..config import settings

logger = logging.getLogger(__name__)

_TEXT_KEYS = ("text", "content", "page_content", "body", "raw")
_SOURCE_KEYS = ("source", "filename", "title")


@dataclass
class KnowledgeChunk:
    chunk_id: str
    content: str
    source: str
    score: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def _as_dict(obj: Any) -> Optional[Dict[str, Any]]:
    """Plain dict view of an SDK (OpenAPI) model, or None."""
    if isinstance(obj, dict):
        return obj
    for attr in ("to_dict", "model_dump"):
        fn = getattr(obj, attr, None)
        if callable(fn):
            try:
                d = fn()
            except Exception as e:
                logger.debug(f"{type(obj).__name__}.{attr}() failed: {e}")
                continue
            if isinstance(d, dict):
                return d
    return None


def _get_in(obj: Any, path: List[Union[str, int]]) -> Any:
    cur = obj
    for p in path:
        if isinstance(p, int):
            if not (isinstance(cur, list) and 0 <= p < len(cur)):
                return None
        elif not (isinstance(cur, dict) and p in cur):
            return None
        cur = cur[p]
    return cur


def _first(d: Dict[str, Any], keys) -> Any:
    for k in keys:
        if d.get(k):
            return d[k]
    return None


def _score(raw: Any) -> Optional[float]:
    try:
        return float(raw) if raw is not None else None
    except (TypeError, ValueError):
        return None


def _from_match(m: Dict[str, Any]) -> KnowledgeChunk:
    # legacy query shape: {id, score, metadata}
    md = m.get("metadata") or {}
    return KnowledgeChunk(
        chunk_id=str(m.get("id") or md.get("id") or ""),
        content=_first(md, _TEXT_KEYS) or "",
        source=_first(md, _SOURCE_KEYS) or "unknown",
        score=_score(m.get("score")),
        metadata=md,
    )


def _from_hit(h: Dict[str, Any]) -> KnowledgeChunk:
    # integrated search shape: {_id, _score, fields}
    fields = _as_dict(h.get("fields") or {}) or {}
    md = fields.get("metadata") if isinstance(fields.get("metadata"), dict) else {}
    for k in _SOURCE_KEYS + ("category",):
        if k in fields and k not in md:
            md[k] = fields[k]
    return KnowledgeChunk(
        chunk_id=str(h.get("_id") or h.get("id") or ""),
        content=_first(fields, _TEXT_KEYS) or "",
        source=_first(md, _SOURCE_KEYS) or "unknown",
        score=_score(h.get("_score", h.get("score"))),
        metadata=md,
    )


def to_chunks(res: Any) -> List[KnowledgeChunk]:
    """
    Normalize a Pinecone search response.
    Supports:
      - d["matches"], d["data"]["matches"], d["results"][0]["matches"], d["result"]["matches"]
      - d["result"]["hits"]
    """
    d = _as_dict(res)
    if d is None:
        return []

    for path in (["matches"], ["data", "matches"], ["results", 0, "matches"], ["result", "matches"]):
        matches = _get_in(d, path)
        if isinstance(matches, list) and matches:
            return [_from_match(m) for m in map(_as_dict, matches) if m is not None]

    hits = _get_in(d, ["result", "hits"])
    if isinstance(hits, list):
        return [_from_hit(h) for h in map(_as_dict, hits) if h is not None]
    return []


class PineconeClient:
    """
    Searches an index created with an integrated embedding model.
    Sends raw text; Pinecone embeds and finds similar chunks.
    """
    def __init__(self, namespace: str = "__default__", *, index: Any = None):
        if index is None:
            if not settings.PINECONE_API_KEY or not settings.PINECONE_INDEX:
                raise RuntimeError("PINECONE_API_KEY and PINECONE_INDEX must be set")
            pc = Pinecone(api_key=settings.PINECONE_API_KEY)
            index = pc.Index(settings.PINECONE_INDEX, host=(settings.PINECONE_HOST or None))
        self.idx = index
        self.namespace = namespace or "__default__"

    def search(self, text: str, top_k: int = 5) -> List[KnowledgeChunk]:
        """Blocking search; best match first."""
        payload = {"inputs": {"text": text}, "top_k": top_k}
        res = self.idx.search(namespace=self.namespace, query=payload)
        chunks = to_chunks(res)
        if not chunks:
            logger.debug(f"Pinecone returned no recognized matches; type: {type(res)}")
        return sorted(chunks, key=lambda c: c.score or 0.0, reverse=True)
