# saikaki/deps.py
"""
Shared FastAPI dependency providers.
Long-lived collaborators are built once per process; tests swap them through
app.dependency_overrides.
"""
from functools import lru_cache

from fastapi import Depends

from .services.chat_service import ChatService
from .services.completion_service import CompletionService, build_completion_service
from .services.enrichment_service import Enricher, build_enricher
from .services.record_store import RecordStore, SqlRecordStore
from .services.stream_relay import StreamRelay
from .services.vision_service import VisionService


@lru_cache(maxsize=1)
def get_record_store() -> RecordStore:
    return SqlRecordStore()


@lru_cache(maxsize=1)
def get_completion_service() -> CompletionService:
    return build_completion_service()


@lru_cache(maxsize=1)
def get_enricher() -> Enricher:
    return build_enricher()


@lru_cache(maxsize=1)
def get_vision_service() -> VisionService:
    return VisionService()


def get_stream_relay(
    store: RecordStore = Depends(get_record_store),
    completion: CompletionService = Depends(get_completion_service),
    enricher: Enricher = Depends(get_enricher),
) -> StreamRelay:
    return StreamRelay(store=store, completion=completion, enricher=enricher)


def get_chat_service(
    store: RecordStore = Depends(get_record_store),
    completion: CompletionService = Depends(get_completion_service),
    enricher: Enricher = Depends(get_enricher),
) -> ChatService:
    return ChatService(store=store, completion=completion, enricher=enricher)
