"""
Process-wide service instances, injected into routes with ``Depends``.

Tests replace them through ``app.dependency_overrides``.
"""
from functools import lru_cache

from studybuddy.services.cache import CacheService
from studybuddy.services.generation import GenerationOrchestrator
from studybuddy.services.llm import build_default_provider
from studybuddy.services.patterns import PatternStore


@lru_cache(maxsize=1)
def get_cache() -> CacheService:
    return CacheService()


@lru_cache(maxsize=1)
def get_pattern_store() -> PatternStore:
    store = PatternStore(cache=get_cache())
    store.load()
    return store


@lru_cache(maxsize=1)
def get_provider():
    return build_default_provider()


@lru_cache(maxsize=1)
def get_orchestrator() -> GenerationOrchestrator:
    return GenerationOrchestrator(get_provider(), get_pattern_store())
