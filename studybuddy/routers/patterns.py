from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request

from studybuddy.dependencies import get_pattern_store
from studybuddy.middleware.rate_limit import general_api_limit
from studybuddy.models import SubjectCategory
from studybuddy.services.monitoring import STORED_PATTERNS
from studybuddy.services.patterns import PatternImportError, PatternStore

router = APIRouter(prefix="/patterns", tags=["patterns"])


@router.get("/stats")
@general_api_limit()
def pattern_stats(
    request: Request,
    subject: Optional[SubjectCategory] = None,
    store: PatternStore = Depends(get_pattern_store),
):
    return store.stats(subject)


@router.get("/export")
@general_api_limit()
def export_patterns(
    request: Request,
    subject: Optional[SubjectCategory] = None,
    store: PatternStore = Depends(get_pattern_store),
):
    return store.export(subject)


@router.get("/search")
@general_api_limit()
def search_patterns(
    request: Request,
    min_length: Optional[int] = Query(None, ge=0),
    max_length: Optional[int] = Query(None, ge=0),
    has_numbers: Optional[bool] = None,
    keywords: List[str] = Query([]),
    created_after: Optional[datetime] = None,
    store: PatternStore = Depends(get_pattern_store),
):
    """Patterns across every subject matching all the given filters"""
    results = store.find(
        min_length=min_length,
        max_length=max_length,
        has_numbers=has_numbers,
        keywords=keywords,
        created_after=created_after,
    )
    return [
        {"subject": r["subject"], "patterns": [p.model_dump(mode="json") for p in r["patterns"]]}
        for r in results
    ]


@router.post("/import")
@general_api_limit()
def import_patterns(
    request: Request,
    data: Dict[str, Any] = Body(...),
    store: PatternStore = Depends(get_pattern_store),
):
    try:
        imported = store.import_patterns(data)
    except PatternImportError as e:
        raise HTTPException(status_code=400, detail=str(e))
    for subject, count in store.stats()["subjects"].items():
        STORED_PATTERNS.labels(subject=subject).set(count)
    return {"imported": imported}


@router.get("/{subject}/similar")
@general_api_limit()
def similar_patterns(
    request: Request,
    subject: SubjectCategory,
    question: str = Query(..., min_length=1),
    limit: int = Query(5, ge=1, le=20),
    store: PatternStore = Depends(get_pattern_store),
):
    patterns = store.similar(subject, question, max_results=limit)
    return {"subject": subject.value, "patterns": [p.model_dump(mode="json") for p in patterns]}


@router.get("/{subject}/types")
@general_api_limit()
def pattern_types(
    request: Request,
    subject: SubjectCategory,
    store: PatternStore = Depends(get_pattern_store),
):
    return {"subject": subject.value, "types": store.best_types(subject)}


@router.post("/{subject}/prune")
@general_api_limit()
def prune_patterns(
    request: Request,
    subject: SubjectCategory,
    max_age_days: int = Query(30, ge=0),
    store: PatternStore = Depends(get_pattern_store),
):
    removed = store.prune(subject, max_age_days=max_age_days)
    STORED_PATTERNS.labels(subject=subject.value).set(len(store.get_all(subject)))
    return {"subject": subject.value, "removed": removed}


@router.delete("/{subject}")
@general_api_limit()
def reset_patterns(
    request: Request,
    subject: SubjectCategory,
    store: PatternStore = Depends(get_pattern_store),
):
    removed = store.reset(subject)
    STORED_PATTERNS.labels(subject=subject.value).set(0)
    return {"subject": subject.value, "removed": removed}
