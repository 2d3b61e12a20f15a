"""
Health and analytics routes for the Suggestion Engine service.
"""

from collections import Counter
from datetime import datetime

from fastapi import Depends

from session_store import EngineSessionStore
from suggestions_router import get_session_store

from .app_state import app


@app.get("/health")
async def health_check(store: EngineSessionStore = Depends(get_session_store)):
    """Health check endpoint"""
    return {
        "status": "healthy",
        "active_sessions": len(store),
        "timestamp": datetime.now().isoformat()
    }


@app.get("/analytics")
async def get_analytics(store: EngineSessionStore = Depends(get_session_store)):
    """
    Aggregate suggestion analytics across every open session.

    Returns:
        {
            "sessions": int,
            "total_suggestions": int,
            "active_suggestions": int,
            "by_status": {status: count},
            "by_type": {type: count},
            "conflict_groups": int,
            "timestamp": str (ISO timestamp)
        }
    """
    by_status: Counter = Counter()
    by_type: Counter = Counter()
    total = active = conflict_groups = 0

    for _, session in store.items():
        analytics = session.engine.analytics
        total += analytics.total
        active += analytics.active
        conflict_groups += analytics.conflict_groups
        by_status.update(analytics.by_status)
        by_type.update(analytics.by_type)

    return {
        "sessions": len(store),
        "total_suggestions": total,
        "active_suggestions": active,
        "by_status": dict(by_status),
        "by_type": dict(by_type),
        "conflict_groups": conflict_groups,
        "timestamp": datetime.now().isoformat()
    }
