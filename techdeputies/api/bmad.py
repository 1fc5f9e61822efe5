"""
BMad command endpoint.

``POST /bmad`` executes a ``/bmad:`` command for the signed-in user;
``GET /bmad`` serves help, search, stats and module info.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from techdeputies.api.deps import get_current_user, get_optional_user
from techdeputies.bmad.engine import BMadEngine, get_bmad_engine
from techdeputies.db import models, schemas
from techdeputies.db.database import get_db
from techdeputies.db.repositories import rate_limits as rate_limit_repo

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/bmad", tags=["bmad"])

COMMANDS_PER_MINUTE = 10


def get_engine() -> BMadEngine:
    return get_bmad_engine()


def _user_context(user: models.User) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name, "role": user.role}


@router.post("")
def execute_command(
    payload: schemas.BMadCommandRequest,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
    engine: BMadEngine = Depends(get_engine),
):
    command = (payload.command or "").strip()
    if not command:
        raise HTTPException(status_code=400, detail="Command is required")
    allowed = rate_limit_repo.check_rate_limit(
        db,
        ip_address=f"user:{user.id}",
        endpoint="bmad",
        max_attempts=COMMANDS_PER_MINUTE,
        window_minutes=1,
    )
    if not allowed:
        raise HTTPException(status_code=429, detail="Too many BMad commands. Please wait a minute.")

    result = engine.execute(command, _user_context(user))
    if not result.success and result.details.get("phase") == "parsing":
        raise HTTPException(status_code=400, detail=result.error)
    return result.to_dict()


@router.get("")
def bmad_info(
    action: Optional[str] = None,
    query: Optional[str] = None,
    user: Optional[models.User] = Depends(get_optional_user),
    engine: BMadEngine = Depends(get_engine),
):
    if action == "help":
        return {"help": engine.help()}
    if action == "stats":
        if user is None:
            raise HTTPException(status_code=401, detail="Authentication required")
        if user.role != models.ROLE_ADMIN:
            raise HTTPException(status_code=403, detail="Admin access required")
        return engine.stats()
    if action == "search":
        if not query:
            raise HTTPException(status_code=400, detail="Query parameter is required for search")
        return engine.search(query)
    return engine.modules_info()
