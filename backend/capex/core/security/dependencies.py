from __future__ import annotations

import json

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from capex.core.db.session import get_db
from capex.core.middleware.audit import bind_actor
from capex.core.security.auth import Actor, actor_from_request
from capex.core.storage.repository import SqlRepository


def get_repository(db: Session = Depends(get_db)) -> SqlRepository:
    return SqlRepository(db)


def get_actor(request: Request, repo: SqlRepository = Depends(get_repository)) -> Actor:
    try:
        actor = actor_from_request(request, repo)
    except (PermissionError, KeyError, ValueError, json.JSONDecodeError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    bind_actor(actor.actor_id, actor.role_names)
    return actor
