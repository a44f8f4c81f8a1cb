# -*- coding: utf-8 -*-
"""Identity — request user resolution for FastAPI handlers.

Authentication happens upstream; the gateway forwards the resolved user id in
the ``X-User-Id`` header.
"""

from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, Request

USER_HEADER = "x-user-id"
MAX_USER_ID_LENGTH = 128


def get_user_id_from_request(request: Request) -> Optional[str]:
    raw = request.headers.get(USER_HEADER) or ""
    raw = raw.strip()
    return raw or None


def get_current_user_from_request(request: Request) -> Dict[str, Any]:
    # If middleware already resolved the user, reuse it.
    user = getattr(request.state, "user", None)
    if user:
        return user

    user_id = get_user_id_from_request(request)
    if not user_id:
        raise HTTPException(status_code=401, detail="Not authenticated")
    if len(user_id) > MAX_USER_ID_LENGTH:
        raise HTTPException(status_code=401, detail="Invalid user id")

    user = {"id": user_id}
    request.state.user = user
    return user


def get_current_user(user: Dict[str, Any] = Depends(get_current_user_from_request)) -> Dict[str, Any]:
    return user
