# backend/mentorverse/api/endpoints/doubts.py

from typing import List

from fastapi import APIRouter, Depends, Query, status

from mentorverse.api.deps import get_current_user_id, get_current_user_name, get_doubt_store
from mentorverse.core.exceptions import NotFoundError
from mentorverse.crud.doubts import DoubtStore
from mentorverse.schemas.doubt import DoubtCreate, DoubtMessageCreate, DoubtRead

router = APIRouter(prefix="/doubts", tags=["Doubts"])


@router.get("", response_model=List[DoubtRead])
async def list_doubts(
    limit: int = Query(50, ge=1, le=200),
    _user_id: str = Depends(get_current_user_id),
    store: DoubtStore = Depends(get_doubt_store),
):
    """
    [Response] doubt rooms, newest first
    """
    return [DoubtRead.model_validate(d) for d in await store.list(limit)]


@router.post("", response_model=DoubtRead, status_code=status.HTTP_201_CREATED)
async def create_doubt(
    payload: DoubtCreate,
    user_id: str = Depends(get_current_user_id),
    user_name: str = Depends(get_current_user_name),
    store: DoubtStore = Depends(get_doubt_store),
):
    doubt = await store.create(user_id, payload.author_name or user_name, payload)
    return DoubtRead.model_validate(doubt)


@router.get("/{doubt_id}", response_model=DoubtRead)
async def read_doubt(
    doubt_id: str,
    _user_id: str = Depends(get_current_user_id),
    store: DoubtStore = Depends(get_doubt_store),
):
    doubt = await store.get(doubt_id)
    if doubt is None:
        raise NotFoundError("Doubt not found")
    return DoubtRead.model_validate(doubt)


@router.post("/{doubt_id}/messages", response_model=DoubtRead)
async def add_doubt_message(
    doubt_id: str,
    payload: DoubtMessageCreate,
    user_id: str = Depends(get_current_user_id),
    user_name: str = Depends(get_current_user_name),
    store: DoubtStore = Depends(get_doubt_store),
):
    """
    [Request] text + role ("user" | "model" | "other")
    [Response] the whole thread including the new message
    """
    doubt = await store.add_message(doubt_id, user_id, payload.author_name or user_name, payload)
    return DoubtRead.model_validate(doubt)
