from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from .auth import auth_required
from .schemas import PrivateMessageOut

router = APIRouter()


@router.get("/api/chats/{user_id}", response_model=List[PrivateMessageOut])
def private_history(user_id: int, request: Request, me: dict = Depends(auth_required)):
    # every conversation of the user, oldest first; clients group by room_id
    if str(me["id"]) != str(user_id) and me.get("role") != "admin":
        raise HTTPException(status_code=403, detail="cannot read another user's chats")
    return request.app.state.store.fetch_private_history(user_id)
