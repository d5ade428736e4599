from fastapi import APIRouter, Depends
from pydantic import BaseModel

from api.deps import call_service
from db.store import Store, get_store
from services.user_settings_service import (
    forget_dosing,
    get_user_setting,
    recall_dosing,
    remember_dosing,
    set_user_setting,
)

router = APIRouter(prefix="/settings", tags=["settings"])


class SettingUpdate(BaseModel):
    value: str


class RememberRequest(BaseModel):
    log_id: int = 0


@router.get("/{username}/remember")
def recall(username: str, store: Store = Depends(get_store)):
    log = call_service(store, recall_dosing, username)
    return {"username": username, "log": log.to_dict() if log else None}


@router.post("/{username}/remember")
def remember(username: str, body: RememberRequest, store: Store = Depends(get_store)):
    return {"username": username, "remembered": call_service(store, remember_dosing, username, log_id=body.log_id)}


@router.delete("/{username}/remember")
def forget(username: str, store: Store = Depends(get_store)):
    call_service(store, forget_dosing, username)
    return {"username": username, "remembered": None}


@router.get("/{username}/{setting}")
def read_setting(username: str, setting: str, store: Store = Depends(get_store)):
    return {"username": username, "setting": setting, "value": call_service(store, get_user_setting, setting, username)}


@router.put("/{username}/{setting}")
def write_setting(username: str, setting: str, body: SettingUpdate, store: Store = Depends(get_store)):
    call_service(store, set_user_setting, setting, username, body.value)
    return {"username": username, "setting": setting, "value": body.value}
