from typing import Optional

from fastapi import APIRouter, Depends

from api.deps import call_service
from db.store import Store, get_store
from services.names_service import get_all_alt_names, resolve, resolve_any, seed_all

router = APIRouter(prefix="/names", tags=["names"])


@router.get("/resolve")
def resolve_name(name: str, name_type: Optional[str] = None, store: Store = Depends(get_store)):
    if name_type:
        resolved = call_service(store, resolve, name, name_type)
    else:
        resolved = call_service(store, resolve_any, name)
    return {"input": name, "name_type": name_type, "resolved": resolved}


@router.get("/{name_type}/{name}")
def alt_names(name_type: str, name: str, source_specific: bool = False, store: Store = Depends(get_store)):
    names = call_service(store, get_all_alt_names, name, name_type, source_specific=source_specific)
    return {"name": name, "name_type": name_type, "alt_names": names}


@router.post("/seed")
def seed_names(overwrite: bool = False, store: Store = Depends(get_store)):
    call_service(store, seed_all, overwrite=overwrite)
    return {"seeded": True, "overwrite": overwrite}
