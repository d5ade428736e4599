from dataclasses import asdict
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import call_service
from db.store import Store, get_store
from services.cost_service import get_total_costs
from services.log_service import change_log, get_logs, get_logs_count, get_users, remove_logs
from services.progression_service import get_times
from services.write_coordinator import append

router = APIRouter(prefix="/logs", tags=["logs"])


# --- Pydantic Schemas ---

class LogCreate(BaseModel):
    username: Optional[str] = None
    drug: str
    route: str
    dose: float = Field(ge=0)
    units: str
    perc: float = Field(default=0, ge=0)
    cost: float = Field(default=0, ge=0)
    currency: str = ""
    end_time: int = Field(default=0, ge=0)


class LogChange(BaseModel):
    username: Optional[str] = None
    column: str
    value: str


def _user(store: Store, username: Optional[str]) -> str:
    return (username or "").strip() or store.settings.DEFAULT_USERNAME


# --- Endpoints ---

@router.post("", status_code=201)
def create_log(body: LogCreate, store: Store = Depends(get_store)):
    row = call_service(
        store,
        append,
        _user(store, body.username),
        body.drug,
        body.route,
        body.dose,
        body.units,
        perc=body.perc,
        cost=body.cost,
        currency=body.currency,
        end_time=body.end_time,
    )
    return row.to_dict()


@router.get("")
def list_logs(
    username: Optional[str] = None,
    num: int = 0,
    log_id: int = 0,
    desc: bool = False,
    search: str = "",
    exact_column: str = "",
    store: Store = Depends(get_store),
):
    logs = call_service(
        store,
        get_logs,
        _user(store, username),
        num=num,
        log_id=log_id,
        desc=desc,
        search=search,
        exact_column=exact_column,
    )
    return [log.to_dict() for log in logs]


@router.get("/count")
def count_logs(username: Optional[str] = None, store: Store = Depends(get_store)):
    user = _user(store, username)
    return {"username": user, "count": call_service(store, get_logs_count, user)}


@router.get("/users")
def list_users(store: Store = Depends(get_store)):
    return {"users": call_service(store, get_users)}


@router.delete("")
def delete_logs(
    username: Optional[str] = None,
    amount: int = 0,
    reverse: bool = False,
    log_id: int = 0,
    search: str = "",
    exact_column: str = "",
    store: Store = Depends(get_store),
):
    removed = call_service(
        store,
        remove_logs,
        _user(store, username),
        amount=amount,
        reverse=reverse,
        log_id=log_id,
        search=search,
        exact_column=exact_column,
    )
    return {"removed": removed}


@router.patch("/{log_id}")
def update_log(log_id: int, body: LogChange, store: Store = Depends(get_store)):
    row = call_service(store, change_log, body.column, log_id, _user(store, body.username), body.value)
    return row.to_dict()


@router.get("/times")
def log_times(username: Optional[str] = None, log_id: int = 0, store: Store = Depends(get_store)):
    return asdict(call_service(store, get_times, _user(store, username), log_id=log_id))


@router.get("/costs")
def log_costs(username: Optional[str] = None, store: Store = Depends(get_store)):
    return [asdict(cost) for cost in call_service(store, get_total_costs, _user(store, username))]
