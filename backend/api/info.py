from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from api.deps import call_service
from db.store import Store, get_store
from services.fetch_service import fetch_from_source
from services.info_service import add_info_rows, get_info, list_drug_names, remove_drug_info
from services.records import InfoRow

router = APIRouter(prefix="/info", tags=["info"])


# --- Pydantic Schemas ---

class InfoRowIn(BaseModel):
    drug_name: str
    drug_route: str
    threshold: float = Field(default=0, ge=0)
    low_dose_min: float = 0
    low_dose_max: float = 0
    medium_dose_min: float = 0
    medium_dose_max: float = 0
    high_dose_min: float = 0
    high_dose_max: float = 0
    dose_units: str = ""
    onset_min: float = 0
    onset_max: float = 0
    onset_units: str = ""
    come_up_min: float = 0
    come_up_max: float = 0
    come_up_units: str = ""
    peak_min: float = 0
    peak_max: float = 0
    peak_units: str = ""
    offset_min: float = 0
    offset_max: float = 0
    offset_units: str = ""
    total_dur_min: float = 0
    total_dur_max: float = 0
    total_dur_units: str = ""


class InfoRowsIn(BaseModel):
    rows: list[InfoRowIn]


# --- Endpoints ---

@router.get("")
def list_drugs(store: Store = Depends(get_store)):
    return {"drugs": call_service(store, list_drug_names)}


@router.post("", status_code=201)
def add_info(body: InfoRowsIn, store: Store = Depends(get_store)):
    rows = [InfoRow.from_mapping(row.model_dump()) for row in body.rows]
    added = call_service(store, add_info_rows, rows)
    return {"added": [row.to_dict() for row in added]}


@router.get("/{drug}")
def drug_info(drug: str, route: Optional[str] = None, store: Store = Depends(get_store)):
    rows = call_service(store, get_info, drug)
    if route:
        rows = [row for row in rows if row.drug_route == route]
    return [row.to_dict() for row in rows]


@router.post("/{drug}/fetch")
def fetch_drug(drug: str, store: Store = Depends(get_store)):
    added = call_service(store, fetch_from_source, drug)
    return {"added": [row.to_dict() for row in added]}


@router.delete("/{drug}")
def delete_drug(drug: str, store: Store = Depends(get_store)):
    return {"removed": call_service(store, remove_drug_info, drug)}
