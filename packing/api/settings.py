# packing/api/settings.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from packing.db.session import get_app_session as get_db
from packing.services import capacity as svc

router = APIRouter(prefix="/api/settings", tags=["settings"])


class MaxPerBoxIn(BaseModel):
    catalog_number: str = Field(min_length=1, max_length=50)
    max_quantity: int = Field(gt=0)
    description: Optional[str] = None
    item_id: Optional[str] = Field(default=None, max_length=50)


class MaxPerBoxUpdate(BaseModel):
    max_quantity: Optional[int] = Field(default=None, gt=0)
    description: Optional[str] = None
    item_id: Optional[str] = Field(default=None, max_length=50)
    is_active: Optional[bool] = None


class MaxPerBoxOut(MaxPerBoxIn):
    id: int
    is_active: bool

    class Config:
        from_attributes = True  # allow SQLAlchemy model -> Pydantic


@router.get("/max-per-box", response_model=List[MaxPerBoxOut])
def list_settings(active_only: bool = Query(True), db: Session = Depends(get_db)):
    return svc.list_settings(db, active_only=active_only)


@router.get("/max-per-box/catalog/{catalog_number}", response_model=Optional[MaxPerBoxOut])
def get_setting_by_catalog(catalog_number: str, db: Session = Depends(get_db)):
    """A missing setting is the normal case (unbounded), so it returns null rather than 404."""
    return svc.get_setting_by_catalog(db, catalog_number)


@router.post("/max-per-box", response_model=MaxPerBoxOut, status_code=201)
def upsert_setting(payload: MaxPerBoxIn, db: Session = Depends(get_db)):
    try:
        s = svc.upsert_setting(db, **payload.model_dump())
        db.commit()
        db.refresh(s)
        return s
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/max-per-box/bulk", response_model=List[MaxPerBoxOut])
def bulk_upsert_settings(payload: List[MaxPerBoxIn], db: Session = Depends(get_db)):
    try:
        rows = svc.bulk_upsert_settings(db, (p.model_dump() for p in payload))
        db.commit()
        for s in rows:
            db.refresh(s)
        return rows
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/max-per-box/{setting_id}", response_model=MaxPerBoxOut)
def update_setting(setting_id: int, payload: MaxPerBoxUpdate, db: Session = Depends(get_db)):
    try:
        s = svc.update_setting(db, setting_id, **payload.model_dump(exclude_unset=True))
        db.commit()
        db.refresh(s)
        return s
    except LookupError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/max-per-box/{setting_id}")
def delete_setting(setting_id: int, db: Session = Depends(get_db)):
    """Soft delete; the catalog number stops resolving for newly opened sessions."""
    try:
        svc.deactivate_setting(db, setting_id)
        db.commit()
        return {"message": "Setting deleted"}
    except LookupError as e:
        db.rollback()
        raise HTTPException(status_code=404, detail=str(e))
