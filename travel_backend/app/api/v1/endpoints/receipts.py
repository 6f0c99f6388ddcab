"""
Receipt API Endpoints.

Uploads and replacements are multipart forms carrying the receipt file.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from travel_backend.app.core.dependencies import get_current_actor, get_file_store
from travel_backend.app.db.session import get_db
from travel_backend.app.domain.authorization import Actor
from travel_backend.app.domain.receipts.receipt_service import ReceiptService
from travel_backend.app.schemas.receipt import ReceiptResponse, ReceiptVerification
from travel_backend.app.services.file_storage import FileStore, commit_and_release

router = APIRouter(prefix="/receipts", tags=["Receipts"])


@router.get("", response_model=List[ReceiptResponse])
async def list_receipts(
    trip_id: Optional[int] = Query(None),
    is_verified: Optional[bool] = Query(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await ReceiptService.list_receipts(db, actor, trip_id, is_verified)


@router.post("", response_model=ReceiptResponse, status_code=status.HTTP_201_CREATED)
async def upload_receipt(
    trip_id: int = Form(...),
    receipt_date: date = Form(...),
    amount: Decimal = Form(...),
    category: str = Form(..., max_length=100),
    description: str = Form(..., max_length=255),
    merchant_name: Optional[str] = Form(None, max_length=100),
    advance_id: Optional[int] = Form(None),
    file: UploadFile = File(...),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    file_store: FileStore = Depends(get_file_store)
):
    """Upload a receipt file for one of the current employee's trips."""
    receipt = await ReceiptService.upload_receipt(
        db, trip_id,
        receipt_date=receipt_date,
        amount=amount,
        category=category,
        description=description,
        file_name=file.filename,
        content=await file.read(),
        actor=actor,
        file_store=file_store,
        merchant_name=merchant_name,
        advance_id=advance_id,
    )
    await db.commit()
    return receipt


@router.get("/{receipt_id}", response_model=ReceiptResponse)
async def get_receipt(
    receipt_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    return await ReceiptService.get_receipt(db, receipt_id, actor)


@router.patch("/{receipt_id}", response_model=ReceiptResponse)
async def update_receipt(
    receipt_id: int,
    receipt_date: Optional[date] = Form(None),
    amount: Optional[Decimal] = Form(None),
    category: Optional[str] = Form(None, max_length=100),
    description: Optional[str] = Form(None, max_length=255),
    merchant_name: Optional[str] = Form(None, max_length=100),
    advance_id: Optional[int] = Form(None),
    file: Optional[UploadFile] = File(None),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    file_store: FileStore = Depends(get_file_store)
):
    """Amend an unverified receipt. Omitted fields stay unchanged."""
    fields = {
        "receipt_date": receipt_date,
        "amount": amount,
        "category": category,
        "description": description,
        "merchant_name": merchant_name,
        "advance_id": advance_id,
    }
    fields = {k: v for k, v in fields.items() if v is not None}

    receipt = await ReceiptService.update_receipt(
        db, receipt_id, fields, actor, file_store,
        file_name=file.filename if file else None,
        content=await file.read() if file else None,
    )
    await commit_and_release(db)
    return receipt


@router.delete("/{receipt_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_receipt(
    receipt_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    file_store: FileStore = Depends(get_file_store)
):
    await ReceiptService.delete_receipt(db, receipt_id, actor, file_store)
    await commit_and_release(db)


@router.post("/{receipt_id}/verify", response_model=ReceiptResponse)
async def verify_receipt(
    receipt_id: int,
    payload: ReceiptVerification = ReceiptVerification(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    receipt = await ReceiptService.verify(db, receipt_id, actor, payload.notes)
    await db.commit()
    return receipt


@router.post("/{receipt_id}/unverify", response_model=ReceiptResponse)
async def unverify_receipt(
    receipt_id: int,
    payload: ReceiptVerification = ReceiptVerification(),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db)
):
    receipt = await ReceiptService.unverify(db, receipt_id, actor, payload.notes)
    await db.commit()
    return receipt
