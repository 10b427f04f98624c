"""
Prescriptions: customer upload, pharmacist review.
Trust: only pharmacists move a prescription; every move carries the version it was read at.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from sqlalchemy.orm import Session

from pharmacare.api.deps import get_db, get_current_user, get_customer, get_pharmacist
from pharmacare.models.user import User
from pharmacare.schemas.common import Envelope, ListEnvelope
from pharmacare.schemas.prescription import PrescriptionResponse, RejectRequest, TransitionRequest
from pharmacare.services import prescription_service
from pharmacare.services.prescription_service import IntakeForm

logger = logging.getLogger(__name__)
router = APIRouter()


def _envelope(prescription, message: Optional[str] = None) -> Envelope[PrescriptionResponse]:
    return Envelope[PrescriptionResponse](
        id=prescription.id,
        data=PrescriptionResponse.model_validate(prescription),
        message=message,
    )


def _page(prescriptions) -> ListEnvelope[PrescriptionResponse]:
    return ListEnvelope[PrescriptionResponse](
        data=[PrescriptionResponse.model_validate(p) for p in prescriptions],
        total=len(prescriptions),
        limit=len(prescriptions),
    )


@router.post("", response_model=Envelope[PrescriptionResponse], status_code=201)
def submit_prescription(
    documents: Optional[List[UploadFile]] = File(None),
    phone: Optional[str] = Form(None),
    address: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    duration: Optional[str] = Form(None),
    gender: Optional[str] = Form(None),
    payment_method: Optional[str] = Form(None),
    frequency: Optional[str] = Form(None),
    has_allergies: Optional[str] = Form(None),
    allergies: Optional[str] = Form(None),
    substitutes: Optional[str] = Form(None),
    notes: Optional[str] = Form(None),
    name: Optional[str] = Form(None),
    email: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_customer),
):
    """Multipart upload: intake answers plus one or more images / PDFs."""
    form = IntakeForm(
        phone=phone,
        address=address,
        city=city,
        duration=duration,
        gender=gender,
        payment_method=payment_method,
        frequency=frequency,
        has_allergies=has_allergies,
        allergies=allergies,
        substitutes=substitutes,
        notes=notes,
        name=name,
        email=email,
    )
    uploads = [(d.filename, d.content_type, d.file) for d in (documents or []) if d.filename]
    prescription = prescription_service.submit(db, current_user, form, uploads)
    return _envelope(prescription, "Prescription submitted successfully")


@router.get("", response_model=ListEnvelope[PrescriptionResponse])
def list_prescriptions(
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_pharmacist),
):
    """Pharmacist review queue."""
    return _page(prescription_service.list_prescriptions(db, status))


@router.get("/mine", response_model=ListEnvelope[PrescriptionResponse])
def my_prescriptions(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _page(prescription_service.list_for_customer(db, current_user))


@router.get("/{prescription_id}", response_model=Envelope[PrescriptionResponse])
def get_prescription(prescription_id: int, db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _envelope(prescription_service.get_for_user(db, prescription_id, current_user))


@router.patch("/{prescription_id}/verify", response_model=Envelope[PrescriptionResponse])
def verify_prescription(
    prescription_id: int,
    body: TransitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_pharmacist),
):
    prescription = prescription_service.verify(db, prescription_id, body.version, current_user)
    return _envelope(prescription, "Prescription is being processed")


@router.patch("/{prescription_id}/approve", response_model=Envelope[PrescriptionResponse])
def approve_prescription(
    prescription_id: int,
    body: TransitionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_pharmacist),
):
    prescription = prescription_service.approve(db, prescription_id, body.version, current_user)
    return _envelope(prescription, "Prescription approved")


@router.patch("/{prescription_id}/reject", response_model=Envelope[PrescriptionResponse])
def reject_prescription(
    prescription_id: int,
    body: RejectRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_pharmacist),
):
    prescription = prescription_service.reject(db, prescription_id, body.version, body.reason, current_user)
    return _envelope(prescription, "Prescription rejected")


@router.delete("/{prescription_id}")
def delete_prescription(
    prescription_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_pharmacist),
):
    prescription_service.delete(db, prescription_id, current_user)
    return {"success": True, "id": prescription_id, "message": "Prescription deleted"}
