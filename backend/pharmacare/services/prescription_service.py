"""
Prescription lifecycle: pending -> processing -> approved | rejected.

Every pharmacist transition presents the version it last read. The update is a
conditional write on (id, version, status), so two pharmacists acting on the
same prescription cannot both succeed: the second one gets StaleVersionError.
"""
import logging
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Tuple

from sqlalchemy.orm import Session

from pharmacare.core.audit import AuditLog
from pharmacare.core.exceptions import (
    InvalidTransitionError,
    NotFoundError,
    StaleVersionError,
    ValidationError,
)
from pharmacare.core.permissions import ensure_owner_or_staff
from pharmacare.models.prescription import (
    Prescription,
    STATUS_APPROVED,
    STATUS_PENDING,
    STATUS_PROCESSING,
    STATUS_REJECTED,
    TERMINAL_STATUSES,
)
from pharmacare.models.user import User
from pharmacare.services.storage_service import check_document, delete_documents, save_document

logger = logging.getLogger(__name__)

YES_NO = ("yes", "no")
FREQUENCIES = ("one", "ongoing")


@dataclass
class IntakeForm:
    """Answers from the upload form. name and email default to the account."""
    phone: Optional[str] = None
    address: Optional[str] = None
    city: Optional[str] = None
    duration: Optional[str] = None
    gender: Optional[str] = None
    payment_method: Optional[str] = None
    frequency: Optional[str] = None
    has_allergies: Optional[str] = None
    allergies: Optional[str] = None
    substitutes: Optional[str] = None
    notes: Optional[str] = None
    name: Optional[str] = None
    email: Optional[str] = None

    def validate(self) -> None:
        labels = {
            "phone": "Phone Number",
            "address": "Address",
            "city": "City",
            "duration": "Duration",
            "gender": "Gender",
            "payment_method": "Payment Method",
            "frequency": "Frequency",
            "has_allergies": "Allergy answer",
            "substitutes": "Substitution consent",
        }
        missing = [label for key, label in labels.items() if not (getattr(self, key) or "").strip()]
        if missing:
            raise ValidationError(f"Required: {', '.join(missing)}")

        if self.has_allergies.strip().lower() not in YES_NO:
            raise ValidationError("Allergy answer must be 'yes' or 'no'")
        if self.substitutes.strip().lower() not in YES_NO:
            raise ValidationError("Substitution consent must be 'yes' or 'no'")
        if self.frequency.strip().lower() not in FREQUENCIES:
            raise ValidationError("Frequency must be 'one' or 'ongoing'")
        if self.has_allergies.strip().lower() == "yes" and not (self.allergies or "").strip():
            raise ValidationError("Please describe your allergies")


# (filename, content_type, stream)
Document = Tuple[str, str, BinaryIO]


def submit(db: Session, customer: User, form: IntakeForm, documents: List[Document]) -> Prescription:
    """
    Create a pending prescription. Nothing is stored unless every field and
    every document passes validation.
    """
    if not documents:
        raise ValidationError("Please upload at least one prescription image")
    form.validate()
    for filename, content_type, _ in documents:
        check_document(filename, content_type)

    stored: List[str] = []
    try:
        for filename, content_type, stream in documents:
            stored.append(save_document(stream, filename, content_type))

        prescription = Prescription(
            customer_id=customer.id,
            name=(form.name or customer.name or customer.email).strip(),
            email=(form.email or customer.email).strip(),
            phone=form.phone.strip(),
            address=form.address.strip(),
            city=form.city.strip(),
            duration=form.duration.strip(),
            gender=form.gender.strip(),
            payment_method=form.payment_method.strip(),
            frequency=form.frequency.strip().lower(),
            has_allergies=form.has_allergies.strip().lower() == "yes",
            allergies=(form.allergies or "").strip() or None,
            substitutes=form.substitutes.strip().lower() == "yes",
            notes=(form.notes or "").strip() or None,
            documents=stored,
            status=STATUS_PENDING,
            verified=False,
            version=1,
        )
        db.add(prescription)
        db.commit()
        db.refresh(prescription)
    except Exception:
        db.rollback()
        delete_documents(stored)
        raise

    AuditLog.log_action("submit", "prescription", prescription.id, customer.id, changes={"documents": len(stored)})
    logger.info(f"Prescription #{prescription.id} submitted by customer {customer.id}")
    return prescription


def get_prescription(db: Session, prescription_id: int) -> Prescription:
    prescription = db.query(Prescription).filter(Prescription.id == prescription_id).first()
    if not prescription:
        raise NotFoundError("Prescription", prescription_id)
    return prescription


def get_for_user(db: Session, prescription_id: int, user: User) -> Prescription:
    prescription = get_prescription(db, prescription_id)
    ensure_owner_or_staff(user, prescription.customer_id, "prescription", prescription.id)
    return prescription


def list_prescriptions(db: Session, status: Optional[str] = None) -> List[Prescription]:
    q = db.query(Prescription)
    if status:
        q = q.filter(Prescription.status == status)
    return q.order_by(Prescription.created_at.desc(), Prescription.id.desc()).all()


def list_for_customer(db: Session, customer: User) -> List[Prescription]:
    return (
        db.query(Prescription)
        .filter(Prescription.customer_id == customer.id)
        .order_by(Prescription.created_at.desc(), Prescription.id.desc())
        .all()
    )


def _transition(
    db: Session,
    prescription_id: int,
    expected_version: int,
    source: str,
    target: str,
    pharmacist: User,
    **changes,
) -> Prescription:
    prescription = get_prescription(db, prescription_id)
    if prescription.version != expected_version:
        raise StaleVersionError("Prescription", expected_version, prescription.version)
    if prescription.status != source:
        raise InvalidTransitionError("prescription", prescription.status, target)

    values = {
        Prescription.status: target,
        Prescription.version: expected_version + 1,
        Prescription.reviewed_by_id: pharmacist.id,
    }
    values.update({getattr(Prescription, key): value for key, value in changes.items()})

    updated = (
        db.query(Prescription)
        .filter(
            Prescription.id == prescription_id,
            Prescription.version == expected_version,
            Prescription.status == source,
        )
        .update(values, synchronize_session=False)
    )
    if updated == 0:
        # Lost the race between the read above and this write
        db.rollback()
        raise StaleVersionError("Prescription", expected_version)
    db.commit()
    db.refresh(prescription)

    AuditLog.log_action(
        target if target != STATUS_PROCESSING else "verify",
        "prescription",
        prescription.id,
        pharmacist.id,
        changes={"from": source, "to": target, "version": prescription.version},
    )
    logger.info(f"Prescription #{prescription.id}: {source} -> {target} by pharmacist {pharmacist.id}")
    return prescription


def verify(db: Session, prescription_id: int, version: int, pharmacist: User) -> Prescription:
    return _transition(db, prescription_id, version, STATUS_PENDING, STATUS_PROCESSING, pharmacist, verified=True)


def approve(db: Session, prescription_id: int, version: int, pharmacist: User) -> Prescription:
    return _transition(db, prescription_id, version, STATUS_PROCESSING, STATUS_APPROVED, pharmacist)


def reject(db: Session, prescription_id: int, version: int, reason: str, pharmacist: User) -> Prescription:
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("A rejection reason is required")
    return _transition(
        db, prescription_id, version, STATUS_PROCESSING, STATUS_REJECTED, pharmacist, rejection_reason=reason
    )


def delete(db: Session, prescription_id: int, pharmacist: User) -> None:
    """Only resolved (approved or rejected) prescriptions can be deleted."""
    prescription = get_prescription(db, prescription_id)
    if prescription.status not in TERMINAL_STATUSES:
        raise InvalidTransitionError("prescription", prescription.status, "deleted")

    documents = list(prescription.documents or [])
    try:
        db.delete(prescription)
        db.commit()
    except Exception:
        db.rollback()
        raise

    leftovers = delete_documents(documents)
    if leftovers:
        logger.warning(f"Prescription #{prescription_id} deleted but {len(leftovers)} documents remain on disk")
    AuditLog.log_action("delete", "prescription", prescription_id, pharmacist.id)
