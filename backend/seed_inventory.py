"""Seed the catalog and a pharmacist account for local development.

Usage: python seed_inventory.py [--reset]
"""
import secrets
import sys
from decimal import Decimal

from pharmacare.core.permissions import ROLE_PHARMACIST
from pharmacare.core.security import get_password_hash
from pharmacare.db.init_db import init_db
from pharmacare.db.session import SessionLocal
from pharmacare.models.product import Product
from pharmacare.models.user import User

PHARMACIST_EMAIL = "pharmacist@pharmacare.lk"

# (name, category, price LKR, stock, prescription required)
MEDICINES = [
    ("Paracetamol 500mg", "Pain & Fever", "20.00", 200, False),
    ("Ibuprofen 400mg", "Pain & Fever", "35.00", 150, False),
    ("Cetirizine 10mg", "Allergy", "25.00", 120, False),
    ("Loratadine 10mg", "Allergy", "30.00", 90, False),
    ("Oral Rehydration Salts", "Digestive", "45.00", 80, False),
    ("Vitamin C 500mg", "Vitamins", "60.00", 140, False),
    ("Vitamin D3 1000IU", "Vitamins", "95.00", 70, False),
    ("Antiseptic Cream 30g", "First Aid", "180.00", 40, False),
    ("Amoxicillin 500mg", "Antibiotics", "100.00", 60, True),
    ("Azithromycin 500mg", "Antibiotics", "240.00", 30, True),
    ("Metformin 850mg", "Diabetes", "40.00", 100, True),
    ("Amlodipine 5mg", "Cardiac", "55.00", 80, True),
    ("Atorvastatin 20mg", "Cardiac", "120.00", 50, True),
    ("Salbutamol Inhaler", "Respiratory", "850.00", 25, True),
    ("Omeprazole 20mg", "Digestive", "65.00", 90, True),
]


def seed_inventory(reset: bool = False):
    init_db()
    db = SessionLocal()
    try:
        if reset:
            db.query(Product).delete()

        existing = {name for (name,) in db.query(Product.name).all()}
        added = 0
        for name, category, price, stock, prescription_required in MEDICINES:
            if name in existing:
                continue
            db.add(
                Product(
                    name=name,
                    category=category,
                    price=Decimal(price),
                    stock=stock,
                    prescription_required=prescription_required,
                )
            )
            added += 1

        password = None
        if not db.query(User).filter(User.email == PHARMACIST_EMAIL).first():
            password = secrets.token_urlsafe(12)
            db.add(
                User(
                    email=PHARMACIST_EMAIL,
                    name="Duty Pharmacist",
                    role=ROLE_PHARMACIST,
                    hashed_password=get_password_hash(password),
                )
            )

        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

    print(f"Added {added} products ({len(MEDICINES) - added} already present)")
    print("=" * 60)
    for name, category, price, stock, prescription_required in MEDICINES:
        flag = "Rx" if prescription_required else "  "
        print(f"  {flag} {name:<28} {category:<14} LKR {price:>8}  stock {stock}")
    if password:
        print("=" * 60)
        print(f"Pharmacist: {PHARMACIST_EMAIL} / {password}")


if __name__ == "__main__":
    seed_inventory(reset="--reset" in sys.argv)
