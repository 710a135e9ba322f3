"""Script to create the rows every installation needs."""
import sys
import os

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from retail_admin.config import settings
from retail_admin.database import SessionLocal, engine, Base
from retail_admin.models.party import Customer
from retail_admin.models.record import Record
from retail_admin.models.warehouse import Branch, Warehouse


def seed_reference_data():
    """Create the main record, transfer record, default customer and a first branch."""
    # Create tables
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        branch = db.query(Branch).first()
        if not branch:
            branch = Branch(name="الفرع الرئيسي")
            db.add(branch)
            db.flush()
            print(f"Branch created: {branch.name}")

        if not db.query(Warehouse).first():
            db.add(Warehouse(name="المخزن الرئيسي"))
            print("Warehouse created")

        if not db.query(Record).filter(Record.id == settings.MAIN_RECORD_ID).first():
            db.add(Record(
                id=settings.MAIN_RECORD_ID,
                name="السجل الرئيسي",
                branch_id=branch.id,
                is_primary=True,
            ))
            print("Main record created")

        if not db.query(Record).filter(Record.name == settings.TRANSFER_RECORD_NAME).first():
            db.add(Record(name=settings.TRANSFER_RECORD_NAME))
            print("Transfer record created")

        if not db.query(Customer).filter(Customer.id == settings.DEFAULT_CUSTOMER_ID).first():
            db.add(Customer(id=settings.DEFAULT_CUSTOMER_ID, name="عميل نقدي"))
            print("Default customer created")

        db.commit()
        print("Reference data is ready.")

    finally:
        db.close()


if __name__ == "__main__":
    seed_reference_data()
