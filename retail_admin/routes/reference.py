"""Reference data routes (branches, warehouses, records, parties, products)."""
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from retail_admin.database import get_db
from retail_admin.models.party import Customer, Supplier
from retail_admin.models.product import Product
from retail_admin.models.record import Record
from retail_admin.models.warehouse import Branch, Warehouse
from retail_admin.schemas.reference import (
    LocationResponse, PartyResponse, ProductResponse, RecordResponse,
)

router = APIRouter(tags=["Reference"])


@router.get("/branches", response_model=List[LocationResponse])
async def list_branches(db: Session = Depends(get_db)):
    """List active branches."""
    return db.query(Branch).filter(Branch.is_active == True).order_by(Branch.name).all()


@router.get("/warehouses", response_model=List[LocationResponse])
async def list_warehouses(db: Session = Depends(get_db)):
    """List active warehouses."""
    return db.query(Warehouse).filter(Warehouse.is_active == True).order_by(Warehouse.name).all()


@router.get("/records", response_model=List[RecordResponse])
async def list_records(db: Session = Depends(get_db)):
    """List records, the main record first."""
    return db.query(Record).order_by(Record.is_primary.desc(), Record.name).all()


@router.get("/customers", response_model=List[PartyResponse])
async def list_customers(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return db.query(Customer).order_by(Customer.name).offset(skip).limit(limit).all()


@router.get("/suppliers", response_model=List[PartyResponse])
async def list_suppliers(skip: int = 0, limit: int = 100, db: Session = Depends(get_db)):
    return db.query(Supplier).order_by(Supplier.name).offset(skip).limit(limit).all()


@router.get("/products", response_model=List[ProductResponse])
async def list_products(
    skip: int = 0,
    limit: int = 100,
    search: str = None,
    db: Session = Depends(get_db),
):
    """List products, optionally filtered by name or barcode."""
    query = db.query(Product).filter(Product.is_active == True)
    if search:
        query = query.filter(
            (Product.name.ilike(f"%{search}%")) | (Product.barcode == search)
        )
    return query.order_by(Product.name).offset(skip).limit(limit).all()
