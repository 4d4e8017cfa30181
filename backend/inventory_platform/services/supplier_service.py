# Overview: Service-layer operations for suppliers; encapsulates business logic and database work.

"""
Supplier Service

Every product names exactly one supplier. A supplier cannot be deleted while
any product (active or not) still references it; the check happens here,
before the delete, not in the database.
"""

from ..extensions import db
from ..models import Product, Supplier
from ..validation import ConflictError

SUPPLIER_MUTABLE_FIELDS = {"name", "contact_name", "phone", "email", "address"}


class SupplierNotFoundError(Exception):
    """Raised when a supplier is not found."""
    pass


class SupplierInUseError(ConflictError):
    """Raised when deleting a supplier that products still reference."""
    def __init__(self, supplier_id: int, product_count: int):
        super().__init__(
            f"Cannot delete supplier: {product_count} product(s) are associated with it"
        )
        self.supplier_id = supplier_id
        self.product_count = product_count


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Supplier).filter(Supplier.name == name)
    if exclude_id is not None:
        query = query.filter(Supplier.id != exclude_id)
    if query.first():
        raise ConflictError(f"Supplier '{name}' already exists")


def list_suppliers(search: str | None = None) -> list[Supplier]:
    query = db.session.query(Supplier)
    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(
            db.or_(Supplier.name.ilike(pattern), Supplier.contact_name.ilike(pattern))
        )
    return query.order_by(Supplier.name.asc()).all()


def get_supplier(supplier_id: int) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if not supplier:
        raise SupplierNotFoundError(f"Supplier {supplier_id} not found")
    return supplier


def create_supplier(*, patch: dict) -> Supplier:
    """
    Create a supplier from a validated patch.

    Raises:
        ConflictError: name already taken
    """
    _ensure_unique_name(patch["name"])

    supplier = Supplier()
    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, k, v)

    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(*, supplier_id: int, patch: dict) -> Supplier:
    supplier = get_supplier(supplier_id)

    if patch.get("name") and patch["name"] != supplier.name:
        _ensure_unique_name(patch["name"], exclude_id=supplier.id)

    for k, v in patch.items():
        if k in SUPPLIER_MUTABLE_FIELDS:
            setattr(supplier, k, v)

    db.session.commit()
    return supplier


def delete_supplier(*, supplier_id: int) -> None:
    """
    Delete a supplier with no products.

    Raises:
        SupplierNotFoundError: unknown id
        SupplierInUseError: products still reference the supplier
    """
    supplier = get_supplier(supplier_id)

    product_count = db.session.query(Product).filter(Product.supplier_id == supplier.id).count()
    if product_count:
        raise SupplierInUseError(supplier.id, product_count)

    db.session.delete(supplier)
    db.session.commit()
