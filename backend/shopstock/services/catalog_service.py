# Overview: Read-only lookups of reference data owned by other services.

from ..extensions import db
from ..models import Product, Supplier, Company, Shop


class ProductNotFoundError(Exception):
    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} not found")


class SupplierNotFoundError(Exception):
    def __init__(self, supplier_id: str):
        self.supplier_id = supplier_id
        super().__init__(f"Supplier {supplier_id} not found")


def find_product(product_id: str, company_id: str | None = None) -> Product | None:
    """
    Product lookup scoped to a company.

    A product owned by another company is reported as missing, never as
    foreign, so callers cannot probe other tenants' catalogs.
    """
    product = db.session.get(Product, product_id)
    if product is None:
        return None
    if company_id is not None and product.company_id != company_id:
        return None
    return product


def get_product(product_id: str, company_id: str | None = None) -> Product:
    product = find_product(product_id, company_id)
    if product is None:
        raise ProductNotFoundError(product_id)
    return product


def get_supplier(supplier_id: str, company_id: str | None = None) -> Supplier:
    supplier = db.session.get(Supplier, supplier_id)
    if supplier is None or (company_id is not None and supplier.company_id != company_id):
        raise SupplierNotFoundError(supplier_id)
    return supplier


def find_company(company_id: str) -> Company | None:
    return db.session.get(Company, company_id)


def find_shop(shop_id: str) -> Shop | None:
    return db.session.get(Shop, shop_id)
