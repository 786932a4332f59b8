# Overview: Customers, employees and suppliers; plain tenant-scoped records.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Employee, Sale, Supplier
from ..validation import ModelValidationPolicy, validate_payload
from . import data_access
from .concurrency import run_with_retry


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"first_name", "last_name", "phone", "email", "address"},
    required_on_create={"first_name", "last_name"},
)

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={"first_name", "last_name", "gender", "email", "phone", "job_role", "hired_on", "address"},
    required_on_create={"first_name", "last_name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "address"},
    required_on_create={"name"},
)


def _list(model, business_id: int, *order_by):
    return db.session.query(model).filter(model.business_id == business_id).order_by(*order_by).all()


def _create(model, business_id: int, payload: dict, policy: ModelValidationPolicy):
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=False)

    def _op():
        row = model(business_id=business_id, **patch)
        db.session.add(row)
        db.session.commit()
        return row

    return run_with_retry(_op)


def _update(model, business_id: int, entity_id: int, payload: dict, policy: ModelValidationPolicy, label: str):
    patch = validate_payload(model=model, payload=payload, policy=policy, partial=True)

    def _op():
        row = data_access.get_scoped(model, business_id, entity_id, label=label)
        for key, value in patch.items():
            setattr(row, key, value)
        db.session.commit()
        return row

    return run_with_retry(_op)


# Customers

def list_customers(business_id: int) -> list[Customer]:
    return _list(Customer, business_id, Customer.last_name.asc(), Customer.first_name.asc(), Customer.id.asc())


def get_customer(business_id: int, customer_id: int) -> Customer:
    return data_access.get_scoped(Customer, business_id, customer_id, label="Customer")


def create_customer(business_id: int, payload: dict) -> Customer:
    return _create(Customer, business_id, payload, CUSTOMER_POLICY)


def update_customer(business_id: int, customer_id: int, payload: dict) -> Customer:
    return _update(Customer, business_id, customer_id, payload, CUSTOMER_POLICY, "Customer")


def delete_customer(business_id: int, customer_id: int) -> None:
    """Sales keep the customer's name; only the link is cleared."""
    def _op():
        customer = get_customer(business_id, customer_id)
        db.session.query(Sale).filter(
            Sale.business_id == business_id,
            Sale.customer_id == customer.id,
        ).update({Sale.customer_id: None}, synchronize_session=False)
        db.session.delete(customer)
        db.session.commit()

    run_with_retry(_op)


# Employees

def list_employees(business_id: int) -> list[Employee]:
    return _list(Employee, business_id, Employee.last_name.asc(), Employee.first_name.asc(), Employee.id.asc())


def create_employee(business_id: int, payload: dict) -> Employee:
    return _create(Employee, business_id, payload, EMPLOYEE_POLICY)


def update_employee(business_id: int, employee_id: int, payload: dict) -> Employee:
    return _update(Employee, business_id, employee_id, payload, EMPLOYEE_POLICY, "Employee")


def delete_employee(business_id: int, employee_id: int) -> None:
    def _op():
        db.session.delete(data_access.get_scoped(Employee, business_id, employee_id, label="Employee"))
        db.session.commit()

    run_with_retry(_op)


# Suppliers

def list_suppliers(business_id: int) -> list[Supplier]:
    return _list(Supplier, business_id, Supplier.name.asc(), Supplier.id.asc())


def create_supplier(business_id: int, payload: dict) -> Supplier:
    return _create(Supplier, business_id, payload, SUPPLIER_POLICY)


def update_supplier(business_id: int, supplier_id: int, payload: dict) -> Supplier:
    return _update(Supplier, business_id, supplier_id, payload, SUPPLIER_POLICY, "Supplier")


def delete_supplier(business_id: int, supplier_id: int) -> None:
    """Products supplied by it stay, with no supplier."""
    def _op():
        supplier = data_access.get_scoped(Supplier, business_id, supplier_id, label="Supplier")
        for product in data_access.list_products(business_id, supplier_id=supplier.id):
            product.supplier_id = None
        db.session.delete(supplier)
        db.session.commit()

    run_with_retry(_op)
