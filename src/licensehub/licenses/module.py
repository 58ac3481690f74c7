"""Bounded context «licenses»: customer license records, attributed to agents."""
from licensehub.ddd import DomainModule

from .application import (
    CreateCustomer,
    CreateCustomerHandler,
    GetCustomer,
    GetCustomerHandler,
    ListCustomers,
    ListCustomersHandler,
)
from .infrastructure import LicenseStore

licenses_module = (
    DomainModule("licenses", prefix="/api")
    .bind(LicenseStore, LicenseStore)
    .command(CreateCustomer, CreateCustomerHandler, path="/customers")
    .query(ListCustomers, ListCustomersHandler, path="/customers")
    .query(GetCustomer, GetCustomerHandler, path="/customers/{customerId}")
)
