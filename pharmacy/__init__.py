"""
Medication request and order fulfillment backend.

Patients request medications from a pharmacy, staff confirm availability,
and an available request becomes an order that is paid for, delivered or
cancelled. The core lives in ``pharmacy.domain`` and ``pharmacy.usecase``;
stores, the payment gateway and notifiers are pluggable backends under
``pharmacy.repos``.
"""
