"""Read-only queries over the rental ledger, returning DTOs."""

from rental_kernel.selectors.rental_selector import DueStatus, RentalSelector

__all__ = ["DueStatus", "RentalSelector"]
