"""
Rental domain layer -- pure functional core.

Everything under ``rental_kernel.domain`` is ZERO I/O: no database, no
logging handlers, no system time.  Services in ``rental_kernel.services``
load state, call into this layer, and persist what it returns.
"""
