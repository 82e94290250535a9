class PackingError(Exception):
    """Base class for packing engine errors."""


class InvalidInputError(PackingError, ValueError):
    """Malformed order data handed to the engine (e.g. non-positive quantity)."""


class UnknownUnitError(PackingError, KeyError):
    """An edit referenced a unit id that is not part of the session."""

    def __init__(self, unit_id: str):
        super().__init__(unit_id)
        self.unit_id = unit_id

    def __str__(self) -> str:
        return f"Unknown unit {self.unit_id!r}"


class SessionNotFoundError(PackingError, LookupError):
    """No packing session is open for the requested order."""

    def __init__(self, order_no: str):
        super().__init__(f"No open packing session for order {order_no}")
        self.order_no = order_no
