"""Error kinds shared by the store, services and real-time layer.

Mutation-path errors (ValidationError, NotFoundError, StoreError) are raised
to the caller and never cause an event to be published. Delivery-path errors
(TransportError) stay inside the bus/gateway.
"""


class MessageBoardError(Exception):
    """Base class for all msgboard errors."""
    pass


class ValidationError(MessageBoardError):
    """A required field is missing or empty."""

    def __init__(self, field: str, detail: str = "must not be empty"):
        self.field = field
        super().__init__(f"{field} {detail}")


class NotFoundError(MessageBoardError):
    """No message exists with the given id."""

    def __init__(self, message_id):
        self.message_id = message_id
        super().__init__(f"Message {message_id} not found")


class StoreError(MessageBoardError):
    """The underlying database operation failed."""
    pass


class TransportError(MessageBoardError):
    """Delivering an event to one subscriber failed."""
    pass


class BusClosedError(MessageBoardError):
    """The event bus has been shut down and accepts no new subscribers."""
    pass
