class ChannelError(Exception):
    def __init__(self, message: str, status_code: int | None = None, channel: str | None = None):
        self.message = message
        self.status_code = status_code
        self.channel = channel
        super().__init__(message)


class StoreError(Exception):
    def __init__(self, message: str, status_code: int | None = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class DuplicateBookingError(StoreError):
    def __init__(self, external_reference: str):
        self.external_reference = external_reference
        super().__init__(f"Booking with external reference {external_reference} already exists")


class ConfigurationError(Exception):
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class RunInProgressError(Exception):
    def __init__(self, kind: str, run_id: str):
        self.kind = kind
        self.run_id = run_id
        super().__init__(f"A {kind} run is already in progress (run_id={run_id})")


class InvalidPriceInputError(ValueError):
    pass
