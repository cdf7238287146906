class RecipeDraftError(Exception):
    pass


class ConfigError(RecipeDraftError):
    pass


class TransportError(RecipeDraftError):
    def __init__(self, msg: str, *, status_code: int | None = None) -> None:
        super().__init__(msg)
        self.status_code = status_code


class DecodeError(RecipeDraftError):
    pass


class GenerationError(RecipeDraftError):
    def __init__(self, attempts: int, last_error: Exception) -> None:
        super().__init__(f"generation failed after {attempts} attempts: {last_error}")
        self.attempts = attempts
        self.last_error = last_error


class DraftNotFound(RecipeDraftError):
    pass


class StoreUnavailable(RecipeDraftError):
    pass


class EnrichmentError(RecipeDraftError):
    pass
