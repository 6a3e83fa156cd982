class ScreeningError(Exception):
    """Base class for errors raised by the screening and evaluation core."""


class DegenerateInputError(ScreeningError, ValueError):
    """Input table has no rows to compute an association from."""


class SchemaMismatchError(ScreeningError, ValueError):
    """Evaluation data does not encode to the training indicator columns."""


class InsufficientMinorityClassError(ScreeningError, ValueError):
    """Rebalancing is impossible because one class has no rows."""


class VariantTrainingFailure(ScreeningError, RuntimeError):
    """A model variant could not be built or fitted."""

    def __init__(self, variant: str, reason: str):
        super().__init__(f"Variant '{variant}' failed: {reason}")
        self.variant = variant
        self.reason = reason
