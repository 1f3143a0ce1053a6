"""
Error taxonomy for the county pipeline.

Every error is fail-fast: stages are deterministic transforms over
already-fetched data, so nothing here is retried.
"""


class CountyDataError(Exception):
    """Base class for pipeline data errors."""


class MissingFieldError(CountyDataError):
    """A declared source field is absent from the raw input."""

    def __init__(self, column: str, source: str):
        self.column = column
        self.source = source
        super().__init__(f"Field '{column}' not found in source '{source}'")


class DuplicateKeyFieldError(CountyDataError):
    """A (key, field) pair occurs more than once before widening."""

    def __init__(self, source: str, duplicates: list):
        self.source = source
        self.duplicates = duplicates
        sample = ", ".join(str(d) for d in duplicates[:5])
        super().__init__(
            f"Source '{source}' has {len(duplicates)} duplicate key/field pairs: {sample}"
        )


class DuplicateJoinKeyError(CountyDataError):
    """Canonicalized join keys are not unique within one table."""

    def __init__(self, table: str, keys: list[str]):
        self.table = table
        self.keys = keys
        sample = ", ".join(keys[:5])
        super().__init__(
            f"Table '{table}' has {len(keys)} duplicate join keys after canonicalization: {sample}"
        )


class DegenerateColumnError(CountyDataError):
    """A column cannot be standardized (zero variance or too few values)."""

    def __init__(self, column: str, reason: str):
        self.column = column
        super().__init__(f"Cannot standardize column '{column}': {reason}")


class SingularDesignError(CountyDataError):
    """A model design matrix is rank deficient."""

    def __init__(self, model: str, reason: str):
        self.model = model
        super().__init__(f"Model '{model}' has a singular design: {reason}")
