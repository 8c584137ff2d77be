class PipelineError(Exception):
    """Base error for any stage of the layoffs pipeline."""


class IngestionError(PipelineError):
    """Raised when the source CSV cannot be loaded."""


class CleaningError(PipelineError):
    """Raised when the staging table cannot be cleaned; the cleaning transaction is rolled back."""


class DataQualityError(PipelineError):
    """Raised when the cleaned table fails one or more acceptance checks."""

    def __init__(self, failures):
        self.failures = dict(failures)
        details = ", ".join(f"{name}={count}" for name, count in self.failures.items())
        super().__init__(f"Data quality checks failed: {details}")


class ReportError(PipelineError):
    """Raised when a report is unknown or cannot be built."""
