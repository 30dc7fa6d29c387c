"""
Exception hierarchy for the customer/shipping cleaning pipeline.

Every failure the pipeline raises on purpose derives from PipelineError so
callers can catch the whole family in one place. None of these are transient:
they signal a data or schema problem and are never retried.
"""

from typing import Any, Iterable, Optional


class PipelineError(Exception):
    """Base class for all pipeline errors."""


# Loader (bronze layer)

class ConfigurationError(PipelineError):
    """A setting from the environment or .env file has an invalid value."""


class LoadError(PipelineError):
    """Raw data could not be loaded into a staging table."""


class SchemaMismatch(LoadError):
    """The header of a source file does not match the declared table schema."""

    def __init__(self, source: str, missing: Iterable[str] = (), unexpected: Iterable[str] = (),
                 detail: Optional[str] = None):
        self.source = source
        self.missing = sorted(missing)
        self.unexpected = sorted(unexpected)
        parts = []
        if detail:
            parts.append(detail)
        if self.missing:
            parts.append(f"missing columns: {self.missing}")
        if self.unexpected:
            parts.append(f"unexpected columns: {self.unexpected}")
        super().__init__(f"Schema mismatch in {source}: {'; '.join(parts)}")


class SourceUnavailable(LoadError):
    """A source file could not be opened or decoded."""

    def __init__(self, source: str, reason: Any):
        self.source = source
        super().__init__(f"Cannot read {source}: {reason}")


class DuplicateKeyViolation(LoadError):
    """Two source rows share the same primary key."""

    def __init__(self, table: str, key: Any, line: int):
        self.table = table
        self.key = key
        self.line = line
        super().__init__(f"Duplicate primary key {key!r} for table {table} at line {line}")


# Cleaner (silver layer)

class CleaningError(PipelineError):
    """A cleaning rule could not be applied."""


class EmptyAggregateDomain(CleaningError):
    """A fill-by-statistic rule found no present values to average over."""

    def __init__(self, table: str, field: str):
        self.table = table
        self.field = field
        super().__init__(f"No non-null values of {table}.{field} to compute a mean from")


class UnrecognizedCategory(CleaningError):
    """A categorical field holds values outside its known variants."""

    def __init__(self, table: str, field: str, values: Iterable[str]):
        self.table = table
        self.field = field
        self.values = sorted(values)
        super().__init__(f"Unrecognized {table}.{field} values: {self.values}")


class CleaningIncomplete(CleaningError):
    """One or more cleaning steps failed; the table is only partially cleaned."""

    def __init__(self, report):
        self.report = report
        failed = ", ".join(f"{step} ({reason})" for step, reason in report.failures.items())
        super().__init__(f"Cleaning of {report.table} incomplete, failed steps: {failed}")


# Reconciler (gold layer)

class ReconcileError(PipelineError):
    """The reconciliation or summary stage failed."""


class ForeignKeyUnresolved(ReconcileError):
    """A shipment could not be linked to an existing customer."""
