"""Exceptions raised by hkscan."""

from typing import Optional


class QTLScanError(Exception):
    """Base exception for all hkscan errors.

    Context (dataset, chromosome, position) is optional and, when given, is
    appended to the message so the failing unit of work can be identified.
    """

    def __init__(self, message: str, dataset: Optional[str] = None,
                 chromosome: Optional[str] = None, position: Optional[float] = None):
        self.dataset = dataset
        self.chromosome = chromosome
        self.position = position

        context = []
        if dataset is not None:
            context.append(f"dataset={dataset}")
        if chromosome is not None:
            context.append(f"chr={chromosome}")
        if position is not None:
            context.append(f"pos={position:g}")
        if context:
            message = f"{message} [{', '.join(context)}]"

        super().__init__(message)

    def __reduce__(self):
        # keep the formatted message and context across process boundaries
        return (_rebuild, (self.__class__, str(self), self.__dict__.copy()))


def _rebuild(cls, message, state):
    err = Exception.__new__(cls)
    Exception.__init__(err, message)
    err.__dict__.update(state)
    return err


class UnresolvedSymbol(QTLScanError):
    """A genotype call matches neither an alias nor a true genotype."""

    def __init__(self, symbol: str, **context):
        self.symbol = symbol
        super().__init__(f'Failed to decode genotype "{symbol}"', **context)


class DuplicateSymbol(QTLScanError, ValueError):
    """A genotype alias is registered twice."""
    pass


class IncompatibleCross(QTLScanError):
    """Genotype alphabet does not match the declared cross type."""
    pass


class DimensionMismatch(QTLScanError):
    """Row or column counts of genotype, phenotype or covariate data disagree."""
    pass


class DegenerateDesign(QTLScanError):
    """Regression design matrix is rank deficient."""

    def __init__(self, message: str, rank: Optional[int] = None,
                 n_columns: Optional[int] = None, **context):
        self.rank = rank
        self.n_columns = n_columns
        if rank is not None and n_columns is not None:
            message = f"{message} (rank {rank} < {n_columns} columns)"
        super().__init__(message, **context)


class ConfigurationError(QTLScanError, ValueError):
    """Invalid scan configuration."""
    pass
