"""
Bridge to R/edgeR through rpy2.

The statistical stages (TMM normalization, quasi-likelihood model fitting)
run inside R. Matrices cross the boundary as plain numeric arrays using the
numpy converter; R functions are defined once as source strings and
compiled lazily.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any, NamedTuple

import numpy as np

from tissuede_pipeline.core.exceptions import BackendError, BackendUnavailableError

logger = logging.getLogger(__name__)


REQUIRED_R_PACKAGES = ("edgeR",)


class RBackend(NamedTuple):
    """Loaded rpy2 entry points."""

    ro: Any
    numpy2ri: Any
    localconverter: Any
    error: type
    """Exception class rpy2 raises for errors inside R."""


@lru_cache(maxsize=1)
def _rpy2() -> RBackend:
    try:
        import rpy2.robjects as ro
        from rpy2.rinterface_lib.embedded import RRuntimeError
        from rpy2.robjects import numpy2ri
        from rpy2.robjects.conversion import localconverter
        from rpy2.robjects.packages import isinstalled
    except (ImportError, OSError, RuntimeError) as e:
        raise BackendUnavailableError(
            f"rpy2 with a working R installation is required: {e}"
        ) from e

    missing = [pkg for pkg in REQUIRED_R_PACKAGES if not isinstalled(pkg)]
    if missing:
        raise BackendUnavailableError(
            f"R packages not installed: {', '.join(missing)} "
            "(install with BiocManager::install())"
        )
    logger.debug("R backend ready (packages: %s)", ", ".join(REQUIRED_R_PACKAGES))
    return RBackend(ro, numpy2ri, localconverter, RRuntimeError)


def edger_available() -> bool:
    """Check whether rpy2 and edgeR can be used."""
    try:
        _rpy2()
    except BackendUnavailableError:
        return False
    return True


def str_vector(values) -> Any:
    """Convert a sequence of labels to an R character vector."""
    return _rpy2().ro.StrVector([str(v) for v in values])


class RFunction:
    """
    An R function compiled from source on first call.

    Errors raised inside R are re-raised as BackendError.

    Example:
        >>> norm_factors = RFunction('''
        ... function(counts) {
        ...     edgeR::calcNormFactors(edgeR::DGEList(counts))$samples$norm.factors
        ... }''')
        >>> norm_factors(np.ones((10, 3)))
    """

    def __init__(self, source: str, name: str = "anonymous"):
        self.source = source
        self.name = name
        self._fn = None

    def __call__(self, *args, **kwargs) -> np.ndarray:
        backend = _rpy2()
        ro = backend.ro
        with backend.localconverter(ro.default_converter + backend.numpy2ri.converter):
            try:
                if self._fn is None:
                    self._fn = ro.r(self.source)
                logger.debug("Calling R function %s", self.name)
                result = self._fn(*args, **kwargs)
            except backend.error as e:
                raise BackendError(f"R function {self.name} failed: {str(e).strip()}") from e
        return np.asarray(result)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.name})"
