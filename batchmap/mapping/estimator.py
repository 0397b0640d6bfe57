import abc
import logging
import math
from dataclasses import dataclass, field
from typing import Optional, Sequence

import numpy as np

from batchmap.genobj.seqobj import SequenceObject
from batchmap.mapping.phases import PhaseResolver


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class EstimateResult:
    """
    Converged multipoint estimates for one marker order.
    """
    loglike: float
    phases: np.ndarray = field(repr=False)
    rf: np.ndarray = field(repr=False)

    @property
    def converged(self) -> bool:
        return self.loglike is not None and math.isfinite(self.loglike)


class MultipointEstimator(abc.ABC):
    """
    Abstract class for multipoint likelihood estimators.

    Implementations run the hidden Markov model over the genotypes of an
    ordered set of markers and return the log-likelihood, linkage phases and
    recombination fractions of that order. They must be deterministic and
    signal non-convergence with a non-finite log-likelihood rather than an
    exception.
    """

    @abc.abstractmethod
    def estimate(
        self,
        geno: np.ndarray,
        segr_type: np.ndarray,
        phases: np.ndarray,
        rf_init: np.ndarray,
        tol: float,
    ) -> EstimateResult:
        """
        Args:
            geno (array of shape (n_individuals, n_markers)): Genotypes with columns in map order.
            segr_type (array of shape (n_markers,)): Segregation types in map order.
            phases (array of shape (n_markers - 1,)): Linkage phases between adjacent markers.
            rf_init (array of shape (n_markers - 1,)): Initial recombination fractions.
            tol (float): Convergence tolerance.
        """
        pass


def estimate_order(
    seq: SequenceObject,
    estimator: MultipointEstimator,
    order: Sequence[int],
    phases: Sequence[int],
    tol: float = 1e-4,
    resolver: Optional[PhaseResolver] = None,
) -> EstimateResult:
    """
    Run the estimator on `order` with fixed `phases`, seeding recombination
    fractions from the sequence's two-point table.

    Args:
        seq (SequenceObject): Sequence providing the dataset and two-point table.
        estimator (MultipointEstimator): The multipoint estimator.
        order (sequence of int): Marker order to evaluate.
        phases (sequence of int): Linkage phases between adjacent markers of `order`.
        tol (float): Convergence tolerance.
        resolver (PhaseResolver, optional): Two-point lookup; built from `seq.twopt` if omitted.

    Returns:
        **EstimateResult:** The estimator's output, with phases defaulting to the input phases.
    """
    if seq.data is None or seq.twopt is None:
        raise ValueError("The sequence must reference its dataset and two-point table to be mapped.")
    if resolver is None:
        resolver = PhaseResolver(seq.twopt)

    order = np.asarray(order, dtype=np.int64)
    phases = np.asarray(phases, dtype=np.int64)
    rf_init = resolver.rf_seeds(order, phases)

    result = estimator.estimate(
        geno=seq.data.columns(order),
        segr_type=seq.data.types(order),
        phases=phases,
        rf_init=rf_init,
        tol=tol,
    )
    loglike = -math.inf if result.loglike is None else float(result.loglike)
    out_phases = phases if result.phases is None else np.asarray(result.phases, dtype=np.int64)
    out_rf = rf_init if result.rf is None else np.asarray(result.rf, dtype=np.float64)
    return EstimateResult(loglike=loglike, phases=out_phases, rf=out_rf)
