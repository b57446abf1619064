"""
Parametric bootstrap of the likelihood-ratio statistic.

Replicate i draws from its own random stream derived from (seed, i), so its
signals do not depend on H, on execution order or on whether earlier
replicates converged. A replicate whose null or alternative fit fails is
discarded and left out of the p-value denominator.
"""

import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

import numpy as np
import polars as pl

from ctgranger.config import GrangerConfig, get_config
from ctgranger.exceptions import ConvergenceFailure
from ctgranger.inference.estimator import fit_model, require_converged
from ctgranger.model.parameters import ModelVariant, ParameterVector
from ctgranger.model.simulate import draw_signals
from ctgranger.progress import ProgressSink, null_progress

logger = logging.getLogger(__name__)


def replicate_rng(seed: int, index: int) -> np.random.Generator:
    """Independent generator for replicate `index` under `seed`."""
    return np.random.default_rng(np.random.SeedSequence(seed, spawn_key=(index,)))


def lr_statistic(loglik_alt: float, loglik_null: float) -> float:
    """2 * (loglik_alt - loglik_null), clamped at zero against optimiser noise."""
    return max(0.0, 2.0 * (loglik_alt - loglik_null))


# =============================================================================
# DATA STRUCTURES
# =============================================================================

@dataclass(frozen=True)
class ReplicateOutcome:
    """Result of one bootstrap replicate."""
    index: int
    statistic: Optional[float]
    reason: str = 'ok'

    @property
    def succeeded(self) -> bool:
        return self.statistic is not None


@dataclass
class BootstrapSample:
    """Append-only collection of replicate outcomes."""
    requested: int
    outcomes: List[ReplicateOutcome] = field(default_factory=list)
    cancelled: bool = False

    def append(self, outcome: ReplicateOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def statistics(self) -> np.ndarray:
        return np.array([o.statistic for o in self.outcomes if o.succeeded], dtype=float)

    @property
    def n_processed(self) -> int:
        return len(self.outcomes)

    @property
    def n_successful(self) -> int:
        return sum(1 for o in self.outcomes if o.succeeded)

    @property
    def n_discarded(self) -> int:
        return self.n_processed - self.n_successful

    @property
    def success_fraction(self) -> float:
        if self.n_processed == 0:
            return 0.0
        return self.n_successful / self.n_processed

    def p_value(self, observed: float) -> float:
        """Share of successful replicates with statistic >= observed (NaN if none)."""
        stats = self.statistics
        if len(stats) == 0:
            return float('nan')
        return float(np.mean(stats >= observed))

    def to_frame(self) -> pl.DataFrame:
        """One row per processed replicate."""
        return pl.DataFrame(
            {
                'replicate': [o.index for o in self.outcomes],
                'statistic': [o.statistic for o in self.outcomes],
                'succeeded': [o.succeeded for o in self.outcomes],
                'reason': [o.reason for o in self.outcomes],
            },
            schema={
                'replicate': pl.Int64,
                'statistic': pl.Float64,
                'succeeded': pl.Boolean,
                'reason': pl.Utf8,
            },
        )


# =============================================================================
# REPLICATES
# =============================================================================

def bootstrap_replicate(
    index: int,
    null_theta: ParameterVector,
    times: np.ndarray,
    alternative: ModelVariant,
    seed: int,
    config: Optional[GrangerConfig] = None,
) -> ReplicateOutcome:
    """
    Simulate under the null, refit null and alternative, and return the statistic.

    Non-convergence of either fit yields a discarded outcome instead of an
    exception.
    """
    config = config or get_config()
    sim = draw_signals(null_theta, times, replicate_rng(seed, index))

    try:
        null_fit = require_converged(
            fit_model(sim.root, sim.shoot, times, ModelVariant.NULL, theta0=null_theta, config=config),
            f"replicate {index} null",
        )
        alt_fit = require_converged(
            fit_model(
                sim.root, sim.shoot, times, alternative,
                theta0=null_fit.theta, config=config,
            ),
            f"replicate {index} {alternative.value}",
        )
    except ConvergenceFailure as e:
        logger.debug(f"Discarding replicate {index}: {e}")
        return ReplicateOutcome(index=index, statistic=None, reason=e.label or 'not converged')

    return ReplicateOutcome(index=index, statistic=lr_statistic(alt_fit.loglik, null_fit.loglik))


def run_bootstrap(
    null_theta: ParameterVector,
    times: np.ndarray,
    alternative: ModelVariant,
    n_replicates: int,
    seed: int,
    config: Optional[GrangerConfig] = None,
    progress: ProgressSink = null_progress,
    should_stop: Optional[Callable[[], bool]] = None,
) -> BootstrapSample:
    """
    Run the bootstrap loop sequentially.

    Args:
        null_theta: Fitted null parameters to simulate from
        times: Time grid of the observed data
        alternative: Alternative variant refitted on each replicate
        n_replicates: Number of replicates H
        seed: Base seed for the per-replicate streams
        config: Configuration
        progress: Sink notified with (i + 1, H) after each replicate
        should_stop: Checked between replicates; True aborts the loop

    Returns:
        BootstrapSample with one outcome per processed replicate
    """
    config = config or get_config()
    sample = BootstrapSample(requested=n_replicates)

    for i in range(n_replicates):
        if should_stop is not None and should_stop():
            logger.warning(f"Bootstrap cancelled after {i}/{n_replicates} replicates")
            sample.cancelled = True
            break
        sample.append(bootstrap_replicate(i, null_theta, times, alternative, seed, config))
        progress(i + 1, n_replicates)

    logger.info(
        f"Bootstrap finished: {sample.n_successful}/{sample.n_processed} replicates converged"
    )
    return sample
