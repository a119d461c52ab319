"""
Convergence diagnostics and posterior summaries for sampled traces.

Key diagnostics:
- Rhat (potential scale reduction): <1.01 indicates convergence
- ESS (effective sample size): accounts for autocorrelation in MH chains
- Acceptance ratio: fraction of accepted proposals (MH around 0.2-0.5 mixes well)

Traces convert to arviz.InferenceData for plotting and summaries
(`to_inference_data`, `summary_stats`).
"""

from typing import Dict, List, Optional, Sequence
import math

import arviz as az
import numpy as np
from numpy.typing import NDArray

# Fewest draws per chain for which arviz's split estimators are defined.
MIN_DRAWS = 4


def _numeric_names(result) -> List[str]:
    names = []
    for name in result.names:
        values = result.trace(name)
        if values.ndim == 1 and values.dtype.kind in "biuf":
            names.append(name)
    return names


def stack_chains(results: Sequence, name: str) -> NDArray[np.float64]:
    """
    Stack the trace of `name` across chains.

    Chains are truncated to the shortest one.

    Returns
    -------
    samples : NDArray[np.float64]
        Shape (chains, draws).
    """
    if not results:
        raise ValueError("Need at least one result")
    draws = min(len(r) for r in results)
    return np.stack(
        [np.asarray(r.trace(name)[:draws], dtype=np.float64) for r in results]
    )


def to_inference_data(results: Sequence, var_names: Optional[List[str]] = None):
    """
    Convert one or more chains to arviz.InferenceData.

    Parameters
    ----------
    results : Sequence[InferenceResult]
        One result per chain.
    var_names : List[str], optional
        Names to include. If None, every numeric scalar trace.

    Returns
    -------
    idata : arviz.InferenceData
        Posterior group with dims (chain, draw); sample_stats holds "lp",
        the log-posterior of each draw.
    """
    if not results:
        raise ValueError("Need at least one result")
    names = var_names if var_names is not None else _numeric_names(results[0])
    posterior = {name: stack_chains(results, name) for name in names}

    draws = min(len(r) for r in results)
    lp = np.stack([
        np.asarray([t.log_posterior for t in r.traces.traces[:draws]], dtype=np.float64)
        for r in results
    ])
    return az.from_dict(posterior=posterior, sample_stats={"lp": lp})


class DiagnosticsComputer:
    """
    Compute convergence diagnostics from posterior samples.

    Rhat and ESS are arviz's rank-normalized estimators, applied to raw
    arrays; lag autocorrelation and acceptance ratios are computed here.
    """

    @staticmethod
    def rhat(posterior_samples: NDArray[np.float64]) -> float:
        """
        Compute Rhat (potential scale reduction factor).

        Rhat measures whether multiple chains have converged to the same
        posterior distribution. Rhat < 1.01 indicates convergence. Chains with
        no spread at all report 1.0 (arviz gives NaN there).

        Parameters
        ----------
        posterior_samples : NDArray[np.float64]
            Posterior samples from multiple chains, shape (chains, draws).

        Returns
        -------
        rhat : float
            Potential scale reduction factor. <1.01 is good.
        """
        posterior_samples = np.asarray(posterior_samples, dtype=np.float64)
        n_chains, n_draws = posterior_samples.shape

        if n_chains < 2:
            raise ValueError("Need at least 2 chains for Rhat")
        if n_draws < MIN_DRAWS:
            raise ValueError(
                f"Need at least {MIN_DRAWS} draws per chain for Rhat. Got {n_draws}"
            )
        if np.ptp(posterior_samples) == 0:
            return 1.0
        return float(az.rhat(posterior_samples))

    @staticmethod
    def ess(posterior_samples: NDArray[np.float64]) -> float:
        """
        Compute effective sample size (ESS) of a single chain.

        Bulk ESS from arviz, capped at the number of draws. Constant or very
        short chains report their length.

        Parameters
        ----------
        posterior_samples : NDArray[np.float64]
            Samples from a single chain in sample order, shape (draws,).

        Returns
        -------
        ess : float
            Effective sample size, in [1, draws].
        """
        posterior_samples = np.asarray(posterior_samples, dtype=np.float64)
        n = len(posterior_samples)
        if n < MIN_DRAWS or np.ptp(posterior_samples) == 0:
            return float(n)
        return float(min(n, max(1.0, az.ess(posterior_samples))))

    @staticmethod
    def autocorrelation(samples: NDArray[np.float64], lag: int = 1) -> float:
        """Lag-k autocorrelation of a chain (the lag plot's summary)."""
        samples = np.asarray(samples, dtype=np.float64)
        if lag < 1 or lag >= len(samples):
            raise ValueError(f"lag must be in [1, {len(samples) - 1}]. Got {lag}")
        centered = samples - samples.mean()
        denom = np.dot(centered, centered)
        if denom == 0:
            return math.nan
        return float(np.dot(centered[:-lag], centered[lag:]) / denom)

    @staticmethod
    def acceptance_ratios(results: Sequence) -> List[float]:
        return [r.acceptance_ratio for r in results]


def summary_stats(
    results: Sequence,
    var_names: Optional[List[str]] = None,
    hdi_prob: float = 0.95,
) -> Dict[str, Dict[str, float]]:
    """
    Posterior summary statistics via arviz.

    Parameters
    ----------
    results : Sequence[InferenceResult]
        One result per chain.
    var_names : List[str], optional
        Variables to summarize. If None, every numeric scalar trace.
    hdi_prob : float
        Highest-density interval mass. Default 0.95.

    Returns
    -------
    stats : Dict[str, Dict[str, float]]
        Per variable: mean, sd, hdi_low, hdi_high, ess_bulk, r_hat
        (r_hat is nan for a single chain).
    """
    idata = to_inference_data(results, var_names=var_names)
    summary_df = az.summary(idata, hdi_prob=hdi_prob)
    low_col, high_col = summary_df.columns[2], summary_df.columns[3]

    stats = {}
    for var_name in summary_df.index:
        row = summary_df.loc[var_name]
        stats[var_name] = {
            "mean": float(row["mean"]),
            "sd": float(row["sd"]),
            "hdi_low": float(row[low_col]),
            "hdi_high": float(row[high_col]),
            "ess_bulk": float(row["ess_bulk"]),
            "r_hat": float(row["r_hat"]),
        }
    return stats
