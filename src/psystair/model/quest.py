"""
quest.py
--------

QUEST: Bayesian adaptive threshold estimation (Watson & Pelli, 1983).

The posterior over the threshold is kept on a regular grid of offsets
``x`` around the initial guess ``t_guess``. After each trial the posterior
is multiplied by the likelihood of the observed response, read off a
Weibull psychometric function sampled on a grid twice as wide.

Design
------
- QuestState is immutable; ``quest_update`` returns a new state.
- All arrays are jax.numpy arrays; scalar summaries are returned as
  Python floats.

Psychometric function
---------------------
    p(x) = delta * gamma + (1 - delta) * (1 - (1 - gamma) * exp(-10 ** (beta * x)))

shifted along x so that p(0) = p_threshold, i.e. the threshold is the
intensity at which the observer is correct with probability p_threshold.

Examples
--------
>>> import jax.random as jr
>>> state = quest_create(t_guess=0.5, t_guess_sd=0.2)
>>> state = quest_update(state, intensity=0.5, response=1)
>>> quest_mean(state) < 0.5
True

References
----------
Watson, A. B., & Pelli, D. G. (1983). QUEST: A Bayesian adaptive
psychometric method. Perception & Psychophysics, 33(2), 113-120.
"""

from __future__ import annotations

import math
import warnings
from dataclasses import dataclass, replace

import jax
import jax.numpy as jnp
import jax.random as jr

DEFAULT_DIM = 500

# intensities are clipped to this magnitude before indexing the likelihood
_MAX_INTENSITY = 1e10


@dataclass(frozen=True)
class QuestState:
    """
    Posterior over the threshold plus the psychometric lookup tables.

    Attributes
    ----------
    t_guess, t_guess_sd : float
        Mean and standard deviation of the Gaussian prior.
    p_threshold, beta, delta, gamma : float
        Psychometric function parameters.
    grain : float
        Step of the posterior grid.
    dim : int
        Number of grid steps (the grid has dim + 1 points).
    quantile_order : float
        Default quantile used by ``quest_quantile``.
    i, x : jnp.ndarray, shape (dim + 1,)
        Grid indices and threshold offsets from t_guess.
    pdf : jnp.ndarray, shape (dim + 1,)
        Normalized posterior.
    x2, p2 : jnp.ndarray, shape (2 * dim + 1,)
        Psychometric function, sampled at intensity minus threshold.
    s2 : jnp.ndarray, shape (2, 2 * dim + 1)
        Likelihood of an incorrect (row 0) and correct (row 1) response,
        reversed so that it can be indexed by threshold offset.
    x_threshold : float
        Shift applied to the psychometric function.
    intensities, responses : tuple
        Trial history folded into ``pdf``.
    """

    t_guess: float
    t_guess_sd: float
    p_threshold: float
    beta: float
    delta: float
    gamma: float
    grain: float
    dim: int
    quantile_order: float
    i: jax.Array
    x: jax.Array
    pdf: jax.Array
    x2: jax.Array
    p2: jax.Array
    s2: jax.Array
    x_threshold: float
    intensities: tuple[float, ...] = ()
    responses: tuple[int, ...] = ()

    @property
    def n_updates(self) -> int:
        return len(self.responses)


def psychometric(x: jax.Array, beta: float, delta: float, gamma: float) -> jax.Array:
    """Weibull psychometric function with lapse rate delta and guess rate gamma."""
    return delta * gamma + (1 - delta) * (1 - (1 - gamma) * jnp.exp(-(10 ** (beta * x))))


def quest_create(
    t_guess: float,
    t_guess_sd: float,
    p_threshold: float = 0.82,
    beta: float = 3.5,
    delta: float = 0.01,
    gamma: float = 0.5,
    grain: float = 0.01,
    search_range: float | None = None,
    quantile_order: float = 0.5,
) -> QuestState:
    """
    Create a QUEST posterior with a Gaussian prior.

    Parameters
    ----------
    t_guess : float
        Prior threshold estimate.
    t_guess_sd : float
        Standard deviation of the prior (be generous).
    p_threshold : float, default=0.82
        Performance level defining the threshold.
    beta : float, default=3.5
        Steepness of the psychometric function.
    delta : float, default=0.01
        Fraction of trials on which the observer presses blindly.
    gamma : float, default=0.5
        Guess rate (0.5 for 2AFC).
    grain : float, default=0.01
        Quantization of the internal grid.
    search_range : float, optional
        Width of the grid of possible thresholds, centred on t_guess.
        Defaults to ``DEFAULT_DIM * grain``.
    quantile_order : float, default=0.5
        Default quantile for ``quest_quantile``.

    Returns
    -------
    QuestState

    Raises
    ------
    ValueError
        If a parameter is out of range or the psychometric function never
        crosses p_threshold.
    """
    if not t_guess_sd > 0:
        raise ValueError(f"t_guess_sd must be positive, got {t_guess_sd}")
    if not grain > 0:
        raise ValueError(f"grain must be positive, got {grain}")
    if not 0 < p_threshold < 1:
        raise ValueError(f"p_threshold must be in (0, 1), got {p_threshold}")
    if not 0 < quantile_order < 1:
        raise ValueError(f"quantile_order must be in (0, 1), got {quantile_order}")

    if search_range is None:
        dim = DEFAULT_DIM
    else:
        if not search_range > 0:
            raise ValueError(f"search_range must be positive, got {search_range}")
        dim = 2 * math.ceil(search_range / grain / 2)

    state = QuestState(
        t_guess=float(t_guess),
        t_guess_sd=float(t_guess_sd),
        p_threshold=float(p_threshold),
        beta=float(beta),
        delta=float(delta),
        gamma=float(gamma),
        grain=float(grain),
        dim=int(dim),
        quantile_order=float(quantile_order),
        i=jnp.zeros(0),
        x=jnp.zeros(0),
        pdf=jnp.zeros(0),
        x2=jnp.zeros(0),
        p2=jnp.zeros(0),
        s2=jnp.zeros((2, 0)),
        x_threshold=0.0,
    )
    return quest_recompute(state)


def quest_recompute(state: QuestState) -> QuestState:
    """
    Rebuild the lookup tables and the posterior from the prior and the history.

    Call this after changing a psychometric parameter with
    ``dataclasses.replace``.
    """
    half = state.dim // 2
    i = jnp.arange(-half, half + 1)
    x = i * state.grain
    pdf = jnp.exp(-0.5 * (x / state.t_guess_sd) ** 2)
    pdf = pdf / jnp.sum(pdf)

    i2 = jnp.arange(-state.dim, state.dim + 1)
    x2 = i2 * state.grain
    p2 = psychometric(x2, state.beta, state.delta, state.gamma)
    if not float(p2[0]) < state.p_threshold < float(p2[-1]):
        raise ValueError(
            f"psychometric function range [{float(p2[0]):.2f} {float(p2[-1]):.2f}] "
            f"omits p_threshold={state.p_threshold}"
        )

    # keep only strictly increasing points so that the inverse is well defined
    index = jnp.nonzero(jnp.diff(p2))[0]
    x_threshold = float(jnp.interp(state.p_threshold, p2[index], x2[index]))
    p2 = psychometric(x2 + x_threshold, state.beta, state.delta, state.gamma)
    s2 = jnp.stack([(1 - p2)[::-1], p2[::-1]])

    state = replace(state, i=i, x=x, pdf=pdf, x2=x2, p2=p2, s2=s2, x_threshold=x_threshold)
    for intensity, response in zip(state.intensities, state.responses):
        state = replace(state, pdf=_bayes_update(state, intensity, response))
    return state


def quest_update(state: QuestState, intensity: float, response: int) -> QuestState:
    """
    Fold one trial into the posterior.

    Parameters
    ----------
    state : QuestState
    intensity : float
        Intensity actually presented.
    response : int
        1 = correct / detected, 0 = incorrect / not detected.

    Returns
    -------
    QuestState
        New state; ``state`` is left untouched.
    """
    if response not in (0, 1):
        raise ValueError(f"response must be 0 or 1, got {response!r}")
    pdf = _bayes_update(state, intensity, int(response))
    return replace(
        state,
        pdf=pdf,
        intensities=state.intensities + (float(intensity),),
        responses=state.responses + (int(response),),
    )


def _bayes_update(state: QuestState, intensity: float, response: int) -> jax.Array:
    intensity = max(-_MAX_INTENSITY, min(_MAX_INTENSITY, float(intensity)))
    shift = _round_half_away((intensity - state.t_guess) / state.grain)
    ii = state.dim + state.i - shift

    n_points = state.s2.shape[1]
    if int(ii[0]) < 0 or int(ii[-1]) >= n_points:
        warnings.warn(
            f"intensity {intensity} is outside the QUEST grid around t_guess={state.t_guess}; "
            "the likelihood was clipped. Consider increasing search_range.",
            stacklevel=3,
        )
        ii = jnp.clip(ii, 0, n_points - 1)

    pdf = state.pdf * state.s2[response, ii]
    return pdf / jnp.sum(pdf)


def _round_half_away(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def quest_mean(state: QuestState) -> float:
    """Mean of the posterior threshold."""
    return state.t_guess + float(jnp.sum(state.pdf * state.x) / jnp.sum(state.pdf))


def quest_sd(state: QuestState) -> float:
    """Standard deviation of the posterior threshold."""
    p = jnp.sum(state.pdf)
    mean_x = jnp.sum(state.pdf * state.x) / p
    return float(jnp.sqrt(jnp.sum(state.pdf * state.x**2) / p - mean_x**2))


def quest_mode(state: QuestState) -> tuple[float, float]:
    """
    Mode of the posterior threshold.

    Returns
    -------
    mode : float
        Most probable threshold.
    p_mode : float
        Posterior probability at the mode.
    """
    index = int(jnp.argmax(state.pdf))
    return state.t_guess + float(state.x[index]), float(state.pdf[index])


def quest_quantile(state: QuestState, quantile_order: float | None = None) -> float:
    """
    Quantile of the posterior threshold.

    Parameters
    ----------
    state : QuestState
    quantile_order : float, optional
        Defaults to ``state.quantile_order`` (the median unless overridden).
        0.5 gives an efficient placement (King-Smith et al., 1994).

    Raises
    ------
    ValueError
        If the posterior is degenerate.
    """
    order = state.quantile_order if quantile_order is None else quantile_order
    cumulative = jnp.cumsum(state.pdf)
    total = float(cumulative[-1])
    if not math.isfinite(total):
        raise ValueError("the posterior pdf is not finite")
    if total == 0:
        raise ValueError("the posterior pdf is all zero")

    cumulative = jnp.concatenate([jnp.array([-1.0]), cumulative])
    index = jnp.nonzero(jnp.diff(cumulative))[0]
    if index.shape[0] < 2:
        raise ValueError(f"the posterior pdf has only {index.shape[0]} nonzero point(s)")
    return state.t_guess + float(jnp.interp(order * total, cumulative[index], state.x[index]))


def quest_simulate(state: QuestState, t_test: float, t_actual: float, key: jax.Array) -> int:
    """
    Simulate an observer with threshold ``t_actual`` tested at ``t_test``.

    Returns
    -------
    int
        1 if the simulated observer responds correctly, 0 otherwise.
    """
    t = jnp.clip(t_test - t_actual, state.x2[0], state.x2[-1])
    p_correct = jnp.interp(t, state.x2, state.p2)
    return int(p_correct > jr.uniform(key))
