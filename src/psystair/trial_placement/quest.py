"""
quest.py
--------

QUEST staircase: Bayesian estimation of a psychophysical threshold.

Each trial is placed at the current posterior estimate (quantile, mean or
mode, see QuestMethod); the posterior is updated with the response, and the
procedure stops after ``n_trials`` responses or once the 5%-95% credible
interval is narrower than ``stop_interval``.

The posterior math lives in ``psystair.model.quest``; this module wraps it
in the AdaptiveProcedure interface.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from psystair.model.quest import (
    QuestState,
    quest_create,
    quest_mean,
    quest_mode,
    quest_quantile,
    quest_sd,
    quest_simulate,
    quest_update,
)
from psystair.trial_placement.base import AdaptiveProcedure
from psystair.utils.errors import ConfigurationError, coerce_option
from psystair.utils.rng import RandomSequenceProvider, as_provider

logger = logging.getLogger(__name__)


class QuestMethod(str, Enum):
    """Posterior summary used to place the next trial."""

    QUANTILE = "quantile"
    MEAN = "mean"
    MODE = "mode"


@dataclass(frozen=True)
class QuestConfig:
    """
    Psychometric and grid parameters of a QUEST procedure.

    Attributes
    ----------
    p_threshold : float
        Performance level defining the threshold.
    beta : float
        Steepness of the Weibull psychometric function.
    delta : float
        Lapse rate.
    gamma : float
        Guess rate (0.5 for 2AFC).
    grain : float
        Step of the posterior grid.
    search_range : float | None
        Width of the posterior grid (None: 500 grid steps).
    method : QuestMethod
        Posterior summary used to place trials.

    Examples
    --------
    >>> config = QuestConfig(gamma=0.25, method="mean")  # 4AFC
    """

    p_threshold: float = 0.82
    beta: float = 3.5
    delta: float = 0.01
    gamma: float = 0.5
    grain: float = 0.01
    search_range: float | None = None
    method: QuestMethod = QuestMethod.QUANTILE

    def __post_init__(self):
        """Validate configuration."""
        if not 0 < self.p_threshold < 1:
            raise ValueError(f"p_threshold must be in (0, 1), got {self.p_threshold}")
        if self.beta <= 0:
            raise ValueError(f"beta must be positive, got {self.beta}")
        if not 0 <= self.delta < 1:
            raise ValueError(f"delta must be in [0, 1), got {self.delta}")
        if not 0 <= self.gamma < 1:
            raise ValueError(f"gamma must be in [0, 1), got {self.gamma}")
        if self.grain <= 0:
            raise ValueError(f"grain must be positive, got {self.grain}")
        if self.search_range is not None and self.search_range <= 0:
            raise ValueError(f"search_range must be positive, got {self.search_range}")
        object.__setattr__(
            self,
            "method",
            coerce_option(
                QuestMethod,
                self.method,
                origin="QuestConfig",
                context="when validating the QUEST configuration",
            ),
        )


# condition field -> QuestHandler keyword
CONDITION_FIELDS = {
    "startVal": "start_val",
    "startValSd": "start_val_sd",
    "minVal": "min_val",
    "maxVal": "max_val",
    "nTrials": "n_trials",
    "stopInterval": "stop_interval",
}
CONFIG_FIELDS = {
    "pThreshold": "p_threshold",
    "beta": "beta",
    "delta": "delta",
    "gamma": "gamma",
    "grain": "grain",
    "range": "search_range",
    "method": "method",
}


class QuestHandler(AdaptiveProcedure):
    """
    QUEST adaptive procedure.

    Parameters
    ----------
    var_name : str
        Name of the manipulated variable.
    start_val : float
        Prior threshold estimate.
    start_val_sd : float
        Standard deviation of the prior.
    n_trials : int, optional
        Maximum number of trials.
    stop_interval : float, optional
        Stop once the 5%-95% credible interval is narrower than this.
        At least one of n_trials / stop_interval is required.
    min_val, max_val : float, optional
        Limits applied to the proposed intensity.
    config : QuestConfig, optional
        Psychometric and grid parameters.
    name : str, default="quest"
    extra_info : dict, optional
    data_sink : DataSink, optional
    rng : RandomSequenceProvider, optional
        Generator used by ``simulate``.
    extra_attributes : dict, optional
        Additional named values exported with every trial.

    Examples
    --------
    >>> quest = QuestHandler("contrast", start_val=0.5, start_val_sd=0.2, n_trials=20)
    >>> for contrast in quest:  # doctest: +SKIP
    ...     quest.add_response(present(contrast))
    >>> quest.mean()  # doctest: +SKIP
    """

    def __init__(
        self,
        var_name: str,
        start_val: float,
        start_val_sd: float,
        *,
        n_trials: int | None = None,
        stop_interval: float | None = None,
        min_val: float | None = None,
        max_val: float | None = None,
        config: QuestConfig | None = None,
        name: str = "quest",
        extra_info: Mapping[str, Any] | None = None,
        data_sink: Any = None,
        rng: RandomSequenceProvider | None = None,
        extra_attributes: Mapping[str, Any] | None = None,
    ) -> None:
        if n_trials is None and stop_interval is None:
            raise ConfigurationError(
                origin="QuestHandler.__init__",
                context="when setting up the QUEST procedure",
                error="either n_trials or stop_interval must be given",
            )
        if n_trials is not None and (isinstance(n_trials, bool) or not isinstance(n_trials, int) or n_trials < 1):
            raise ConfigurationError(
                origin="QuestHandler.__init__",
                context="when setting up the QUEST procedure",
                error=f"n_trials must be a positive integer, got {n_trials!r}",
            )

        super().__init__(
            name=name,
            var_name=var_name,
            n_trials=n_trials,
            extra_info=extra_info,
            data_sink=data_sink,
        )
        self.config = config or QuestConfig()
        self.start_val = float(start_val)
        self.start_val_sd = float(start_val_sd)
        self.min_val = min_val
        self.max_val = max_val
        self.stop_interval = stop_interval
        self._rng = rng

        self._add_attribute("startVal", self.start_val)
        self._add_attribute("startValSd", self.start_val_sd)
        self._add_attribute("minVal", min_val)
        self._add_attribute("maxVal", max_val)
        self._add_attribute("pThreshold", self.config.p_threshold)
        self._add_attribute("stopInterval", stop_interval)
        self._add_attribute("beta", self.config.beta)
        self._add_attribute("delta", self.config.delta)
        self._add_attribute("gamma", self.config.gamma)
        self._add_attribute("grain", self.config.grain)
        self._add_attribute("range", self.config.search_range)
        self._add_attribute("method", self.config.method.value)
        for key, value in (extra_attributes or {}).items():
            self._add_attribute(key, value)

        self.state: QuestState = quest_create(
            t_guess=self.start_val,
            t_guess_sd=self.start_val_sd,
            p_threshold=self.config.p_threshold,
            beta=self.config.beta,
            delta=self.config.delta,
            gamma=self.config.gamma,
            grain=self.config.grain,
            search_range=self.config.search_range,
        )
        self._quest_value = self._estimate_value()

    @classmethod
    def from_condition(
        cls,
        condition: Mapping[str, Any],
        var_name: str,
        n_trials: int | None = None,
        **kwargs: Any,
    ) -> QuestHandler:
        """
        Build a QuestHandler from a condition mapping.

        ``label`` becomes the name, ``startVal`` / ``startValSd`` / ...
        become the matching keywords, and ``nTrials`` in the condition
        overrides ``n_trials``. Unrecognised fields are kept as extra
        attributes.
        """
        handler_kwargs: dict[str, Any] = {}
        config_kwargs: dict[str, Any] = {}
        extra_attributes: dict[str, Any] = {}
        for key, value in condition.items():
            if key == "label":
                continue
            if key in CONDITION_FIELDS:
                handler_kwargs[CONDITION_FIELDS[key]] = value
            elif key in CONFIG_FIELDS:
                config_kwargs[CONFIG_FIELDS[key]] = value
            else:
                extra_attributes[key] = value

        if handler_kwargs.get("n_trials") is None:
            handler_kwargs["n_trials"] = n_trials

        return cls(
            var_name,
            name=str(condition["label"]),
            config=QuestConfig(**config_kwargs),
            extra_attributes=extra_attributes,
            **handler_kwargs,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # AdaptiveProcedure interface
    # ------------------------------------------------------------------

    def get_value(self) -> float:
        return self._quest_value

    def _update(self, response: int, intensity: float) -> None:
        self.state = quest_update(self.state, intensity, response)
        self._quest_value = self._estimate_value()

        if self.n_trials is not None and self.n_completed >= self.n_trials:
            self.finished = True
        elif self.stop_interval is not None and self.conf_interval(get_difference=True) < self.stop_interval:
            self.finished = True

        if self.finished:
            logger.debug("%s: finished after %d trials", self.name, self.n_completed)

    def _estimate_value(self) -> float:
        method = self.config.method
        if method is QuestMethod.QUANTILE:
            value = quest_quantile(self.state)
        elif method is QuestMethod.MEAN:
            value = quest_mean(self.state)
        else:
            value, _ = quest_mode(self.state)

        if self.min_val is not None:
            value = max(self.min_val, value)
        if self.max_val is not None:
            value = min(self.max_val, value)

        logger.debug("%s: estimated value for %s: %s", self.name, self.var_name, value)
        return value

    # ------------------------------------------------------------------
    # Posterior summaries
    # ------------------------------------------------------------------

    def mean(self) -> float:
        return quest_mean(self.state)

    def sd(self) -> float:
        return quest_sd(self.state)

    def mode(self) -> float:
        mode, _ = quest_mode(self.state)
        return mode

    def quantile(self, quantile_order: float | None = None) -> float:
        return quest_quantile(self.state, quantile_order)

    def conf_interval(self, get_difference: bool = False) -> tuple[float, float] | float:
        """
        Estimate of the 5%-95% credible interval.

        Parameters
        ----------
        get_difference : bool, default=False
            Return the width of the interval instead of its bounds.
        """
        interval = (quest_quantile(self.state, 0.05), quest_quantile(self.state, 0.95))
        if get_difference:
            return abs(interval[1] - interval[0])
        return interval

    def simulate(self, true_value: float) -> int:
        """
        Simulate the response of an observer whose threshold is ``true_value``.

        The response is returned, not recorded.
        """
        self._rng = as_provider(self._rng)
        response = quest_simulate(self.state, self.get_value(), true_value, self._rng.key())
        logger.debug("%s: simulated response: %d", self.name, response)
        return response
