"""
test_quest.py
-------------

Tests for the QUEST posterior (psystair.model.quest) and QuestHandler.
"""

import jax.numpy as jnp
import jax.random as jr
import pytest

from psystair.data.dataset import ExperimentData
from psystair.model.quest import (
    DEFAULT_DIM,
    quest_create,
    quest_mean,
    quest_mode,
    quest_quantile,
    quest_sd,
    quest_simulate,
    quest_update,
)
from psystair.trial_placement.quest import QuestConfig, QuestHandler, QuestMethod
from psystair.utils.errors import ConfigurationError, InvalidResponseError


class TestQuestPosterior:
    """Prior summaries match the Gaussian prior they were built from."""

    @pytest.fixture
    def prior(self):
        return quest_create(t_guess=0.5, t_guess_sd=0.2)

    def test_default_grid(self, prior):
        assert prior.dim == DEFAULT_DIM
        assert prior.x.shape == (DEFAULT_DIM + 1,)
        assert prior.s2.shape == (2, 2 * DEFAULT_DIM + 1)

    def test_grid_from_range(self):
        state = quest_create(t_guess=0.0, t_guess_sd=0.1, grain=0.01, search_range=1.0)
        assert state.dim == 100

    def test_pdf_is_normalized(self, prior):
        assert float(jnp.sum(prior.pdf)) == pytest.approx(1.0, abs=1e-5)

    def test_prior_summaries(self, prior):
        assert quest_mean(prior) == pytest.approx(0.5, abs=1e-5)
        assert quest_sd(prior) == pytest.approx(0.2, abs=1e-3)
        mode, p_mode = quest_mode(prior)
        assert mode == pytest.approx(0.5, abs=1e-6)
        assert p_mode == pytest.approx(float(jnp.max(prior.pdf)))
        assert quest_quantile(prior) == pytest.approx(0.5, abs=prior.grain)

    def test_threshold_is_at_p_threshold(self, prior):
        # p2 is sampled at intensity - threshold; index dim is offset 0
        assert float(prior.p2[prior.dim]) == pytest.approx(prior.p_threshold, abs=1e-2)

    def test_correct_response_lowers_estimate(self, prior):
        updated = quest_update(prior, intensity=0.5, response=1)
        assert quest_mean(updated) < quest_mean(prior)

    def test_incorrect_response_raises_estimate(self, prior):
        updated = quest_update(prior, intensity=0.5, response=0)
        assert quest_mean(updated) > quest_mean(prior)

    def test_update_returns_new_state(self, prior):
        updated = quest_update(prior, intensity=0.4, response=1)
        assert updated is not prior
        assert prior.n_updates == 0
        assert updated.n_updates == 1
        assert updated.intensities == (0.4,)
        assert updated.responses == (1,)

    def test_credible_interval_shrinks(self, prior):
        state = prior
        for response in [1, 1, 0, 1, 0, 1, 1, 0]:
            state = quest_update(state, quest_quantile(state), response)
        width_prior = quest_quantile(prior, 0.95) - quest_quantile(prior, 0.05)
        width_post = quest_quantile(state, 0.95) - quest_quantile(state, 0.05)
        assert width_post < width_prior

    def test_out_of_grid_intensity_warns(self, prior):
        with pytest.warns(UserWarning, match="outside the QUEST grid"):
            quest_update(prior, intensity=100.0, response=1)

    def test_invalid_response(self, prior):
        with pytest.raises(ValueError, match="0 or 1"):
            quest_update(prior, intensity=0.5, response=2)

    @pytest.mark.parametrize(
        "kwargs",
        [{"t_guess_sd": 0.0}, {"grain": -0.1}, {"p_threshold": 1.5}, {"search_range": 0.0}],
    )
    def test_invalid_parameters(self, kwargs):
        params = {"t_guess": 0.5, "t_guess_sd": 0.2, **kwargs}
        with pytest.raises(ValueError):
            quest_create(**params)

    def test_simulate_easy_trials_are_mostly_correct(self, prior):
        keys = jr.split(jr.PRNGKey(0), 50)
        responses = [quest_simulate(prior, t_test=2.0, t_actual=0.0, key=k) for k in keys]
        assert set(responses) <= {0, 1}
        assert sum(responses) >= 45


class TestQuestConfig:
    """Validation of psychometric parameters."""

    def test_defaults(self):
        config = QuestConfig()
        assert config.p_threshold == 0.82
        assert config.beta == 3.5
        assert config.method is QuestMethod.QUANTILE

    def test_method_from_string(self):
        assert QuestConfig(method="mean").method is QuestMethod.MEAN
        assert QuestConfig(method="MODE").method is QuestMethod.MODE

    @pytest.mark.parametrize("kwargs", [{"p_threshold": 0.0}, {"beta": -1}, {"gamma": 1.0}, {"grain": 0}])
    def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            QuestConfig(**kwargs)

    def test_unknown_method(self):
        with pytest.raises(ConfigurationError, match="unknown QuestMethod"):
            QuestConfig(method="median")


class TestQuestHandler:
    """QUEST as an AdaptiveProcedure."""

    @pytest.fixture
    def quest(self):
        return QuestHandler("contrast", start_val=0.5, start_val_sd=0.2, n_trials=5, name="q")

    def test_requires_a_stopping_rule(self):
        with pytest.raises(ConfigurationError, match="n_trials or stop_interval"):
            QuestHandler("contrast", start_val=0.5, start_val_sd=0.2)

    def test_invalid_n_trials(self):
        with pytest.raises(ConfigurationError, match="positive integer"):
            QuestHandler("contrast", start_val=0.5, start_val_sd=0.2, n_trials=0)

    def test_initial_value_is_prior_median(self, quest):
        assert quest.get_value() == pytest.approx(0.5, abs=0.01)
        assert quest.intensity == quest.get_value()

    def test_finishes_after_n_trials(self, quest):
        values = []
        for value in quest:
            values.append(value)
            quest.add_response(1)
        assert len(values) == 5
        assert quest.finished
        assert quest.n_completed == 5
        assert quest.intensities == values

    def test_stop_interval(self):
        quest = QuestHandler("contrast", start_val=0.5, start_val_sd=0.2, stop_interval=10.0)
        quest.add_response(0)
        assert quest.finished

    def test_value_override(self, quest):
        quest.add_response(1, value=0.9)
        assert quest.intensities == [0.9]
        assert quest.state.intensities == (0.9,)

    def test_values_are_clamped(self):
        quest = QuestHandler("contrast", start_val=0.5, start_val_sd=0.2, n_trials=10, max_val=0.55)
        for _ in range(5):
            quest.add_response(0)
        assert quest.get_value() == 0.55

    @pytest.mark.parametrize("response", [2, -1, 0.5, 1.0, True, None, "1"])
    def test_invalid_response(self, quest, response):
        with pytest.raises(InvalidResponseError, match="either 0 or 1"):
            quest.add_response(response)
        assert quest.n_completed == 0

    def test_response_sent_to_sink(self, experiment_data):
        quest = QuestHandler(
            "contrast", start_val=0.5, start_val_sd=0.2, n_trials=5, name="q", data_sink=experiment_data
        )
        quest.add_response(1)
        assert experiment_data.current_entry == {"q.response": 1}
        quest.add_response(0, notify=False)
        assert experiment_data.current_entry == {"q.response": 1}

    def test_posterior_summaries(self, quest):
        quest.add_response(1)
        low, high = quest.conf_interval()
        assert low < quest.quantile() < high
        assert quest.conf_interval(get_difference=True) == pytest.approx(high - low)
        assert quest.sd() > 0
        assert quest.mode() == pytest.approx(quest.mean(), abs=0.2)

    def test_method_mean(self):
        quest = QuestHandler(
            "contrast", start_val=0.5, start_val_sd=0.2, n_trials=5, config=QuestConfig(method="mean")
        )
        quest.add_response(1)
        assert quest.get_value() == pytest.approx(quest.mean())

    def test_simulate_does_not_record(self, rng):
        quest = QuestHandler("contrast", start_val=0.5, start_val_sd=0.2, n_trials=5, rng=rng)
        assert quest.simulate(0.4) in (0, 1)
        assert quest.n_completed == 0

    def test_attribute_names(self, quest):
        assert quest.attribute_names() == [
            "name",
            "varName",
            "nTrials",
            "startVal",
            "startValSd",
            "minVal",
            "maxVal",
            "pThreshold",
            "stopInterval",
            "beta",
            "delta",
            "gamma",
            "grain",
            "range",
            "method",
        ]
        assert quest.attribute("method") == "quantile"
        with pytest.raises(KeyError):
            quest.attribute("missing")


class TestFromCondition:
    """Building a QuestHandler from a condition mapping."""

    def test_fields_are_mapped(self):
        condition = {
            "label": "left",
            "startVal": 0.4,
            "startValSd": 0.1,
            "pThreshold": 0.75,
            "gamma": 0.25,
            "side": "L",
        }
        quest = QuestHandler.from_condition(condition, "contrast", n_trials=12)
        assert quest.name == "left"
        assert quest.var_name == "contrast"
        assert quest.n_trials == 12
        assert quest.config.p_threshold == 0.75
        assert quest.config.gamma == 0.25
        assert quest.attribute("side") == "L"
        assert quest.attribute_names()[-1] == "side"

    def test_condition_n_trials_wins(self):
        condition = {"label": "x", "startVal": 0.4, "startValSd": 0.1, "nTrials": 3}
        assert QuestHandler.from_condition(condition, "contrast", n_trials=12).n_trials == 3

    def test_empty_n_trials_falls_back(self):
        condition = {"label": "x", "startVal": 0.4, "startValSd": 0.1, "nTrials": None}
        assert QuestHandler.from_condition(condition, "contrast", n_trials=12).n_trials == 12

    def test_extra_info(self):
        quest = QuestHandler(
            "contrast", start_val=0.5, start_val_sd=0.2, n_trials=5, extra_info={"block": 1}
        )
        assert quest.attribute_names()[-1] == "extraInfo"
        assert quest.attribute("extraInfo") == {"block": 1}
