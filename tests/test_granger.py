"""
Tests for the bootstrap Granger test.

Aggregate statistical checks (calibration, power, the full H=100 example)
are marked slow; run them with `pytest -m slow`.
"""

import warnings

import numpy as np
import pytest
from scipy import stats

import ctgranger.inference.granger as granger
from ctgranger.exceptions import ConvergenceFailure, LowReliabilityWarning, ValidationError
from ctgranger.inference import BootstrapSample, FitResult, ReplicateOutcome, granger_test
from ctgranger.model import ModelVariant, ParameterVector, sim_proc


@pytest.fixture
def stor_sample(theta_stor, example_times):
    return sim_proc(theta_stor, example_times, random_state=223)


# ─────────────────────────────────────────────────────────────────────
# Input validation
# ─────────────────────────────────────────────────────────────────────

class TestValidation:

    def test_length_mismatch(self, stor_sample, example_times):
        with pytest.raises(ValidationError) as exc:
            granger_test(stor_sample.root[:-1], stor_sample.shoot, example_times, H=1)
        assert exc.value.field == 'length'

    def test_too_short(self):
        t = np.arange(6, dtype=float)
        with pytest.raises(ValidationError, match='at least'):
            granger_test(np.zeros(6), np.zeros(6), t, H=1)

    @pytest.mark.parametrize("alternative", ['null', 'both', '', None])
    def test_unknown_alternative(self, stor_sample, example_times, alternative):
        with pytest.raises(ValidationError) as exc:
            granger_test(stor_sample.root, stor_sample.shoot, example_times, alternative=alternative, H=1)
        assert exc.value.field == 'alternative'

    @pytest.mark.parametrize("H", [0, -3, 2.5, True])
    def test_bad_replicate_count(self, stor_sample, example_times, H):
        with pytest.raises(ValidationError) as exc:
            granger_test(stor_sample.root, stor_sample.shoot, example_times, H=H)
        assert exc.value.field == 'H'

    @pytest.mark.parametrize("seed", [-1, 1.5, None])
    def test_bad_seed_rejected_before_fitting(self, monkeypatch, stor_sample, example_times, seed):
        def unexpected_fit(*args, **kwargs):
            raise AssertionError("fit_model called before the seed was checked")

        monkeypatch.setattr(granger, 'fit_model', unexpected_fit)
        with pytest.raises(ValidationError) as exc:
            granger_test(stor_sample.root, stor_sample.shoot, example_times, H=2, seed=seed)
        assert exc.value.field == 'seed'

    def test_non_monotonic_times(self, stor_sample, example_times):
        times = example_times.copy()
        times[[3, 4]] = times[[4, 3]]
        with pytest.raises(ValidationError) as exc:
            granger_test(stor_sample.root, stor_sample.shoot, times, H=1)
        assert exc.value.field == 'times'

    @pytest.mark.parametrize("theta", [
        [1, 1, 1, 1, 1.0, 0, 0, 0],
        [1, 1, 1, 1, 0, -1.0, 0, 0],
        [0, 1, 1, 1, 0, 0, 0, 0],
        [1, 1, 1, 0, 0, 0, 0, 0],
    ])
    def test_invalid_starting_theta(self, stor_sample, example_times, theta):
        with pytest.raises(ValidationError):
            granger_test(stor_sample.root, stor_sample.shoot, example_times, theta=theta, H=1)


# ─────────────────────────────────────────────────────────────────────
# Orchestration
# ─────────────────────────────────────────────────────────────────────

class TestGrangerTest:

    def test_small_run_returns_consistent_result(self, stor_sample, example_times, fast_config):
        result = granger_test(
            stor_sample.root, stor_sample.shoot, example_times,
            alternative='stor', H=5, showprogress=False, config=fast_config,
        )

        assert result.alternative is ModelVariant.STOR
        assert np.isfinite(result.statistic)
        assert result.statistic >= 0.0
        assert result.df == 2
        assert result.null_fit.n_free == 4
        assert result.alt_fit.n_free == 6
        assert result.n_replicates == 5
        assert result.successful_replicates == result.bootstrap.n_successful
        if result.successful_replicates:
            assert 0.0 <= result.p_value <= 1.0
            assert np.all(result.bootstrap.statistics >= 0.0)

    def test_reproducible_for_fixed_seed(self, stor_sample, example_times, fast_config):
        kwargs = dict(alternative='twodir', H=3, seed=77, showprogress=False, config=fast_config)
        a = granger_test(stor_sample.root, stor_sample.shoot, example_times, **kwargs)
        b = granger_test(stor_sample.root, stor_sample.shoot, example_times, **kwargs)

        assert a.statistic == b.statistic
        assert [o.statistic for o in a.bootstrap.outcomes] == [o.statistic for o in b.bootstrap.outcomes]

    def test_progress_sink_sees_every_replicate(self, stor_sample, example_times, fast_config):
        calls = []
        granger_test(
            stor_sample.root, stor_sample.shoot, example_times,
            alternative='rtos', H=3, showprogress=False, config=fast_config,
            progress=lambda cur, tot: calls.append((cur, tot)),
        )
        assert calls == [(1, 3), (2, 3), (3, 3)]

    def test_result_serialises(self, stor_sample, example_times, fast_config):
        result = granger_test(
            stor_sample.root, stor_sample.shoot, example_times,
            alternative='stor', H=2, showprogress=False, config=fast_config,
        )
        payload = result.to_dict()

        assert payload['alternative'] == 'stor'
        assert payload['null_fit']['n_free'] == 4
        assert set(payload['alt_fit']['theta']) >= {'psi_root', 'gamma_root'}
        assert 'LR statistic' in result.summary()

    def test_observed_fit_failure_is_fatal(self, monkeypatch, stor_sample, example_times):
        def failing_fit(root, shoot, times, variant, theta0=None, config=None, extra_starts=()):
            return FitResult(
                variant=ModelVariant.parse(variant), theta=ParameterVector(1, 1, 1, 1), loglik=-5.0,
                converged=False, status='forced failure',
            )

        monkeypatch.setattr(granger, 'fit_model', failing_fit)
        with pytest.raises(ConvergenceFailure) as exc:
            granger_test(stor_sample.root, stor_sample.shoot, example_times, H=1, showprogress=False)
        assert exc.value.label == 'observed-data null'

    def test_low_reliability_flagged(self, monkeypatch, stor_sample, example_times, fast_config):
        def mostly_failing(null_theta, times, alternative, n_replicates, seed, **kwargs):
            sample = BootstrapSample(requested=n_replicates)
            for i in range(n_replicates):
                stat = 0.1 if i == 0 else None
                sample.append(ReplicateOutcome(index=i, statistic=stat))
            return sample

        monkeypatch.setattr(granger, 'run_bootstrap', mostly_failing)
        with pytest.warns(LowReliabilityWarning):
            result = granger_test(
                stor_sample.root, stor_sample.shoot, example_times,
                alternative='stor', H=4, showprogress=False, config=fast_config,
            )

        assert result.low_reliability
        assert result.successful_replicates == 1
        assert 0.0 <= result.p_value <= 1.0

    def test_no_warning_when_replicates_converge(self, monkeypatch, stor_sample, example_times, fast_config):
        def all_ok(null_theta, times, alternative, n_replicates, seed, **kwargs):
            sample = BootstrapSample(requested=n_replicates)
            for i in range(n_replicates):
                sample.append(ReplicateOutcome(index=i, statistic=float(i)))
            return sample

        monkeypatch.setattr(granger, 'run_bootstrap', all_ok)
        with warnings.catch_warnings():
            warnings.simplefilter('error', LowReliabilityWarning)
            result = granger_test(
                stor_sample.root, stor_sample.shoot, example_times,
                alternative='stor', H=4, showprogress=False, config=fast_config,
            )
        assert not result.low_reliability


# ─────────────────────────────────────────────────────────────────────
# Statistical properties (slow)
# ─────────────────────────────────────────────────────────────────────

@pytest.mark.slow
class TestStatisticalProperties:

    def test_documented_example(self, theta_stor, example_times):
        """Seed 223 on the documented grid, run with the canonical-order stand-in for the example theta."""
        sim = sim_proc(theta_stor, example_times, random_state=223)
        result = granger_test(sim.root, sim.shoot, example_times, alternative='stor',
                              H=100, showprogress=False)

        assert np.isfinite(result.statistic)
        assert 0.0 <= result.p_value <= 1.0

    def test_power_when_shoot_drives_root(self, theta_stor, example_times, fast_config):
        rejections = 0
        n_datasets = 10
        for k in range(n_datasets):
            sim = sim_proc(theta_stor, example_times, random_state=1000 + k)
            result = granger_test(sim.root, sim.shoot, example_times, alternative='stor',
                                  H=100, seed=k, showprogress=False, config=fast_config)
            rejections += result.reject(0.05)
        assert rejections >= 6

    def test_null_calibration(self, theta_null, example_times, fast_config):
        p_values = []
        for k in range(40):
            sim = sim_proc(theta_null, example_times, random_state=2000 + k)
            result = granger_test(sim.root, sim.shoot, example_times, alternative='twodir',
                                  H=19, seed=k, showprogress=False, config=fast_config)
            if np.isfinite(result.p_value):
                p_values.append(result.p_value)

        p_values = np.array(p_values)
        assert len(p_values) >= 30
        assert 0.3 <= p_values.mean() <= 0.7
        assert stats.kstest(p_values, 'uniform').pvalue > 0.001
