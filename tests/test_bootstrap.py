"""
Tests for the parametric bootstrap loop.
"""

import numpy as np
import polars as pl
import pytest

import ctgranger.inference.bootstrap as bootstrap
from ctgranger.inference import (
    BootstrapSample,
    ReplicateOutcome,
    lr_statistic,
    replicate_rng,
    run_bootstrap,
)
from ctgranger.inference.estimator import FitResult
from ctgranger.model import ModelVariant
from ctgranger.model.simulate import draw_signals


class TestReplicateStreams:

    def test_stream_depends_only_on_seed_and_index(self):
        a = replicate_rng(123, 4).standard_normal(5)
        b = replicate_rng(123, 4).standard_normal(5)
        np.testing.assert_array_equal(a, b)

    def test_streams_differ_across_indices_and_seeds(self):
        base = replicate_rng(123, 0).standard_normal(5)
        assert not np.allclose(base, replicate_rng(123, 1).standard_normal(5))
        assert not np.allclose(base, replicate_rng(124, 0).standard_normal(5))

    def test_replicate_draws_ignore_processing_order(self, theta_null, example_times):
        forward = [draw_signals(theta_null, example_times, replicate_rng(9, i)).root for i in range(4)]
        backward = [draw_signals(theta_null, example_times, replicate_rng(9, i)).root for i in reversed(range(4))]
        for a, b in zip(forward, reversed(backward)):
            np.testing.assert_array_equal(a, b)


class TestLrStatistic:

    def test_twice_the_loglik_difference(self):
        assert lr_statistic(-10.0, -12.5) == pytest.approx(5.0)

    def test_negative_difference_clamped(self):
        assert lr_statistic(-12.5, -12.4) == 0.0


class TestBootstrapSample:

    def _sample(self):
        sample = BootstrapSample(requested=5)
        for i, stat in enumerate([0.5, None, 3.0, 1.0, None]):
            sample.append(ReplicateOutcome(index=i, statistic=stat, reason='ok' if stat is not None else 'null'))
        return sample

    def test_counts(self):
        sample = self._sample()
        assert sample.n_processed == 5
        assert sample.n_successful == 3
        assert sample.n_discarded == 2
        assert sample.success_fraction == pytest.approx(0.6)

    def test_p_value_uses_successful_replicates_only(self):
        sample = self._sample()
        assert sample.p_value(1.0) == pytest.approx(2 / 3)
        assert sample.p_value(10.0) == 0.0
        assert sample.p_value(0.0) == 1.0

    def test_p_value_nan_without_successes(self):
        sample = BootstrapSample(requested=2)
        sample.append(ReplicateOutcome(index=0, statistic=None, reason='null'))
        assert np.isnan(sample.p_value(1.0))

    def test_to_frame(self):
        df = self._sample().to_frame()
        assert isinstance(df, pl.DataFrame)
        assert df.columns == ['replicate', 'statistic', 'succeeded', 'reason']
        assert df['succeeded'].to_list() == [True, False, True, True, False]
        assert df['statistic'].null_count() == 2


class TestRunBootstrap:

    def test_outcomes_independent_of_h(self, theta_null, example_times, fast_config):
        short = run_bootstrap(theta_null, example_times, ModelVariant.STOR, 2, seed=5, config=fast_config)
        long = run_bootstrap(theta_null, example_times, ModelVariant.STOR, 4, seed=5, config=fast_config)

        assert [o.statistic for o in short.outcomes] == [o.statistic for o in long.outcomes[:2]]

    def test_statistics_non_negative(self, theta_null, example_times, fast_config):
        sample = run_bootstrap(theta_null, example_times, ModelVariant.TWODIR, 4, seed=1, config=fast_config)
        assert np.all(sample.statistics >= 0.0)

    def test_progress_called_once_per_replicate(self, monkeypatch, theta_null, example_times):
        monkeypatch.setattr(
            bootstrap, 'bootstrap_replicate',
            lambda i, *args, **kwargs: ReplicateOutcome(index=i, statistic=float(i)),
        )
        calls = []
        run_bootstrap(theta_null, example_times, ModelVariant.RTOS, 6, seed=0,
                      progress=lambda cur, tot: calls.append((cur, tot)))
        assert calls == [(i, 6) for i in range(1, 7)]

    def test_non_converged_replicates_discarded(self, monkeypatch, theta_null, example_times):
        def failing_fit(root, shoot, times, variant, theta0=None, config=None, extra_starts=()):
            return FitResult(
                variant=ModelVariant.parse(variant), theta=theta0, loglik=-1.0,
                converged=False, status='forced failure',
            )

        monkeypatch.setattr(bootstrap, 'fit_model', failing_fit)
        sample = run_bootstrap(theta_null, example_times, ModelVariant.STOR, 3, seed=0)

        assert sample.n_processed == 3
        assert sample.n_successful == 0
        assert all(o.reason == f"replicate {o.index} null" for o in sample.outcomes)

    def test_cancellation_between_replicates(self, monkeypatch, theta_null, example_times):
        monkeypatch.setattr(
            bootstrap, 'bootstrap_replicate',
            lambda i, *args, **kwargs: ReplicateOutcome(index=i, statistic=1.0),
        )
        processed = []

        def stop_after_three():
            return len(processed) >= 3

        sample = run_bootstrap(
            theta_null, example_times, ModelVariant.STOR, 10, seed=0,
            progress=lambda cur, tot: processed.append(cur),
            should_stop=stop_after_three,
        )
        assert sample.cancelled
        assert sample.n_processed == 3
