"""Tests for the compatibility scorer."""

import pytest

from forecasting.config import ScoringConfig, TrendRule, config_from_mapping
from forecasting.scoring import is_recommended, rank_models, score

from conftest import monthly_series


class TestScore:

  @pytest.mark.unit
  def test_short_series_gets_default(self, registry):
    short = monthly_series([10.0, 500.0])
    for model in registry.list_models():
      assert score(model, short) == 70

  @pytest.mark.unit
  @pytest.mark.parametrize(
      "model_id,expected",
      [
          ("linear-regression", 80),
          ("moving-average", 95),
          ("exponential-smoothing", 80),
          ("arima", 60),
          ("random-forest", 65),
          ("neural-network", 60),
          ("polynomial-regression", 65),
          ("seasonal-decompose", 65),
      ],
  )
  def test_constant_series_scores(self, registry, constant_series, model_id, expected):
    assert score(registry.get_model(model_id), constant_series) == expected

  @pytest.mark.unit
  def test_trending_series_scores(self, registry, linear_series):
    # trend strength 48%, volatility ~22%
    assert score(registry.get_model("linear-regression"), linear_series) == 80
    # twelve points is not enough history for the autoregressive bonus
    assert score(registry.get_model("arima"), linear_series) == 70

  @pytest.mark.unit
  def test_seasonal_bonus_depends_on_series_type(self, registry):
    long_series = monthly_series([100.0 + (i % 12) for i in range(30)])
    seasonal = registry.get_model("seasonal-decompose")
    assert score(seasonal, long_series, "sales") == 95
    assert score(seasonal, long_series, "revenue") == 95
    assert score(seasonal, long_series, "traffic") == 80

  @pytest.mark.unit
  def test_scores_are_clamped(self, registry, constant_series):
    moving_average = registry.get_model("moving-average")
    assert score(moving_average, constant_series, config=ScoringConfig(base_score=90)) == 95
    arima = registry.get_model("arima")
    assert score(arima, constant_series, config=ScoringConfig(base_score=20)) == 40

  @pytest.mark.unit
  def test_every_score_within_bounds(self, registry, linear_series, constant_series):
    volatile = monthly_series([5.0, 500.0, 3.0, 800.0, 1.0, 650.0])
    for series in (linear_series, constant_series, volatile):
      for model in registry.list_models():
        assert 40 <= score(model, series) <= 95


class TestRanking:

  @pytest.mark.unit
  def test_recommended_threshold(self):
    assert is_recommended(85)
    assert not is_recommended(84)

  @pytest.mark.unit
  def test_rank_orders_best_first(self, registry, constant_series):
    ranked = rank_models(registry.list_models(), constant_series)
    assert ranked[0].model.id == "moving-average"
    assert ranked[0].recommended
    assert [r.score for r in ranked] == sorted((r.score for r in ranked), reverse=True)
    assert len(ranked) == len(registry)

  @pytest.mark.unit
  def test_ties_keep_catalog_order(self, registry):
    short = monthly_series([1.0, 2.0])
    ranked = rank_models(registry.list_models(), short)
    assert [r.model.id for r in ranked] == [m.id for m in registry.list_models()]


class TestScoringOverrides:

  @pytest.mark.unit
  def test_family_threshold_override_changes_score(self, registry, linear_series):
    arima = registry.get_model("arima")
    assert score(arima, linear_series) == 70
    config = config_from_mapping({"scoring": {"autoregressive": {"long_history_points": 10}}}).scoring
    assert score(arima, linear_series, config=config) == 95

  @pytest.mark.unit
  def test_seasonal_series_types_are_configurable(self, registry):
    long_series = monthly_series([100.0 + (i % 12) for i in range(30)])
    seasonal = registry.get_model("seasonal-decompose")
    config = config_from_mapping({"scoring": {"seasonal": {"series_types": ["traffic"]}}}).scoring
    assert score(seasonal, long_series, "traffic", config=config) == 95
    assert score(seasonal, long_series, "sales", config=config) == 80

  @pytest.mark.unit
  def test_bonus_override(self, registry, constant_series):
    linear = registry.get_model("linear-regression")
    assert score(linear, constant_series, config=ScoringConfig(trend=TrendRule(calm_bonus=0))) == 70
