"""Tests for the model registry."""

import pytest

from forecasting.base import ModelCategory, ModelFamily
from forecasting.errors import UnknownModelError
from forecasting.registry import DEFAULT_MODELS, ModelRegistry


class TestModelRegistry:

  @pytest.mark.unit
  def test_seed_catalog_spans_all_categories(self, registry):
    categories = {m.category for m in registry.list_models()}
    assert categories == set(ModelCategory)
    assert len(registry) >= 6

  @pytest.mark.unit
  def test_seeding_twice_is_a_no_op(self):
    registry = ModelRegistry()
    assert registry.seed() == len(DEFAULT_MODELS)
    before = registry.list_models()
    assert registry.seed() == 0
    assert registry.list_models() == before

  @pytest.mark.unit
  def test_names_and_ids_are_unique(self, registry):
    models = registry.list_models()
    assert len({m.id for m in models}) == len(models)
    assert len({m.name for m in models}) == len(models)

  @pytest.mark.unit
  def test_get_model_and_find_by_name(self, registry):
    model = registry.get_model("moving-average")
    assert model.name == "Moving Average"
    assert model.family is ModelFamily.MOVING_AVERAGE
    assert model.param("window_size") == 3
    assert registry.find_by_name("ARIMA Model").id == "arima"

  @pytest.mark.unit
  def test_unknown_model_raises(self, registry):
    with pytest.raises(UnknownModelError):
      registry.get_model("does-not-exist")
    with pytest.raises(KeyError):
      registry.find_by_name("Nope")

  @pytest.mark.unit
  def test_by_category(self, registry):
    ai = registry.by_category("ai_powered")
    assert [m.name for m in ai] == ["AI Neural Network"]

  @pytest.mark.unit
  def test_descriptors_are_read_only(self, registry):
    model = registry.get_model("linear-regression")
    with pytest.raises(Exception):
      model.name = "Changed"
    with pytest.raises(TypeError):
      model.parameters["method"] = "other"
