"""Static catalog of forecasting model descriptors."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Dict, List, Optional, Sequence

from .base import Complexity, ModelCategory, ModelDescriptor, ModelFamily
from .errors import UnknownModelError

logger = logging.getLogger(__name__)


def _descriptor(model_id, name, category, complexity, family, description, parameters, best_for) -> ModelDescriptor:
  return ModelDescriptor(
      id=model_id,
      name=name,
      category=ModelCategory(category),
      complexity=Complexity(complexity),
      family=ModelFamily(family),
      description=description,
      parameters=MappingProxyType(dict(parameters)),
      best_for=best_for,
  )


DEFAULT_MODELS: Sequence[ModelDescriptor] = (
    _descriptor(
        "linear-regression",
        "Linear Regression",
        "statistical",
        "beginner",
        "trend",
        "Simple linear trend analysis for data with clear upward or downward trends.",
        {"method": "least_squares", "confidence_interval": 95, "seasonality": False, "polynomial_degree": 1},
        "Clear trends, simple forecasting, historical sales data",
    ),
    _descriptor(
        "exponential-smoothing",
        "Exponential Smoothing",
        "statistical",
        "intermediate",
        "smoothing",
        "Weights recent observations more heavily, with trend and seasonal components.",
        {
            "alpha": 0.3,
            "beta": 0.1,
            "gamma": 0.1,
            "seasonal_periods": 12,
            "trend": "additive",
            "seasonal": "multiplicative",
        },
        "Seasonal data, inventory forecasting, demand planning",
    ),
    _descriptor(
        "moving-average",
        "Moving Average",
        "statistical",
        "beginner",
        "moving_average",
        "Smooths out fluctuations to identify the underlying trend.",
        {"window_size": 3, "weighted": False, "center": False},
        "Noisy data, short-term trends, basic smoothing",
    ),
    _descriptor(
        "polynomial-regression",
        "Polynomial Regression",
        "statistical",
        "intermediate",
        "polynomial",
        "Captures non-linear patterns using polynomial curves.",
        {"degree": 2, "regularization": "ridge", "alpha": 0.1},
        "Non-linear trends, curved patterns, growth acceleration",
    ),
    _descriptor(
        "neural-network",
        "AI Neural Network",
        "ai_powered",
        "advanced",
        "nonlinear_approx",
        "Layered non-linear activations capturing complex relationships.",
        {
            "layers": (64, 32, 16, 1),
            "epochs": 150,
            "learning_rate": 0.001,
            "dropout": 0.2,
            "activation": "relu",
            "optimizer": "adam",
        },
        "Complex patterns, large datasets, multi-variable forecasting",
    ),
    _descriptor(
        "arima",
        "ARIMA Model",
        "statistical",
        "advanced",
        "autoregressive",
        "AutoRegressive Integrated Moving Average for series with trends and seasonality.",
        {"p": 2, "d": 1, "q": 2, "seasonal": True, "seasonal_periods": 12, "information_criterion": "aic"},
        "Financial forecasting, economic indicators, weather prediction",
    ),
    _descriptor(
        "random-forest",
        "Random Forest",
        "machine_learning",
        "advanced",
        "ensemble",
        "Ensemble of decision trees for robust predictions.",
        {"n_estimators": 100, "max_depth": 10, "min_samples_split": 2, "random_state": 42, "simulated_trees": 5},
        "Mixed data types, feature interactions, robust predictions",
    ),
    _descriptor(
        "seasonal-decompose",
        "Seasonal Decompose",
        "statistical",
        "intermediate",
        "seasonal",
        "Separates trend, seasonal and residual components.",
        {"model": "additive", "period": 12, "two_sided": True, "extrapolate_trend": "freq"},
        "Seasonal patterns, component analysis, cyclical data",
    ),
)


class ModelRegistry:
  """Read-only catalog of model descriptors keyed by id."""

  def __init__(self, descriptors: Optional[Sequence[ModelDescriptor]] = None):
    self._models: Dict[str, ModelDescriptor] = {}
    if descriptors is not None:
      self.seed(descriptors)

  def __len__(self) -> int:
    return len(self._models)

  def __contains__(self, model_id: object) -> bool:
    return model_id in self._models

  def seed(self, descriptors: Sequence[ModelDescriptor] = DEFAULT_MODELS) -> int:
    """Populates an empty registry; a registry with entries is left untouched."""
    if self._models:
      logger.debug("Model registry already initialized with %d models", len(self._models))
      return 0
    names = set()
    for descriptor in descriptors:
      if descriptor.id in self._models or descriptor.name in names:
        raise ValueError(f"Duplicate model descriptor '{descriptor.id}' / '{descriptor.name}'.")
      names.add(descriptor.name)
      self._models[descriptor.id] = descriptor
    logger.info("Initialized %d default forecast models", len(self._models))
    return len(self._models)

  def list_models(self) -> List[ModelDescriptor]:
    return list(self._models.values())

  def get_model(self, model_id: str) -> ModelDescriptor:
    try:
      return self._models[model_id]
    except KeyError:
      raise UnknownModelError(f"Unknown model id '{model_id}'.") from None

  def find_by_name(self, name: str) -> ModelDescriptor:
    for descriptor in self._models.values():
      if descriptor.name == name:
        return descriptor
    raise UnknownModelError(f"Unknown model name '{name}'.")

  def by_category(self, category: str) -> List[ModelDescriptor]:
    wanted = ModelCategory(category)
    return [d for d in self._models.values() if d.category is wanted]


def default_registry() -> ModelRegistry:
  return ModelRegistry(DEFAULT_MODELS)
