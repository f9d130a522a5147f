"""
Algorithm configuration: weights, classification gates, prediction targets and
factor thresholds for one model mode.

There are two independent configs, one per ``ModelMode``. They are never merged;
``default_algorithm_config(mode)`` returns the documented defaults for a mode and
``crypto_detector.config.build_algorithm_config`` layers overrides on top.

Structural types are enforced by pydantic. Cross-field invariants (weight sums,
threshold orderings) are NOT raised here. ``validate_algorithm_config`` collects
every violation as a human-readable message so an editor can show them all at
once.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from crypto_detector.taxonomy.classification import Classification, ModelMode

META_WEIGHT_TOLERANCE = 0.01
GROUP_WEIGHT_TOLERANCE = 0.05
MAGNITUDE_TOLERANCE_RANGE = (1.0, 50.0)


# ── Sub-configs ───────────────────────────────────────────────────────────────


class MetaWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    potential: float = 0.60
    resistance: float = 0.40


class PotentialWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    atl_proximity: float = 0.25
    volume_surge: float = 0.20
    social_momentum: float = 0.25
    news_sentiment: float = 0.15
    rebound_recency: float = 0.15


class ResistanceWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    leverage_ratio: float = 0.30
    market_cap_size: float = 0.30
    volatility_noise: float = 0.20
    fear_overlap: float = 0.20


class ClassificationConfig(BaseModel):
    """Classification gates.

    Attributes:
        invertible_min_boost: BoostPower floor for INVERTIBLE.
        apalancado_min_boost: BoostPower floor for APALANCADO.
        invertible_max_market_cap: Market-cap ceiling for INVERTIBLE (0 = none).
        invertible_min_atl_prox: Minimum ATL-proximity score for INVERTIBLE.
        near_ath_atl_prox: ATL-proximity score at or below which an APALANCADO
            reason warns that price sits near its all-time high.
    """

    model_config = ConfigDict(frozen=True)

    invertible_min_boost: float = 0.68
    apalancado_min_boost: float = 0.42
    invertible_max_market_cap: float = 2_000_000_000.0
    invertible_min_atl_prox: float = 0.65
    near_ath_atl_prox: float = 0.35


class PredictionConfig(BaseModel):
    """Canonical 12h targets (percent) and validation tolerance."""

    model_config = ConfigDict(frozen=True)

    invertible_target: float = 15.0
    apalancado_target: float = 8.0
    magnitude_tolerance: float = 7.0

    def target_for(self, classification: Classification) -> float:
        if classification is Classification.INVERTIBLE:
            return self.invertible_target
        if classification is Classification.APALANCADO:
            return self.apalancado_target
        return 0.0


class ThresholdsConfig(BaseModel):
    """Tier cut-offs read by individual factor functions."""

    model_config = ConfigDict(frozen=True)

    # socialMomentum tiers
    news_count_high: int = 5
    news_count_low: int = 2
    reddit_posts_high: int = 10
    reddit_posts_low: int = 3
    search_growth_high: float = 50.0
    search_growth_low: float = 20.0
    search_growth_negative: float = -20.0

    # reboundRecency rules (percent changes)
    rebound_deep_drop_7d: float = -15.0
    rebound_strong_bounce_24h: float = 3.0
    rebound_drop_7d: float = -8.0
    rebound_bounce_24h: float = 2.0
    rebound_dip_7d: float = -5.0
    rebound_stabilise_24h: float = -1.0


class AlgorithmConfig(BaseModel):
    """Complete scoring configuration for one mode.

    Constructed once (via defaults or the config loader) and passed explicitly
    into every factor and aggregation function.
    """

    model_config = ConfigDict(frozen=True)

    version: str = "v2"
    model_type: ModelMode = ModelMode.NORMAL
    meta_weights: MetaWeights = MetaWeights()
    potential_weights: PotentialWeights = PotentialWeights()
    resistance_weights: ResistanceWeights = ResistanceWeights()
    classification: ClassificationConfig = ClassificationConfig()
    prediction: PredictionConfig = PredictionConfig()
    thresholds: ThresholdsConfig = ThresholdsConfig()


# ── Defaults ──────────────────────────────────────────────────────────────────


def default_algorithm_config(mode: ModelMode | str = ModelMode.NORMAL) -> AlgorithmConfig:
    """Return the documented default configuration for ``mode``.

    Speculative mode leans harder on potential and social signals, lowers the
    classification gates, targets micro caps, and raises prediction targets.
    """
    mode = ModelMode(mode)
    if mode is ModelMode.NORMAL:
        return AlgorithmConfig(model_type=ModelMode.NORMAL)

    return AlgorithmConfig(
        model_type=ModelMode.SPECULATIVE,
        meta_weights=MetaWeights(potential=0.70, resistance=0.30),
        potential_weights=PotentialWeights(
            atl_proximity=0.20,
            volume_surge=0.20,
            social_momentum=0.30,
            news_sentiment=0.15,
            rebound_recency=0.15,
        ),
        resistance_weights=ResistanceWeights(
            leverage_ratio=0.25,
            market_cap_size=0.25,
            volatility_noise=0.25,
            fear_overlap=0.25,
        ),
        classification=ClassificationConfig(
            invertible_min_boost=0.60,
            apalancado_min_boost=0.35,
            invertible_max_market_cap=200_000_000.0,
            invertible_min_atl_prox=0.35,
        ),
        prediction=PredictionConfig(
            invertible_target=40.0,
            apalancado_target=20.0,
            magnitude_tolerance=10.0,
        ),
    )


# ── Invariant checks ──────────────────────────────────────────────────────────


def validate_algorithm_config(config: AlgorithmConfig) -> list[str]:
    """Collect every invariant violation in ``config``.

    Returns:
        List of human-readable messages; empty when the config is valid.
    """
    errors: list[str] = []

    meta = config.meta_weights
    meta_sum = meta.potential + meta.resistance
    if abs(meta_sum - 1.0) > META_WEIGHT_TOLERANCE:
        errors.append(
            f"meta_weights must sum to 1.0 (±{META_WEIGHT_TOLERANCE}); "
            f"potential + resistance = {meta_sum:.3f}."
        )

    for group_name, group in (
        ("potential_weights", config.potential_weights),
        ("resistance_weights", config.resistance_weights),
    ):
        weights = group.model_dump()
        negative = sorted(k for k, w in weights.items() if w < 0)
        if negative:
            errors.append(f"{group_name} must be non-negative; negative: {negative}.")
        total = sum(weights.values())
        if abs(total - 1.0) > GROUP_WEIGHT_TOLERANCE:
            errors.append(
                f"{group_name} must sum to 1.0 (±{GROUP_WEIGHT_TOLERANCE}); got {total:.3f}."
            )

    cls_cfg = config.classification
    if cls_cfg.invertible_min_boost <= cls_cfg.apalancado_min_boost:
        errors.append(
            "classification.invertible_min_boost "
            f"({cls_cfg.invertible_min_boost}) must be greater than "
            f"apalancado_min_boost ({cls_cfg.apalancado_min_boost})."
        )
    for field in ("invertible_min_boost", "apalancado_min_boost", "invertible_min_atl_prox"):
        value = getattr(cls_cfg, field)
        if not 0.0 <= value <= 1.0:
            errors.append(f"classification.{field} must be in [0, 1], got {value}.")
    if cls_cfg.invertible_max_market_cap < 0:
        errors.append("classification.invertible_max_market_cap must be >= 0 (0 = no ceiling).")

    pred = config.prediction
    lo, hi = MAGNITUDE_TOLERANCE_RANGE
    if not lo <= pred.magnitude_tolerance <= hi:
        errors.append(
            f"prediction.magnitude_tolerance must be in [{lo:g}, {hi:g}], "
            f"got {pred.magnitude_tolerance}."
        )
    for field in ("invertible_target", "apalancado_target"):
        if getattr(pred, field) <= 0:
            errors.append(f"prediction.{field} must be > 0.")

    th = config.thresholds
    if th.news_count_high <= th.news_count_low:
        errors.append("thresholds.news_count_high must exceed news_count_low.")
    if th.reddit_posts_high <= th.reddit_posts_low:
        errors.append("thresholds.reddit_posts_high must exceed reddit_posts_low.")
    if not th.search_growth_high > th.search_growth_low > th.search_growth_negative:
        errors.append(
            "thresholds must satisfy search_growth_high > search_growth_low "
            "> search_growth_negative."
        )
    if not th.rebound_deep_drop_7d <= th.rebound_drop_7d <= th.rebound_dip_7d < 0:
        errors.append(
            "thresholds must satisfy rebound_deep_drop_7d <= rebound_drop_7d "
            "<= rebound_dip_7d < 0."
        )

    return errors
