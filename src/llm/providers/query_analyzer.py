"""
Query analyzer for smart-mode model routing.

Scores a user query on three factors (length, technical vocabulary and
structure) and maps the total onto a complexity band and a recommended
OpenAI model. Cheap models answer simple lookups; the strongest model is
reserved for multi-part analytical questions.

Usage:
    >>> from src.llm.providers.query_analyzer import analyze_query
    >>> result = analyze_query("What is our refund policy?")
    >>> result.complexity
    <QueryComplexity.SIMPLE: 'simple'>
    >>> result.recommended_model
    'gpt-5-nano'

All scoring policy (keywords, breakpoints, band thresholds, model table)
lives in AnalyzerConfig so it can be tuned from YAML without touching
the scoring functions.
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union

import yaml

logger = logging.getLogger(__name__)


class QueryComplexity(Enum):
    """Complexity bands, ordered from cheapest to most capable model."""

    SIMPLE = "simple"
    MEDIUM = "medium"
    COMPLEX = "complex"


@dataclass(frozen=True)
class ComplexityBand:
    """Inclusive score range [lower, upper] that maps to one complexity."""

    lower: int
    upper: int
    complexity: QueryComplexity

    def contains(self, score: int) -> bool:
        return self.lower <= score <= self.upper


# Business/strategy, technical and complex-reasoning vocabulary.
# Matched as case-insensitive substrings, each distinct keyword counts once.
TECHNICAL_KEYWORDS: Tuple[str, ...] = tuple(
    dict.fromkeys(
        [
            # Business / strategy
            "策略", "戰略", "分析", "評估", "優化", "架構", "流程", "機制",
            "strategy", "analysis", "evaluation", "optimization", "framework",
            # Technical
            "技術", "系統", "演算法", "整合", "API", "資料庫", "模型",
            "technical", "system", "algorithm", "architecture", "integration", "database",
            # Complex reasoning
            "如何", "為什麼", "比較", "差異", "優缺點", "建議", "方案",
            "how", "why", "compare", "difference", "pros", "cons", "recommend", "solution",
        ]
    )
)

COMPLEX_PATTERNS: Tuple[str, ...] = (
    r"比較.*和.*的",  # comparison
    r"如何.*以及.*",  # multiple steps
    r"分析.*並.*建議",  # analysis + recommendation
    r"為什麼.*但是.*",  # reasoning with contrast
    r"(?i)優缺點|pros.*cons",  # pros and cons
)

CONNECTORS: Tuple[str, ...] = (
    "和", "或", "但是", "以及", "而且", "另外", "and", "or", "but", "also",
)

DEFAULT_BANDS: Tuple[ComplexityBand, ...] = (
    ComplexityBand(0, 29, QueryComplexity.SIMPLE),
    ComplexityBand(30, 59, QueryComplexity.MEDIUM),
    ComplexityBand(60, 100, QueryComplexity.COMPLEX),
)

DEFAULT_MODELS: Tuple[Tuple[QueryComplexity, str], ...] = (
    (QueryComplexity.SIMPLE, "gpt-5-nano"),
    (QueryComplexity.MEDIUM, "gpt-5-mini"),
    (QueryComplexity.COMPLEX, "gpt-5"),
)

BAND_RATIONALE: Dict[QueryComplexity, str] = {
    QueryComplexity.SIMPLE: "the cheapest model is sufficient",
    QueryComplexity.MEDIUM: "a balanced cost/quality model fits",
    QueryComplexity.COMPLEX: "the most capable model keeps answer quality high",
}

_QUESTION_MARKS = re.compile(r"[?？]")
_NUMBERED_LIST = re.compile(r"[1-9]\.")


@dataclass(frozen=True)
class AnalyzerConfig:
    """
    Immutable scoring policy for the query analyzer.

    Construction validates the whole configuration in one pass, so an
    AnalyzerConfig instance always describes a total, non-overlapping
    partition of the score range and a model for every complexity.

    Environment / file overrides:
        Use AnalyzerConfig.from_yaml(path) to load a YAML override file
        (see configs/query_analyzer.yaml). Missing keys keep their defaults.
    """

    technical_keywords: Tuple[str, ...] = TECHNICAL_KEYWORDS
    complex_patterns: Tuple[str, ...] = COMPLEX_PATTERNS
    connectors: Tuple[str, ...] = CONNECTORS

    # (exclusive upper length, score); longer queries saturate at length_cap
    length_breakpoints: Tuple[Tuple[int, int], ...] = ((20, 5), (50, 15), (100, 25))

    keyword_weight: int = 5
    pattern_weight: int = 10
    question_weight: int = 10
    question_cap: int = 15
    connector_weight: int = 5
    connector_cap: int = 15
    enumeration_bonus: int = 10

    length_cap: int = 30
    technical_cap: int = 30
    structure_cap: int = 40

    bands: Tuple[ComplexityBand, ...] = DEFAULT_BANDS
    models: Tuple[Tuple[QueryComplexity, str], ...] = DEFAULT_MODELS

    # Scores within [low, high] are borderline for smart mode
    smart_mode_low: int = 25
    smart_mode_high: int = 65

    _keywords_lower: Tuple[str, ...] = field(default=(), init=False, repr=False, compare=False)
    _compiled_patterns: Tuple[re.Pattern, ...] = field(default=(), init=False, repr=False, compare=False)

    def __post_init__(self):
        self.validate()
        object.__setattr__(
            self,
            "_keywords_lower",
            tuple(dict.fromkeys(k.lower() for k in self.technical_keywords)),
        )
        object.__setattr__(
            self,
            "_compiled_patterns",
            tuple(re.compile(p) for p in self.complex_patterns),
        )

    @property
    def max_score(self) -> int:
        return self.length_cap + self.technical_cap + self.structure_cap

    def validate(self) -> None:
        """
        Check the configuration for consistency.

        Raises:
            ValueError: If caps do not sum to 100, a weight is negative, length
                breakpoints are not ordered, bands leave gaps or overlap, or a complexity has no model
        """
        if min(self.length_cap, self.technical_cap, self.structure_cap) <= 0:
            raise ValueError("Factor caps must be positive")
        negative = {
            name: value
            for name, value in (
                ("keyword_weight", self.keyword_weight),
                ("pattern_weight", self.pattern_weight),
                ("question_weight", self.question_weight),
                ("question_cap", self.question_cap),
                ("connector_weight", self.connector_weight),
                ("connector_cap", self.connector_cap),
                ("enumeration_bonus", self.enumeration_bonus),
            )
            if value < 0
        }
        if negative:
            raise ValueError(f"Weights, bonuses and sub-caps must not be negative: {negative}")
        if self.max_score != 100:
            raise ValueError(
                f"Factor caps must sum to 100, got {self.max_score} "
                f"(length={self.length_cap}, technical={self.technical_cap}, "
                f"structure={self.structure_cap})"
            )

        previous_threshold, previous_score = 0, 0
        for threshold, score in self.length_breakpoints:
            if threshold <= previous_threshold:
                raise ValueError(f"Length breakpoints must be increasing: {self.length_breakpoints}")
            if score < previous_score or score > self.length_cap:
                raise ValueError(
                    f"Length scores must be non-decreasing and within [0, {self.length_cap}]: "
                    f"{self.length_breakpoints}"
                )
            previous_threshold, previous_score = threshold, score

        if not self.bands:
            raise ValueError("At least one complexity band is required")

        expected_lower = 0
        for band in self.bands:
            if band.lower != expected_lower:
                raise ValueError(
                    f"Complexity bands must be contiguous from 0: expected a band starting "
                    f"at {expected_lower}, got [{band.lower}, {band.upper}]"
                )
            if band.upper < band.lower:
                raise ValueError(f"Empty complexity band: [{band.lower}, {band.upper}]")
            expected_lower = band.upper + 1

        if self.bands[-1].upper != self.max_score:
            raise ValueError(
                f"Complexity bands must end at {self.max_score}, last band ends at {self.bands[-1].upper}"
            )

        mapped = {complexity for complexity, _ in self.models}
        missing = [c.value for c in QueryComplexity if c not in mapped]
        if missing:
            raise ValueError(f"No recommended model configured for: {missing}")

        if self.smart_mode_low > self.smart_mode_high:
            raise ValueError(
                f"smart_mode_low ({self.smart_mode_low}) must not exceed "
                f"smart_mode_high ({self.smart_mode_high})"
            )

    def classify(self, score: int) -> QueryComplexity:
        """Return the complexity band containing score."""
        for band in self.bands:
            if band.contains(score):
                return band.complexity
        raise ValueError(f"Score {score} outside [0, {self.max_score}]")

    def model_for(self, complexity: QueryComplexity) -> str:
        return dict(self.models)[complexity]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalyzerConfig":
        """
        Build a config from a plain mapping (the parsed YAML layout).

        Args:
            data: Mapping with any of: technical_keywords, complex_patterns,
                  connectors, length_breakpoints, weights, caps, bands,
                  models, smart_mode

        Returns:
            Validated AnalyzerConfig
        """
        kwargs: Dict[str, Any] = {}

        for key in ("technical_keywords", "complex_patterns", "connectors"):
            if key in data:
                kwargs[key] = tuple(str(item) for item in data[key])

        if "length_breakpoints" in data:
            kwargs["length_breakpoints"] = tuple(
                (int(threshold), int(score)) for threshold, score in data["length_breakpoints"]
            )

        weights = data.get("weights") or {}
        for name in ("keyword", "pattern", "question", "connector"):
            if name in weights:
                kwargs[f"{name}_weight"] = int(weights[name])
        if "enumeration" in weights:
            kwargs["enumeration_bonus"] = int(weights["enumeration"])

        caps = data.get("caps") or {}
        for name in ("length", "technical", "structure", "question", "connector"):
            if name in caps:
                kwargs[f"{name}_cap"] = int(caps[name])

        if "bands" in data:
            kwargs["bands"] = tuple(
                ComplexityBand(
                    int(band["lower"]),
                    int(band["upper"]),
                    QueryComplexity(band["complexity"]),
                )
                for band in data["bands"]
            )

        if "models" in data:
            models = dict(DEFAULT_MODELS)
            models.update(
                {QueryComplexity(name): str(model) for name, model in data["models"].items()}
            )
            kwargs["models"] = tuple((c, models[c]) for c in QueryComplexity)

        smart_mode = data.get("smart_mode") or {}
        if "low" in smart_mode:
            kwargs["smart_mode_low"] = int(smart_mode["low"])
        if "high" in smart_mode:
            kwargs["smart_mode_high"] = int(smart_mode["high"])

        return cls(**kwargs)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "AnalyzerConfig":
        """Load analyzer policy overrides from a YAML file."""
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Analyzer config {path} must be a YAML mapping")
        logger.info(f"[ANALYZER] Loaded scoring policy from {path}")
        return cls.from_dict(data)


DEFAULT_CONFIG = AnalyzerConfig()


@dataclass(frozen=True)
class QueryFactors:
    """Per-factor sub-scores; they always sum to the total score."""

    length: int
    technical: int
    structure: int

    @property
    def total(self) -> int:
        return self.length + self.technical + self.structure


@dataclass(frozen=True)
class QueryAnalysisResult:
    """Outcome of analyze_query(). Created fresh per call and never mutated."""

    complexity: QueryComplexity
    score: int
    factors: QueryFactors
    recommended_model: str
    reasoning: str

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the camelCase shape returned by the chat API."""
        return {
            "complexity": self.complexity.value,
            "score": self.score,
            "factors": {
                "length": self.factors.length,
                "technical": self.factors.technical,
                "structure": self.factors.structure,
            },
            "recommendedModel": self.recommended_model,
            "reasoning": self.reasoning,
        }


def _length_score(query: str, config: AnalyzerConfig) -> int:
    """Short queries (<20 chars) score 5, long ones (>=100) saturate at the cap."""
    length = len(query)
    for threshold, score in config.length_breakpoints:
        if length < threshold:
            return score
    return config.length_cap


def _technical_score(query: str, config: AnalyzerConfig) -> int:
    query_lower = query.lower()

    keyword_count = sum(1 for keyword in config._keywords_lower if keyword in query_lower)
    pattern_matches = sum(1 for pattern in config._compiled_patterns if pattern.search(query))

    score = keyword_count * config.keyword_weight + pattern_matches * config.pattern_weight
    return max(0, min(score, config.technical_cap))


def _structure_score(query: str, config: AnalyzerConfig) -> int:
    """
    Multiple questions, clause connectors and numbered lists all indicate
    a multi-part request.
    """
    score = 0

    question_marks = len(_QUESTION_MARKS.findall(query))
    score += min(question_marks * config.question_weight, config.question_cap)

    connector_count = sum(1 for connector in config.connectors if connector in query)
    score += min(connector_count * config.connector_weight, config.connector_cap)

    if _NUMBERED_LIST.search(query):
        score += config.enumeration_bonus

    return max(0, min(score, config.structure_cap))


def _build_reasoning(
    complexity: QueryComplexity, score: int, factors: QueryFactors, config: AnalyzerConfig
) -> str:
    candidates = [
        ("length", factors.length, config.length_cap),
        ("technical", factors.technical, config.technical_cap),
        ("structure", factors.structure, config.structure_cap),
    ]
    # Largest share of its own cap wins; ties keep the order above
    name, value, cap = max(candidates, key=lambda c: c[1] / c[2])

    if value == 0:
        driver = "no complexity signals detected"
    else:
        driver = f"dominant factor: {name} ({value}/{cap})"

    return (
        f"{complexity.value.capitalize()} query (score {score}/{config.max_score}): "
        f"{BAND_RATIONALE[complexity]}; {driver}"
    )


def analyze_query(query: str, config: Optional[AnalyzerConfig] = None) -> QueryAnalysisResult:
    """
    Analyze a query and recommend the model that should answer it.

    Args:
        query: Raw user query (may be empty)
        config: Scoring policy (defaults to DEFAULT_CONFIG)

    Returns:
        QueryAnalysisResult with complexity, score, factor breakdown,
        recommended model and a human-readable reasoning string

    Raises:
        TypeError: If query is not a string
    """
    if not isinstance(query, str):
        raise TypeError(f"query must be str, got {type(query).__name__}")

    config = config or DEFAULT_CONFIG

    factors = QueryFactors(
        length=_length_score(query, config),
        technical=_technical_score(query, config),
        structure=_structure_score(query, config),
    )
    score = factors.total
    complexity = config.classify(score)

    return QueryAnalysisResult(
        complexity=complexity,
        score=score,
        factors=factors,
        recommended_model=config.model_for(complexity),
        reasoning=_build_reasoning(complexity, score, factors, config),
    )


def get_recommended_model(query: str, config: Optional[AnalyzerConfig] = None) -> str:
    """Convenience wrapper returning only the recommended model id."""
    return analyze_query(query, config).recommended_model


def should_use_smart_mode(query: str, config: Optional[AnalyzerConfig] = None) -> bool:
    """
    Check whether automatic model selection is clear-cut for this query.

    Borderline scores (inside the smart-mode window) are better served by
    the user's own model choice.
    """
    config = config or DEFAULT_CONFIG
    analysis = analyze_query(query, config)
    return analysis.score < config.smart_mode_low or analysis.score > config.smart_mode_high


def load_analyzer_config(path: Optional[Union[str, Path]] = None) -> AnalyzerConfig:
    """Return the YAML-backed config when a path is given, else the defaults."""
    if not path:
        return DEFAULT_CONFIG
    return AnalyzerConfig.from_yaml(path)
