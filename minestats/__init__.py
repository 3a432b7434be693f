"""
Mines Probability Estimator

An adaptive Monte Carlo engine estimating how often each cell of a small mines
grid is safe:
- Pattern similarity: Jaccard index between mine layouts
- Adaptive generation: random layouts steered away from recent history
- Monte Carlo estimation: per-cell confidence, thresholding and fallback
- Bayesian utilities: closed-form posterior and Shannon entropy
"""

from .analysis import (
    confidence_grid,
    confidence_standard_errors,
    format_confidence_map,
    plot_confidence_heatmap,
    plot_convergence,
    run_convergence_study,
)
from .bayes import (
    base_probability,
    entropy,
    is_degenerate_posterior,
    normalized_entropy,
    posterior,
)
from .engine import (
    AnalysisStep,
    SimulationCancelled,
    SimulationResult,
    adjusted_threshold,
    run_adaptive_simulation,
    run_monte_carlo_simulation,
    run_simulation,
    top_suggestions,
    training_bonus,
)
from .history import (
    HistoryEntry,
    HistoryLoadError,
    HistorySaveError,
    HistoryStore,
    InMemoryHistoryProvider,
    JsonFileHistoryProvider,
    training_label,
)
from .patterns import (
    AdaptiveLayout,
    generate_adaptive_layout,
    is_too_similar,
    random_layout,
    similarity,
)
from .training import MarkingSession

__version__ = "1.0.0"

__all__ = [
    # Core engine
    "run_adaptive_simulation",
    "run_simulation",
    "run_monte_carlo_simulation",
    "top_suggestions",
    "adjusted_threshold",
    "training_bonus",
    "AnalysisStep",
    "SimulationResult",
    "SimulationCancelled",
    # Patterns
    "similarity",
    "is_too_similar",
    "random_layout",
    "generate_adaptive_layout",
    "AdaptiveLayout",
    # History
    "HistoryEntry",
    "HistoryStore",
    "HistoryLoadError",
    "HistorySaveError",
    "InMemoryHistoryProvider",
    "JsonFileHistoryProvider",
    "training_label",
    "MarkingSession",
    # Bayesian utilities
    "base_probability",
    "posterior",
    "is_degenerate_posterior",
    "entropy",
    "normalized_entropy",
    # Analysis functions
    "confidence_grid",
    "confidence_standard_errors",
    "format_confidence_map",
    "plot_confidence_heatmap",
    "plot_convergence",
    "run_convergence_study",
]
