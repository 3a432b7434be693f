"""
Quickstart example for the Mines Probability Estimator.

This script demonstrates basic usage of the engine.
"""

import random

from minestats import (
    HistoryStore,
    base_probability,
    entropy,
    format_confidence_map,
    posterior,
    run_convergence_study,
    run_simulation,
    top_suggestions,
)


def main():
    print("=" * 60)
    print("Mines Probability Estimator - Quickstart Example")
    print("=" * 60)

    rng = random.Random(2024)

    # Example 1: A single run without history
    print("\n1. Running 1,000 simulated layouts (3 mines, threshold 97%)...")
    print("-" * 60)

    result = run_simulation(
        3,
        iterations=1000,
        threshold=0.97,
        on_progress=lambda progress, step: print(f"{progress:3d}% {step.message}"),
        rng=rng,
    )

    print(f"Adjusted threshold: {result.threshold:.2f}")
    print(f"Fallback used: {result.fallback_used}")
    print(f"Safe cells: {result.safe_cells}")
    print(format_confidence_map(result, highlight=result.safe_cells))

    # Example 2: Feeding confirmed layouts back in
    print("\n2. Recording 10 confirmed layouts and re-running...")
    print("-" * 60)

    store = HistoryStore()
    for _ in range(10):
        store.record(rng.sample(range(25), 3), 3)

    result = run_simulation(
        3,
        iterations=1000,
        threshold=0.97,
        recent_patterns=store.recent_patterns(3),
        training_level=store.training_level(),
        rng=rng,
    )
    print(f"Training level: {store.training_level()} ({store.training_progress():.0f}%)")
    print(f"Patterns avoided: {result.patterns_avoided}")
    print(f"Training bonus: {result.training_bonus:.1f}%")
    print(f"Top suggestions: {top_suggestions(result, 3)}")

    # Example 3: Closed-form estimates
    print("\n3. Bayesian posterior and entropy...")
    print("-" * 60)

    print(f"Base mine probability: {base_probability(3):.1%}")
    probs = posterior(3, revealed_safe=[0, 1], revealed_mines=[2])
    print(f"Posterior P(safe) for an untouched cell: {probs[10]:.4f}")
    print(f"Posterior entropy: {entropy(probs):.2f} bits")

    # Example 4: Convergence
    print("\n4. Convergence of the estimate toward 1 - M/N (5 runs each)...")
    print("-" * 60)

    study = run_convergence_study(3, [100, 1000, 5000], runs=5, seed=7)
    for iterations, stats in study.items():
        print(
            f"{iterations:6d} iterations: mean |error| {stats['mean_abs_error']:.4f}, "
            f"max |error| {stats['max_abs_error']:.4f}"
        )

    print("\n" + "=" * 60)
    print("Done! Run `python -m minestats` for the interactive front end.")
    print("=" * 60)


if __name__ == "__main__":
    main()
