"""
Mutation operators for the calibrator.

Gaussian perturbation of genome parameters, clipped to their group bounds.
"""

from typing import List, Sequence as SequenceType, Tuple

import numpy as np

from .genome import Genome


def gaussian_mutation(
    genome: Genome,
    bounds: SequenceType[Tuple[float, float]],
    probability: float,
    scale: float,
    rng: np.random.Generator
) -> Tuple[Genome, List[str]]:
    """
    Perturb each parameter independently with a Gaussian step.

    A parameter is mutated with the given probability by adding
    N(0, scale * (high - low)) and clipping back into [low, high].

    Args:
        genome: Genome to mutate (left unchanged)
        bounds: (low, high) per group
        probability: Per-parameter mutation probability
        scale: Standard deviation as a fraction of the group range
        rng: Random number generator

    Returns:
        Tuple of (mutated_genome, operation_log)
    """
    mutated = genome.copy()
    mutated.fitness = None
    log = []

    for group_idx, (group, (low, high)) in enumerate(zip(mutated.groups, bounds)):
        mask = rng.random(len(group)) < probability
        if not mask.any():
            continue

        steps = rng.normal(0.0, scale * (high - low), size=len(group))
        group[mask] = np.clip(group[mask] + steps[mask], low, high)
        log.append(f"gaussian: group {group_idx}, {int(mask.sum())} of {len(group)} genes")

    if not log:
        log.append("gaussian: no genes mutated")

    return mutated, log


def breed_offspring(
    parents: SequenceType[Genome],
    count: int,
    bounds: SequenceType[Tuple[float, float]],
    probability: float,
    scale: float,
    rng: np.random.Generator
) -> List[Genome]:
    """
    Produce offspring by mutating uniformly chosen parents.

    Args:
        parents: Parent pool (usually the elites)
        count: Number of offspring
        bounds: (low, high) per group
        probability: Per-parameter mutation probability
        scale: Standard deviation as a fraction of the group range
        rng: Random number generator

    Returns:
        List of new genomes, fitness unset
    """
    if not parents:
        raise ValueError("Cannot breed offspring from an empty parent pool")

    children = []
    for _ in range(count):
        parent = parents[rng.integers(0, len(parents))]
        child, log = gaussian_mutation(parent, bounds, probability, scale, rng)
        child.metadata = {'origin': 'mutation', 'operations': log}
        children.append(child)

    return children
