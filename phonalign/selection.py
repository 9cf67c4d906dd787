"""
Survivor selection for the calibrator.
"""

from typing import List, Sequence as SequenceType

import numpy as np

from .genome import Genome


def rank_by_fitness(population: SequenceType[Genome], fitnesses: SequenceType[float]) -> List[int]:
    """Indices of the population from fittest to least fit; ties keep population order."""
    if len(population) != len(fitnesses):
        raise ValueError(
            f"Population size {len(population)} does not match {len(fitnesses)} fitness values"
        )
    return [int(idx) for idx in np.argsort(-np.asarray(fitnesses, dtype=np.float64), kind='stable')]


def select_elites(
    population: SequenceType[Genome],
    fitnesses: SequenceType[float],
    count: int
) -> List[Genome]:
    """
    Keep the top-K genomes by fitness.

    Elites are copied with their fitness cached so they need no re-evaluation.

    Args:
        population: Evaluated genomes
        fitnesses: Fitness per genome
        count: Number of elites to keep

    Returns:
        Elites, fittest first
    """
    elites = []
    for idx in rank_by_fitness(population, fitnesses)[:count]:
        elite = population[idx].copy()
        elite.fitness = float(fitnesses[idx])
        elite.metadata = {'origin': 'elite'}
        elites.append(elite)
    return elites
