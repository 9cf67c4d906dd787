"""
Visualization for calibration runs.

Plots best, mean and worst fitness per generation.
"""

from pathlib import Path
from typing import List, Tuple, Union

import matplotlib.pyplot as plt

from .data_models import GenerationRecord


def plot_fitness_history(
    history: List[GenerationRecord],
    output_path: Union[str, Path],
    figsize: Tuple[int, int] = (10, 6),
    dpi: int = 150
) -> Path:
    """
    Save a line plot of fitness over generations.

    Args:
        history: Generation records in order
        output_path: Image path (format from extension)
        figsize: Figure size (width, height)
        dpi: Output resolution

    Returns:
        Path to saved figure
    """
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    generations = [record.generation for record in history]

    fig, ax = plt.subplots(figsize=figsize)
    ax.plot(generations, [r.best_fitness for r in history], color='green', linewidth=2, label='Best')
    ax.plot(generations, [r.mean_fitness for r in history], color='blue', linestyle='--', label='Mean')
    ax.plot(generations, [r.worst_fitness for r in history], color='red', alpha=0.7, label='Worst')

    ax.set_xlabel('Generation')
    ax.set_ylabel('Fitness (fraction of matched references)')
    ax.set_title('Calibration Fitness History')
    ax.set_ylim(-0.05, 1.05)
    ax.grid(True, alpha=0.3)
    ax.legend(loc='lower right')

    fig.tight_layout()
    fig.savefig(output_path, dpi=dpi, bbox_inches='tight')
    plt.close(fig)

    return output_path
