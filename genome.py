import random
from dataclasses import dataclass


class Genome:
    """
    A candidate solution: a flat vector of network weights plus a fitness score.
    Genomes order by fitness only. Equality is identity, so two genomes with the
    same weights are still different individuals.
    """
    __hash__ = object.__hash__

    def __init__(self, weights=None, fitness=0.0):
        self.weights = list(weights) if weights is not None else []
        self.fitness = fitness

    @classmethod
    def random(cls, length, rng=None):
        """A genome of `length` weights drawn from [-1, 1], with zero fitness."""
        rng = rng or random
        return cls([rng.uniform(-1.0, 1.0) for _ in range(length)])

    def clone(self):
        """Creates an independent copy of the genome."""
        return Genome(list(self.weights), self.fitness)

    def summary(self, max_shown=4):
        """Short description used in reports."""
        shown = ", ".join(f"{w:.3f}" for w in self.weights[:max_shown])
        more = ", ..." if len(self.weights) > max_shown else ""
        return f"Genome(len={len(self.weights)}, fitness={self.fitness:.3f}, weights=[{shown}{more}])"

    # Comparison by fitness
    def __lt__(self, other):
        return self.fitness < other.fitness

    def __le__(self, other):
        return self.fitness <= other.fitness

    def __gt__(self, other):
        return self.fitness > other.fitness

    def __ge__(self, other):
        return self.fitness >= other.fitness

    # Weight access
    def __len__(self):
        return len(self.weights)

    def __iter__(self):
        return iter(self.weights)

    def __getitem__(self, index):
        return self.weights[index]

    def __repr__(self):
        return f"Genome(Len:{len(self.weights)}, Fitness:{self.fitness:.2f})"


@dataclass(frozen=True)
class PopulationStats:
    best: float = 0.0
    worst: float = 0.0
    total: float = 0.0
    average: float = 0.0
    fittest: Genome = None


class Population:
    """
    An ordered collection of genomes with a fixed target size.
    The collection handed to an epoch may be smaller than the target size when
    agents died during the generation.
    """
    def __init__(self, genomes, target_size):
        self.genomes = list(genomes)
        self.target_size = target_size

    def statistics(self):
        """
        Computes best, worst, total and average fitness from scratch.
        The average divides by the target size, not the number of survivors,
        so attrition drags the average down.
        """
        if not self.genomes:
            return PopulationStats()
        fittest = max(self.genomes)
        total = sum(g.fitness for g in self.genomes)
        return PopulationStats(
            best=fittest.fitness,
            worst=min(self.genomes).fitness,
            total=total,
            average=total / self.target_size,
            fittest=fittest,
        )

    def elites(self, n):
        """
        The n fittest genomes, in ascending fitness order. Ties keep their
        position in the population (stable sort).
        """
        if n <= 0:
            return []
        return sorted(self.genomes, key=lambda g: g.fitness)[-n:]

    def __len__(self):
        return len(self.genomes)

    def __iter__(self):
        return iter(self.genomes)

    def __getitem__(self, index):
        return self.genomes[index]
