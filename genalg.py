import pickle # Import the pickle module for checkpointing
import random

from errors import PopulationExtinct
from genome import Genome, Population


# --- GeneticAlgorithm Class ---

class GeneticAlgorithm:
    """
    Evolves a population of fixed-length weight vectors.
    The caller assigns fitness to the genomes during a generation and then hands
    the surviving genomes to epoch(), which breeds the next generation through
    elitism, stochastic-acceptance selection, single-point crossover and
    mutation.
    """
    def __init__(self,
                 pop_size,
                 mutation_rate,
                 crossover_rate,
                 chromosome_length,
                 num_elite=4,
                 num_elite_copies=1,
                 max_perturbation=0.3,
                 rng=None,
                 max_selection_attempts=None):
        if pop_size < 1:
            raise ValueError(f"pop_size must be at least 1, got {pop_size}")
        if chromosome_length < 0:
            raise ValueError(f"chromosome_length must be non-negative, got {chromosome_length}")

        self.pop_size = pop_size
        self.mutation_rate = mutation_rate
        self.crossover_rate = crossover_rate
        self.chromosome_length = chromosome_length
        self.num_elite = num_elite
        self.num_elite_copies = num_elite_copies
        self.max_perturbation = max_perturbation
        self.rng = rng or random.Random()
        # Caps the reject/accept loop of sample_genome (None = 50 draws per genome)
        self.max_selection_attempts = max_selection_attempts

        self.generation = 0
        self.total_fitness = 0.0
        self.best_fitness = 0.0
        self.worst_fitness = 0.0
        self.average_fitness = 0.0
        self.fittest_genome = None

        # Random weights in [-1, 1], every fitness zero
        self.population = [Genome.random(self.chromosome_length, self.rng) for _ in range(self.pop_size)]

    @classmethod
    def from_params(cls, params, chromosome_length, rng=None):
        """Builds a GA using the rates stored in a Params instance."""
        return cls(pop_size=params.num_agents,
                   mutation_rate=params.mutation_rate,
                   crossover_rate=params.crossover_rate,
                   chromosome_length=chromosome_length,
                   num_elite=params.num_elite,
                   num_elite_copies=params.num_elite_copies,
                   max_perturbation=params.max_perturbation,
                   rng=rng)

    def crossover(self, mom, dad):
        """
        Single-point crossover. Returns the parents themselves (no new genomes)
        when they are the same individual, when genomes are empty, or when the
        crossover rate says so.
        """
        if mom is dad or self.chromosome_length == 0 or self.rng.random() > self.crossover_rate:
            return mom, dad

        xover_point = self.rng.randint(0, self.chromosome_length - 1)

        # Each child gets one parent's head and the other's tail
        fred = Genome(mom.weights[:xover_point] + dad.weights[xover_point:])
        george = Genome(dad.weights[:xover_point] + mom.weights[xover_point:])
        return fred, george

    def mutate(self, genome):
        """
        Perturbs each weight with probability mutation_rate by a value drawn from
        [-1, max_perturbation], a range lopsided towards negative values.
        """
        genome.weights = [
            weight + self.rng.uniform(-1.0, self.max_perturbation)
            if self.rng.random() < self.mutation_rate else weight
            for weight in genome.weights
        ]
        return genome

    def sample_genome(self):
        """
        Roulette-wheel selection by stochastic acceptance: pick a random genome
        and accept it with probability fitness / best fitness.
        """
        # A generation whose best fitness is below 1 divides by 1 instead
        denominator = max(self.best_fitness, 1)
        attempts = self.max_selection_attempts or 50 * len(self.population)

        for _ in range(attempts):
            candidate = self.rng.choice(self.population)
            if self.rng.random() < candidate.fitness / denominator:
                return candidate

        # Nobody was accepted (e.g. every fitness is zero); fall back to a uniform pick
        return self.rng.choice(self.population)

    def clone_n_best(self, n, num_copies, pool):
        """
        Appends num_copies repetitions of the n fittest genomes to pool.
        The elites are added by reference.
        """
        elites = Population(self.population, self.pop_size).elites(n)
        for _ in range(num_copies):
            pool.extend(elites)
        # Never let elitism alone overfill the next generation
        del pool[self.pop_size:]

    def calculate_stats(self):
        """Recomputes fittest/weakest genome and the average and total fitness."""
        stats = Population(self.population, self.pop_size).statistics()
        self.fittest_genome = stats.fittest
        self.best_fitness = stats.best
        self.worst_fitness = stats.worst
        self.total_fitness = stats.total
        self.average_fitness = stats.average
        return stats

    def epoch(self, old_pop):
        """
        Runs the algorithm through one generation.
        Takes the surviving genomes (fitness already assigned) and returns the new
        population as a read-only tuple of exactly pop_size genomes.
        """
        self.population = list(old_pop)
        if not self.population:
            raise PopulationExtinct("Cannot breed a new generation from an empty population.")

        self.calculate_stats()

        new_pop = []

        # Add in a little elitism
        self.clone_n_best(min(len(self.population), self.num_elite), self.num_elite_copies, new_pop)

        while len(new_pop) < self.pop_size:
            mom = self.sample_genome()
            dad = self.sample_genome()

            fred, george = self.crossover(mom, dad)

            # Parents handed back unchanged are copied so mutation never touches
            # the previous generation or an elite already in new_pop
            if fred is mom or fred is dad:
                fred = fred.clone()
            if george is mom or george is dad:
                george = george.clone()

            self.mutate(fred)
            self.mutate(george)

            new_pop.append(fred)
            # Odd population sizes drop the second twin
            if len(new_pop) < self.pop_size:
                new_pop.append(george)

        self.population = new_pop
        self.generation += 1
        return self.chromosomes()

    def chromosomes(self):
        """The current population as a tuple, so callers cannot modify it."""
        return tuple(self.population)

    def __repr__(self):
        return (f"GA(Gen:{self.generation}, Pop:{len(self.population)}/{self.pop_size}, "
                f"Best:{self.best_fitness:.2f}, Avg:{self.average_fitness:.2f})")


# --- Save/Load Functions ---

def save_ga_state(ga_instance, filename):
    """Saves the entire GeneticAlgorithm instance to a file using pickle."""
    try:
        with open(filename, 'wb') as f: # Open in binary write mode
            pickle.dump(ga_instance, f)
        print(f"GeneticAlgorithm state saved to {filename}")
        return True
    except (IOError, pickle.PicklingError) as e:
        print(f"Error saving GA state to {filename}: {e}")
        return False


def load_ga_state(filename):
    """Loads a GeneticAlgorithm instance previously written by save_ga_state."""
    try:
        with open(filename, 'rb') as f: # Open in binary read mode
            loaded_ga_instance = pickle.load(f)
    except FileNotFoundError:
        print(f"No saved state found at {filename}.")
        return None
    except (IOError, pickle.UnpicklingError, EOFError) as e:
        print(f"Error loading GA state from {filename}: {e}")
        return None

    if not isinstance(loaded_ga_instance, GeneticAlgorithm):
        print(f"{filename} does not contain a GeneticAlgorithm state.")
        return None
    print(f"GeneticAlgorithm state loaded from {filename}. Resuming from Generation {loaded_ga_instance.generation}.")
    return loaded_ga_instance
