import random
import time

from agents import Food, SeekingAgent
from errors import ConfigurationError, PopulationExtinct, SimulationHalted
from genalg import GeneticAlgorithm, save_ga_state
from network import save_weights
from params import DEFAULT_PARAMS


class ALifeSimulation:
    """
    Drives the world tick by tick and runs the genetic algorithm at every
    generation boundary.

    Each live agent is bound to exactly one genome. Weights go into the agent's
    brain once per generation; fitness comes back into the genome every tick.
    """
    def __init__(self,
                 params=DEFAULT_PARAMS,
                 agent_factory=SeekingAgent,
                 rng=None,
                 stats_path="stats.txt",
                 weights_path="weights.csv",
                 ga=None,
                 renderer=None,
                 checkpoint_path=None,
                 checkpoint_interval=10):
        self.params = params
        self.agent_factory = agent_factory
        self.rng = rng or random.Random()
        self.stats_path = stats_path
        self.weights_path = weights_path
        self.renderer = renderer
        self.checkpoint_path = checkpoint_path
        self.checkpoint_interval = checkpoint_interval

        self.agents = [agent_factory(params, rng=self.rng) for _ in range(params.num_agents)]
        self.env = [Food.random(params, self.rng) for _ in range(params.num_goals)]

        # All agents are the same type, so they share a weight count
        num_weights = self.agents[0].num_weights
        self.ga = ga or GeneticAlgorithm.from_params(params, num_weights, rng=self.rng)
        if self.ga.chromosome_length != num_weights:
            raise ConfigurationError(f"GA chromosome length {self.ga.chromosome_length} does not match "
                                     f"the {num_weights} weights of a {agent_factory.__name__}")
        # Every agent needs exactly one genome
        if len(self.ga.chromosomes()) != len(self.agents):
            raise ConfigurationError(f"GA population of {len(self.ga.chromosomes())} does not match "
                                     f"the {len(self.agents)} agents of the simulation")

        # agent -> genome
        self.population = {}
        self._bind(self.ga.chromosomes())

        # The individual whose progress is written to the stats log
        self.henry = self.rng.choice(self.agents)
        print(self.henry.report(self.population[self.henry]))

        self.fitness_averages = [] # average fitness per generation
        self.hall_of_fame = [] # best fitness per generation
        self.ticks = 0
        self.generation = self.ga.generation

    def _bind(self, chromos):
        """
        Pairs each agent with a genome and loads the genome into its brain.
        Elitism can hand back the same genome more than once; later agents get
        a copy so that no two agents write fitness into the same genome.
        """
        self.population = {}
        bound = set()
        for agent, genome in zip(self.agents, chromos):
            if id(genome) in bound:
                genome = genome.clone()
            bound.add(id(genome))
            agent.set_weights(genome.weights)
            self.population[agent] = genome

    def seed_genome(self, weights):
        """Replaces the first agent's genome, e.g. with weights loaded from disk."""
        agent = self.agents[0]
        genome = self.population[agent]
        genome.weights = list(weights)
        agent.set_weights(genome.weights)

    def update(self):
        """
        Runs one tick. When the generation's ticks are used up, runs the GA and
        starts the next generation instead.
        """
        if not self.agents:
            self.save_stats()
            raise PopulationExtinct("Everyone has died.", self.generation)

        if self.ticks < self.params.num_ticks:
            for agent in list(self.agents):
                result = agent.respond_to(self.env)
                if not result.ok:
                    # Error in neural net processing; save before stopping
                    self.save_stats()
                    raise SimulationHalted(result.describe(), self.generation)

                goal = agent.try_for_goal(self.env)
                self.population[agent].fitness = agent.update_fitness(goal)
                if goal is not None:
                    self.consume(goal)

                agent.update_age()

                if agent.dead():
                    del self.population[agent]
                    self.agents.remove(agent)
            self.ticks += 1
        else:
            self.end_generation()
        return True

    def end_generation(self):
        """
        The generation boundary: report, breed, log, then re-bind every agent
        to a genome of the new population.
        """
        print(self.henry.report(self.population.get(self.henry)))

        self.generation += 1
        self.ticks = 0

        chromos = self.ga.epoch(list(self.population.values()))

        self.fitness_averages.append(round(self.ga.average_fitness, 3))
        self.hall_of_fame.append(round(self.ga.best_fitness, 3))

        self.save_stats()

        # Refill the world up to the population size the GA just produced
        while len(self.agents) < len(chromos):
            self.agents.append(self.agent_factory(self.params, rng=self.rng))

        self._bind(chromos)
        for agent in self.agents:
            agent.reset()

        if self.henry not in self.population:
            self.henry = self.rng.choice(self.agents)

        print(f"Generation {self.generation} complete. Best fitness: {self.ga.best_fitness:.4f}")

        if self.checkpoint_path and self.generation % self.checkpoint_interval == 0:
            print(f"--- Auto-saving GA state at Generation {self.generation} ---")
            save_ga_state(self.ga, self.checkpoint_path)

    def consume(self, goal):
        """Replaces an eaten goal with a new one at a random position."""
        for i, obj in enumerate(self.env):
            if obj is goal:
                self.env[i] = Food.random(self.params, self.rng)
                return

    def run(self, max_generations=None):
        """
        Updates until max_generations generations have completed (forever when
        None and params.max_generations is None) or the renderer asks to quit.
        """
        limit = max_generations if max_generations is not None else self.params.max_generations
        try:
            while limit is None or self.generation < limit:
                self.update()
                if self.renderer is not None and not self.renderer.render(self):
                    break
        finally:
            if self.renderer is not None:
                self.renderer.close()
        self.quit()

    def quit(self):
        self.save_stats()

    def recent(self, history):
        """The trailing window of a fitness history, as shown in reports."""
        window = self.params.stats_window
        prefix = "..." if len(history) > window else ""
        return prefix + ", ".join(str(v) for v in history[-window:])

    def save_stats(self):
        """Appends a human-readable block of run statistics to the stats file."""
        block = (f"{time.asctime()}{{\n"
                 f"    Generations: {self.generation}\n"
                 f"    Population: {len(self.agents)}\n"
                 f"    Average fitnesses: [{self.recent(self.fitness_averages)}]\n"
                 f"    Best fitnesses: [{self.recent(self.hall_of_fame)}]\n"
                 f"    HENRY'S REPORT:\n"
                 f"    {self.henry.report(self.population.get(self.henry))}"
                 f"}}\n")
        try:
            with open(self.stats_path, 'a') as f:
                f.write(block)
            return True
        except IOError as e:
            print(f"Error saving stats to {self.stats_path}: {e}")
            return False

    def export_weights(self, agent=None):
        """Writes an agent's brain weights (the tracked one by default) to the weights file."""
        agent = agent or self.henry
        if save_weights(agent.weights(), self.weights_path):
            print(f"Weights of {agent} written to {self.weights_path}")
            return True
        return False
