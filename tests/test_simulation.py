import contextlib
import io
import pathlib
import random
import sys
import tempfile
import unittest
from unittest import mock


ROOT = pathlib.Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import main
from agents import BasicAgent, OmniscientAgent, SeekingAgent
from errors import ALifeError, ConfigurationError, PopulationExtinct, SimulationHalted
from genalg import GeneticAlgorithm, load_ga_state, save_ga_state
from genome import Genome
from network import load_weights
from params import Params
from simulation import ALifeSimulation


SMALL = Params(num_agents=4, num_goals=5, num_ticks=3, num_elite=1, num_elite_copies=1)


class SimulationTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.addCleanup(self._tmp.cleanup)
        self.tmp = pathlib.Path(self._tmp.name)
        self.stats_path = self.tmp / "stats.txt"
        self.weights_path = self.tmp / "weights.csv"

    def make_sim(self, params=SMALL, agent_factory=SeekingAgent, seed=21, **kwargs):
        with contextlib.redirect_stdout(io.StringIO()):
            return ALifeSimulation(params,
                                   agent_factory=agent_factory,
                                   rng=random.Random(seed),
                                   stats_path=self.stats_path,
                                   weights_path=self.weights_path,
                                   **kwargs)

    def quietly(self, func, *args, **kwargs):
        with contextlib.redirect_stdout(io.StringIO()):
            return func(*args, **kwargs)


class TestConstruction(SimulationTestCase):
    def test_each_agent_is_bound_to_its_genome(self) -> None:
        sim = self.make_sim()
        self.assertEqual(len(sim.agents), 4)
        self.assertEqual(len(sim.env), 5)
        self.assertEqual(len(sim.population), 4)
        for agent in sim.agents:
            self.assertEqual(agent.weights(), sim.population[agent].weights)
        self.assertIn(sim.henry, sim.agents)

    def test_every_agent_type_runs(self) -> None:
        for factory in (BasicAgent, OmniscientAgent, SeekingAgent):
            sim = self.make_sim(agent_factory=factory)
            self.quietly(sim.run, max_generations=1)
            self.assertEqual(sim.generation, 1)

    def test_rejects_ga_of_the_wrong_length(self) -> None:
        ga = GeneticAlgorithm(4, 0.1, 0.7, 3, rng=random.Random(1))
        with self.assertRaises(ConfigurationError):
            self.make_sim(ga=ga)
        self.assertTrue(issubclass(ConfigurationError, ALifeError))

    def test_rejects_ga_of_the_wrong_population_size(self) -> None:
        ga = GeneticAlgorithm(3, 0.1, 0.7, 3 * SMALL.agent_num_sensors + 1, rng=random.Random(1))
        with self.assertRaises(ConfigurationError):
            self.make_sim(params=SMALL.with_overrides(num_agents=6), ga=ga)

    def test_resumed_ga_binds_every_agent(self) -> None:
        ga = GeneticAlgorithm.from_params(SMALL, 3 * SMALL.agent_num_sensors + 1, rng=random.Random(1))
        ga.generation = 7
        sim = self.make_sim(ga=ga)
        self.assertEqual(sim.generation, 7)
        self.assertEqual(len(sim.population), len(sim.agents))
        self.quietly(sim.update)
        self.assertEqual(sim.ticks, 1)

    def test_duplicate_genomes_are_copied(self) -> None:
        sim = self.make_sim()
        shared = Genome([0.1] * sim.ga.chromosome_length)
        other = Genome([0.2] * sim.ga.chromosome_length)
        sim._bind((shared, shared, other, shared))
        genomes = list(sim.population.values())
        self.assertEqual(len({id(g) for g in genomes}), 4)
        self.assertIs(genomes[0], shared)
        self.assertEqual(genomes[3].weights, shared.weights)

    def test_seed_genome(self) -> None:
        sim = self.make_sim()
        weights = [0.5] * sim.ga.chromosome_length
        sim.seed_genome(weights)
        self.assertEqual(sim.agents[0].weights(), weights)
        self.assertEqual(sim.population[sim.agents[0]].weights, weights)


class TestUpdate(SimulationTestCase):
    def test_fitness_is_written_back_every_tick(self) -> None:
        sim = self.make_sim()
        self.quietly(sim.update)
        self.assertEqual(sim.ticks, 1)
        for agent in sim.agents:
            self.assertEqual(sim.population[agent].fitness, agent.fitness)
            self.assertEqual(agent.body.age, 1)

    def test_generation_boundary(self) -> None:
        sim = self.make_sim()
        for _ in range(SMALL.num_ticks):
            self.quietly(sim.update)
        self.assertEqual(sim.generation, 0)

        self.quietly(sim.update)
        self.assertEqual(sim.generation, 1)
        self.assertEqual(sim.ticks, 0)
        self.assertEqual(len(sim.agents), SMALL.num_agents)
        self.assertEqual(len(sim.fitness_averages), 1)
        self.assertEqual(len(sim.hall_of_fame), 1)
        self.assertIn("Generations: 1", self.stats_path.read_text())
        for agent in sim.agents:
            self.assertEqual(agent.fitness, SMALL.base_fitness)
            self.assertEqual(agent.weights(), sim.population[agent].weights)

    def test_eaten_goal_is_replaced(self) -> None:
        sim = self.make_sim()
        agent = sim.agents[0]
        goal = sim.env[0]
        goal.x, goal.y = agent.body.position
        self.quietly(sim.update)
        self.assertEqual(len(sim.env), SMALL.num_goals)
        self.assertNotIn(goal, sim.env)
        self.assertEqual(agent.body.goals_reached, 1)

    def test_dead_agents_are_removed_and_respawned(self) -> None:
        sim = self.make_sim()
        doomed = sim.agents[:2]
        for agent in doomed:
            agent.body.fitness = 0.1
        self.quietly(sim.update)
        self.assertEqual(len(sim.agents), 2)
        self.assertEqual(len(sim.population), 2)

        for _ in range(SMALL.num_ticks):
            self.quietly(sim.update)
        self.assertEqual(len(sim.agents), SMALL.num_agents)
        self.assertIn(sim.henry, sim.agents)

    def test_extinction_halts_after_saving_stats(self) -> None:
        sim = self.make_sim(params=SMALL.with_overrides(death=-1000.0))
        self.quietly(sim.update)
        self.assertEqual(sim.agents, [])
        with self.assertRaises(PopulationExtinct):
            self.quietly(sim.update)
        self.assertIn("Population: 0", self.stats_path.read_text())

    def test_malformed_output_halts_after_saving_stats(self) -> None:
        sim = self.make_sim()
        with mock.patch.object(sim.agents[0].brain, "respond", return_value=[]):
            with self.assertRaises(SimulationHalted) as ctx:
                self.quietly(sim.update)
        self.assertIn("expected 1", str(ctx.exception))
        self.assertTrue(self.stats_path.exists())


class TestRun(SimulationTestCase):
    def test_run_stops_after_max_generations(self) -> None:
        sim = self.make_sim()
        self.quietly(sim.run, max_generations=2)
        self.assertEqual(sim.generation, 2)
        self.assertEqual(sim.ga.generation, 2)
        text = self.stats_path.read_text()
        self.assertIn("Generations: 2", text)
        self.assertIn("HENRY'S REPORT:", text)

    def test_renderer_can_stop_the_run(self) -> None:
        renderer = mock.Mock()
        renderer.render.return_value = False
        sim = self.make_sim(renderer=renderer)
        self.quietly(sim.run, max_generations=5)
        self.assertEqual(sim.ticks, 1)
        renderer.close.assert_called_once()

    def test_checkpoint_is_written(self) -> None:
        checkpoint = self.tmp / "ga_state.pkl"
        sim = self.make_sim(checkpoint_path=checkpoint, checkpoint_interval=1)
        self.quietly(sim.run, max_generations=1)
        ga = self.quietly(load_ga_state, checkpoint)
        self.assertEqual(ga.generation, 1)

    def test_export_weights(self) -> None:
        sim = self.make_sim()
        self.assertTrue(self.quietly(sim.export_weights))
        self.assertEqual(load_weights(self.weights_path, sim.ga.chromosome_length), sim.henry.weights())

    def test_recent_history_window(self) -> None:
        sim = self.make_sim()
        self.assertEqual(sim.recent([1, 2]), "1, 2")
        self.assertEqual(sim.recent(list(range(10))), "...3, 4, 5, 6, 7, 8, 9")


class TestParams(unittest.TestCase):
    def test_reach_is_derived(self) -> None:
        self.assertEqual(Params().agent_reach, 15.0)
        self.assertEqual(Params(food_width=40).agent_reach, 20.0)

    def test_overrides(self) -> None:
        params = Params().with_overrides({"num_agents": 8}, num_ticks=10)
        self.assertEqual((params.num_agents, params.num_ticks), (8, 10))
        with self.assertRaises(ValueError):
            Params().with_overrides(not_a_param=1)


class TestMain(SimulationTestCase):
    def test_headless_run(self) -> None:
        argv = ["--headless", "--agent", "basic", "--generations", "1", "--ticks", "2",
                "--agents", "3", "--seed", "5", "--stats-file", str(self.stats_path)]
        self.assertEqual(self.quietly(main.main, argv), 0)
        self.assertIn("Generations: 1", self.stats_path.read_text())

    def test_mismatched_checkpoint_is_reported(self) -> None:
        checkpoint = self.tmp / "ga_state.pkl"
        ga = GeneticAlgorithm(3, 0.1, 0.7, 3 * Params().agent_num_sensors + 1, rng=random.Random(1))
        self.quietly(save_ga_state, ga, checkpoint)
        for extra in (["--agents", "6"], ["--agents", "3", "--agent", "omniscient"]):
            argv = ["--headless", "--checkpoint", str(checkpoint),
                    "--stats-file", str(self.stats_path)] + extra
            with contextlib.redirect_stderr(io.StringIO()) as err:
                self.assertEqual(self.quietly(main.main, argv), 1)
            self.assertIn("does not match", err.getvalue())

    def test_halt_returns_error_code(self) -> None:
        argv = ["--headless", "--generations", "1", "--stats-file", str(self.stats_path)]
        with mock.patch.object(ALifeSimulation, "run", side_effect=PopulationExtinct("Everyone has died.")):
            with contextlib.redirect_stderr(io.StringIO()) as err:
                self.assertEqual(self.quietly(main.main, argv), 1)
        self.assertIn("Everyone has died.", err.getvalue())


if __name__ == "__main__":
    unittest.main()
