import argparse
import random
import sys # Import sys for clean exit

from agents import AGENT_TYPES
from errors import ALifeError
from genalg import load_ga_state
from network import load_weights
from params import DEFAULT_PARAMS
from simulation import ALifeSimulation


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Evolve goal-seeking agents with a genetic algorithm.")
    parser.add_argument("--agent", choices=sorted(AGENT_TYPES), default="seeking",
                        help="Kind of agent to evolve (default: seeking)")
    parser.add_argument("--generations", type=int, default=None,
                        help="Stop after this many generations (default: run until quit)")
    parser.add_argument("--ticks", type=int, default=DEFAULT_PARAMS.num_ticks,
                        help=f"Ticks per generation (default: {DEFAULT_PARAMS.num_ticks})")
    parser.add_argument("--agents", type=int, default=DEFAULT_PARAMS.num_agents,
                        help=f"Population size (default: {DEFAULT_PARAMS.num_agents})")
    parser.add_argument("--seed", type=int, default=None,
                        help="Seed for the random number generator")
    parser.add_argument("--headless", action="store_true",
                        help="Run without opening a window")
    parser.add_argument("--stats-file", default="stats.txt",
                        help="Run statistics are appended here (default: stats.txt)")
    parser.add_argument("--weights-file", default="weights.csv",
                        help="Weight export target (default: weights.csv)")
    parser.add_argument("--load-weights", default=None,
                        help="Seed one genome of the first generation from a weights file")
    parser.add_argument("--checkpoint", default=None,
                        help="Resume from and periodically save the GA state to this file")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    params = DEFAULT_PARAMS.with_overrides(num_ticks=args.ticks, num_agents=args.agents,
                                           max_generations=args.generations)
    rng = random.Random(args.seed)
    agent_factory = AGENT_TYPES[args.agent]

    # Attempt to resume a saved GA
    ga = load_ga_state(args.checkpoint) if args.checkpoint else None

    renderer = None
    if not args.headless:
        from renderer import PygameRenderer
        renderer = PygameRenderer(params)

    try:
        simulation = ALifeSimulation(params,
                                     agent_factory=agent_factory,
                                     rng=rng,
                                     stats_path=args.stats_file,
                                     weights_path=args.weights_file,
                                     ga=ga,
                                     renderer=renderer,
                                     checkpoint_path=args.checkpoint)
    except ALifeError as e:
        if renderer is not None:
            renderer.close()
        print(f"Cannot start simulation: {e}", file=sys.stderr)
        return 1

    if args.load_weights:
        weights = load_weights(args.load_weights, simulation.ga.chromosome_length)
        if weights is not None:
            print(f"Loaded existing weights from {args.load_weights}")
            simulation.seed_genome(weights)

    try:
        simulation.run()
    except ALifeError as e:
        print(f"Simulation halted: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
