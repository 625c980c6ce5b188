import argparse
import logging
import statistics
from collections import defaultdict

from famsim.context import EngineContext
from famsim.family_tree import FamilyTreeExporter
from famsim.models import STAT_NAMES, GameState
from famsim.scenarios import SCENARIOS, new_game
from famsim.simulation import Simulation

# Toggle this to True if you want to collect & print stats of characters
STATS_ENABLED = True

# Toggle this to True if you want the family tree written to "Family Trees"
TREE_ENABLED = False


def setup_logging(level=logging.INFO):
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler()
        ]
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run a headless family life simulation.")
    parser.add_argument("--years", type=int, default=100, help="Years to simulate.")
    parser.add_argument("--seed", default=None, help="Seed for a reproducible run.")
    parser.add_argument("--scenario", default="classic", choices=sorted(SCENARIOS))
    parser.add_argument("--start-year", type=int, default=2024)
    parser.add_argument("--language", default=None)
    parser.add_argument("--tree", action="store_true", help="Render the family tree when the run ends.")
    parser.add_argument("--verbose", action="store_true")
    return parser.parse_args(argv)


def summarize(state: GameState):
    """Collect the figures printed at the end of a run."""
    members = list(state.family_members.values())
    living = [c for c in members if c.is_alive]

    # 1) Ages at death, for everyone who died
    death_ages = [c.age for c in members if not c.is_alive]

    # 2) Head count per generation
    by_generation = defaultdict(lambda: {"total": 0, "living": 0})
    for c in members:
        by_generation[c.generation]["total"] += 1
        if c.is_alive:
            by_generation[c.generation]["living"] += 1

    # 3) Mean of each stat over the living
    mean_stats = {}
    for stat in STAT_NAMES:
        values = [c.stats.get(stat) for c in living]
        mean_stats[stat] = statistics.mean(values) if values else None

    return {
        "year": state.current_date.year,
        "members": len(members),
        "living": len(living),
        "children_born": state.total_children_born,
        "generations": max((c.generation for c in members), default=0),
        "by_generation": dict(by_generation),
        "fund": state.family_fund,
        "businesses": len(state.businesses),
        "game_over": state.game_over_reason,
        "death_ages": death_ages,
        "mean_stats": mean_stats,
    }


def print_summary(summary):
    print("\n--- Family Summary ---")
    print(f"Final year:      {summary['year']}")
    print(f"Members:         {summary['members']} ({summary['living']} living)")
    print(f"Children born:   {summary['children_born']}")
    print(f"Generations:     {summary['generations']}")
    print(f"Family fund:     {summary['fund']}")
    print(f"Businesses:      {summary['businesses']}")
    print(f"Game over:       {summary['game_over'] or '-'}")

    print("\n--- Members by Generation ---")
    for gen in sorted(summary["by_generation"]):
        counts = summary["by_generation"][gen]
        print(f"Gen {gen}: total={counts['total']}  living={counts['living']}")

    ages = sorted(summary["death_ages"])
    print("\n--- Age at Death ---")
    if len(ages) >= 2:
        # statistics.quantiles returns [Q1, Q2, Q3] for n=4
        q1, med, q3 = statistics.quantiles(ages, n=4, method="inclusive")
        print(f"min/p25/median/p75/max: {ages[0]}/{q1}/{med}/{q3}/{ages[-1]}")
    elif ages:
        print(f"Only death at age {ages[0]}")
    else:
        print("Nobody has died yet")

    print("\n--- Mean Stats of the Living ---")
    for stat, value in summary["mean_stats"].items():
        print(f"{stat:<10} {'-' if value is None else f'{value:.1f}'}")


def run_main(argv=None):
    args = parse_args(argv)
    setup_logging(logging.DEBUG if args.verbose else logging.INFO)
    try:
        ctx = EngineContext.from_config(seed=args.seed)
    except (FileNotFoundError, ValueError) as e:
        logging.error(f"Failed to load configuration: {e}")
        return None

    state = new_game(ctx, args.scenario, args.start_year, args.language)
    simulation = Simulation(ctx, state)
    final_state = simulation.run(args.years)

    if STATS_ENABLED:
        print_summary(summarize(final_state))

    if TREE_ENABLED or args.tree:
        FamilyTreeExporter().render(final_state, filename=f"family_tree_{final_state.current_date.year}")

    return final_state


if __name__ == "__main__":
    run_main()
