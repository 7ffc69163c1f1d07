"""
Pixel world simulation kernel.

Main engine class that owns the grid, the rule pool and the stage
controller, and advances the world one tick at a time in a fixed phase
order. Renderers and run supervisors only read snapshots and call
step() / reset().
"""

import math
import time
import numpy as np
from typing import Dict, Iterable, List, Optional, Tuple

from .behavior import new_cell, update_cell, update_predator
from .data_types import RunStats, RunSummary, SimulationConfig
from .entity import Cell, EntityKind, Particle, Predator, Resource, entity_from_dict
from .grid import WorldGrid
from .rng import make_rng, make_seed, random_choice, roll
from .rules import Nothing, Outcome, RulePool, SpawnCell, SpawnResource, TransformParticle
from .stage import StageController, stage_name


class TickEngine:
    """
    Discrete-time engine for the rule-evolving pixel world.

    Single-threaded: every phase mutates the grid synchronously and each
    behavior call runs to completion before the next entity acts. All
    randomness comes from self.rng, seeded from (config.seed, round_index),
    so identical seeds and initial grids give identical runs.

    Args:
        config: Static configuration (defaults if omitted)
        init_rules: If False, start with an empty rule pool (for scripted tests)
    """

    def __init__(self, config: Optional[SimulationConfig] = None, init_rules: bool = True):
        self.config: SimulationConfig = config if config is not None else SimulationConfig()

        self.grid = WorldGrid(self.config.grid_width, self.config.grid_height)
        self.rules = RulePool(self.config)
        self.stages = StageController(self.config)
        self.stats = RunStats()

        self.tick_count: int = 0
        self.round_index: int = 1
        self.previous_run: Optional[RunSummary] = None
        self.rng: np.random.Generator = make_rng(make_seed(self.config.seed, self.round_index))

        # Performance metrics
        self._tick_times: List[float] = []
        self._tick_time_sum: float = 0.0
        self._tick_time_window: int = self.config.tick_time_window

        if init_rules:
            self.rules.reset(self.rng)

        print(f"[OK] Engine initialized: {self.grid.width}x{self.grid.height} grid, "
              f"{len(self.rules)} rules, seed={self.config.seed}")

    # ------------------------------------------------------------------
    # Stage helpers
    # ------------------------------------------------------------------

    @property
    def logical_stage(self) -> int:
        return self.stages.logical_stage(self.tick_count)

    def display_stage(self) -> int:
        return self.stages.display_stage(self.grid)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def step(self):
        """
        Advance the world by one tick.

        PHASE ORDER (fixed):
            1. Spawn particles on empty tiles
            2. Decay particles
            3. Resolve particle collisions (outcomes applied after the scan)
            4. Update resources (ageing, growth, diffusion)
            5. Update life (cells and predators, shuffled order)
            6. Bookkeeping (peaks, first predator, periodic rule evolution)
        """
        start_time = time.perf_counter()

        self.tick_count += 1

        self.spawn_particles()
        self.decay_particles()
        self.resolve_collisions()
        self.update_resources()
        self.update_life()
        self._bookkeeping()

        elapsed = time.perf_counter() - start_time
        self._record_tick_time(elapsed)

    # ============================================================
    # PHASE 1: SPAWN PARTICLES
    # ============================================================

    def spawn_particles(self):
        """Every empty tile independently rolls the spawn probability."""
        cfg = self.config
        kinds = self.grid.kind_array()
        draws = self.rng.random(kinds.shape)

        ys, xs = np.nonzero((kinds == EntityKind.EMPTY) & (draws < cfg.particle_spawn_prob))
        if len(ys) == 0:
            return

        type_indices = self.rng.integers(len(cfg.particle_types), size=len(ys))
        for x, y, t in zip(xs.tolist(), ys.tolist(), type_indices.tolist()):
            self.grid.place(x, y, Particle(ptype=cfg.particle_types[t]))

    # ============================================================
    # PHASE 2: DECAY PARTICLES
    # ============================================================

    def decay_particles(self):
        """Every particle independently rolls the decay probability."""
        kinds = self.grid.kind_array()
        draws = self.rng.random(kinds.shape)

        ys, xs = np.nonzero((kinds == EntityKind.PARTICLE) & (draws < self.config.particle_decay_prob))
        for x, y in zip(xs.tolist(), ys.tolist()):
            self.grid.clear(x, y)

    # ============================================================
    # PHASE 3: COLLISIONS
    # ============================================================

    def resolve_collisions(self):
        """
        Pair adjacent particles and apply triggered rule outcomes.

        Single row-major pass. Each unprocessed particle tries its forward
        neighbours (each unordered pair visited once) and stops at the
        first neighbour whose rule fires. Outcomes are queued and applied
        after the scan so no tile is read in a half-updated state.
        """
        grid = self.grid
        processed = np.zeros((grid.height, grid.width), dtype=bool)
        updates: List[Tuple[int, int, Outcome]] = []

        for x, y, entity in grid.scan():
            if not isinstance(entity, Particle) or processed[y, x]:
                continue

            for nx, ny in grid.neighbors4(x, y):
                if processed[ny, nx]:
                    continue
                neighbor = grid.get(nx, ny)
                if not isinstance(neighbor, Particle):
                    continue

                rule = self.rules.match(entity.ptype, neighbor.ptype, self.rng)
                if rule is not None:
                    processed[y, x] = True
                    processed[ny, nx] = True
                    updates.append((x, y, rule.outcome))
                    updates.append((nx, ny, rule.outcome))
                    break

        for x, y, outcome in updates:
            self._apply_outcome(x, y, outcome)

    def _apply_outcome(self, x: int, y: int, outcome: Outcome):
        if isinstance(outcome, SpawnResource):
            self.grid.set(x, y, Resource(energy=float(outcome.energy)))
        elif isinstance(outcome, TransformParticle):
            self.grid.set(x, y, Particle(ptype=outcome.new_type))
        elif isinstance(outcome, Nothing):
            self.grid.set(x, y, None)
        elif isinstance(outcome, SpawnCell):
            self.grid.set(x, y, new_cell(self.config, outcome.energy))
        else:
            raise TypeError(f"Unknown rule outcome: {outcome!r}")

    # ============================================================
    # PHASE 4: RESOURCES
    # ============================================================

    def update_resources(self):
        """
        Age, grow and diffuse every resource.

        Past max age a resource decays into a random particle. Diffusion
        moves floor(energy / 2) into a random empty neighbour; targets are
        reserved so two splits never land on one tile, and the new
        resources are placed after the scan (they do not age this tick).
        """
        cfg = self.config
        grid = self.grid
        rng = self.rng

        pending: List[Tuple[int, int, float]] = []
        reserved = set()

        for x, y, entity in grid.occupied():
            if not isinstance(entity, Resource):
                continue

            entity.age += 1
            if entity.age > cfg.resource_max_age:
                grid.set(x, y, Particle(ptype=random_choice(rng, cfg.particle_types)))
                continue

            if roll(rng, cfg.resource_grow_prob):
                entity.energy = min(cfg.resource_max_energy, entity.energy + cfg.resource_energy_per_grow)

            if roll(rng, cfg.resource_diffuse_prob) and entity.energy > cfg.resource_diffuse_min_energy:
                targets = [pos for pos in grid.empty_neighbors(x, y) if pos not in reserved]
                if targets:
                    target = random_choice(rng, targets)
                    split = float(math.floor(entity.energy / 2.0))
                    entity.energy -= split
                    reserved.add(target)
                    pending.append((target[0], target[1], split))

        for x, y, energy in pending:
            grid.place(x, y, Resource(energy=energy))

    # ============================================================
    # PHASE 5: LIFE
    # ============================================================

    def update_life(self):
        """
        Run every cell and predator once, in shuffled order.

        Positions are collected up front and shuffled to remove positional
        bias. A position is skipped if the entity collected there is no
        longer on it (eaten, counterattacked, or replaced by a mover).
        """
        actors = [(x, y, entity) for x, y, entity in self.grid.occupied()
                  if isinstance(entity, (Cell, Predator))]

        for i in self.rng.permutation(len(actors)).tolist():
            x, y, entity = actors[i]
            if self.grid.get(x, y) is not entity:
                continue

            if isinstance(entity, Cell):
                update_cell(self, x, y, entity)
            else:
                update_predator(self, x, y, entity)

    # ============================================================
    # PHASE 6: BOOKKEEPING
    # ============================================================

    def _bookkeeping(self):
        counts = self.grid.count_by_kind()
        cells = counts[EntityKind.CELL]
        predators = counts[EntityKind.PREDATOR]

        self.stats.max_cell_count = max(self.stats.max_cell_count, cells)
        self.stats.max_predator_count = max(self.stats.max_predator_count, predators)

        if predators > 0 and self.stats.first_predator_tick is None:
            self.stats.first_predator_tick = self.tick_count
            self.stats.first_predator_time = self.tick_count * self.config.step_time_seconds
            print(f"[STAGE] First predator at tick {self.tick_count}")

        if self.tick_count % self.config.rule_evolve_interval == 0:
            report = self.rules.evolve(self.rng)
            print(f"[RULES] Tick {self.tick_count}: parents={report['parents']} "
                  f"children={report['children']} truncated={report['truncated']} "
                  f"pool={report['size']}")

    # ------------------------------------------------------------------
    # Run boundary
    # ------------------------------------------------------------------

    def run_summary(self) -> RunSummary:
        """Aggregate counters of the current run."""
        return RunSummary(
            round_index=self.round_index,
            total_ticks=self.tick_count,
            max_cell_count=self.stats.max_cell_count,
            max_predator_count=self.stats.max_predator_count,
            first_predator_tick=self.stats.first_predator_tick,
            first_predator_time=self.stats.first_predator_time,
            max_cell_age=self.stats.max_cell_age,
            max_predator_age=self.stats.max_predator_age,
            predator_deaths_by_counterattack=self.stages.counterattack_kills,
            unlocks=self.stages.unlocks()
        )

    def reset(self) -> RunSummary:
        """
        End the current run and start the next one.

        Captures the run summary into previous_run (the only state that
        survives), then clears the grid, zeroes all counters, unlock flags
        and the tick counter, reseeds the generator for the next round and
        rebuilds the initial random rule pool.

        Returns:
            Summary of the run that just ended
        """
        summary = self.run_summary()
        self.previous_run = summary

        self.round_index += 1
        self.tick_count = 0
        self.stats = RunStats()
        self.stages.reset()
        self.grid.clear_all()

        self.rng = make_rng(make_seed(self.config.seed, self.round_index))
        self.rules.reset(self.rng)

        self._tick_times = []
        self._tick_time_sum = 0.0

        print(f"[OK] Run {summary.round_index} ended after {summary.total_ticks} ticks; "
              f"starting run {self.round_index}")
        return summary

    def populate(self, records: Iterable[dict]):
        """
        Place entities from snapshot-style records onto empty tiles.

        Args:
            records: Dicts with 'x', 'y' and an entity to_dict() payload
        """
        for record in records:
            self.grid.place(record['x'], record['y'], entity_from_dict(record))

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def population(self) -> Dict[str, int]:
        counts = self.grid.count_by_kind()
        return {kind.name.lower(): count for kind, count in counts.items()}

    def get_snapshot(self) -> dict:
        """
        Get complete read-only simulation state snapshot.

        Safe to call between ticks only.

        Returns:
            Dict with counters, unlock flags, top rules, per-tile kinds
            ('kinds', int8 array) and occupied-tile records ('entities')
        """
        display = self.display_stage()
        counters = self.stages.counters()
        counters['cell_deaths'] = self.stats.cell_deaths
        counters['predator_deaths'] = self.stats.predator_deaths

        return {
            'round_index': self.round_index,
            'tick_count': self.tick_count,
            'logical_stage': self.logical_stage,
            'display_stage': display,
            'stage_name': stage_name(display),
            'population': self.population(),
            'peaks': {
                'cell': self.stats.max_cell_count,
                'predator': self.stats.max_predator_count,
            },
            'first_predator_tick': self.stats.first_predator_tick,
            'first_predator_time': self.stats.first_predator_time,
            'max_age': {
                'cell': self.stats.max_cell_age,
                'predator': self.stats.max_predator_age,
            },
            'unlocks': self.stages.unlocks(),
            'counters': counters,
            'rule_count': len(self.rules),
            'rules': [r.to_dict() for r in self.rules.top_rules(self.config.snapshot_top_rules)],
            'kinds': self.grid.kind_array(),
            'entities': [dict(x=x, y=y, **entity.to_dict()) for x, y, entity in self.grid.occupied()],
            'previous_run': self.previous_run.to_dict() if self.previous_run else None,
            'timing': self.get_tick_stats(),
        }

    def get_tick_stats(self) -> dict:
        """
        Get current tick timing statistics.

        Returns:
            Dict with tick_count, avg_tick_time_ms, last_tick_time_ms
        """
        if not self._tick_times:
            return {
                'tick_count': self.tick_count,
                'avg_tick_time_ms': 0.0,
                'last_tick_time_ms': 0.0
            }

        avg_time = self._tick_time_sum / len(self._tick_times)
        last_time = self._tick_times[-1]

        return {
            'tick_count': self.tick_count,
            'avg_tick_time_ms': avg_time * 1000.0,
            'last_tick_time_ms': last_time * 1000.0
        }

    def _record_tick_time(self, elapsed: float):
        """
        Record tick timing for rolling average.

        Args:
            elapsed: Tick time in seconds
        """
        self._tick_times.append(elapsed)
        self._tick_time_sum += elapsed

        # Maintain rolling window
        if len(self._tick_times) > self._tick_time_window:
            removed = self._tick_times.pop(0)
            self._tick_time_sum -= removed

    def print_tick_summary(self):
        """Print tick summary to console (lightweight monitoring)"""
        stats = self.get_tick_stats()
        pop = self.population()
        print(f"Tick {stats['tick_count']:5d} | "
              f"Avg: {stats['avg_tick_time_ms']:6.3f} ms | "
              f"Stage: {self.display_stage()} | "
              f"P:{pop['particle']} R:{pop['resource']} C:{pop['cell']} X:{pop['predator']}")

    def print_run_summary(self, summary: Optional[RunSummary] = None):
        """Print a run summary (defaults to the current run)"""
        if summary is None:
            summary = self.run_summary()

        if summary.first_predator_tick is not None:
            first = f"tick {summary.first_predator_tick} ({summary.first_predator_time:.1f}s)"
        else:
            first = "not yet"

        print(f"\n[Run {summary.round_index}] {summary.total_ticks} ticks")
        print(f"  Peak cells:     {summary.max_cell_count}")
        print(f"  Peak predators: {summary.max_predator_count}")
        print(f"  First predator: {first}")
        print(f"  Max lifetime:   cell {summary.max_cell_age}, predator {summary.max_predator_age}")
        print(f"  Counterattack kills: {summary.predator_deaths_by_counterattack}")
