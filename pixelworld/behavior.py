"""
Behavior state machines for cells and predators.

Each update_* function runs one entity's full turn for the current tick
against the engine passed in. Domain failures (starvation, depletion,
old age) are ordinary state transitions: the entity is removed or
transformed and the matching StageController event is registered.
Missing targets (no empty tile, no safe tile, no prey) just skip the
action.
"""

import math
import numpy as np
from typing import List, Optional, Tuple, TYPE_CHECKING

from .data_types import SimulationConfig
from .entity import Cell, CellGenome, Particle, Predator, PredatorGenome, Resource
from .grid import Coord, WorldGrid
from .rng import roll, random_choice, signed_unit

if TYPE_CHECKING:
    from .simulation import TickEngine


# ============================================================================
# Genomes
# ============================================================================

def base_cell_genome(config: SimulationConfig) -> CellGenome:
    return CellGenome(
        absorb_rate=config.cell_base_absorb_rate,
        metabolism=config.cell_base_metabolism,
        divide_threshold=config.cell_base_divide_threshold,
        leak_rate=config.cell_base_leak
    )


def new_cell(config: SimulationConfig, energy: float) -> Cell:
    """Fresh cell with the base genome (collision outcome)."""
    return Cell(genome=base_cell_genome(config), energy=float(energy))


def predator_from_cell(cell: Cell, config: SimulationConfig) -> Predator:
    """Predator replacing a mutated cell; keeps the cell's energy."""
    genome = PredatorGenome(
        metabolism=cell.genome.metabolism * config.predator_metabolism_factor,
        attack_gain=config.predator_base_attack_gain + config.predator_mutant_attack_bonus,
        divide_threshold=config.predator_divide_threshold
    )
    return Predator(genome=genome, energy=cell.energy)


def mutation_rate(stage: int, config: SimulationConfig) -> float:
    """Per-field mutation chance for the logical stage (0 below stage 3)."""
    if stage >= 4:
        return config.mutation_rate_stage4
    elif stage >= 3:
        return config.mutation_rate_stage3
    return 0.0


def _mutate_value(value: float, rate: float, config: SimulationConfig, rng: np.random.Generator) -> float:
    if rate > 0.0 and roll(rng, rate):
        factor = 1.0 + signed_unit(rng) * config.mutation_magnitude
        return max(config.genome_floor, value * factor)
    return value


def mutate_cell_genome(genome: CellGenome, stage: int, config: SimulationConfig,
                       rng: np.random.Generator) -> CellGenome:
    """Child genome: each field mutates independently at the stage rate."""
    rate = mutation_rate(stage, config)
    return CellGenome(**{
        name: _mutate_value(getattr(genome, name), rate, config, rng)
        for name in CellGenome.FIELDS
    })


def mutate_predator_genome(genome: PredatorGenome, stage: int, config: SimulationConfig,
                           rng: np.random.Generator) -> PredatorGenome:
    rate = mutation_rate(stage, config)
    return PredatorGenome(**{
        name: _mutate_value(getattr(genome, name), rate, config, rng)
        for name in PredatorGenome.FIELDS
    })


def half_energy(energy: float) -> float:
    """Share each side gets when an entity divides (floor of half)."""
    return float(math.floor(energy / 2.0))


# ============================================================================
# Shared helpers
# ============================================================================

def _random_empty_neighbor(grid: WorldGrid, x: int, y: int,
                           rng: np.random.Generator) -> Optional[Coord]:
    targets = grid.empty_neighbors(x, y)
    if not targets:
        return None
    return random_choice(rng, targets)


def _first_neighbor_of_type(grid: WorldGrid, x: int, y: int, entity_type) -> Optional[Coord]:
    for nx, ny in grid.neighbors8(x, y):
        if isinstance(grid.get(nx, ny), entity_type):
            return nx, ny
    return None


def _cell_died(sim: 'TickEngine'):
    sim.stages.register_cell_death()
    sim.stats.cell_deaths += 1


def _predator_died(sim: 'TickEngine'):
    sim.stages.register_predator_death()
    sim.stats.predator_deaths += 1


def _remove_cell(sim: 'TickEngine', x: int, y: int):
    sim.grid.clear(x, y)
    _cell_died(sim)


def _remove_predator(sim: 'TickEngine', x: int, y: int):
    sim.grid.clear(x, y)
    _predator_died(sim)


# ============================================================================
# Cells
# ============================================================================

def cell_move_steps(cell: Cell, sim: 'TickEngine') -> int:
    """Two moves in the mid-life window once speedup is unlocked, else one."""
    cfg = sim.config
    if sim.stages.speedup and cfg.cell_speedup_age < cell.age <= cfg.cell_speed_loss_age:
        return 2
    return 1


def _observe_particles(grid: WorldGrid, x: int, y: int, cell: Cell,
                       config: SimulationConfig) -> bool:
    """
    Record adjacent particle types into the cell's memory.

    Returns:
        True if any adjacent particle is a predator-trigger type
    """
    near_trigger = False
    for nx, ny in grid.neighbors8(x, y):
        neighbor = grid.get(nx, ny)
        if isinstance(neighbor, Particle):
            cell.seen_particle_types.add(neighbor.ptype)
            if neighbor.ptype in config.predator_trigger_particles:
                near_trigger = True
    return near_trigger


def _ready_for_predator_mutation(cell: Cell, near_trigger: bool, sim: 'TickEngine') -> bool:
    cfg = sim.config
    if sim.logical_stage < 4 or cell.predator_mutation_checked or not near_trigger:
        return False

    seen_triggers = sum(1 for ptype in cfg.predator_trigger_particles
                        if ptype in cell.seen_particle_types)
    return (seen_triggers >= cfg.predator_trigger_min_seen
            and cell.resource_eaten >= cfg.predator_required_resource)


def _absorb_resource(grid: WorldGrid, x: int, y: int, cell: Cell,
                     config: SimulationConfig) -> bool:
    """Feed from the first adjacent resource. Returns True if the cell ate."""
    target = _first_neighbor_of_type(grid, x, y, Resource)
    if target is None:
        return False

    resource = grid.get(*target)
    taken = min(cell.genome.absorb_rate * config.cell_base_absorb, resource.energy)
    cell.energy += taken
    resource.energy -= taken
    cell.resource_eaten += taken
    cell.ticks_since_food = 0

    if resource.energy <= 0:
        grid.clear(*target)
    return True


def _safe_tiles(grid: WorldGrid, x: int, y: int) -> List[Coord]:
    """Empty neighbours with no predator in their own 8-neighbourhood."""
    safe = []
    for nx, ny in grid.empty_neighbors(x, y):
        danger = any(isinstance(grid.get(ex, ey), Predator) for ex, ey in grid.neighbors8(nx, ny))
        if not danger:
            safe.append((nx, ny))
    return safe


def _wander(sim: 'TickEngine', x: int, y: int, cell: Cell) -> Tuple[int, int]:
    """Move up to the cell's allotment. Returns the final position."""
    grid, rng = sim.grid, sim.rng

    for _ in range(cell_move_steps(cell, sim)):
        if grid.get(x, y) is not cell:
            break

        target = None
        if sim.stages.avoidance:
            safe = _safe_tiles(grid, x, y)
            if safe:
                target = random_choice(rng, safe)
        if target is None:
            target = _random_empty_neighbor(grid, x, y, rng)

        if target is not None:
            grid.move((x, y), target)
            x, y = target

    return x, y


def _counterattack(sim: 'TickEngine', x: int, y: int):
    """
    Group defence: enough cells around a few predators remove them.

    Scans the square block of counterattack_radius around (x, y), the
    acting cell included. Fires only when 1..counterattack_max_predators
    predators are present and at least counterattack_min_cells cells.
    """
    cfg = sim.config
    grid = sim.grid

    cell_count = 0
    predators = []
    for nx, ny in grid.block(x, y, cfg.counterattack_radius):
        neighbor = grid.get(nx, ny)
        if isinstance(neighbor, Cell):
            cell_count += 1
        elif isinstance(neighbor, Predator):
            predators.append((nx, ny))

    if cell_count >= cfg.counterattack_min_cells and 0 < len(predators) <= cfg.counterattack_max_predators:
        for px, py in predators[:cfg.counterattack_kill_cap]:
            _remove_predator(sim, px, py)
            sim.stages.register_counterattack_kill()


def _divide_cell(sim: 'TickEngine', x: int, y: int, cell: Cell):
    if cell.energy < cell.genome.divide_threshold:
        return

    target = _random_empty_neighbor(sim.grid, x, y, sim.rng)
    if target is None:
        return

    share = half_energy(cell.energy)
    cell.energy = share
    genome = mutate_cell_genome(cell.genome, sim.logical_stage, sim.config, sim.rng)
    sim.grid.place(target[0], target[1], Cell(genome=genome, energy=share))


def update_cell(sim: 'TickEngine', x: int, y: int, cell: Cell):
    """
    Run one cell's turn.

    Order: depletion check, ageing, particle observation, predator
    mutation check, metabolism, feeding, movement (only if no food),
    counterattack, starvation, division.
    """
    grid = sim.grid
    cfg = sim.config

    if cell.energy <= 0:
        _remove_cell(sim, x, y)
        return

    cell.age += 1
    if cell.age > cfg.cell_max_age:
        grid.set(x, y, Resource(energy=float(math.floor(cell.energy))))
        _cell_died(sim)
        return
    sim.stats.max_cell_age = max(sim.stats.max_cell_age, cell.age)

    cell.ticks_since_food += 1

    near_trigger = _observe_particles(grid, x, y, cell, cfg)

    if _ready_for_predator_mutation(cell, near_trigger, sim):
        cell.predator_mutation_checked = True
        if roll(sim.rng, cfg.predator_mutation_prob):
            grid.set(x, y, predator_from_cell(cell, cfg))
            return

    # Metabolism: flat cost, then proportional leak
    cell.energy -= cell.genome.metabolism
    cell.energy -= cell.genome.leak_rate * cell.energy
    if cell.energy <= 0:
        _remove_cell(sim, x, y)
        return

    ate = _absorb_resource(grid, x, y, cell, cfg)
    if not ate:
        x, y = _wander(sim, x, y, cell)

    if sim.stages.counterattack:
        _counterattack(sim, x, y)

    if cell.ticks_since_food >= cfg.cell_starve_ticks:
        _remove_cell(sim, x, y)
        return

    _divide_cell(sim, x, y, cell)


# ============================================================================
# Predators
# ============================================================================

def predator_move_steps(predator: Predator, sim: 'TickEngine') -> int:
    """Two moves once speedup is unlocked, until the predator ages out of it."""
    if sim.stages.speedup and predator.age <= sim.config.predator_speed_loss_age:
        return 2
    return 1


def _divide_predator(sim: 'TickEngine', x: int, y: int, predator: Predator):
    if predator.energy < predator.genome.divide_threshold:
        return
    if predator.kills < sim.config.predator_required_kills:
        return

    target = _random_empty_neighbor(sim.grid, x, y, sim.rng)
    if target is None:
        return

    share = half_energy(predator.energy)
    predator.energy = share
    predator.kills = 0
    genome = mutate_predator_genome(predator.genome, sim.logical_stage, sim.config, sim.rng)
    sim.grid.place(target[0], target[1], Predator(genome=genome, energy=share))


def update_predator(sim: 'TickEngine', x: int, y: int, predator: Predator):
    """
    Run one predator's turn.

    Order: depletion check, ageing, metabolism, hunt-or-wander for each
    allotted move, starvation, division.
    """
    grid = sim.grid
    cfg = sim.config

    if predator.energy <= 0:
        _remove_predator(sim, x, y)
        return

    predator.age += 1
    if predator.age > cfg.predator_max_age:
        grid.set(x, y, Resource(energy=float(math.floor(predator.energy / 2.0))))
        _predator_died(sim)
        return
    sim.stats.max_predator_age = max(sim.stats.max_predator_age, predator.age)

    predator.ticks_since_kill += 1

    predator.energy -= predator.genome.metabolism
    if predator.energy <= 0:
        _remove_predator(sim, x, y)
        return

    for _ in range(predator_move_steps(predator, sim)):
        if grid.get(x, y) is not predator:
            return

        prey_pos = _first_neighbor_of_type(grid, x, y, Cell)
        if prey_pos is not None:
            prey = grid.clear(*prey_pos)
            predator.energy += predator.genome.attack_gain + prey.energy
            predator.kills += 1
            predator.ticks_since_kill = 0

            sim.stages.register_predator_kill()
            _cell_died(sim)

            grid.move((x, y), prey_pos)
            x, y = prey_pos
        else:
            target = _random_empty_neighbor(grid, x, y, sim.rng)
            if target is not None:
                grid.move((x, y), target)
                x, y = target

    if predator.ticks_since_kill >= cfg.predator_starve_ticks:
        _remove_predator(sim, x, y)
        return

    _divide_predator(sim, x, y, predator)
