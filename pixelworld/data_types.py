"""
Data types mirroring the YAML configuration schema.

SimulationConfig is populated by loader.py from YAML files, or built
directly in code. Defaults come from constants.py.
"""

from dataclasses import dataclass, field, fields, asdict
from typing import Dict, Optional, Tuple, Any

from . import constants as C


# ============================================================================
# Simulation Configuration
# ============================================================================

@dataclass
class SimulationConfig:
    """Static engine configuration supplied at construction"""

    # World
    seed: int = 0
    grid_width: int = C.GRID_WIDTH
    grid_height: int = C.GRID_HEIGHT
    step_time_seconds: float = C.STEP_TIME_SECONDS

    # Logical stages
    stage_2_tick: int = C.STAGE_2_TICK
    stage_3_tick: int = C.STAGE_3_TICK
    stage_4_tick: int = C.STAGE_4_TICK

    # Particles
    particle_types: Tuple[str, ...] = C.PARTICLE_TYPES
    particle_spawn_prob: float = C.PARTICLE_SPAWN_PROB
    particle_decay_prob: float = C.PARTICLE_DECAY_PROB

    # Resources
    resource_max_energy: float = C.RESOURCE_MAX_ENERGY
    resource_grow_prob: float = C.RESOURCE_GROW_PROB
    resource_diffuse_prob: float = C.RESOURCE_DIFFUSE_PROB
    resource_energy_per_grow: float = C.RESOURCE_ENERGY_PER_GROW
    resource_max_age: int = C.RESOURCE_MAX_AGE
    resource_diffuse_min_energy: float = C.RESOURCE_DIFFUSE_MIN_ENERGY

    # Cells
    cell_base_absorb_rate: float = C.CELL_BASE_ABSORB_RATE
    cell_base_metabolism: float = C.CELL_BASE_METABOLISM
    cell_base_absorb: float = C.CELL_BASE_ABSORB
    cell_base_divide_threshold: float = C.CELL_BASE_DIVIDE_THRESHOLD
    cell_base_leak: float = C.CELL_BASE_LEAK
    cell_max_age: int = C.CELL_MAX_AGE
    cell_starve_ticks: int = C.CELL_STARVE_TICKS
    cell_speedup_age: int = C.CELL_SPEEDUP_AGE
    cell_speed_loss_age: int = C.CELL_SPEED_LOSS_AGE
    cell_mutated_epsilon: float = C.CELL_MUTATED_EPSILON

    # Predators
    predator_base_attack_gain: float = C.PREDATOR_BASE_ATTACK_GAIN
    predator_divide_threshold: float = C.PREDATOR_DIVIDE_THRESHOLD
    predator_max_age: int = C.PREDATOR_MAX_AGE
    predator_speed_loss_age: int = C.PREDATOR_SPEED_LOSS_AGE
    predator_starve_ticks: int = C.PREDATOR_STARVE_TICKS
    predator_required_kills: int = C.PREDATOR_REQUIRED_KILLS

    # Cell -> predator mutation
    predator_required_resource: float = C.PREDATOR_REQUIRED_RESOURCE
    predator_trigger_particles: Tuple[str, ...] = C.PREDATOR_TRIGGER_PARTICLES
    predator_trigger_min_seen: int = C.PREDATOR_TRIGGER_MIN_SEEN
    predator_mutation_prob: float = C.PREDATOR_MUTATION_PROB
    predator_metabolism_factor: float = C.PREDATOR_METABOLISM_FACTOR
    predator_mutant_attack_bonus: float = C.PREDATOR_MUTANT_ATTACK_BONUS

    # Unlocks
    avoidance_kill_threshold: int = C.AVOIDANCE_KILL_THRESHOLD
    speedup_death_threshold: int = C.SPEEDUP_DEATH_THRESHOLD
    counterattack_death_threshold: int = C.COUNTERATTACK_DEATH_THRESHOLD
    counterattack_radius: int = C.COUNTERATTACK_RADIUS
    counterattack_min_cells: int = C.COUNTERATTACK_MIN_CELLS
    counterattack_max_predators: int = C.COUNTERATTACK_MAX_PREDATORS
    counterattack_kill_cap: int = C.COUNTERATTACK_KILL_CAP

    # Genome mutation
    mutation_rate_stage3: float = C.MUTATION_RATE_STAGE3
    mutation_rate_stage4: float = C.MUTATION_RATE_STAGE4
    mutation_magnitude: float = C.MUTATION_MAGNITUDE
    genome_floor: float = C.GENOME_FLOOR

    # Rule pool
    rule_evolve_interval: int = C.RULE_EVOLVE_INTERVAL
    max_rules: int = C.MAX_RULES
    init_rule_count: int = C.INIT_RULE_COUNT
    rule_parent_pool: int = C.RULE_PARENT_POOL
    rule_crossover_attempts: int = C.RULE_CROSSOVER_ATTEMPTS
    rule_random_inject_prob: float = C.RULE_RANDOM_INJECT_PROB
    rule_random_inject_count: int = C.RULE_RANDOM_INJECT_COUNT
    rule_prob_jitter_chance: float = C.RULE_PROB_JITTER_CHANCE
    rule_prob_jitter: float = C.RULE_PROB_JITTER
    rule_outcome_reroll_chance: float = C.RULE_OUTCOME_REROLL_CHANCE
    rule_resource_energy_range: Tuple[int, int] = C.RULE_RESOURCE_ENERGY_RANGE
    rule_cell_energy_range: Tuple[int, int] = C.RULE_CELL_ENERGY_RANGE
    rule_resource_energy_default: int = C.RULE_RESOURCE_ENERGY_DEFAULT
    rule_resource_energy_floor: int = C.RULE_RESOURCE_ENERGY_FLOOR
    rule_cell_energy_default: int = C.RULE_CELL_ENERGY_DEFAULT
    rule_cell_energy_floor: int = C.RULE_CELL_ENERGY_FLOOR

    # Reporting
    tick_time_window: int = C.TICK_TIME_WINDOW
    snapshot_top_rules: int = C.SNAPSHOT_TOP_RULES

    def __post_init__(self):
        """Normalize YAML lists to tuples"""
        self.particle_types = tuple(self.particle_types)
        self.predator_trigger_particles = tuple(self.predator_trigger_particles)
        self.rule_resource_energy_range = tuple(self.rule_resource_energy_range)
        self.rule_cell_energy_range = tuple(self.rule_cell_energy_range)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to JSON/YAML-compatible dict (tuples become lists)"""
        return {
            key: list(value) if isinstance(value, tuple) else value
            for key, value in asdict(self).items()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SimulationConfig':
        """
        Build config from a (possibly partial) dict; missing keys keep defaults.

        Raises:
            TypeError: If data contains keys that are not config fields
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise TypeError(f"Unknown config keys: {', '.join(unknown)}")
        return cls(**data)


# ============================================================================
# Run Statistics
# ============================================================================

@dataclass
class RunStats:
    """Aggregate counters of the current run (zeroed on reset)"""
    max_cell_count: int = 0
    max_predator_count: int = 0
    first_predator_tick: Optional[int] = None
    first_predator_time: Optional[float] = None  # Simulated seconds
    max_cell_age: int = 0
    max_predator_age: int = 0
    cell_deaths: int = 0
    predator_deaths: int = 0


@dataclass
class RunSummary:
    """
    Summary of a finished run, captured just before reset.

    The only state carried across resets (never persisted to disk).
    """
    round_index: int
    total_ticks: int
    max_cell_count: int
    max_predator_count: int
    first_predator_tick: Optional[int]
    first_predator_time: Optional[float]
    max_cell_age: int
    max_predator_age: int
    predator_deaths_by_counterattack: int
    unlocks: Dict[str, bool] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
