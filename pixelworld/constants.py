"""
Central configuration constants for pixel world simulation.

Defines default values, thresholds, and configuration parameters
used across multiple modules. SimulationConfig copies these as its
defaults; modules never read them directly at tick time.
"""

# ============================================================================
# World Grid
# ============================================================================

GRID_WIDTH = 80   # tiles
GRID_HEIGHT = 45  # tiles

# Simulated seconds per tick (used only for first-predator time reporting)
STEP_TIME_SECONDS = 0.05


# ============================================================================
# Logical Stage Thresholds (tick-driven, selects mutation rate)
# ============================================================================

STAGE_2_TICK = 200
STAGE_3_TICK = 800
STAGE_4_TICK = 1000


# ============================================================================
# Particles
# ============================================================================

PARTICLE_TYPES = ('A', 'B', 'C', 'D', 'E', 'F', 'G', 'H', 'I', 'J')
PARTICLE_SPAWN_PROB = 0.003  # Per empty tile per tick
PARTICLE_DECAY_PROB = 0.001  # Per particle per tick


# ============================================================================
# Resources
# ============================================================================

RESOURCE_MAX_ENERGY = 20.0
RESOURCE_GROW_PROB = 0.10
RESOURCE_DIFFUSE_PROB = 0.02
RESOURCE_ENERGY_PER_GROW = 1.0
RESOURCE_MAX_AGE = 700  # After this, resource decays into a particle
RESOURCE_DIFFUSE_MIN_ENERGY = 2.0  # Diffusion only when energy is above this


# ============================================================================
# Cells
# ============================================================================

CELL_BASE_ABSORB_RATE = 1.0
CELL_BASE_METABOLISM = 0.2
CELL_BASE_ABSORB = 3.0
CELL_BASE_DIVIDE_THRESHOLD = 30.0
CELL_BASE_LEAK = 0.05
CELL_MAX_AGE = 1000
CELL_STARVE_TICKS = 160  # Ticks without food until the cell dies

# Double-move window once speedup is unlocked: SPEEDUP_AGE < age <= SPEED_LOSS_AGE
CELL_SPEEDUP_AGE = 150
CELL_SPEED_LOSS_AGE = 800

# Genome distance from base above which a cell counts as mutated (display stage)
CELL_MUTATED_EPSILON = 1e-3


# ============================================================================
# Predators
# ============================================================================

PREDATOR_BASE_ATTACK_GAIN = 10.0
PREDATOR_DIVIDE_THRESHOLD = 50.0
PREDATOR_MAX_AGE = 1200
PREDATOR_SPEED_LOSS_AGE = 1000  # Speedup lost above this age
PREDATOR_STARVE_TICKS = 100     # Ticks without a kill until the predator dies
PREDATOR_REQUIRED_KILLS = 5     # Kills needed before a predator may divide


# ============================================================================
# Cell -> Predator Mutation
# ============================================================================

PREDATOR_REQUIRED_RESOURCE = 100.0
PREDATOR_TRIGGER_PARTICLES = ('A', 'B', 'F', 'J')
PREDATOR_TRIGGER_MIN_SEEN = 2        # Distinct trigger types a cell must have seen
PREDATOR_MUTATION_PROB = 1.0
PREDATOR_METABOLISM_FACTOR = 1.5     # Predator metabolism = cell metabolism * factor
PREDATOR_MUTANT_ATTACK_BONUS = 5.0   # Added to base attack gain


# ============================================================================
# Unlock Thresholds (stages 5 / 6 / 7)
# ============================================================================

AVOIDANCE_KILL_THRESHOLD = 200        # Total predator kills
SPEEDUP_DEATH_THRESHOLD = 80          # Predator deaths after avoidance
COUNTERATTACK_DEATH_THRESHOLD = 400   # Cell deaths after speedup

# Counterattack neighbourhood: (2*radius+1)^2 block centred on the cell
COUNTERATTACK_RADIUS = 2
COUNTERATTACK_MIN_CELLS = 4
COUNTERATTACK_MAX_PREDATORS = 2  # Only 1..N nearby predators trigger a counterattack
COUNTERATTACK_KILL_CAP = 2


# ============================================================================
# Genome Mutation
# ============================================================================

MUTATION_RATE_STAGE3 = 0.15
MUTATION_RATE_STAGE4 = 0.25
MUTATION_MAGNITUDE = 0.2
GENOME_FLOOR = 0.01


# ============================================================================
# Rule Pool Evolution
# ============================================================================

RULE_EVOLVE_INTERVAL = 500
MAX_RULES = 120
INIT_RULE_COUNT = 30
RULE_PARENT_POOL = 20
RULE_CROSSOVER_ATTEMPTS = 8
RULE_RANDOM_INJECT_PROB = 0.5
RULE_RANDOM_INJECT_COUNT = 2
RULE_PROB_JITTER_CHANCE = 0.2
RULE_PROB_JITTER = 0.3
RULE_OUTCOME_REROLL_CHANCE = 0.1

# Outcome parameter ranges (inclusive) for freshly randomized rules
RULE_RESOURCE_ENERGY_RANGE = (1, 12)
RULE_CELL_ENERGY_RANGE = (6, 18)

# Crossover fallbacks / floors for numeric outcome parameters
RULE_RESOURCE_ENERGY_DEFAULT = 5
RULE_RESOURCE_ENERGY_FLOOR = 1
RULE_CELL_ENERGY_DEFAULT = 10
RULE_CELL_ENERGY_FLOOR = 3


# ============================================================================
# Reporting
# ============================================================================

# Tick timing window for rolling average
TICK_TIME_WINDOW = 100

# Number of rules listed in snapshots (most used first)
SNAPSHOT_TOP_RULES = 20
