"""
Stage classification and one-way unlock flags.

Two notions of stage coexist:

- Logical stage (1-4) depends only on the tick count and selects the
  genome mutation rate and the cell -> predator mutation gate.
- Display stage (1-7) is derived from what currently lives on the grid,
  overridden to 5/6/7 once the corresponding unlock flag is set.

Unlock flags are monotone: register_* methods can only flip them from
False to True. Only reset() (full engine reset) clears them.
"""

from typing import Dict

from .data_types import SimulationConfig
from .entity import Cell, Predator
from .grid import WorldGrid


STAGE_NAMES = {
    1: "Stage 1: Particles + resources (matter appears)",
    2: "Stage 2: Collisions create cells",
    3: "Stage 3: Cells evolve (parameter mutation)",
    4: "Stage 4: Predators appear and form a food chain",
    5: "Stage 5: Cells learn to avoid predators",
    6: "Stage 6: Predators gain speed; long-lived cells may also speed up",
    7: "Stage 7: Cells can group counterattack",
}


class StageController:
    """
    Owns unlock flags and the counters that drive them.

    Args:
        config: Simulation configuration (thresholds, base cell genome)

    Attributes:
        avoidance: Stage 5 - cells steer away from predators
        speedup: Stage 6 - predators (and mid-life cells) move twice per tick
        counterattack: Stage 7 - cell groups can remove nearby predators
        total_predator_kills: Cells eaten by predators this run
        predator_deaths_after_avoidance: Counted only while avoidance and not speedup
        cell_deaths_after_speedup: Counted only while speedup and not counterattack
        counterattack_kills: Predators removed by counterattacks this run
    """

    def __init__(self, config: SimulationConfig):
        self.config = config
        self.reset()

    def reset(self):
        self.avoidance = False
        self.speedup = False
        self.counterattack = False

        self.total_predator_kills = 0
        self.predator_deaths_after_avoidance = 0
        self.cell_deaths_after_speedup = 0
        self.counterattack_kills = 0

    # ------------------------------------------------------------------
    # Event registration
    # ------------------------------------------------------------------

    def register_predator_kill(self):
        """A predator ate a cell."""
        self.total_predator_kills += 1
        if not self.avoidance and self.total_predator_kills >= self.config.avoidance_kill_threshold:
            self.avoidance = True
            print(f"[STAGE] Avoidance unlocked after {self.total_predator_kills} predator kills")

    def register_predator_death(self):
        """A predator died (any cause)."""
        if self.avoidance and not self.speedup:
            self.predator_deaths_after_avoidance += 1
            if self.predator_deaths_after_avoidance >= self.config.speedup_death_threshold:
                self.speedup = True
                print(f"[STAGE] Speedup unlocked after {self.predator_deaths_after_avoidance} "
                      f"predator deaths")

    def register_cell_death(self):
        """A cell died (any cause)."""
        if self.speedup and not self.counterattack:
            self.cell_deaths_after_speedup += 1
            if self.cell_deaths_after_speedup >= self.config.counterattack_death_threshold:
                self.counterattack = True
                print(f"[STAGE] Counterattack unlocked after {self.cell_deaths_after_speedup} "
                      f"cell deaths")

    def register_counterattack_kill(self):
        """A predator was removed by a cell counterattack (tally only)."""
        self.counterattack_kills += 1

    # ------------------------------------------------------------------
    # Classification
    # ------------------------------------------------------------------

    def logical_stage(self, tick_count: int) -> int:
        cfg = self.config
        if tick_count < cfg.stage_2_tick:
            return 1
        elif tick_count < cfg.stage_3_tick:
            return 2
        elif tick_count < cfg.stage_4_tick:
            return 3
        else:
            return 4

    def is_cell_mutated(self, cell: Cell) -> bool:
        """True if any genome field drifted away from the base genome."""
        cfg = self.config
        g = cell.genome
        eps = cfg.cell_mutated_epsilon
        return (abs(g.absorb_rate - cfg.cell_base_absorb_rate) > eps
                or abs(g.metabolism - cfg.cell_base_metabolism) > eps
                or abs(g.divide_threshold - cfg.cell_base_divide_threshold) > eps
                or abs(g.leak_rate - cfg.cell_base_leak) > eps)

    def display_stage(self, grid: WorldGrid) -> int:
        """
        Stage shown to observers: world contents, then unlock overrides.

        Returns:
            Stage number 1-7
        """
        if self.counterattack:
            return 7
        if self.speedup:
            return 6
        if self.avoidance:
            return 5

        has_cells = False
        has_mutated_cells = False
        has_predators = False

        for _, _, entity in grid.occupied():
            if isinstance(entity, Cell):
                has_cells = True
                if not has_mutated_cells and self.is_cell_mutated(entity):
                    has_mutated_cells = True
            elif isinstance(entity, Predator):
                has_predators = True

        if not has_cells and not has_predators:
            return 1
        elif has_cells and not has_mutated_cells and not has_predators:
            return 2
        elif has_cells and has_mutated_cells and not has_predators:
            return 3
        else:
            return 4

    def unlocks(self) -> Dict[str, bool]:
        return {
            'avoidance': self.avoidance,
            'speedup': self.speedup,
            'counterattack': self.counterattack,
        }

    def counters(self) -> Dict[str, int]:
        return {
            'total_predator_kills': self.total_predator_kills,
            'predator_deaths_after_avoidance': self.predator_deaths_after_avoidance,
            'cell_deaths_after_speedup': self.cell_deaths_after_speedup,
            'counterattack_kills': self.counterattack_kills,
        }


def stage_name(stage: int) -> str:
    return STAGE_NAMES.get(stage, "Unknown stage")
