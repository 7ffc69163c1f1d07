"""
Collision rule pool with genetic evolution.

Rules map an unordered particle-type pair to an outcome with a trigger
probability. The pool is an ordered list: match() walks it front to
back and returns the first rule whose probability roll succeeds, so
earlier rules have implicit priority. Matching is not fairness-balanced.

Every few hundred ticks evolve() breeds the most-used rules, appends
children and random newcomers, truncates overflow from the TAIL of the
list (not by fitness), and halves all usage counters.
"""

import numpy as np
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Union

from .data_types import SimulationConfig
from .rng import roll, random_choice, random_int, signed_unit


# ============================================================================
# Outcomes
# ============================================================================

@dataclass(frozen=True)
class SpawnResource:
    """Both colliding particles become resources holding `energy`"""
    energy: int

    name = 'resource'


@dataclass(frozen=True)
class TransformParticle:
    """Both colliding particles become particles of `new_type`"""
    new_type: str

    name = 'particle'


@dataclass(frozen=True)
class Nothing:
    """Both colliding particles vanish"""

    name = 'nothing'


@dataclass(frozen=True)
class SpawnCell:
    """Both colliding particles become base-genome cells holding `energy`"""
    energy: int

    name = 'cell'


Outcome = Union[SpawnResource, TransformParticle, Nothing, SpawnCell]

OUTCOME_NAMES = ('resource', 'particle', 'nothing', 'cell')


def outcome_to_dict(outcome: Outcome) -> dict:
    if isinstance(outcome, (SpawnResource, SpawnCell)):
        return {'type': outcome.name, 'energy': outcome.energy}
    elif isinstance(outcome, TransformParticle):
        return {'type': outcome.name, 'new_type': outcome.new_type}
    elif isinstance(outcome, Nothing):
        return {'type': outcome.name}
    raise TypeError(f"Not an outcome: {outcome!r}")


# ============================================================================
# Rules
# ============================================================================

@dataclass
class CollisionRule:
    """
    A probabilistic mapping from an unordered particle pair to an outcome.

    Attributes:
        rule_id: Unique, monotonically increasing within a run
        type_a: First particle type of the pair
        type_b: Second particle type of the pair (order irrelevant)
        outcome: What the two particles turn into
        probability: Trigger chance per matching collision, 0..1
        usage: Successful triggers since the last halving (fitness)
    """
    rule_id: int
    type_a: str
    type_b: str
    outcome: Outcome
    probability: float
    usage: int = 0

    def matches(self, t1: str, t2: str) -> bool:
        return (self.type_a == t1 and self.type_b == t2) or \
               (self.type_a == t2 and self.type_b == t1)

    def describe(self) -> str:
        """One-line summary, e.g. '#7 A + F -> cell   p=0.42  used:12'"""
        return (f"#{self.rule_id} {self.type_a} + {self.type_b} -> {self.outcome.name}"
                f"   p={self.probability:.2f}  used:{self.usage}")

    def to_dict(self) -> dict:
        return {
            'id': self.rule_id,
            'type_a': self.type_a,
            'type_b': self.type_b,
            'outcome': outcome_to_dict(self.outcome),
            'probability': float(self.probability),
            'usage': self.usage,
        }


def _energy_param(outcome: Outcome, default: int) -> int:
    """Energy carried by a parent outcome, or default if it has none."""
    if isinstance(outcome, (SpawnResource, SpawnCell)):
        return outcome.energy
    return default


class RulePool:
    """
    Ordered collection of collision rules.

    The pool never owns a random generator; every stochastic method takes
    the engine's rng handle explicitly.

    Args:
        config: Simulation configuration (particle alphabet, pool bounds)
    """

    def __init__(self, config: SimulationConfig):
        self.config = config
        self.rules: List[CollisionRule] = []
        self._next_id = 1

    def __len__(self) -> int:
        return len(self.rules)

    def __iter__(self) -> Iterator[CollisionRule]:
        return iter(self.rules)

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def reset(self, rng: np.random.Generator):
        """Replace the pool with a fresh random set and restart ids at 1."""
        self.rules = []
        self._next_id = 1
        for _ in range(self.config.init_rule_count):
            self.rules.append(self.random_rule(rng))

    def _take_id(self) -> int:
        rule_id = self._next_id
        self._next_id += 1
        return rule_id

    def add_rule(self, type_a: str, type_b: str, outcome: Outcome, probability: float) -> CollisionRule:
        """Append a rule at the lowest priority position."""
        rule = CollisionRule(
            rule_id=self._take_id(),
            type_a=type_a,
            type_b=type_b,
            outcome=outcome,
            probability=probability
        )
        self.rules.append(rule)
        return rule

    def random_outcome(self, rng: np.random.Generator) -> Outcome:
        name = random_choice(rng, OUTCOME_NAMES)

        if name == 'resource':
            return SpawnResource(energy=random_int(rng, *self.config.rule_resource_energy_range))
        elif name == 'particle':
            return TransformParticle(new_type=random_choice(rng, self.config.particle_types))
        elif name == 'cell':
            return SpawnCell(energy=random_int(rng, *self.config.rule_cell_energy_range))
        else:
            return Nothing()

    def random_rule(self, rng: np.random.Generator) -> CollisionRule:
        """Fully randomized rule (not added to the pool)."""
        types = self.config.particle_types
        type_a = random_choice(rng, types)
        type_b = random_choice(rng, types)
        outcome = self.random_outcome(rng)
        probability = float(rng.random())

        return CollisionRule(
            rule_id=self._take_id(),
            type_a=type_a,
            type_b=type_b,
            outcome=outcome,
            probability=probability
        )

    # ------------------------------------------------------------------
    # Matching
    # ------------------------------------------------------------------

    def match(self, t1: str, t2: str, rng: np.random.Generator) -> Optional[CollisionRule]:
        """
        First rule (in list order) matching the pair whose roll succeeds.

        Each matching rule draws one uniform sample; the first success
        increments that rule's usage and ends the scan.

        Returns:
            Triggered rule, or None if no matching rule fired
        """
        for rule in self.rules:
            if rule.matches(t1, t2):
                if roll(rng, rule.probability):
                    rule.usage += 1
                    return rule
        return None

    # ------------------------------------------------------------------
    # Evolution
    # ------------------------------------------------------------------

    def crossover(self, p1: CollisionRule, p2: CollisionRule, rng: np.random.Generator) -> CollisionRule:
        """
        Breed a child rule from two parents.

        Types and outcome kind are inherited 50/50; the probability is
        averaged; numeric outcome parameters are averaged and floored.
        Afterwards the probability may be jittered and the outcome may be
        re-randomized with small independent chances.
        """
        cfg = self.config

        type_a = p1.type_a if roll(rng, 0.5) else p2.type_a
        type_b = p1.type_b if roll(rng, 0.5) else p2.type_b
        kind = p1.outcome.name if roll(rng, 0.5) else p2.outcome.name
        probability = (p1.probability + p2.probability) / 2.0

        if kind == 'resource':
            e1 = _energy_param(p1.outcome, cfg.rule_resource_energy_default)
            e2 = _energy_param(p2.outcome, cfg.rule_resource_energy_default)
            outcome = SpawnResource(energy=max(cfg.rule_resource_energy_floor, (e1 + e2) // 2))
        elif kind == 'particle':
            source = p1.outcome if roll(rng, 0.5) else p2.outcome
            if isinstance(source, TransformParticle):
                new_type = source.new_type
            else:
                new_type = random_choice(rng, cfg.particle_types)
            outcome = TransformParticle(new_type=new_type)
        elif kind == 'cell':
            e1 = _energy_param(p1.outcome, cfg.rule_cell_energy_default)
            e2 = _energy_param(p2.outcome, cfg.rule_cell_energy_default)
            outcome = SpawnCell(energy=max(cfg.rule_cell_energy_floor, (e1 + e2) // 2))
        else:
            outcome = Nothing()

        if roll(rng, cfg.rule_prob_jitter_chance):
            probability = float(np.clip(probability + signed_unit(rng) * cfg.rule_prob_jitter, 0.0, 1.0))
        if roll(rng, cfg.rule_outcome_reroll_chance):
            outcome = self.random_outcome(rng)

        return CollisionRule(
            rule_id=self._take_id(),
            type_a=type_a,
            type_b=type_b,
            outcome=outcome,
            probability=probability
        )

    def evolve(self, rng: np.random.Generator) -> Dict[str, int]:
        """
        Run one generation of rule evolution.

        Steps:
            1. Sort rules by usage, descending (stable)
            2. Parents: top rule_parent_pool rules with usage > 0
            3. rule_crossover_attempts crossovers between two random parents
               (an attempt drawing the same rule twice is skipped)
            4. With rule_random_inject_prob, add random newcomers
            5. Append children
            6. Truncate from the tail down to max_rules
            7. Halve (floor) every usage counter

        Returns:
            Dict with parents, children, truncated, size (for logging)
        """
        cfg = self.config
        report = {'parents': 0, 'children': 0, 'truncated': 0, 'size': len(self.rules)}

        if not self.rules:
            return report

        self.rules.sort(key=lambda r: r.usage, reverse=True)

        parents = [r for r in self.rules[:cfg.rule_parent_pool] if r.usage > 0]

        children = []
        if len(parents) >= 2:
            for _ in range(cfg.rule_crossover_attempts):
                p1 = random_choice(rng, parents)
                p2 = random_choice(rng, parents)
                if p1 is not p2:
                    children.append(self.crossover(p1, p2, rng))

        if roll(rng, cfg.rule_random_inject_prob):
            for _ in range(cfg.rule_random_inject_count):
                children.append(self.random_rule(rng))

        self.rules.extend(children)

        truncated = max(0, len(self.rules) - cfg.max_rules)
        if truncated:
            # Tail truncation: newest children go first, not the least fit
            del self.rules[cfg.max_rules:]

        for rule in self.rules:
            rule.usage //= 2

        report.update(parents=len(parents), children=len(children),
                      truncated=truncated, size=len(self.rules))
        return report

    def top_rules(self, n: int) -> List[CollisionRule]:
        """Most-used rules for display; does not reorder the pool."""
        return sorted(self.rules, key=lambda r: r.usage, reverse=True)[:n]
