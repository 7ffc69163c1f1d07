"""
Entity runtime representation.

Every occupied grid tile holds exactly one entity, one of four variants:
Particle, Resource, Cell, Predator. The variants form a closed set;
code that inspects a tile checks them exhaustively with isinstance and
treats anything else as a programming error.
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Optional, Set, Union


class EntityKind(IntEnum):
    """Kind codes used by snapshots and numpy kind arrays (0 = empty tile)"""
    EMPTY = 0
    PARTICLE = 1
    RESOURCE = 2
    CELL = 3
    PREDATOR = 4


# ============================================================================
# Genomes
# ============================================================================

@dataclass
class CellGenome:
    """Mutable behavior parameters of a cell (all strictly positive)"""
    absorb_rate: float
    metabolism: float
    divide_threshold: float
    leak_rate: float

    FIELDS = ('absorb_rate', 'metabolism', 'divide_threshold', 'leak_rate')

    def to_dict(self) -> dict:
        return {name: float(getattr(self, name)) for name in self.FIELDS}


@dataclass
class PredatorGenome:
    """Mutable behavior parameters of a predator (all strictly positive)"""
    metabolism: float
    attack_gain: float
    divide_threshold: float

    FIELDS = ('metabolism', 'attack_gain', 'divide_threshold')

    def to_dict(self) -> dict:
        return {name: float(getattr(self, name)) for name in self.FIELDS}


# ============================================================================
# Entity Variants
# ============================================================================

@dataclass
class Particle:
    """
    Basic matter. Carries only its symbolic type.

    Attributes:
        ptype: One symbol of the particle alphabet (e.g. 'A')
    """
    ptype: str

    kind = EntityKind.PARTICLE

    def to_dict(self) -> dict:
        return {'kind': 'particle', 'ptype': self.ptype}


@dataclass
class Resource:
    """
    Energy field that cells absorb.

    Attributes:
        energy: Stored energy, 0..RESOURCE_MAX_ENERGY
        age: Ticks since creation (decays into a particle past max age)
    """
    energy: float
    age: int = 0

    kind = EntityKind.RESOURCE

    def to_dict(self) -> dict:
        return {'kind': 'resource', 'energy': float(self.energy), 'age': self.age}


@dataclass
class Cell:
    """
    Living cell created by collisions or division.

    Attributes:
        genome: Mutable behavior parameters
        energy: Current energy (removed at or below zero)
        age: Ticks lived
        resource_eaten: Cumulative energy absorbed from resources
        seen_particle_types: Particle symbols ever observed in the 8-neighbourhood
        predator_mutation_checked: One-shot flag, set when the predator check ran
        ticks_since_food: Ticks since last absorption (starvation counter)
    """
    genome: CellGenome
    energy: float
    age: int = 0
    resource_eaten: float = 0.0
    seen_particle_types: Set[str] = field(default_factory=set)
    predator_mutation_checked: bool = False
    ticks_since_food: int = 0

    kind = EntityKind.CELL

    def to_dict(self) -> dict:
        return {
            'kind': 'cell',
            'energy': float(self.energy),
            'age': self.age,
            'resource_eaten': float(self.resource_eaten),
            'seen_particle_types': sorted(self.seen_particle_types),
            'predator_mutation_checked': self.predator_mutation_checked,
            'ticks_since_food': self.ticks_since_food,
            'genome': self.genome.to_dict(),
        }


@dataclass
class Predator:
    """
    Hunter mutated from a cell; eats only cells.

    Attributes:
        genome: Mutable behavior parameters
        energy: Current energy (removed at or below zero)
        age: Ticks lived
        kills: Cells eaten since last division
        ticks_since_kill: Ticks since last kill (starvation counter)
    """
    genome: PredatorGenome
    energy: float
    age: int = 0
    kills: int = 0
    ticks_since_kill: int = 0

    kind = EntityKind.PREDATOR

    def to_dict(self) -> dict:
        return {
            'kind': 'predator',
            'energy': float(self.energy),
            'age': self.age,
            'kills': self.kills,
            'ticks_since_kill': self.ticks_since_kill,
            'genome': self.genome.to_dict(),
        }


Entity = Union[Particle, Resource, Cell, Predator]

ENTITY_TYPES = (Particle, Resource, Cell, Predator)


def kind_of(entity: Optional[Entity]) -> EntityKind:
    """
    Map a tile's content to its kind code.

    Raises:
        TypeError: If the object is not one of the four entity variants
    """
    if entity is None:
        return EntityKind.EMPTY
    if isinstance(entity, ENTITY_TYPES):
        return entity.kind
    raise TypeError(f"Not an entity: {entity!r}")


def entity_from_dict(data: dict) -> Entity:
    """
    Deserialize an entity record produced by to_dict().

    Args:
        data: Dict with a 'kind' key and the variant's fields

    Returns:
        Entity instance
    """
    kind = data['kind']

    if kind == 'particle':
        return Particle(ptype=data['ptype'])

    elif kind == 'resource':
        return Resource(energy=float(data['energy']), age=int(data.get('age', 0)))

    elif kind == 'cell':
        return Cell(
            genome=CellGenome(**data['genome']),
            energy=float(data['energy']),
            age=int(data.get('age', 0)),
            resource_eaten=float(data.get('resource_eaten', 0.0)),
            seen_particle_types=set(data.get('seen_particle_types', [])),
            predator_mutation_checked=bool(data.get('predator_mutation_checked', False)),
            ticks_since_food=int(data.get('ticks_since_food', 0))
        )

    elif kind == 'predator':
        return Predator(
            genome=PredatorGenome(**data['genome']),
            energy=float(data['energy']),
            age=int(data.get('age', 0)),
            kills=int(data.get('kills', 0)),
            ticks_since_kill=int(data.get('ticks_since_kill', 0))
        )

    else:
        raise ValueError(f"Unknown entity kind: {kind!r}")
