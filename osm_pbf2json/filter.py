import logging
from dataclasses import dataclass
from typing import List, Mapping, Union

# Tag filter expressions
#
# Stating a key (`amenity`) picks all entities tagged with a key containing it.
# A specific value can be required with a `~` separator (`amenity~fountain`).
# Conditions on the same entity are combined with `+` (`amenity~fountain+tourism`)
# and alternatives are separated by `,` (`amenity~fountain+tourism,amenity~townhall`).
# An entity matching any group is selected.

logger = logging.getLogger(__name__)

GROUP_SEPARATOR = ","
CONDITION_SEPARATOR = "+"
VALUE_SEPARATOR = "~"


@dataclass(frozen=True)
class TagPresence:
    """Matches if any tag key contains `key`."""

    key: str

    def check(self, tags: Mapping[str, str]) -> bool:
        return any(self.key in k for k in tags)


@dataclass(frozen=True)
class ValueMatch:
    """Matches if a tag with exactly `key` has exactly `value`."""

    key: str
    value: str

    def check(self, tags: Mapping[str, str]) -> bool:
        return tags.get(self.key) == self.value


Condition = Union[TagPresence, ValueMatch]


@dataclass(frozen=True)
class Group:
    """Conditions which must all hold for the same entity."""

    conditions: tuple

    def check(self, tags: Mapping[str, str]) -> bool:
        # all() stops at the first failing condition
        return all(condition.check(tags) for condition in self.conditions)


def parse_condition(condition_str: str) -> Condition:
    key, separator, value = condition_str.partition(VALUE_SEPARATOR)
    if not separator:
        return TagPresence(condition_str)
    return ValueMatch(key, value)


def parse_group(group_str: str) -> Group:
    return Group(
        tuple(parse_condition(c) for c in group_str.split(CONDITION_SEPARATOR))
    )


def parse(expression: str) -> List[Group]:
    """
    Parse a filter expression into groups of conditions.
        Parsing never fails: anything that does not look like a value match
        becomes a TagPresence condition on the raw text.

    Args:
        expression: filter expression, e.g. "amenity~fountain+tourism,amenity~townhall"

    Returns:
        groups: list of Group, any of which selects an entity
    """
    groups = [parse_group(g) for g in expression.split(GROUP_SEPARATOR)]
    logger.debug(f"Parsed filter {expression!r} into {len(groups)} group(s)")
    return groups


def matches(tags: Mapping[str, str], groups: List[Group]) -> bool:
    """
    Check whether a tag set satisfies at least one group.

    Args:
        tags: the entity's tags as a mapping of key to value
        groups: parsed filter groups

    Returns:
        True if any group has all its conditions satisfied
    """
    return any(group.check(tags) for group in groups)
