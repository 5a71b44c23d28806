"""Pairwise allow-list of link pairs.

An entry states whether the distance between two links may be ignored.
Pairs without an entry must be queried.

Example
-------
>>> from skdistance.collision import AllowedCollisionMatrix
>>> from skdistance.collision import is_query_required
>>> acm = AllowedCollisionMatrix()
>>> acm.set_entry('base_link', 'arm_link', True)
>>> is_query_required('arm_link', 'base_link', acm)
False
>>> is_query_required('arm_link', 'hand_link', acm)
True
"""

from enum import Enum
import itertools


class AllowedCollision(Enum):
    NEVER = 0
    ALWAYS = 1


def _as_names(names):
    if isinstance(names, str):
        return [names]
    return list(names)


class AllowedCollisionMatrix(object):
    """Symmetric mapping from a pair of link names to AllowedCollision."""

    def __init__(self):
        self._entries = {}

    @staticmethod
    def _key(name_a, name_b):
        return frozenset((name_a, name_b))

    def __len__(self):
        return len(self._entries)

    def __contains__(self, pair):
        name_a, name_b = pair
        return self._key(name_a, name_b) in self._entries

    def set_entry(self, names_a, names_b, allowed):
        """Set entries for pairs of links.

        Parameters
        ----------
        names_a : str or list[str]
            link name(s).
        names_b : str or list[str]
            link name(s). Every pair of `names_a` x `names_b` is set,
            except pairs of a link with itself.
        allowed : bool or skdistance.collision.AllowedCollision
            True (ALWAYS) if the pair never needs to be queried.
        """
        if not isinstance(allowed, AllowedCollision):
            allowed = AllowedCollision.ALWAYS if allowed \
                else AllowedCollision.NEVER
        for name_a, name_b in itertools.product(
                _as_names(names_a), _as_names(names_b)):
            if name_a == name_b:
                continue
            self._entries[self._key(name_a, name_b)] = allowed

    def remove_entry(self, name_a, name_b):
        self._entries.pop(self._key(name_a, name_b), None)

    def get_entry(self, name_a, name_b):
        """Look up a pair.

        Returns
        -------
        allowed : None or skdistance.collision.AllowedCollision
            None if the matrix has no entry for the pair.
        """
        return self._entries.get(self._key(name_a, name_b))

    lookup = get_entry

    @classmethod
    def from_robot_model(cls, robot_model):
        """Create the default matrix of a kinematic model.

        Every pair of links with collision geometry is set to NEVER,
        then the model's disabled collision pairs are set to ALWAYS.

        Parameters
        ----------
        robot_model : skdistance.model.RobotModel
            kinematic model.

        Returns
        -------
        acm : skdistance.collision.AllowedCollisionMatrix
            default matrix.
        """
        acm = cls()
        names = [link.name
                 for link in robot_model.links_with_collision_geometry]
        acm.set_entry(names, names, False)
        for name_a, name_b in robot_model.disabled_collision_pairs:
            acm.set_entry(name_a, name_b, True)
        return acm


def is_query_required(name_a, name_b, acm):
    """Return whether the distance between two links must be queried.

    Parameters
    ----------
    name_a : str
        link name.
    name_b : str
        link name.
    acm : None or skdistance.collision.AllowedCollisionMatrix
        allow-list. Every pair is required if None.

    Returns
    -------
    required : bool
        False only if `acm` has an explicit ALWAYS entry for the pair.
    """
    if acm is None:
        return True
    return acm.get_entry(name_a, name_b) is not AllowedCollision.ALWAYS
