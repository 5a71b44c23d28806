"""Classification of collision-bearing links by mobility.

- STATIC links are rigidly attached to the root link through fixed joints.
- ACTIVE links are moved by a joint group and need fast queries.
- DYNAMIC links carry collision geometry but are neither of the above.
"""

from dataclasses import dataclass
from dataclasses import field
from enum import IntEnum
from logging import getLogger
from typing import List

import numpy as np


logger = getLogger(__name__)


class LinkType(IntEnum):
    STATIC = 0
    ACTIVE = 1
    DYNAMIC = 2


@dataclass
class StaticLink:
    """Static link and its fixed transform from the root link frame."""
    name: str
    transform: np.ndarray


@dataclass
class LinkClassification:
    static: List[StaticLink] = field(default_factory=list)
    active: List[str] = field(default_factory=list)
    dynamic: List[str] = field(default_factory=list)

    @property
    def static_names(self):
        return [s.name for s in self.static]

    def names(self, link_type):
        if link_type == LinkType.STATIC:
            return self.static_names
        elif link_type == LinkType.ACTIVE:
            return list(self.active)
        return list(self.dynamic)

    def link_type(self, name):
        """Return LinkType of a link.

        Raises
        ------
        KeyError
            If the link has no collision geometry or is unknown.
        """
        for link_type in LinkType:
            if name in self.names(link_type):
                return link_type
        raise KeyError('link {} is not classified'.format(name))


def classify_links(robot_model):
    """Partition collision-bearing links into static, active and dynamic.

    Fixed attachments are walked from the root link with an explicit
    worklist of (link, accumulated transform) pairs. Members of joint
    groups that are not static become active. Remaining links become
    dynamic.

    Parameters
    ----------
    robot_model : skdistance.model.RobotModel
        kinematic model.

    Returns
    -------
    classification : skdistance.collision.LinkClassification
        the three classes, each in discovery order.
    """
    collision_names = set(
        link.name for link in robot_model.links_with_collision_geometry)
    result = LinkClassification()

    root = robot_model.root_link
    if root.name in collision_names:
        result.static.append(StaticLink(root.name, np.eye(4)))

    visited = set([root.name])
    worklist = [(root, np.eye(4))]
    while worklist:
        link, transform = worklist.pop(0)
        for attached, relative in robot_model.fixed_attachments(link):
            if attached.name in visited:
                continue
            visited.add(attached.name)
            accumulated = np.dot(transform, relative)
            if attached.name in collision_names:
                result.static.append(StaticLink(attached.name, accumulated))
            worklist.append((attached, accumulated))

    static_names = set(result.static_names)
    for group in robot_model.joint_groups:
        for link in group.link_list:
            if link.name in collision_names \
               and link.name not in static_names \
               and link.name not in result.active:
                result.active.append(link.name)

    active_names = set(result.active)
    for link in robot_model.links_with_collision_geometry:
        if link.name not in static_names and link.name not in active_names:
            result.dynamic.append(link.name)

    logger.info('classified links: {} static, {} active, {} dynamic'.format(
        len(result.static), len(result.active), len(result.dynamic)))
    return result
