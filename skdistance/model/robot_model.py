from collections import OrderedDict
from logging import getLogger

import numpy as np

from skdistance.math import inverse_transform
from skdistance.model.joint import FixedJoint


logger = getLogger(__name__)


class JointGroup(object):
    """Named set of actuated joints.

    Parameters
    ----------
    name : str
        name of the group.
    joint_list : list[skdistance.model.Joint]
        joints belonging to the group.
    """

    def __init__(self, name, joint_list):
        self.name = name
        self.joint_list = list(joint_list)

    def __repr__(self):
        return '#<{} {} {}>'.format(
            self.__class__.__name__, hex(id(self)), self.name)

    @property
    def link_list(self):
        """Child links of the group's joints in joint order."""
        links = []
        for joint in self.joint_list:
            if joint.child_link not in links:
                links.append(joint.child_link)
        return links

    @property
    def updated_link_list(self):
        """Links whose pose changes when the group moves."""
        links = []
        stack = list(reversed(self.link_list))
        while stack:
            link = stack.pop()
            if link in links:
                continue
            links.append(link)
            stack.extend(reversed(link.child_links))
        return links


class RobotModel(object):
    """Tree shaped kinematic model.

    Parameters
    ----------
    link_list : list[skdistance.model.Link]
        all links of the model.
    joint_list : list[skdistance.model.Joint]
        all joints of the model, fixed joints included.
        parent/child relations of links are set from these joints.
    root_link : None or skdistance.model.Link
        root of the tree. If None, the link without a parent is used.
    joint_groups : None or dict[str, list[str]]
        group name to names of the joints in the group.
    disabled_collision_pairs : None or list[tuple(str, str)]
        pairs of link names which never need collision checking.
    """

    def __init__(self, link_list, joint_list=None, root_link=None,
                 joint_groups=None, disabled_collision_pairs=None):
        self.link_list = list(link_list)
        self.joint_list = list(joint_list or [])
        self._link_table = OrderedDict()
        for link in self.link_list:
            if link.name in self._link_table:
                raise ValueError('duplicated link name {}'.format(link.name))
            self._link_table[link.name] = link
        self._joint_table = OrderedDict()
        for joint in self.joint_list:
            if joint.name in self._joint_table:
                raise ValueError(
                    'duplicated joint name {}'.format(joint.name))
            self._joint_table[joint.name] = joint
            joint.parent_link.add_child_link(joint.child_link)
            joint.child_link.add_parent_link(joint.parent_link)
            joint.child_link.add_joint(joint)

        if root_link is None:
            roots = [link for link in self.link_list
                     if link.parent_link is None]
            if len(roots) != 1:
                raise ValueError(
                    'kinematic model must have exactly one root link, '
                    'get {}'.format([link.name for link in roots]))
            root_link = roots[0]
        self.root_link = root_link

        self._joint_groups = OrderedDict()
        for name, joint_names in (joint_groups or {}).items():
            self._joint_groups[name] = JointGroup(
                name, [self.joint(joint_name) for joint_name in joint_names])
        self.disabled_collision_pairs = [
            tuple(pair) for pair in (disabled_collision_pairs or [])]

    def link(self, name):
        try:
            return self._link_table[name]
        except KeyError:
            raise KeyError('link {} is not found in the model'.format(name))

    def joint(self, name):
        try:
            return self._joint_table[name]
        except KeyError:
            raise KeyError('joint {} is not found in the model'.format(name))

    def joint_group(self, name):
        try:
            return self._joint_groups[name]
        except KeyError:
            raise KeyError(
                'joint group {} is not found in the model'.format(name))

    @property
    def joint_groups(self):
        return list(self._joint_groups.values())

    @property
    def actuated_joint_list(self):
        return [joint for joint in self.joint_list if joint.joint_dof > 0]

    @property
    def links_with_collision_geometry(self):
        return [link for link in self.link_list
                if link.has_collision_geometry]

    def angle_vector(self, av=None):
        """Returns angle vector

        If av is given, it updates positions of the actuated joints.

        Parameters
        ----------
        av : None or numpy.ndarray
            joint positions in `actuated_joint_list` order.

        Returns
        -------
        av : numpy.ndarray
            current joint positions.
        """
        joints = self.actuated_joint_list
        if av is not None:
            av = np.asarray(av, dtype=np.float64)
            if av.shape != (len(joints),):
                raise ValueError(
                    'angle vector must be of shape ({},), get {}'.format(
                        len(joints), av.shape))
            for joint, v in zip(joints, av):
                joint.joint_angle(v)
        return np.array([joint.joint_angle() for joint in joints])

    def fixed_attachments(self, link):
        """Links rigidly attached to `link` through one fixed joint.

        Parameters
        ----------
        link : skdistance.model.Link
            base link.

        Returns
        -------
        attachments : list[tuple(skdistance.model.Link, numpy.ndarray)]
            attached links and 4x4 transforms from `link` frame to
            each attached link frame.
        """
        attachments = []
        for child in link.child_links:
            if isinstance(child.joint, FixedJoint):
                attachments.append((child, child.joint.origin.copy()))
        if isinstance(link.joint, FixedJoint) \
           and link.parent_link is not None:
            attachments.append((link.parent_link,
                                inverse_transform(link.joint.origin)))
        return attachments

    def global_link_transform(self, name):
        """Return 4x4 pose of the link w.r.t. the model frame.

        The model frame coincides with the root link frame.
        """
        link = self.link(name)
        chain = []
        while link is not self.root_link:
            if link.joint is None:
                raise ValueError(
                    'link {} is not connected to the root link {}'.format(
                        name, self.root_link.name))
            chain.append(link.joint)
            link = link.parent_link
        matrix = np.eye(4)
        for joint in reversed(chain):
            matrix = matrix.dot(joint.origin).dot(joint.motion_transform())
        return matrix

    def global_link_transforms(self):
        """Return poses of every link keyed by link name."""
        transforms = {self.root_link.name: np.eye(4)}
        stack = [self.root_link]
        while stack:
            link = stack.pop()
            for child in link.child_links:
                transforms[child.name] = transforms[link.name].dot(
                    child.joint.origin).dot(child.joint.motion_transform())
                stack.append(child)
        return transforms
