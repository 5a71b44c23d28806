from logging import getLogger

import numpy as np

from skdistance.math import _check_valid_transform
from skdistance.math import convert_to_axis_vector
from skdistance.math import normalize_vector
from skdistance.math import rotation_matrix


logger = getLogger(__name__)


class Joint(object):
    """Connection between a parent link and a child link.

    Parameters
    ----------
    name : str
        name of the joint.
    parent_link : skdistance.model.Link
        parent link.
    child_link : skdistance.model.Link
        child link. Its frame equals the joint frame after the joint motion.
    origin : None or numpy.ndarray
        4x4 pose of the joint frame w.r.t. the parent link frame.
    min_angle : float
        lower limit of the joint position.
    max_angle : float
        upper limit of the joint position.
    """

    def __init__(self, name=None, parent_link=None, child_link=None,
                 origin=None, min_angle=-np.pi, max_angle=np.pi):
        self.name = name
        self.parent_link = parent_link
        self.child_link = child_link
        if origin is None:
            origin = np.eye(4)
        self.origin = _check_valid_transform(origin)
        self.min_angle = min_angle
        self.max_angle = max_angle
        self._joint_angle = 0.0

    @property
    def joint_dof(self):
        raise NotImplementedError

    def joint_angle(self, v=None):
        raise NotImplementedError

    def motion_transform(self):
        """Return 4x4 transform generated by the current joint position."""
        raise NotImplementedError

    def __repr__(self):
        return self.__str__()

    def __str__(self):
        if self.name:
            prefix = self.__class__.__name__ + \
                ' ' + hex(id(self)) + ' ' + self.name
        else:
            prefix = self.__class__.__name__ + ' ' + hex(id(self))

        return '#<%s>' % prefix

    def _clamp(self, v):
        if v > self.max_angle:
            logger.warning('{} :joint-angle({}) violate max-angle({})'
                           .format(self, v, self.max_angle))
            v = self.max_angle
        elif v < self.min_angle:
            logger.warning('{} :joint-angle({}) violate min-angle({})'
                           .format(self, v, self.min_angle))
            v = self.min_angle
        return v


class FixedJoint(Joint):

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('min_angle', 0.0)
        kwargs.setdefault('max_angle', 0.0)
        super(FixedJoint, self).__init__(*args, **kwargs)

    def joint_angle(self, v=None):
        """Joint angle method.

        Return joint_angle
        """
        return self._joint_angle

    @property
    def joint_dof(self):
        """Returns DOF of fixed joint, 0."""
        return 0

    def motion_transform(self):
        return np.eye(4)


class RotationalJoint(Joint):

    def __init__(self, axis='z', *args, **kwargs):
        super(RotationalJoint, self).__init__(*args, **kwargs)
        self.axis = normalize_vector(convert_to_axis_vector(axis))

    def joint_angle(self, v=None):
        """Return joint angle.

        Return joint angle if v is not set, if v is given, set the value as
        a joint angle.

        Parameters
        ----------
        v : None or float
            Joint angle in a radian.
            If v is `None`, return this joint's joint angle.

        Returns
        -------
        self._joint_angle : float
            Current joint_angle in a radian.
        """
        if v is None:
            return self._joint_angle
        self._joint_angle = self._clamp(float(v))
        return self._joint_angle

    @property
    def joint_dof(self):
        """Returns DOF of rotational joint, 1."""
        return 1

    def motion_transform(self):
        matrix = np.eye(4)
        matrix[:3, :3] = rotation_matrix(self._joint_angle, self.axis)
        return matrix


class LinearJoint(Joint):

    def __init__(self, axis='z', *args, **kwargs):
        super(LinearJoint, self).__init__(*args, **kwargs)
        self.axis = normalize_vector(convert_to_axis_vector(axis))

    def joint_angle(self, v=None):
        """Return joint position in meter.

        If v is given, set the value as a joint position.
        """
        if v is None:
            return self._joint_angle
        self._joint_angle = self._clamp(float(v))
        return self._joint_angle

    @property
    def joint_dof(self):
        """Returns DOF of linear joint, 1."""
        return 1

    def motion_transform(self):
        matrix = np.eye(4)
        matrix[:3, 3] = self._joint_angle * self.axis
        return matrix
