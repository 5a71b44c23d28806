import numpy as np


_AXIS_VECTORS = {
    'x': np.array([1, 0, 0]),
    'y': np.array([0, 1, 0]),
    'z': np.array([0, 0, 1]),
    '-x': np.array([-1, 0, 0]),
    '-y': np.array([0, -1, 0]),
    '-z': np.array([0, 0, -1]),
}


def convert_to_axis_vector(axis):
    """Convert axis to float vector.

    Parameters
    ----------
    axis : list or numpy.ndarray or str
        axis indicated by a vector or string.

    Returns
    -------
    axis : numpy.ndarray
        converted axis

    Examples
    --------
    >>> from skdistance.math import convert_to_axis_vector
    >>> convert_to_axis_vector('x')
    array([1., 0., 0.])
    >>> convert_to_axis_vector([0, 0, 2])
    array([0., 0., 2.])
    """
    if isinstance(axis, str):
        try:
            return _AXIS_VECTORS[axis].astype(np.float64)
        except KeyError:
            raise ValueError(
                "Axis conversion for '{}' is not supported.".format(axis))
    axis = np.array(axis, dtype=np.float64)
    if axis.shape != (3,):
        raise ValueError('Axis must be of shape (3,), get {}'
                         .format(axis.shape))
    return axis


def normalize_vector(v, ord=2):
    """Return normalized vector

    Parameters
    ----------
    v : list or numpy.ndarray
        vector
    ord : int (optional)
        ord of np.linalg.norm

    Returns
    -------
    v : numpy.ndarray
        normalized vector. A zero vector is returned as it is.

    Examples
    --------
    >>> from skdistance.math import normalize_vector
    >>> normalize_vector([1, 1, 1])
    array([0.57735027, 0.57735027, 0.57735027])
    >>> normalize_vector([0, 0, 0])
    array([0., 0., 0.])
    """
    v = np.array(v, dtype=np.float64)
    norm = np.linalg.norm(v, ord=ord)
    if norm == 0:
        return v
    return v / norm


def rotation_matrix(theta, axis):
    """Return the rotation matrix.

    Return the rotation matrix associated with counterclockwise rotation
    about the given axis by theta radians.

    Parameters
    ----------
    theta : float
        radian
    axis : str or list or numpy.ndarray
        rotation axis such that 'x', 'y', 'z' or a 3 dim vector.

    Returns
    -------
    rot : numpy.ndarray
        3x3 rotation matrix about the given axis by theta radians.
    """
    axis = normalize_vector(convert_to_axis_vector(axis))
    a = np.cos(theta / 2.0)
    b, c, d = -axis * np.sin(theta / 2.0)
    aa, bb, cc, dd = a * a, b * b, c * c, d * d
    bc, ad, ac, ab, bd, cd = b * c, a * d, a * c, a * b, b * d, c * d
    return np.array([[aa + bb - cc - dd, 2 * (bc + ad), 2 * (bd - ac)],
                     [2 * (bc - ad), aa + cc - bb - dd, 2 * (cd + ab)],
                     [2 * (bd + ac), 2 * (cd - ab), aa + dd - bb - cc]])


def rpy_matrix(az, ay, ax):
    """Return rotation matrix from yaw-pitch-roll

    The returned matrix is rotated ax radian around x-axis, ay radian
    around y-axis and az radian around z-axis in WORLD, in this order.

    Parameters
    ----------
    az : float
        rotated around z-axis(yaw) in radian.
    ay : float
        rotated around y-axis(pitch) in radian.
    ax : float
        rotated around x-axis(roll) in radian.

    Returns
    -------
    r : numpy.ndarray
        rotation matrix
    """
    r = rotation_matrix(ax, 'x')
    r = np.dot(rotation_matrix(ay, 'y'), r)
    r = np.dot(rotation_matrix(az, 'z'), r)
    return r


def make_transform(pos=None, rot=None):
    """Return a 4x4 homogeneous transformation matrix.

    Parameters
    ----------
    pos : None or list or numpy.ndarray
        translation. zeros if None.
    rot : None or numpy.ndarray
        3x3 rotation matrix. identity if None.

    Returns
    -------
    matrix : numpy.ndarray
        4x4 homogeneous matrix.
    """
    matrix = np.eye(4)
    if rot is not None:
        matrix[:3, :3] = _check_valid_rotation(rot)
    if pos is not None:
        matrix[:3, 3] = _check_valid_translation(pos)
    return matrix


def translation_transform(pos):
    return make_transform(pos=pos)


def inverse_transform(matrix):
    """Invert a rigid 4x4 homogeneous matrix without a general inverse."""
    matrix = np.asarray(matrix, dtype=np.float64)
    rot_t = matrix[:3, :3].T
    inv = np.eye(4)
    inv[:3, :3] = rot_t
    inv[:3, 3] = -rot_t.dot(matrix[:3, 3])
    return inv


def transform_points(matrix, points):
    """Apply a 4x4 homogeneous matrix to points.

    Parameters
    ----------
    matrix : numpy.ndarray
        4x4 homogeneous matrix.
    points : numpy.ndarray
        (3,) or (n_point, 3) array.

    Returns
    -------
    transformed : numpy.ndarray
        array of the same shape as `points`.
    """
    matrix = np.asarray(matrix, dtype=np.float64)
    points = np.asarray(points, dtype=np.float64)
    return points.dot(matrix[:3, :3].T) + matrix[:3, 3]


def _check_valid_rotation(rotation):
    """Checks that the given rotation matrix is valid."""
    rotation = np.array(rotation, dtype=np.float64)
    if rotation.shape != (3, 3):
        raise ValueError('Rotation must be specified as a 3x3 ndarray')
    if np.abs(np.linalg.det(rotation) - 1.0) > 1e-3:
        raise ValueError('Illegal rotation. Must have determinant == 1.0, '
                         'get {}'.format(np.linalg.det(rotation)))
    return rotation


def _check_valid_translation(translation):
    """Checks that the translation vector is valid."""
    t = np.array(translation, dtype=np.float64).squeeze()
    if t.shape != (3,):
        raise ValueError(
            'Translation must be specified as a 3-vector, '
            '3x1 ndarray, or 1x3 ndarray')
    return t


def _check_valid_transform(matrix):
    """Checks that the given matrix is a 4x4 rigid transformation."""
    matrix = np.array(matrix, dtype=np.float64)
    if matrix.shape != (4, 4):
        raise ValueError('Transform must be specified as a 4x4 ndarray, '
                         'get shape {}'.format(matrix.shape))
    _check_valid_rotation(matrix[:3, :3])
    return matrix
