"""Self-distance queries on signed distance fields of robot links.

Links are classified into static, active and dynamic links. Every class
gets its own signed distance fields, active links additionally get a
sphere approximation that is used to sample the other links' fields.

Example
-------
>>> from skdistance.collision import DistanceRequest
>>> from skdistance.collision import SelfDistanceField
>>> engine = SelfDistanceField(robot_model)  # doctest: +SKIP
>>> robot_model.angle_vector(av)  # doctest: +SKIP
>>> result = engine.distance_self(DistanceRequest(gradient=True))  # doctest: +SKIP
>>> result.minimum_distance.link_names  # doctest: +SKIP
['arm_link', 'base_link']
"""

from collections import OrderedDict
from dataclasses import dataclass
from dataclasses import field
from dataclasses import fields
from logging import getLogger
import os
from typing import List
from typing import Optional

import numpy as np

from skdistance.collision.allowed_collision import AllowedCollisionMatrix
from skdistance.collision.allowed_collision import is_query_required
from skdistance.collision.link_classifier import classify_links
from skdistance.collision.link_classifier import LinkType
from skdistance.math import inverse_transform
from skdistance.math import transform_points
from skdistance.model.shapes import Mesh
from skdistance.sdf.distance_field import DistanceField
from skdistance.sdf.sphere_packing import fill_with_spheres


logger = getLogger(__name__)

_ENV_PREFIX = 'SKDISTANCE_'


def _approx_equal(a, b, eps=1e-5):
    return np.abs(a - b) < eps


@dataclass
class SelfDistanceConfig:
    """Parameters of field construction and sphere packing.

    Band widths are given in voxels of the nominal `voxel_size`.
    Sphere radii limits are given in voxels of the field they are
    packed into.

    The resolution of an active link is not refined further once the
    next field would exceed `max_voxels_per_field` voxels, or
    `max_mesh_voxels_per_field` for links with a mesh shape. None removes
    the limit.
    """
    voxel_size: float = 0.02
    background: float = 0.5
    ex_bandwidth: float = 3.0
    in_bandwidth: float = 3.0
    n_spheres: int = 20
    can_overlap: bool = True
    min_sphere_radius: float = 1.0
    max_sphere_radius: float = np.inf
    iso_surface: float = 0.0
    n_instances: int = 100000
    max_retries: int = 10
    max_voxels_per_field: Optional[int] = 2 ** 24
    max_mesh_voxels_per_field: Optional[int] = 2 ** 17

    def __post_init__(self):
        if self.voxel_size <= 0.0:
            raise ValueError('voxel_size must be positive, get {}'
                             .format(self.voxel_size))
        if self.background <= 0.0:
            raise ValueError('background must be positive, get {}'
                             .format(self.background))
        if self.ex_bandwidth < 0.0 or self.in_bandwidth < 0.0:
            raise ValueError(
                'band widths must not be negative, get {} and {}'.format(
                    self.ex_bandwidth, self.in_bandwidth))
        if self.max_retries < 1:
            raise ValueError('max_retries must be at least 1, get {}'
                             .format(self.max_retries))
        for name in ('max_voxels_per_field', 'max_mesh_voxels_per_field'):
            budget = getattr(self, name)
            if budget is not None and budget < 1:
                raise ValueError('{} must be positive or None, get {}'
                                 .format(name, budget))

    @classmethod
    def from_env(cls, **kwargs):
        """Create config overlaid by SKDISTANCE_* environment variables.

        ``SKDISTANCE_VOXEL_SIZE``, ``SKDISTANCE_BACKGROUND``,
        ``SKDISTANCE_EX_BANDWIDTH`` and ``SKDISTANCE_IN_BANDWIDTH``
        override the corresponding fields. Explicit keyword arguments
        take precedence over the environment.
        """
        values = {}
        for name in ('voxel_size', 'background',
                     'ex_bandwidth', 'in_bandwidth'):
            env_value = os.environ.get(_ENV_PREFIX + name.upper())
            if env_value is not None:
                values[name] = float(env_value)
        values.update(kwargs)
        return cls(**values)

    def to_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class DistanceRequest:
    """Self-distance request.

    Parameters
    ----------
    group_name : None or str
        joint group the request is made for. It must exist in the model.
    gradient : bool
        If True, compute the blended avoidance gradient.
    """
    group_name: Optional[str] = None
    gradient: bool = False


@dataclass
class DistanceResultsData:
    """Nearest neighbor of one active link.

    `link_names` holds the active link and its nearest neighbor, which
    is None if no link was found within the field bands.
    """
    min_distance: float
    link_names: list
    gradient: np.ndarray = field(default_factory=lambda: np.zeros(3))
    has_gradient: bool = False


@dataclass
class DistanceResult:
    """Results of a self-distance request.

    `minimum_distance` is None when the model has no active link with
    spheres, so callers have to check it before use.
    """
    distances: OrderedDict = field(default_factory=OrderedDict)
    minimum_distance: Optional[DistanceResultsData] = None


@dataclass
class QueryCandidate:
    name: str
    link_type: LinkType
    index: int


@dataclass
class DistanceQueryData:
    """Candidate links queried against the spheres of an active link."""
    parent_name: str
    parent_index: int
    empty: bool = True
    children: List[QueryCandidate] = field(default_factory=list)


class FieldPlacement(object):
    """A field paired with the pose it has during one query."""

    def __init__(self, sdf, field_to_world=None, thread_safe=True):
        self.sdf = sdf
        if field_to_world is None:
            self.world_to_field = None
            self.rotation = np.eye(3)
        else:
            self.world_to_field = inverse_transform(field_to_world)
            self.rotation = np.asarray(field_to_world)[:3, :3]
        # empty fields read background without an accessor
        if thread_safe or sdf.is_empty:
            self.accessor = None
        else:
            self.accessor = sdf.accessor()

    def indices(self, points_world):
        if self.world_to_field is None:
            points = points_world
        else:
            points = transform_points(self.world_to_field, points_world)
        return self.sdf.world_to_index(points)

    def values(self, ijk):
        if self.accessor is None:
            return self.sdf.distances_at_indices(ijk)
        return np.array([self.accessor.get_value(i) for i in ijk])

    def world_gradient(self, ijk):
        """Un-normalized gradient rotated into the world frame."""
        gradient = self.sdf.raw_gradient_at_index(
            ijk, thread_safe=self.accessor is None, accessor=self.accessor)
        return self.rotation.dot(gradient)


class SelfDistanceField(object):
    """Self-distance engine of a kinematic model.

    All fields, sphere sets and the query plan are built in the
    constructor and never change afterwards. The kinematic model and the
    allow-list are only read.

    Parameters
    ----------
    robot_model : skdistance.model.RobotModel
        kinematic model. Link poses are read at query time.
    config : None or skdistance.collision.SelfDistanceConfig
        construction parameters. Defaults are used if None.
    acm : None or skdistance.collision.AllowedCollisionMatrix
        allow-list. If None, the default matrix of `robot_model` is used.
    sphere_packer : callable
        function with the signature of
        skdistance.sdf.fill_with_spheres.
    """

    def __init__(self, robot_model, config=None, acm=None,
                 sphere_packer=fill_with_spheres):
        self.robot_model = robot_model
        self.config = config or SelfDistanceConfig()
        if acm is None:
            acm = AllowedCollisionMatrix.from_robot_model(robot_model)
        self.acm = acm
        self.sphere_packer = sphere_packer

        self.classification = classify_links(robot_model)
        self._static_sdf = []
        self._active_sdf = []
        self._active_spheres = []
        self._dynamic_sdf = []
        self._degenerate_links = []
        self._dist_query = []

        self._create_static_sdfs()
        self._create_active_sdfs()
        self._create_dynamic_sdfs()
        self._create_default_distance_query()

    @property
    def static_links(self):
        return self.classification.static_names

    @property
    def active_links(self):
        return list(self.classification.active)

    @property
    def dynamic_links(self):
        return list(self.classification.dynamic)

    @property
    def static_sdf(self):
        return list(self._static_sdf)

    @property
    def active_sdf(self):
        return list(self._active_sdf)

    @property
    def dynamic_sdf(self):
        return list(self._dynamic_sdf)

    @property
    def active_spheres(self):
        """Sphere sets of active links w.r.t. their link frames."""
        return list(self._active_spheres)

    @property
    def degenerate_links(self):
        """Active links whose sphere packing never found two spheres."""
        return list(self._degenerate_links)

    @property
    def query_plan(self):
        return list(self._dist_query)

    @property
    def metadata(self):
        return {
            'voxel_size': self.config.voxel_size,
            'background': self.config.background,
            'ex_bandwidth': self.config.ex_bandwidth,
            'in_bandwidth': self.config.in_bandwidth,
        }

    def grids(self):
        """Iterate over all built fields.

        Yields
        ------
        entry : tuple(str, skdistance.collision.LinkType,
                      skdistance.sdf.DistanceField)
            link name, class and field, static links first, then
            dynamic and active links.
        """
        for name, sdf in zip(self.static_links, self._static_sdf):
            yield name, LinkType.STATIC, sdf
        for name, sdf in zip(self.dynamic_links, self._dynamic_sdf):
            yield name, LinkType.DYNAMIC, sdf
        for name, sdf in zip(self.active_links, self._active_sdf):
            yield name, LinkType.ACTIVE, sdf

    def memory_usage(self):
        return sum(sdf.memory_usage() for _, _, sdf in self.grids())

    def _new_field(self, voxel_size=None):
        if voxel_size is None:
            voxel_size = self.config.voxel_size
        return DistanceField(voxel_size, self.config.background)

    def _add_link_to_field(self, sdf, link, pose, ex_band, in_band):
        try:
            sdf.add_link(link, pose, ex_band, in_band)
        except Exception as e:
            # the field keeps what was inserted so far
            logger.error('Failed to build distance field of link {}: {}'
                         .format(link.name, e))
        if sdf.is_empty:
            logger.warning('Distance field of link {} is empty'
                           .format(link.name))

    def _create_static_sdfs(self):
        cfg = self.config
        for static_link in self.classification.static:
            link = self.robot_model.link(static_link.name)
            sdf = self._new_field()
            self._add_link_to_field(sdf, link, static_link.transform,
                                    cfg.ex_bandwidth, cfg.in_bandwidth)
            self._static_sdf.append(sdf)

    def _create_active_sdfs(self):
        for name in self.classification.active:
            sdf, spheres = self._create_active_sdf(
                self.robot_model.link(name))
            self._active_sdf.append(sdf)
            self._active_spheres.append(spheres)

    def _create_active_sdf(self, link):
        """Build the field of an active link at an adaptive resolution.

        The voxel size is halved until the packer finds more than one
        sphere. Band widths scale with the inverse of the voxel size so
        that their physical width stays constant.
        """
        cfg = self.config
        if any(isinstance(shape, Mesh) for shape in link.collision_shapes):
            max_voxels = cfg.max_mesh_voxels_per_field
        else:
            max_voxels = cfg.max_voxels_per_field
        voxel_size = cfg.voxel_size
        sdf = None
        spheres = (np.zeros((0, 3)), np.zeros(0))
        for attempt in range(cfg.max_retries):
            scale = cfg.voxel_size / voxel_size
            sdf = self._new_field(voxel_size)
            self._add_link_to_field(sdf, link, np.eye(4),
                                    scale * cfg.ex_bandwidth,
                                    scale * cfg.in_bandwidth)
            spheres = self.sphere_packer(
                sdf, cfg.n_spheres, cfg.can_overlap,
                cfg.min_sphere_radius, cfg.max_sphere_radius,
                cfg.iso_surface, cfg.n_instances)
            if len(spheres[1]) > 1:
                break
            if attempt + 1 < cfg.max_retries and max_voxels is not None \
               and sdf.voxel_count * 8 > max_voxels:
                logger.warning(
                    'Stopped refining link {} at voxel size {}: the next '
                    'field would exceed {} voxels'.format(
                        link.name, voxel_size, max_voxels))
                break
            voxel_size = voxel_size * 0.5
        if len(spheres[1]) <= 1:
            self._degenerate_links.append(link.name)
            logger.warning('Sphere model of link {} is degenerate ({} '
                           'spheres)'.format(link.name, len(spheres[1])))
        if len(spheres[1]) == 0:
            logger.error('Unable to generate spheres for link: {}'
                         .format(link.name))
        else:
            logger.info('link {}: {} spheres at voxel size {}'.format(
                link.name, len(spheres[1]), sdf.voxel_size))
        return sdf, spheres

    def _create_dynamic_sdfs(self):
        cfg = self.config
        for name in self.classification.dynamic:
            sdf = self._new_field()
            self._add_link_to_field(sdf, self.robot_model.link(name),
                                    np.eye(4), cfg.ex_bandwidth,
                                    cfg.in_bandwidth)
            self._dynamic_sdf.append(sdf)

    def _create_default_distance_query(self):
        active = self.classification.active
        dynamic = self.classification.dynamic
        static = self.classification.static_names
        for j, parent_name in enumerate(active):
            data = DistanceQueryData(parent_name=parent_name, parent_index=j)
            if len(self._active_spheres[j][1]) == 0:
                self._dist_query.append(data)
                continue
            data.empty = False

            for link_type, names in ((LinkType.ACTIVE, active),
                                     (LinkType.DYNAMIC, dynamic),
                                     (LinkType.STATIC, static)):
                for i, name in enumerate(names):
                    if link_type == LinkType.ACTIVE and i == j:
                        continue
                    if is_query_required(name, parent_name, self.acm):
                        data.children.append(
                            QueryCandidate(name, link_type, i))
            self._dist_query.append(data)

    def active_spheres_world(self, transforms=None):
        """Sphere sets of active links w.r.t. the world frame.

        Parameters
        ----------
        transforms : None or dict[str, numpy.ndarray]
            link poses. The current poses of the model are used if None.

        Returns
        -------
        spheres : collections.OrderedDict
            active link name to (centers, radii).
        """
        if transforms is None:
            transforms = self.robot_model.global_link_transforms()
        spheres = OrderedDict()
        for name, (centers, radii) in zip(self.classification.active,
                                          self._active_spheres):
            spheres[name] = (transform_points(transforms[name], centers),
                             radii.copy())
        return spheres

    def _placements(self, transforms, thread_safe):
        placements = {
            LinkType.STATIC: [FieldPlacement(sdf, thread_safe=thread_safe)
                              for sdf in self._static_sdf],
            LinkType.ACTIVE: [],
            LinkType.DYNAMIC: [],
        }
        for link_type, names, sdfs in (
                (LinkType.ACTIVE, self.classification.active,
                 self._active_sdf),
                (LinkType.DYNAMIC, self.classification.dynamic,
                 self._dynamic_sdf)):
            for name, sdf in zip(names, sdfs):
                placements[link_type].append(
                    FieldPlacement(sdf, transforms[name],
                                   thread_safe=thread_safe))
        return placements

    def distance_self(self, request=None, thread_safe=True):
        """Compute the minimum distance between links of the model.

        Parameters
        ----------
        request : None or skdistance.collision.DistanceRequest
            request. The default request has no group and no gradient.
        thread_safe : bool
            If True, fields are read with re-entrant lookups, so that
            the engine can be queried from several threads at once. If
            False, this query uses its own cached accessors.

        Returns
        -------
        result : skdistance.collision.DistanceResult
            nearest neighbor of every active link with spheres and the
            overall minimum.

        Raises
        ------
        KeyError
            If the requested joint group is not in the model.
        """
        if request is None:
            request = DistanceRequest()
        if request.group_name is not None:
            self.robot_model.joint_group(request.group_name)

        transforms = self.robot_model.global_link_transforms()
        spheres = self.active_spheres_world(transforms)
        placements = self._placements(transforms, thread_safe)

        result = DistanceResult()
        for data in self._dist_query:
            if data.empty:
                continue
            centers, radii = spheres[data.parent_name]
            result.distances[data.parent_name] = self._distance_self_helper(
                data, centers, radii, placements, request.gradient)

        if len(result.distances) == 0:
            return result
        background = self.config.background
        index = next(iter(result.distances))
        d = background
        for name, res in result.distances.items():
            if res.min_distance < d:
                index = name
                d = res.min_distance
        result.minimum_distance = result.distances[index]
        return result

    def _distance_self_helper(self, data, centers, radii, placements,
                              compute_gradient):
        background = self.config.background
        res = DistanceResultsData(min_distance=background,
                                  link_names=[data.parent_name, None])
        gradient = np.zeros(3)
        total_weights = 0.0

        for child in data.children:
            placement = placements[child.link_type][child.index]
            ijk = placement.indices(centers)
            child_dists = placement.values(ijk)

            valid = ~_approx_equal(child_dists, background)
            effective = np.where(valid, child_dists - radii, np.inf)
            k = int(np.argmin(effective))
            child_min = effective[k]
            if not child_min < background:
                continue

            if child_min < res.min_distance:
                res.min_distance = float(child_min)
                res.link_names[1] = child.name

            if compute_gradient:
                child_gradient = placement.world_gradient(ijk[k])
                if np.any(child_gradient != 0.0):
                    weight = background - child_min
                    total_weights += weight
                    norm = np.linalg.norm(child_gradient)
                    gradient += weight * child_gradient / norm

        if total_weights > 0.0:
            gradient = gradient / total_weights
            norm = np.linalg.norm(gradient)
            if norm > 0.0:
                res.gradient = gradient / norm
                res.has_gradient = True
        return res
