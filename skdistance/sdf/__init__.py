# flake8: noqa

from skdistance.sdf.distance_field import DistanceField
from skdistance.sdf.distance_field import FieldAccessor

from skdistance.sdf.sphere_packing import fill_with_spheres

from skdistance.sdf.voxelize import shape_to_volume
from skdistance.sdf.voxelize import signed_distance
from skdistance.sdf.voxelize import UnsupportedShapeError
