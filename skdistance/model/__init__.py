# flake8: noqa

from skdistance.model.shapes import Box
from skdistance.model.shapes import Cone
from skdistance.model.shapes import Cylinder
from skdistance.model.shapes import Mesh
from skdistance.model.shapes import Plane
from skdistance.model.shapes import Shape
from skdistance.model.shapes import Sphere

from skdistance.model.link import Link

from skdistance.model.joint import FixedJoint
from skdistance.model.joint import Joint
from skdistance.model.joint import LinearJoint
from skdistance.model.joint import RotationalJoint

from skdistance.model.robot_model import JointGroup
from skdistance.model.robot_model import RobotModel
