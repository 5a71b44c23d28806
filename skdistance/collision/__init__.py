# flake8: noqa

from skdistance.collision.allowed_collision import AllowedCollision
from skdistance.collision.allowed_collision import AllowedCollisionMatrix
from skdistance.collision.allowed_collision import is_query_required

from skdistance.collision.link_classifier import classify_links
from skdistance.collision.link_classifier import LinkClassification
from skdistance.collision.link_classifier import LinkType
from skdistance.collision.link_classifier import StaticLink

from skdistance.collision.self_distance import DistanceQueryData
from skdistance.collision.self_distance import DistanceRequest
from skdistance.collision.self_distance import DistanceResult
from skdistance.collision.self_distance import DistanceResultsData
from skdistance.collision.self_distance import QueryCandidate
from skdistance.collision.self_distance import SelfDistanceConfig
from skdistance.collision.self_distance import SelfDistanceField
