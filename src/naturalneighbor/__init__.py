"""Discrete natural neighbor interpolation in 3D.

Known values at scattered points are interpolated onto a regular grid with the
scatter formulation of discrete Sibson interpolation :footcite:`park2006discrete`.
"""

from naturalneighbor.errors import NoDataError, ShapeMismatchError
from naturalneighbor.geometry import Point
from naturalneighbor.kdtree import KdTree, Neighbor
from naturalneighbor.naturalneighbor import Interpolator, griddata, interpolate
from naturalneighbor.scatter import scatter_interpolate

try:
    from importlib.metadata import PackageNotFoundError, version
    __version__ = version('naturalneighbor')
except PackageNotFoundError:
    __version__ = '0.0.0'
