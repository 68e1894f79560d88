# Copyright 2016-2019 University of Zurich
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
'''Parsing of image sub-region descriptions.

A region is described by a string of axis constraints in any order, e.g.
``"x:0:100 y::200 z:5: t::"``. Each of the axes X, Y, C, Z and T is optional
and so are the start and end of each axis.
'''
import re
import collections
import logging

logger = logging.getLogger(__name__)

#: Tuple[str]: axis names in the order used by :class:`Coordinates`
AXES = ('x', 'y', 'c', 'z', 't')

#: int: end value meaning "up to the last index of the axis"
LAST = -1

# captures x:: x:0: x::100 x:0:100 c:0
_BOUNDS_PATTERN = re.compile(r'([xyczt]):(\d*)(:?)(\d*)', re.IGNORECASE)


Coordinates = collections.namedtuple('Coordinates', AXES)


class Bounds(collections.namedtuple('Bounds', ['start', 'end'])):

    '''Region of an image given by a start and an end position along each
    axis. Positions are zero-based and inclusive; an end of ``-1`` selects up
    to the last index of the axis.
    '''

    __slots__ = ()

    def axis(self, name):
        '''Gets start and end along one axis.

        Parameters
        ----------
        name: str
            one of ``"x"``, ``"y"``, ``"c"``, ``"z"`` or ``"t"``

        Returns
        -------
        Tuple[int]
        '''
        return (getattr(self.start, name), getattr(self.end, name))

    def resolve(self, sizes):
        '''Replaces open ends by the last index of each axis and clips the
        region to the extent of the image.

        Parameters
        ----------
        sizes: omeroext.bounds.Coordinates
            number of pixels along each axis

        Returns
        -------
        omeroext.bounds.Bounds
            region without open ends

        Raises
        ------
        ValueError
            when the region does not overlap the image along an axis
        '''
        start = dict()
        end = dict()
        for name in AXES:
            size = getattr(sizes, name)
            s, e = self.axis(name)
            if e == LAST or e >= size:
                e = size - 1
            if s >= size or s > e:
                raise ValueError(
                    'Region {0}:{1}:{2} lies outside of the image '
                    '(size {3}).'.format(name, s, e + 1, size)
                )
            start[name] = s
            end[name] = e
        return Bounds(Coordinates(**start), Coordinates(**end))

    def shape(self):
        '''Tuple[int]: number of pixels along each axis; only defined for
        resolved bounds
        '''
        return Coordinates(*[e - s + 1 for s, e in zip(self.start, self.end)])


def _extract_coordinates(start, sep, end):
    first = 0 if not start else int(start)
    if start and not sep:
        # input is like z:5, i.e. a single slice
        return first, first
    last = LAST if not end else int(end) - 1
    return first, last


def parse_bounds(text):
    '''Parses a region description.

    Axis constraints have the form ``<axis>:<start>:<end>`` where `start`
    and `end` are optional and `end` is exclusive. ``z:5`` selects only slice
    5, ``x::100`` the first 100 columns and ``t::`` all time points. The
    first constraint given for an axis wins; axes without a constraint span
    the whole image. Text that does not match is ignored.

    Parameters
    ----------
    text: str
        region description

    Returns
    -------
    omeroext.bounds.Bounds
    '''
    start = dict()
    end = dict()
    for match in _BOUNDS_PATTERN.finditer(text or ''):
        axis = match.group(1).lower()
        if axis in start:
            logger.debug('ignore repeated constraint on axis "%s"', axis)
            continue
        start[axis], end[axis] = _extract_coordinates(*match.group(2, 3, 4))
    return Bounds(
        Coordinates(*[start.get(a, 0) for a in AXES]),
        Coordinates(*[end.get(a, LAST) for a in AXES])
    )


def _shape_extent(shape):
    if 'Width' in shape:
        x, y = shape['X'], shape['Y']
        return x, y, x + shape['Width'], y + shape['Height']
    if 'RadiusX' in shape:
        x, y = shape['X'], shape['Y']
        rx, ry = shape['RadiusX'], shape['RadiusY']
        return x - rx, y - ry, x + rx, y + ry
    if 'X1' in shape:
        xs = (shape['X1'], shape['X2'])
        ys = (shape['Y1'], shape['Y2'])
        return min(xs), min(ys), max(xs), max(ys)
    if 'Points' in shape:
        points = [
            tuple(float(v) for v in p.split(','))
            for p in shape['Points'].split()
        ]
        xs, ys = zip(*points)
        return min(xs), min(ys), max(xs), max(ys)
    return shape['X'], shape['Y'], shape['X'], shape['Y']


def roi_bounds(shapes):
    '''Computes the bounding box of the shapes of a ROI.

    Parameters
    ----------
    shapes: List[dict]
        shapes of the ROI as returned by the *OMERO* JSON API; each shape
        may be restricted to a plane via ``TheZ``, ``TheC`` and ``TheT``

    Returns
    -------
    omeroext.bounds.Bounds
        region covering all shapes; axes along which a shape is not
        restricted span the whole image

    Raises
    ------
    ValueError
        when the ROI has no shapes
    '''
    if not shapes:
        raise ValueError('ROI has no shapes.')
    extents = [_shape_extent(s) for s in shapes]
    start = {
        'x': max(0, int(min(e[0] for e in extents))),
        'y': max(0, int(min(e[1] for e in extents))),
    }
    end = {
        'x': int(max(e[2] for e in extents)),
        'y': int(max(e[3] for e in extents)),
    }
    for axis, key in (('c', 'TheC'), ('z', 'TheZ'), ('t', 'TheT')):
        planes = [s.get(key) for s in shapes]
        if any(p is None for p in planes):
            start[axis], end[axis] = 0, LAST
        else:
            start[axis], end[axis] = min(planes), max(planes)
    return Bounds(
        Coordinates(*[start[a] for a in AXES]),
        Coordinates(*[end[a] for a in AXES])
    )
