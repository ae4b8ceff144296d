# Copyright European Space Agency, 2013

"""
Conversion between sky positions and HEALPix pixels in the NESTED scheme
and resolution of the eight neighbours of a pixel.

HiPS tile servers name their tiles after NESTED HEALPix pixel numbers, so
all conversions here delegate to :mod:`healpy` to stay bit-for-bit
compatible with the servers.

The public functions never raise on bad input. Instead, they return
sentinels which callers must check: :data:`INVALID_PIXEL` for
:func:`coordinateToPixel`, the error position (see
:func:`~skymosaic.coordinates.sky.isErrorPosition`) for :func:`pixelToCoordinate`
and an empty result for the neighbour functions.
"""

import logging
import math
import numbers
from collections import namedtuple

import numpy as np
import healpy as hp

from skymosaic.coordinates.sky import SkyPosition, errorPosition, wrapDelta

log = logging.getLogger(__name__)

INVALID_PIXEL = -1

MAX_ORDER = 29 # nside = 2**29 is the limit of 64bit pixel numbers

# native order of healpy.get_all_neighbours
NATIVE_NEIGHBOUR_ORDER = ('SW', 'W', 'NW', 'N', 'NE', 'E', 'SE', 'S')

DIRECTIONS = ('N', 'NE', 'E', 'SE', 'S', 'SW', 'W', 'NW')

Neighbour = namedtuple('Neighbour', ['pixel', 'rawIndex'])

class PixelIndexError(ValueError):
    pass

def nsideForOrder(order):
    _checkOrder(order)
    return 1 << order

def pixelCount(order):
    """ Number of pixels covering the sphere at the given order, 12*4^order. """
    return 12 * nsideForOrder(order)**2

def pixelSize(order):
    """
    Return the approximate linear size of a pixel in degrees,
    i.e. the square root of the pixel area.
    """
    nside = nsideForOrder(order)
    return math.degrees(math.sqrt(4*math.pi / (12*nside*nside)))

def tileArcsecPerPixel(order, tileSize=512):
    """
    Return the image scale in arcsec per image pixel of a HiPS tile of
    the given order which is `tileSize` image pixels wide.
    For order 8 and 512px tiles this is about 1.61"/px.
    """
    return pixelSize(order) * 3600.0 / tileSize

def coordinateToPixel(pos, order):
    """
    Return the NESTED pixel containing the given position.

    :type pos: SkyPosition
    :param int order: HEALPix order, nside = 2**order
    :rtype: int
    :return: pixel number, or INVALID_PIXEL (-1) if the order is invalid
             or the coordinates cannot be converted
    """
    try:
        nside = nsideForOrder(order)
        ra, dec = float(pos.ra_deg), float(pos.dec_deg)
        if not (math.isfinite(ra) and math.isfinite(dec)):
            raise PixelIndexError('coordinates are not finite: {}, {}'.format(ra, dec))
        pixel = hp.ang2pix(nside, ra, dec, nest=True, lonlat=True)
    except (PixelIndexError, ValueError, TypeError) as e:
        log.warning('cannot convert (%s, %s) at order %s to a pixel: %s',
                    getattr(pos, 'ra_deg', None), getattr(pos, 'dec_deg', None), order, e)
        return INVALID_PIXEL
    return int(pixel)

def pixelToCoordinate(pixel, order):
    """
    Return the center position of a NESTED pixel.

    :param int pixel:
    :param int order:
    :rtype: SkyPosition
    :return: the pixel center, or the error position (ra=0, dec=0, name='Error')
             if the pixel is not valid at the given order
    """
    try:
        nside = nsideForOrder(order)
        _checkPixel(pixel, order)
        ra, dec = hp.pix2ang(nside, int(pixel), nest=True, lonlat=True)
    except (PixelIndexError, ValueError, TypeError) as e:
        log.warning('cannot convert pixel %s at order %s to coordinates: %s', pixel, order, e)
        return errorPosition()
    return SkyPosition(float(ra), float(dec), 'HEALPix_{}'.format(pixel),
                       'Order {} pixel {}'.format(order, pixel))

def neighbours(pixel, order):
    """
    Return the neighbours of a pixel in healpy's native order
    (SW, W, NW, N, NE, E, SE, S). Neighbours which don't exist
    (this can happen for W, N, E and S at face corners) are omitted.

    :rtype: list of Neighbour
    """
    try:
        nside = nsideForOrder(order)
        _checkPixel(pixel, order)
        native = hp.get_all_neighbours(nside, int(pixel), nest=True)
    except (PixelIndexError, ValueError, TypeError) as e:
        log.warning('cannot resolve neighbours of pixel %s at order %s: %s', pixel, order, e)
        return []

    result = []
    for rawIndex, neighbour in enumerate(np.ravel(native)):
        if neighbour < 0:
            log.debug('%s: no neighbour (edge of coverage)', NATIVE_NEIGHBOUR_ORDER[rawIndex])
            continue
        result.append(Neighbour(int(neighbour), rawIndex))
    return result

def inferDirection(center, neighbour):
    """
    Classify the position of `neighbour` relative to `center` as one of
    :data:`DIRECTIONS`.

    The RA difference is scaled by cos(dec) of the center. An offset is
    vertical (N/S) if the Dec offset is more than twice the RA offset, horizontal
    (E/W) if the RA offset is more than twice the Dec offset, and diagonal otherwise.

    :type center: SkyPosition
    :type neighbour: SkyPosition
    :rtype: str
    """
    dRA = wrapDelta(neighbour.ra_deg - center.ra_deg) * math.cos(math.radians(center.dec_deg))
    dDec = neighbour.dec_deg - center.dec_deg

    ns = 'N' if dDec > 0 else 'S'
    ew = 'E' if dRA > 0 else 'W'
    if abs(dDec) > 2*abs(dRA):
        return ns
    if abs(dRA) > 2*abs(dDec):
        return ew
    return ns + ew

def directionalNeighbours(pixel, order):
    """
    Return the neighbours of a pixel keyed by compass direction.

    The classification is empirical (see :func:`inferDirection`). If two
    neighbours end up in the same direction, the one coming first in
    native order is kept. Missing neighbours are simply not contained in the
    returned dictionary.

    :rtype: dict direction -> pixel
    """
    center = pixelToCoordinate(pixel, order)
    result = {}
    for neighbour in neighbours(pixel, order):
        pos = pixelToCoordinate(neighbour.pixel, order)
        direction = inferDirection(center, pos)
        if direction in result:
            log.debug('pixel %d (native %s) also classified as %s, keeping %d',
                      neighbour.pixel, NATIVE_NEIGHBOUR_ORDER[neighbour.rawIndex],
                      direction, result[direction])
            continue
        result[direction] = neighbour.pixel
    log.debug('directional neighbours of %d at order %d: %s', pixel, order, result)
    return result

def _checkOrder(order):
    if isinstance(order, bool) or not isinstance(order, numbers.Integral):
        raise PixelIndexError('order must be an integer, not ' + repr(order))
    if not 0 <= order <= MAX_ORDER:
        raise PixelIndexError('order must be in [0,{}], not {}'.format(MAX_ORDER, order))

def _checkPixel(pixel, order):
    if isinstance(pixel, bool) or not isinstance(pixel, numbers.Integral):
        raise PixelIndexError('pixel must be an integer, not ' + repr(pixel))
    if not 0 <= pixel < pixelCount(order):
        raise PixelIndexError('pixel {} out of range at order {}'.format(pixel, order))
