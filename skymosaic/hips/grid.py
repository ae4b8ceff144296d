# Copyright European Space Agency, 2013

"""
Planning of the 3x3 tile grid around a target coordinate.

The grid rows go from north to south and the columns from west to east::

    [NW]  [N]  [NE]
    [W]   [C]  [E]
    [SW]  [S]  [SE]

Directions without a neighbouring pixel (edge of sky coverage) reuse the
center pixel. This produces visually duplicated tiles at such edges
and is accepted behaviour, not an error.
"""

import logging
import math
import os
from collections import namedtuple

from skymosaic.coordinates.sky import angularDistance, wrapDelta
from skymosaic.coordinates.healpix import coordinateToPixel, pixelToCoordinate,\
    directionalNeighbours, INVALID_PIXEL
from skymosaic.hips.surveys import getSurvey, tileUrl, tileFilename, DEFAULT_SURVEY

log = logging.getLogger(__name__)

DEFAULT_ORDER = 8

GRID_LAYOUT = (('NW', 'N', 'NE'),
               ('W', None, 'E'),
               ('SW', 'S', 'SE'))

GridPlan = namedtuple('GridPlan', ['target', 'order', 'centerPixel', 'grid', 'tiles'])

class Tile(object):
    """
    A single cell of the 3x3 grid. Created by :func:`planGrid` and
    filled with raster data by the fetching step.
    """
    def __init__(self, gridX, gridY, pixel, order, skyCoordinates, url, filename):
        """

        :param int gridX: column, 0 (west) to 2 (east)
        :param int gridY: row, 0 (north) to 2 (south)
        :param int pixel: NESTED HEALPix pixel at `order`
        :param SkyPosition skyCoordinates: center of the pixel
        :param str url: source URL of the tile
        :param str filename: path of the local copy
        """
        self.gridX = gridX
        self.gridY = gridY
        self.pixel = pixel
        self.order = order
        self.skyCoordinates = skyCoordinates
        self.url = url
        self.filename = filename
        self.image = None
        self.downloaded = False
        self.error = None

    @property
    def hasData(self):
        return self.downloaded and self.image is not None

    @property
    def imageSize(self):
        """ (width, height) of the raster, (0,0) if there is none. """
        if self.image is None:
            return 0, 0
        return self.image.shape[1], self.image.shape[0]

    def __repr__(self):
        return 'Tile(grid=({},{}), pixel={}, downloaded={})'.format(
            self.gridX, self.gridY, self.pixel, self.downloaded)

def build3x3(centerPixel, order, resolver=directionalNeighbours):
    """
    Return the 3x3 grid of pixels around `centerPixel`.

    :param int centerPixel:
    :param int order:
    :param resolver: function (pixel, order) -> dict direction -> pixel
    :rtype: list of 3 rows with 3 pixels each, grid[1][1] == centerPixel
    """
    neighbours = resolver(centerPixel, order)
    grid = [[centerPixel if direction is None else neighbours.get(direction, centerPixel)
             for direction in row]
            for row in GRID_LAYOUT]

    for name, row in zip(['North', 'Center', 'South'], grid):
        log.debug('  [%8d] [%8d] [%8d]  <- %s', row[0], row[1], row[2], name)
    return grid

def planGrid(target, order=DEFAULT_ORDER, survey=DEFAULT_SURVEY, outputDir='.', resolver=directionalNeighbours):
    """
    Plan the tiles needed for a mosaic centered on `target`.
    No network access happens here.

    :type target: SkyPosition
    :param int order: HEALPix order of the tiles
    :param survey: survey name or :class:`~skymosaic.hips.surveys.HipsSurvey`
    :param str outputDir: folder where tiles are cached
    :rtype: GridPlan
    :raise ValueError: if `target` cannot be converted to a pixel at `order`
    """
    survey = getSurvey(survey)
    if order > survey.maxOrder:
        log.warning('order %d exceeds the maximum order %d of survey %s, tiles will likely be missing',
                    order, survey.maxOrder, survey.name)

    centerPixel = coordinateToPixel(target, order)
    if centerPixel == INVALID_PIXEL:
        raise ValueError('Cannot determine the HEALPix pixel of {} at order {}'.format(target, order))

    grid = build3x3(centerPixel, order, resolver=resolver)

    log.info('Creating 3x3 tile grid around %s (center pixel %d, order %d)',
             target.name, centerPixel, order)

    tiles = []
    for y in range(3):
        for x in range(3):
            pixel = grid[y][x]
            tile = Tile(x, y, pixel, order,
                        skyCoordinates=pixelToCoordinate(pixel, order),
                        url=tileUrl(survey.baseUrl, order, pixel, survey.format),
                        filename=os.path.join(outputDir, tileFilename(pixel, survey.format)))
            distance = math.degrees(angularDistance(target, tile.skyCoordinates)) * 3600
            log.debug('  Grid(%d,%d): HEALPix %d%s (%.1f arcsec from target)', x, y, pixel,
                      ' [center]' if (x, y) == (1, 1) else '', distance)
            tiles.append(tile)

    return GridPlan(target, order, centerPixel, grid, tiles)

def verifyGrid(grid, order):
    """
    Return the position of each grid cell relative to the center cell,
    useful for checking the direction classification.

    :rtype: list of rows of tuples (pixel, ra, dec, dRA, dDec) with dRA
            already scaled by cos(dec) of the center, all in degrees
    """
    center = pixelToCoordinate(grid[1][1], order)
    cosDec = math.cos(math.radians(center.dec_deg))
    rows = []
    for row in grid:
        cells = []
        for pixel in row:
            pos = pixelToCoordinate(pixel, order)
            cells.append((pixel, pos.ra_deg, pos.dec_deg,
                          wrapDelta(pos.ra_deg - center.ra_deg) * cosDec,
                          pos.dec_deg - center.dec_deg))
        rows.append(cells)
    return rows
