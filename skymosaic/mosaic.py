# Copyright European Space Agency, 2013

"""
This module assembles a 3x3 grid of HiPS tiles into a mosaic and crops it
such that a given target coordinate ends up at the center pixel.

The assembly works in three steps:

1. The tiles are pasted into a raw canvas of (3T)x(3T) pixels, T being the
   tile size. Tiles without data leave a black hole.
2. The target is located within the raw canvas. The tile whose center is
   closest to the target serves as anchor of a local linear approximation:
   the angular offset between target and tile center is converted to pixels
   with a fixed image scale, correcting the RA offset by cos(dec).
3. The raw canvas is cropped to the output size around the target position.
   If the crop window would extend past the canvas, it is slid back flush with
   the edge instead of padding, so targets closer than half the output size
   to the canvas edge end up off-center.
"""

import logging
import math

from skymosaic.coordinates.sky import angularDistance, isErrorPosition, wrapDelta
from skymosaic.util.image import blankCanvas

log = logging.getLogger(__name__)

TILE_SIZE = 512
DEFAULT_CROP_SIZE = 1200
ARCSEC_PER_PIXEL = 1.61 # HiPS order 8 with 512px tiles

class AssemblyError(Exception):
    pass

class NoTileDataError(AssemblyError):
    pass

class Mosaic(object):
    """
    A coordinate-centered mosaic. Read-only after creation.
    """
    def __init__(self, image, rawImage, target, targetPixel, cropRect, containingTile, tilesUsed):
        """

        :param image: cropped rgb array of shape (height,width,3)
        :param rawImage: uncropped rgb array of shape (3T,3T,3)
        :param SkyPosition target:
        :param targetPixel: (x,y) of the target within `rawImage`
        :param cropRect: (x,y,width,height) of `image` within `rawImage`
        :param Tile containingTile: tile used as anchor for locating the target
        :param int tilesUsed: number of tiles with data
        """
        image.setflags(write=False)
        rawImage.setflags(write=False)
        self._image = image
        self._rawImage = rawImage
        self._target = target
        self._targetPixel = tuple(targetPixel)
        self._cropRect = tuple(cropRect)
        self._containingTile = containingTile
        self._tilesUsed = tilesUsed

    @property
    def image(self):
        return self._image

    @property
    def rawImage(self):
        return self._rawImage

    @property
    def target(self):
        return self._target

    @property
    def targetPixel(self):
        """ (x,y) of the target in raw canvas coordinates. """
        return self._targetPixel

    @property
    def cropRect(self):
        return self._cropRect

    @property
    def containingTile(self):
        return self._containingTile

    @property
    def tilesUsed(self):
        return self._tilesUsed

    @property
    def outputSize(self):
        """ (width,height) of the cropped image. """
        return self._cropRect[2], self._cropRect[3]

    @property
    def targetPixelInOutput(self):
        """ (x,y) of the target in the cropped image. """
        return (self._targetPixel[0] - self._cropRect[0],
                self._targetPixel[1] - self._cropRect[1])

    def __repr__(self):
        return 'Mosaic(target={}, size={}x{}, tilesUsed={})'.format(
            self._target.name, self.outputSize[0], self.outputSize[1], self._tilesUsed)

def roundHalfAway(x):
    """ Round to the nearest integer, halves away from zero (unlike Python's round). """
    if x >= 0:
        return int(math.floor(x + 0.5))
    return -int(math.floor(-x + 0.5))

def composeRaw(tiles, tileSize=TILE_SIZE):
    """
    Paste all tiles with data into a black canvas of (3*tileSize)x(3*tileSize)
    at offset (gridX*tileSize, gridY*tileSize). Tiles of a different size than
    tileSize x tileSize are clipped to their cell.

    :param tiles: list of :class:`~skymosaic.hips.grid.Tile`
    :rtype: rgb array of shape (3*tileSize,3*tileSize,3)
    """
    size = 3 * tileSize
    raw = blankCanvas(size, size)
    for tile in tiles:
        if not tile.hasData:
            log.info('  Skipping tile %d,%d - not downloaded', tile.gridX, tile.gridY)
            continue
        im = tile.image
        if im.shape[0] != tileSize or im.shape[1] != tileSize:
            log.warning('tile %d,%d has size %dx%d instead of %dx%d, clipping', tile.gridX, tile.gridY,
                        im.shape[1], im.shape[0], tileSize, tileSize)
        h = min(im.shape[0], tileSize)
        w = min(im.shape[1], tileSize)
        x = tile.gridX * tileSize
        y = tile.gridY * tileSize
        raw[y:y+h, x:x+w] = im[:h, :w, :3]
        log.debug('  Placed tile (%d,%d) at pixel (%d,%d)', tile.gridX, tile.gridY, x, y)
    return raw

def findContainingTile(target, tiles):
    """
    Return the tile whose center is angularly closest to the target,
    or None if no tile has valid coordinates.
    On ties, the first tile wins.
    """
    containingTile = None
    minDistance = float('inf')
    for tile in tiles:
        if isErrorPosition(tile.skyCoordinates):
            continue
        distance = angularDistance(target, tile.skyCoordinates)
        if distance < minDistance:
            minDistance = distance
            containingTile = tile
    return containingTile

def angularOffsetArcsec(target, center):
    """
    Return the (RA, Dec) offset of `target` from `center` in arcsec.
    The RA offset is multiplied by cos(dec) of the target to account for
    the convergence of meridians.

    :rtype: tuple (offsetRA, offsetDec)
    """
    offsetRA = wrapDelta(target.ra_deg - center.ra_deg) * 3600.0
    offsetDec = (target.dec_deg - center.dec_deg) * 3600.0
    offsetRA *= math.cos(math.radians(target.dec_deg))
    return offsetRA, offsetDec

def targetPixelPosition(target, tiles, tileSize=TILE_SIZE, arcsecPerPixel=ARCSEC_PER_PIXEL):
    """
    Return the pixel position of `target` within the raw canvas
    (see :func:`composeRaw`).

    :rtype: tuple (x, y, containingTile), x and y clamped to [0, 3*tileSize-1];
            if there is no usable tile, the canvas center and None are returned
    """
    size = 3 * tileSize
    tile = findContainingTile(target, tiles)
    if tile is None:
        log.warning('Could not find containing tile, using geometric center')
        return size // 2, size // 2, None

    log.info('Target is in tile (%d,%d) with center at RA=%.6f, Dec=%.6f', tile.gridX, tile.gridY,
             tile.skyCoordinates.ra_deg, tile.skyCoordinates.dec_deg)

    offsetRA, offsetDec = angularOffsetArcsec(target, tile.skyCoordinates)
    log.debug('Angular offset from tile center: RA=%.2f", Dec=%.2f"', offsetRA, offsetDec)

    offsetX = offsetRA / arcsecPerPixel
    offsetY = -offsetDec / arcsecPerPixel # image rows increase downwards
    log.debug('Pixel offset from tile center: %.1f,%.1f', offsetX, offsetY)

    centerX, centerY = tilePixelCenter(tile, tileSize)
    x = centerX + roundHalfAway(offsetX)
    y = centerY + roundHalfAway(offsetY)

    x = max(0, min(x, size - 1))
    y = max(0, min(y, size - 1))
    return x, y, tile

def cropRect(width, height, targetPixel, cropSize=DEFAULT_CROP_SIZE):
    """
    Return the crop window which centers `targetPixel`, slid back inside
    the canvas where necessary. The window is never larger than the canvas.

    :param width: canvas width
    :param height: canvas height
    :param targetPixel: (x,y)
    :rtype: tuple (x, y, width, height)
    """
    cropWidth = min(cropSize, width)
    cropHeight = min(cropSize, height)

    x = targetPixel[0] - cropWidth // 2
    y = targetPixel[1] - cropHeight // 2

    if x < 0:
        log.info('Crop X adjusted from %d to 0 (target too close to left edge)', x)
        x = 0
    if y < 0:
        log.info('Crop Y adjusted from %d to 0 (target too close to top edge)', y)
        y = 0
    if x + cropWidth > width:
        log.info('Crop X adjusted from %d to %d (target too close to right edge)', x, width - cropWidth)
        x = width - cropWidth
    if y + cropHeight > height:
        log.info('Crop Y adjusted from %d to %d (target too close to bottom edge)', y, height - cropHeight)
        y = height - cropHeight

    return x, y, cropWidth, cropHeight

def cropToCenter(raw, targetPixel, cropSize=DEFAULT_CROP_SIZE):
    """
    Crop the raw canvas around `targetPixel`, see :func:`cropRect`.

    :rtype: tuple (cropped image copy, crop rectangle)
    """
    rect = cropRect(raw.shape[1], raw.shape[0], targetPixel, cropSize)
    x, y, w, h = rect
    return raw[y:y+h, x:x+w].copy(), rect

def assembleMosaic(target, tiles, tileSize=TILE_SIZE, cropSize=DEFAULT_CROP_SIZE,
                   arcsecPerPixel=ARCSEC_PER_PIXEL):
    """
    Assemble the tiles into a mosaic centered on `target`.

    :type target: SkyPosition
    :param tiles: the nine planned tiles, with or without data
    :param tileSize: edge length of a tile in pixels
    :param cropSize: edge length of the output image, capped to the canvas size
    :param arcsecPerPixel: image scale of the tiles
    :rtype: Mosaic
    :raise NoTileDataError: if none of the tiles has data
    """
    tilesUsed = sum(1 for tile in tiles if tile.hasData)
    if tilesUsed == 0:
        raise NoTileDataError('No tile data available for ' + str(target.name))

    log.info('Assembling raw 3x3 mosaic (%dx%d pixels) from %d tiles',
             3*tileSize, 3*tileSize, tilesUsed)
    raw = composeRaw(tiles, tileSize)

    x, y, containingTile = targetPixelPosition(target, tiles, tileSize, arcsecPerPixel)
    log.info('Target coordinates map to pixel (%d,%d) in raw mosaic', x, y)

    image, rect = cropToCenter(raw, (x, y), cropSize)
    log.info('Cropped to %dx%d at (%d,%d)', rect[2], rect[3], rect[0], rect[1])

    return Mosaic(image, raw, target, (x, y), rect, containingTile, tilesUsed)

def tilePixelCenter(tile, tileSize=TILE_SIZE):
    """ Geometric center of a tile's cell in raw canvas coordinates. """
    return tile.gridX * tileSize + tileSize // 2, tile.gridY * tileSize + tileSize // 2

