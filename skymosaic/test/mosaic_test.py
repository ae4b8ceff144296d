# Copyright European Space Agency, 2013

import unittest
import numpy as np
from numpy.testing import assert_array_equal

from skymosaic.coordinates.sky import SkyPosition, errorPosition
from skymosaic.hips.grid import Tile, planGrid
from skymosaic.mosaic import composeRaw, cropRect, cropToCenter, assembleMosaic,\
    targetPixelPosition, angularOffsetArcsec, findContainingTile, roundHalfAway,\
    NoTileDataError, ARCSEC_PER_PIXEL

M31 = SkyPosition(10.6847, 41.2687, 'M31')

T = 64 # small tiles keep the tests fast
STEP = T * ARCSEC_PER_PIXEL / 3600 # tile width in degrees at dec 0

def syntheticTiles(ra=100.0, dec=0.0, withData=True):
    """
    Tiles on a regular grid around (ra,dec), each filled with a distinct gray value.
    """
    tiles = []
    for y in range(3):
        for x in range(3):
            pos = SkyPosition(ra + (x - 1)*STEP, dec - (y - 1)*STEP)
            tile = Tile(x, y, y*3 + x, 8, pos, 'http://tile/{}'.format(y*3 + x), 'tile.jpg')
            if withData:
                tile.image = np.full((T, T, 3), 10 + 20*(y*3 + x), np.uint8)
                tile.downloaded = True
            tiles.append(tile)
    return tiles

def filledTiles(plan, size):
    for tile in plan.tiles:
        tile.image = np.full((size, size, 3), 100, np.uint8)
        tile.downloaded = True
    return plan.tiles

class Test(unittest.TestCase):

    def testComposeRaw(self):
        tiles = syntheticTiles()
        tiles[4].downloaded = False
        raw = composeRaw(tiles, T)
        self.assertEqual(raw.shape, (3*T, 3*T, 3))
        self.assertEqual(raw.dtype, np.uint8)
        for tile in tiles:
            cell = raw[tile.gridY*T:(tile.gridY + 1)*T, tile.gridX*T:(tile.gridX + 1)*T]
            expected = 0 if tile is tiles[4] else 10 + 20*tile.pixel
            self.assertTrue(np.all(cell == expected))

    def testComposeRawOddSizes(self):
        tiles = syntheticTiles()
        tiles[0].image = np.full((T + 10, T + 5, 3), 255, np.uint8)
        tiles[8].image = np.full((T // 2, T // 2, 3), 255, np.uint8)
        raw = composeRaw(tiles, T)
        self.assertTrue(np.all(raw[:T, :T] == 255))
        self.assertEqual(raw[T, T, 0], 10 + 20*4)
        self.assertTrue(np.all(raw[2*T:2*T + T//2, 2*T:2*T + T//2] == 255))
        self.assertTrue(np.all(raw[-1, -1] == 0))

    def testTileCenterMapsToCellCenter(self):
        tiles = syntheticTiles()
        for tile in tiles:
            x, y, containing = targetPixelPosition(tile.skyCoordinates, tiles, T)
            self.assertIs(containing, tile)
            self.assertEqual((x, y), (tile.gridX*T + T//2, tile.gridY*T + T//2))

    def testOffsetDirection(self):
        tiles = syntheticTiles()
        # 10px east and 20px north of the center tile's center
        target = SkyPosition(100.0 + 10*ARCSEC_PER_PIXEL/3600, 20*ARCSEC_PER_PIXEL/3600)
        x, y, _ = targetPixelPosition(target, tiles, T)
        self.assertEqual((x, y), (T + T//2 + 10, T + T//2 - 20))

    def testOffsetDeclinationCorrection(self):
        center = SkyPosition(100.0, 60.0)
        target = SkyPosition(100.1, 60.0)
        offsetRA, offsetDec = angularOffsetArcsec(target, center)
        self.assertAlmostEqual(offsetRA, 0.1*3600*0.5)
        self.assertEqual(offsetDec, 0.0)

        offsetRA, _ = angularOffsetArcsec(SkyPosition(359.95, 0.0), SkyPosition(0.05, 0.0))
        self.assertAlmostEqual(offsetRA, -0.1*3600)

    def testPixelOffsetShrinksWithDeclination(self):
        offsets = []
        for dec in [0.0, 80.0]:
            tile = syntheticTiles(dec=dec)[4]
            x, y, _ = targetPixelPosition(SkyPosition(100.02, dec), [tile], T)
            self.assertEqual(y, T + T//2)
            offsets.append(x - (T + T//2))
        self.assertEqual(offsets[0], 45)
        self.assertAlmostEqual(offsets[1] / offsets[0], np.cos(np.radians(80)), delta=0.02)

    def testTargetClamped(self):
        tiles = syntheticTiles()
        x, y, _ = targetPixelPosition(SkyPosition(100.0 + 10*STEP, -10*STEP), tiles, T)
        self.assertEqual((x, y), (3*T - 1, 3*T - 1))
        x, y, _ = targetPixelPosition(SkyPosition(100.0 - 10*STEP, 10*STEP), tiles, T)
        self.assertEqual((x, y), (0, 0))

    def testNoUsableTile(self):
        tiles = syntheticTiles()
        for tile in tiles:
            tile.skyCoordinates = errorPosition()
        self.assertIsNone(findContainingTile(M31, tiles))
        x, y, containing = targetPixelPosition(M31, tiles, T)
        self.assertEqual((x, y, containing), (3*T // 2, 3*T // 2, None))

    def testContainingTileSkipsErrorPositions(self):
        tiles = syntheticTiles(ra=0.0)
        tiles[4].skyCoordinates = errorPosition()
        # (0,0) is the center of the grid but also the error position
        self.assertIsNot(findContainingTile(SkyPosition(0.0, 0.0), tiles), tiles[4])

    def testCropRect(self):
        self.assertEqual(cropRect(1536, 1536, (768, 768), 1200), (168, 168, 1200, 1200))
        self.assertEqual(cropRect(1536, 1536, (0, 0), 1200), (0, 0, 1200, 1200))
        self.assertEqual(cropRect(1536, 1536, (1535, 1535), 1200), (336, 336, 1200, 1200))
        self.assertEqual(cropRect(1536, 1536, (488, 1154), 512), (232, 898, 512, 512))
        self.assertEqual(cropRect(300, 200, (150, 100), 1200), (0, 0, 300, 200))

    def testCropRectContainment(self):
        for width, height in [(1536, 1536), (192, 192), (1000, 600)]:
            for cropSize in [1, 100, 512, 1200, 5000]:
                for tx in range(0, width, max(1, width // 13)):
                    for ty in range(0, height, max(1, height // 11)):
                        x, y, w, h = cropRect(width, height, (tx, ty), cropSize)
                        self.assertEqual((w, h), (min(cropSize, width), min(cropSize, height)))
                        self.assertTrue(0 <= x and x + w <= width)
                        self.assertTrue(0 <= y and y + h <= height)
                        self.assertTrue(x <= tx < x + w)
                        self.assertTrue(y <= ty < y + h)

    def testCropToCenter(self):
        raw = np.arange(10*10*3, dtype=np.int32).reshape(10, 10, 3)
        image, rect = cropToCenter(raw, (5, 5), 4)
        self.assertEqual(rect, (3, 3, 4, 4))
        assert_array_equal(image, raw[3:7, 3:7])
        image[0, 0] = 0
        self.assertEqual(raw[3, 3, 0], (3*10 + 3)*3)

    def testAssembleCentered(self):
        tiles = syntheticTiles()
        target = SkyPosition(100.0 + 5*ARCSEC_PER_PIXEL/3600, -7*ARCSEC_PER_PIXEL/3600, 'Synthetic')
        mosaic = assembleMosaic(target, tiles, T, cropSize=T)
        self.assertEqual(mosaic.outputSize, (T, T))
        self.assertEqual(mosaic.image.shape, (T, T, 3))
        self.assertEqual(mosaic.rawImage.shape, (3*T, 3*T, 3))
        self.assertEqual(mosaic.targetPixelInOutput, (T//2, T//2))
        self.assertIs(mosaic.containingTile, tiles[4])
        self.assertEqual(mosaic.tilesUsed, 9)
        self.assertFalse(mosaic.image.flags.writeable)

    def testAssembleNoData(self):
        tiles = syntheticTiles(withData=False)
        self.assertRaises(NoTileDataError, assembleMosaic, M31, tiles, T)

    def testAssembleWithoutCenterTile(self):
        tiles = syntheticTiles()
        tiles[4].image = None
        tiles[4].downloaded = False
        mosaic = assembleMosaic(tiles[4].skyCoordinates, tiles, T, cropSize=T)
        self.assertEqual(mosaic.tilesUsed, 8)
        # the center tile still anchors the target, its area stays black
        self.assertEqual(mosaic.targetPixel, (T + T//2, T + T//2))
        self.assertTrue(np.all(mosaic.image == 0))

    def testM31(self):
        plan = planGrid(M31, 8)
        tiles = filledTiles(plan, 512)

        mosaic = assembleMosaic(M31, tiles)
        self.assertEqual(mosaic.containingTile.pixel, 43344)
        self.assertEqual((mosaic.containingTile.gridX, mosaic.containingTile.gridY), (0, 2))
        self.assertEqual(mosaic.targetPixel, (488, 1154))
        self.assertEqual(mosaic.outputSize, (1200, 1200))
        # too close to the bottom edge, the window is slid back into the canvas
        self.assertEqual(mosaic.cropRect, (0, 336, 1200, 1200))

        mosaic = assembleMosaic(M31, tiles, cropSize=512)
        x, y = mosaic.targetPixelInOutput
        self.assertLessEqual(abs(x - 256), 1)
        self.assertLessEqual(abs(y - 256), 1)

    def testRoundHalfAway(self):
        self.assertEqual(roundHalfAway(2.5), 3)
        self.assertEqual(roundHalfAway(-2.5), -3)
        self.assertEqual(roundHalfAway(0.4), 0)
        self.assertEqual(roundHalfAway(-0.6), -1)
        self.assertEqual(roundHalfAway(0.0), 0)

if __name__ == "__main__":
    unittest.main()
