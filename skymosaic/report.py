# Copyright European Space Agency, 2013

"""
Writes the text report accompanying each mosaic. It lists every cell of
the 3x3 grid so that missing tiles can be identified.
"""

import csv
from datetime import datetime

REPORT_HEADER = ['Grid_X', 'Grid_Y', 'HEALPix_Pixel', 'Tile_RA', 'Tile_Dec',
                 'Downloaded', 'ImageSize', 'Filename']

def reportRows(tiles):
    """
    :param tiles: list of :class:`~skymosaic.hips.grid.Tile`
    :rtype: list of rows matching REPORT_HEADER, all values as strings
    """
    rows = []
    for tile in tiles:
        width, height = tile.imageSize
        rows.append([str(tile.gridX), str(tile.gridY), str(tile.pixel),
                     '{:.6f}'.format(tile.skyCoordinates.ra_deg),
                     '{:.6f}'.format(tile.skyCoordinates.dec_deg),
                     'YES' if tile.downloaded else 'NO',
                     '{}x{}'.format(width, height),
                     tile.filename])
    return rows

def writeReport(path, target, tiles, generated=None, mosaic=None):
    """
    Write the report of a mosaic to `path`.

    :param SkyPosition target:
    :param tiles: the tiles of the mosaic
    :param datetime generated: report date, defaults to now
    :param Mosaic mosaic: if given, the target pixel and crop window are reported
    """
    if generated is None:
        generated = datetime.now()
    with open(path, 'w', newline='') as fp:
        fp.write('{} Coordinate-Centered Mosaic Report\n'.format(target.name))
        fp.write('Generated: {}\n\n'.format(generated.isoformat(' ', 'seconds')))
        fp.write('Target coordinates: RA {:.6f} deg, Dec {:.6f} deg\n'.format(target.ra_deg, target.dec_deg))
        if mosaic is not None:
            fp.write(placementLine(mosaic))
        fp.write('\n')
        fp.write('3x3 Tile Grid Used:\n')
        writer = csv.writer(fp, lineterminator='\n')
        writer.writerow(REPORT_HEADER)
        writer.writerows(reportRows(tiles))

def readReportRows(path):
    """
    Return the tile rows of a report written by :func:`writeReport`
    as dictionaries keyed by REPORT_HEADER.
    """
    with open(path, 'r', newline='') as fp:
        lines = fp.read().splitlines()
    start = lines.index(','.join(REPORT_HEADER))
    return list(csv.DictReader(lines[start:]))

def placementLine(mosaic):
    """
    Describe where the target ended up in the cropped mosaic. The target is
    off-center if the crop window had to be slid back inside the raw mosaic.
    """
    x, y = mosaic.targetPixelInOutput
    width, height = mosaic.outputSize
    cropX, cropY, cropWidth, cropHeight = mosaic.cropRect
    if abs(x - width // 2) <= 1 and abs(y - height // 2) <= 1:
        placement = 'at mosaic center'
    else:
        placement = 'off-center, crop window clamped to the raw mosaic'
    return ('Target pixel: ({}, {}) in {}x{} mosaic ({})\n'
            'Crop window in raw mosaic: x={}, y={}, width={}, height={}\n').format(
                x, y, width, height, placement, cropX, cropY, cropWidth, cropHeight)
