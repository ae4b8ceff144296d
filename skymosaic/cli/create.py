# Copyright European Space Agency, 2013

"""
Creates coordinate-centered mosaics from HiPS survey tiles, e.g. to
produce test images for plate solvers.
"""

import argparse
import csv
import logging
import math
import os
import sys
from collections import namedtuple

from skymosaic import __version__
from skymosaic.coordinates.parse import parseRA, parseDec, formatHMS, formatDMS
from skymosaic.coordinates.sky import SkyPosition, normalizeRA, clampDec
from skymosaic.creator import MosaicCreator, defaultOutputDir
from skymosaic.hips.grid import DEFAULT_ORDER
from skymosaic.hips.surveys import SURVEYS, DEFAULT_SURVEY
from skymosaic.mosaic import DEFAULT_CROP_SIZE
from skymosaic.util.image import letterbox, saveImage
from skymosaic.util.os import makedirs, safeName

__all__ = ['main']

class Modes(object):
    SINGLE = 'single'
    GRID = 'grid'
    TARGETS = 'targets'

COMMON_TARGETS = [
    SkyPosition(10.6847, 41.2687, 'M31_Andromeda', 'Northern'),
    SkyPosition(83.8221, -5.3911, 'M42_Orion', 'Equatorial'),
    SkyPosition(202.4696, 47.1952, 'M51_Whirlpool', 'Northern'),
    SkyPosition(148.8884, 69.0653, 'M81_Bodes', 'Far northern'),
    SkyPosition(37.9546, 89.2641, 'Polaris', 'North pole'),
    SkyPosition(279.2346, 38.7837, 'Vega', 'Summer'),
    SkyPosition(101.2872, -16.7161, 'Sirius', 'Bright star'),
    SkyPosition(88.7929, 7.4070, 'Betelgeuse', 'Bright star'),
]

METADATA_HEADER = ['Filename', 'RA_deg', 'Dec_deg', 'RA_HMS', 'Dec_DMS', 'FOV_width', 'FOV_height',
                   'Pixel_scale', 'Image_width', 'Image_height', 'Survey']

CreatedImage = namedtuple('CreatedImage', ['target', 'filename', 'width', 'height', 'arcsecPerPixel'])

description = '''
This tool creates mosaics of HiPS survey tiles which are centered on the given
coordinates and stores them on disk together with a metadata file.
'''

epilog = '''
Examples:

skymosaic-create single --ra 00:42:44.3 --dec +41:16:09 --name M31
skymosaic-create single --ra 202.47d --dec 47.20 --name M51 --camera 3072x2048
skymosaic-create grid --ra 202.47d --dec 47.20 --grid-size 5 --spacing 0.5
skymosaic-create targets --dir test_images
'''

def cameraSize(text):
    try:
        width, height = text.lower().split('x')
        width, height = int(width), int(height)
    except ValueError:
        raise argparse.ArgumentTypeError('expected WIDTHxHEIGHT, e.g. 3072x2048, not ' + repr(text))
    if width <= 0 or height <= 0:
        raise argparse.ArgumentTypeError('camera size must be positive')
    return width, height

def getParser():
    parser = argparse.ArgumentParser(prog='skymosaic-create',
                                     epilog=epilog, description=description,
                                     formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument('mode', help='What to create mosaics for',
                        choices=[Modes.SINGLE, Modes.GRID, Modes.TARGETS])
    position = parser.add_argument_group('position',
                                         'For the single and grid modes, --ra and --dec are required.\n'
                                         'Decimal RA values <= 24 are read as hours unless suffixed with d.')
    position.add_argument('--ra', help='Right ascension, e.g. 10.5, 150.2d, 12:34:56 or 12h34m56s')
    position.add_argument('--dec', help='Declination, e.g. -5.3, -05:30:00 or -5d30m00s')
    position.add_argument('--name', help='Image name (single mode)', default='test_image')
    position.add_argument('--grid-size', help='Number of positions per axis (grid mode)', type=int, default=3)
    position.add_argument('--spacing', help='Spacing between positions in degrees (grid mode)',
                          type=float, default=1.0)

    parser.add_argument('--dir', help='Directory to store images in, by default ' + defaultOutputDir(),
                        default=None)
    parser.add_argument('--survey', help='HiPS survey', choices=list(SURVEYS), default=DEFAULT_SURVEY)
    parser.add_argument('--order', help='HEALPix order of the tiles', type=int, default=DEFAULT_ORDER)
    parser.add_argument('--crop-size', help='Edge length of the mosaic in pixels',
                        type=int, default=DEFAULT_CROP_SIZE)
    parser.add_argument('--camera', help='Letterbox the mosaic to a camera resolution, e.g. 3072x2048',
                        type=cameraSize)
    parser.add_argument('--verbose', help='Show debug output', action='store_true')
    parser.add_argument('--version', action='version', version='skymosaic ' + __version__)
    return parser

def parseargs(argv=None):
    parser = getParser()

    if argv is None:
        argv = sys.argv[1:]
    if len(argv) == 0:
        parser.print_help()
        sys.exit(1)
    args = parser.parse_args(argv)

    if args.mode in [Modes.SINGLE, Modes.GRID]:
        if args.ra is None or args.dec is None:
            parser.error('--ra and --dec are required for the {} mode'.format(args.mode))
    if args.mode == Modes.GRID and args.grid_size < 1:
        parser.error('--grid-size must be at least 1')
    if args.order < 0:
        parser.error('--order must not be negative')
    if args.crop_size < 1:
        parser.error('--crop-size must be positive')
    return args

def gridPositions(centerRa, centerDec, gridSize=3, spacing=1.0):
    """
    Return gridSize x gridSize positions around a center, `spacing` degrees apart.
    RA offsets are divided by cos(dec) so that the spacing is the same on the sky,
    RA is wrapped into [0,360) and Dec clamped to [-90,90].

    :rtype: list of SkyPosition in row-major order, named grid_<x>_<y>
    """
    cosDec = math.cos(math.radians(centerDec))
    positions = []
    for y in range(gridSize):
        for x in range(gridSize):
            offsetX = (x - gridSize // 2) * spacing
            offsetY = (y - gridSize // 2) * spacing
            ra = centerRa + (offsetX / cosDec if cosDec > 1e-12 else 0.0)
            dec = centerDec + offsetY
            positions.append(SkyPosition(normalizeRA(ra), clampDec(dec), 'grid_{}_{}'.format(x, y),
                                         'Grid position around RA={}, Dec={}'.format(centerRa, centerDec)))
    return positions

def getTargets(args):
    if args.mode == Modes.SINGLE:
        ra, dec = parseRA(args.ra), parseDec(args.dec)
        return [SkyPosition(ra, dec, args.name,
                            'Test image for plate solver at RA={}, Dec={}'.format(ra, dec))]
    elif args.mode == Modes.GRID:
        return gridPositions(parseRA(args.ra), parseDec(args.dec), args.grid_size, args.spacing)
    else:
        return list(COMMON_TARGETS)

def createImages(creator, targets, outputDir, camera=None):
    """
    Create one mosaic per target and store it as `<name>.png` in `outputDir`,
    letterboxed to `camera` (width,height) if given.

    :rtype: list of CreatedImage
    """
    created = []
    for i, target in enumerate(targets):
        logging.info('[%d/%d] Processing: %s', i + 1, len(targets), target.name)
        mosaic = creator.createCustomMosaic(target)
        if mosaic is None:
            print('Failed to create image for', target.name)
            continue

        image = mosaic.image
        arcsecPerPixel = creator.arcsecPerPixel
        if camera is not None:
            width, height = camera
            scale = min(width / image.shape[1], height / image.shape[0])
            image = letterbox(image, width, height)
            arcsecPerPixel /= scale

        filename = safeName(target.name) + '.png'
        saveImage(os.path.join(outputDir, filename), image)
        created.append(CreatedImage(target, filename, image.shape[1], image.shape[0], arcsecPerPixel))
    return created

def writeMetadata(path, created, survey):
    """
    Write the metadata CSV describing all created images.
    """
    with open(path, 'w', newline='') as fp:
        writer = csv.writer(fp, lineterminator='\n')
        writer.writerow(METADATA_HEADER)
        for image in created:
            writer.writerow([image.filename,
                             '{:.6f}'.format(image.target.ra_deg),
                             '{:.6f}'.format(image.target.dec_deg),
                             formatHMS(image.target.ra_deg),
                             formatDMS(image.target.dec_deg),
                             '{:.4f}'.format(image.arcsecPerPixel * image.width / 3600),
                             '{:.4f}'.format(image.arcsecPerPixel * image.height / 3600),
                             '{:.2f}'.format(image.arcsecPerPixel),
                             image.width, image.height, survey])

def main(argv=None):
    args = parseargs(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    outputDir = args.dir or defaultOutputDir()
    makedirs(outputDir)

    creator = MosaicCreator(outputDir, survey=args.survey, order=args.order, cropSize=args.crop_size)
    created = createImages(creator, getTargets(args), outputDir, args.camera)

    metadataPath = os.path.join(outputDir, 'test_metadata.csv')
    writeMetadata(metadataPath, created, args.survey)

    print('Created {} image(s) in {}'.format(len(created), outputDir))
    print('Done.')

main.__doc__ = """
::

  {}


""".format(getParser().format_help().replace('\n', '\n  '))

if __name__ == '__main__':
    main()
