# Copyright European Space Agency, 2013

"""
This module creates coordinate-centered mosaics from HiPS tiles.

A :class:`MosaicCreator` runs through the states::

    idle -> planning -> fetching (tile 0..8) -> assembling -> done | failed

Tiles are fetched strictly one after the other. After each fetch the creator
waits a short settling delay before the next tile is requested. Valid local
copies of tiles are reused instead of fetching them again. Fetch failures
are recorded per tile and never abort the run; only if no tile at all has
data, the run fails.

Example::

    creator = MosaicCreator('mosaics')
    target = creator.setCustomCoordinates('00:42:44.3', '+41:16:09', 'M31')
    mosaic = creator.createCustomMosaic(target)
"""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor

from skymosaic.coordinates.parse import parseCoordinates, DEFAULT_NAME
from skymosaic.coordinates.healpix import tileArcsecPerPixel
from skymosaic.hips.grid import planGrid, verifyGrid, DEFAULT_ORDER
from skymosaic.hips.surveys import getSurvey, magicBytes, DEFAULT_SURVEY
from skymosaic.mosaic import assembleMosaic, NoTileDataError, TILE_SIZE, DEFAULT_CROP_SIZE,\
    ARCSEC_PER_PIXEL
from skymosaic.report import writeReport
from skymosaic.util.image import loadImage, decodeImage, saveImage, hasSignature, annotateCenter
from skymosaic.util.os import makedirs, safeName, fileSize, writeAtomic
from skymosaic.util.url import downloadBytes, DownloadError, DEFAULT_TIMEOUT

log = logging.getLogger(__name__)

SETTLE_DELAY = 0.5 # seconds to wait after a fetch
REUSE_DELAY = 0.1 # seconds to wait after reusing a cached tile
MIN_TILE_BYTES = 1024

class State(object):
    IDLE = 'idle'
    PLANNING = 'planning'
    FETCHING = 'fetching'
    ASSEMBLING = 'assembling'
    DONE = 'done'
    FAILED = 'failed'

    FINAL = (DONE, FAILED)

def defaultOutputDir():
    """
    Return $SKYMOSAIC_DIR if set, otherwise ~/.skymosaic/mosaics.
    """
    return os.environ.get('SKYMOSAIC_DIR') or \
           os.path.join(os.path.expanduser('~'), '.skymosaic', 'mosaics')

class MosaicCreator(object):
    """
    Plans, fetches and assembles a coordinate-centered mosaic for one target
    at a time. The creator exclusively owns its tiles while a run is in progress.
    """
    def __init__(self, outputDir=None, survey=DEFAULT_SURVEY, order=DEFAULT_ORDER,
                 tileSize=TILE_SIZE, cropSize=DEFAULT_CROP_SIZE, arcsecPerPixel=None,
                 fetch=downloadBytes, timeout=DEFAULT_TIMEOUT,
                 settleDelay=SETTLE_DELAY, reuseDelay=REUSE_DELAY, minTileBytes=MIN_TILE_BYTES,
                 annotate=True, save=True):
        """

        :param outputDir: folder for cached tiles, mosaics and reports,
                          see :func:`defaultOutputDir`
        :param survey: survey name or :class:`~skymosaic.hips.surveys.HipsSurvey`
        :param int order: HEALPix order of the tiles
        :param int tileSize: edge length of the tiles in pixels
        :param int cropSize: edge length of the output mosaic
        :param arcsecPerPixel: image scale of the tiles, by default 1.61 for order 8
                               and 512px tiles, otherwise derived from order and tile size
        :param fetch: function (url, timeout) -> bytes raising DownloadError on failure
        :param timeout: fetch timeout in seconds
        :param settleDelay: seconds to wait after each fetch
        :param reuseDelay: seconds to wait after reusing a cached tile
        :param minTileBytes: cached tiles smaller than this are fetched again
        :param annotate: if True, the saved mosaic gets a crosshair and labels
        :param save: if True, the mosaic and the report are written to `outputDir`
        """
        if arcsecPerPixel is None:
            if order == DEFAULT_ORDER and tileSize == TILE_SIZE:
                arcsecPerPixel = ARCSEC_PER_PIXEL
            else:
                arcsecPerPixel = tileArcsecPerPixel(order, tileSize)

        self.outputDir = outputDir or defaultOutputDir()
        self.survey = getSurvey(survey)
        self.order = order
        self.tileSize = tileSize
        self.cropSize = cropSize
        self.arcsecPerPixel = arcsecPerPixel
        self.fetch = fetch
        self.timeout = timeout
        self.settleDelay = settleDelay
        self.reuseDelay = reuseDelay
        self.minTileBytes = minTileBytes
        self.annotate = annotate
        self.save = save

        self._state = State.IDLE
        self._customTarget = None
        self._target = None
        self._plan = None
        self._tiles = []
        self._currentTileIndex = 0
        self._cancelled = False
        self._lastMosaic = None
        self._mosaicPath = None
        self._reportPath = None
        self._callbacks = []
        self._executor = None

    @property
    def state(self):
        return self._state

    @property
    def customTarget(self):
        """ The target last set with :meth:`setCustomCoordinates`. """
        return self._customTarget

    @property
    def tiles(self):
        return self._tiles

    @property
    def plan(self):
        return self._plan

    @property
    def currentTileIndex(self):
        return self._currentTileIndex

    @property
    def lastMosaic(self):
        """ The most recently produced :class:`~skymosaic.mosaic.Mosaic`, or None. """
        return self._lastMosaic

    @property
    def mosaicPath(self):
        return self._mosaicPath

    @property
    def reportPath(self):
        return self._reportPath

    def addCompletionCallback(self, fn):
        """
        Register a function which is called once at the end of each run,
        with the Mosaic on success and with None on failure.
        """
        self._callbacks.append(fn)

    def setCustomCoordinates(self, raText, decText, name=DEFAULT_NAME):
        """
        Parse target coordinates given as text, see :mod:`skymosaic.coordinates.parse`.
        Malformed text results in a best-effort position, never in an exception.

        :rtype: SkyPosition
        """
        self._customTarget = parseCoordinates(raText, decText, name)
        log.info('Set coordinates: RA=%.6f, Dec=%.6f, Name=%s',
                 self._customTarget.ra_deg, self._customTarget.dec_deg, name)
        return self._customTarget

    def createCustomMosaic(self, target=None):
        """
        Create a mosaic centered on `target` and block until it is done.

        :param SkyPosition target: defaults to the target set with :meth:`setCustomCoordinates`
        :rtype: :class:`~skymosaic.mosaic.Mosaic` or None if no tile could be retrieved
        """
        self.start(target)
        self.run()
        return self._lastMosaic if self._state == State.DONE else None

    def createCustomMosaicAsync(self, target=None):
        """
        Like :meth:`createCustomMosaic` but runs in a background thread.
        Runs submitted this way are executed one after the other.

        :rtype: concurrent.futures.Future
        """
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1)
        return self._executor.submit(self.createCustomMosaic, target)

    def close(self):
        """ Wait for background runs to finish and release the worker thread. """
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def start(self, target=None):
        """
        Begin a new run. Use :meth:`step` or :meth:`run` to advance it.

        :raise RuntimeError: if a run is still in progress
        :raise ValueError: if no target is given and none was set before
        """
        if self._state not in (State.IDLE,) + State.FINAL:
            raise RuntimeError('A mosaic is already being created (state: {})'.format(self._state))
        if target is None:
            target = self._customTarget
        if target is None:
            raise ValueError('No target given, use setCustomCoordinates() or pass a SkyPosition')

        self._target = target
        self._plan = None
        self._tiles = []
        self._currentTileIndex = 0
        self._cancelled = False
        self._mosaicPath = None
        self._reportPath = None
        self._state = State.PLANNING
        log.info('=== Creating coordinate-centered mosaic for %s ===', target.name)

    def cancel(self):
        """
        Stop fetching further tiles. The run continues with the tiles
        retrieved so far, as if the remaining tiles had failed.
        """
        self._cancelled = True

    def run(self):
        """ Advance the current run until it is done or failed. """
        while self._state not in (State.IDLE,) + State.FINAL:
            self.step()
        return self._state

    def step(self):
        """
        Advance the current run by one transition: planning, fetching one tile,
        or assembling.

        :return: the new state
        """
        if self._state == State.PLANNING:
            self._planTiles()
        elif self._state == State.FETCHING:
            self._processNextTile()
        elif self._state == State.ASSEMBLING:
            self._assemble()
        return self._state

    def _planTiles(self):
        makedirs(self.outputDir)
        try:
            self._plan = planGrid(self._target, self.order, self.survey, self.outputDir)
        except ValueError as e:
            log.error('Planning failed: %s', e)
            self._finish(State.FAILED)
            return
        if log.isEnabledFor(logging.DEBUG):
            for row in verifyGrid(self._plan.grid, self.order):
                log.debug('  ' + ' '.join('[%d dRA=%+.3f dDec=%+.3f]' % (p, dRA, dDec)
                                           for p, _, _, dRA, dDec in row))
        self._tiles = self._plan.tiles
        self._currentTileIndex = 0
        self._state = State.FETCHING
        log.info('Starting download of %d tiles...', len(self._tiles))

    def _processNextTile(self):
        if self._cancelled or self._currentTileIndex >= len(self._tiles):
            if self._cancelled:
                log.info('Cancelled after %d of %d tiles', self._currentTileIndex, len(self._tiles))
            self._state = State.ASSEMBLING
            return

        tile = self._tiles[self._currentTileIndex]
        if self._checkExistingTile(tile):
            log.info('Reusing tile %d/%d: Grid(%d,%d) HEALPix %d', self._currentTileIndex + 1,
                     len(self._tiles), tile.gridX, tile.gridY, tile.pixel)
            delay = self.reuseDelay
        else:
            self._fetchTile(tile)
            delay = self.settleDelay
        self._currentTileIndex += 1
        if delay > 0:
            time.sleep(delay)

    def _fetchTile(self, tile):
        log.info('Downloading tile %d/%d: Grid(%d,%d) HEALPix %d', self._currentTileIndex + 1,
                 len(self._tiles), tile.gridX, tile.gridY, tile.pixel)
        t0 = time.time()
        try:
            data = self.fetch(tile.url, timeout=self.timeout)
        except Exception as e:
            # any fetcher failure only affects this tile
            if isinstance(e, DownloadError):
                tile.error = e
            else:
                tile.error = DownloadError('{}: {}'.format(e.__class__.__name__, e))
            log.warning('Tile %d/%d download failed: %s', self._currentTileIndex + 1, len(self._tiles),
                        tile.error)
            return
        try:
            image = decodeImage(data)
        except (OSError, ValueError) as e:
            tile.error = DownloadError('invalid image data from {}: {}'.format(tile.url, e))
            log.warning('Tile %d/%d is not a valid image: %s', self._currentTileIndex + 1, len(self._tiles), e)
            return

        tile.image = image
        tile.downloaded = True
        tile.error = None
        try:
            writeAtomic(tile.filename, data)
            saved = 'saved'
        except OSError as e:
            saved = 'save failed: {}'.format(e)
        log.info('Tile %d/%d downloaded: %dms, %d bytes, %dx%d pixels, %s', self._currentTileIndex + 1,
                 len(self._tiles), (time.time() - t0) * 1000, len(data),
                 image.shape[1], image.shape[0], saved)

    def _checkExistingTile(self, tile):
        """
        Load a cached copy of the tile if there is a valid one.
        """
        if fileSize(tile.filename) < self.minTileBytes:
            return False
        magic = magicBytes(os.path.splitext(tile.filename)[1][1:])
        if magic is not None and not hasSignature(tile.filename, magic):
            return False
        try:
            image = loadImage(tile.filename)
        except (OSError, ValueError) as e:
            log.debug('cached tile %s is unreadable: %s', tile.filename, e)
            return False
        tile.image = image
        tile.downloaded = True
        tile.error = None
        return True

    def _assemble(self):
        target = self._target
        try:
            mosaic = assembleMosaic(target, self._tiles, self.tileSize, self.cropSize, self.arcsecPerPixel)
        except NoTileDataError as e:
            log.error('Failed to download tiles for %s: %s', target.name, e)
            self._finish(State.FAILED)
            return

        self._lastMosaic = mosaic
        if self.save:
            self._saveOutputs(mosaic)
        log.info('%s coordinate-centered mosaic complete: %dx%d pixels (%d tiles used)', target.name,
                 mosaic.outputSize[0], mosaic.outputSize[1], mosaic.tilesUsed)
        self._finish(State.DONE, mosaic)

    def _saveOutputs(self, mosaic):
        """
        Write the annotated mosaic and the report. A failure to write one of
        them is logged and does not affect the outcome of the run.
        """
        target = mosaic.target
        name = safeName(target.name)
        image = mosaic.image
        if self.annotate:
            subtitle = 'RA:{:.4f}\N{DEGREE SIGN} Dec:{:.4f}\N{DEGREE SIGN}'.format(target.ra_deg, target.dec_deg)
            image = annotateCenter(image, target.name, subtitle, position=mosaic.targetPixelInOutput)

        mosaicPath = os.path.join(self.outputDir, name + '_centered_mosaic.png')
        try:
            saveImage(mosaicPath, image)
        except (OSError, ValueError) as e:
            log.error('Could not save mosaic to %s: %s', mosaicPath, e)
        else:
            self._mosaicPath = mosaicPath
            log.info('Saved mosaic to %s', mosaicPath)

        reportPath = os.path.join(self.outputDir, name + '_centered_report.txt')
        try:
            writeReport(reportPath, target, self._tiles, mosaic=mosaic)
        except OSError as e:
            log.error('Could not save report to %s: %s', reportPath, e)
        else:
            self._reportPath = reportPath
            log.info('Saved report to %s', reportPath)

    def _finish(self, state, mosaic=None):
        self._state = state
        for callback in self._callbacks:
            callback(mosaic)
