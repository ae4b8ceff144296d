# Copyright European Space Agency, 2013

import logging
from urllib.error import HTTPError
from urllib.request import Request, urlopen

from skymosaic._version import __version__

log = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 15

USER_AGENT = 'skymosaic/' + __version__

class DownloadError(Exception):
    pass

def downloadBytes(url, timeout=None):
    """
    Download a single resource and return its content.
    On download errors (except 404), the download is retried once,
    after that a :class:`DownloadError` is raised.

    This is the default tile fetcher, any callable with the same signature
    can be used instead.

    :param str url:
    :param timeout: in seconds, defaults to DEFAULT_TIMEOUT
    :rtype: bytes
    :raise DownloadError: on network errors, timeouts and non-2xx responses
    """
    return downloadResource(url, lambda resp: resp.read(), timeout=timeout)

def downloadResource(url, fn, timeout=None):
    """
    Download a single resource and call `fn` on the response.
    On download errors (except 404), the download is retried once,
    after that an exception is raised.
    """
    try:
        return _downloadResource(url, fn, timeout=timeout)
    except HTTPError as e:
        if e.code == 404:
            raise DownloadError('HTTP Error {}: {}'.format(e.code, e.reason)) from e
        log.info('HTTP error %d, retrying once', e.code)
    except Exception as e:
        # network problem, timeout, truncated transfer, ...
        log.info('download error (%s: %s), retrying once', e.__class__.__name__, e)

    try:
        return _downloadResource(url, fn, timeout=timeout)
    except HTTPError as e:
        raise DownloadError('HTTP Error {}: {}'.format(e.code, e.reason)) from e
    except Exception as e:
        raise DownloadError('{}: {}'.format(e.__class__.__name__, e)) from e

def _downloadResource(url, fn, timeout=None):
    if timeout is None:
        timeout = DEFAULT_TIMEOUT
    log.debug('downloading %s', url)
    request = Request(url, headers={'User-Agent': USER_AGENT, 'Accept': 'image/*'})
    try:
        with urlopen(request, timeout=timeout) as resp: # throws also on 404
            code = resp.getcode()
            if code is not None and not 200 <= code < 300:
                raise HTTPError(url, code, 'unexpected status', resp.headers, None)
            res = fn(resp)
    except Exception as e:
        # 404, network problem, timeout, ...
        log.debug('downloading %s -> %s', url, e)
        raise
    log.debug('downloading %s -> done', url)
    return res
