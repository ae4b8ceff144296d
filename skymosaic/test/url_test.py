# Copyright European Space Agency, 2013

import socket
import unittest
from unittest import mock
from http.client import IncompleteRead
from urllib.error import HTTPError, URLError

from skymosaic.util.url import downloadBytes, DownloadError, USER_AGENT

URL = 'http://example.org/hips/Norder8/Dir40000/Npix43345.jpg'

def response(data=b'\xff\xd8\xffdata', code=200):
    resp = mock.MagicMock()
    resp.getcode.return_value = code
    resp.read.return_value = data
    cm = mock.MagicMock()
    cm.__enter__.return_value = resp
    return cm

class Test(unittest.TestCase):

    @mock.patch('skymosaic.util.url.urlopen')
    def testDownload(self, urlopen):
        urlopen.return_value = response()
        self.assertEqual(downloadBytes(URL, timeout=3), b'\xff\xd8\xffdata')
        self.assertEqual(urlopen.call_count, 1)
        request = urlopen.call_args[0][0]
        self.assertEqual(request.full_url, URL)
        self.assertEqual(request.get_header('User-agent'), USER_AGENT)
        self.assertEqual(urlopen.call_args[1]['timeout'], 3)

    @mock.patch('skymosaic.util.url.urlopen')
    def testNotFoundIsNotRetried(self, urlopen):
        urlopen.side_effect = HTTPError(URL, 404, 'Not Found', None, None)
        with self.assertRaises(DownloadError) as cm:
            downloadBytes(URL)
        self.assertIn('404', str(cm.exception))
        self.assertEqual(urlopen.call_count, 1)

    @mock.patch('skymosaic.util.url.urlopen')
    def testRetryOnce(self, urlopen):
        urlopen.side_effect = [URLError('connection refused'), response(b'tile')]
        self.assertEqual(downloadBytes(URL), b'tile')
        self.assertEqual(urlopen.call_count, 2)

    @mock.patch('skymosaic.util.url.urlopen')
    def testGiveUpAfterRetry(self, urlopen):
        urlopen.side_effect = socket.timeout('timed out')
        self.assertRaises(DownloadError, downloadBytes, URL)
        self.assertEqual(urlopen.call_count, 2)

    @mock.patch('skymosaic.util.url.urlopen')
    def testTruncatedTransfer(self, urlopen):
        cm = response()
        cm.__enter__.return_value.read.side_effect = IncompleteRead(b'partial')
        urlopen.return_value = cm
        with self.assertRaises(DownloadError) as e:
            downloadBytes(URL)
        self.assertIn('IncompleteRead', str(e.exception))
        self.assertEqual(urlopen.call_count, 2)

    @mock.patch('skymosaic.util.url.urlopen')
    def testTruncatedTransferRetried(self, urlopen):
        broken = response()
        broken.__enter__.return_value.read.side_effect = IncompleteRead(b'partial')
        urlopen.side_effect = [broken, response(b'tile')]
        self.assertEqual(downloadBytes(URL), b'tile')

    @mock.patch('skymosaic.util.url.urlopen')
    def testServerError(self, urlopen):
        urlopen.side_effect = [HTTPError(URL, 503, 'Service Unavailable', None, None),
                               HTTPError(URL, 503, 'Service Unavailable', None, None)]
        with self.assertRaises(DownloadError) as cm:
            downloadBytes(URL)
        self.assertIn('503', str(cm.exception))
        self.assertEqual(urlopen.call_count, 2)

    @mock.patch('skymosaic.util.url.urlopen')
    def testUnexpectedStatus(self, urlopen):
        urlopen.return_value = response(code=204)
        self.assertRaises(DownloadError, downloadBytes, URL)

if __name__ == "__main__":
    unittest.main()
