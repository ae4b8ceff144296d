# Copyright European Space Agency, 2013

import unittest

from skymosaic.coordinates.parse import parseRA, parseDec, parseCoordinates,\
    formatHMS, formatDMS, DEFAULT_NAME, DEFAULT_DESCRIPTION

class Test(unittest.TestCase):

    def testRASexagesimal(self):
        self.assertAlmostEqual(parseRA('00:42:44.3'), (42/60 + 44.3/3600) * 15)
        self.assertAlmostEqual(parseRA('12:30'), 187.5)
        self.assertAlmostEqual(parseRA(' 12 : 34 : 56 '), (12 + 34/60 + 56/3600) * 15)

    def testRALetters(self):
        self.assertAlmostEqual(parseRA('12h34m56s'), (12 + 34/60 + 56/3600) * 15)
        self.assertAlmostEqual(parseRA('5h'), 75.0)
        self.assertAlmostEqual(parseRA('5H30M'), 82.5)

    def testRADecimalHoursRule(self):
        self.assertAlmostEqual(parseRA('10.5'), 157.5)
        self.assertAlmostEqual(parseRA('23.5'), 352.5)
        self.assertAlmostEqual(parseRA('150.25'), 150.25)
        # M31 given in decimal degrees is read as hours
        self.assertAlmostEqual(parseRA('10.6847'), 160.2705)

    def testRAWrapped(self):
        self.assertAlmostEqual(parseRA('25:00:00'), 15.0)
        self.assertAlmostEqual(parseRA('-10'), 210.0)
        self.assertAlmostEqual(parseRA('24'), 0.0)
        self.assertAlmostEqual(parseRA('370d'), 10.0)
        self.assertAlmostEqual(parseRA('-01:00:00'), 345.0)
        for text in ['00:00:00', '12h', '359.9d', '99999', '-0.001']:
            ra = parseRA(text)
            self.assertTrue(0.0 <= ra < 360.0, text)

    def testRADegreeMarker(self):
        self.assertAlmostEqual(parseRA('10.6847d'), 10.6847)
        self.assertAlmostEqual(parseRA('10.6847deg'), 10.6847)
        self.assertAlmostEqual(parseRA('10.6847\N{DEGREE SIGN}'), 10.6847)
        self.assertAlmostEqual(parseRA('202.47d'), 202.47)

    def testDecFormats(self):
        self.assertAlmostEqual(parseDec('41.2687'), 41.2687)
        self.assertAlmostEqual(parseDec('-5.3'), -5.3)
        self.assertAlmostEqual(parseDec('-05:30:00'), -5.5)
        self.assertAlmostEqual(parseDec('+41:16:09'), 41 + 16/60 + 9/3600)
        self.assertAlmostEqual(parseDec('-5d30m00s'), -5.5)
        self.assertAlmostEqual(parseDec('41\N{DEGREE SIGN}'), 41.0)

    def testDecNegativeZeroDegrees(self):
        self.assertAlmostEqual(parseDec('-00:30:00'), -0.5)
        self.assertAlmostEqual(parseDec('-0d30m'), -0.5)
        self.assertAlmostEqual(parseDec('-00:00:36'), -0.01)

    def testMalformed(self):
        with self.assertLogs('skymosaic.coordinates.parse', level='WARNING'):
            self.assertEqual(parseRA('abc'), 0.0)
        with self.assertLogs('skymosaic.coordinates.parse', level='WARNING'):
            self.assertEqual(parseDec('12abc'), 12.0)
        with self.assertLogs('skymosaic.coordinates.parse', level='WARNING'):
            self.assertEqual(parseDec(''), 0.0)
        with self.assertLogs('skymosaic.coordinates.parse', level='WARNING'):
            self.assertEqual(parseDec('nan'), 0.0)
        self.assertEqual(parseDec(None), 0.0)

    def testParseCoordinates(self):
        pos = parseCoordinates('00:42:44.3', '+41:16:09', 'M31')
        self.assertEqual(pos.name, 'M31')
        self.assertEqual(pos.description, DEFAULT_DESCRIPTION)
        self.assertAlmostEqual(pos.ra_deg, 10.684583333, places=6)
        self.assertAlmostEqual(pos.dec_deg, 41.269166667, places=6)

        pos = parseCoordinates('10.5', '-5')
        self.assertEqual(pos.name, DEFAULT_NAME)

    def testFormat(self):
        self.assertEqual(formatHMS(10.6847), '00h42m44.3s')
        self.assertEqual(formatDMS(41.2687), '+41d16m07.3s')

    def testFormatParsesBack(self):
        for ra in [0.0, 10.6847, 83.8221, 202.4696, 359.5]:
            self.assertAlmostEqual(parseRA(formatHMS(ra)), ra, delta=1/3600)
        for dec in [-89.9, -16.7161, -0.25, 0.0, 7.407, 89.2641]:
            self.assertAlmostEqual(parseDec(formatDMS(dec)), dec, delta=1/3600)

if __name__ == "__main__":
    unittest.main()
