# Copyright European Space Agency, 2013

"""
Known HiPS surveys and the tile URL convention shared by HiPS servers::

    {baseUrl}/Norder{order}/Dir{dir}/Npix{pixel}.{ext}

where ``dir = floor(pixel/10000)*10000``.
"""

from collections import OrderedDict, namedtuple

HipsSurvey = namedtuple('HipsSurvey', ['name', 'baseUrl', 'format', 'description', 'maxOrder'])

JPEG_MAGIC = b'\xff\xd8\xff'
PNG_MAGIC = b'\x89PNG'

MAGIC_BYTES = {
    'jpg': JPEG_MAGIC,
    'jpeg': JPEG_MAGIC,
    'png': PNG_MAGIC,
}

SURVEYS = OrderedDict((s.name, s) for s in [
    HipsSurvey('DSS2_Color', 'http://alasky.u-strasbg.fr/DSS/DSSColor', 'jpg',
               'Digital Sky Survey 2 Color', 11),
    HipsSurvey('DSS2_Red', 'http://alasky.u-strasbg.fr/DSS/DSS2-red', 'jpg',
               'DSS2 red band', 11),
    HipsSurvey('2MASS_Color', 'http://alasky.u-strasbg.fr/2MASS/Color', 'jpg',
               '2MASS near-infrared color', 9),
    HipsSurvey('Mellinger_Color', 'http://alasky.u-strasbg.fr/Mellinger/Mellinger_color', 'jpg',
               'Mellinger all-sky optical mosaic', 8),
])

DEFAULT_SURVEY = 'DSS2_Color'

def getSurvey(survey):
    """
    Return a :class:`HipsSurvey` by name. HipsSurvey instances are returned unchanged
    so that custom surveys can be used wherever a survey name is accepted.
    
    :raise KeyError: if the survey name is unknown
    """
    if isinstance(survey, HipsSurvey):
        return survey
    try:
        return SURVEYS[survey]
    except KeyError:
        raise KeyError('Unknown survey {!r}, known surveys: {}'.format(survey, ', '.join(SURVEYS)))

def tileDir(pixel):
    """ Directory bucket of a pixel: floor(pixel/10000)*10000. """
    return (pixel // 10000) * 10000

def tileUrl(baseUrl, order, pixel, ext='jpg'):
    """
    Return the URL of the tile of `pixel` at `order`.
    
    :rtype: str
    """
    return '{}/Norder{}/Dir{}/Npix{}.{}'.format(baseUrl.rstrip('/'), order, tileDir(pixel), pixel, ext)

def tileFilename(pixel, ext='jpg'):
    """ Local file name of a cached tile. """
    return 'tile_pixel{}.{}'.format(pixel, ext)

def magicBytes(ext):
    """ Return the file signature for a tile format, or None if unknown. """
    return MAGIC_BYTES.get(ext.lower())
