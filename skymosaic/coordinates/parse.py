# Copyright European Space Agency, 2013

"""
Parsing of free-form right ascension and declination text.

Accepted formats are decimal numbers, colon separated sexagesimal values
(``12:34:56``, ``-05:30:00``) and letter suffixed sexagesimal values
(``12h34m56s``, ``-5d30m00s``). Parsing is deliberately permissive: malformed
text never raises but results in a best-effort numeric value (0.0 if nothing
numeric can be found) and a logged warning.
"""

import logging
import re

import astropy.units as u
from astropy.coordinates import Angle

from skymosaic.coordinates.sky import SkyPosition, normalizeRA

log = logging.getLogger(__name__)

DEFAULT_NAME = 'Custom Target'
DEFAULT_DESCRIPTION = 'User-defined coordinates'

_number = r'(\d+(?:\.\d+)?)'
_hmsRe = re.compile(_number + r'h(?:' + _number + r'm)?(?:' + _number + r's)?')
_dmsRe = re.compile(_number + r'd(?:' + _number + r'm)?(?:' + _number + r's)?')
_leadingNumberRe = re.compile(r'^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?')
_degreeMarkers = ('deg', 'd', '\N{DEGREE SIGN}')

class CoordinateParseError(ValueError):
    pass

def parseCoordinates(raText, decText, name=DEFAULT_NAME):
    """
    Parse RA and Dec text into a :class:`~skymosaic.coordinates.sky.SkyPosition`.
    
    :param str raText: right ascension, see :func:`parseRA`
    :param str decText: declination, see :func:`parseDec`
    :param str name: name of the resulting position
    :rtype: SkyPosition
    """
    return SkyPosition(parseRA(raText), parseDec(decText), name, DEFAULT_DESCRIPTION)

def parseRA(text):
    """
    Return the right ascension in degrees, wrapped into [0,360).
    
    Sexagesimal input (``H:M:S`` or ``12h34m56s``) is always in hours.
    A plain decimal value is interpreted as hours if it is <= 24 and as degrees
    otherwise, unless it carries a degree marker (``150d``, ``150deg``), in
    which case it is always taken as degrees. Note that this means
    a decimal RA in degrees below 24 (e.g. 10.68 for M31) is read as hours.
    Values outside of a full circle are wrapped, e.g. ``25:00:00`` gives 15.
    
    :param str text:
    :rtype: float
    """
    clean = _clean(text)
    
    if ':' in clean:
        parts = clean.split(':')
        if len(parts) >= 2:
            return normalizeRA(_sexagesimal(parts) * 15.0)
    
    if 'h' in clean:
        match = _hmsRe.search(clean)
        if match:
            return normalizeRA(_fromMatch(match) * 15.0)
    
    for marker in _degreeMarkers:
        if clean.endswith(marker):
            return normalizeRA(_toFloat(clean[:-len(marker)]))
    
    degrees = _toFloat(clean)
    if degrees <= 24.0:
        return normalizeRA(degrees * 15.0)
    return normalizeRA(degrees)

def parseDec(text):
    """
    Return the declination in degrees.
    
    The sign is stripped first, the magnitude is parsed as ``D:M:S``,
    ``5d30m00s`` or decimal degrees, and the sign is re-applied afterwards
    so that e.g. ``-00:30:00`` correctly results in -0.5.
    
    :param str text:
    :rtype: float
    """
    clean = _clean(text)
    negative = clean.startswith('-')
    if negative or clean.startswith('+'):
        clean = clean[1:]
    
    if ':' in clean:
        parts = clean.split(':')
        if len(parts) >= 2:
            result = _sexagesimal(parts)
            return -result if negative else result
    
    if 'd' in clean:
        match = _dmsRe.search(clean)
        if match:
            result = _fromMatch(match)
            return -result if negative else result
    
    if clean.endswith('\N{DEGREE SIGN}'):
        clean = clean[:-1]
    result = _toFloat(clean)
    return -result if negative else result

def formatHMS(raDeg, precision=1):
    """
    Format a right ascension in degrees as ``00h42m44.3s``.
    The result can be read back with :func:`parseRA`.
    """
    angle = Angle(raDeg, u.deg)
    return angle.to_string(unit=u.hourangle, sep='hms', precision=precision, pad=True)

def formatDMS(decDeg, precision=1):
    """
    Format a declination in degrees as ``+41d16m07.3s``.
    The result can be read back with :func:`parseDec`.
    """
    angle = Angle(decDeg, u.deg)
    return angle.to_string(unit=u.deg, sep='dms', precision=precision,
                           pad=True, alwayssign=True)

def _clean(text):
    if text is None:
        return ''
    return str(text).strip().lower().replace(' ', '')

def _sexagesimal(parts):
    major = _toFloat(parts[0])
    minutes = _toFloat(parts[1])
    seconds = _toFloat(parts[2]) if len(parts) > 2 else 0.0
    return major + minutes/60.0 + seconds/3600.0

def _fromMatch(match):
    major = float(match.group(1))
    minutes = float(match.group(2)) if match.group(2) else 0.0
    seconds = float(match.group(3)) if match.group(3) else 0.0
    return major + minutes/60.0 + seconds/3600.0

def _toFloat(text):
    """
    Convert to float, falling back to the leading numeric part of `text`
    or 0.0 if there is none.
    """
    try:
        return _strictFloat(text)
    except CoordinateParseError as e:
        value = _leadingNumber(text)
        log.warning('%s, using %s', e, value)
        return value

def _strictFloat(text):
    try:
        value = float(text)
    except ValueError:
        raise CoordinateParseError('cannot parse coordinate component ' + repr(text))
    if value != value or value in (float('inf'), float('-inf')):
        raise CoordinateParseError('coordinate component is not finite: ' + repr(text))
    return value

def _leadingNumber(text):
    match = _leadingNumberRe.match(text)
    if not match:
        return 0.0
    return float(match.group(0))
