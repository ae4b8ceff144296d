# Copyright European Space Agency, 2013

"""
This module contains the :class:`SkyPosition` value type and functions
for calculating with equatorial (RA/Dec) coordinates.
"""

import math
from collections import namedtuple

SkyPosition = namedtuple('SkyPosition', ['ra_deg', 'dec_deg', 'name', 'description'],
                         defaults=('', ''))

ERROR_NAME = 'Error'

def errorPosition(description='HEALPix conversion failed'):
    """
    Return the position which signals a failed conversion.
    Callers must check for it with :func:`isErrorPosition`.
    """
    return SkyPosition(0.0, 0.0, ERROR_NAME, description)

def isErrorPosition(pos):
    return pos.name == ERROR_NAME and pos.ra_deg == 0.0 and pos.dec_deg == 0.0

def angularDistance(pos1, pos2):
    """
    Return the great-circle distance in radians between two positions
    using the haversine formula.
    
    :type pos1: SkyPosition
    :type pos2: SkyPosition
    :rtype: float
    """
    ra1 = math.radians(pos1.ra_deg)
    dec1 = math.radians(pos1.dec_deg)
    ra2 = math.radians(pos2.ra_deg)
    dec2 = math.radians(pos2.dec_deg)
    
    dra = ra2 - ra1
    ddec = dec2 - dec1
    
    a = math.sin(ddec/2)**2 + math.cos(dec1)*math.cos(dec2)*math.sin(dra/2)**2
    # rounding can push a slightly outside [0,1]
    a = min(max(a, 0.0), 1.0)
    return 2 * math.atan2(math.sqrt(a), math.sqrt(1-a))

def wrapDelta(deltaDeg):
    """
    Wrap a difference of two right ascensions into [-180,180).
    """
    return (deltaDeg + 180.0) % 360.0 - 180.0

def normalizeRA(raDeg):
    """ Return RA wrapped into [0,360). """
    ra = raDeg % 360.0
    if ra >= 360.0: # -1e-17 % 360 == 360.0
        ra = 0.0
    return ra

def clampDec(decDeg):
    return max(-90.0, min(90.0, decDeg))
