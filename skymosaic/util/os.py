# Copyright European Space Agency, 2013

import os
import re

def makedirs(*paths):
    """
    Recursively creates folders if not already existing.
    """
    for path in paths:
        os.makedirs(path, exist_ok=True)

def safeName(name):
    """
    Turn a target name into something usable as part of a file name,
    e.g. 'M31 (Andromeda)' -> 'm31_andromeda'.
    """
    safe = name.strip().lower().replace(' ', '_').replace('(', '').replace(')', '')
    safe = re.sub(r'[^\w.+-]', '_', safe)
    return safe or 'unnamed'

def fileSize(path):
    """ Size of the file in bytes, or -1 if it doesn't exist. """
    try:
        return os.path.getsize(path)
    except OSError:
        return -1

def writeAtomic(path, data):
    """
    Write bytes to a temporary file first and rename it afterwards
    so that no partial file is left behind on errors.
    """
    tmpPath = path + '.tmp'
    with open(tmpPath, 'wb') as fp:
        fp.write(data)
    os.replace(tmpPath, path)
