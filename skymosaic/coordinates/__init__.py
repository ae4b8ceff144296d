# Copyright European Space Agency, 2013

"""
This package contains modules for parsing celestial coordinates,
computing angular distances on the celestial sphere and converting
coordinates to and from HEALPix pixels as used by HiPS tile servers.
"""
