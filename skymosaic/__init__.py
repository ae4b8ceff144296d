# Copyright European Space Agency, 2013

"""
The skymosaic package is split up in several packages and modules each covering
different aspects of its functionality.

The :mod:`skymosaic.coordinates` package parses celestial coordinates given as text,
converts coordinates to and from HEALPix pixel identifiers and resolves the
compass directions of a pixel's neighbours. It does not depend on any other
part of this library and can therefore be easily re-used for other purposes.

The :mod:`skymosaic.hips` package knows about HiPS surveys and plans the 3x3 grid
of tiles that has to be retrieved around a target coordinate.

The :mod:`skymosaic.mosaic` module stitches retrieved tiles together and crops the
result such that the target coordinate ends up at the center pixel.

The :mod:`skymosaic.creator` module ties everything together: it plans, fetches
(one tile at a time), assembles and stores a coordinate-centered mosaic.

The :mod:`skymosaic.cli` package contains command-line tools that will be installed as
`skymosaic-name` for a module name `skymosaic.cli.name`. It is not intended to be
used from within Python code.

The :mod:`skymosaic.util` package contains independent generic helper functions not
strictly related to the main functions of this library.
"""

from ._version import __version__, __version_info__
