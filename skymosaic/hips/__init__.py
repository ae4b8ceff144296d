# Copyright European Space Agency, 2013

"""
This package contains the HiPS survey registry and the planning of
3x3 tile grids around a target coordinate.
"""
