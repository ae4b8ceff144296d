# Copyright European Space Agency, 2013

"""
Generic helper modules. No module has a dependency to another part of
this library.
"""
