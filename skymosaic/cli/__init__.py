# Copyright European Space Agency, 2013

"""
Command-line tools. Each module `name` is installed as `skymosaic-name`.
"""
