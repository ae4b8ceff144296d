# Copyright European Space Agency, 2013

from setuptools import setup, find_packages
import re

# version handling from https://stackoverflow.com/a/7071358
VERSIONFILE="skymosaic/_version.py"
verstrline = open(VERSIONFILE, "rt").read()
VSRE = r"^__version__ = ['\"]([^'\"]*)['\"]"
mo = re.search(VSRE, verstrline, re.M)
if mo:
    verstr = mo.group(1)
else:
    raise RuntimeError("Unable to find version string in %s." % (VERSIONFILE,))

setup(
    name = 'skymosaic',
    description = 'Coordinate-centered sky mosaics from HiPS tiles',
    long_description = open('README.rst').read(),
    version = verstr,
    license = 'ESCL - Type 1',
    classifiers=[
      'Development Status :: 4 - Beta',
      'Intended Audience :: Science/Research',
      'Natural Language :: English',
      'Programming Language :: Python :: 3',
      'Operating System :: OS Independent',
      'Topic :: Scientific/Engineering :: Astronomy',
      'Topic :: Software Development :: Libraries',
    ],
    packages = find_packages(),
    python_requires = '>=3.8',
    install_requires=['numpy>=1.17',
                      'scikit-image',
                      'pillow', # used by scikit-image and for JPEG output
                      'astropy>=4.0',
                      'healpy>=1.14',
                      ],
    extras_require = {
        'test': ['pytest'],
    },
    entry_points = {
        'console_scripts': [
            'skymosaic-create = skymosaic.cli.create:main',
        ]
    }
)
