#!/usr/bin/env python
# -*- coding: utf-8 -*-
''' pip-enabled setup.py '''
import os
import re

import setuptools


def get_version():
    src_path = os.path.join(
        os.path.abspath(os.path.dirname(__file__)),
        'src', 'python', 'omeroext'
    )
    with open(os.path.join(src_path, 'version.py')) as f:
        match = re.search(r"__version__ = '([^']+)'", f.read())
    return match.group(1)


setuptools.setup(
    name='omeroext',
    version=get_version(),
    description='Macro extension for the OMERO image repository.',
    license='Apache-2.0',
    platforms=['Linux', 'MacOS', 'Windows'],
    classifiers=[
        'Environment :: Console',
        'License :: OSI Approved :: Apache Software License',
        'Operating System :: MacOS',
        'Operating System :: Microsoft :: Windows',
        'Operating System :: POSIX :: Linux',
        'Intended Audience :: Science/Research',
        'Topic :: Scientific/Engineering :: Information Analysis',
        'Topic :: Scientific/Engineering :: Bio-Informatics',
        'Topic :: Internet :: WWW/HTTP',
        'Programming Language :: Python :: 3',
        'Development Status :: 4 - Beta'
    ],
    entry_points={
        'console_scripts': [
            'omero_ext = omeroext.cli:main',
        ]
    },
    python_requires='>=3.6',
    packages=setuptools.find_packages(os.path.join('src', 'python')),
    package_dir={'': os.path.join('src', 'python')},
    include_package_data=True,
    install_requires=[
        'numpy>=1.12.0',
        'opencv-contrib-python>=3.2',
        'pandas>=0.19.1',
        'prettytable>=0.7.2',
        'PyYAML>=3.11',
        'requests>=2.11.0',
    ],
    extras_require={
        'test': [
            'pytest>=3.9',
            'mock>=1.0.1',
        ]
    }
)
