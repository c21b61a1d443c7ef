#!/usr/bin/env python
from setuptools import setup
import os


def get_version():
    curdir = os.path.dirname(__file__)
    filename = os.path.join(curdir, 'src', 'imgconv', 'version.py')
    with open(filename, 'rb') as fp:
        return fp.read().decode('utf8').split('=')[1].strip(" \n'")


def readme():
    with open('README.rst') as f:
        return f.read()


setup(
    name='imgconv',
    version=get_version(),
    description='Convert images with whichever conversion program is installed',
    long_description=readme(),
    classifiers=[
        'Development Status :: 3 - Alpha',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX',
        'Programming Language :: Python :: 3',
        'Topic :: Multimedia :: Graphics',
        'Topic :: Multimedia :: Graphics :: Graphics Conversion',
    ],
    keywords='svg png imagemagick inkscape rsvg resvg conversion',
    license='MIT License',
    package_dir={'': 'src'},
    packages=[
        'imgconv',
        'imgconv.tools',
    ],
    python_requires='>=3.10',
    install_requires=[
        'pillow',
    ],
    extras_require={
        'test': [
            'pytest',
            'svgwrite',
        ],
    },
    include_package_data=True,
    entry_points={
        'console_scripts': ['imgconv=imgconv.__main__:main']
    },
)
