"""Setup script for the charge capacity model.

Use "pip install --upgrade ." to install a copy in the site packages directory.

Use "pip install --upgrade --editable ." to install the model to be run from
its current location.

Use "pip uninstall chargecap_model" to uninstall the model from your system.
"""

import os
from setuptools import setup, find_packages

# Get the version number. Strategy #3 from https://packaging.python.org/single_source_version/
version_path = os.path.join(os.path.dirname(__file__), "chargecap_model", "version.py")
version = {}
with open(version_path) as f:
    exec(f.read(), version)
__version__ = version["__version__"]


def read(*rnames):
    return open(os.path.join(os.path.dirname(__file__), *rnames)).read()


setup(
    name="chargecap_model",
    version=__version__,
    maintainer="Switch Authors",
    maintainer_email="authors@switch-model.org",
    url="http://switch-model.org",
    license="Apache License 2.0",
    platforms=["any"],
    description="Charge capacity investment model for asymmetric storage",
    long_description=read("README.md"),
    long_description_content_type="text/markdown",
    classifiers=[
        # from https://pypi.org/classifiers/
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: Apache Software License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    packages=find_packages(include=["chargecap_model", "chargecap_model.*"]),
    keywords=[
        "storage",
        "power",
        "energy",
        "electricity",
        "capacity expansion",
        "planning",
        "optimization",
    ],
    python_requires=">=3.8",
    install_requires=[
        "Pyomo >=6.0.0",
        # pint is needed by several Pyomo 6.x releases when running our tests,
        # but it isn't listed as a Pyomo dependency, so we add it explicitly.
        "pint",
        # used for standard tests
        "testfixtures",
        # used for result tables
        "pandas",
    ],
    extras_require={
        "test": ["testfixtures", "pytest"],
    },
    entry_points={"console_scripts": ["chargecap = chargecap_model.__main__:main"]},
)
