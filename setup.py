#!/usr/bin/python3

from setuptools import find_packages, setup

# -----------------------------------------------------------------------------
# constants

VERSION = '0.1.0'

INSTALL_REQUIRES = [
    "numpy",
    "requests",
]

EXTRAS_REQUIRE = {
    "test": [
        "pytest",
        "pytest-asyncio",
    ],
}


# ----------------------------------------------------------------------------
# COMMON SETUP CONFIG

common = {
    "name": "semfuzz",
    "version": VERSION,
    "description": "Semantic and fuzzy search over chunked document collections.",
    "python_requires": ">=3.9",
    "install_requires": INSTALL_REQUIRES,
    "extras_require": EXTRAS_REQUIRE,
}


setup(
    **common,
    packages=find_packages(where="src"),
    package_dir={"": "src"},
)
