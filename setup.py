#!/usr/bin/env python
import os

from setuptools import find_packages, setup

here = os.path.abspath(os.path.dirname(__file__))
about: dict = {}
with open(os.path.join(here, "src", "psd_json", "version.py"), encoding="utf-8") as f:
    exec(f.read(), about)


setup(
    name="psd-json",
    version=about["__version__"],
    description="Lossless PSD <-> JSON conversion with content-addressed PNG blobs",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "attrs>=23.1.0",
        "numpy",
        "Pillow>=10.0.0",
        "psd-tools>=1.11",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["psd-json=psd_json.__main__:main"],
    },
)
