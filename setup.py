# SPDX-License-Identifier: LGPL-3.0-or-later
from setuptools import setup, find_packages

setup(
    name="ign2kvm",
    version="0.1.0",
    packages=find_packages(include=["ign2kvm", "ign2kvm.*"]),
    python_requires=">=3.8",
    install_requires=[l.strip() for l in open("requirements.txt", encoding="utf-8") if l.strip() and not l.startswith("#")],
    extras_require={
        "libvirt": ["libvirt-python>=8.0"],
        "test": ["pytest>=7.0"],
    },
)
