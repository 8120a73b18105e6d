"""
Setup configuration for the NR Radio Environment Map generator.
"""

from setuptools import setup, find_namespace_packages

setup(
    name="nr-rem",
    version="1.0.0",
    description="Radio Environment Map generator for NR multi-cell deployments",
    packages=find_namespace_packages(include=["rem", "rem.*"], exclude=["rem.tests*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "scipy",
        "matplotlib",
        "pyyaml",
        "simpy",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": [
            "nr-rem = rem.cli:main",
        ],
    },
)
