"""
Setup script for lbm_tunnel package.
"""

from setuptools import setup, find_namespace_packages

setup(
    name="lbm_tunnel",
    version="0.1.0",
    description="Interactive D2Q9 lattice Boltzmann wind tunnel",
    author="Andrey",
    packages=find_namespace_packages(include=["lbm_tunnel", "lbm_tunnel.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy>=1.20",
        "numba>=0.56",
        "matplotlib>=3.5",
        "scipy>=1.7",
    ],
    extras_require={
        "dev": ["pytest>=7.0", "black", "flake8"],
    },
)
