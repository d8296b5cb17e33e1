"""VetLab - Veterinary laboratory calculators."""
from setuptools import setup, find_packages

setup(
    name="vetlab",
    version="1.0.0",
    description="Veterinary lab calculators with a local calculation history",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.1.0",
        "rich>=13.0.0",
        "questionary>=2.0.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "vetlab=vetlab.cli:main",
        ],
    },
    python_requires=">=3.10",
)
