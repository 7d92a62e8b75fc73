#!/usr/bin/env python
"""
Setup script for Cortex
"""
import re
from pathlib import Path

from setuptools import setup, find_packages

# Read the README file
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Read version from src/cortex/_version.py
version_file = (this_directory / "src" / "cortex" / "_version.py").read_text(encoding="utf-8")
version = re.search(r'^__version__ = "([^"]+)"', version_file, re.MULTILINE).group(1)


setup(
    name="cortex-retrieval",
    version=version,
    author="Bextia",
    description="Hybrid semantic retrieval and RAG context assembly for personal notes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: Other/Proprietary License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries",
        "Topic :: Text Processing :: Indexing",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2.6.0",
        "loguru>=0.7.2",
        "pyyaml>=6.0.0",
        "numpy>=2.0.0",
        "aiohttp>=3.9.0",
    ],
    extras_require={
        "dev": [
            "pytest>=8.4.0",
            "pytest-asyncio>=0.23.0",
            "pytest-cov>=5.0.0",
            "mypy>=1.8.0",
            "black>=22.0.0",
            "ruff>=0.12.0",
            "types-pyyaml>=6.0.12",
        ],
    },
    include_package_data=True,
    package_data={
        "cortex": ["py.typed", "**/*.pyi"],
    },
)
