"""
DocFlow setup.py — Package configuration and CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="docflow",
    version="1.0.0",
    description="DocFlow — Document review workflow engine",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "docflow=docflow.cli:main",
        ],
    },
    install_requires=[
        "sqlalchemy>=2.0",
        "psycopg2-binary>=2.9",
        "pydantic>=2.5",
        "pyyaml>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
        ],
    },
)
