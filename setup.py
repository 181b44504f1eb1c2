#!/usr/bin/env python3
"""
Setup script for the Grapevine relay client
"""

from setuptools import setup, find_namespace_packages

setup(
    name="grapevine-client",
    version="0.1.0",
    description="Asyncio client for the grapevine.haus chat and status relay",
    packages=find_namespace_packages(include=["grapevine*", "shared*"]),
    install_requires=[
        "websockets>=15.0",
        "typer>=0.12.3",
        "rich>=13.9.2",
        "aioconsole>=0.8.1",
        "PyYAML>=6.0.1",
    ],
    extras_require={
        "test": [
            "pytest>=8.4.2",
            "pytest-asyncio>=1.2.0",
        ],
    },
    python_requires=">=3.10",
    entry_points={
        'console_scripts': [
            'grapevine=grapevine.gv_cli:main',
        ],
    },
)
