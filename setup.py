#!/usr/bin/env python3
"""
Setup script for wscli, an interactive WebSocket console client
"""

from setuptools import setup, find_packages

setup(
    name="wscli",
    version="0.0.1",
    description="Interactive WebSocket console client",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "websockets==15.0",
        "click==8.1.7",
        "typer==0.12.3",
        "rich==13.9.2",
    ],
    extras_require={
        "test": [
            "pytest==8.4.2",
            "pytest-asyncio==1.2.0",
        ],
    },
    python_requires=">=3.9",
    entry_points={
        'console_scripts': [
            'wscli=wscli.cli:main',
        ],
    },
)
