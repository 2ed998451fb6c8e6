"""Setup configuration for descbot."""

from setuptools import setup, find_packages

setup(
    name="descbot",
    version="1.0.0",
    description="Rotating profile descriptions with an in-chat control protocol",
    packages=find_packages(include=["descbot", "descbot.*"]),
    install_requires=[
        "click>=8.1.7",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "structlog>=23.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "descbot=descbot.cli:cli",
        ],
    },
    python_requires=">=3.8",
)
