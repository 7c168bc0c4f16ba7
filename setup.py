"""
Setup script for mastery-engine.

Mastery Engine is the learner-model backend for adaptive study. It
covers three areas:

1. Mastery Tracking - Per-concept mastery with decay and SM-2 review scheduling
2. Adaptive Testing - Concept selection and session lifecycle with history
3. Surfaces - REST API and a terminal CLI over the same service

The 'mastery-engine' command is the CLI entry point.
"""

from setuptools import find_packages, setup

setup(
    name="mastery-engine",
    version="1.0.0",
    description="Mastery tracking, spaced repetition and adaptive test sessions",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Right Learning",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Storage
        "sqlalchemy[asyncio]>=2.0.0",
        "aiosqlite>=0.19.0",
        "redis>=5.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # API
        "fastapi>=0.110.0",
        "uvicorn>=0.27.0",
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "mastery-engine=mastery_engine.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Framework :: FastAPI",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition mastery adaptive-testing education",
)
