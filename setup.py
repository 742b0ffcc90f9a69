"""
Setup script for triangle-tutor.

Triangle Tutor is an adaptive Grade 6 geometry tutor. It serves three roles:

1. Item Pipeline - Generate, validate and rate triangle items, with a
   deterministic local fallback
2. Grader - Route each answer to a choice, numeric, symbolic, visual or
   rubric grading strategy
3. Learner Session - Track mastery per concept and unlock levels

The 'tutor' command is the CLI entry point; main.py serves the REST API.
"""

from setuptools import find_packages, setup

setup(
    name="triangle-tutor",
    version="0.1.0",
    description="Adaptive Grade 6 triangles tutor: item pipeline, grading router and mastery tracking",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config", "main"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # HTTP
        "httpx>=0.25.0",
        # API
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
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
            "tutor=src.cli.tutor_cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning adaptive tutoring geometry grading education",
)
