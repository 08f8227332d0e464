"""
Setup script for quiz-assessment-engine.

Quiz authoring, attempt lifecycle, grading and analytics behind a
FastAPI service, with a Typer CLI for administration:

1. Authoring - quizzes, sections, question banks, eleven question types
2. Attempts - eligibility, seeded selection, grading, manual review
3. Reporting - statistics, certificates, snapshot and CSV transfer

The 'quiz-engine' command is the CLI entry point; the API runs under
uvicorn (see main.py).
"""

from setuptools import find_packages, setup

setup(
    name="quiz-assessment-engine",
    version="0.1.0",
    description="Quiz authoring, attempt grading and analytics service",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(include=["src", "src.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # API
        "fastapi>=0.110.0",
        "uvicorn>=0.23.0",
        # HTTP (FastAPI TestClient transport)
        "httpx>=0.25.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "quiz-engine=src.cli.main:main",
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
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Testing",
    ],
    keywords="quiz assessment grading education fastapi",
)
