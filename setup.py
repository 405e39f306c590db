#!/usr/bin/env python3
"""
Setup configuration for spot-pipeline
Turns Spotify playlists, albums and artist top tracks into tagged audio files
"""

from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Core requirements (always installed)
core_requirements = [
    "spotipy>=2.23.0",
    "ytmusicapi>=1.3.2",
    "yt-dlp>=2023.12.30",
    "ffmpeg-python>=0.2.0",
    "aiohttp>=3.9.1",
    "requests>=2.31.0",
    "pyyaml>=6.0.1",
    "python-dotenv>=1.0.0",
    "click>=8.1.7",
    "rich-click>=1.7.0",
    "rich>=13.0.0",
    "tqdm>=4.66.1",
]

setup(
    name="spot-pipeline",
    version="0.1.0",
    description="Download Spotify playlists, albums and artist top tracks via YouTube Music",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=("tests", "tests.*")),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Sound/Audio",
    ],
    python_requires=">=3.10",
    install_requires=core_requirements,
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
        ],
    },
    entry_points={
        "console_scripts": [
            "spot-pipeline=spot_pipeline.cli:main",
        ],
    },
    keywords="spotify youtube music download playlist ffmpeg cli",
)
