"""
Setup script for Hand-Eye Calibration Toolkit
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

with open("requirements.txt", "r", encoding="utf-8") as fh:
    requirements = [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="handeye-calibration-toolkit",
    version="1.0.0",
    author="Your Name",
    author_email="your.email@example.com",
    description="Robot hand-eye calibration toolkit with sample capture, solvers and auto calibration",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/yourusername/handeye-calibration-toolkit",
    packages=find_packages(include=["handeye_core", "handeye_core.*", "handeye_web", "handeye_web.*"]),
    py_modules=["main"],
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Scientific/Engineering :: Image Processing",
        "Topic :: Scientific/Engineering :: Artificial Intelligence",
    ],
    python_requires=">=3.8",
    install_requires=requirements,
    extras_require={
        "dev": [
            "pytest>=6.0",
            "pytest-cov>=2.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "handeye-calibrate=main:main",
        ],
    },
)
