"""Setup script for the POS checkout settlement service."""

from setuptools import setup, find_packages

setup(
    name="pos-checkout",
    version="1.0.0",
    description="Point-of-sale checkout backend with KHQR payment codes and Bakong settlement tracking",
    author="POS Checkout Team",
    python_requires=">=3.10",
    packages=find_packages(include=["pos_checkout", "pos_checkout.*"]),
    install_requires=[
        line.strip()
        for line in open("requirements.txt")
        if line.strip() and not line.startswith("#") and not line.startswith("git+")
    ],
    extras_require={
        "test": [
            "pytest>=8.0.0",
            "pytest-asyncio>=0.23.0",
        ],
        "dev": [
            "black>=23.0.0",
            "isort>=5.12.0",
            "flake8>=6.0.0",
            "mypy>=1.4.0",
            "pytest-cov>=4.1.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pos-checkout=pos_checkout.api.main:run",
        ]
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Financial and Insurance Industry",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)
