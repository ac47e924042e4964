"""
Setup configuration for Pinspire Agent
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="pinspire-agent",
    version="0.1.0",
    author="Pinspire Team",
    description="Autonomous buyer agent for x402 payment-gated marketplaces on Solana",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["pinspire_agent", "pinspire_agent.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.5.3",
        "pydantic-settings>=2.1.0",
        "httpx>=0.26.0",
        "structlog>=24.1.0",
        "python-dotenv>=1.0.0",
        "rich>=13.7.0",
        "solana>=0.34.0,<0.40",
        "solders>=0.21.0",
        "base58>=2.1.1",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
            "factory-boy>=3.3.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pinspire-agent=pinspire_agent.cli:main",
        ],
    },
)
