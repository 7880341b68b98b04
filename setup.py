#!/usr/bin/env python3
"""
Setup script for Bridge Vaults Exporter
"""

from setuptools import setup

setup(
    name="bridge-vaults-exporter",
    version="1.0.0",
    description="Prometheus exporter for bridge vault balances, limits and relay rounds",
    author="Octus Bridge",
    package_dir={"": "src"},
    py_modules=[
        "chain_client",
        "config_manager",
        "contracts",
        "logger_utils",
        "metrics",
        "metrics_server",
        "printed_num",
        "refreshers",
        "registry",
        "rpc_failover",
        "service",
        "state_cell",
        "vault_exporter",
    ],
    install_requires=[
        "web3>=6.0.0,<7.0.0",
        "requests>=2.28.0",
        "eth-abi>=4.0.0,<5.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "vault-exporter=vault_exporter:main",
        ],
    },
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
