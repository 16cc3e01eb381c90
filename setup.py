#!/usr/bin/env python3
"""
Setup script for the Eligibility Attestor
"""

from setuptools import setup

setup(
    name="eligibility-attestor",
    version="1.0.0",
    description="Signed on-chain eligibility attestations for credential minting",
    author="Eligibility Attestor contributors",
    package_dir={"": "src"},
    py_modules=[
        "attest_types",
        "attestation_service",
        "attestation_signer",
        "attestor_cli",
        "chain_data",
        "config",
        "config_manager",
        "criteria",
        "criterion_registry",
        "errors",
        "explorer_client",
        "logger_utils",
        "rpc_failover",
        "userop_client",
        "wallet_aggregator",
    ],
    install_requires=[
        "web3>=6.0.0,<7.0.0",
        "requests>=2.28.0",
        "eth-abi>=4.0.0,<5.0.0",
        "eth-keys>=0.4.0,<0.6.0",
        "eth-utils>=2.0.0,<5.0.0",
        "eth-typing>=3.0.0,!=4.2.0,<5.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "attestor=attestor_cli:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
)
