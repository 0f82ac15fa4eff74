"""PontoFlex setup - clock events survive the network."""
from setuptools import setup, find_packages

setup(
    name="pontoflex",
    version="1.0.0",
    description="PontoFlex: offline point registration queue for time and attendance",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "requests>=2.28",
        "blake3>=0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "pontoflex=pontoflex.cli.main:cli",
        ],
    },
)
