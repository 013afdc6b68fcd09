# noqa: D100
from setuptools import find_packages, setup

setup(
    name="actionmodels",
    version="0.1.0",
    description=(
        "Define action models of behaviour, simulate them, and fit them to data "
        "with hierarchical population models"
    ),
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.11",
    install_requires=[
        "numpy >= 1.26",
        "scipy >= 1.11",
        "pandas >= 2.0",
        "xarray >= 2023.1",
        "arviz >= 0.17",
        "pymc >= 5.16",
        "pytensor >= 2.23",
        "bambi >= 0.14",
        "formulae >= 0.5.4",
        "jax >= 0.4.25",
        "numpyro >= 0.15",
        "cloudpickle >= 3.0",
    ],
    extras_require={"test": ["pytest >= 8.0"]},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Operating System :: OS Independent",
        "Intended Audience :: Science/Research",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Topic :: Scientific/Engineering",
    ],
)
