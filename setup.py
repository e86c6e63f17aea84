from setuptools import setup, find_packages

setup(
    name="NIPower",
    version="0.1.0",
    packages=find_packages(include=["nipower", "nipower.*"]),
    python_requires=">=3.10",
    install_requires=[
        "numpy",
        "pandas",
        "matplotlib",
        "scipy",
        "pymc>=5.10",
        "arviz>=0.16,<1",
    ],
    extras_require={
        "parallel": ["joblib>=1.4"],
        "progress": ["tqdm"],
        "fast": ["nutpie"],
        "test": ["pytest", "joblib>=1.4"],
    },
    entry_points={
        "console_scripts": ["nipower=nipower.__main__:main"],
    },
    description="Monte Carlo power analysis for Bayesian non-inferiority trials",
)
