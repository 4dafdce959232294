from setuptools import setup, find_packages

setup(
    name="HalfSib",
    version="0.1.0",
    packages=find_packages(exclude=["tests", "tests.*", "examples"]),
    install_requires=[
        "numpy",
        "pandas",
        "matplotlib",
        "scipy",
        "statsmodels"
    ],
    extras_require={
        "progress": ["tqdm"],
        "test": ["pytest", "tqdm"],
    },
    author="HalfSib contributors",
    description="Half-sib breeding dataset simulation and heritability estimation",
)
