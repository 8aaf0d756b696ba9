"""Set-up file for PoreVel for installations using ``pip install .``"""
from setuptools import find_packages, setup


with open("requirements.txt") as f:
    required = f.read().splitlines()

with open("requirements-dev.txt") as f:
    required_dev = f.read().splitlines()


setup(
    name="porevel",
    version="0.1.0",
    license="GPL",
    keywords=["porous media two-phase flow mpfa velocity reconstruction"],
    install_requires=required,
    extras_require={"testing": required_dev},
    description="MPFA-O velocity reconstruction for two-phase pressure equations",
    platforms=["Linux", "Windows", "Mac OS-X"],
    package_data={"porevel": ["py.typed"]},
    packages=find_packages("src"),
    package_dir={"": "src"},
    zip_safe=False,
)
