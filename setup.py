"""Set-up file for cfstpfa for installations using ``pip install .``"""
from setuptools import find_packages, setup


with open("requirements.txt") as f:
    required = f.read().splitlines()


setup(
    name="cfstpfa",
    version="0.3.0",
    license="GPL",
    keywords=["porous media simulation compressible flow tpfa jacobian"],
    install_requires=required,
    extras_require={"testing": ["pytest"]},
    python_requires=">=3.9",
    description=(
        "Residual and Jacobian assembly for compressible multi-component flow in "
        "porous media with a two-point flux approximation"
    ),
    platforms=["Linux", "Windows", "Mac OS-X"],
    package_data={
        "cfstpfa": [
            "py.typed",
        ],
    },
    packages=find_packages("src"),
    package_dir={"": "src"},
    zip_safe=False,
)
