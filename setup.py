from setuptools import setup, find_packages

# Read README for long description
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="geoflow-to-netcdf",
    version="1.0.0",
    description="Convert GeoFLOW spectral-element binary output into NetCDF (UGRID) unstructured quad meshes.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["geoflow_to_netcdf", "geoflow_to_netcdf.*"]),
    install_requires=[
        "numpy>=1.20",
        "h5py>=3.0",
        "netCDF4>=1.6",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        "console_scripts": [
            "geoflow-to-netcdf=geoflow_to_netcdf.cli:main",
        ],
    },
    classifiers=[
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Atmospheric Science",
        "Topic :: Scientific/Engineering :: Physics",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.8",
    include_package_data=True,
    zip_safe=False,
    keywords="GeoFLOW NetCDF UGRID spectral-element mesh conversion",
)
