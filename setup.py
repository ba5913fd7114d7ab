from setuptools import setup, find_packages

setup(
    name='terrain3d',
    version='0.1.0',
    description='Textured 3D terrain viewer for DEM and orthophoto rasters',
    packages=find_packages(include=['terrain3d', 'terrain3d.*']),
    python_requires='>=3.9',
    install_requires=[
        'numpy',
        'numba',
        'scipy',
        'xarray',
        'rasterio',
        'matplotlib',
        'Pillow',
        'requests',
        'PyYAML',
    ],
    extras_require={
        'tests': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'terrain3d=terrain3d.cli:main',
        ],
    },
)
